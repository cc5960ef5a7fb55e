"""Source-code documentation extractor.

Turns the public declarations of a source file into DocResources: Python
modules are read with `ast`, JavaScript/TypeScript files with a scan over
`export` statements and their leading `/** ... */` doc comments.
"""

import ast
import re
from dataclasses import dataclass
from pathlib import PurePath

from doc_mcp.errors import ParseError
from doc_mcp.parser.base import CodeExample, DocResource, ParseResult

PYTHON_EXTENSIONS = (".py", ".pyi")
SCRIPT_EXTENSIONS = (".ts", ".tsx", ".js", ".jsx", ".mjs", ".mts")
SOURCE_EXTENSIONS = PYTHON_EXTENSIONS + SCRIPT_EXTENSIONS

CATEGORY_MARKERS = [
    ("component", "components"),
    ("hook", "hooks"),
    ("util", "utilities"),
    ("helper", "utilities"),
    ("service", "services"),
    ("api", "api"),
    ("type", "types"),
    ("constant", "constants"),
]

EXPORT_PATTERN = re.compile(
    r"(?P<doc>/\*\*(?:(?!\*/).)*\*/\s*)?"
    r"^export\s+(?P<default>default\s+)?(?:declare\s+)?(?:async\s+)?"
    r"(?P<kind>function\*?|class|const|let|var|interface|type|enum|abstract\s+class)\s+"
    r"(?P<name>[A-Za-z_$][\w$]*)",
    re.MULTILINE | re.DOTALL,
)

KIND_NAMES = {
    "function": "function",
    "function*": "function",
    "class": "class",
    "abstract class": "class",
    "const": "const",
    "let": "const",
    "var": "const",
    "interface": "interface",
    "type": "type",
    "enum": "enum",
}

MAX_KEYWORDS = 20

CONTINUATION_SUFFIXES = ("=", "=>", ",", "|", "&", "<", "extends", "implements")


@dataclass
class Declaration:
    name: str
    kind: str
    code: str
    doc: str = ""
    signature: str | None = None


def parse_source(content: str, locator: str) -> ParseResult:
    """Extract DocResources from a Python or JavaScript/TypeScript source file."""
    lower = locator.lower()
    if lower.endswith(PYTHON_EXTENSIONS):
        declarations = _python_declarations(content, locator)
        language = "python"
    else:
        declarations = _script_declarations(content)
        language = "tsx" if lower.endswith((".tsx", ".jsx")) else "typescript"

    declarations = _collapse_repeated(declarations)
    return ParseResult(resources=[_to_resource(d, locator, language) for d in declarations])


def is_source_file(locator: str) -> bool:
    return locator.lower().endswith(SOURCE_EXTENSIONS)


def _python_declarations(content: str, locator: str) -> list[Declaration]:
    try:
        tree = ast.parse(content, filename=locator)
    except SyntaxError as e:
        raise ParseError(locator, f"SyntaxError: {e.msg} (line {e.lineno})") from e

    declarations = []
    for node in tree.body:
        if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)):
            if node.name.startswith("_"):
                continue
            kind = "class" if isinstance(node, ast.ClassDef) else "function"
            signature = None
            if kind == "function":
                signature = f"{node.name}({ast.unparse(node.args)})"
            declarations.append(
                Declaration(
                    name=node.name,
                    kind=kind,
                    code=ast.get_source_segment(content, node) or "",
                    doc=ast.get_docstring(node) or "",
                    signature=signature,
                )
            )
    return declarations


def _script_declarations(content: str) -> list[Declaration]:
    declarations = []
    for match in EXPORT_PATTERN.finditer(content):
        start = match.start() if match.group("doc") is None else match.end("doc")
        declarations.append(
            Declaration(
                name=match.group("name"),
                kind=KIND_NAMES.get(" ".join(match.group("kind").split()), "const"),
                code=_declaration_code(content, start),
                doc=_clean_doc_comment(match.group("doc") or ""),
            )
        )
    return declarations


def _collapse_repeated(declarations: list[Declaration]) -> list[Declaration]:
    """One declaration per name, at its first position.

    Overload signatures and redefinitions share a name; the last one carries
    the implementation, the first documented one carries the doc comment.
    """
    by_name: dict[str, Declaration] = {}
    for decl in declarations:
        first = by_name.get(decl.name)
        if first is None:
            by_name[decl.name] = decl
            continue
        first.code = decl.code
        first.kind = decl.kind
        first.signature = decl.signature
        first.doc = first.doc or decl.doc
    return list(by_name.values())


def _declaration_code(content: str, start: int) -> str:
    """Take source from `start` to the end of its first balanced brace block or statement."""
    depth = 0
    parens = 0
    seen_brace = False
    for i in range(start, len(content)):
        ch = content[i]
        if ch in "([":
            parens += 1
        elif ch in ")]":
            parens -= 1
        elif ch == "{":
            depth += 1
            seen_brace = True
        elif ch == "}":
            depth -= 1
            if seen_brace and depth == 0 and parens == 0:
                return content[start:i + 1].strip()
        elif ch == ";" and depth == 0 and parens == 0:
            return content[start:i + 1].strip()
        elif ch == "\n" and depth == 0 and parens == 0 and not seen_brace:
            line = content[start:i].rstrip()
            if line and not line.endswith(CONTINUATION_SUFFIXES):
                return line.strip()
    return content[start:].strip()


def _clean_doc_comment(comment: str) -> str:
    body = comment.strip()
    body = body.removeprefix("/**").removesuffix("*/")
    lines = [re.sub(r"^\s*\*\s?", "", line).rstrip() for line in body.splitlines()]
    return "\n".join(lines).strip()


def _split_doc(doc: str) -> tuple[str, dict[str, str]]:
    """Split a doc comment into its description and `@tag value` pairs."""
    description = []
    tags = {}
    for line in doc.splitlines():
        line = line.strip()
        tag = re.match(r"@(\w+)\s+(.+)", line)
        if tag:
            tags[tag.group(1)] = tag.group(2)
        elif line and not line.startswith("@"):
            description.append(line)
    return " ".join(description), tags


def detect_category(locator: str) -> str:
    lower = locator.lower()
    for marker, category in CATEGORY_MARKERS:
        if marker in lower:
            return category
    return "code"


def _to_resource(decl: Declaration, locator: str, language: str) -> DocResource:
    description, _ = _split_doc(decl.doc)

    keywords = [decl.name.lower(), decl.kind]
    keywords.extend(w.lower() for w in description.split() if len(w) > 3)

    if description:
        content = f"{description}\n\n```{language}\n{decl.code}\n```"
    else:
        content = f"```{language}\n{decl.code}\n```"

    return DocResource(
        id=f"{locator}:{decl.name}",
        name=decl.name,
        category=detect_category(PurePath(locator).as_posix()),
        summary=description or f"{decl.kind} {decl.name}",
        content=content,
        code_examples=[CodeExample(language=language, code=decl.code, title=decl.signature or decl.name)],
        source=locator,
        keywords=list(dict.fromkeys(keywords))[:MAX_KEYWORDS],
    )
