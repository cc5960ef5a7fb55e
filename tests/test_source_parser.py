import pytest

from doc_mcp.errors import ParseError
from doc_mcp.parser.source import detect_category, is_source_file, parse_source

BUTTON_TSX = """import React from 'react';

/**
 * A clickable button.
 * @param label text shown on the button
 */
export function Button(props: ButtonProps) {
  return <button>{props.label}</button>;
}

export const SIZE = 3;

export interface ButtonProps {
  label: string;
}

function internal() {}
"""

UTILS_PY = '''"""String helpers."""


def slugify(text, sep="-"):
    """Turn text into a URL slug."""
    return sep.join(text.lower().split())


def _hidden():
    pass


class Cache:
    """In-memory cache."""

    def get(self, key):
        return None
'''


class TestTypeScriptSource:
    def test_exported_declarations(self):
        result = parse_source(BUTTON_TSX, "src/components/Button.tsx")
        assert [r.name for r in result.resources] == ["Button", "SIZE", "ButtonProps"]

    def test_doc_comment_becomes_summary(self):
        button = parse_source(BUTTON_TSX, "src/components/Button.tsx").resources[0]
        assert button.id == "src/components/Button.tsx:Button"
        assert button.summary == "A clickable button."
        assert button.category == "components"
        assert button.code_examples[0].language == "tsx"
        assert button.code_examples[0].code.endswith("</button>;\n}")

    def test_statement_declaration(self):
        size = parse_source(BUTTON_TSX, "src/components/Button.tsx").resources[1]
        assert size.code_examples[0].code == "export const SIZE = 3;"
        assert size.summary == "const SIZE"

    def test_no_endpoints_produced(self):
        result = parse_source(BUTTON_TSX, "src/components/Button.tsx")
        assert result.endpoints == []


class TestPythonSource:
    def test_public_functions_and_classes(self):
        result = parse_source(UTILS_PY, "pkg/utils.py")
        assert [r.name for r in result.resources] == ["slugify", "Cache"]

    def test_docstring_and_signature(self):
        slugify = parse_source(UTILS_PY, "pkg/utils.py").resources[0]
        assert slugify.summary == "Turn text into a URL slug."
        assert slugify.category == "utilities"
        assert slugify.code_examples[0].title == "slugify(text, sep='-')"
        assert "```python" in slugify.content

    def test_syntax_error(self):
        with pytest.raises(ParseError):
            parse_source("def broken(:\n", "bad.py")


class TestSourceHelpers:
    def test_is_source_file(self):
        assert is_source_file("a/b.ts")
        assert is_source_file("a/b.py")
        assert not is_source_file("a/b.md")

    def test_detect_category(self):
        assert detect_category("src/hooks/useThing.ts") == "hooks"
        assert detect_category("src/main.ts") == "code"


OVERLOADS_TS = """export function format(value: string): string;
export function format(value: number): string;
/** Render a value for display. */
export function format(value: any): string {
  return String(value);
}
"""


class TestRepeatedDeclarations:
    def test_overloads_become_one_resource(self):
        result = parse_source(OVERLOADS_TS, "src/format.ts")
        assert [r.id for r in result.resources] == ["src/format.ts:format"]

    def test_implementation_and_doc_kept(self):
        resource = parse_source(OVERLOADS_TS, "src/format.ts").resources[0]
        assert resource.summary == "Render a value for display."
        assert resource.code_examples[0].code.endswith("return String(value);\n}")

    def test_python_redefinition(self):
        content = 'def load(path):\n    return 1\n\n\ndef load(path, strict=False):\n    """Load strictly."""\n'
        resources = parse_source(content, "pkg/io.py").resources
        assert len(resources) == 1
        assert resources[0].code_examples[0].title == "load(path, strict=False)"
        assert resources[0].summary == "Load strictly."
