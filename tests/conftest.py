from pathlib import Path

import pytest

from doc_mcp.config import resolve_config
from doc_mcp.parser.base import DocResource
from doc_mcp.parser.loader import parse
from doc_mcp.server.sessions import Session

FIXTURES = Path(__file__).parent / "fixtures"


@pytest.fixture
def petstore_path() -> str:
    return str(FIXTURES / "petstore.yaml")


@pytest.fixture
def config(petstore_path):
    return resolve_config({"docs": [petstore_path]}, env={})


@pytest.fixture
def petstore_schema(petstore_path, config):
    schema = parse([petstore_path], config)
    resources = [
        DocResource(
            id="ui:button",
            name="Button",
            category="components",
            summary="A clickable button",
            content="# Button\n\nRenders a clickable button.",
        ),
        DocResource(
            id="ui:modal",
            name="Modal",
            category="components",
            summary="A dialog overlay",
            content="# Modal\n\nShows content above the page.",
        ),
    ]
    return schema.model_copy(update={"resources": [*schema.resources, *resources]})


@pytest.fixture
def session(petstore_schema, config):
    return Session(schema=petstore_schema, config=config)
