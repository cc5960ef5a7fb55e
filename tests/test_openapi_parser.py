from pathlib import Path

import pytest

from doc_mcp.errors import ParseError, UnsupportedFormat
from doc_mcp.parser.openapi import parse_openapi

FIXTURES = Path(__file__).parent / "fixtures"


def _parse(name: str):
    path = FIXTURES / name
    return parse_openapi(path.read_text(encoding="utf-8"), str(path))


def _endpoint(result, method, path):
    return [e for e in result.endpoints if e.method == method and e.path == path][0]


class TestOpenApiParser:
    def test_parse_petstore_endpoints_count(self):
        result = _parse("petstore.yaml")
        assert len(result.endpoints) == 4

    def test_parse_metadata(self):
        metadata = _parse("petstore.yaml").metadata
        assert metadata.title == "Petstore API"
        assert metadata.version == "1.2.0"
        assert metadata.contact.email == "pets@example.com"
        assert metadata.license.name == "MIT"
        assert metadata.servers[0].url == "https://petstore.example.com/v1"
        assert metadata.custom == {"x-audience": "public"}

    def test_parse_get_pets(self):
        get_pets = _endpoint(_parse("petstore.yaml"), "GET", "/pets")
        assert get_pets.summary == "List all pets"
        assert get_pets.operation_id == "listPets"
        assert len(get_pets.parameters) == 1
        limit = get_pets.parameters[0]
        assert limit.name == "limit"
        assert limit.required is False
        assert limit.param_type == "integer"
        assert limit.constraints == {"maximum": 100}
        assert get_pets.security == []

    def test_response_refs_are_inlined(self):
        get_pets = _endpoint(_parse("petstore.yaml"), "GET", "/pets")
        ok = get_pets.responses[0]
        assert ok.status_code == 200
        schema = ok.content["application/json"]["schema"]
        assert schema["type"] == "array"
        assert "name" in schema["items"]["properties"]
        assert get_pets.responses[1].status_code == "default"

    def test_parse_post_pets_has_body(self):
        post_pets = _endpoint(_parse("petstore.yaml"), "POST", "/pets")
        assert post_pets.request_body.required is True
        schema = post_pets.request_body.content["application/json"]["schema"]
        assert "name" in schema["properties"]

    def test_path_level_params_are_merged(self):
        get_pet = _endpoint(_parse("petstore.yaml"), "GET", "/pets/{petId}")
        assert get_pet.parameters[0].name == "petId"
        assert get_pet.parameters[0].location == "path"
        assert get_pet.parameters[0].required is True

    def test_deprecated_flag(self):
        delete = _endpoint(_parse("petstore.yaml"), "DELETE", "/pets/{petId}")
        assert delete.deprecated is True

    def test_component_schemas(self):
        schemas = _parse("petstore.yaml").schemas
        assert set(schemas) == {"Pet", "Pets", "Error"}
        assert schemas["Pet"]["required"] == ["id", "name"]

    def test_security_schemes(self):
        auth = _parse("petstore.yaml").auth
        assert auth.schemes["api_key"].type == "apiKey"
        assert auth.schemes["api_key"].name == "X-API-Key"
        assert auth.schemes["api_key"].location == "header"
        flow = auth.schemes["petstore_auth"].flows["authorizationCode"]
        assert flow.token_url == "https://petstore.example.com/oauth/token"
        assert "read:pets" in flow.scopes
        assert auth.default_security == [{"api_key": []}]

    def test_tag_descriptions_become_resources(self):
        resources = _parse("petstore.yaml").resources
        assert [r.id for r in resources] == ["tag:pets"]
        assert resources[0].content == "Everything about your pets"


class TestSwagger2:
    def test_servers_from_host(self):
        metadata = _parse("swagger2.json").metadata
        assert metadata.servers[0].url == "https://api.legacy.example.com/v2"

    def test_body_param_becomes_request_body(self):
        post = _endpoint(_parse("swagger2.json"), "POST", "/users")
        assert post.request_body.required is True
        assert post.request_body.content["application/json"]["schema"]["properties"]["email"] == {"type": "string"}
        assert post.parameters == []
        assert post.responses[0].content["application/json"]["schema"]["type"] == "object"

    def test_simple_param_type(self):
        get = _endpoint(_parse("swagger2.json"), "GET", "/users/{id}")
        assert get.parameters[0].param_type == "integer"

    def test_definitions_and_security(self):
        result = _parse("swagger2.json")
        assert "User" in result.schemas
        basic = result.auth.schemes["basicAuth"]
        assert basic.type == "http"
        assert basic.scheme == "basic"


class TestOpenApiErrors:
    def test_unsupported_version(self):
        with pytest.raises(UnsupportedFormat) as exc:
            parse_openapi('openapi: "4.0.0"\ninfo: {title: x}\npaths: {}\n', "future.yaml")
        assert exc.value.version == "4.0.0"
        assert exc.value.locator == "future.yaml"

    def test_invalid_yaml(self):
        with pytest.raises(ParseError):
            parse_openapi("openapi: [unclosed", "broken.yaml")

    def test_missing_version_field(self):
        with pytest.raises(ParseError):
            parse_openapi("info: {title: x}\n", "nothing.yaml")

    def test_cyclic_ref_does_not_loop(self):
        content = """
openapi: 3.0.0
info: {title: Tree, version: "1"}
paths: {}
components:
  schemas:
    Node:
      type: object
      properties:
        child:
          $ref: "#/components/schemas/Node"
"""
        result = parse_openapi(content, "tree.yaml")
        child = result.schemas["Node"]["properties"]["child"]
        assert child["properties"]["child"] == {"$ref": "#/components/schemas/Node"}


class TestMalformedSwagger:
    def test_non_mapping_parameter(self):
        content = 'swagger: "2.0"\ninfo: {title: x, version: "1"}\npaths:\n  /x:\n    parameters: [bad]\n'
        with pytest.raises(ParseError):
            parse_openapi(content, "bad.yaml")
