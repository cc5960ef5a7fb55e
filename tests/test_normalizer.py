from pathlib import Path

import pytest

from doc_mcp.config import resolve_config
from doc_mcp.normalizer import (
    CONFIGURED_SCHEME,
    default_response_description,
    determine_source_type,
    generate_operation_id,
    normalize_auth,
    normalize_endpoints,
    normalize_json_schema,
    normalize_metadata,
    normalize_path,
    normalize_schema,
)
from doc_mcp.parser.base import ApiMetadata, AuthInfo, EndpointDraft, Param, ParseResult, ResponseSpec
from doc_mcp.parser.loader import parse

FIXTURES = Path(__file__).parent / "fixtures"


def _config(**options):
    return resolve_config({"docs": ["unused"], **options}, env={})


class TestNormalizePath:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("users", "/users"),
            ("/users/", "/users"),
            ("/", "/"),
            ("/users/:id/posts/:postId", "/users/{id}/posts/{postId}"),
            ("/users/{id}", "/users/{id}"),
        ],
    )
    def test_normalize_path(self, raw, expected):
        assert normalize_path(raw) == expected

    def test_idempotent(self):
        once = normalize_path("api/items/:itemId/")
        assert normalize_path(once) == once


class TestOperationId:
    def test_generated_from_method_and_path(self):
        assert generate_operation_id("GET", "/users/{id}") == "getUsersId"
        assert generate_operation_id("POST", "/api/user-groups") == "postApiUser-groups"
        assert generate_operation_id("GET", "/") == "get"


class TestNormalizeEndpoints:
    def test_first_occurrence_wins_on_normalized_key(self):
        drafts = [
            EndpointDraft(method="get", path="/users/:id", summary="first"),
            EndpointDraft(method="GET", path="/users/{id}/", summary="second"),
        ]
        endpoints = normalize_endpoints(drafts, _config())
        assert len(endpoints) == 1
        assert endpoints[0].summary == "first"
        assert endpoints[0].method == "GET"
        assert endpoints[0].path == "/users/{id}"

    def test_drafts_without_method_or_path_are_dropped(self, caplog):
        drafts = [EndpointDraft(path="/a"), EndpointDraft(method="GET"), EndpointDraft(method="TRACE", path="/b")]
        assert normalize_endpoints(drafts, _config()) == []
        assert "unsupported method" in caplog.text

    def test_defaults_filled(self):
        endpoint = normalize_endpoints([EndpointDraft(method="GET", path="/ping")], _config())[0]
        assert endpoint.operation_id == "getPing"
        assert endpoint.summary == ""
        assert endpoint.tags == []
        assert endpoint.deprecated is False
        assert [(r.status_code, r.description) for r in endpoint.responses] == [(200, "Successful response")]

    def test_parameters_normalized(self):
        draft = EndpointDraft(
            method="GET",
            path="/users/{id}",
            parameters=[Param(name="id", location="path", required=False), Param(name="q")],
        )
        params = normalize_endpoints([draft], _config())[0].parameters
        assert params[0].required is True
        assert params[0].param_type == "string"
        assert params[1].required is False

    def test_missing_response_descriptions(self):
        draft = EndpointDraft(
            method="POST",
            path="/users",
            responses=[
                ResponseSpec(status_code=201),
                ResponseSpec(status_code="default"),
                ResponseSpec(status_code=418, description="Teapot"),
            ],
        )
        responses = normalize_endpoints([draft], _config())[0].responses
        assert [r.description for r in responses] == ["Resource created", "Default response", "Teapot"]

    def test_visibility_applied_to_normalized_path(self):
        drafts = [
            EndpointDraft(method="GET", path="api/users"),
            EndpointDraft(method="GET", path="/api/admin/users"),
            EndpointDraft(method="GET", path="/health"),
        ]
        config = _config(visibility={"include": ["/api/*"], "exclude": ["/api/admin/*"]})
        assert [e.path for e in normalize_endpoints(drafts, config)] == ["/api/users"]

    def test_sorted_by_path_then_method(self):
        drafts = [
            EndpointDraft(method="DELETE", path="/b"),
            EndpointDraft(method="POST", path="/a"),
            EndpointDraft(method="GET", path="/b"),
            EndpointDraft(method="GET", path="/a"),
        ]
        ordered = [(e.method, e.path) for e in normalize_endpoints(drafts, _config())]
        assert ordered == [("GET", "/a"), ("POST", "/a"), ("GET", "/b"), ("DELETE", "/b")]


class TestNormalizeMetadata:
    def test_defaults(self):
        metadata = normalize_metadata(ApiMetadata(), ApiMetadata())
        assert metadata.title == "API Documentation"
        assert metadata.version == "1.0.0"
        assert metadata.servers == []

    def test_overrides_win(self):
        metadata = normalize_metadata(
            ApiMetadata(title="Parsed", version="2.0", custom={"a": 1}),
            ApiMetadata(title="Configured", custom={"b": 2}),
        )
        assert metadata.title == "Configured"
        assert metadata.version == "2.0"
        assert metadata.custom == {"a": 1, "b": 2}


class TestNormalizeJsonSchema:
    def test_infers_types_recursively(self):
        schema = normalize_json_schema(
            {"properties": {"tags": {"items": {"properties": {"name": {"type": "string"}}}}}}
        )
        assert schema["type"] == "object"
        tags = schema["properties"]["tags"]
        assert tags["type"] == "array"
        assert tags["items"]["type"] == "object"

    def test_composed_schemas(self):
        schema = normalize_json_schema({"oneOf": [{"properties": {}}, {"type": "string"}]})
        assert schema["oneOf"][0]["type"] == "object"
        assert "type" not in schema

    def test_explicit_type_kept(self):
        assert normalize_json_schema({"type": "string", "items": {}})["type"] == "string"


class TestNormalizeAuth:
    def test_no_schemes(self):
        auth = normalize_auth(AuthInfo(), _config())
        assert auth.schemes == {}
        assert auth.description == "No authentication required."

    def test_configured_scheme_added(self):
        auth = normalize_auth(AuthInfo(), _config(auth={"type": "apiKey", "name": "X-Token"}))
        scheme = auth.schemes[CONFIGURED_SCHEME]
        assert scheme.type == "apiKey"
        assert scheme.name == "X-Token"
        assert scheme.location == "header"
        assert "API Key in header (X-Token)" in auth.description

    def test_bearer_config(self):
        auth = normalize_auth(AuthInfo(), _config(auth={"type": "bearer"}))
        assert auth.schemes[CONFIGURED_SCHEME].scheme == "bearer"
        assert "HTTP bearer authentication" in auth.description

    def test_parsed_description_kept(self):
        parsed = AuthInfo(description="Send a token.")
        auth = normalize_auth(parsed, _config(auth={"type": "basic"}))
        assert auth.description == "Send a token."


class TestSourceType:
    def test_provenance(self):
        assert determine_source_type(["a.md", "b.markdown"]) == "markdown"
        assert determine_source_type(["a.yaml", "b.json"]) == "openapi"
        assert determine_source_type(["a.yaml", "b.md"]) == "mixed"
        assert determine_source_type(["src/app.ts"]) == "mixed"
        assert determine_source_type([]) == "mixed"


class TestNormalizeSchema:
    def test_petstore(self):
        schema = parse(str(FIXTURES / "petstore.yaml"))
        assert [(e.method, e.path) for e in schema.endpoints] == [
            ("GET", "/pets"),
            ("POST", "/pets"),
            ("GET", "/pets/{petId}"),
            ("DELETE", "/pets/{petId}"),
        ]
        post = schema.endpoints[1]
        assert post.operation_id == "postPets"
        assert post.responses[0].description == "Resource created"
        assert schema.endpoints[3].deprecated is True
        assert schema.schemas["Error"]["type"] == "object"
        assert set(schema.auth.schemes) == {"api_key", "petstore_auth"}

    def test_empty_result(self):
        schema = normalize_schema(ParseResult(), _config(), [])
        assert schema.endpoints == []
        assert schema.metadata.title == "API Documentation"
        assert schema.source.type == "mixed"
        assert schema.source.parsed_at.tzinfo is not None
