from doc_mcp.parser.base import SecurityScheme
from doc_mcp.server.handlers import DocHandlers, auth_instructions, route_table


class TestDescribe:
    def test_describe(self, petstore_schema, petstore_path):
        described = DocHandlers(petstore_schema).describe()
        assert described["name"] == "Petstore API"
        assert described["version"] == "1.2.0"
        assert described["servers"] == [{"url": "https://petstore.example.com/v1", "description": "Production"}]
        assert described["contact"] == {"name": "Pet Team", "email": "pets@example.com"}
        assert described["license"] == {"name": "MIT"}
        assert described["documentation"] == {"type": "openapi", "sources": [petstore_path]}
        assert described["generated_at"] == petstore_schema.source.parsed_at.isoformat()


class TestSchemas:
    def test_schemas(self, petstore_schema):
        result = DocHandlers(petstore_schema).schemas()
        assert result["count"] == 3
        assert set(result["schemas"]) == {"Pet", "Pets", "Error"}


class TestEndpoints:
    def test_all(self, petstore_schema):
        result = DocHandlers(petstore_schema).endpoints()
        assert result["count"] == 4
        assert result["tags"] == ["pets"]

    def test_method_filter_is_case_insensitive(self, petstore_schema):
        result = DocHandlers(petstore_schema).endpoints(method="get")
        assert [e["path"] for e in result["endpoints"]] == ["/pets", "/pets/{petId}"]

    def test_path_and_deprecated_filters(self, petstore_schema):
        handlers = DocHandlers(petstore_schema)
        assert handlers.endpoints(path="petId")["count"] == 2
        deprecated = handlers.endpoints(deprecated=True)
        assert [(e["method"], e["path"]) for e in deprecated["endpoints"]] == [("DELETE", "/pets/{petId}")]

    def test_tag_filter_keeps_full_tag_set(self, petstore_schema):
        result = DocHandlers(petstore_schema).endpoints(tag="nothing")
        assert result["count"] == 0
        assert result["tags"] == ["pets"]


class TestAuth:
    def test_auth(self, petstore_schema):
        result = DocHandlers(petstore_schema).auth()
        assert result["schemes"]["api_key"] == {"type": "apiKey", "name": "X-API-Key", "location": "header"}
        assert result["default_security"] == [{"api_key": []}]
        assert "`X-API-Key` header" in result["instructions"]
        assert "OAuth 2.0" in result["instructions"]

    def test_no_schemes(self):
        assert auth_instructions({}) == "This API does not require authentication."

    def test_bearer_instructions(self):
        text = auth_instructions({"token": SecurityScheme(type="http", scheme="bearer")})
        assert text.startswith("**token** (Bearer Token):")


class TestRouteTable:
    def test_paths(self):
        assert [r["path"] for r in route_table("/mcp")] == ["/mcp/describe", "/mcp/schemas", "/mcp/endpoints", "/mcp/auth"]
        assert route_table("/")[0]["path"] == "/describe"
