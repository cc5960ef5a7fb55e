from pathlib import Path
from unittest.mock import patch

from click.testing import CliRunner

from doc_mcp.cli import main
from doc_mcp.instance import DocMcp

FIXTURES = Path(__file__).parent / "fixtures"


class TestCliValidate:
    def test_validate_valid_files(self):
        runner = CliRunner()
        result = runner.invoke(main, [
            "validate", str(FIXTURES / "petstore.yaml"), str(FIXTURES / "sample-api.md"),
        ])

        assert result.exit_code == 0
        assert "✅ Valid (1 file)" in result.output
        assert "All files validated successfully." in result.output

    def test_validate_glob(self):
        runner = CliRunner()
        result = runner.invoke(main, ["validate", str(FIXTURES / "*.json")])

        assert result.exit_code == 0
        assert "✅ Valid (2 files)" in result.output

    def test_validate_invalid_file(self, tmp_path):
        broken = tmp_path / "broken.yaml"
        broken.write_text('openapi: "4.0.0"\npaths: {}\n')

        runner = CliRunner()
        result = runner.invoke(main, ["validate", str(broken)])

        assert result.exit_code == 1
        assert "❌ Invalid" in result.output
        assert "unsupported OpenAPI version" in result.output
        assert "Validation completed with errors." in result.output

    def test_validate_no_matches(self, tmp_path):
        runner = CliRunner()
        result = runner.invoke(main, ["validate", str(tmp_path / "*.yaml")])

        assert result.exit_code == 1
        assert "❌ No files matched" in result.output

    def test_missing_docs(self, monkeypatch):
        monkeypatch.delenv("DOC_MCP_DOCS", raising=False)
        runner = CliRunner()
        result = runner.invoke(main, ["validate"])

        assert result.exit_code != 0
        assert '"docs" configuration is required' in result.output


class TestCliInspect:
    def test_inspect_petstore(self):
        runner = CliRunner()
        result = runner.invoke(main, ["inspect", str(FIXTURES / "petstore.yaml")])

        assert result.exit_code == 0
        assert "Title: Petstore API" in result.output
        assert "Version: 1.2.0" in result.output
        assert "Source type: openapi" in result.output
        assert "https://petstore.example.com/v1 (Production)" in result.output
        assert "Total: 4" in result.output
        assert "(deprecated)" in result.output
        assert "- api_key: apiKey" in result.output

    def test_inspect_with_config_file(self, tmp_path):
        config_file = tmp_path / "doc-mcp.yaml"
        config_file.write_text(
            f"docs:\n  - {FIXTURES / 'sample-api.md'}\nmetadata:\n  title: Configured Title\n"
        )

        runner = CliRunner()
        result = runner.invoke(main, ["inspect", "-c", str(config_file)])

        assert result.exit_code == 0
        assert "Title: Configured Title" in result.output
        assert "Source type: markdown" in result.output

    def test_inspect_missing_file(self, tmp_path):
        runner = CliRunner()
        result = runner.invoke(main, ["inspect", str(tmp_path / "missing.yaml")])

        assert result.exit_code == 1
        assert "Failed to inspect" in result.output


class TestCliServe:
    @patch("doc_mcp.server.app.run_server")
    def test_serve_starts_server(self, mock_run):
        runner = CliRunner()
        result = runner.invoke(main, [
            "serve", str(FIXTURES / "petstore.yaml"), "-p", "8080", "-b", "/docs",
        ])

        assert result.exit_code == 0
        assert "GET http://0.0.0.0:8080/docs/describe" in result.output
        mock_run.assert_called_once()
        instance = mock_run.call_args.args[0]
        assert isinstance(instance, DocMcp)
        assert instance.config.base_path == "/docs"
        assert mock_run.call_args.kwargs == {"host": "0.0.0.0", "port": 8080}

    @patch("doc_mcp.server.app.run_server")
    def test_serve_parse_failure(self, mock_run, tmp_path):
        runner = CliRunner()
        result = runner.invoke(main, ["serve", str(tmp_path / "missing.yaml")])

        assert result.exit_code == 1
        assert "Failed to start server" in result.output
        mock_run.assert_not_called()


class TestCliVersion:
    def test_version(self):
        result = CliRunner().invoke(main, ["--version"])
        assert "1.0.0" in result.output
