"""Tests for the rag-index command line."""

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from rag_index_kit.cli import app
from rag_index_kit.config import get_config_path, load_service_config


@pytest.fixture
def cli_runner() -> CliRunner:
    """Create a CLI runner for testing."""
    return CliRunner()


@pytest.fixture
def project(workspace: Path) -> Path:
    (workspace / "notes.txt").write_text("vector databases store embeddings")
    (workspace / "recipes.txt").write_text("banana bread needs ripe bananas")
    return workspace


class TestCli:
    """Test CLI commands against the in-memory store."""

    def test_version(self, cli_runner):
        result = cli_runner.invoke(app, ["version"])

        assert result.exit_code == 0
        assert "rag-index-kit" in result.output

    def test_init_writes_config(self, cli_runner, project):
        result = cli_runner.invoke(app, ["--root", str(project), "init"])

        assert result.exit_code == 0
        assert get_config_path(project).exists()
        assert load_service_config(project, strict=True).vector_db.provider == "in-memory"

        again = cli_runner.invoke(app, ["--root", str(project), "init"])
        assert again.exit_code == 1

    def test_sync(self, cli_runner, project):
        result = cli_runner.invoke(app, ["--root", str(project), "sync"])

        assert result.exit_code == 0
        assert "Synced 2 files" in result.output

    def test_query_json(self, cli_runner, project):
        result = cli_runner.invoke(
            app,
            [
                "--root",
                str(project),
                "--log-level",
                "ERROR",
                "query",
                "vector embeddings",
                "-k",
                "1",
                "-f",
                "json",
            ],
        )

        assert result.exit_code == 0
        payload = json.loads(result.output[result.output.index("[") :])
        assert payload[0]["file_path"] == "notes.txt"

    def test_index_file(self, cli_runner, project):
        result = cli_runner.invoke(
            app, ["--root", str(project), "index-file", str(project / "notes.txt")]
        )

        assert result.exit_code == 0
        assert "notes.txt: 1 chunks indexed" in result.output

    def test_status(self, cli_runner, project):
        result = cli_runner.invoke(app, ["--root", str(project), "status"])

        assert result.exit_code == 0
        assert "in-memory" in result.output

    def test_invalid_log_level(self, cli_runner, project):
        result = cli_runner.invoke(app, ["--root", str(project), "--log-level", "LOUD", "status"])

        assert result.exit_code == 1

    def test_strict_config_error(self, cli_runner, project):
        config_path = get_config_path(project)
        config_path.parent.mkdir(parents=True)
        config_path.write_text("vector_db:\n  provider: pinecone\n")

        result = cli_runner.invoke(app, ["--root", str(project), "--strict", "status"])

        assert result.exit_code == 1
        assert "Invalid vector_db config" in result.output

    def test_invalid_vector_db_fails_without_strict(self, cli_runner, project, monkeypatch):
        monkeypatch.delenv("TEST_UNSET_PINECONE_KEY", raising=False)
        config_path = get_config_path(project)
        config_path.parent.mkdir(parents=True)
        config_path.write_text(
            "vector_db:\n"
            "  provider: pinecone\n"
            "  api_key: ${TEST_UNSET_PINECONE_KEY}\n"
            "  index_name: docs\n"
        )

        result = cli_runner.invoke(app, ["--root", str(project), "sync"])

        assert result.exit_code == 1
        assert "Invalid vector_db config" in result.output
        assert "Synced" not in result.output
