"""
Tests for CLI commands — deps, check, delete, validate, render and global options.
"""

import json
from pathlib import Path

from click.testing import CliRunner

from src.main import cli


class TestCLIGlobal:
    """Tests for global CLI behavior."""

    def test_help(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "Agent Config Guard" in result.output

    def test_version(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_missing_config(self, tmp_path: Path):
        runner = CliRunner()
        result = runner.invoke(cli, ["--config", str(tmp_path / "nope.yaml"), "validate"])
        assert result.exit_code == 1
        assert "Descriptor not found" in result.output


class TestDepsCommand:
    def test_lists_dependents(self, descriptor_file: Path):
        runner = CliRunner()
        result = runner.invoke(cli, ["--config", str(descriptor_file), "deps", "llm", "gpt_a"])
        assert result.exit_code == 0
        assert '• agent: "analyst" (model)' in result.output

    def test_nothing_references(self, descriptor_file: Path):
        runner = CliRunner()
        result = runner.invoke(cli, ["--config", str(descriptor_file), "deps", "llm", "gpt_b"])
        assert result.exit_code == 0
        assert 'Nothing references llm "gpt_b"' in result.output

    def test_unknown_type(self, descriptor_file: Path):
        runner = CliRunner()
        result = runner.invoke(cli, ["--config", str(descriptor_file), "deps", "dashboard", "x"])
        assert result.exit_code == 0
        assert "Unknown component type" in result.output

    def test_json_output(self, descriptor_file: Path):
        runner = CliRunner()
        result = runner.invoke(
            cli, ["--config", str(descriptor_file), "deps", "function", "find_customer", "--json"],
        )
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data == [{"type": "tool", "name": "lookup", "field": "function (merge key)"}]


class TestCheckCommand:
    def test_blocked(self, descriptor_file: Path):
        runner = CliRunner()
        result = runner.invoke(cli, ["--config", str(descriptor_file), "check", "tool", "lookup"])
        assert result.exit_code == 1
        assert 'Cannot delete tool "lookup"' in result.output
        assert '• agent: "analyst" (tools)' in result.output

    def test_allowed(self, descriptor_file: Path):
        runner = CliRunner()
        result = runner.invoke(cli, ["--config", str(descriptor_file), "check", "tool", "unused"])
        assert result.exit_code == 0
        assert 'tool "unused" can be deleted' in result.output

    def test_json_output(self, descriptor_file: Path):
        runner = CliRunner()
        result = runner.invoke(
            cli, ["--config", str(descriptor_file), "check", "agent", "analyst", "--json"],
        )
        assert result.exit_code == 1
        data = json.loads(result.output)
        assert data["allowed"] is False
        assert data["dependents"][0]["field"] == "agents list"


class TestDeleteCommand:
    def test_delete_unreferenced(self, descriptor_file: Path):
        runner = CliRunner()
        result = runner.invoke(cli, ["--config", str(descriptor_file), "delete", "tool", "unused"])
        assert result.exit_code == 0
        assert 'tool "unused" deleted' in result.output
        assert "  unused:" not in result.output
        assert "lookup: &lookup" in result.output
        # the file on disk is left alone
        assert "unused:" in descriptor_file.read_text()

    def test_delete_referenced(self, descriptor_file: Path):
        runner = CliRunner()
        result = runner.invoke(cli, ["--config", str(descriptor_file), "delete", "llm", "gpt_a"])
        assert result.exit_code == 1
        assert 'Cannot delete llm "gpt_a"' in result.output

    def test_delete_missing_key(self, descriptor_file: Path):
        runner = CliRunner()
        result = runner.invoke(cli, ["--config", str(descriptor_file), "delete", "tool", "ghost"])
        assert result.exit_code == 1
        assert 'Failed to delete tool "ghost"' in result.output


class TestValidateCommand:
    def test_valid(self, descriptor_file: Path):
        runner = CliRunner()
        result = runner.invoke(cli, ["--config", str(descriptor_file), "validate"])
        assert result.exit_code == 0
        assert "All references resolve" in result.output

    def test_dangling_marker(self, tmp_path: Path):
        path = tmp_path / "agent_config.yaml"
        path.write_text('agents:\n  a:\n    model: "*ghost"\n')
        runner = CliRunner()
        result = runner.invoke(cli, ["--config", str(path), "validate", "--json"])
        assert result.exit_code == 1
        data = json.loads(result.output)
        assert data["valid"] is False
        assert '"ghost"' in data["error"]


class TestRenderCommand:
    def test_render(self, descriptor_file: Path):
        runner = CliRunner()
        result = runner.invoke(cli, ["--config", str(descriptor_file), "render"])
        assert result.exit_code == 0
        assert "gpt_a: &gpt_a" in result.output
        assert "model: *gpt_a" in result.output
        assert "<<: *find_customer" in result.output
