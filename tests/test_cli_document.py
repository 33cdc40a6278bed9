"""Tests for the 'doc' CLI command group."""

import pytest
from typer.testing import CliRunner

from chatflow.flow import Branch, FlowSession, codec
from cli.commands.document import doc_app
from cli.context import load_context

runner = CliRunner()


@pytest.fixture
def workspace(tmp_path, monkeypatch):
    """Provide a fresh workspace and context directory for each test."""
    monkeypatch.setattr("chatflow.config.settings.workspace_dir", tmp_path)
    cli_dir = tmp_path / ".chatflow_cli"
    cli_dir.mkdir()
    monkeypatch.setattr("cli.context.settings.cli_config_dir", cli_dir)
    return tmp_path


@pytest.fixture
def active_doc(workspace):
    """A saved two-node document made active through 'doc open'."""
    path = workspace / "bot.ria"
    session = FlowSession(path=path)
    session.graph.create_node(0, 0)
    session.graph.create_node(200, 0)
    session.graph.set_branch(1, "success", Branch(message="ok", move_to=2))
    session.save()
    result = runner.invoke(doc_app, ["open", str(path)])
    assert result.exit_code == 0
    return path


def test_doc_new(workspace):
    result = runner.invoke(doc_app, ["new", "support", "--locale", "de"])
    assert result.exit_code == 0
    assert "✅ Document created" in result.stdout

    path = workspace / "support.ria"
    assert path.exists()
    assert codec.load(path).locale == "de"
    assert load_context().active_document == str(path.resolve())


def test_doc_new_refuses_overwrite(workspace):
    runner.invoke(doc_app, ["new", "support"])
    result = runner.invoke(doc_app, ["new", "support"])
    assert result.exit_code == 1
    assert "already exists" in result.stdout
    assert runner.invoke(doc_app, ["new", "support", "--force"]).exit_code == 0


def test_doc_open_missing(workspace):
    result = runner.invoke(doc_app, ["open", str(workspace / "nope.ria")])
    assert result.exit_code == 1
    assert "not found" in result.stdout


def test_doc_open_malformed(workspace):
    bad = workspace / "bad.ria"
    bad.write_text("<route><info>", encoding="utf-8")
    result = runner.invoke(doc_app, ["open", str(bad)])
    assert result.exit_code == 1
    assert "Cannot read" in result.stdout
    assert load_context().active_document is None


def test_doc_open(active_doc):
    assert load_context().active_document == str(active_doc.resolve())


def test_doc_info(active_doc):
    result = runner.invoke(doc_app, ["info"])
    assert result.exit_code == 0
    assert "Nodes    : 2" in result.stdout
    assert "Entry    : 1" in result.stdout


def test_doc_show_tree(active_doc):
    result = runner.invoke(doc_app, ["show"])
    assert result.exit_code == 0
    assert "▶ #1" in result.stdout
    assert "[success] #2" in result.stdout


def test_doc_show_list(active_doc):
    result = runner.invoke(doc_app, ["show", "--format", "list"])
    assert result.exit_code == 0
    assert "-> #2" in result.stdout


def test_doc_show_bad_format(active_doc):
    result = runner.invoke(doc_app, ["show", "--format", "graphviz"])
    assert result.exit_code == 1


def test_doc_check_clean(active_doc):
    result = runner.invoke(doc_app, ["check"])
    assert result.exit_code == 0
    assert "No issues" in result.stdout


def test_doc_check_reports_errors(active_doc):
    text = active_doc.read_text(encoding="utf-8").replace("<move>2</move>", "<move>9</move>")
    active_doc.write_text(text, encoding="utf-8")
    result = runner.invoke(doc_app, ["check"])
    assert result.exit_code == 1
    assert "missing node 9" in result.stdout


def test_doc_set_and_param(active_doc):
    result = runner.invoke(doc_app, ["set", "--name", "llama3", "--guidelines", "Be kind"])
    assert result.exit_code == 0
    result = runner.invoke(doc_app, ["param", "temperature", "0.2"])
    assert result.exit_code == 0

    graph = codec.load(active_doc)
    assert graph.model_name == "llama3"
    assert graph.model_guidelines == "Be kind"
    assert graph.params == {"temperature": "0.2"}

    result = runner.invoke(doc_app, ["param", "temperature", "--remove"])
    assert result.exit_code == 0
    assert codec.load(active_doc).params == {}


def test_doc_param_remove_missing(active_doc):
    result = runner.invoke(doc_app, ["param", "ghost", "--remove"])
    assert result.exit_code == 1


def test_commands_require_active_document(workspace):
    result = runner.invoke(doc_app, ["show"])
    assert result.exit_code == 1
    assert "No active document" in result.stdout
