"""Tests for the 'node' CLI command group."""

from pathlib import Path

import pytest
from typer.testing import CliRunner

from chatflow.flow import FlowSession, codec
from cli.commands.node import node_app
from cli.context import CliContext, save_context

runner = CliRunner()


@pytest.fixture
def doc(tmp_path, monkeypatch) -> Path:
    """An empty document set as the active one."""
    cli_dir = tmp_path / ".chatflow_cli"
    cli_dir.mkdir()
    monkeypatch.setattr("cli.context.settings.cli_config_dir", cli_dir)

    path = tmp_path / "bot.ria"
    FlowSession(path=path).save()
    save_context(CliContext(active_document=str(path)))
    return path


def _add(*coords: str) -> None:
    result = runner.invoke(node_app, ["add", *coords])
    assert result.exit_code == 0, result.stdout


def test_node_add(doc):
    result = runner.invoke(node_app, ["add", "10", "20"])
    assert result.exit_code == 0
    assert "✅ Added #1" in result.stdout
    assert "(entry node)" in result.stdout

    graph = codec.load(doc)
    assert graph.entry_id == 1
    g = graph.get_node(1).geometry
    assert (g.x, g.y) == (10, 20)


def test_node_link_and_unlink(doc):
    _add()
    _add("200", "0")
    result = runner.invoke(node_app, ["link", "1", "success", "2"])
    assert result.exit_code == 0
    assert codec.load(doc).get_node(1).on_success.move_to == 2

    result = runner.invoke(node_app, ["unlink", "1", "success"], input="n\n")
    assert "Nothing removed" in result.stdout
    assert codec.load(doc).get_node(1).on_success.move_to == 2

    result = runner.invoke(node_app, ["unlink", "1", "success", "--yes"])
    assert result.exit_code == 0
    assert codec.load(doc).get_node(1).on_success.move_to == 0


def test_node_link_rejected(doc):
    _add()
    result = runner.invoke(node_app, ["link", "1", "error", "1"])
    assert result.exit_code == 1
    result = runner.invoke(node_app, ["link", "1", "sideways", "1"])
    assert result.exit_code == 1
    assert "Unknown branch" in result.stdout


def test_node_delete_detaches(doc):
    _add()
    _add()
    runner.invoke(node_app, ["link", "1", "success", "2"])
    result = runner.invoke(node_app, ["delete", "2"])
    assert result.exit_code == 0
    assert "detached #1 success" in result.stdout
    graph = codec.load(doc)
    assert 2 not in graph
    assert graph.get_node(1).on_success.move_to == 0


def test_node_delete_missing(doc):
    result = runner.invoke(node_app, ["delete", "5"])
    assert result.exit_code == 1


def test_node_move_and_resize(doc):
    _add("10", "10")
    assert runner.invoke(node_app, ["move", "1", "5", "--", "-5"]).exit_code == 0
    assert runner.invoke(node_app, ["resize", "1", "120", "80"]).exit_code == 0
    g = codec.load(doc).get_node(1).geometry
    assert (g.x, g.y, g.width, g.height) == (15, 5, 120, 80)


def test_node_set(doc):
    _add()
    result = runner.invoke(
        node_app,
        ["set", "1", "--message", "Your age?", "--type", "number:interval", "--condition", "0...120"],
    )
    assert result.exit_code == 0
    node = codec.load(doc).get_node(1)
    assert node.message == "Your age?"
    assert node.validation_condition == "0...120"


def test_node_set_rejects_bad_condition(doc):
    _add()
    result = runner.invoke(node_app, ["set", "1", "--type", "number:equal", "--condition", "abc"])
    assert result.exit_code == 1
    assert codec.load(doc).get_node(1).validation_type == "nop"


def test_node_branch(doc):
    _add()
    result = runner.invoke(node_app, ["branch", "1", "error", "--message", "Try again", "--action", "repeat"])
    assert result.exit_code == 0
    branch = codec.load(doc).get_node(1).on_error
    assert (branch.message, branch.action) == ("Try again", "repeat")


def test_node_branch_warns_on_unknown_action(doc):
    _add()
    result = runner.invoke(node_app, ["branch", "1", "error", "--action", "user_locale:user_value"])
    assert result.exit_code == 0
    assert "not a known error action" in result.stdout


def test_node_entry(doc):
    _add()
    _add()
    assert runner.invoke(node_app, ["entry", "2"]).exit_code == 0
    assert codec.load(doc).entry_id == 2
    assert runner.invoke(node_app, ["entry", "9"]).exit_code == 1


def test_node_edit_applies_editor_changes(doc, monkeypatch):
    _add()

    def fake_editor(cmd, shell):
        draft = Path(cmd.split('"')[1])
        text = draft.read_text(encoding="utf-8").replace("New question", "Edited in editor")
        draft.write_text(text, encoding="utf-8")
        return 0

    monkeypatch.setattr("cli.editor.get_editor_command", lambda: "fake")
    monkeypatch.setattr("cli.editor.subprocess.call", fake_editor)
    result = runner.invoke(node_app, ["edit", "1"])
    assert result.exit_code == 0
    assert "✅ Node #1 updated" in result.stdout
    assert codec.load(doc).get_node(1).message == "Edited in editor"


def test_node_edit_unchanged(doc, monkeypatch):
    _add()
    monkeypatch.setattr("cli.editor.get_editor_command", lambda: "fake")
    monkeypatch.setattr("cli.editor.subprocess.call", lambda cmd, shell: 0)
    result = runner.invoke(node_app, ["edit", "1"])
    assert result.exit_code == 0
    assert "No changes" in result.stdout


def test_node_choices(doc):
    _add()
    result = runner.invoke(node_app, ["choices", "1"])
    assert result.exit_code == 0
    assert "* nop" in result.stdout
    assert "user_locale:user_value" in result.stdout


def _dangle_success(doc: Path) -> None:
    """Point node #1's success branch at a node the document lacks."""
    text = doc.read_text(encoding="utf-8").replace("<move>2</move>", "<move>9</move>")
    doc.write_text(text, encoding="utf-8")


def test_node_set_and_branch_keep_dangling_target(doc):
    _add()
    _add()
    runner.invoke(node_app, ["link", "1", "success", "2"])
    _dangle_success(doc)

    result = runner.invoke(node_app, ["set", "1", "--message", "hello"])
    assert result.exit_code == 0, result.stdout
    result = runner.invoke(node_app, ["branch", "1", "success", "--message", "ok"])
    assert result.exit_code == 0, result.stdout

    node = codec.load(doc).get_node(1)
    assert node.message == "hello"
    assert (node.on_success.message, node.on_success.move_to) == ("ok", 9)


def test_node_set_and_branch_missing_node(doc):
    result = runner.invoke(node_app, ["set", "4", "--message", "hello"])
    assert result.exit_code == 1
    assert "Node not found: 4" in result.stdout
    result = runner.invoke(node_app, ["branch", "4", "error", "--action", "repeat"])
    assert result.exit_code == 1
    assert "Node not found: 4" in result.stdout
