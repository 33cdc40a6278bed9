"""Tests for the interactive editing shell and the top-level CLI app."""

import pytest
from typer.testing import CliRunner

from chatflow.flow import FlowSession, codec
from cli.context import CliContext, save_context
from cli.main import app

runner = CliRunner()


@pytest.fixture
def doc(tmp_path, monkeypatch):
    cli_dir = tmp_path / ".chatflow_cli"
    cli_dir.mkdir()
    monkeypatch.setattr("cli.context.settings.cli_config_dir", cli_dir)
    # Keep the root logger untouched by the app callback.
    monkeypatch.setattr("cli.main.configure_logging", lambda level=None: None)

    path = tmp_path / "bot.ria"
    FlowSession(path=path).save()
    save_context(CliContext(active_document=str(path)))
    return path


def _run(lines: list[str]):
    return runner.invoke(app, ["shell"], input="\n".join(lines) + "\n")


def test_help_lists_groups():
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    for name in ("doc", "node", "shell", "serve"):
        assert name in result.stdout


def test_shell_edit_undo_redo_and_save(doc):
    result = _run([
        "add 0 0",
        "add 200 0",
        "link 1 success 2",
        "undo",
        "redo",
        "move 2 10 10",
        "undo",
        "save",
        "quit",
    ])
    assert result.exit_code == 0, result.stdout
    assert "↶ Undone." in result.stdout
    assert "💾 Saved bot.ria" in result.stdout

    graph = codec.load(doc)
    assert graph.get_node(1).on_success.move_to == 2
    assert graph.get_node(2).geometry.x == 200


def test_shell_copy_paste(doc):
    result = _run(["add 0 0", "copy 1", "paste 50 60", "quit", "y"])
    assert result.exit_code == 0, result.stdout
    graph = codec.load(doc)
    assert graph.all_node_ids() == [1, 2]
    assert graph.get_node(2).geometry.y == 60


def test_shell_quit_without_saving(doc):
    result = _run(["add 0 0", "quit", "n"])
    assert result.exit_code == 0
    assert len(codec.load(doc)) == 0


def test_shell_reports_errors_and_continues(doc):
    result = _run(["move 9 1 1", "paste 0 0", "add x y", "add 1", "bogus", "undo", "quit"])
    assert result.exit_code == 0, result.stdout
    assert "Node not found: 9" in result.stdout
    assert "Clipboard does not hold a question" in result.stdout
    assert "Wrong arguments for 'add'" in result.stdout
    assert "Unknown command 'bogus'" in result.stdout
    assert "Nothing to undo." in result.stdout


def test_shell_set_and_branch_undo_redo(doc):
    result = _run([
        "add 0 0",
        "set 1 message 'How old are you?'",
        "set 1 type number:interval",
        "set 1 condition 0...120",
        "set 1 script 'x = 1'",
        "set 1 message Hi",
        "undo",
        "branch 1 error action repeat",
        "branch 1 error message 'Try again'",
        "undo",
        "redo",
        "save",
        "quit",
    ])
    assert result.exit_code == 0, result.stdout
    assert "✅ Node #1 updated." in result.stdout
    assert "✅ Node #1 error branch updated." in result.stdout

    node = codec.load(doc).get_node(1)
    assert node.message == "How old are you?"
    assert (node.validation_type, node.validation_condition) == ("number:interval", "0...120")
    assert node.script == "x = 1"
    assert (node.on_error.action, node.on_error.message) == ("repeat", "Try again")


def test_shell_set_and_branch_errors(doc):
    result = _run([
        "add 0 0",
        "set 1 colour red",
        "set 1 type number:equal",
        "set 1 condition abc",
        "set 7 message Hi",
        "branch 1 maybe message x",
        "branch 1 error move 3",
        "branch 1 success action go:to",
        "set 1 message",
        "quit",
        "n",
    ])
    assert result.exit_code == 0, result.stdout
    assert "Unknown field 'colour'" in result.stdout
    assert "Condition must be a number" in result.stdout
    assert "Node not found: 7" in result.stdout
    assert "Unknown field 'move'" in result.stdout
    assert "not a known success action" in result.stdout
    assert "Wrong arguments for 'set'" in result.stdout


def test_shell_save_failure_keeps_editing(doc):
    result = _run(["add 0 0", "set 1 message 'ring\x07'", "save", "set 1 message fine", "save", "quit"])
    assert result.exit_code == 0, result.stdout
    assert "Question 1" in result.stdout
    assert codec.load(doc).get_node(1).message == "fine"
