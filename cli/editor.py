"""External editor integration for the Chatflow CLI.

Opens a node, as a ``<question>`` fragment, in the user's preferred editor
($EDITOR) and applies the edited content back to the graph as one
``edit_node`` operation.
"""

from __future__ import annotations

import os
import shutil
import subprocess

from chatflow.config import settings
from chatflow.flow import FlowSession, codec
from chatflow.flow.taxonomy import validate_condition
from cli.context import load_context


def get_editor_command() -> str:
    """Determine the editor command to use."""
    ctx = load_context()

    # 1. User preference from context.json
    if "editor" in ctx.user_preferences:
        return ctx.user_preferences["editor"]

    # 2. Environment variable
    if "EDITOR" in os.environ:
        return os.environ["EDITOR"]

    # 3. Platform defaults
    if os.name == "nt":  # Windows
        if shutil.which("code"):
            return "code -w"
        return "notepad"
    else:  # Unix
        if shutil.which("vim"):
            return "vim"
        if shutil.which("nano"):
            return "nano"
        return "vi"


def edit_node_content(session: FlowSession, node_id: int) -> bool:
    """Open a node in an external editor and apply the changes.

    Only message, validation and branches are taken from the edited
    fragment; id and bounds are ignored.

    Returns:
        ``True`` if the node changed, ``False`` if the editor failed or the
        fragment came back unchanged.

    Raises:
        InvalidReference: If the node (or an edited branch target) does not
            exist.
        DocumentParseError: If the edited fragment is not a valid question.
        ConditionError: If the edited condition does not fit its type.
    """
    node = session.graph.get_node(node_id)
    content = codec.question_to_xml(node)

    drafts_dir = settings.cli_config_dir / "drafts"
    drafts_dir.mkdir(parents=True, exist_ok=True)

    stem = session.path.stem if session.path else "untitled"
    draft_file = drafts_dir / f"{stem}_node{node.id}.xml"
    draft_file.write_text(content, encoding="utf-8")

    # Launch editor
    editor = get_editor_command()
    cmd = f"{editor} \"{draft_file}\""

    # Shell=True to handle spaces in command (e.g. "code -w")
    ret = subprocess.call(cmd, shell=True)

    if ret != 0:
        print(f"⚠️ Editor exited with code {ret}")
        return False

    new_content = draft_file.read_text(encoding="utf-8")
    if new_content == content:
        return False

    edited = codec.question_from_xml(new_content)
    validate_condition(edited.validation_type, edited.validation_condition)
    session.graph.edit_node(node_id, edited)
    draft_file.unlink()
    return True
