"""Flow document codec.

A flow document is a UTF-8 XML file (one per chat bot) of the form::

    <route>
      <info>
        <entry_id>1</entry_id>
        <locale>en</locale>
        <ai_model>
          <name/> <guidelines/> <script/>
          <params><param><key/><value/></param>...</params>
        </ai_model>
      </info>
      <questions>
        <question>
          <id>1</id>
          <bounds>x;y;width;height</bounds>
          <message/>
          <response>
            <condition>
              <type/> <validation/>
              <on_success><message/><action/><value/><move/></on_success>
              <on_error><message/><action/><value/><move/></on_error>
              <script/>
            </condition>
          </response>
        </question>
        ...
      </questions>
    </route>

Free-text fields (messages, guidelines, scripts) are HTML-escaped before
they are stored and unescaped after they are read, which is what the chat
runtime consuming these files expects.  Loading is all-or-nothing: any
problem raises :class:`DocumentParseError` and no graph is returned.
"""

from __future__ import annotations

import html
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Optional, Union
from xml.etree import ElementTree as ET

from chatflow.flow.errors import DocumentParseError, DocumentWriteError
from chatflow.flow.graph import FlowGraph
from chatflow.flow.models import Branch, Geometry, Node

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>\n'

# Characters XML 1.0 cannot hold, even as character references.
_XML_INVALID = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\ud800-\udfff\ufffe\uffff]")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def load(path: PathLike) -> FlowGraph:
    """Read the flow document at *path*.

    Raises:
        DocumentParseError: If the file is not well-formed or misses a
            required tag.
        OSError: If the file cannot be read.
    """
    data = Path(path).read_bytes()
    graph = _parse_document(data)
    logger.info("Loaded %s (%d nodes)", path, len(graph))
    return graph


def loads(text: Union[str, bytes]) -> FlowGraph:
    """Build a graph from flow document text."""
    return _parse_document(text)


def dumps(graph: FlowGraph) -> str:
    """Serialise *graph* to flow document text.

    Raises:
        DocumentWriteError: If a text field holds a character XML cannot
            represent.
    """
    root = ET.Element("route")

    info = ET.SubElement(root, "info")
    _sub(info, "entry_id", str(graph.entry_id))
    _sub(info, "locale", graph.locale)
    ai_model = ET.SubElement(info, "ai_model")
    _sub(ai_model, "name", graph.model_name)
    _sub(ai_model, "guidelines", html.escape(graph.model_guidelines))
    _sub(ai_model, "script", html.escape(graph.model_script))
    params = ET.SubElement(ai_model, "params")
    for key, value in graph.params.items():
        if not key.strip():
            continue
        param = ET.SubElement(params, "param")
        _sub(param, "key", key)
        _sub(param, "value", value)

    questions = ET.SubElement(root, "questions")
    for node in graph.nodes():
        questions.append(_question_element(node))

    ET.indent(root, space="\t")
    return XML_DECLARATION + _serialise(root) + "\n"


def save(graph: FlowGraph, path: PathLike) -> None:
    """Write *graph* to *path* and clear its ``modified`` flag.

    The document is written to a temporary file in the same directory and
    moved into place, so a failed save never truncates an existing file.

    Raises:
        DocumentWriteError: On any I/O failure or unstorable text.  The
            graph (including its ``modified`` flag) is left unchanged.
    """
    target = Path(path)
    text = dumps(graph)
    tmp_name: Optional[str] = None
    try:
        fd, tmp_name = tempfile.mkstemp(
            dir=target.parent, prefix=f".{target.name}.", suffix=".tmp"
        )
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as fh:
            fh.write(text)
        os.replace(tmp_name, target)
        tmp_name = None
    except OSError as exc:
        raise DocumentWriteError(f"Cannot write flow document {target}: {exc}") from exc
    finally:
        if tmp_name is not None and os.path.exists(tmp_name):
            os.unlink(tmp_name)

    graph.modified = False
    logger.info("Saved %s (%d nodes)", target, len(graph))


def question_to_xml(node: Node) -> str:
    """Serialise one node as a ``<question>`` fragment (the clipboard format)."""
    element = _question_element(node)
    ET.indent(element, space="\t")
    return _serialise(element) + "\n"


def question_from_xml(text: str) -> Node:
    """Parse a ``<question>`` fragment produced by :func:`question_to_xml`."""
    try:
        element = ET.fromstring(text.strip())
    except ET.ParseError as exc:
        raise DocumentParseError(f"Malformed question fragment: {exc}") from exc
    if element.tag != "question":
        raise DocumentParseError(f"Expected <question>, found <{element.tag}>")
    return _parse_question(element)


# ---------------------------------------------------------------------------
# Writing helpers
# ---------------------------------------------------------------------------

def _sub(parent: ET.Element, tag: str, text: str) -> ET.Element:
    bad = _XML_INVALID.search(text)
    if bad is not None:
        raise DocumentWriteError(f"<{tag}> holds a character XML cannot store: {bad.group()!r}")
    element = ET.SubElement(parent, tag)
    element.text = text
    return element


def _branch_element(parent: ET.Element, tag: str, branch: Branch) -> None:
    element = ET.SubElement(parent, tag)
    _sub(element, "message", html.escape(branch.message))
    _sub(element, "action", branch.action)
    _sub(element, "value", branch.value)
    _sub(element, "move", str(branch.move_to))


def _question_element(node: Node) -> ET.Element:
    try:
        return _build_question(node)
    except DocumentWriteError as exc:
        raise DocumentWriteError(f"Question {node.id}: {exc}") from exc


def _build_question(node: Node) -> ET.Element:
    question = ET.Element("question")
    _sub(question, "id", str(node.id))
    g = node.geometry
    _sub(question, "bounds", f"{g.x};{g.y};{g.width};{g.height}")
    _sub(question, "message", html.escape(node.message))
    response = ET.SubElement(question, "response")
    condition = ET.SubElement(response, "condition")
    _sub(condition, "type", node.validation_type)
    _sub(condition, "validation", node.validation_condition)
    _branch_element(condition, "on_success", node.on_success)
    _branch_element(condition, "on_error", node.on_error)
    _sub(condition, "script", html.escape(node.script))
    return question


def _serialise(element: ET.Element) -> str:
    # A literal CR would be folded into LF by the parser on the way back.
    return ET.tostring(element, encoding="unicode").replace("\r", "&#13;")


# ---------------------------------------------------------------------------
# Reading helpers
# ---------------------------------------------------------------------------

def _parse_document(data: Union[str, bytes]) -> FlowGraph:
    try:
        root = ET.fromstring(data)
    except ET.ParseError as exc:
        raise DocumentParseError(f"Malformed flow document: {exc}") from exc
    if root.tag != "route":
        raise DocumentParseError(f"Expected <route> root, found <{root.tag}>")

    info = _required(root, "info", "route")
    graph = FlowGraph(locale=_text(info, "locale"))
    graph.entry_id = _int(info, "entry_id", "info")

    ai_model = info.find("ai_model")
    if ai_model is not None:
        graph.model_name = _text(ai_model, "name")
        graph.model_guidelines = html.unescape(_text(ai_model, "guidelines"))
        graph.model_script = html.unescape(_text(ai_model, "script"))
        params = ai_model.find("params")
        if params is not None:
            for param in params.findall("param"):
                key = _text(param, "key")
                if key.strip():
                    graph.params[key] = _text(param, "value")

    questions = _required(root, "questions", "route")
    for element in questions.findall("question"):
        node = _parse_question(element)
        if node.id in graph:
            raise DocumentParseError(f"Duplicate question id {node.id}")
        graph._insert(node)

    graph.modified = False
    return graph


def _parse_question(element: ET.Element) -> Node:
    node_id = _int(element, "id", "question")
    where = f"question {node_id}"
    if node_id <= 0:
        raise DocumentParseError(f"Invalid question id {node_id}")

    bounds = _required(element, "bounds", where).text or ""
    try:
        x, y, width, height = (int(part) for part in bounds.split(";"))
    except ValueError as exc:
        raise DocumentParseError(f"Invalid bounds {bounds!r} in {where}") from exc

    condition = _required(_required(element, "response", where), "condition", where)
    return Node(
        id=node_id,
        message=html.unescape(_text(element, "message")),
        validation_type=_text(condition, "type", "nop"),
        validation_condition=_text(condition, "validation"),
        script=html.unescape(_text(condition, "script")),
        on_success=_parse_branch(_required(condition, "on_success", where), where),
        on_error=_parse_branch(_required(condition, "on_error", where), where),
        geometry=Geometry(x, y, width, height),
    )


def _parse_branch(element: ET.Element, where: str) -> Branch:
    return Branch(
        message=html.unescape(_text(element, "message")),
        action=_text(element, "action", "nop"),
        value=_text(element, "value"),
        move_to=_int(element, "move", f"{element.tag} of {where}"),
    )


def _required(parent: ET.Element, tag: str, where: str) -> ET.Element:
    element = parent.find(tag)
    if element is None:
        raise DocumentParseError(f"Missing <{tag}> in {where}")
    return element


def _text(parent: ET.Element, tag: str, default: str = "") -> str:
    element = parent.find(tag)
    if element is None:
        return default
    return element.text or ""


def _int(parent: ET.Element, tag: str, where: str) -> int:
    raw = _required(parent, tag, where).text or ""
    try:
        return int(raw.strip())
    except ValueError as exc:
        raise DocumentParseError(f"Invalid <{tag}> value {raw!r} in {where}") from exc
