"""Tests for the flow document codec."""

from __future__ import annotations

from pathlib import Path
from xml.etree import ElementTree as ET

import pytest

from chatflow.flow import Branch, FlowGraph, Node, codec
from chatflow.flow.errors import DocumentParseError, DocumentWriteError

MINIMAL = """<?xml version="1.0" encoding="UTF-8"?>
<route>
  <info><entry_id>1</entry_id><locale>fr</locale></info>
  <questions>
    <question>
      <id>1</id>
      <bounds>10;20;100;100</bounds>
      <message>Bonjour</message>
      <response><condition>
        <type>text:any</type><validation></validation>
        <on_success><message></message><action>nop</action><value></value><move>0</move></on_success>
        <on_error><message></message><action>nop</action><value></value><move>0</move></on_error>
        <script></script>
      </condition></response>
    </question>
  </questions>
</route>
"""


@pytest.fixture()
def graph() -> FlowGraph:
    g = FlowGraph(locale="en")
    g.create_node(0, 0)
    g.create_node(50, 50)
    g.set_branch(1, "success", Branch(message="ok", action="nop", value="", move_to=2))
    return g


# ---------------------------------------------------------------------------
# save / load
# ---------------------------------------------------------------------------

class TestRoundTrip:
    def test_example_scenario(self, graph: FlowGraph, tmp_path: Path) -> None:
        path = tmp_path / "bot.ria"
        codec.save(graph, path)
        loaded = codec.load(path)
        assert loaded.get_node(1).on_success.move_to == 2
        node2 = loaded.get_node(2)
        assert node2.on_success == Branch()
        assert node2.on_error == Branch()
        assert loaded.entry_id == 1
        assert not loaded.modified

    def test_full_content_survives(self, tmp_path: Path) -> None:
        g = FlowGraph(locale="it")
        g.set_info(
            name="llama3",
            guidelines='Answer "politely" & <briefly>',
            script="if (a < b) { go(); }",
            params={"temperature": "0.3", "top_p": "0.9"},
        )
        g.create_node(5, 6)
        g.create_node(7, 8)
        data = Node(
            id=1,
            message="Pick one:\n<b>yes</b> or 'no'",
            validation_type="matching_list",
            validation_condition="['yes',2]['no',0]",
            script="x = 1 && y = 2",
            on_success=Branch(message="Great & thanks", action="variable:user_value", value="answer", move_to=2),
            on_error=Branch(message="Sorry", action="repeat"),
        )
        g.edit_node(1, data)
        g.resize_node(2, 140, 60)

        path = tmp_path / "full.ria"
        codec.save(g, path)
        loaded = codec.load(path)

        assert loaded.locale == "it"
        assert loaded.model_name == "llama3"
        assert loaded.model_guidelines == 'Answer "politely" & <briefly>'
        assert loaded.model_script == "if (a < b) { go(); }"
        assert loaded.params == {"temperature": "0.3", "top_p": "0.9"}
        node = loaded.get_node(1)
        assert node.message == "Pick one:\n<b>yes</b> or 'no'"
        assert node.validation_condition == "['yes',2]['no',0]"
        assert node.script == "x = 1 && y = 2"
        assert node.on_success == data.on_success
        assert node.on_error == data.on_error
        g2 = loaded.get_node(2).geometry
        assert (g2.x, g2.y, g2.width, g2.height) == (7, 8, 140, 60)

    def test_line_endings_and_tabs_survive(self, graph: FlowGraph) -> None:
        data = graph.get_node(2).copy()
        data.message = "first\r\nsecond\rthird\tend"
        data.on_error = Branch(message="again?\r\n")
        graph.edit_node(2, data)
        node = codec.loads(codec.dumps(graph)).get_node(2)
        assert node.message == "first\r\nsecond\rthird\tend"
        assert node.on_error.message == "again?\r\n"

    def test_dumps_is_stable(self, graph: FlowGraph) -> None:
        text = codec.dumps(graph)
        assert codec.dumps(codec.loads(text)) == text

    def test_questions_written_in_id_order(self, graph: FlowGraph) -> None:
        graph.duplicate_into(graph.get_node(2), (0, 0))
        root = ET.fromstring(codec.dumps(graph))
        ids = [q.findtext("id") for q in root.find("questions")]
        assert ids == ["1", "2", "3"]

    def test_messages_stored_html_escaped(self, graph: FlowGraph) -> None:
        graph.edit_node(2, Node(id=2, message="a < b"))
        root = ET.fromstring(codec.dumps(graph))
        stored = [q.findtext("message") for q in root.iter("question")]
        assert "a &lt; b" in stored

    def test_unknown_tags_pass_through(self, graph: FlowGraph) -> None:
        graph.edit_node(1, Node(id=1, validation_type="image:any"))
        graph.set_branch(2, "error", Branch(action="teleport"))
        loaded = codec.loads(codec.dumps(graph))
        assert loaded.get_node(1).validation_type == "image:any"
        assert loaded.get_node(2).on_error.action == "teleport"

    def test_blank_param_keys_skipped(self, graph: FlowGraph) -> None:
        graph.set_info(params={"": "x", "  ": "y", "k": "v"})
        loaded = codec.loads(codec.dumps(graph))
        assert loaded.params == {"k": "v"}

    def test_next_id_follows_loaded_ids(self) -> None:
        loaded = codec.loads(MINIMAL)
        assert loaded.locale == "fr"
        assert loaded.get_node(1).message == "Bonjour"
        assert loaded.create_node(0, 0).id == 2

    def test_load_preserves_dangling_references(self) -> None:
        text = MINIMAL.replace("<entry_id>1</entry_id>", "<entry_id>7</entry_id>")
        text = text.replace("<move>0</move></on_success>", "<move>9</move></on_success>")
        loaded = codec.loads(text)
        assert loaded.entry_id == 7
        assert loaded.get_node(1).on_success.move_to == 9


# ---------------------------------------------------------------------------
# parse errors
# ---------------------------------------------------------------------------

class TestParseErrors:
    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            codec.load(tmp_path / "absent.ria")

    @pytest.mark.parametrize(
        "mutate",
        [
            lambda t: t.replace("</route>", ""),
            lambda t: t.replace("<route>", "<bot>").replace("</route>", "</bot>"),
            lambda t: t.replace("<entry_id>1</entry_id>", ""),
            lambda t: t.replace("<bounds>10;20;100;100</bounds>", "<bounds>10;20</bounds>"),
            lambda t: t.replace("<move>0</move></on_error>", "<move>x</move></on_error>"),
            lambda t: t.replace("<id>1</id>", "<id>0</id>"),
            lambda t: t.replace("<on_error>", "<on_fail>").replace("</on_error>", "</on_fail>"),
        ],
        ids=["unclosed", "wrong-root", "no-entry", "bad-bounds", "bad-move", "zero-id", "no-on-error"],
    )
    def test_malformed_documents(self, mutate) -> None:
        with pytest.raises(DocumentParseError):
            codec.loads(mutate(MINIMAL))

    def test_duplicate_ids(self) -> None:
        start = MINIMAL.index("<question>")
        end = MINIMAL.index("</question>") + len("</question>")
        question = MINIMAL[start:end]
        text = MINIMAL.replace(question, question + question)
        with pytest.raises(DocumentParseError, match="Duplicate"):
            codec.loads(text)

    def test_missing_optional_tags_default(self) -> None:
        text = MINIMAL.replace("<type>text:any</type>", "").replace("<action>nop</action>", "", 1)
        node = codec.loads(text).get_node(1)
        assert node.validation_type == "nop"
        assert node.on_success.action == "nop"


# ---------------------------------------------------------------------------
# write errors
# ---------------------------------------------------------------------------

class TestWriteErrors:
    def test_failed_save_keeps_modified(self, graph: FlowGraph, tmp_path: Path) -> None:
        target = tmp_path / "missing-dir" / "bot.ria"
        with pytest.raises(DocumentWriteError):
            codec.save(graph, target)
        assert graph.modified
        assert not target.exists()

    def test_failed_save_leaves_existing_file(self, graph: FlowGraph, tmp_path: Path, monkeypatch) -> None:
        path = tmp_path / "bot.ria"
        codec.save(graph, path)
        original = path.read_text(encoding="utf-8")
        graph.create_node(9, 9)

        def _fail(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr("chatflow.flow.codec.os.replace", _fail)
        with pytest.raises(DocumentWriteError):
            codec.save(graph, path)
        assert path.read_text(encoding="utf-8") == original
        assert list(tmp_path.iterdir()) == [path]
        assert graph.modified

    @pytest.mark.parametrize("text", ["bell\x07", "nul\x00", "esc\x1b[0m"])
    def test_unstorable_character_refused(self, graph: FlowGraph, tmp_path: Path, text: str) -> None:
        data = graph.get_node(2).copy()
        data.message = text
        graph.edit_node(2, data)
        path = tmp_path / "bot.ria"
        with pytest.raises(DocumentWriteError, match="Question 2"):
            codec.save(graph, path)
        assert not path.exists()
        assert list(tmp_path.iterdir()) == []
        assert graph.modified

    def test_unstorable_character_in_info_refused(self, graph: FlowGraph) -> None:
        graph.set_info(guidelines="stop\x0c")
        with pytest.raises(DocumentWriteError, match="guidelines"):
            codec.dumps(graph)


# ---------------------------------------------------------------------------
# clipboard fragments
# ---------------------------------------------------------------------------

class TestQuestionFragments:
    def test_fragment_round_trip(self, graph: FlowGraph) -> None:
        node = graph.get_node(1)
        assert codec.question_from_xml(codec.question_to_xml(node)) == node

    def test_fragment_wrong_tag(self) -> None:
        with pytest.raises(DocumentParseError):
            codec.question_from_xml("<route/>")

    def test_fragment_malformed(self) -> None:
        with pytest.raises(DocumentParseError):
            codec.question_from_xml("not xml")
