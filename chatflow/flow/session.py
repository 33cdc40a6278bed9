"""One open flow document: its graph, its path and its clipboard.

A session is the explicit owner of a :class:`FlowGraph`; editing surfaces
hold a reference to the session instead of looking a document up through
globals.  Document I/O can run in a worker thread (``load_async`` /
``save_async``); while it is in flight the graph refuses structural edits.
"""

from __future__ import annotations

import asyncio
import uuid
from pathlib import Path
from typing import Optional, Sequence

from chatflow.flow import codec
from chatflow.flow.errors import DocumentParseError
from chatflow.flow.graph import FlowGraph
from chatflow.flow.models import Node


class FlowSession:
    def __init__(
        self,
        graph: Optional[FlowGraph] = None,
        path: Optional[Path] = None,
        session_id: Optional[str] = None,
    ) -> None:
        self.id = session_id or str(uuid.uuid4())
        self.graph = graph if graph is not None else FlowGraph()
        self.path = Path(path) if path is not None else None
        self.clipboard: Optional[str] = None

    @classmethod
    def open(cls, path: Path | str) -> FlowSession:
        """Load *path* into a new session."""
        path = Path(path)
        return cls(graph=codec.load(path), path=path)

    @property
    def title(self) -> str:
        return self.path.name if self.path else "untitled"

    @property
    def modified(self) -> bool:
        return self.graph.modified

    @property
    def busy(self) -> bool:
        """True while a load or save holds the graph."""
        return self.graph.busy

    # ------------------------------------------------------------------
    # Document I/O
    # ------------------------------------------------------------------
    def save(self, path: Optional[Path | str] = None) -> Path:
        """Save to *path* (or the session's current path).

        Raises:
            ValueError: If the session has no path and none is given.
            DocumentWriteError: On I/O failure; nothing about the session
                changes, so the caller can retry.
        """
        target = self._target(path)
        with self.graph.exclusive():
            codec.save(self.graph, target)
        self.path = target
        return target

    def reload(self, path: Optional[Path | str] = None) -> None:
        """Replace the graph with the document at *path*, all-or-nothing."""
        target = self._target(path)
        with self.graph.exclusive():
            graph = codec.load(target)
        self.graph = graph
        self.path = target

    async def save_async(self, path: Optional[Path | str] = None) -> Path:
        """Like :meth:`save`, with the write running in a worker thread."""
        target = self._target(path)
        with self.graph.exclusive():
            await asyncio.to_thread(codec.save, self.graph, target)
        self.path = target
        return target

    async def load_async(self, path: Optional[Path | str] = None) -> None:
        """Like :meth:`reload`, with the read running in a worker thread."""
        target = self._target(path)
        with self.graph.exclusive():
            graph = await asyncio.to_thread(codec.load, target)
        self.graph = graph
        self.path = target

    # ------------------------------------------------------------------
    # Clipboard
    # ------------------------------------------------------------------
    def copy(self, node_id: int) -> str:
        """Put a question fragment for *node_id* on the clipboard."""
        self.clipboard = codec.question_to_xml(self.graph.get_node(node_id))
        return self.clipboard

    def cut(self, node_id: int) -> str:
        """Copy *node_id* to the clipboard and delete it (recorded as a cut)."""
        self.copy(node_id)
        self.graph.cut_node(node_id)
        return self.clipboard

    def paste(self, at: Sequence[int], fragment: Optional[str] = None) -> Node:
        """Insert the clipboard fragment (or *fragment*) as a new node at *at*.

        Raises:
            DocumentParseError: If there is nothing to paste or the fragment
                is not a question.
        """
        text = fragment if fragment is not None else self.clipboard
        if not text:
            raise DocumentParseError("Clipboard does not hold a question")
        return self.graph.duplicate_into(codec.question_from_xml(text), at)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _target(self, path: Optional[Path | str]) -> Path:
        if path is not None:
            return Path(path)
        if self.path is None:
            raise ValueError("Document has no path yet; a path is required")
        return self.path

