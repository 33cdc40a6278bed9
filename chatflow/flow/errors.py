"""Typed failures raised by the flow graph, codec and editing session."""


class FlowError(Exception):
    """
    Base exception for all flow errors
    """


class InvalidReference(FlowError, LookupError):
    """
    An operation referenced a node id that is not in the graph
    """
    def __init__(self, node_id: int, message: str = ""):
        self.node_id = node_id
        super().__init__(message or f"Node not found: {node_id!r}")


class ConditionError(FlowError, ValueError):
    """
    A validation condition payload does not match its validation type
    """


class DocumentParseError(FlowError, ValueError):
    """
    A flow document is malformed or misses a required tag
    """


class DocumentWriteError(FlowError, OSError):
    """
    A flow document could not be written
    """


class DocumentBusyError(FlowError, RuntimeError):
    """
    An edit was attempted while a load or save holds the graph
    """
