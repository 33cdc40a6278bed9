"""FastAPI HTTP layer package.

Public re-export so callers can write::

    from chatflow.api import app

    uvicorn chatflow.api:app --reload
"""

from chatflow.api.app import app

__all__ = ["app"]
