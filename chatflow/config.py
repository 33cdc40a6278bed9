"""Centralised settings for Chatflow Studio.

All runtime configuration is resolved here in one place.  Values can be
overridden via environment variables or a `.env` file in the project root
(loaded automatically when this module is imported).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load .env from the project root (two levels up from this file)
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_env_path, override=False)


@dataclass
class Settings:
    # ------------------------------------------------------------------
    # Workspace / storage
    # ------------------------------------------------------------------
    workspace_dir: Path = field(
        default_factory=lambda: Path(
            os.environ.get("CHATFLOW_WORKSPACE", Path.home() / ".chatflow")
        )
    )
    document_suffix: str = field(
        default_factory=lambda: os.environ.get("CHATFLOW_DOCUMENT_SUFFIX", ".ria")
    )

    # CLI context file and editor drafts
    cli_config_dir: Path = field(
        default_factory=lambda: Path(
            os.environ.get("CHATFLOW_CLI_DIR", Path.home() / ".chatflow_cli")
        )
    )

    # ------------------------------------------------------------------
    # New documents
    # ------------------------------------------------------------------
    default_locale: str = field(
        default_factory=lambda: os.environ.get("CHATFLOW_DEFAULT_LOCALE", "en")
    )

    # ------------------------------------------------------------------
    # Logging
    # ------------------------------------------------------------------
    log_level: str = field(
        default_factory=lambda: os.environ.get("CHATFLOW_LOG_LEVEL", "INFO").upper()
    )
    log_file: Optional[Path] = field(
        default_factory=lambda: (
            Path(os.environ["CHATFLOW_LOG_FILE"])
            if os.environ.get("CHATFLOW_LOG_FILE")
            else None
        )
    )

    # ------------------------------------------------------------------
    # HTTP editing service
    # ------------------------------------------------------------------
    api_host: str = field(
        default_factory=lambda: os.environ.get("CHATFLOW_API_HOST", "127.0.0.1")
    )
    api_port: int = field(
        default_factory=lambda: int(os.environ.get("CHATFLOW_API_PORT", "8765"))
    )

    def ensure_workspace(self) -> None:
        """Create the workspace directory if it does not exist."""
        self.workspace_dir.mkdir(parents=True, exist_ok=True)

    def document_path(self, name: str) -> Path:
        """Resolve *name* to a document path inside the workspace.

        Absolute paths and paths with a directory part are returned as-is;
        the document suffix is appended when missing.
        """
        path = Path(name)
        if not path.suffix:
            path = path.with_suffix(self.document_suffix)
        if path.is_absolute() or path.parent != Path("."):
            return path
        return self.workspace_dir / path


# Module-level singleton, import this everywhere:
#   from chatflow.config import settings
settings = Settings()
