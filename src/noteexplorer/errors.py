"""Error types and codes for noteexplorer.

Every error the package raises on purpose derives from NoteExplorerError and
carries an ErrorCode, so the CLI can print either a human message or a
structured JSON error (--json-errors).

Read-only analysis never raises for a single bad file: FileReadError is
caught by the loader, recorded as a FileFailure and the file is skipped.
Configuration errors are fatal and surface before any file is touched.
"""

from __future__ import annotations

import json
from enum import Enum
from pathlib import Path
from typing import Any


class ErrorCode(str, Enum):
    """Stable error codes for programmatic consumers."""

    INVALID_HEADING = "INVALID_HEADING"
    INVALID_ID_PATTERN = "INVALID_ID_PATTERN"
    INVALID_CONFIG = "INVALID_CONFIG"
    ROOT_NOT_FOUND = "ROOT_NOT_FOUND"
    FILE_READ_ERROR = "FILE_READ_ERROR"
    FILE_WRITE_ERROR = "FILE_WRITE_ERROR"
    FILENAME_COLLISION = "FILENAME_COLLISION"
    INTERNAL_ERROR = "INTERNAL_ERROR"


def format_error_json(code: str, message: str, details: dict | None = None) -> str:
    """Format an error as JSON for --json-errors output."""
    error: dict[str, dict[str, object]] = {"error": {"code": code, "message": message}}
    if details:
        error["error"]["details"] = details
    return json.dumps(error)


class NoteExplorerError(Exception):
    """Base class for all noteexplorer errors."""

    code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_json(self) -> str:
        return format_error_json(self.code.value, self.message, self.details)


class ConfigurationError(NoteExplorerError):
    """Raised when settings are missing or unusable."""

    code = ErrorCode.INVALID_CONFIG


class InvalidHeadingConfiguration(ConfigurationError):
    """The backlinks heading is empty or could never be recognized."""

    code = ErrorCode.INVALID_HEADING


class InvalidIdPattern(ConfigurationError):
    """The ID format is not a usable regular expression."""

    code = ErrorCode.INVALID_ID_PATTERN


class RootNotFoundError(ConfigurationError):
    """The notes root does not exist or is not a directory."""

    code = ErrorCode.ROOT_NOT_FOUND


class FileReadError(NoteExplorerError):
    """A note file could not be read or is not valid UTF-8."""

    code = ErrorCode.FILE_READ_ERROR

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Couldn't read file {path}: {reason}", {"path": str(path)})


class FileWriteError(NoteExplorerError):
    """A note file could not be written or renamed."""

    code = ErrorCode.FILE_WRITE_ERROR

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Couldn't write file {path}: {reason}", {"path": str(path)})


class FilenameCollisionError(NoteExplorerError):
    """A rename target already exists or is claimed by another rename."""

    code = ErrorCode.FILENAME_COLLISION

    def __init__(self, source: Path, target: Path, reason: str) -> None:
        self.source = source
        self.target = target
        self.reason = reason
        super().__init__(
            f"Cannot rename {source.name} to {target.name}: {reason}",
            {"source": str(source), "target": str(target)},
        )
