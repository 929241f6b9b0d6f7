"""Configuration management for noteexplorer.

This module contains the configurable defaults and the settings object that
every operation receives. Settings are consumed verbatim: the extension, the
ID pattern and the backlinks heading are never rewritten, only validated.

Precedence (lowest first):
1. Defaults below
2. A `.noteexplorer` YAML file in the notes root
3. CLI options / NOTEEXPLORER_* environment variables

Example .noteexplorer file:
    extension: md
    id_pattern: '\\d{14}'
    backlinks_heading: '## Links to this note'
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigurationError, InvalidHeadingConfiguration, InvalidIdPattern

log = logging.getLogger(__name__)

# Settings file looked up in the notes root
SETTINGS_FILENAME = ".noteexplorer"


# =============================================================================
# Defaults
# =============================================================================

# File extension of note files, without the leading dot
DEFAULT_EXTENSION = "md"

# Zettelkasten-style timestamp IDs, e.g. 20210119212027
DEFAULT_ID_PATTERN = r"\d{14}"

# Heading line that starts the generated backlinks section
DEFAULT_BACKLINKS_HEADING = "## Links to this note"


# =============================================================================
# Validation
# =============================================================================

# A heading the block scanner would read as something other than body text
_INDENTED_HEADING_RE = re.compile(r"^(?:\t| {4})")
_FENCE_HEADING_RE = re.compile(r"^ {0,3}(?:`{3}|~{3})")


def validate_backlinks_heading(heading: str) -> str:
    """Check that the heading can be recognized in body text.

    Returns:
        The heading with trailing whitespace removed.

    Raises:
        InvalidHeadingConfiguration: If the heading is empty, spans several
            lines, or would be read as code or an HTML comment.
    """
    if heading is None or not heading.strip():
        raise InvalidHeadingConfiguration("Backlinks heading must not be empty")

    if "\n" in heading or "\r" in heading:
        raise InvalidHeadingConfiguration(
            "Backlinks heading must be a single line", {"heading": heading}
        )

    if _INDENTED_HEADING_RE.match(heading):
        raise InvalidHeadingConfiguration(
            "Backlinks heading must not be indented like a code block", {"heading": heading}
        )

    if _FENCE_HEADING_RE.match(heading) or "<!--" in heading:
        raise InvalidHeadingConfiguration(
            "Backlinks heading must not start a code fence or an HTML comment",
            {"heading": heading},
        )

    return heading.rstrip()


# An ID stands alone: at line start or after whitespace, not followed by a word character
ID_SEARCH_TEMPLATE = r"(?<![^\s\ufeff])(?P<id>(?:{pattern}))(?!\w)"


def compile_id_pattern(pattern: str) -> tuple[re.Pattern[str], re.Pattern[str]]:
    """Compile the ID pattern, rejecting patterns that cannot identify notes.

    Returns:
        (exact, search): `exact` is the pattern itself (use fullmatch to test
        a link target), `search` finds a standalone ID inside text and
        exposes it as the "id" group.

    Raises:
        InvalidIdPattern: If the pattern does not compile or matches "".
    """
    if not pattern:
        raise InvalidIdPattern("ID format must not be empty")

    try:
        exact = re.compile(pattern)
        search = re.compile(ID_SEARCH_TEMPLATE.format(pattern=pattern))
    except re.error as e:
        raise InvalidIdPattern(
            f"Cannot parse ID format as regular expression: {e}", {"pattern": pattern}
        ) from e

    if exact.fullmatch(""):
        raise InvalidIdPattern("ID format must not match an empty string", {"pattern": pattern})

    return exact, search


# =============================================================================
# Settings
# =============================================================================


@dataclass(frozen=True)
class ExplorerSettings:
    """Settings shared by every noteexplorer operation."""

    extension: str = DEFAULT_EXTENSION
    """File extension of note files (no leading dot)."""

    id_pattern: str = DEFAULT_ID_PATTERN
    """Regular expression for note IDs."""

    backlinks_heading: str = DEFAULT_BACKLINKS_HEADING
    """Heading line that starts the generated backlinks section."""

    source_file: Path | None = field(default=None, compare=False)
    """Path to the settings file that was loaded, if any."""

    @classmethod
    def from_dict(cls, data: dict[str, Any], source_file: Path | None = None) -> "ExplorerSettings":
        """Create settings from a parsed YAML dict, keeping defaults for missing keys."""
        defaults = cls()
        return cls(
            extension=str(data.get("extension", defaults.extension)),
            id_pattern=str(data.get("id_pattern", defaults.id_pattern)),
            backlinks_heading=str(data.get("backlinks_heading", defaults.backlinks_heading)),
            source_file=source_file,
        )

    @property
    def suffix(self) -> str:
        """The extension as a path suffix, e.g. '.md'."""
        return "." + self.extension.lstrip(".")

    def with_overrides(
        self,
        *,
        extension: str | None = None,
        id_pattern: str | None = None,
        backlinks_heading: str | None = None,
    ) -> "ExplorerSettings":
        """Return a copy with the given (non-None) values replaced."""
        changes: dict[str, str] = {}
        if extension is not None:
            changes["extension"] = extension
        if id_pattern is not None:
            changes["id_pattern"] = id_pattern
        if backlinks_heading is not None:
            changes["backlinks_heading"] = backlinks_heading
        return replace(self, **changes)

    def validate(self) -> None:
        """Fail fast on unusable settings.

        Raises:
            ConfigurationError: (or a subclass) describing the first problem found.
        """
        extension = self.extension.lstrip(".")
        if not extension or "/" in extension or "\\" in extension:
            raise ConfigurationError(
                "File extension must be a plain suffix like 'md'", {"extension": self.extension}
            )
        compile_id_pattern(self.id_pattern)
        validate_backlinks_heading(self.backlinks_heading)


def load_settings(root: Path) -> ExplorerSettings:
    """Load settings from `<root>/.noteexplorer`, falling back to defaults.

    An unreadable or malformed settings file is logged and ignored.

    Args:
        root: Notes root directory.

    Returns:
        ExplorerSettings (defaults when no usable file exists).
    """
    config_file = root / SETTINGS_FILENAME

    if not config_file.is_file():
        return ExplorerSettings()

    try:
        content = config_file.read_text(encoding="utf-8")
        data = yaml.safe_load(content)
    except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
        log.warning("Ignoring settings file %s: %s", config_file, e)
        return ExplorerSettings()

    # Handle empty file or all-comments file
    if data is None:
        return ExplorerSettings(source_file=config_file)

    if not isinstance(data, dict):
        log.warning("Ignoring settings file %s: expected a mapping", config_file)
        return ExplorerSettings()

    return ExplorerSettings.from_dict(data, source_file=config_file)
