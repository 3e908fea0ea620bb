"""Release tag naming and resolution.

A release tag is generated from a UTC timestamp using a fixed-width strftime
format, so ordering tags as strings orders them by creation time.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from gitdeploy.core.exceptions import ConfigError, RemoteCommandFailure, TagResolutionFailure
from gitdeploy.core.logging import StructuredLogger

if TYPE_CHECKING:
    from gitdeploy.release.git import GitRepository

logger = StructuredLogger(__name__)

DEFAULT_TAG_FORMAT = "%Y%m%d%H%M%S"

# strftime directives that always render to the same number of digits
_FIXED_WIDTH_DIRECTIVES = {
    "Y": 4,
    "y": 2,
    "m": 2,
    "d": 2,
    "H": 2,
    "M": 2,
    "S": 2,
    "j": 3,
    "f": 6,
}

# time units each directive covers, 0 = year ... 6 = microsecond
_UNITS = {
    "Y": (0,),
    "y": (0,),
    "m": (1,),
    "d": (2,),
    "j": (1, 2),
    "H": (3,),
    "M": (4,),
    "S": (5,),
    "f": (6,),
}


def release_tag_pattern(tag_format: str = DEFAULT_TAG_FORMAT) -> re.Pattern[str]:
    """Build a regex matching tags generated from a strftime format.

    The directives must run from the year down without skipping a unit
    (``%Y%m%d%H%M``, ``%Y%j%H``), so that string order is creation order.

    Args:
        tag_format: strftime format used to generate release tags

    Returns:
        Compiled pattern anchored at both ends

    Raises:
        ConfigError: If the format is empty, uses a directive whose
            rendered width varies, or does not sort chronologically
    """
    if not tag_format:
        raise ConfigError("Release tag format must not be empty")

    parts: list[str] = []
    directives: list[str] = []
    i = 0
    while i < len(tag_format):
        char = tag_format[i]
        if char != "%":
            parts.append(re.escape(char))
            i += 1
            continue

        if i + 1 >= len(tag_format):
            raise ConfigError(f"Release tag format ends with a bare '%': {tag_format!r}")
        directive = tag_format[i + 1]
        if directive == "%":
            parts.append("%")
        elif directive in _FIXED_WIDTH_DIRECTIVES:
            parts.append(rf"\d{{{_FIXED_WIDTH_DIRECTIVES[directive]}}}")
            directives.append(directive)
        else:
            raise ConfigError(
                f"Release tag format directive '%{directive}' is not fixed-width; "
                f"use only %{', %'.join(_FIXED_WIDTH_DIRECTIVES)}"
            )
        i += 2

    if not directives:
        raise ConfigError(f"Release tag format contains no timestamp directive: {tag_format!r}")

    units = [unit for d in directives for unit in _UNITS[d]]
    if units != list(range(len(units))):
        raise ConfigError(
            f"Release tag format {tag_format!r} does not sort chronologically; "
            "list the fields from the year down without gaps, e.g. %Y%m%d%H%M%S"
        )

    return re.compile("^" + "".join(parts) + "$")


def generate_release_tag(
    now: datetime | None = None,
    tag_format: str = DEFAULT_TAG_FORMAT,
) -> str:
    """Generate a release tag for a point in time (UTC)."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).strftime(tag_format)


def is_release_tag(tag: str, tag_format: str = DEFAULT_TAG_FORMAT) -> bool:
    """Check whether a tag follows the release tag naming convention."""
    return bool(release_tag_pattern(tag_format).match(tag))


def latest_of(tags: list[str], exclude: str | None = None) -> str | None:
    """Return the greatest tag, ignoring ``exclude``."""
    candidates = [t for t in tags if t != exclude]
    return max(candidates) if candidates else None


class TagResolver:
    """Resolves release tags in a host's repository."""

    def __init__(self, repository: "GitRepository", tag_format: str = DEFAULT_TAG_FORMAT):
        """Initialize the resolver.

        Args:
            repository: Repository on the target host
            tag_format: strftime format release tags are generated with
        """
        self._repository = repository
        self._pattern = release_tag_pattern(tag_format)

    def list_tags(self) -> list[str]:
        """List release tags, oldest first.

        Tags not matching the naming convention are ignored.

        Returns:
            Sorted list of release tags

        Raises:
            TagResolutionFailure: If the tags cannot be listed
        """
        try:
            raw_tags = self._repository.list_tags()
        except TagResolutionFailure:
            raise
        except RemoteCommandFailure as e:
            raise TagResolutionFailure(
                f"Failed to list release tags: {e.message}",
                command=e.command,
                host=e.host,
                exit_status=e.exit_status,
                stdout=e.stdout,
                stderr=e.stderr,
            ) from e

        tags = sorted({t for t in raw_tags if self._pattern.match(t)})
        ignored = len(set(raw_tags)) - len(tags)
        if ignored:
            logger.debug("Ignored non-release tags", count=ignored)
        return tags

    def latest(self, exclude: str | None = None) -> str | None:
        """Return the most recent release tag.

        Args:
            exclude: Tag to leave out of consideration

        Returns:
            Latest tag, or None if there is none
        """
        return latest_of(self.list_tags(), exclude=exclude)

    def previous(self, current: str) -> str | None:
        """Return the most recent release tag other than ``current``."""
        return self.latest(exclude=current)
