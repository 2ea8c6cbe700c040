"""Plain data types for branches and commit identities."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Optional, Union

# "Jane Doe <jane@example.com> 1700000000 +0130"
_IDENTITY_PATTERN = re.compile(r"^(.*?) <(.*?)> (\d+) (\+|-)?(\d{2})(\d{2})")

# "origin/feature/x" -> ("origin", "feature/x")
_REMOTE_PREFIX_PATTERN = re.compile(r"^(.*?)/(.*)$")


@dataclass(frozen=True)
class Repository:
    """Handle to a repository on disk. The path is not validated."""

    path: Union[str, Path]

    def __post_init__(self) -> None:
        object.__setattr__(self, "path", Path(self.path))


@dataclass(frozen=True)
class CommitIdentity:
    """Author or committer of a commit."""

    name: str
    email: str
    date: datetime
    tz_offset: int  # minutes east of UTC

    @classmethod
    def parse(cls, identity: str) -> Optional["CommitIdentity"]:
        """Parse git's raw identity format.

        Returns None if the string doesn't look like
        ``Name <email> <epoch seconds> <+/-hhmm>``.
        """
        match = _IDENTITY_PATTERN.match(identity)
        if not match:
            return None

        name, email, seconds, sign, hours, minutes = match.groups()
        try:
            date = datetime.fromtimestamp(int(seconds), tz=timezone.utc)
        except (OverflowError, ValueError, OSError):
            # Outside what the platform can represent
            return None
        offset = int(hours) * 60 + int(minutes)
        if sign == "-":
            offset = -offset

        return cls(name=name, email=email, date=date, tz_offset=offset)

    def __str__(self) -> str:
        return f"{self.name} <{self.email}>"


class BranchType(str, Enum):
    """Where a branch lives."""

    LOCAL = "local"
    REMOTE = "remote"


def _remote_prefix(name: Optional[str]) -> Optional[str]:
    if not name:
        return None
    match = _REMOTE_PREFIX_PATTERN.match(name)
    return match.group(1) if match else None


def _remove_remote_prefix(name: str) -> str:
    match = _REMOTE_PREFIX_PATTERN.match(name)
    return match.group(2) if match else name


@dataclass(frozen=True, eq=False)
class Branch:
    """A local or remote-tracking branch.

    Equality is identity: two listings of the same repository produce
    distinct objects.
    """

    name: str
    upstream_name: Optional[str]
    tip_sha: str
    tip_author: CommitIdentity
    kind: BranchType
    ref: str = ""

    @property
    def upstream_remote_name(self) -> Optional[str]:
        """Remote of the upstream, e.g. ``origin`` for ``origin/main``."""
        return _remote_prefix(self.upstream_name)

    @property
    def upstream_without_remote(self) -> Optional[str]:
        if self.upstream_name is None:
            return None
        return _remove_remote_prefix(self.upstream_name)

    @property
    def remote_name(self) -> Optional[str]:
        """Remote this branch belongs to; None for local branches."""
        if self.kind is BranchType.LOCAL:
            return None
        return _remote_prefix(self.name)

    @property
    def name_without_remote(self) -> str:
        if self.kind is BranchType.LOCAL:
            return self.name
        return _remove_remote_prefix(self.name)
