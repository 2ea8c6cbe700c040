"""branchwatch: branch listing and upstream divergence from git's ref store."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("branchwatch")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"  # Fallback for editable installs without metadata

from .exceptions import BranchwatchError, BranchListingError  # noqa: F401
from .for_each_ref import list_branches, branches_diverging_from_upstream  # noqa: F401
from .git_core import GitErrorKind, GitResult, git  # noqa: F401
from .models import Branch, BranchType, CommitIdentity, Repository  # noqa: F401

__all__ = [
    "Branch",
    "BranchType",
    "BranchListingError",
    "BranchwatchError",
    "CommitIdentity",
    "GitErrorKind",
    "GitResult",
    "Repository",
    "branches_diverging_from_upstream",
    "git",
    "list_branches",
    "__version__",
]
