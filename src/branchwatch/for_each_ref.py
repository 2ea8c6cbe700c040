"""Branch listing and upstream divergence from ``git for-each-ref``.

Two independent requests are made against the ref store, each with its own
format string and record shape:

- the branch listing asks for identities, which may contain newlines, so
  records are terminated by a unit separator (0x1F) rather than a newline;
- the upstream comparison asks only for names and SHAs, so plain newlines
  delimit records.

Fields are separated by NUL in both.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, NamedTuple, Sequence, Set

from .exceptions import BranchListingError
from .git_core import GitErrorKind, git
from .models import Branch, BranchType, CommitIdentity, Repository
from .observability import log_debug

FIELD_SEPARATOR = "\0"
RECORD_SENTINEL_HEX = "1F"
RECORD_SENTINEL = chr(int(RECORD_SENTINEL_HEX, 16))

LOCAL_PREFIX = "refs/heads"
REMOTE_PREFIX = "refs/remotes"
DEFAULT_PREFIXES = (LOCAL_PREFIX, REMOTE_PREFIX)

EXPECTED_ERRORS = frozenset({GitErrorKind.NOT_A_GIT_REPOSITORY})


# ---------------------------------------------------------------------------
# Tokenizer
# ---------------------------------------------------------------------------


def split_records(output: str, separator: str) -> List[str]:
    """Split output into records, dropping the trailing segment.

    git terminates every record, so whatever follows the last separator is
    never a record.
    """
    records = output.split(separator)
    records.pop()
    return records


def split_fields(record: str, count: int) -> List[str]:
    """Split one record into its first ``count`` NUL-separated fields."""
    pieces = record.split(FIELD_SEPARATOR)
    if len(pieces) < count:
        raise BranchListingError(
            f"Malformed for-each-ref record: expected {count} fields, got {len(pieces)}"
        )
    return pieces[:count]


def _is_local_ref(ref: str) -> bool:
    return ref.startswith(LOCAL_PREFIX)


# ---------------------------------------------------------------------------
# Branch listing
# ---------------------------------------------------------------------------


class BranchListingRecord(NamedTuple):
    ref: str
    name: str
    upstream: str
    sha: str
    short_sha: str
    author: str
    committer: str
    symref: str


BRANCH_LISTING_FIELDS = (
    "%(refname)",
    "%(refname:short)",
    "%(upstream:short)",
    "%(objectname)",
    "%(objectname:short)",
    "%(author)",
    "%(committer)",
    "%(symref)",
)


def branch_listing_format() -> str:
    # The trailing sentinel marks end-of-record since identities may contain newlines
    return "%00".join([*BRANCH_LISTING_FIELDS, f"%{RECORD_SENTINEL_HEX}"])


def parse_branch_listing(output: str) -> List[Branch]:
    """Turn branch listing output into branches, skipping symbolic refs.

    Raises:
        BranchListingError: If a record is malformed or an identity can't be parsed
    """
    branches: List[Branch] = []

    for index, line in enumerate(split_records(output, RECORD_SENTINEL)):
        # git writes a newline after each sentinel; it leads every record but the first
        if index > 0:
            line = line[1:]
        record = BranchListingRecord._make(split_fields(line, len(BRANCH_LISTING_FIELDS)))

        author = CommitIdentity.parse(record.author)
        if author is None:
            raise BranchListingError(
                f"Couldn't parse author identity for '{record.short_sha}'"
            )

        if CommitIdentity.parse(record.committer) is None:
            raise BranchListingError(
                f"Couldn't parse committer identity for '{record.short_sha}'"
            )

        if record.symref:
            continue

        branches.append(
            Branch(
                name=record.name,
                upstream_name=record.upstream or None,
                tip_sha=record.sha,
                tip_author=author,
                kind=BranchType.LOCAL if _is_local_ref(record.ref) else BranchType.REMOTE,
                ref=record.ref,
            )
        )

    return branches


async def list_branches(repository: Repository, *prefixes: str) -> List[Branch]:
    """List branches under the given ref prefixes.

    Defaults to local and remote-tracking branches. Symbolic refs such as
    ``refs/remotes/origin/HEAD`` are left out. Returns an empty list if the
    repository doesn't exist.

    Raises:
        BranchListingError: If git's output can't be parsed
        GitCommandError: If git fails for any other reason
    """
    if not prefixes:
        prefixes = DEFAULT_PREFIXES

    result = await git(
        ["for-each-ref", f"--format={branch_listing_format()}", *prefixes],
        repository.path,
        "list_branches",
        expected_errors=EXPECTED_ERRORS,
    )

    if result.git_error is GitErrorKind.NOT_A_GIT_REPOSITORY:
        return []

    branches = parse_branch_listing(result.stdout)
    log_debug("Listed branches", path=str(repository.path), count=len(branches))
    return branches


# ---------------------------------------------------------------------------
# Upstream divergence
# ---------------------------------------------------------------------------


class UpstreamComparisonRecord(NamedTuple):
    ref: str
    name: str
    sha: str
    upstream: str
    symref: str
    head: str


UPSTREAM_COMPARISON_FIELDS = (
    "%(refname)",
    "%(refname:short)",
    "%(objectname)",
    "%(upstream)",
    "%(symref)",
    "%(HEAD)",
)


def upstream_comparison_format() -> str:
    return "%00".join(UPSTREAM_COMPARISON_FIELDS)


@dataclass
class LocalBranchCandidate:
    name: str
    ref: str
    sha: str
    upstream: str


def find_diverging_names(output: str) -> Set[str]:
    """Names of local branches whose tip differs from their upstream's.

    Local and remote refs come back interleaved, so every remote SHA is
    indexed before any local branch is compared.
    """
    candidates: List[LocalBranchCandidate] = []
    remote_shas: Dict[str, str] = {}

    for line in split_records(output, "\n"):
        record = UpstreamComparisonRecord._make(
            split_fields(line, len(UPSTREAM_COMPARISON_FIELDS))
        )

        # Symbolic refs and the checked out branch are never candidates
        if record.symref or record.head == "*":
            continue

        if _is_local_ref(record.ref):
            if not record.upstream:
                continue
            candidates.append(
                LocalBranchCandidate(
                    name=record.name,
                    ref=record.ref,
                    sha=record.sha,
                    upstream=record.upstream,
                )
            )
        else:
            remote_shas[record.ref] = record.sha

    diverging: Set[str] = set()
    for candidate in candidates:
        remote_sha = remote_shas.get(candidate.upstream)
        # An upstream that no longer exists is not divergence
        if remote_sha is not None and remote_sha != candidate.sha:
            diverging.add(candidate.name)

    return diverging


async def branches_diverging_from_upstream(
    repository: Repository,
    known_branches: Sequence[Branch],
) -> List[Branch]:
    """Local branches that are ahead of, behind, or diverged from their upstream.

    The current branch is excluded. Useful to narrow down which branches could
    be fast-forwarded.

    Args:
        repository: Repository to inspect
        known_branches: All known branches, usually from :func:`list_branches`

    Returns:
        The matching objects from ``known_branches``, in their original order
    """
    result = await git(
        ["for-each-ref", f"--format={upstream_comparison_format()}", *DEFAULT_PREFIXES],
        repository.path,
        "branches_diverging_from_upstream",
        expected_errors=EXPECTED_ERRORS,
    )

    if result.git_error is GitErrorKind.NOT_A_GIT_REPOSITORY:
        return []

    names = find_diverging_names(result.stdout)
    log_debug(
        "Found branches differing from upstream",
        path=str(repository.path),
        names=sorted(names),
    )
    if not names:
        return []

    return [
        branch
        for branch in known_branches
        if branch.kind is BranchType.LOCAL and branch.name in names
    ]
