"""Run git commands and classify their failures.

All git invocations go through :func:`git`. It returns the raw, unstripped
stdout so callers can rely on trailing separators, and either raises
GitPython's ``GitCommandError`` or, for failures the caller said it expects,
returns a result carrying the classified :class:`GitErrorKind`.
"""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import AbstractSet, Dict, List, Optional, Sequence, Tuple, Union

from git import Git
from git.exc import GitCommandError

from .config_loader import get_config
from .observability import log_debug, timeit


class GitErrorKind(str, Enum):
    """Git failures recognised from stderr."""

    NOT_A_GIT_REPOSITORY = "not_a_git_repository"
    BAD_REVISION = "bad_revision"
    INVALID_OBJECT_NAME = "invalid_object_name"
    PATH_DOES_NOT_EXIST = "path_does_not_exist"
    REMOTE_DISCONNECTION = "remote_disconnection"
    LOCK_FILE_ALREADY_EXISTS = "lock_file_already_exists"

    @classmethod
    def classify(cls, stderr: str) -> Optional["GitErrorKind"]:
        """Return the first kind whose pattern matches stderr, if any."""
        for kind, pattern in _ERROR_PATTERNS:
            if pattern.search(stderr):
                return kind
        return None


# Order matters: first match wins
_ERROR_PATTERNS: List[Tuple[GitErrorKind, re.Pattern[str]]] = [
    (GitErrorKind.NOT_A_GIT_REPOSITORY, re.compile(r"fatal: [Nn]ot a git repository")),
    (GitErrorKind.BAD_REVISION, re.compile(r"fatal: bad revision '(.*)'")),
    (GitErrorKind.INVALID_OBJECT_NAME, re.compile(r"fatal: [Ii]nvalid object name '(.+)'")),
    (GitErrorKind.PATH_DOES_NOT_EXIST, re.compile(r"fatal: path '(.+)' does not exist")),
    (GitErrorKind.REMOTE_DISCONNECTION, re.compile(r"fatal: [Tt]he remote end hung up unexpectedly")),
    (GitErrorKind.LOCK_FILE_ALREADY_EXISTS, re.compile(r"Unable to create '(.+)\.lock': File exists")),
]


@dataclass(frozen=True)
class GitResult:
    """Buffered output of one git invocation."""

    stdout: str
    stderr: str
    exit_code: int
    git_error: Optional[GitErrorKind] = None


def _build_command(args: Sequence[str], executable: str) -> List[str]:
    return [executable or Git.GIT_PYTHON_GIT_EXECUTABLE or "git", *args]


def _execute(command: List[str], path: Path, env: Dict[str, str]) -> Tuple[int, str, str]:
    if not path.is_dir():
        return 128, "", f"fatal: not a git repository: '{path}' does not exist"

    status, stdout, stderr = Git(str(path)).execute(
        command,
        with_extended_output=True,
        with_exceptions=False,
        strip_newline_in_stdout=False,
        env=env,
    )
    return status, stdout, stderr


def _run(args: Sequence[str], path: Path) -> Tuple[List[str], int, str, str]:
    # Config discovery walks the filesystem, so it belongs in the worker thread too
    git_config = get_config(path).git
    command = _build_command(args, git_config.executable)
    return (command, *_execute(command, path, git_config.process_env()))


async def git(
    args: Sequence[str],
    path: Union[str, Path],
    name: str,
    expected_errors: Optional[AbstractSet[GitErrorKind]] = None,
) -> GitResult:
    """Run ``git <args>`` inside ``path`` and buffer its output.

    Config lookup and the subprocess call both run in a worker thread.

    Args:
        args: Arguments after ``git``
        path: Working directory
        name: Label for logging (e.g. "list_branches")
        expected_errors: Error kinds returned in the result instead of raised

    Raises:
        GitCommandError: On a non-zero exit that isn't an expected error
    """
    path = Path(path)

    with timeit(f"git.{name}", path=str(path)) as call:
        command, exit_code, stdout, stderr = await asyncio.to_thread(_run, args, path)
        call["exit_code"] = exit_code

        if exit_code == 0:
            return GitResult(stdout=stdout, stderr=stderr, exit_code=exit_code)

        kind = GitErrorKind.classify(stderr)
        if kind is not None and expected_errors and kind in expected_errors:
            log_debug(f"git {name}: expected error", kind=kind.value, path=str(path))
            call["git_error"] = kind.value
            return GitResult(
                stdout=stdout, stderr=stderr, exit_code=exit_code, git_error=kind
            )

        raise GitCommandError(command, exit_code, stderr, stdout)
