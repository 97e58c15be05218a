"""Git helpers for isolated agent working copies."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path

logger = logging.getLogger(__name__)

BRANCH_PREFIX = "agent/"


class WorktreeError(RuntimeError):
    """A git command needed for isolation failed."""

    def __init__(self, message: str, output: str = "") -> None:
        super().__init__(f"{message}: {output.strip()}" if output.strip() else message)
        self.output = output


def _git(args: list[str], cwd: str | Path, timeout: float = 30) -> subprocess.CompletedProcess:
    return subprocess.run(
        ["git", *args],
        cwd=str(cwd),
        capture_output=True,
        text=True,
        timeout=timeout,
    )


def find_git_root(start: str | Path | None = None) -> Path:
    """Closest ancestor of ``start`` holding a ``.git`` entry, else ``start``."""
    origin = Path(start or Path.cwd()).resolve()
    for directory in (origin, *origin.parents):
        if (directory / ".git").exists():
            return directory
    return origin


def current_branch_name(repo_root: str | Path) -> str:
    try:
        result = _git(["rev-parse", "--abbrev-ref", "HEAD"], repo_root, timeout=5)
    except (OSError, subprocess.SubprocessError):
        return "unknown"
    if result.returncode != 0:
        return "unknown"
    return result.stdout.strip() or "unknown"


def branch_for(worktree_name: str) -> str:
    return f"{BRANCH_PREFIX}{worktree_name}"


def create_worktree(repo_root: str | Path, path: str | Path, branch: str) -> str:
    """``git worktree add -b <branch> <path> HEAD``. Returns git's output.

    Raises:
        WorktreeError: git is missing or reported failure.
    """
    try:
        result = _git(["worktree", "add", "-b", branch, str(path), "HEAD"], repo_root)
    except (OSError, subprocess.SubprocessError) as e:
        raise WorktreeError(f"Failed to create git worktree at {path}", str(e)) from e
    output = (result.stdout or "") + (result.stderr or "")
    if result.returncode != 0:
        raise WorktreeError(f"Failed to create git worktree at {path}", output)
    logger.info("Created worktree %s on branch %s", path, branch)
    return output


def remove_worktree(repo_root: str | Path, path: str | Path) -> tuple[bool, str]:
    """``git worktree remove <path> --force``. Never raises."""
    return _best_effort(["worktree", "remove", str(path), "--force"], repo_root)


def delete_branch(repo_root: str | Path, branch: str) -> tuple[bool, str]:
    """``git branch -D <branch>``. Never raises."""
    return _best_effort(["branch", "-D", branch], repo_root)


def _best_effort(args: list[str], cwd: str | Path) -> tuple[bool, str]:
    try:
        result = _git(args, cwd)
    except (OSError, subprocess.SubprocessError) as e:
        logger.warning("git %s failed: %s", " ".join(args), e)
        return False, str(e)
    output = (result.stdout or "") + (result.stderr or "")
    if result.returncode != 0:
        logger.warning("git %s failed: %s", " ".join(args), output.strip())
        return False, output
    return True, output
