"""Subprocess runner shared by the git-backed components."""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Callable, Iterable

CommandRunner = Callable[..., str]


def default_runner(
    args: Iterable[str],
    *,
    cwd: Path,
    capture_output: bool = False,
) -> str:
    """Run a command synchronously; raises ``CalledProcessError`` on failure."""
    completed = subprocess.run(
        list(args),
        cwd=str(cwd),
        check=True,
        text=True,
        capture_output=capture_output,
    )
    return completed.stdout if capture_output else ""


def inside_work_tree(root: Path, runner: CommandRunner) -> bool:
    """Return True when ``root`` is inside a git work tree."""
    try:
        output = runner(
            ["git", "rev-parse", "--is-inside-work-tree"], cwd=root, capture_output=True
        )
    except (subprocess.CalledProcessError, OSError):
        return False
    return output.strip() == "true"


__all__ = ["CommandRunner", "default_runner", "inside_work_tree"]
