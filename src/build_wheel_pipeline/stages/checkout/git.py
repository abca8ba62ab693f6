"""Git operations for source preparation.

Every command goes through the job's CommandRunner so it is bounded by the
job deadline and stops when the run is cancelled.
"""

from __future__ import annotations

from pathlib import Path

import structlog

from build_wheel_pipeline.core import (
    CommandError,
    CommandRunner,
    ResolutionError,
    remove_tree,
)

log = structlog.get_logger(__name__)


def clone_source(runner: CommandRunner, *, source: str, dest: Path) -> Path:
    """Clone `source` (a local path or clone URL) into a fresh `dest`."""
    dest = Path(dest)
    if dest.exists():
        remove_tree(dest)
    dest.parent.mkdir(parents=True, exist_ok=True)

    try:
        runner.run(["git", "clone", "--quiet", "--no-checkout", source, str(dest)])
    except CommandError as e:
        raise ResolutionError(f"Cannot clone source {source!r}: {e}") from e
    return dest


def _rev_parse(runner: CommandRunner, repo: Path, rev: str) -> str | None:
    res = runner.run(
        ["git", "rev-parse", "--verify", "--quiet", f"{rev}^{{commit}}"],
        cwd=repo,
        check=False,
    )
    sha = res.output.strip()
    if res.returncode != 0 or not sha:
        return None
    return sha.splitlines()[-1]


def resolve_revision(runner: CommandRunner, *, repo: Path, ref: str) -> str:
    """
    Resolve a branch, tag, SHA or fetchable ref (pull/<n>/merge) to a commit SHA.

    Tries the ref itself, then origin/<ref>, then fetches it from origin.
    """
    for candidate in (ref, f"origin/{ref}"):
        sha = _rev_parse(runner, repo, candidate)
        if sha:
            log.debug("git.resolved", ref=ref, candidate=candidate, sha=sha)
            return sha

    fetched = runner.run(
        ["git", "fetch", "--quiet", "origin", ref], cwd=repo, check=False
    )
    if fetched.returncode == 0:
        sha = _rev_parse(runner, repo, "FETCH_HEAD")
        if sha:
            log.debug("git.resolved", ref=ref, candidate="FETCH_HEAD", sha=sha)
            return sha

    raise ResolutionError(f"Cannot resolve revision {ref!r} in {repo}")


def checkout_detached(runner: CommandRunner, *, repo: Path, sha: str) -> None:
    try:
        runner.run(["git", "checkout", "--quiet", "--detach", sha], cwd=repo)
    except CommandError as e:
        raise ResolutionError(f"git checkout failed for {sha}: {e}") from e


def head_sha(runner: CommandRunner, *, repo: Path) -> str:
    sha = _rev_parse(runner, repo, "HEAD")
    if sha is None:
        raise ResolutionError(f"Cannot read HEAD in {repo}")
    return sha
