from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

from ocigate.core.result import Err, Ok, Result
from ocigate.git.history import Commit, commits_between, previous_release_tag
from ocigate.services.release.errors import ReleaseError

__all__ = ["build_release_notes", "read_changelog", "render_release_notes"]


def render_release_notes(
    changelog_text: str,
    commits: Sequence[Commit],
    *,
    previous_tag: str | None = None,
) -> str:
    lines: list[str] = []
    if changelog_text.strip():
        lines.append(changelog_text.rstrip())
        lines.append("")

    lines.append("## Commits")
    if previous_tag is not None:
        lines.append("")
        lines.append(f"Since {previous_tag}:")
    lines.append("")
    if commits:
        for c in commits:
            lines.append(f"- {c.short_sha} {c.subject}")
    else:
        lines.append("- (no commits)")

    return "\n".join(lines).rstrip() + "\n"


def read_changelog(path: Path) -> Result[str, ReleaseError]:
    try:
        return Ok(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return Err(
            ReleaseError(
                kind="changelog_missing",
                message=f"changelog not found: {path}",
                hint="the release body starts from the checked-in changelog",
            )
        )
    except (OSError, UnicodeDecodeError) as e:
        return Err(
            ReleaseError(
                kind="invalid_input",
                message=f"failed to read changelog: {e}",
                hint=str(path),
            )
        )


def build_release_notes(
    *,
    workspace_root: Path,
    changelog: Path,
    tag: str,
) -> Result[str, ReleaseError]:
    """Changelog first, then the commits since the previous `v*` tag."""
    text = read_changelog(changelog)
    if isinstance(text, Err):
        return text

    previous = previous_release_tag(workspace_root, tag)
    if isinstance(previous, Err):
        return Err(
            ReleaseError(
                kind="history_failed",
                message=f"git {previous.error.command} failed: {previous.error.message}",
            )
        )

    commits = commits_between(workspace_root, since=previous.value, until=tag)
    if isinstance(commits, Err):
        return Err(
            ReleaseError(
                kind="history_failed",
                message=f"git {commits.error.command} failed: {commits.error.message}",
            )
        )

    return Ok(render_release_notes(text.value, commits.value, previous_tag=previous.value))
