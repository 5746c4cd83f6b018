"""Markdown helpers for plan comments.

Keep surface area small: fences + <details> blocks + the workflow link.
"""

from __future__ import annotations

import os

FENCE = "```"
DETAILS_OPEN = "<details"
DETAILS_CLOSE = "</details>"


def repo_context(
    *,
    server: str | None = None,
    repo: str | None = None,
) -> tuple[str, str]:
    """Resolve GitHub server URL and owner/repo."""
    resolved_server = (server or os.environ.get("GITHUB_SERVER_URL") or "https://github.com").rstrip(
        "/"
    )
    resolved_repo = (repo or os.environ.get("GITHUB_REPOSITORY") or "").strip()
    return resolved_server, resolved_repo


def run_url(*, server: str, repo: str, run_id: str) -> str | None:
    """Actions run URL, or None when any part is missing."""
    server = (server or "").rstrip("/")
    repo = (repo or "").strip()
    run_id = str(run_id or "").strip()
    if not (server and repo and run_id):
        return None
    return f"{server}/{repo}/actions/runs/{run_id}"


def workflow_link(*, workflow: str, server: str, repo: str, run_id: str) -> str:
    """Workflow link."""
    url = run_url(server=server, repo=repo, run_id=run_id)
    if not url:
        return ""
    return f"[Workflow: {workflow or 'run'}]({url})"


def diff_block(lines: list[str]) -> list[str]:
    """Fenced diff block."""
    return [f"{FENCE}diff", *lines, FENCE]


def details_block(
    body_lines: list[str],
    *,
    summary: str,
    expanded: bool = False,
) -> list[str]:
    """Details block."""
    opening = f"{DETAILS_OPEN} open>" if expanded else f"{DETAILS_OPEN}>"
    return [
        opening,
        "<summary>",
        summary,
        "</summary>",
        *body_lines,
        DETAILS_CLOSE,
    ]
