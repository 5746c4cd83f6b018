"""GitHub PR comment posting through the gh CLI.

Every run posts new comments; nothing is looked up or edited.
"""
from __future__ import annotations

import json
import os
import random
import subprocess
import tempfile
import time
from pathlib import Path
from typing import Callable, Iterable

from plancomment import workflow


class CommentPermissionError(Exception):
    """Token lacks pull-requests: write permission."""


class TransientGitHubError(Exception):
    """GitHub API returned a transient error (5xx)."""


def _is_transient_error(stderr: str) -> bool:
    """Check if error is a transient GitHub API error (5xx)."""
    transient_codes = ("502", "503", "504")
    lower_stderr = stderr.lower()
    # Handle both gh CLI format "(http 503)" and raw "HTTP 503" formats
    return any(
        f"(http {code})" in lower_stderr or f"http {code}" in lower_stderr
        for code in transient_codes
    )


def _gh_env(token: str | None) -> dict[str, str] | None:
    if not token:
        return None
    return {**os.environ, "GH_TOKEN": token}


def _run_gh(
    args: list[str],
    *,
    token: str | None = None,
    max_retries: int = 3,
    base_delay: float = 1.0,
) -> subprocess.CompletedProcess[str]:
    """Run a gh CLI command with retry logic for transient errors.

    Args:
        args: Arguments to pass to gh CLI
        token: GitHub token exported as GH_TOKEN; the ambient gh auth is used when None
        max_retries: Maximum number of attempts for transient errors
        base_delay: Base delay in seconds between retries (uses exponential backoff)

    Returns:
        CompletedProcess result from the gh command

    Raises:
        CommentPermissionError: Token lacks pull-requests: write permission
        TransientGitHubError: GitHub API returned 5xx after all retries
        subprocess.CalledProcessError: Other gh CLI failures
    """
    for attempt in range(max_retries):
        result = subprocess.run(
            ["gh", *args], capture_output=True, text=True, check=False, env=_gh_env(token)
        )

        if result.returncode == 0:
            return result

        stderr = (result.stderr or "").lower()

        if any(s in stderr for s in ("403", "resource not accessible", "insufficient")):
            raise CommentPermissionError(
                "Unable to post PR comment: token lacks pull-requests: write permission.\n"
                "Add this to your workflow:\n"
                "permissions:\n"
                "  contents: read\n"
                "  pull-requests: write"
            )

        if _is_transient_error(result.stderr or ""):
            if attempt < max_retries - 1:
                # Exponential backoff with jitter: 1s, 2s, 4s + random jitter
                delay = base_delay * (2 ** attempt) + random.uniform(0, 0.5)
                workflow.warning(
                    f"GitHub API error (attempt {attempt + 1}/{max_retries}), "
                    f"retrying in {delay:.1f}s..."
                )
                time.sleep(delay)
                continue
            raise TransientGitHubError(
                f"GitHub API returned transient error after {max_retries} attempts: "
                f"{result.stderr}"
            )

        raise subprocess.CalledProcessError(
            result.returncode, result.args, result.stdout, result.stderr
        )

    raise RuntimeError("_run_gh retry loop exited unexpectedly")


def create_comment(
    repo: str,
    pr_number: int,
    body: str,
    *,
    token: str | None = None,
) -> dict:
    """Create one issue comment on the PR and return the API response.

    Raises:
        CommentPermissionError: Token lacks pull-requests: write permission.
        TransientGitHubError: GitHub API returned 5xx after retries.
        subprocess.CalledProcessError: Other gh CLI failures.
    """
    with tempfile.NamedTemporaryFile("w", encoding="utf-8", suffix=".json", delete=False) as handle:
        json.dump({"body": body}, handle)
        tmp_path = handle.name

    try:
        result = _run_gh(
            [
                "api",
                "-X",
                "POST",
                f"repos/{repo}/issues/{pr_number}/comments",
                "--input",
                tmp_path,
            ],
            token=token,
        )
    finally:
        Path(tmp_path).unlink(missing_ok=True)
    try:
        data = json.loads(result.stdout or "{}")
    except json.JSONDecodeError:
        return {}
    return data if isinstance(data, dict) else {}


PostComment = Callable[[str, int, str], dict]


def post_comments(
    repo: str,
    pr_number: int,
    fragments: Iterable[str],
    *,
    post: PostComment | None = None,
    token: str | None = None,
) -> list[dict]:
    """Post fragments as separate comments, strictly in order.

    The first failure propagates; later fragments are not attempted.
    """
    if post is None:
        def post(r: str, n: int, b: str) -> dict:
            return create_comment(r, n, b, token=token)

    fragments = list(fragments)
    responses: list[dict] = []
    for index, body in enumerate(fragments, start=1):
        workflow.info(f"Posting comment {index} of {len(fragments)}...")
        try:
            response = post(repo, pr_number, body)
        except Exception as exc:
            workflow.error(f"Failed to post comment {index}: {exc}")
            raise
        workflow.info(f"Comment {index} posted successfully. URL: {response.get('html_url', '')}")
        responses.append(response)
    return responses
