"""GitHub Actions workflow commands.

Log lines go through `::warning::` / `::error::` annotations so they show up
on the run page; plain `info` lines are regular stdout.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path


def _escape_data(message: str) -> str:
    return message.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")


def info(message: str) -> None:
    """Info."""
    print(message, flush=True)


def notice(message: str) -> None:
    """Notice."""
    print(f"::notice::{_escape_data(message)}", file=sys.stderr, flush=True)


def warning(message: str) -> None:
    """Warning."""
    print(f"::warning::{_escape_data(message)}", file=sys.stderr, flush=True)


def error(message: str) -> None:
    """Error."""
    print(f"::error::{_escape_data(message)}", file=sys.stderr, flush=True)


def append_job_summary(markdown: str, *, heading: str | None = None) -> bool:
    """Append markdown to the job summary file.

    Returns False (and warns) when GITHUB_STEP_SUMMARY is not set, e.g. when
    running outside of Actions.
    """
    target = os.environ.get("GITHUB_STEP_SUMMARY", "").strip()
    if not target:
        warning("GITHUB_STEP_SUMMARY is not set; skipping job summary.")
        return False

    parts = []
    if heading:
        parts.append(f"<h1>{heading}</h1>\n")
    parts.append(markdown)
    if not markdown.endswith("\n"):
        parts.append("\n")
    with Path(target).open("a", encoding="utf-8") as fh:
        fh.write("".join(parts))
    return True
