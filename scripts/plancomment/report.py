"""Render Terraform plan JSON into a PR comment body.

One block per plan file:

    <header>
    <details>
    <summary>
    <b>Terraform Plan: ... unchanged.</b>
    </summary>
    #### Resources to create / delete / update / replace
    </details>
    <footer>
    <workflow link>

Unchanged resources are counted in the summary but never listed.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable

from plancomment import workflow
from plancomment.changes import (
    CREATE,
    DELETE,
    REPLACE,
    UNSUPPORTED,
    UPDATE,
    ChangeBucket,
    PlanFormatError,
    classify,
    parse_resource_changes,
)
from plancomment.markdown import details_block, diff_block

NO_CHANGES_NOTICE = "<p>There were no changes done to the infrastructure.</p>"
SUMMARY_TITLE = "Terraform Plan"
UNSUPPORTED_HEADING = "Resources with unsupported actions"


@dataclass(frozen=True)
class ReportOptions:
    """Text around each plan block."""
    header: str = ""
    footer: str = ""
    expand_comment: bool = False
    workflow_link: str = ""


@dataclass
class PlanReport:
    """Composed report for one run."""
    body: str = ""
    has_no_changes: bool = False
    files_skipped: list[str] = field(default_factory=list)


def _section_lines(
    action: str,
    addresses: list[str],
    operator: str,
    *,
    heading: str | None = None,
) -> list[str]:
    if not addresses:
        return []
    rows: list[str] = []
    for address in addresses:
        # Replace shows the delete before the re-create.
        if action == REPLACE:
            rows.append(f"- {address}")
        rows.append(f"{operator} {address}")
    return [
        "",
        f"#### {heading or f'Resources to {action}'}",
        "",
        *diff_block(rows),
    ]


def render_section(
    action: str,
    addresses: list[str],
    operator: str,
    *,
    heading: str | None = None,
) -> str:
    """Render one category as a heading plus a diff fence, or "" when empty."""
    lines = _section_lines(action, addresses, operator, heading=heading)
    if not lines:
        return ""
    return "\n".join(lines) + "\n"


def summary_line(bucket: ChangeBucket) -> str:
    """Summary line."""
    text = (
        f"{SUMMARY_TITLE}: {len(bucket.created)} to be created, "
        f"{len(bucket.deleted)} to be deleted, "
        f"{len(bucket.updated)} to be updated, "
        f"{len(bucket.replaced)} to be replaced, "
        f"{len(bucket.unchanged)} unchanged"
    )
    if bucket.unsupported:
        text += f", {len(bucket.unsupported)} with unsupported actions"
    return text + "."


def render_bucket(bucket: ChangeBucket, options: ReportOptions) -> str:
    """Render the block for one classified plan."""
    body = [
        *_section_lines(CREATE, bucket.created, "+"),
        *_section_lines(DELETE, bucket.deleted, "-"),
        *_section_lines(UPDATE, bucket.updated, "!"),
        *_section_lines(REPLACE, bucket.replaced, "+"),
        *_section_lines(UNSUPPORTED, bucket.unsupported, "?", heading=UNSUPPORTED_HEADING),
    ]
    lines = [""]
    if options.header:
        lines.append(options.header)
    lines.extend(
        details_block(
            body,
            summary=f"<b>{summary_line(bucket)}</b>",
            expanded=options.expand_comment,
        )
    )
    if options.footer:
        lines.append(options.footer)
    if options.workflow_link:
        lines.extend(["", options.workflow_link])
    return "\n".join(lines) + "\n"


def render_no_changes() -> str:
    """Render no changes."""
    return f"\n{NO_CHANGES_NOTICE}\n"


def render_plan_document(document: Any, options: ReportOptions) -> tuple[str, bool]:
    """Render one parsed plan. Returns (markdown, has_no_changes).

    Raises:
        PlanFormatError: document or one of its entries has the wrong shape.
    """
    changes = parse_resource_changes(document)
    if changes is None:
        return render_no_changes(), True
    return render_bucket(classify(changes), options), False


def compose_report(plan_files: Iterable[str | Path], options: ReportOptions) -> PlanReport:
    """Render every plan file, in order, into one report.

    Files that are not valid plan JSON are logged and skipped; the run goes on.

    Raises:
        OSError: a plan file cannot be read.
    """
    report = PlanReport()
    parts: list[str] = []
    for plan_file in plan_files:
        path = Path(plan_file)
        text = path.read_text(encoding="utf-8")
        try:
            document = json.loads(text)
            rendered, no_changes = render_plan_document(document, options)
        except (json.JSONDecodeError, PlanFormatError) as exc:
            workflow.error(f"{path} is not a valid plan JSON file. error: {exc}")
            report.files_skipped.append(str(path))
            continue
        if no_changes:
            report.has_no_changes = True
            workflow.info(
                f"The content of {path} did not result in a valid array or the array is empty... Skipping."
            )
        parts.append(rendered)
    report.body = "".join(parts)
    return report
