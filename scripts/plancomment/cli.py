"""Post a Terraform plan summary as PR comment(s).

Exit codes: 0 on success or when there is nothing to post (not a PR run,
quiet mode with no changes); 1 on config or posting failures.
"""

from __future__ import annotations

import argparse
import os
import subprocess
import sys
from pathlib import Path
from typing import Mapping

from plancomment import workflow
from plancomment.chunker import split_comment
from plancomment.config import ActionConfig, ConfigError, RunContext, load_action_config
from plancomment.github import (
    CommentPermissionError,
    PostComment,
    TransientGitHubError,
    post_comments,
)
from plancomment.report import PlanReport, compose_report

JOB_SUMMARY_HEADING = "Terraform Plan Results"


def parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Post a Terraform plan summary as PR comments.")
    p.add_argument("--config", default="", help="YAML file with default input values")
    p.add_argument(
        "--json-file",
        action="append",
        default=[],
        help="Terraform plan JSON (terraform show -json); repeatable. Overrides the json-file input.",
    )
    p.add_argument("--dry-run", action="store_true", help="Print fragments instead of posting them")
    return p.parse_args(argv)


def build_report(config: ActionConfig, context: RunContext) -> PlanReport:
    """Compose the report for every configured plan file.

    Raises:
        ConfigError: a plan file cannot be read.
    """
    try:
        return compose_report(config.plan_files, config.report_options(context))
    except OSError as exc:
        raise ConfigError(f"unable to read plan file: {exc}") from exc


def run(
    config: ActionConfig,
    context: RunContext,
    *,
    post: PostComment | None = None,
    dry_run: bool = False,
) -> int:
    """Run."""
    report: PlanReport | None = None
    if config.include_job_summary:
        workflow.info("Adding plan output to job summary")
        report = build_report(config, context)
        workflow.append_job_summary(report.body, heading=JOB_SUMMARY_HEADING)

    if not context.is_pull_request:
        workflow.warning("Action doesn't seem to be running in a PR workflow context.")
        workflow.warning("Skipping comment creation.")
        return 0
    workflow.info(f"Found PR # {context.pr_number} from workflow context - proceeding to comment.")

    if report is None:
        report = build_report(config, context)

    if config.quiet and report.has_no_changes:
        workflow.info("Quiet mode is enabled and there are no changes to the infrastructure.")
        workflow.info("Skipping comment creation.")
        return 0

    if not report.body.strip():
        workflow.warning("No plan file produced any output.")
        workflow.info("Skipping comment creation.")
        return 0

    fragments = split_comment(report.body, config.max_comment_size)
    workflow.info(f"Adding {len(fragments)} comment(s) to PR")

    if dry_run:
        for index, fragment in enumerate(fragments, start=1):
            workflow.info(f"----- comment {index} of {len(fragments)} -----")
            workflow.info(fragment)
        return 0

    post_comments(
        context.repository,
        context.pr_number,
        fragments,
        post=post,
        token=config.github_token,
    )
    return 0


def main(argv: list[str] | None = None, env: Mapping[str, str] | None = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    env = os.environ if env is None else env

    try:
        config = load_action_config(
            env,
            config_path=Path(args.config) if args.config else None,
            plan_files=args.json_file or None,
        )
        return run(config, RunContext.from_env(env), dry_run=args.dry_run)
    except (ConfigError, ValueError) as exc:
        workflow.error(str(exc))
        return 1
    except (CommentPermissionError, TransientGitHubError) as exc:
        workflow.error(str(exc))
        return 1
    except subprocess.CalledProcessError as exc:
        workflow.error(f"gh command failed: {(exc.stderr or '').strip() or exc}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
