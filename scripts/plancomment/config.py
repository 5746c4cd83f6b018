"""Typed loader for action inputs and run context.

Inputs arrive as INPUT_<NAME> environment variables (GitHub Actions
convention). An optional YAML file supplies defaults for the same keys;
inputs that are set explicitly win.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml

from plancomment import workflow
from plancomment.chunker import GITHUB_COMMENT_LIMIT, MAX_COMMENT_SIZE, MIN_COMMENT_SIZE
from plancomment.markdown import repo_context, workflow_link
from plancomment.report import ReportOptions

TRUE_VALUES = {"true", "True", "TRUE"}
FALSE_VALUES = {"false", "False", "FALSE"}

PULL_REQUEST_EVENTS = {"pull_request", "pull_request_target"}

KNOWN_KEYS = {
    "json-file",
    "comment-header",
    "comment-footer",
    "header-file",
    "footer-file",
    "expand-comment",
    "include-plan-job-summary",
    "include-workflow-link",
    "quiet",
    "max-comment-size",
    "github-token",
}


class ConfigError(RuntimeError):
    """Invalid action inputs or config file."""
    pass


@dataclass(frozen=True)
class RunContext:
    """Workflow run facts used for the PR check and the workflow link."""
    event_name: str = ""
    pr_number: int | None = None
    workflow: str = ""
    server_url: str = "https://github.com"
    repository: str = ""
    run_id: str = ""

    @property
    def is_pull_request(self) -> bool:
        """Is pull request."""
        return self.event_name in PULL_REQUEST_EVENTS and self.pr_number is not None

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "RunContext":
        """From env."""
        env = os.environ if env is None else env
        server, repo = repo_context(
            server=env.get("GITHUB_SERVER_URL") or "https://github.com",
            repo=env.get("GITHUB_REPOSITORY") or "",
        )
        return cls(
            event_name=(env.get("GITHUB_EVENT_NAME") or "").strip(),
            pr_number=_event_issue_number(env.get("GITHUB_EVENT_PATH") or ""),
            workflow=(env.get("GITHUB_WORKFLOW") or "").strip(),
            server_url=server,
            repository=repo,
            run_id=(env.get("GITHUB_RUN_ID") or "").strip(),
        )


def _event_issue_number(event_path: str) -> int | None:
    if not event_path:
        return None
    try:
        payload = json.loads(Path(event_path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        workflow.warning(f"Unable to read event payload {event_path}: {exc}")
        return None
    if not isinstance(payload, dict):
        return None
    for key in ("issue", "pull_request"):
        item = payload.get(key)
        if isinstance(item, dict) and isinstance(item.get("number"), int):
            return item["number"]
    number = payload.get("number")
    return number if isinstance(number, int) and not isinstance(number, bool) else None


@dataclass(frozen=True)
class ActionConfig:
    """Resolved action configuration."""
    plan_files: list[str]
    header: str = ""
    footer: str = ""
    expand_comment: bool = False
    include_job_summary: bool = False
    include_workflow_link: bool = False
    quiet: bool = False
    max_comment_size: int = MAX_COMMENT_SIZE
    github_token: str | None = field(default=None, repr=False)

    def report_options(self, context: RunContext) -> ReportOptions:
        """Report options."""
        link = ""
        if self.include_workflow_link:
            link = workflow_link(
                workflow=context.workflow,
                server=context.server_url,
                repo=context.repository,
                run_id=context.run_id,
            )
        return ReportOptions(
            header=self.header,
            footer=self.footer,
            expand_comment=self.expand_comment,
            workflow_link=link,
        )


def input_env_name(name: str) -> str:
    """Environment variable the runner uses for an action input."""
    return f"INPUT_{name.replace(' ', '_').upper()}"


def _bool(value: Any, ctx: str) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip()
    if text in TRUE_VALUES:
        return True
    if text in FALSE_VALUES:
        return False
    raise ConfigError(
        f"{ctx}: expected one of true|True|TRUE|false|False|FALSE, got {text!r}"
    )


def _lines(value: Any, ctx: str) -> list[str]:
    if isinstance(value, list):
        out: list[str] = []
        for idx, item in enumerate(value):
            if not isinstance(item, str):
                raise ConfigError(f"{ctx}[{idx}]: expected string")
            out.append(item)
        value = "\n".join(out)
    elif not isinstance(value, str):
        raise ConfigError(f"{ctx}: expected string or list of strings")
    return [line.strip() for line in value.splitlines() if line.strip()]


def _str(value: Any, ctx: str) -> str:
    if not isinstance(value, (str, int, float)) or isinstance(value, bool):
        raise ConfigError(f"{ctx}: expected string")
    return str(value).strip()


def _comment_size(value: Any, ctx: str) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"{ctx}: expected integer")
    try:
        size = int(str(value).strip())
    except ValueError:
        raise ConfigError(f"{ctx}: expected integer") from None
    if size < MIN_COMMENT_SIZE:
        raise ConfigError(f"{ctx}: must be >= {MIN_COMMENT_SIZE}")
    if size > GITHUB_COMMENT_LIMIT:
        raise ConfigError(f"{ctx}: must be <= {GITHUB_COMMENT_LIMIT}")
    return size


def load_yaml_defaults(path: Path) -> dict[str, Any]:
    """Load defaults for action inputs from a YAML mapping."""
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        raise ConfigError(f"missing config file: {path}") from None
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid YAML in {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: expected mapping")
    unknown = sorted(str(key) for key in data if key not in KNOWN_KEYS)
    if unknown:
        raise ConfigError(f"{path}: unknown keys: {', '.join(unknown)}")
    return data


def _read_text_input(file_value: str, inline_lines: list[str], label: str) -> str:
    """Header/footer text: file contents when the file exists, else the inline input."""
    if file_value:
        workflow.info(f"{label.capitalize()} file input: {file_value}")
        path = Path(file_value)
        if path.is_file():
            text = path.read_text(encoding="utf-8").strip()
            workflow.info(f"Read {label} from file ({len(text)} chars)")
            return text
        workflow.warning(f"{label.capitalize()} file not found: {file_value}")
    return "\n".join(inline_lines)


def load_action_config(
    env: Mapping[str, str] | None = None,
    *,
    config_path: Path | None = None,
    plan_files: list[str] | None = None,
) -> ActionConfig:
    """Resolve the action config from inputs, the YAML defaults file, and overrides."""
    env = os.environ if env is None else env
    values: dict[str, Any] = load_yaml_defaults(config_path) if config_path else {}
    for key in KNOWN_KEYS:
        raw = env.get(input_env_name(key), "")
        if raw.strip():
            values[key] = raw

    def ctx(key: str) -> str:
        return f"input '{key}'"

    files = list(plan_files) if plan_files else _lines(values.get("json-file", ""), ctx("json-file"))
    if not files:
        raise ConfigError("input 'json-file': at least one plan file is required")

    header = _read_text_input(
        _str(values.get("header-file", ""), ctx("header-file")),
        _lines(values.get("comment-header", ""), ctx("comment-header")),
        "header",
    )
    footer = _read_text_input(
        _str(values.get("footer-file", ""), ctx("footer-file")),
        _lines(values.get("comment-footer", ""), ctx("comment-footer")),
        "footer",
    )

    size = values.get("max-comment-size")
    token = _str(values.get("github-token", ""), ctx("github-token"))
    return ActionConfig(
        plan_files=files,
        header=header,
        footer=footer,
        expand_comment=_bool(values.get("expand-comment", False), ctx("expand-comment")),
        include_job_summary=_bool(
            values.get("include-plan-job-summary", False), ctx("include-plan-job-summary")
        ),
        include_workflow_link=_bool(
            values.get("include-workflow-link", False), ctx("include-workflow-link")
        ),
        quiet=_bool(values.get("quiet", False), ctx("quiet")),
        max_comment_size=MAX_COMMENT_SIZE if size is None else _comment_size(size, ctx("max-comment-size")),
        github_token=token or None,
    )
