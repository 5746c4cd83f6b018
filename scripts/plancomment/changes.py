"""Resource change classification for Terraform plan JSON.

Only the first action token decides the kind; a multi-token sequence that
starts with "delete" (delete-then-create) is a replace.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable

CREATE = "create"
UPDATE = "update"
DELETE = "delete"
REPLACE = "replace"
NO_OP = "no-op"
UNSUPPORTED = "unsupported"


class PlanFormatError(ValueError):
    """Plan document does not have the expected resource_changes shape."""


@dataclass(frozen=True)
class ResourceChange:
    """One entry of a plan's resource_changes list."""
    address: str
    actions: tuple[str, ...]

    @classmethod
    def from_dict(cls, raw: Any) -> "ResourceChange":
        """From dict."""
        if not isinstance(raw, dict):
            raise PlanFormatError("resource change must be an object")
        address = raw.get("address")
        if not isinstance(address, str) or not address:
            raise PlanFormatError("resource change is missing an address")
        change = raw.get("change")
        actions = change.get("actions") if isinstance(change, dict) else None
        if not isinstance(actions, list):
            raise PlanFormatError(f"{address}: change.actions must be a list")
        return cls(address=address, actions=tuple(str(a) for a in actions))


@dataclass(frozen=True)
class ChangeBucket:
    """Addresses grouped by change kind, each in plan order."""
    created: list[str] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    replaced: list[str] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)
    unsupported: list[str] = field(default_factory=list)

    def for_kind(self, kind: str) -> list[str]:
        """Bucket holding addresses of the given kind."""
        return {
            CREATE: self.created,
            UPDATE: self.updated,
            DELETE: self.deleted,
            REPLACE: self.replaced,
            NO_OP: self.unchanged,
            UNSUPPORTED: self.unsupported,
        }[kind]


def change_kind(actions: Iterable[str]) -> str:
    """Map an action sequence to CREATE, UPDATE, DELETE, REPLACE, NO_OP or UNSUPPORTED."""
    actions = list(actions)
    if not actions:
        return UNSUPPORTED
    first = actions[0]
    if first == DELETE:
        return REPLACE if len(actions) > 1 else DELETE
    if first in (CREATE, UPDATE, NO_OP):
        return first
    # "read" and anything newer than this classifier.
    return UNSUPPORTED


def classify(changes: Iterable[ResourceChange]) -> ChangeBucket:
    """Classify."""
    bucket = ChangeBucket()
    for change in changes:
        bucket.for_kind(change_kind(change.actions)).append(change.address)
    return bucket


def parse_resource_changes(document: Any) -> list[ResourceChange] | None:
    """Return the plan's changes, or None when there is nothing to report.

    A missing, non-list, or empty resource_changes means "no changes".
    """
    if not isinstance(document, dict):
        raise PlanFormatError("plan document must be a JSON object")
    raw = document.get("resource_changes")
    if not isinstance(raw, list) or not raw:
        return None
    return [ResourceChange.from_dict(entry) for entry in raw]
