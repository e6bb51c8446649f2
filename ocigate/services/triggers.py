"""Declarative pipeline triggers.

Each `[[triggers]]` rule names an event plus optional branch, tag and path
globs. Patterns are matched with `fnmatch` (or plain equality); nothing else
about them is interpreted.

    [[triggers]]
    event = "push"
    branches = ["main", "container"]
    tags = ["v*"]
    paths = ["rs/**", "k8s/**"]
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from fnmatch import fnmatchcase

from ocigate.core.config import TriggerConfig
from ocigate.git.ref import BranchRef, CommitRef, GitRef, TagRef

__all__ = ["TriggerEvent", "matching_rule", "rule_matches", "should_run"]


@dataclass(frozen=True, slots=True)
class TriggerEvent:
    event: str
    ref: GitRef
    # None when the changed files are unknown.
    changed_paths: tuple[str, ...] | None = None


def _any_match(value: str, patterns: Sequence[str]) -> bool:
    return any(value == p or fnmatchcase(value, p) for p in patterns)


def _ref_matches(rule: TriggerConfig, ref: GitRef) -> bool:
    if not rule.branches and not rule.tags:
        return True
    match ref:
        case BranchRef(name=name):
            return _any_match(name, rule.branches)
        case TagRef(name=name):
            return _any_match(name, rule.tags)
        case CommitRef():
            return False


def _paths_match(rule: TriggerConfig, event: TriggerEvent) -> bool:
    if not rule.paths or event.changed_paths is None:
        return True
    # Path filters do not apply to tag pushes.
    if isinstance(event.ref, TagRef):
        return True
    return any(_any_match(path, rule.paths) for path in event.changed_paths)


def rule_matches(rule: TriggerConfig, event: TriggerEvent) -> bool:
    if rule.event != event.event:
        return False
    return _ref_matches(rule, event.ref) and _paths_match(rule, event)


def matching_rule(rules: Sequence[TriggerConfig], event: TriggerEvent) -> TriggerConfig | None:
    return next((r for r in rules if rule_matches(r, event)), None)


def should_run(rules: Sequence[TriggerConfig], event: TriggerEvent) -> bool:
    """True when any rule matches; with no rules configured every event runs."""
    if not rules:
        return True
    return matching_rule(rules, event) is not None
