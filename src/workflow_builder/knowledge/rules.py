"""Structural validation rules for generated workflows.

Each rule is a pure predicate over the workflow mapping. Workflows come from an
LLM, so the checks tolerate malformed nodes and connections: anything that
does not have the expected shape simply fails the rule.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator, Mapping
import dataclasses
import enum
import logging
import re
from typing import Any

from workflow_builder.core.types import Severity
from workflow_builder.utils import compact_json

log = logging.getLogger(__name__)

TRIGGER_MARKERS = ("trigger", "webhook", "manual")

_CREDENTIAL_PATTERN = re.compile(r'(?:api_key|apikey|password|secret)"?\s*:')


class RuleId(enum.StrEnum):
    """Identifiers of the built-in structural rules."""

    UNIQUE_NODE_IDS = "unique-node-ids"
    NODE_POSITIONS = "node-positions"
    VALID_CONNECTIONS = "valid-connections"
    NO_HARDCODED_CREDENTIALS = "no-hardcoded-credentials"
    REQUIRED_NODE_FIELDS = "required-node-fields"
    NODE_REACHABILITY = "node-reachability"


type RuleCheck = Callable[[Mapping[str, Any]], bool]


@dataclasses.dataclass(frozen=True, slots=True)
class ValidationRule:
    """A named structural invariant with its executable check."""

    id: RuleId
    description: str
    severity: Severity
    check: RuleCheck

    def to_dict(self) -> dict[str, Any]:
        """Wire form; the check itself is not serializable and is omitted."""
        return {
            "id": str(self.id),
            "description": self.description,
            "severity": str(self.severity),
        }


@dataclasses.dataclass(frozen=True, slots=True)
class RuleOutcome:
    """Result of running one rule against one workflow."""

    rule_id: RuleId
    severity: Severity
    passed: bool
    description: str = ""
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": str(self.rule_id),
            "severity": str(self.severity),
            "passed": self.passed,
            "description": self.description,
        }
        if self.error is not None:
            data["error"] = self.error
        return data


# --- Workflow accessors ---


def iter_nodes(workflow: Mapping[str, Any]) -> Iterator[Mapping[str, Any]]:
    """Yield node mappings; non-mapping entries are yielded as empty mappings."""
    nodes = workflow.get("nodes") if isinstance(workflow, Mapping) else None
    if not isinstance(nodes, list):
        return
    for node in nodes:
        yield node if isinstance(node, Mapping) else {}


def iter_connection_targets(
    workflow: Mapping[str, Any],
) -> Iterator[tuple[Any, Any]]:
    """Yield ``(source, target)`` pairs from ``connections``.

    Connections are shaped ``{source: {output_type: [[{"node": target}]]}}``.
    Each source is first yielded once with a None target so that sources
    without any links are still visible to callers.

    Raises:
        ValueError: If any level of the structure has the wrong type.
    """
    connections = workflow.get("connections") or {}
    if not isinstance(connections, Mapping):
        raise ValueError("connections must be an object")
    for source, outputs in connections.items():
        if not isinstance(outputs, Mapping):
            raise ValueError(f"connection entry for {source!r} must be an object")
        yield source, None
        for branches in outputs.values():
            if not isinstance(branches, list):
                raise ValueError(f"outputs of {source!r} must be lists")
            for branch in branches:
                if branch is None:
                    continue
                if not isinstance(branch, list):
                    raise ValueError(f"branch of {source!r} must be a list")
                for link in branch:
                    if not isinstance(link, Mapping):
                        raise ValueError(f"link from {source!r} must be an object")
                    yield source, link.get("node")


def is_trigger_node(node: Mapping[str, Any]) -> bool:
    node_type = node.get("type")
    lowered = node_type.lower() if isinstance(node_type, str) else ""
    return any(marker in lowered for marker in TRIGGER_MARKERS)


def _hashable(value: Any) -> Any:
    try:
        hash(value)
    except TypeError:
        return compact_json(value)
    return value


# --- Rule checks ---


def has_unique_node_ids(workflow: Mapping[str, Any]) -> bool:
    ids = [_hashable(node.get("id")) for node in iter_nodes(workflow)]
    return len(ids) == len(set(ids))


def has_node_positions(workflow: Mapping[str, Any]) -> bool:
    return all(
        isinstance(node.get("position"), list | tuple) and len(node["position"]) == 2
        for node in iter_nodes(workflow)
    )


def has_valid_connections(workflow: Mapping[str, Any]) -> bool:
    """Every connection source and target must name an existing node.

    A node may be referenced by its ``id`` or its ``name``.
    """
    known: set[Any] = set()
    for node in iter_nodes(workflow):
        for key in ("id", "name"):
            value = node.get(key)
            if value is not None:
                known.add(_hashable(value))

    try:
        links = list(iter_connection_targets(workflow))
    except ValueError:
        return False

    for source, target in links:
        if _hashable(source) not in known:
            return False
        if target is not None and _hashable(target) not in known:
            return False
    return True


def has_no_hardcoded_credentials(workflow: Mapping[str, Any]) -> bool:
    serialized = compact_json(workflow).lower()
    return _CREDENTIAL_PATTERN.search(serialized) is None


def has_required_node_fields(workflow: Mapping[str, Any]) -> bool:
    return all(
        node.get("name") and node.get("type") and node.get("typeVersion")
        for node in iter_nodes(workflow)
    )


def has_reachable_nodes(workflow: Mapping[str, Any]) -> bool:
    """Every non-trigger node must be reachable from some trigger node by name."""
    nodes = list(iter_nodes(workflow))
    try:
        links = list(iter_connection_targets(workflow))
    except ValueError:
        return False

    edges: dict[Any, list[Any]] = {}
    for source, target in links:
        if target is not None:
            edges.setdefault(_hashable(source), []).append(_hashable(target))

    pending = [_hashable(n.get("name")) for n in nodes if is_trigger_node(n)]
    reached: set[Any] = set()
    while pending:
        current = pending.pop()
        if current in reached:
            continue
        reached.add(current)
        pending.extend(edges.get(current, ()))

    return all(
        is_trigger_node(node) or _hashable(node.get("name")) in reached
        for node in nodes
    )


def default_rules() -> tuple[ValidationRule, ...]:
    """The built-in rule set, in evaluation order."""
    return (
        ValidationRule(
            id=RuleId.UNIQUE_NODE_IDS,
            description="All node IDs must be unique",
            severity=Severity.CRITICAL,
            check=has_unique_node_ids,
        ),
        ValidationRule(
            id=RuleId.NODE_POSITIONS,
            description="All nodes must have position coordinates",
            severity=Severity.CRITICAL,
            check=has_node_positions,
        ),
        ValidationRule(
            id=RuleId.VALID_CONNECTIONS,
            description="All connections must reference existing nodes",
            severity=Severity.CRITICAL,
            check=has_valid_connections,
        ),
        ValidationRule(
            id=RuleId.NO_HARDCODED_CREDENTIALS,
            description="No hardcoded API keys or passwords",
            severity=Severity.CRITICAL,
            check=has_no_hardcoded_credentials,
        ),
        ValidationRule(
            id=RuleId.REQUIRED_NODE_FIELDS,
            description="All nodes must have required fields (name, type, typeVersion)",
            severity=Severity.HIGH,
            check=has_required_node_fields,
        ),
        ValidationRule(
            id=RuleId.NODE_REACHABILITY,
            description="All nodes must be reachable from a trigger node",
            severity=Severity.HIGH,
            check=has_reachable_nodes,
        ),
    )


def evaluate_rules(
    workflow: Mapping[str, Any], rules: Iterable[ValidationRule]
) -> tuple[RuleOutcome, ...]:
    """Run every rule against ``workflow``; a check that raises counts as failed."""
    outcomes = []
    for rule in rules:
        try:
            outcomes.append(
                RuleOutcome(
                    rule_id=rule.id,
                    severity=rule.severity,
                    passed=bool(rule.check(workflow)),
                    description=rule.description,
                )
            )
        except Exception as e:
            log.debug("Rule %s raised: %s", rule.id, e)
            outcomes.append(
                RuleOutcome(
                    rule_id=rule.id,
                    severity=rule.severity,
                    passed=False,
                    description=rule.description,
                    error=str(e),
                )
            )
    return tuple(outcomes)
