"""
Unit tests for the structural validation rules
"""

import pytest

from workflow_builder.core.types import Severity
from workflow_builder.knowledge.rules import (
    RuleId,
    ValidationRule,
    default_rules,
    evaluate_rules,
    has_no_hardcoded_credentials,
    has_node_positions,
    has_reachable_nodes,
    has_required_node_fields,
    has_unique_node_ids,
    has_valid_connections,
    is_trigger_node,
    iter_connection_targets,
    iter_nodes,
)


def _link(target):
    return {"main": [[{"node": target, "type": "main", "index": 0}]]}


@pytest.mark.unit
class TestAccessors:
    """Node and connection traversal"""

    def test_iter_nodes_tolerates_bad_entries(self):
        """Non-mapping nodes should be yielded as empty mappings"""
        assert list(iter_nodes({"nodes": [{"id": "1"}, None, "x"]})) == [{"id": "1"}, {}, {}]
        assert list(iter_nodes({"nodes": "oops"})) == []
        assert list(iter_nodes({})) == []

    def test_connection_targets(self, workflow):
        """Each source should appear once with None before its targets"""
        pairs = list(iter_connection_targets(workflow))
        assert pairs == [
            ("Schedule Trigger", None),
            ("Schedule Trigger", "Fetch Orders"),
            ("Fetch Orders", None),
            ("Fetch Orders", "Store Rows"),
        ]

    def test_source_without_links_is_visible(self):
        """A source with empty outputs should still be yielded"""
        assert list(iter_connection_targets({"connections": {"A": {}}})) == [("A", None)]

    @pytest.mark.parametrize(
        "connections",
        [
            ["not", "a", "dict"],
            {"A": "main"},
            {"A": {"main": "x"}},
            {"A": {"main": ["x"]}},
            {"A": {"main": [["x"]]}},
        ],
    )
    def test_bad_shapes_raise(self, connections):
        """Malformed connection structures should raise ValueError"""
        with pytest.raises(ValueError):
            list(iter_connection_targets({"connections": connections}))

    def test_trigger_detection(self):
        """Trigger types contain trigger, webhook or manual"""
        assert is_trigger_node({"type": "n8n-nodes-base.scheduleTrigger"})
        assert is_trigger_node({"type": "n8n-nodes-base.Webhook"})
        assert is_trigger_node({"type": "n8n-nodes-base.manualTrigger"})
        assert not is_trigger_node({"type": "n8n-nodes-base.set"})
        assert not is_trigger_node({"type": None})


@pytest.mark.unit
class TestRuleChecks:
    """Individual rule predicates"""

    def test_valid_workflow_passes_everything(self, workflow):
        """The sample workflow should satisfy every built-in rule"""
        assert all(rule.check(workflow) for rule in default_rules())

    def test_duplicate_ids(self, workflow):
        """Duplicate node ids should fail"""
        workflow["nodes"][1]["id"] = "1"
        assert has_unique_node_ids(workflow) is False

    def test_unhashable_ids_are_compared_by_value(self):
        """Ids that are objects should not crash the uniqueness check"""
        assert has_unique_node_ids({"nodes": [{"id": {"a": 1}}, {"id": {"a": 1}}]}) is False
        assert has_unique_node_ids({"nodes": [{"id": {"a": 1}}, {"id": {"a": 2}}]}) is True

    @pytest.mark.parametrize("position", [None, [0], [0, 0, 0], "0,0", {"x": 0, "y": 0}])
    def test_bad_positions(self, workflow, position):
        """Positions must be two-element sequences"""
        workflow["nodes"][0]["position"] = position
        assert has_node_positions(workflow) is False

    def test_unknown_connection_target(self, workflow):
        """A target that names no node should fail"""
        workflow["connections"]["Fetch Orders"] = _link("Ghost")
        assert has_valid_connections(workflow) is False

    def test_unknown_connection_source(self, workflow):
        """A source that names no node should fail"""
        workflow["connections"]["Ghost"] = _link("Store Rows")
        assert has_valid_connections(workflow) is False

    def test_connections_may_use_ids(self, workflow):
        """Connections referencing node ids should be accepted"""
        workflow["connections"] = {"1": _link("2")}
        assert has_valid_connections(workflow) is True

    def test_zero_connections_are_valid(self, workflow):
        """An empty connections object should pass"""
        workflow["connections"] = {}
        assert has_valid_connections(workflow) is True

    def test_malformed_connections_fail(self, workflow):
        """Unreadable connection structures should fail instead of raising"""
        workflow["connections"] = {"Fetch Orders": "Store Rows"}
        assert has_valid_connections(workflow) is False
        assert has_reachable_nodes(workflow) is False

    @pytest.mark.parametrize(
        "parameters",
        [
            {"apiKey": "123"},
            {"api_key": "123"},
            {"body": "password: hunter2"},
            {"SECRET": "abc"},
        ],
    )
    def test_hardcoded_credentials(self, workflow, parameters):
        """Credential-looking keys should fail, case-insensitively"""
        workflow["nodes"][1]["parameters"] = parameters
        assert has_no_hardcoded_credentials(workflow) is False

    def test_credential_references_are_allowed(self, workflow):
        """A credentials reference block is not a hardcoded secret"""
        assert has_no_hardcoded_credentials(workflow) is True

    @pytest.mark.parametrize("field", ["name", "type", "typeVersion"])
    def test_required_fields(self, workflow, field):
        """Each required node field must be present and non-empty"""
        del workflow["nodes"][2][field]
        assert has_required_node_fields(workflow) is False

    def test_orphan_node_is_unreachable(self, workflow):
        """A node with no path from a trigger should fail reachability"""
        workflow["nodes"].append(
            {"id": "4", "name": "Orphan", "type": "n8n-nodes-base.set", "typeVersion": 1}
        )
        assert has_reachable_nodes(workflow) is False

    def test_workflow_without_trigger(self):
        """Non-trigger nodes need a trigger to be reachable"""
        only_action = {"nodes": [{"name": "Set", "type": "n8n-nodes-base.set"}], "connections": {}}
        only_trigger = {
            "nodes": [{"name": "Hook", "type": "n8n-nodes-base.webhook"}],
            "connections": {},
        }
        assert has_reachable_nodes(only_action) is False
        assert has_reachable_nodes(only_trigger) is True


@pytest.mark.unit
class TestRuleEvaluation:
    """Running rule sets"""

    def test_default_rule_ids_and_severities(self):
        """The built-in rule set should be complete and ordered"""
        rules = default_rules()
        assert [r.id for r in rules] == list(RuleId)
        assert {r.id: r.severity for r in rules}[RuleId.REQUIRED_NODE_FIELDS] is Severity.HIGH
        assert {r.id: r.severity for r in rules}[RuleId.VALID_CONNECTIONS] is Severity.CRITICAL

    def test_outcomes_follow_rule_order(self, workflow):
        """One outcome per rule, in order"""
        workflow["nodes"][1]["id"] = "1"
        outcomes = evaluate_rules(workflow, default_rules())

        assert [o.rule_id for o in outcomes] == list(RuleId)
        assert outcomes[0].passed is False
        assert all(o.passed for o in outcomes[1:])

    def test_raising_check_counts_as_failed(self, workflow):
        """An exception inside a check should be recorded, not raised"""

        def broken(_workflow):
            raise KeyError("nodes")

        rule = ValidationRule(RuleId.UNIQUE_NODE_IDS, "broken", Severity.CRITICAL, broken)
        (outcome,) = evaluate_rules(workflow, [rule])

        assert outcome.passed is False
        assert "nodes" in outcome.error
        assert outcome.to_dict()["error"] == outcome.error

    def test_outcome_wire_form(self, workflow):
        """Outcome dicts should use plain strings"""
        outcome = evaluate_rules(workflow, default_rules())[0]
        assert outcome.to_dict() == {
            "id": "unique-node-ids",
            "severity": "critical",
            "passed": True,
            "description": "All node IDs must be unique",
        }

    def test_rule_wire_form_omits_check(self):
        """Rules should serialize without their callable"""
        data = default_rules()[0].to_dict()
        assert set(data) == {"id", "description", "severity"}
