"""Tests for workflow structural validation."""

from ruleflow.core.graph import WorkflowGraph
from ruleflow.core.validator import WorkflowValidator
from ruleflow.models.core import NodeType, Workflow, WorkflowNode, WorkflowTransition

from conftest import make_workflow


class TestWorkflowValidator:
    """Test cases for WorkflowValidator."""

    def setup_method(self):
        self.validator = WorkflowValidator()

    def test_valid_workflow(self):
        """Test that a well-formed workflow passes with no errors."""
        result = self.validator.validate(make_workflow())

        assert result.valid is True
        assert result.errors == []
        assert result.warnings == []

    def test_missing_entry_node(self):
        workflow = make_workflow()
        workflow.entry_node_id = ""

        result = self.validator.validate(workflow)

        assert result.valid is False
        assert "Workflow has no entry node" in result.errors

    def test_entry_node_not_in_nodes(self):
        workflow = make_workflow()
        workflow.entry_node_id = "ghost"

        result = self.validator.validate(workflow)

        assert result.valid is False
        assert any("'ghost' does not exist" in e for e in result.errors)

    def test_entry_node_must_be_trigger(self):
        workflow = make_workflow()
        workflow.entry_node_id = "open"

        result = self.validator.validate(workflow)

        assert result.valid is False
        assert any("must be a trigger" in e for e in result.errors)

    def test_transition_to_unknown_node(self):
        workflow = make_workflow()
        workflow.transitions.append(WorkflowTransition(id="t3", from_node_id="open", to_node_id="nowhere"))

        result = self.validator.validate(workflow)

        assert result.valid is False
        assert any("non-existent target node: 'nowhere'" in e for e in result.errors)

    def test_unreachable_node(self):
        workflow = make_workflow()
        workflow.nodes["orphan"] = WorkflowNode(id="orphan", type=NodeType.STATE, data={"label": "Orphan"})

        result = self.validator.validate(workflow)

        assert result.valid is False
        assert any("Unreachable nodes detected: orphan" in e for e in result.errors)

    def test_no_reachable_end(self):
        workflow = make_workflow()
        workflow.transitions = [workflow.transitions[0]]
        del workflow.nodes["end"]

        result = self.validator.validate(workflow)

        assert result.valid is False
        assert "No end node is reachable from the entry node" in result.errors

    def test_duplicate_transition_ids(self):
        workflow = make_workflow()
        workflow.transitions.append(WorkflowTransition(id="t1", from_node_id="open", to_node_id="end"))

        result = self.validator.validate(workflow)

        assert result.valid is False
        assert "Duplicate transition IDs: t1" in result.errors

    def test_node_key_mismatch(self):
        workflow = make_workflow()
        workflow.nodes["renamed"] = workflow.nodes["open"]

        result = self.validator.validate(workflow)

        assert result.valid is False
        assert any("Node key 'renamed'" in e for e in result.errors)

    def test_collects_all_violations(self):
        """Test that validation reports every problem instead of stopping at the first."""
        workflow = make_workflow()
        workflow.entry_node_id = "open"
        workflow.transitions.append(WorkflowTransition(id="t3", from_node_id="ghost", to_node_id="end"))

        result = self.validator.validate(workflow)

        assert len(result.errors) >= 2

    def test_missing_entry_still_reports_reachability(self):
        workflow = Workflow(
            id="w",
            name="Lonely",
            nodes={"s": WorkflowNode(id="s", type=NodeType.STATE, data={"label": "Open"})},
        )

        result = self.validator.validate(workflow)

        assert "Workflow has no entry node" in result.errors
        assert any(e.startswith("Unreachable nodes detected: s.") for e in result.errors)
        assert "No end node is reachable from the entry node" in result.errors

    def test_warnings_do_not_invalidate(self):
        workflow = make_workflow()
        workflow.nodes["trigger"].data = {}
        workflow.nodes["open"].data = {}
        workflow.nodes["extra"] = WorkflowNode(id="extra", type=NodeType.ACTION, data={})
        workflow.transitions.append(WorkflowTransition(id="t3", from_node_id="open", to_node_id="extra"))

        result = self.validator.validate(workflow)

        assert result.valid is True
        assert "Trigger node 'trigger' has no event" in result.warnings
        assert "State node 'open' has no label" in result.warnings
        assert "Action node 'extra' has no action payload" in result.warnings
        assert "Node 'extra' has no outgoing transitions" in result.warnings

    def test_never_raises(self):
        """Test that an unexpected failure is reported, not raised."""
        workflow = make_workflow()
        workflow.nodes = None

        result = self.validator.validate(workflow)

        assert result.valid is False
        assert result.errors[0].startswith("Validation error:")


class TestWorkflowGraph:
    """Test cases for the adjacency view."""

    def test_reachable_from_entry(self):
        graph = WorkflowGraph.from_workflow(make_workflow())

        assert graph.reachable() == frozenset({"trigger", "open", "end"})

    def test_dangling_transitions_are_excluded(self):
        workflow = make_workflow()
        workflow.transitions.append(WorkflowTransition(id="t3", from_node_id="open", to_node_id="ghost"))

        graph = WorkflowGraph.from_workflow(workflow)

        assert [t.id for t in graph.dangling] == ["t3"]
        assert [t.id for t in graph.outgoing["open"]] == ["t2"]

    def test_nearest_upstream_skips_action_nodes(self):
        workflow = make_workflow()
        workflow.nodes["act1"] = WorkflowNode(id="act1", type=NodeType.ACTION, data={"type": "add_tag", "value": "a"})
        workflow.nodes["act2"] = WorkflowNode(id="act2", type=NodeType.ACTION, data={"type": "add_tag", "value": "b"})
        workflow.transitions = [
            WorkflowTransition(id="t1", from_node_id="trigger", to_node_id="act1"),
            WorkflowTransition(id="t2", from_node_id="open", to_node_id="act1"),
            WorkflowTransition(id="t3", from_node_id="act1", to_node_id="act2"),
            WorkflowTransition(id="t4", from_node_id="act2", to_node_id="end"),
        ]

        graph = WorkflowGraph.from_workflow(workflow)
        upstream = graph.nearest_upstream("act2", (NodeType.TRIGGER, NodeType.STATE))

        assert [n.id for n in upstream] == ["trigger", "open"]
