"""Structural validation of workflow graphs."""

from typing import List

from ..models.core import NodeType, ValidationResult, Workflow
from .graph import WorkflowGraph
from .logging import get_logger

logger = get_logger(__name__)


class WorkflowValidator:
    """Checks that a workflow graph can be trusted for compilation."""

    def validate(self, workflow: Workflow) -> ValidationResult:
        """
        Validate a workflow for structural correctness.

        All violations are collected rather than failing on the first one.
        This method never raises; an unexpected failure is reported as an
        error in the result.

        Args:
            workflow: The workflow to validate

        Returns:
            ValidationResult: Validation results with errors and warnings
        """
        logger.debug(f"Validating workflow: {workflow.id}")

        errors: List[str] = []
        warnings: List[str] = []

        try:
            graph = WorkflowGraph.from_workflow(workflow)

            self._validate_node_keys(workflow, errors)
            self._validate_entry_node(workflow, errors)
            self._validate_transitions(workflow, graph, errors)
            self._validate_reachability(workflow, graph, errors)
            self._collect_warnings(graph, warnings)
        except Exception as e:
            logger.error(f"Error during workflow validation: {str(e)}")
            errors.append(f"Validation error: {str(e)}")

        result = ValidationResult(valid=len(errors) == 0, errors=errors, warnings=warnings)
        logger.debug(f"Workflow validation completed. Valid: {result.valid}, "
                     f"Errors: {len(result.errors)}, Warnings: {len(result.warnings)}")
        return result

    def _validate_node_keys(self, workflow: Workflow, errors: List[str]):
        for key, node in workflow.nodes.items():
            if key != node.id:
                errors.append(f"Node key '{key}' does not match node ID '{node.id}'")

    def _validate_entry_node(self, workflow: Workflow, errors: List[str]):
        if not workflow.entry_node_id:
            errors.append("Workflow has no entry node")
            return

        entry = workflow.nodes.get(workflow.entry_node_id)
        if entry is None:
            errors.append(f"Entry node '{workflow.entry_node_id}' does not exist")
        elif entry.type != NodeType.TRIGGER:
            errors.append(
                f"Entry node '{workflow.entry_node_id}' must be a trigger, not '{entry.type.value}'"
            )

    def _validate_transitions(self, workflow: Workflow, graph: WorkflowGraph, errors: List[str]):
        for transition in graph.dangling:
            if transition.from_node_id not in workflow.nodes:
                errors.append(
                    f"Transition '{transition.id}' references non-existent source node: "
                    f"'{transition.from_node_id}'"
                )
            if transition.to_node_id not in workflow.nodes:
                errors.append(
                    f"Transition '{transition.id}' references non-existent target node: "
                    f"'{transition.to_node_id}'"
                )

        # Transition IDs become rule IDs
        seen = set()
        duplicates = set()
        for transition in workflow.transitions:
            if transition.id in seen:
                duplicates.add(transition.id)
            seen.add(transition.id)
        if duplicates:
            errors.append(f"Duplicate transition IDs: {', '.join(sorted(duplicates))}")

    def _validate_reachability(self, workflow: Workflow, graph: WorkflowGraph, errors: List[str]):
        # Without a valid entry node nothing is reachable
        reachable = graph.reachable()
        unreachable = set(workflow.nodes) - reachable
        if unreachable:
            errors.append(
                f"Unreachable nodes detected: {', '.join(sorted(unreachable))}. "
                "All nodes must be reachable from the entry node."
            )

        if not any(workflow.nodes[node_id].type == NodeType.END for node_id in reachable):
            errors.append("No end node is reachable from the entry node")

    def _collect_warnings(self, graph: WorkflowGraph, warnings: List[str]):
        for node_id, node in graph.nodes.items():
            if node.type != NodeType.END and not graph.outgoing.get(node_id):
                warnings.append(f"Node '{node_id}' has no outgoing transitions")

            if node.type == NodeType.TRIGGER and not node.data.get("event"):
                warnings.append(f"Trigger node '{node_id}' has no event")
            elif node.type == NodeType.STATE and not node.data.get("label"):
                warnings.append(f"State node '{node_id}' has no label")
            elif node.type == NodeType.ACTION and not node.data:
                warnings.append(f"Action node '{node_id}' has no action payload")
