"""Compilation of workflow graphs into flat automation rules."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from ..models.core import (
    Action,
    ActionType,
    Condition,
    ConditionOperator,
    NodeType,
    Rule,
    RuleConditions,
    RuleType,
    Workflow,
    WorkflowNode,
    WorkflowTransition,
)
from .exceptions import WorkflowValidationError
from .graph import WorkflowGraph
from .logging import get_logger
from .validator import WorkflowValidator

logger = get_logger(__name__)

DERIVED_RULE_PREFIX = "wf-"
DEFAULT_TERMINAL_STATUS = "closed"


def workflow_scope(workflow_id: str, prefix: str = DERIVED_RULE_PREFIX) -> str:
    """ID prefix shared by every rule derived from ``workflow_id``."""
    return f"{prefix}{workflow_id}-"


def derived_rule_id(workflow_id: str, transition_id: str, prefix: str = DERIVED_RULE_PREFIX) -> str:
    return f"{workflow_scope(workflow_id, prefix)}{transition_id}"


def is_derived_rule(rule_id: str, prefix: str = DERIVED_RULE_PREFIX) -> bool:
    """True when ``rule_id`` lives in the namespace owned by the reconciler."""
    return rule_id.startswith(prefix)


class RuleMappingStrategy(ABC):
    """Maps the endpoints of a transition to rule conditions and actions."""

    @abstractmethod
    def conditions_for(self, source: WorkflowNode, graph: WorkflowGraph) -> RuleConditions:
        """Conditions under which a ticket sits at ``source``."""

    @abstractmethod
    def actions_for(self, destination: WorkflowNode, graph: WorkflowGraph) -> List[Action]:
        """Actions that move a ticket into ``destination``."""


class DefaultRuleMapping(RuleMappingStrategy):
    """Standard mapping: triggers match on event, states on status."""

    def __init__(self, terminal_status: str = DEFAULT_TERMINAL_STATUS):
        self.terminal_status = terminal_status

    def conditions_for(self, source: WorkflowNode, graph: WorkflowGraph) -> RuleConditions:
        if source.type == NodeType.ACTION:
            # Action nodes are transient: match whatever trigger or state led into them
            upstream = graph.nearest_upstream(source.id, (NodeType.TRIGGER, NodeType.STATE))
            alternatives = [self._match_node(node) for node in upstream]
            return RuleConditions(any=alternatives)
        return RuleConditions(all=[self._match_node(source)])

    def actions_for(self, destination: WorkflowNode, graph: WorkflowGraph) -> List[Action]:
        if destination.type == NodeType.STATE:
            return [Action(type=ActionType.SET_STATUS.value, value=destination.data.get("label"))]
        if destination.type == NodeType.END:
            return [Action(type=ActionType.SET_STATUS.value, value=self.terminal_status)]
        if destination.type == NodeType.ACTION:
            return self._forward_payload(destination.data)
        return []

    def _match_node(self, node: WorkflowNode) -> Condition:
        if node.type == NodeType.TRIGGER:
            return Condition(field="event", operator=ConditionOperator.EQUALS.value,
                             value=node.data.get("event"))
        if node.type == NodeType.END:
            return Condition(field="status", operator=ConditionOperator.EQUALS.value,
                             value=self.terminal_status)
        return Condition(field="status", operator=ConditionOperator.EQUALS.value,
                         value=node.data.get("label"))

    @staticmethod
    def _forward_payload(data: Dict[str, Any]) -> List[Action]:
        if "actions" in data:
            return [Action.model_validate(item) for item in data["actions"] or []]
        if "type" in data:
            return [Action.model_validate(data)]
        return []


class WorkflowDecomposer:
    """Compiles one validated workflow into its derived rules."""

    def __init__(
        self,
        validator: Optional[WorkflowValidator] = None,
        strategy: Optional[RuleMappingStrategy] = None,
        prefix: str = DERIVED_RULE_PREFIX,
    ):
        self.validator = validator or WorkflowValidator()
        self.strategy = strategy or DefaultRuleMapping()
        self.prefix = prefix

    def compile(self, workflow: Workflow) -> List[Rule]:
        """
        Compile a workflow into one automation rule per transition.

        Args:
            workflow: The workflow to compile

        Returns:
            List[Rule]: Derived rules in transition order

        Raises:
            WorkflowValidationError: If the workflow does not validate or an
                action payload cannot be read as actions
        """
        result = self.validator.validate(workflow)
        if not result.valid:
            raise WorkflowValidationError(
                f"Workflow '{workflow.id}' failed validation: {'; '.join(result.errors)}",
                validation_errors=result.errors,
                workflow_id=workflow.id,
            )

        graph = WorkflowGraph.from_workflow(workflow)
        try:
            rules = [self._compile_transition(workflow, graph, t) for t in workflow.transitions]
        except ValidationError as e:
            raise WorkflowValidationError(
                f"Workflow '{workflow.id}' has a malformed action payload: {str(e)}",
                validation_errors=[str(e)],
                workflow_id=workflow.id,
            )

        logger.debug(f"Compiled workflow {workflow.id} (version {workflow.version}) into {len(rules)} rules")
        return rules

    def _compile_transition(
        self, workflow: Workflow, graph: WorkflowGraph, transition: WorkflowTransition
    ) -> Rule:
        source = graph.nodes[transition.from_node_id]
        destination = graph.nodes[transition.to_node_id]

        if transition.label:
            name = f"[WF] {workflow.name}: {transition.label}"
        else:
            name = f"[WF] {workflow.name}: {source.label} -> {destination.label}"

        return Rule(
            id=derived_rule_id(workflow.id, transition.id, self.prefix),
            name=name,
            type=RuleType.AUTOMATION,
            enabled=workflow.enabled,
            conditions=self.strategy.conditions_for(source, graph),
            actions=self.strategy.actions_for(destination, graph),
        )
