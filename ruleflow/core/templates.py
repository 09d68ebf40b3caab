"""Starter workflow templates.

Each builder returns a complete, valid, disabled workflow with a fresh ID.
"""

import uuid
from typing import Callable, Dict, List, Tuple

from ..models.core import NodeType, Workflow, WorkflowNode, WorkflowTransition


def _node(node_id: str, node_type: NodeType, x: float, y: float, **data) -> WorkflowNode:
    return WorkflowNode(id=node_id, type=node_type, data=data, position={"x": x, "y": y})


def _template(
    name: str,
    description: str,
    nodes: List[WorkflowNode],
    transitions: List[Tuple[str, str, str]],
    entry_node_id: str,
) -> Workflow:
    return Workflow(
        id=str(uuid.uuid4()),
        name=name,
        description=description,
        nodes={node.id: node for node in nodes},
        transitions=[
            WorkflowTransition(id=f"t{index}", from_node_id=source, to_node_id=target, label=label or None)
            for index, (source, target, label) in enumerate(transitions, start=1)
        ],
        entry_node_id=entry_node_id,
        enabled=False,
    )


def simple_lifecycle() -> Workflow:
    """Trigger -> New -> Triage -> In Progress <-> Waiting -> Resolved -> Closed."""
    nodes = [
        _node("trigger", NodeType.TRIGGER, 300, 40, event="create"),
        _node("new", NodeType.STATE, 300, 140, label="New"),
        _node("triage", NodeType.STATE, 300, 240, label="Triage"),
        _node("in_progress", NodeType.STATE, 300, 340, label="In Progress"),
        _node("waiting", NodeType.STATE, 300, 440, label="Waiting"),
        _node("resolved", NodeType.STATE, 300, 540, label="Resolved"),
        _node("closed", NodeType.END, 300, 640, label="Closed"),
    ]
    transitions = [
        ("trigger", "new", ""),
        ("new", "triage", "Review"),
        ("triage", "in_progress", "Assign"),
        ("in_progress", "waiting", "Waiting on customer"),
        ("waiting", "in_progress", "Customer replied"),
        ("in_progress", "resolved", "Resolve"),
        ("resolved", "closed", "Close"),
        ("resolved", "in_progress", "Reopen"),
    ]
    return _template(
        "Simple Lifecycle",
        "Standard ticket lifecycle: New -> Triage -> In Progress -> Waiting -> Resolved -> Closed",
        nodes,
        transitions,
        "trigger",
    )


def escalation_pipeline() -> Workflow:
    """Triage either escalates (urgent priority, tag) or queues before work starts."""
    nodes = [
        _node("trigger", NodeType.TRIGGER, 300, 40, event="create"),
        _node("triage", NodeType.STATE, 300, 160, label="Triage"),
        _node("escalate", NodeType.ACTION, 120, 300, actions=[
            {"type": "set_priority", "value": "urgent"},
            {"type": "add_tag", "value": "escalated"},
        ]),
        _node("queue", NodeType.STATE, 480, 300, label="Queue"),
        _node("in_progress", NodeType.STATE, 300, 440, label="In Progress"),
        _node("resolved", NodeType.END, 300, 560, label="Resolved"),
    ]
    transitions = [
        ("trigger", "triage", ""),
        ("triage", "escalate", "Urgent"),
        ("triage", "queue", "Normal"),
        ("escalate", "in_progress", ""),
        ("queue", "in_progress", "Pick up"),
        ("in_progress", "resolved", "Resolve"),
    ]
    return _template(
        "Escalation Pipeline",
        "Route urgent tickets to immediate escalation, others to a queue",
        nodes,
        transitions,
        "trigger",
    )


TEMPLATES: Dict[str, Tuple[str, Callable[[], Workflow]]] = {
    "simple_lifecycle": ("Simple Lifecycle", simple_lifecycle),
    "escalation_pipeline": ("Escalation Pipeline", escalation_pipeline),
}


def create_from_template(key: str) -> Workflow:
    """Build a fresh workflow from the template registered under ``key``."""
    if key not in TEMPLATES:
        raise ValueError(f"Unknown workflow template: {key}. Available: {sorted(TEMPLATES)}")
    _, builder = TEMPLATES[key]
    return builder()
