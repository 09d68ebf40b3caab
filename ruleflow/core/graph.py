"""Immutable adjacency view over a workflow."""

from collections import deque
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, List, Optional, Set, Tuple

from ..models.core import NodeType, Workflow, WorkflowNode, WorkflowTransition


@dataclass(frozen=True)
class WorkflowGraph:
    """Adjacency built once per workflow and shared by validation and compilation.

    Transitions whose endpoints are not both known nodes are kept aside in
    ``dangling`` and take no part in traversal.
    """

    nodes: Dict[str, WorkflowNode]
    outgoing: Dict[str, Tuple[WorkflowTransition, ...]]
    incoming: Dict[str, Tuple[WorkflowTransition, ...]]
    dangling: Tuple[WorkflowTransition, ...]
    entry_node_id: str

    @classmethod
    def from_workflow(cls, workflow: Workflow) -> "WorkflowGraph":
        outgoing: Dict[str, List[WorkflowTransition]] = {node_id: [] for node_id in workflow.nodes}
        incoming: Dict[str, List[WorkflowTransition]] = {node_id: [] for node_id in workflow.nodes}
        dangling: List[WorkflowTransition] = []

        for transition in workflow.transitions:
            if transition.from_node_id in workflow.nodes and transition.to_node_id in workflow.nodes:
                outgoing[transition.from_node_id].append(transition)
                incoming[transition.to_node_id].append(transition)
            else:
                dangling.append(transition)

        return cls(
            nodes=dict(workflow.nodes),
            outgoing={key: tuple(value) for key, value in outgoing.items()},
            incoming={key: tuple(value) for key, value in incoming.items()},
            dangling=tuple(dangling),
            entry_node_id=workflow.entry_node_id,
        )

    def node(self, node_id: str) -> Optional[WorkflowNode]:
        return self.nodes.get(node_id)

    def reachable(self, start: Optional[str] = None) -> FrozenSet[str]:
        """Node IDs reachable from ``start`` (the entry node by default), inclusive."""
        origin = start if start is not None else self.entry_node_id
        if origin not in self.nodes:
            return frozenset()

        seen: Set[str] = {origin}
        queue = deque([origin])
        while queue:
            current = queue.popleft()
            for transition in self.outgoing.get(current, ()):
                if transition.to_node_id not in seen:
                    seen.add(transition.to_node_id)
                    queue.append(transition.to_node_id)
        return frozenset(seen)

    def nearest_upstream(self, node_id: str, kinds: Iterable[NodeType]) -> List[WorkflowNode]:
        """Closest predecessors of ``node_id`` whose type is in ``kinds``.

        Walks backwards through nodes of any other type; each matching node is
        returned once, in discovery order.
        """
        wanted = set(kinds)
        found: List[WorkflowNode] = []
        seen: Set[str] = {node_id}
        queue = deque([node_id])
        while queue:
            current = queue.popleft()
            for transition in self.incoming.get(current, ()):
                source_id = transition.from_node_id
                if source_id in seen:
                    continue
                seen.add(source_id)
                source = self.nodes[source_id]
                if source.type in wanted:
                    found.append(source)
                else:
                    queue.append(source_id)
        return found
