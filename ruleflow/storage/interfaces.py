"""Repository interfaces for workflows and rules."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from ..models.core import Rule, Workflow


class WorkflowStore(ABC):
    """Persistence for workflow graphs."""

    @abstractmethod
    def get_workflow(self, workflow_id: str) -> Optional[Workflow]:
        """Return the workflow with the given ID, or None."""

    @abstractmethod
    def get_active_workflows(self) -> List[Workflow]:
        """Return every workflow with ``enabled=True``."""

    @abstractmethod
    def list_workflows(self) -> List[Workflow]:
        """Return every workflow ordered by creation time."""

    @abstractmethod
    def upsert_workflow(self, workflow: Workflow) -> Workflow:
        """Insert or replace a workflow and return the stored record."""

    @abstractmethod
    def delete_workflow(self, workflow_id: str) -> bool:
        """Delete a workflow; False when it did not exist."""


class RuleStore(ABC):
    """Persistence for the flat rule list shared by manual and derived rules.

    Order is significant: batch execution evaluates rules in list order.
    ``replace_all`` and ``replace_scope`` are single atomic swaps; readers
    never observe a half-applied replacement.
    """

    @abstractmethod
    def list(self) -> List[Rule]:
        """Return a snapshot of every rule in store order."""

    @abstractmethod
    def get(self, rule_id: str) -> Optional[Rule]:
        """Return a single rule, or None."""

    @abstractmethod
    def replace_all(self, rules: List[Rule]) -> None:
        """Atomically replace the whole rule list."""

    @abstractmethod
    def replace_scope(self, prefix: str, rules: List[Rule]) -> None:
        """Atomically drop every rule whose ID starts with ``prefix`` and append ``rules``.

        Rules outside the prefix keep their relative order.
        """

    @abstractmethod
    def add(self, rule: Rule) -> Rule:
        """Append a rule; raises DuplicateRuleError when the ID is taken."""

    @abstractmethod
    def update(self, rule_id: str, patch: Dict[str, Any]) -> Optional[Rule]:
        """Merge ``patch`` into a rule (ID is immutable); None when missing."""

    @abstractmethod
    def remove(self, rule_id: str) -> bool:
        """Remove a rule; False when it did not exist."""
