"""In-process stores guarded by re-entrant locks."""

import threading
from typing import Any, Dict, List, Optional

from ..core.exceptions import DuplicateRuleError
from ..core.logging import get_logger
from ..models.core import Rule, Workflow
from .interfaces import RuleStore, WorkflowStore

logger = get_logger(__name__)


class InMemoryWorkflowStore(WorkflowStore):
    """Workflow store backed by a dict; returns copies so callers cannot mutate it."""

    def __init__(self, workflows: Optional[List[Workflow]] = None):
        self._workflows: Dict[str, Workflow] = {}
        self._lock = threading.RLock()
        for workflow in workflows or []:
            self._workflows[workflow.id] = workflow.model_copy(deep=True)

    def get_workflow(self, workflow_id: str) -> Optional[Workflow]:
        with self._lock:
            workflow = self._workflows.get(workflow_id)
            return workflow.model_copy(deep=True) if workflow else None

    def get_active_workflows(self) -> List[Workflow]:
        return [w for w in self.list_workflows() if w.enabled]

    def list_workflows(self) -> List[Workflow]:
        with self._lock:
            workflows = sorted(self._workflows.values(), key=lambda w: w.created_at)
            return [w.model_copy(deep=True) for w in workflows]

    def upsert_workflow(self, workflow: Workflow) -> Workflow:
        with self._lock:
            self._workflows[workflow.id] = workflow.model_copy(deep=True)
        logger.debug(f"Stored workflow {workflow.id} (version {workflow.version})")
        return workflow

    def delete_workflow(self, workflow_id: str) -> bool:
        with self._lock:
            return self._workflows.pop(workflow_id, None) is not None


class InMemoryRuleStore(RuleStore):
    """Rule store holding an immutable-by-convention list.

    Every mutation builds the next list in full and assigns it once under the
    lock, so concurrent readers see either the old or the new list.
    """

    def __init__(self, rules: Optional[List[Rule]] = None):
        self._rules: List[Rule] = [r.model_copy(deep=True) for r in rules or []]
        self._lock = threading.RLock()

    def list(self) -> List[Rule]:
        with self._lock:
            current = self._rules
        return [r.model_copy(deep=True) for r in current]

    def get(self, rule_id: str) -> Optional[Rule]:
        with self._lock:
            for rule in self._rules:
                if rule.id == rule_id:
                    return rule.model_copy(deep=True)
        return None

    def replace_all(self, rules: List[Rule]) -> None:
        new_rules = [r.model_copy(deep=True) for r in rules]
        with self._lock:
            self._rules = new_rules
        logger.debug(f"Replaced rule list ({len(new_rules)} rules)")

    def replace_scope(self, prefix: str, rules: List[Rule]) -> None:
        if not prefix:
            raise ValueError("Scope prefix cannot be empty")
        fresh = [r.model_copy(deep=True) for r in rules]
        with self._lock:
            kept = [r for r in self._rules if not r.id.startswith(prefix)]
            self._rules = kept + fresh
        logger.debug(f"Replaced scope '{prefix}' with {len(fresh)} rules")

    def add(self, rule: Rule) -> Rule:
        with self._lock:
            if any(r.id == rule.id for r in self._rules):
                raise DuplicateRuleError(rule.id)
            self._rules = self._rules + [rule.model_copy(deep=True)]
        return rule

    def update(self, rule_id: str, patch: Dict[str, Any]) -> Optional[Rule]:
        with self._lock:
            for index, rule in enumerate(self._rules):
                if rule.id != rule_id:
                    continue
                merged = Rule.model_validate({**rule.model_dump(), **patch, "id": rule_id})
                new_rules = list(self._rules)
                new_rules[index] = merged
                self._rules = new_rules
                return merged.model_copy(deep=True)
        return None

    def remove(self, rule_id: str) -> bool:
        with self._lock:
            remaining = [r for r in self._rules if r.id != rule_id]
            if len(remaining) == len(self._rules):
                return False
            self._rules = remaining
            return True
