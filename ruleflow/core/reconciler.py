"""Keeps workflow-derived rules in step with their source workflows."""

import logging
import threading
from typing import List, Optional

from ..models.core import Rule, SyncResult, Workflow
from ..storage.interfaces import RuleStore, WorkflowStore
from .decomposer import WorkflowDecomposer, workflow_scope
from .exceptions import WorkflowValidationError
from .logging import get_logger, log_with_context, logging_context

logger = get_logger(__name__)


class Reconciler:
    """
    The only writer of derived rules.

    Every store mutation is a single ``replace_scope`` call, so manual rules
    and rules of other workflows are never touched and readers never see a
    half-applied sync. Full syncs are serialized per instance.
    """

    def __init__(
        self,
        workflow_store: WorkflowStore,
        rule_store: RuleStore,
        decomposer: Optional[WorkflowDecomposer] = None,
    ):
        self.workflow_store = workflow_store
        self.rule_store = rule_store
        self.decomposer = decomposer or WorkflowDecomposer()
        self._sync_all_lock = threading.Lock()

    @property
    def prefix(self) -> str:
        return self.decomposer.prefix

    def sync_all(self) -> SyncResult:
        """Recompile every enabled workflow and swap in the whole derived namespace."""
        with self._sync_all_lock:
            workflows = self.workflow_store.get_active_workflows()

            desired: List[Rule] = []
            skipped = 0
            for workflow in workflows:
                compiled = self._compile_or_skip(workflow)
                if compiled is None:
                    skipped += 1
                    continue
                desired.extend(compiled)

            self.rule_store.replace_scope(self.prefix, desired)

        log_with_context(
            logger, logging.INFO,
            f"Full sync wrote {len(desired)} derived rules from {len(workflows) - skipped} workflows",
            workflows=len(workflows),
            skipped=skipped,
            rule_count=len(desired),
        )
        return SyncResult(rule_count=len(desired))

    def sync_one(self, workflow_id: str, enabled: bool) -> SyncResult:
        """
        Replace the derived rules of a single workflow.

        A disabled, missing or invalid workflow ends up with no derived
        rules; that is not an error.
        """
        rules: List[Rule] = []
        with logging_context(workflow_id=workflow_id):
            if enabled:
                workflow = self.workflow_store.get_workflow(workflow_id)
                if workflow is None:
                    logger.info(f"Workflow {workflow_id} not found; clearing its derived rules")
                elif not workflow.enabled:
                    logger.info(f"Workflow {workflow_id} is disabled in the store; clearing its derived rules")
                else:
                    rules = self._compile_or_skip(workflow) or []

            self.rule_store.replace_scope(workflow_scope(workflow_id, self.prefix), rules)
            logger.info(f"Synced workflow {workflow_id}: {len(rules)} derived rules")
        return SyncResult(rule_count=len(rules))

    def _compile_or_skip(self, workflow: Workflow) -> Optional[List[Rule]]:
        try:
            return self.decomposer.compile(workflow)
        except WorkflowValidationError as e:
            logger.warning(f"Skipping invalid workflow {workflow.id}: {e.message}")
            return None
