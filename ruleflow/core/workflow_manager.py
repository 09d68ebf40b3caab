"""Workflow lifecycle: validate, persist and resynchronize derived rules."""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

from ..models.core import Workflow, WorkflowExport
from ..storage.interfaces import WorkflowStore
from .exceptions import WorkflowNotFoundError, WorkflowValidationError
from .logging import get_logger
from .reconciler import Reconciler
from .templates import create_from_template
from .validator import WorkflowValidator

logger = get_logger(__name__)

EXPORT_FORMAT = "ruleflow-workflow-v1"


def _is_structural_edit(before: Workflow, after: Workflow) -> bool:
    return (
        before.nodes != after.nodes
        or before.transitions != after.transitions
        or before.entry_node_id != after.entry_node_id
    )


class WorkflowManager:
    """Manages workflow definitions and keeps their derived rules current.

    Every save goes validator -> store -> ``Reconciler.sync_one``. Enabled
    workflows must validate; disabled drafts may be stored with errors so
    they can be finished later.
    """

    def __init__(
        self,
        workflow_store: WorkflowStore,
        reconciler: Reconciler,
        validator: Optional[WorkflowValidator] = None,
    ):
        self.workflow_store = workflow_store
        self.reconciler = reconciler
        self.validator = validator or WorkflowValidator()

    def save_workflow(self, workflow: Workflow) -> Workflow:
        """
        Validate and store a workflow, then resync its derived rules.

        An existing workflow keeps its original creation time; its version is
        bumped only when nodes, transitions or the entry node changed.

        Args:
            workflow: The workflow to store

        Returns:
            Workflow: The stored workflow

        Raises:
            WorkflowValidationError: If an enabled workflow fails validation
        """
        result = self.validator.validate(workflow)
        if not result.valid:
            if workflow.enabled:
                error_msg = f"Workflow validation failed: {'; '.join(result.errors)}"
                logger.error(error_msg)
                raise WorkflowValidationError(error_msg, validation_errors=result.errors, workflow_id=workflow.id)
            logger.info(f"Storing draft workflow {workflow.id} with {len(result.errors)} validation errors")

        if result.warnings:
            logger.warning(f"Workflow validation warnings: {'; '.join(result.warnings)}")

        existing = self.workflow_store.get_workflow(workflow.id)
        updates: Dict[str, Any] = {"updated_at": datetime.utcnow()}
        if existing is not None:
            structural = _is_structural_edit(existing, workflow)
            updates["version"] = existing.version + 1 if structural else existing.version
            updates["created_at"] = existing.created_at
        to_store = workflow.model_copy(update=updates, deep=True)

        stored = self.workflow_store.upsert_workflow(to_store)
        sync = self.reconciler.sync_one(stored.id, stored.enabled)
        logger.info(f"Saved workflow {stored.id} (version {stored.version}, {sync.rule_count} derived rules)")
        return stored

    def create_workflow(self, data: Union[Workflow, Dict[str, Any]]) -> Workflow:
        """Create a new workflow; an ID is generated when none is given."""
        payload = data.model_dump() if isinstance(data, Workflow) else dict(data)
        if not payload.get("id"):
            payload["id"] = str(uuid.uuid4())

        if self.workflow_store.get_workflow(payload["id"]) is not None:
            raise WorkflowValidationError(
                f"Workflow with ID '{payload['id']}' already exists", workflow_id=payload["id"]
            )

        try:
            workflow = Workflow.model_validate(payload)
        except ValidationError as e:
            raise WorkflowValidationError(f"Invalid workflow: {str(e)}", workflow_id=payload["id"])

        return self.save_workflow(workflow)

    def create_from_template(self, key: str) -> Workflow:
        """Create and store a disabled workflow from a starter template."""
        return self.create_workflow(create_from_template(key))

    def get_workflow(self, workflow_id: str) -> Workflow:
        workflow = self.workflow_store.get_workflow(workflow_id)
        if workflow is None:
            raise WorkflowNotFoundError(workflow_id)
        return workflow

    def list_workflows(self) -> List[Workflow]:
        return self.workflow_store.list_workflows()

    def set_enabled(self, workflow_id: str, enabled: bool) -> Workflow:
        """Enable or disable a workflow; enabling requires a valid graph."""
        workflow = self.get_workflow(workflow_id)
        return self.save_workflow(workflow.model_copy(update={"enabled": enabled}))

    def delete_workflow(self, workflow_id: str) -> bool:
        """Delete a workflow and drop its derived rules."""
        deleted = self.workflow_store.delete_workflow(workflow_id)
        self.reconciler.sync_one(workflow_id, False)
        if deleted:
            logger.info(f"Deleted workflow {workflow_id}")
        else:
            logger.warning(f"Workflow {workflow_id} not found for deletion")
        return deleted

    def export_workflow(self, workflow_id: str) -> WorkflowExport:
        """Export a workflow with the rules it compiles to (none if it is invalid)."""
        workflow = self.get_workflow(workflow_id)
        rules = []
        if self.validator.validate(workflow).valid:
            rules = self.reconciler.decomposer.compile(workflow)
        return WorkflowExport(
            format=EXPORT_FORMAT,
            workflow=workflow,
            exported_at=datetime.utcnow(),
            rules=rules,
        )

    def import_workflow(self, export: Union[WorkflowExport, Dict[str, Any]], keep_id: bool = False) -> Workflow:
        """
        Import an exported workflow.

        The imported copy is disabled and starts at version 1; its rules are
        recompiled on enable rather than taken from the export. A fresh ID
        is assigned unless ``keep_id`` is set.

        Raises:
            WorkflowValidationError: If the export is malformed or of an
                unsupported format
        """
        try:
            document = export if isinstance(export, WorkflowExport) else WorkflowExport.model_validate(export)
        except ValidationError as e:
            raise WorkflowValidationError(f"Invalid workflow export: {str(e)}")

        if document.format != EXPORT_FORMAT:
            raise WorkflowValidationError(f"Unsupported export format: {document.format}")

        now = datetime.utcnow()
        imported = document.workflow.model_copy(update={
            "id": document.workflow.id if keep_id else str(uuid.uuid4()),
            "enabled": False,
            "version": 1,
            "created_at": now,
            "updated_at": now,
        }, deep=True)
        return self.create_workflow(imported)
