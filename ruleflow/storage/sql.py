"""SQLAlchemy-backed stores.

Each mutation runs inside a single transaction, which is what makes
``replace_all``/``replace_scope`` atomic across processes sharing the
database.
"""

from typing import Any, Dict, List, Optional
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from ..core.error_recovery import RetryConfig, with_retry
from ..core.exceptions import DuplicateRuleError, StorageError
from ..core.logging import get_logger
from ..models.core import Rule, Workflow
from .interfaces import RuleStore, WorkflowStore
from .models import RuleModel, WorkflowModel

logger = get_logger(__name__)


def _workflow_to_row_values(workflow: Workflow) -> Dict[str, Any]:
    return {
        "name": workflow.name,
        "description": workflow.description,
        "flow": {
            "nodes": {key: node.model_dump(mode="json") for key, node in workflow.nodes.items()},
            "transitions": [t.model_dump(mode="json") for t in workflow.transitions],
            "entry_node_id": workflow.entry_node_id,
        },
        "enabled": workflow.enabled,
        "version": workflow.version,
        "created_at": workflow.created_at,
        "updated_at": workflow.updated_at,
    }


def _row_to_workflow(row: WorkflowModel) -> Workflow:
    flow = row.flow or {}
    return Workflow(
        id=row.id,
        name=row.name,
        description=row.description,
        nodes=flow.get("nodes", {}),
        transitions=flow.get("transitions", []),
        entry_node_id=flow.get("entry_node_id", ""),
        enabled=row.enabled,
        version=row.version,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _rule_to_row(rule: Rule, position: int) -> RuleModel:
    return RuleModel(
        id=rule.id,
        position=position,
        name=rule.name,
        type=rule.type.value,
        enabled=rule.enabled,
        conditions=rule.conditions.model_dump(mode="json"),
        actions=[a.model_dump(mode="json") for a in rule.actions],
    )


def _row_to_rule(row: RuleModel) -> Rule:
    return Rule(
        id=row.id,
        name=row.name,
        type=row.type,
        enabled=row.enabled,
        conditions=row.conditions,
        actions=row.actions,
    )


class SqlWorkflowStore(WorkflowStore):
    """Workflow store persisted through SQLAlchemy."""

    def __init__(self, session_factory: sessionmaker, retry_config: Optional[RetryConfig] = None):
        self._session_factory = session_factory
        self.retry_config = retry_config or RetryConfig()

    @with_retry()
    def get_workflow(self, workflow_id: str) -> Optional[Workflow]:
        try:
            with self._session_factory() as session:
                row = session.query(WorkflowModel).filter(WorkflowModel.id == workflow_id).first()
                return _row_to_workflow(row) if row else None
        except SQLAlchemyError as e:
            logger.error(f"Database error while retrieving workflow {workflow_id}: {str(e)}")
            raise StorageError(f"Failed to retrieve workflow: {str(e)}", operation="get_workflow", table="workflows")

    @with_retry()
    def get_active_workflows(self) -> List[Workflow]:
        try:
            with self._session_factory() as session:
                rows = (
                    session.query(WorkflowModel)
                    .filter(WorkflowModel.enabled.is_(True))
                    .order_by(WorkflowModel.created_at)
                    .all()
                )
                return [_row_to_workflow(row) for row in rows]
        except SQLAlchemyError as e:
            logger.error(f"Database error while listing active workflows: {str(e)}")
            raise StorageError(f"Failed to list active workflows: {str(e)}", operation="get_active_workflows", table="workflows")

    @with_retry()
    def list_workflows(self) -> List[Workflow]:
        try:
            with self._session_factory() as session:
                rows = session.query(WorkflowModel).order_by(WorkflowModel.created_at).all()
                return [_row_to_workflow(row) for row in rows]
        except SQLAlchemyError as e:
            logger.error(f"Database error while listing workflows: {str(e)}")
            raise StorageError(f"Failed to list workflows: {str(e)}", operation="list_workflows", table="workflows")

    @with_retry()
    def upsert_workflow(self, workflow: Workflow) -> Workflow:
        values = _workflow_to_row_values(workflow)
        try:
            with self._session_factory.begin() as session:
                row = session.get(WorkflowModel, workflow.id)
                if row is None:
                    session.add(WorkflowModel(id=workflow.id, **values))
                else:
                    for key, value in values.items():
                        setattr(row, key, value)
            logger.debug(f"Stored workflow {workflow.id} (version {workflow.version})")
            return workflow
        except SQLAlchemyError as e:
            logger.error(f"Database error while storing workflow {workflow.id}: {str(e)}")
            raise StorageError(f"Failed to store workflow: {str(e)}", operation="upsert_workflow", table="workflows")

    @with_retry()
    def delete_workflow(self, workflow_id: str) -> bool:
        try:
            with self._session_factory.begin() as session:
                deleted = session.query(WorkflowModel).filter(WorkflowModel.id == workflow_id).delete()
            return deleted > 0
        except SQLAlchemyError as e:
            logger.error(f"Database error while deleting workflow {workflow_id}: {str(e)}")
            raise StorageError(f"Failed to delete workflow: {str(e)}", operation="delete_workflow", table="workflows")


class SqlRuleStore(RuleStore):
    """Rule store persisted through SQLAlchemy, ordered by ``position``."""

    def __init__(self, session_factory: sessionmaker, retry_config: Optional[RetryConfig] = None):
        self._session_factory = session_factory
        self.retry_config = retry_config or RetryConfig()

    @with_retry()
    def list(self) -> List[Rule]:
        try:
            with self._session_factory() as session:
                rows = session.query(RuleModel).order_by(RuleModel.position).all()
                return [_row_to_rule(row) for row in rows]
        except SQLAlchemyError as e:
            logger.error(f"Database error while listing rules: {str(e)}")
            raise StorageError(f"Failed to list rules: {str(e)}", operation="list", table="rules")

    @with_retry()
    def get(self, rule_id: str) -> Optional[Rule]:
        try:
            with self._session_factory() as session:
                row = session.get(RuleModel, rule_id)
                return _row_to_rule(row) if row else None
        except SQLAlchemyError as e:
            logger.error(f"Database error while retrieving rule {rule_id}: {str(e)}")
            raise StorageError(f"Failed to retrieve rule: {str(e)}", operation="get", table="rules")

    @with_retry()
    def replace_all(self, rules: List[Rule]) -> None:
        try:
            with self._session_factory.begin() as session:
                session.query(RuleModel).delete()
                session.flush()
                session.add_all([_rule_to_row(rule, position) for position, rule in enumerate(rules)])
            logger.debug(f"Replaced rule table ({len(rules)} rules)")
        except SQLAlchemyError as e:
            logger.error(f"Database error while replacing rules: {str(e)}")
            raise StorageError(f"Failed to replace rules: {str(e)}", operation="replace_all", table="rules")

    @with_retry()
    def replace_scope(self, prefix: str, rules: List[Rule]) -> None:
        if not prefix:
            raise ValueError("Scope prefix cannot be empty")
        try:
            with self._session_factory.begin() as session:
                session.query(RuleModel).filter(
                    RuleModel.id.startswith(prefix, autoescape=True)
                ).delete(synchronize_session=False)
                session.flush()
                start = (session.query(func.max(RuleModel.position)).scalar() or 0) + 1
                session.add_all([_rule_to_row(rule, start + offset) for offset, rule in enumerate(rules)])
            logger.debug(f"Replaced scope '{prefix}' with {len(rules)} rules")
        except SQLAlchemyError as e:
            logger.error(f"Database error while replacing scope '{prefix}': {str(e)}")
            raise StorageError(f"Failed to replace rules: {str(e)}", operation="replace_scope", table="rules")

    @with_retry()
    def add(self, rule: Rule) -> Rule:
        try:
            with self._session_factory.begin() as session:
                if session.get(RuleModel, rule.id) is not None:
                    raise DuplicateRuleError(rule.id)
                start = (session.query(func.max(RuleModel.position)).scalar() or 0) + 1
                session.add(_rule_to_row(rule, start))
            return rule
        except SQLAlchemyError as e:
            logger.error(f"Database error while adding rule {rule.id}: {str(e)}")
            raise StorageError(f"Failed to add rule: {str(e)}", operation="add", table="rules")

    @with_retry()
    def update(self, rule_id: str, patch: Dict[str, Any]) -> Optional[Rule]:
        try:
            with self._session_factory.begin() as session:
                row = session.get(RuleModel, rule_id)
                if row is None:
                    return None
                merged = Rule.model_validate({**_row_to_rule(row).model_dump(), **patch, "id": rule_id})
                replacement = _rule_to_row(merged, row.position)
                for column in ("name", "type", "enabled", "conditions", "actions"):
                    setattr(row, column, getattr(replacement, column))
            return merged
        except SQLAlchemyError as e:
            logger.error(f"Database error while updating rule {rule_id}: {str(e)}")
            raise StorageError(f"Failed to update rule: {str(e)}", operation="update", table="rules")

    @with_retry()
    def remove(self, rule_id: str) -> bool:
        try:
            with self._session_factory.begin() as session:
                deleted = session.query(RuleModel).filter(RuleModel.id == rule_id).delete()
            return deleted > 0
        except SQLAlchemyError as e:
            logger.error(f"Database error while removing rule {rule_id}: {str(e)}")
            raise StorageError(f"Failed to remove rule: {str(e)}", operation="remove", table="rules")
