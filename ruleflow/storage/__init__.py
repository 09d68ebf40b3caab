"""Workflow and rule stores."""

from .interfaces import WorkflowStore, RuleStore
from .memory import InMemoryWorkflowStore, InMemoryRuleStore
from .database import Base, create_database_engine, create_session_factory, create_tables, drop_tables
from .models import WorkflowModel, RuleModel
from .sql import SqlWorkflowStore, SqlRuleStore

__all__ = [
    "WorkflowStore",
    "RuleStore",
    "InMemoryWorkflowStore",
    "InMemoryRuleStore",
    "Base",
    "create_database_engine",
    "create_session_factory",
    "create_tables",
    "drop_tables",
    "WorkflowModel",
    "RuleModel",
    "SqlWorkflowStore",
    "SqlRuleStore",
]
