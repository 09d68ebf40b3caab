"""Pytest configuration and fixtures."""

import os
import tempfile

import pytest

from ruleflow.config import get_testing_config, reset_config
from ruleflow.core.decomposer import WorkflowDecomposer
from ruleflow.core.error_recovery import RetryConfig
from ruleflow.core.reconciler import Reconciler
from ruleflow.models.core import NodeType, Rule, Workflow, WorkflowNode, WorkflowTransition
from ruleflow.storage.database import create_database_engine, create_session_factory, create_tables, drop_tables
from ruleflow.storage.memory import InMemoryRuleStore, InMemoryWorkflowStore
from ruleflow.storage.sql import SqlRuleStore, SqlWorkflowStore


def make_workflow(workflow_id: str = "wf1", enabled: bool = True, name: str = "Support") -> Workflow:
    """trigger(create) -> Open -> end, with t1 (trigger->Open) and t2 (Open->end, "Close")."""
    return Workflow(
        id=workflow_id,
        name=name,
        nodes={
            "trigger": WorkflowNode(id="trigger", type=NodeType.TRIGGER, data={"event": "create"}),
            "open": WorkflowNode(id="open", type=NodeType.STATE, data={"label": "Open"}),
            "end": WorkflowNode(id="end", type=NodeType.END, data={"label": "Done"}),
        },
        transitions=[
            WorkflowTransition(id="t1", from_node_id="trigger", to_node_id="open"),
            WorkflowTransition(id="t2", from_node_id="open", to_node_id="end", label="Close"),
        ],
        entry_node_id="trigger",
        enabled=enabled,
    )


def make_manual_rule(rule_id: str = "m1", **overrides) -> Rule:
    data = {
        "id": rule_id,
        "name": "Tag VIP tickets",
        "type": "automation",
        "conditions": {"all": [{"field": "requester.vip", "operator": "equals", "value": True}]},
        "actions": [{"type": "add_tag", "value": "vip"}],
    }
    data.update(overrides)
    return Rule.model_validate(data)


@pytest.fixture(autouse=True)
def clean_config():
    """Keep the global configuration from leaking between tests."""
    reset_config()
    yield
    reset_config()


@pytest.fixture
def testing_config():
    return get_testing_config()


@pytest.fixture
def workflow_store():
    return InMemoryWorkflowStore()


@pytest.fixture
def rule_store():
    return InMemoryRuleStore()


@pytest.fixture
def reconciler(workflow_store, rule_store):
    return Reconciler(workflow_store, rule_store, WorkflowDecomposer())


@pytest.fixture
def sample_workflow():
    return make_workflow()


@pytest.fixture
def temp_db():
    """Create a temporary SQLite database and yield a session factory bound to it."""
    db_fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(db_fd)

    engine = create_database_engine(f"sqlite:///{db_path}")
    create_tables(engine)

    yield create_session_factory(engine)

    drop_tables(engine)
    engine.dispose()
    try:
        os.unlink(db_path)
    except OSError:
        pass


@pytest.fixture
def sql_workflow_store(temp_db):
    return SqlWorkflowStore(temp_db, RetryConfig(max_attempts=1))


@pytest.fixture
def sql_rule_store(temp_db):
    return SqlRuleStore(temp_db, RetryConfig(max_attempts=1))
