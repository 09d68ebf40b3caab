"""Tests for configuration, templates and component wiring."""

import io
import json
import logging
import os
import tempfile

import pytest
from pydantic import ValidationError

from ruleflow.config import EngineConfig, StorageBackend, get_config, get_testing_config, load_config
from ruleflow.core.error_recovery import RetryConfig, with_retry
from ruleflow.core.exceptions import ConfigurationError, RuleflowError, StorageError, TransientError, create_error_response
from ruleflow.core.logging import ContextFilter, StructuredFormatter, log_with_context, logging_context
from ruleflow.core.templates import TEMPLATES, create_from_template
from ruleflow.core.validator import WorkflowValidator
from ruleflow.factory import create_components
from ruleflow.storage.memory import InMemoryRuleStore
from ruleflow.storage.sql import SqlRuleStore

from conftest import make_manual_rule, make_workflow


class TestEngineConfig:
    """Test cases for EngineConfig."""

    def test_defaults(self):
        config = EngineConfig()

        assert config.derived_rule_prefix == "wf-"
        assert config.terminal_status == "closed"
        assert config.storage_backend == StorageBackend.MEMORY

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("RULEFLOW_TERMINAL_STATUS", "resolved")
        monkeypatch.setenv("RULEFLOW_AUDIT_LOG_SIZE", "10")
        monkeypatch.setenv("RULEFLOW_LOG_STRUCTURED", "true")

        config = EngineConfig.from_env()

        assert config.terminal_status == "resolved"
        assert config.audit_log_size == 10
        assert config.log_structured is True

    def test_get_config_is_cached(self):
        assert get_config() is get_config()

    def test_load_config_reads_env_file(self, monkeypatch):
        monkeypatch.delenv("RULEFLOW_ESCALATION_PRIORITY", raising=False)
        fd, path = tempfile.mkstemp(suffix=".env")
        with os.fdopen(fd, "w") as handle:
            handle.write("RULEFLOW_ESCALATION_PRIORITY=critical\n")

        try:
            config = load_config(path)
            assert config.escalation_priority == "critical"
        finally:
            os.environ.pop("RULEFLOW_ESCALATION_PRIORITY", None)
            os.unlink(path)

    @pytest.mark.parametrize("field,value", [
        ("derived_rule_prefix", ""),
        ("terminal_status", "  "),
        ("audit_log_size", 0),
        ("database_url", "oracle://db"),
    ])
    def test_rejects_invalid_values(self, field, value):
        with pytest.raises(ValidationError):
            EngineConfig(**{field: value})

    def test_testing_config(self):
        config = get_testing_config()

        assert config.database_url == "sqlite:///:memory:"
        assert config.store_retry_attempts == 1


class TestErrors:
    """Test cases for error serialization."""

    def test_error_response(self):
        error = StorageError("boom", operation="list", table="rules")

        response = create_error_response(error)

        assert response["error"] == "StorageError"
        assert response["details"]["recoverable"] is True
        assert response["context"] == {"operation": "list", "table": "rules"}

    def test_to_dict(self):
        error = RuleflowError("bad").add_details(reason="x")

        data = error.to_dict()

        assert data["message"] == "bad"
        assert data["details"] == {"reason": "x"}
        assert data["exception_type"] == "RuleflowError"

    def test_retry_gives_up_on_unrecoverable_errors(self):
        calls = []

        @with_retry(RetryConfig(max_attempts=3, base_delay=0))
        def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise TransientError("try again")
            raise ConfigurationError("broken")

        with pytest.raises(ConfigurationError):
            flaky()
        assert len(calls) == 3


class TestTemplates:
    """Test cases for the starter templates."""

    @pytest.mark.parametrize("key", sorted(TEMPLATES))
    def test_templates_are_valid(self, key):
        workflow = create_from_template(key)

        result = WorkflowValidator().validate(workflow)

        assert result.valid is True, result.errors
        assert workflow.enabled is False

    def test_templates_get_fresh_ids(self):
        assert create_from_template("simple_lifecycle").id != create_from_template("simple_lifecycle").id

    def test_unknown_template(self):
        with pytest.raises(ValueError):
            create_from_template("nope")


class TestFactory:
    """Test cases for create_components."""

    def test_memory_backend(self):
        components = create_components(get_testing_config())

        assert isinstance(components.rule_store, InMemoryRuleStore)
        assert components.database_engine is None

    def test_sql_backend_end_to_end(self):
        db_fd, db_path = tempfile.mkstemp(suffix=".db")
        os.close(db_fd)
        config = EngineConfig(database_url=f"sqlite:///{db_path}", terminal_status="done")
        components = create_components(config, backend="sql")

        try:
            assert isinstance(components.rule_store, SqlRuleStore)
            components.rule_manager.create_rule(make_manual_rule("m1"))
            components.workflow_manager.create_workflow(make_workflow())

            results = components.engine.execute_rules({"id": "tk1", "status": "Open"}, "update", "automation")

            assert {r.rule_id: r.changes for r in results if r.matched} == {"wf-wf1-t2": {"status": "done"}}
            assert [r.id for r in components.rule_store.list()] == ["m1", "wf-wf1-t1", "wf-wf1-t2"]
            assert components.audit_log.entries()[0].rule_id == "wf-wf1-t2"
        finally:
            components.close()
            os.unlink(db_path)

    def test_unknown_backend(self):
        with pytest.raises(ConfigurationError):
            create_components(get_testing_config(), backend="redis")

    def test_custom_prefix_flows_through(self):
        config = get_testing_config().model_copy(update={"derived_rule_prefix": "auto-"})
        components = create_components(config)

        components.workflow_manager.create_workflow(make_workflow())

        assert [r.id for r in components.rule_store.list()] == ["auto-wf1-t1", "auto-wf1-t2"]


class TestLogging:
    """Test cases for structured logging."""

    @pytest.fixture
    def captured(self):
        stream = io.StringIO()
        handler = logging.StreamHandler(stream)
        handler.setFormatter(StructuredFormatter())
        handler.addFilter(ContextFilter())
        logger = logging.getLogger("ruleflow.tests.logging")
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
        yield logger, stream
        logger.removeHandler(handler)

    def test_context_is_attached_inside_block(self, captured):
        logger, stream = captured

        with logging_context(ticket_id="tk1"):
            log_with_context(logger, logging.INFO, "matched", rule_id="m1")
        logger.info("outside")

        inside, outside = [json.loads(line) for line in stream.getvalue().splitlines()]
        assert inside["message"] == "matched"
        assert inside["ticket_id"] == "tk1"
        assert inside["rule_id"] == "m1"
        assert "ticket_id" not in outside

    def test_exception_is_serialized(self, captured):
        logger, stream = captured

        try:
            raise ValueError("bad value")
        except ValueError:
            logger.exception("failed")

        entry = json.loads(stream.getvalue())
        assert entry["exception"]["type"] == "ValueError"
        assert entry["level"] == "ERROR"
