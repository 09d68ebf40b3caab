"""Component factory wiring stores, compiler, reconciler and engine together."""

from typing import Optional, Union

from sqlalchemy import Engine

from .config import EngineConfig, StorageBackend, get_config
from .core.actions import ActionExecutor
from .core.audit import AuditLog
from .core.conditions import ConditionEvaluator
from .core.decomposer import DefaultRuleMapping, WorkflowDecomposer
from .core.engine import RuleEngine
from .core.error_recovery import RetryConfig
from .core.exceptions import ConfigurationError
from .core.logging import get_logger, setup_logging
from .core.reconciler import Reconciler
from .core.rule_manager import RuleManager
from .core.validator import WorkflowValidator
from .core.workflow_manager import WorkflowManager
from .storage.database import create_database_engine, create_session_factory, create_tables
from .storage.interfaces import RuleStore, WorkflowStore
from .storage.memory import InMemoryRuleStore, InMemoryWorkflowStore
from .storage.sql import SqlRuleStore, SqlWorkflowStore


class RuleflowComponents:
    """Container for the wired automation core."""

    def __init__(self):
        self.config: Optional[EngineConfig] = None
        self.database_engine: Optional[Engine] = None
        self.workflow_store: Optional[WorkflowStore] = None
        self.rule_store: Optional[RuleStore] = None
        self.validator: Optional[WorkflowValidator] = None
        self.decomposer: Optional[WorkflowDecomposer] = None
        self.reconciler: Optional[Reconciler] = None
        self.audit_log: Optional[AuditLog] = None
        self.engine: Optional[RuleEngine] = None
        self.rule_manager: Optional[RuleManager] = None
        self.workflow_manager: Optional[WorkflowManager] = None

    def close(self):
        """Release the database engine, if any."""
        if self.database_engine is not None:
            self.database_engine.dispose()
            self.database_engine = None


def create_components(
    config: Optional[EngineConfig] = None,
    backend: Optional[Union[StorageBackend, str]] = None,
    configure_logging: bool = False,
) -> RuleflowComponents:
    """
    Build a fully wired automation core.

    Args:
        config: Configuration; the global configuration is used when omitted
        backend: Overrides ``config.storage_backend``
        configure_logging: Also apply the logging settings from ``config``

    Returns:
        RuleflowComponents: The wired components

    Raises:
        ConfigurationError: If the storage backend is unknown
    """
    config = config or get_config()
    try:
        backend = StorageBackend(backend or config.storage_backend)
    except ValueError:
        raise ConfigurationError(f"Unknown storage backend: {backend}", config_key="storage_backend")

    if configure_logging:
        setup_logging(
            level=config.log_level.value,
            log_file=config.log_file,
            structured=config.log_structured,
        )
    logger = get_logger(__name__)

    components = RuleflowComponents()
    components.config = config

    if backend == StorageBackend.SQL:
        engine = create_database_engine(
            config.database_url,
            echo=config.database_echo,
            connect_args=config.get_database_connect_args(),
        )
        create_tables(engine)
        session_factory = create_session_factory(engine)
        retry_config = RetryConfig(max_attempts=config.store_retry_attempts)

        components.database_engine = engine
        components.workflow_store = SqlWorkflowStore(session_factory, retry_config)
        components.rule_store = SqlRuleStore(session_factory, retry_config)
    else:
        components.workflow_store = InMemoryWorkflowStore()
        components.rule_store = InMemoryRuleStore()

    components.validator = WorkflowValidator()
    components.decomposer = WorkflowDecomposer(
        validator=components.validator,
        strategy=DefaultRuleMapping(terminal_status=config.terminal_status),
        prefix=config.derived_rule_prefix,
    )
    components.reconciler = Reconciler(
        components.workflow_store, components.rule_store, components.decomposer
    )
    components.audit_log = AuditLog(max_entries=config.audit_log_size)
    components.engine = RuleEngine(
        components.rule_store,
        evaluator=ConditionEvaluator(),
        executor=ActionExecutor(
            default_channel=config.default_notification_channel,
            escalation_priority=config.escalation_priority,
            closed_status=config.terminal_status,
        ),
        audit_log=components.audit_log,
    )
    components.rule_manager = RuleManager(components.rule_store, prefix=config.derived_rule_prefix)
    components.workflow_manager = WorkflowManager(
        components.workflow_store, components.reconciler, components.validator
    )

    logger.info(f"Automation core initialized with {backend.value} storage")
    return components
