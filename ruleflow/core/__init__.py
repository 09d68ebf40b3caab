"""Core automation components."""

from .exceptions import (
    RuleflowError,
    WorkflowValidationError,
    WorkflowNotFoundError,
    RuleValidationError,
    RuleNotFoundError,
    DuplicateRuleError,
    RuleOwnershipError,
    RuleEngineError,
    StorageError,
    TransientError,
    ConfigurationError,
)
from .logging import setup_logging, get_logger
from .validator import WorkflowValidator
from .decomposer import WorkflowDecomposer, RuleMappingStrategy, DefaultRuleMapping
from .conditions import ConditionEvaluator
from .actions import ActionExecutor
from .audit import AuditLog
from .engine import RuleEngine

__all__ = [
    "RuleflowError",
    "WorkflowValidationError",
    "WorkflowNotFoundError",
    "RuleValidationError",
    "RuleNotFoundError",
    "DuplicateRuleError",
    "RuleOwnershipError",
    "RuleEngineError",
    "StorageError",
    "TransientError",
    "ConfigurationError",
    "setup_logging",
    "get_logger",
    "WorkflowValidator",
    "WorkflowDecomposer",
    "RuleMappingStrategy",
    "DefaultRuleMapping",
    "ConditionEvaluator",
    "ActionExecutor",
    "AuditLog",
    "RuleEngine",
]
