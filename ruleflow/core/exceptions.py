"""Exception hierarchy for ruleflow.

Every error carries a severity, a category and free-form context so it can
be logged or serialized with ``to_dict`` without losing information.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorSeverity(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    VALIDATION = "validation"
    EXECUTION = "execution"
    STORAGE = "storage"
    CONFIGURATION = "configuration"
    OWNERSHIP = "ownership"


class RuleflowError(Exception):
    """
    Base class for ruleflow errors.

    Subclasses tune the class-level ``severity``, ``category``, ``recoverable``
    and ``retry_after`` defaults. Keyword arguments that are not ``None`` are
    stored as context (``workflow_id``, ``rule_id``, ``operation`` and so on).
    """

    severity = ErrorSeverity.MEDIUM
    category = ErrorCategory.EXECUTION
    recoverable = False
    retry_after: Optional[int] = None

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None, **context):
        super().__init__(message)
        self.message = message
        self.error_code = type(self).__name__
        self.details: Dict[str, Any] = dict(details or {})
        self.context: Dict[str, Any] = {k: v for k, v in context.items() if v is not None}
        self.timestamp = datetime.utcnow()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_code": self.error_code,
            "exception_type": type(self).__name__,
            "message": self.message,
            "severity": self.severity.value,
            "category": self.category.value,
            "recoverable": self.recoverable,
            "retry_after": self.retry_after,
            "details": self.details,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }

    def add_context(self, **kwargs) -> "RuleflowError":
        self.context.update(kwargs)
        return self

    def add_details(self, **kwargs) -> "RuleflowError":
        self.details.update(kwargs)
        return self


class WorkflowValidationError(RuleflowError):
    """A workflow that fails validation was used where a valid one is required."""

    category = ErrorCategory.VALIDATION

    def __init__(self, message: str, validation_errors: Optional[List[str]] = None,
                 workflow_id: Optional[str] = None):
        self.validation_errors = list(validation_errors or [])
        details = {"validation_errors": self.validation_errors} if self.validation_errors else None
        super().__init__(message, details, workflow_id=workflow_id)


class RuleValidationError(RuleflowError):
    """A rule definition or patch is malformed."""

    severity = ErrorSeverity.LOW
    category = ErrorCategory.VALIDATION

    def __init__(self, message: str, rule_id: Optional[str] = None):
        super().__init__(message, rule_id=rule_id)


class WorkflowNotFoundError(RuleflowError):
    severity = ErrorSeverity.LOW
    category = ErrorCategory.VALIDATION

    def __init__(self, workflow_id: str):
        super().__init__(f"Workflow '{workflow_id}' not found", workflow_id=workflow_id)


class RuleNotFoundError(RuleflowError):
    severity = ErrorSeverity.LOW
    category = ErrorCategory.VALIDATION

    def __init__(self, rule_id: str):
        super().__init__(f"Rule '{rule_id}' not found", rule_id=rule_id)


class DuplicateRuleError(RuleflowError):
    """The rule ID is already present in the store."""

    severity = ErrorSeverity.LOW
    category = ErrorCategory.STORAGE

    def __init__(self, rule_id: str):
        super().__init__(f"Rule with ID '{rule_id}' already exists", rule_id=rule_id)


class RuleOwnershipError(RuleflowError):
    """The manual rule API touched a workflow-derived rule."""

    category = ErrorCategory.OWNERSHIP

    def __init__(self, message: str, rule_id: Optional[str] = None):
        super().__init__(message, rule_id=rule_id)


class RuleEngineError(RuleflowError):
    """Rule execution could not start, e.g. the ticket context is malformed."""

    severity = ErrorSeverity.HIGH

    def __init__(self, message: str, rule_id: Optional[str] = None, ticket_id: Optional[str] = None):
        super().__init__(message, rule_id=rule_id, ticket_id=ticket_id)


class StorageError(RuleflowError):
    """A store operation failed in the backend; safe to retry."""

    severity = ErrorSeverity.HIGH
    category = ErrorCategory.STORAGE
    recoverable = True
    retry_after = 3

    def __init__(self, message: str, operation: Optional[str] = None, table: Optional[str] = None):
        super().__init__(message, operation=operation, table=table)


class TransientError(RuleflowError):
    recoverable = True
    retry_after = 5


class ConfigurationError(RuleflowError):
    severity = ErrorSeverity.HIGH
    category = ErrorCategory.CONFIGURATION

    def __init__(self, message: str, config_key: Optional[str] = None):
        super().__init__(message, config_key=config_key)


def create_error_response(error: RuleflowError) -> Dict[str, Any]:
    """Flatten an error into the ``error``/``message``/``details``/``context`` shape."""
    data = error.to_dict()
    return {
        "error": data["error_code"],
        "message": data["message"],
        "details": {
            **data["details"],
            "severity": data["severity"],
            "category": data["category"],
            "recoverable": data["recoverable"],
            "retry_after": data["retry_after"],
            "timestamp": data["timestamp"],
        },
        "context": data["context"],
    }
