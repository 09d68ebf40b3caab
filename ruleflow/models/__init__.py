"""Data models for the automation core."""

from .core import (
    NodeType,
    RuleType,
    ConditionOperator,
    ActionType,
    ValidationResult,
    WorkflowNode,
    WorkflowTransition,
    Workflow,
    Condition,
    RuleConditions,
    Action,
    Rule,
    NotificationRequest,
    WebhookRequest,
    ActionResult,
    RuleEvaluationResult,
    ExecuteRulesResult,
    SyncResult,
    AuditEntry,
    WorkflowExport,
)

__all__ = [
    "NodeType",
    "RuleType",
    "ConditionOperator",
    "ActionType",
    "ValidationResult",
    "WorkflowNode",
    "WorkflowTransition",
    "Workflow",
    "Condition",
    "RuleConditions",
    "Action",
    "Rule",
    "NotificationRequest",
    "WebhookRequest",
    "ActionResult",
    "RuleEvaluationResult",
    "ExecuteRulesResult",
    "SyncResult",
    "AuditEntry",
    "WorkflowExport",
]
