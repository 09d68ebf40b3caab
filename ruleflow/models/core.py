"""Core Pydantic models for workflows, rules and evaluation results."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


class NodeType(str, Enum):
    """Enumeration of workflow node types."""
    TRIGGER = "trigger"
    STATE = "state"
    ACTION = "action"
    END = "end"


class RuleType(str, Enum):
    """Enumeration of automation rule classes."""
    TRIGGER = "trigger"
    AUTOMATION = "automation"
    SLA = "sla"


class ConditionOperator(str, Enum):
    """Operators understood by the condition evaluator."""
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"
    IN = "in"
    NOT_IN = "not_in"
    GT = "gt"
    LT = "lt"
    EXISTS = "exists"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    IS_EMPTY = "is_empty"
    IS_NOT_EMPTY = "is_not_empty"
    MATCHES = "matches"
    CHANGED = "changed"
    CHANGED_TO = "changed_to"
    # Aliases
    IS = "is"
    IS_NOT = "is_not"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"


class ActionType(str, Enum):
    """Action kinds understood by the action executor."""
    SET_STATUS = "set_status"
    SET_PRIORITY = "set_priority"
    ASSIGN = "assign"
    UNASSIGN = "unassign"
    ADD_TAG = "add_tag"
    REMOVE_TAG = "remove_tag"
    SET_FIELD = "set_field"
    ADD_INTERNAL_NOTE = "add_internal_note"
    CLOSE = "close"
    REOPEN = "reopen"
    ESCALATE = "escalate"
    NOTIFY = "notify"
    WEBHOOK = "webhook"
    # Aliases
    SET_ASSIGNEE = "set_assignee"
    ASSIGN_TO = "assign_to"
    SEND_NOTIFICATION = "send_notification"


class ValidationResult(BaseModel):
    """Result of workflow validation."""
    valid: bool = Field(..., description="Whether the workflow is structurally valid")
    errors: List[str] = Field(default_factory=list, description="List of validation errors")
    warnings: List[str] = Field(default_factory=list, description="List of validation warnings")


class WorkflowNode(BaseModel):
    """A node of a workflow graph."""
    id: str = Field(..., description="Unique identifier for the node")
    type: NodeType = Field(..., description="Kind of node")
    data: Dict[str, Any] = Field(default_factory=dict, description="Type-specific payload")
    position: Optional[Dict[str, float]] = Field(None, description="Editor layout, ignored by the engine")

    @field_validator('id')
    @classmethod
    def validate_id(cls, id_value):
        """Ensure node ID is not blank."""
        if not id_value or not id_value.strip():
            raise ValueError("Node ID cannot be empty")
        return id_value.strip()

    @property
    def label(self) -> str:
        """Human readable label used in derived rule names."""
        if self.type == NodeType.TRIGGER:
            return "Trigger"
        if self.type == NodeType.STATE:
            return self.data.get("label") or "State"
        if self.type == NodeType.ACTION:
            return "Action"
        return self.data.get("label") or "End"


class WorkflowTransition(BaseModel):
    """Directed transition between two workflow nodes."""
    id: str = Field(..., description="Unique identifier for the transition")
    from_node_id: str = Field(..., description="Source node ID")
    to_node_id: str = Field(..., description="Destination node ID")
    label: Optional[str] = Field(None, description="Human readable guard or name")

    @field_validator('id', 'from_node_id', 'to_node_id')
    @classmethod
    def validate_ids(cls, value):
        if not value or not value.strip():
            raise ValueError("Transition identifiers cannot be empty")
        return value.strip()


class Workflow(BaseModel):
    """Declarative state graph of a ticket lifecycle.

    Structural invariants (entry node, reachability, end node) are checked by
    the validator rather than on construction, so drafts can be loaded and
    reported on.
    """
    id: str = Field(..., description="Workflow ID")
    name: str = Field(..., description="Workflow name")
    description: Optional[str] = Field(None, description="Workflow description")
    nodes: Dict[str, WorkflowNode] = Field(default_factory=dict, description="Nodes keyed by ID")
    transitions: List[WorkflowTransition] = Field(default_factory=list, description="Transitions")
    entry_node_id: str = Field("", description="ID of the entry trigger node")
    enabled: bool = Field(False, description="Whether the workflow is active")
    version: int = Field(1, description="Incremented on each structural edit")
    created_at: datetime = Field(default_factory=datetime.utcnow, description="Creation timestamp")
    updated_at: datetime = Field(default_factory=datetime.utcnow, description="Last update timestamp")

    @field_validator('name')
    @classmethod
    def validate_name_not_empty(cls, name):
        """Ensure workflow name is not empty."""
        if not name.strip():
            raise ValueError("Workflow name cannot be empty")
        return name.strip()

    @field_validator('version')
    @classmethod
    def validate_version(cls, version):
        if version < 1:
            raise ValueError("Workflow version must be at least 1")
        return version


class Condition(BaseModel):
    """A single field comparison."""
    field: str = Field(..., description="Dotted path into the ticket snapshot")
    operator: str = Field(..., description="Comparison operator")
    value: Any = Field(None, description="Operand")


class RuleConditions(BaseModel):
    """Condition tree: every condition in `all` and at least one in `any`."""
    all: List[Condition] = Field(default_factory=list)
    any: List[Condition] = Field(default_factory=list)


class Action(BaseModel):
    """An action with type-specific parameters kept as extra fields."""
    model_config = ConfigDict(extra="allow")

    type: str = Field(..., description="Action type")

    @property
    def params(self) -> Dict[str, Any]:
        """Type-specific parameters (everything but `type`)."""
        return dict(self.model_extra or {})


class Rule(BaseModel):
    """A flat, independently evaluable automation rule."""
    id: str = Field(..., description="Rule ID")
    name: str = Field(..., description="Rule name")
    type: RuleType = Field(..., description="Rule class")
    enabled: bool = Field(True, description="Whether the rule participates in batch execution")
    conditions: RuleConditions = Field(default_factory=RuleConditions)
    actions: List[Action] = Field(default_factory=list)


class NotificationRequest(BaseModel):
    """Notification descriptor produced by a notify action."""
    channel: str
    message: str = ""
    recipient: Optional[str] = None


class WebhookRequest(BaseModel):
    """Webhook descriptor produced by a webhook action."""
    target: str
    payload: Any = None
    method: str = "POST"


class ActionResult(BaseModel):
    """Outcome of applying an action list to a ticket snapshot."""
    changes: Dict[str, Any] = Field(default_factory=dict)
    notifications: List[NotificationRequest] = Field(default_factory=list)
    webhooks: List[WebhookRequest] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)


class RuleEvaluationResult(ActionResult):
    """Outcome of evaluating one rule against a ticket."""
    matched: bool = False


class ExecuteRulesResult(BaseModel):
    """Per-rule entry of a batch execution."""
    rule_id: str
    matched: bool
    changes: Dict[str, Any] = Field(default_factory=dict)
    errors: List[str] = Field(default_factory=list)


class SyncResult(BaseModel):
    """Result of a reconciliation run."""
    rule_count: int = Field(..., description="Number of derived rules written")


class AuditEntry(BaseModel):
    """Record of a matched rule during batch execution."""
    id: str
    rule_id: str
    rule_name: str
    ticket_id: str
    event: Optional[str] = None
    changes: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime
    dry_run: bool = False


class WorkflowExport(BaseModel):
    """Portable export of a workflow together with its compiled rules."""
    format: str = "ruleflow-workflow-v1"
    workflow: Workflow
    exported_at: datetime
    rules: List[Rule] = Field(default_factory=list)
