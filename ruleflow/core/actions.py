"""Pure application of rule actions to a ticket snapshot."""

from collections.abc import Mapping
from typing import Any, Callable, Dict, List, Union

from pydantic import ValidationError

from ..models.core import Action, ActionResult, ActionType, NotificationRequest, WebhookRequest
from .logging import get_logger

logger = get_logger(__name__)

ActionInput = Union[Action, Dict[str, Any]]


class MissingParameterError(ValueError):
    """An action lacks a parameter its type requires."""

    def __init__(self, action_type: str, parameter: str):
        super().__init__(f"{action_type}: missing required parameter '{parameter}'")


def _require(action: Action, parameter: str) -> Any:
    value = action.params.get(parameter)
    if value is None or value == "":
        raise MissingParameterError(action.type, parameter)
    return value


class ActionExecutor:
    """
    Computes the effects of an action list without performing them.

    Field changes are merged into ``changes`` (later actions win), while
    notifications and webhooks are returned as descriptors for the caller
    to dispatch. Nothing is mutated and no I/O happens, which is what lets
    dry runs share this code path.
    """

    def __init__(
        self,
        default_channel: str = "email",
        escalation_priority: str = "urgent",
        closed_status: str = "closed",
        reopened_status: str = "open",
    ):
        self.default_channel = default_channel
        self.escalation_priority = escalation_priority
        self.closed_status = closed_status
        self.reopened_status = reopened_status

        self._handlers: Dict[str, Callable[[Action, Mapping, ActionResult], None]] = {
            ActionType.SET_STATUS.value: self._set_status,
            ActionType.SET_PRIORITY.value: self._set_priority,
            ActionType.ASSIGN.value: self._assign,
            ActionType.UNASSIGN.value: self._unassign,
            ActionType.ADD_TAG.value: self._add_tag,
            ActionType.REMOVE_TAG.value: self._remove_tag,
            ActionType.SET_FIELD.value: self._set_field,
            ActionType.ADD_INTERNAL_NOTE.value: self._add_internal_note,
            ActionType.CLOSE.value: self._close,
            ActionType.REOPEN.value: self._reopen,
            ActionType.ESCALATE.value: self._escalate,
            ActionType.NOTIFY.value: self._notify,
            ActionType.WEBHOOK.value: self._webhook,
        }
        self._handlers[ActionType.SET_ASSIGNEE.value] = self._assign
        self._handlers[ActionType.ASSIGN_TO.value] = self._assign
        self._handlers[ActionType.SEND_NOTIFICATION.value] = self._notify

    def apply(self, actions: List[ActionInput], ticket: Mapping) -> ActionResult:
        """Apply ``actions`` in order; failures are collected in ``errors``."""
        result = ActionResult()

        for raw in actions:
            try:
                action = raw if isinstance(raw, Action) else Action.model_validate(raw)
            except ValidationError as e:
                result.errors.append(f"invalid action: {e.errors()[0]['msg']}")
                continue

            handler = self._handlers.get(action.type)
            if handler is None:
                result.errors.append(f"unknown action type: {action.type}")
                continue

            try:
                handler(action, ticket, result)
            except MissingParameterError as e:
                result.errors.append(str(e))
            except Exception as e:
                logger.warning(f"Action {action.type} failed: {str(e)}")
                result.errors.append(f"action {action.type} failed: {str(e)}")

        return result

    def _set_status(self, action: Action, ticket: Mapping, result: ActionResult):
        result.changes["status"] = _require(action, "value")

    def _set_priority(self, action: Action, ticket: Mapping, result: ActionResult):
        result.changes["priority"] = _require(action, "value")

    def _assign(self, action: Action, ticket: Mapping, result: ActionResult):
        result.changes["assignee"] = action.params.get("value")

    def _unassign(self, action: Action, ticket: Mapping, result: ActionResult):
        result.changes["assignee"] = None

    def _current_tags(self, ticket: Mapping, result: ActionResult) -> List[str]:
        # Tag actions build on each other within one action list
        if "tags" in result.changes:
            return list(result.changes["tags"])
        tags = ticket.get("tags")
        if isinstance(tags, (list, tuple)):
            return list(tags)
        if isinstance(tags, str) and tags:
            return [tags]
        return []

    def _add_tag(self, action: Action, ticket: Mapping, result: ActionResult):
        tag = _require(action, "value")
        tags = self._current_tags(ticket, result)
        if tag not in tags:
            tags.append(tag)
        result.changes["tags"] = tags

    def _remove_tag(self, action: Action, ticket: Mapping, result: ActionResult):
        tag = _require(action, "value")
        result.changes["tags"] = [t for t in self._current_tags(ticket, result) if t != tag]

    def _set_field(self, action: Action, ticket: Mapping, result: ActionResult):
        field = _require(action, "field")
        if "custom_fields" not in result.changes:
            result.changes["custom_fields"] = dict(ticket.get("custom_fields") or {})
        result.changes["custom_fields"][field] = action.params.get("value")

    def _add_internal_note(self, action: Action, ticket: Mapping, result: ActionResult):
        result.changes["internal_note"] = _require(action, "value")

    def _close(self, action: Action, ticket: Mapping, result: ActionResult):
        result.changes["status"] = self.closed_status

    def _reopen(self, action: Action, ticket: Mapping, result: ActionResult):
        result.changes["status"] = self.reopened_status

    def _escalate(self, action: Action, ticket: Mapping, result: ActionResult):
        result.changes["priority"] = self.escalation_priority
        result.notifications.append(NotificationRequest(
            channel=action.params.get("channel") or self.default_channel,
            message=action.params.get("message") or f"Ticket {ticket.get('id')} escalated",
            recipient=action.params.get("recipient"),
        ))

    def _notify(self, action: Action, ticket: Mapping, result: ActionResult):
        result.notifications.append(NotificationRequest(
            channel=action.params.get("channel") or self.default_channel,
            message=action.params.get("message") or "",
            recipient=action.params.get("recipient") or action.params.get("to"),
        ))

    def _webhook(self, action: Action, ticket: Mapping, result: ActionResult):
        target = _require(action, "target")
        payload = action.params.get("payload")
        if payload is None:
            payload = {
                "ticket_id": ticket.get("id"),
                "subject": ticket.get("subject"),
                "status": ticket.get("status"),
            }
        result.webhooks.append(WebhookRequest(
            target=target,
            payload=payload,
            method=action.params.get("method") or "POST",
        ))
