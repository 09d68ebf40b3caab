"""Rule engine: single-rule evaluation and batch execution against ticket events."""

from collections.abc import Mapping
from typing import Any, Dict, List, Optional, Union

from ..models.core import ExecuteRulesResult, Rule, RuleEvaluationResult, RuleType
from .actions import ActionExecutor
from .audit import AuditLog
from .conditions import ConditionEvaluator
from .exceptions import RuleEngineError
from .logging import get_logger, logging_context

logger = get_logger(__name__)


class RuleEngine:
    """Combines condition evaluation and action application.

    The engine never persists changes or dispatches side effects; callers
    decide what to do with the returned descriptors. ``dry_run`` is passed
    through to the audit trail only.
    """

    def __init__(
        self,
        rule_store,
        evaluator: Optional[ConditionEvaluator] = None,
        executor: Optional[ActionExecutor] = None,
        audit_log: Optional[AuditLog] = None,
    ):
        """Initialize the rule engine.

        Args:
            rule_store: Store the batch entry point reads rules from
            evaluator: Condition evaluator (a default one is created if omitted)
            executor: Action executor (a default one is created if omitted)
            audit_log: Optional audit trail receiving every batch match
        """
        self.rule_store = rule_store
        self.evaluator = evaluator or ConditionEvaluator()
        self.executor = executor or ActionExecutor()
        self.audit_log = audit_log

    def evaluate_rule(self, rule: Rule, ticket: Mapping) -> RuleEvaluationResult:
        """
        Evaluate one rule against a ticket, regardless of ``rule.enabled``.

        Args:
            rule: The rule to evaluate
            ticket: Ticket snapshot; never mutated

        Returns:
            RuleEvaluationResult: Actions' effects when matched, otherwise
            all fields empty
        """
        matched, condition_errors = self.evaluator.evaluate_with_errors(rule.conditions, ticket)
        if not matched:
            return RuleEvaluationResult(matched=False)

        applied = self.executor.apply(rule.actions, ticket)
        return RuleEvaluationResult(
            matched=True,
            changes=applied.changes,
            notifications=applied.notifications,
            webhooks=applied.webhooks,
            errors=condition_errors + applied.errors,
        )

    def execute_rules(
        self,
        ticket: Mapping,
        event: Optional[str],
        trigger_type: Union[RuleType, str],
        dry_run: bool = False,
    ) -> List[ExecuteRulesResult]:
        """
        Run every enabled rule of ``trigger_type`` against a ticket event.

        The event is injected into a copy of the ticket as ``event``. Every
        rule sees the same snapshot, in store order.

        Raises:
            RuleEngineError: If the ticket has no ``id`` or the trigger type
                is unknown
        """
        if not isinstance(ticket, Mapping) or ticket.get("id") is None:
            raise RuleEngineError("Ticket context must carry an 'id'")

        try:
            rule_type = RuleType(trigger_type)
        except ValueError:
            raise RuleEngineError(f"Unknown trigger type: {trigger_type}", ticket_id=str(ticket["id"]))

        snapshot: Dict[str, Any] = {**ticket, "event": event}
        candidates = [r for r in self.rule_store.list() if r.enabled and r.type == rule_type]

        results: List[ExecuteRulesResult] = []
        with logging_context(ticket_id=str(ticket["id"]), trigger_type=rule_type.value):
            for rule in candidates:
                evaluation = self.evaluate_rule(rule, snapshot)
                results.append(ExecuteRulesResult(
                    rule_id=rule.id,
                    matched=evaluation.matched,
                    changes=evaluation.changes,
                    errors=evaluation.errors,
                ))
                if evaluation.matched and self.audit_log is not None:
                    self.audit_log.record(rule, str(ticket["id"]), evaluation.changes, event=event, dry_run=dry_run)

        matched_count = sum(1 for r in results if r.matched)
        logger.debug(f"Executed {len(candidates)} {rule_type.value} rules for ticket {ticket['id']} "
                     f"(event={event}, matched={matched_count}, dry_run={dry_run})")
        return results
