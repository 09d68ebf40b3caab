"""Manual rule management that protects the derived-rule namespace."""

import uuid
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

from ..models.core import Rule, RuleType
from ..storage.interfaces import RuleStore
from .decomposer import DERIVED_RULE_PREFIX, is_derived_rule
from .exceptions import RuleNotFoundError, RuleOwnershipError, RuleValidationError
from .logging import get_logger

logger = get_logger(__name__)


class RuleManager:
    """CRUD surface for human-authored rules.

    Rules in the derived namespace belong to the reconciler and can be read
    here but never created, edited or deleted.
    """

    def __init__(self, rule_store: RuleStore, prefix: str = DERIVED_RULE_PREFIX):
        self.rule_store = rule_store
        self.prefix = prefix

    def create_rule(self, rule: Union[Rule, Dict[str, Any]]) -> Rule:
        """
        Create a manual rule.

        Args:
            rule: Rule or plain dict; a ``rule-{uuid}`` ID is generated when
                the ID is missing

        Returns:
            Rule: The stored rule

        Raises:
            RuleOwnershipError: If the ID falls in the derived namespace
            RuleValidationError: If the rule is malformed
            DuplicateRuleError: If the ID is already taken
        """
        data = rule.model_dump() if isinstance(rule, Rule) else dict(rule)
        if not data.get("id"):
            data["id"] = self._generate_rule_id()
        self._check_ownership(data["id"])

        try:
            new_rule = Rule.model_validate(data)
        except ValidationError as e:
            raise RuleValidationError(f"Invalid rule: {str(e)}", rule_id=data["id"])
        stored = self.rule_store.add(new_rule)
        logger.info(f"Created manual rule {stored.id} ({stored.name})")
        return stored

    def update_rule(self, rule_id: str, patch: Dict[str, Any]) -> Rule:
        """Merge ``patch`` into a manual rule; the ID cannot change."""
        self._check_ownership(rule_id)
        if "id" in patch and patch["id"] != rule_id:
            raise RuleOwnershipError("Rule ID cannot be changed", rule_id=rule_id)

        try:
            updated = self.rule_store.update(rule_id, patch)
        except ValidationError as e:
            raise RuleValidationError(f"Invalid rule update: {str(e)}", rule_id=rule_id)
        if updated is None:
            raise RuleNotFoundError(rule_id)

        logger.info(f"Updated manual rule {rule_id}")
        return updated

    def delete_rule(self, rule_id: str) -> bool:
        self._check_ownership(rule_id)
        removed = self.rule_store.remove(rule_id)
        if removed:
            logger.info(f"Deleted manual rule {rule_id}")
        else:
            logger.warning(f"Rule {rule_id} not found for deletion")
        return removed

    def get_rule(self, rule_id: str) -> Rule:
        rule = self.rule_store.get(rule_id)
        if rule is None:
            raise RuleNotFoundError(rule_id)
        return rule

    def list_rules(self, rule_type: Optional[Union[RuleType, str]] = None, include_derived: bool = True) -> List[Rule]:
        """List rules in store order, optionally filtered by type and ownership."""
        rules = self.rule_store.list()
        if rule_type is not None:
            wanted = RuleType(rule_type)
            rules = [r for r in rules if r.type == wanted]
        if not include_derived:
            rules = [r for r in rules if not is_derived_rule(r.id, self.prefix)]
        return rules

    def _check_ownership(self, rule_id: str):
        if is_derived_rule(rule_id, self.prefix):
            raise RuleOwnershipError(
                f"Rule '{rule_id}' is in the workflow-derived namespace '{self.prefix}' "
                "and is managed by its workflow",
                rule_id=rule_id,
            )

    def _generate_rule_id(self) -> str:
        return f"rule-{uuid.uuid4()}"
