"""Tests for the rule engine."""

import pytest

from ruleflow.core.audit import AuditLog
from ruleflow.core.engine import RuleEngine
from ruleflow.core.exceptions import RuleEngineError
from ruleflow.models.core import Rule

from conftest import make_manual_rule


def _rule(rule_id, conditions, actions, rule_type="automation", enabled=True):
    return Rule.model_validate({
        "id": rule_id,
        "name": rule_id,
        "type": rule_type,
        "enabled": enabled,
        "conditions": conditions,
        "actions": actions,
    })


@pytest.fixture
def populated_store(rule_store):
    rule_store.replace_all([
        _rule("close-solved", {"all": [{"field": "status", "operator": "equals", "value": "solved"}]},
              [{"type": "close"}]),
        _rule("tag-update", {"all": [{"field": "event", "operator": "equals", "value": "update"}]},
              [{"type": "add_tag", "value": "touched"}, {"type": "notify", "message": "updated"}]),
        _rule("disabled", {}, [{"type": "set_priority", "value": "low"}], enabled=False),
        _rule("sla-rule", {}, [{"type": "escalate"}], rule_type="sla"),
        _rule("broken", {"all": [{"field": "status", "operator": "weird"}]}, [{"type": "close"}]),
    ])
    return rule_store


class TestEvaluateRule:
    """Test cases for RuleEngine.evaluate_rule."""

    def test_matched_rule_returns_effects(self, rule_store):
        engine = RuleEngine(rule_store)
        rule = _rule("r1", {"all": [{"field": "status", "operator": "equals", "value": "new"}]},
                     [{"type": "set_status", "value": "open"}, {"type": "notify", "message": "hi"}])

        result = engine.evaluate_rule(rule, {"id": "tk1", "status": "new"})

        assert result.matched is True
        assert result.changes == {"status": "open"}
        assert len(result.notifications) == 1
        assert result.errors == []

    @pytest.mark.parametrize("conditions", [
        {"all": [{"field": "status", "operator": "equals", "value": "new"}]},
        {"all": [{"field": "status", "operator": "bogus"}]},
    ])
    def test_unmatched_rule_returns_empty_result(self, rule_store, conditions):
        engine = RuleEngine(rule_store)
        rule = _rule("r1", conditions, [{"type": "set_status", "value": "open"}])

        result = engine.evaluate_rule(rule, {"id": "tk1", "status": "open"})

        assert result.model_dump() == {
            "changes": {}, "notifications": [], "webhooks": [], "errors": [], "matched": False,
        }

    def test_matched_rule_keeps_condition_errors(self, rule_store):
        engine = RuleEngine(rule_store)
        rule = _rule("r1", {"any": [
            {"field": "status", "operator": "bogus"},
            {"field": "status", "operator": "equals", "value": "open"},
        ]}, [{"type": "close"}])

        result = engine.evaluate_rule(rule, {"id": "tk1", "status": "open"})

        assert result.matched is True
        assert result.changes == {"status": "closed"}
        assert result.errors == ["unknown condition operator: bogus"]

    def test_ignores_enabled_flag(self, rule_store):
        engine = RuleEngine(rule_store)
        rule = _rule("r1", {}, [{"type": "close"}], enabled=False)

        assert engine.evaluate_rule(rule, {"id": "tk1"}).matched is True


class TestExecuteRules:
    """Test cases for RuleEngine.execute_rules."""

    def test_filters_by_type_and_enabled(self, populated_store):
        engine = RuleEngine(populated_store)

        results = engine.execute_rules({"id": "tk1", "status": "solved"}, "update", "automation")

        assert [r.rule_id for r in results] == ["close-solved", "tag-update", "broken"]

    def test_results_per_rule(self, populated_store):
        engine = RuleEngine(populated_store)

        results = engine.execute_rules({"id": "tk1", "status": "solved", "tags": []}, "update", "automation")
        by_id = {r.rule_id: r for r in results}

        assert by_id["close-solved"].changes == {"status": "closed"}
        assert by_id["tag-update"].changes == {"tags": ["touched"]}
        assert by_id["broken"].matched is False
        assert by_id["broken"].errors == []

    def test_no_intra_batch_propagation(self, rule_store):
        rule_store.replace_all([
            _rule("first", {}, [{"type": "set_status", "value": "pending"}]),
            _rule("second", {"all": [{"field": "status", "operator": "equals", "value": "pending"}]},
                  [{"type": "close"}]),
        ])
        engine = RuleEngine(rule_store)

        results = engine.execute_rules({"id": "tk1", "status": "new"}, None, "automation")

        assert [r.matched for r in results] == [True, False]

    def test_event_is_injected_without_mutating_ticket(self, populated_store):
        engine = RuleEngine(populated_store)
        ticket = {"id": "tk1", "status": "new"}

        results = engine.execute_rules(ticket, "update", "automation")

        assert "event" not in ticket
        assert {r.rule_id: r.matched for r in results}["tag-update"] is True

    def test_dry_run_neutrality(self, populated_store):
        engine = RuleEngine(populated_store)
        ticket = {"id": "tk1", "status": "solved", "tags": ["a"]}

        wet = engine.execute_rules(ticket, "update", "automation", dry_run=False)
        dry = engine.execute_rules(ticket, "update", "automation", dry_run=True)

        assert [r.model_dump() for r in wet] == [r.model_dump() for r in dry]

    def test_ticket_without_id_raises(self, populated_store):
        engine = RuleEngine(populated_store)

        with pytest.raises(RuleEngineError):
            engine.execute_rules({"status": "open"}, "update", "automation")

    def test_falsy_ticket_id_is_accepted(self, populated_store):
        engine = RuleEngine(populated_store)

        results = engine.execute_rules({"id": 0, "status": "solved"}, "update", "automation")

        assert {r.rule_id for r in results if r.matched} == {"close-solved", "tag-update"}

    def test_unknown_trigger_type_raises(self, populated_store):
        engine = RuleEngine(populated_store)

        with pytest.raises(RuleEngineError):
            engine.execute_rules({"id": "tk1"}, "update", "cron")

    def test_audit_log_records_matches(self, populated_store):
        audit_log = AuditLog(max_entries=10)
        engine = RuleEngine(populated_store, audit_log=audit_log)

        engine.execute_rules({"id": "tk1", "status": "solved"}, "update", "automation", dry_run=True)

        entries = audit_log.entries()
        assert [e.rule_id for e in entries] == ["tag-update", "close-solved"]
        assert all(e.dry_run and e.ticket_id == "tk1" and e.event == "update" for e in entries)


class TestAuditLog:
    """Test cases for the bounded audit trail."""

    def test_bounded_newest_first(self):
        audit_log = AuditLog(max_entries=2)
        rule = make_manual_rule("m1")

        for ticket_id in ("a", "b", "c"):
            audit_log.record(rule, ticket_id, {"status": "x"})

        assert [e.ticket_id for e in audit_log.entries()] == ["c", "b"]
        assert len(audit_log) == 2

    def test_filter_by_ticket(self):
        audit_log = AuditLog()
        rule = make_manual_rule("m1")
        audit_log.record(rule, "a", {})
        audit_log.record(rule, "b", {})

        assert [e.ticket_id for e in audit_log.entries(ticket_id="a")] == ["a"]

    def test_rejects_non_positive_size(self):
        with pytest.raises(ValueError):
            AuditLog(max_entries=0)
