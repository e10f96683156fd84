"""User rule detector: exact, case-sensitive literals maintained by the user."""

from __future__ import annotations

from .base import Detector, find_all
from .types import PRIORITY_USER, DetectionContext, Match, Trigger


class UserRuleDetector(Detector):
    id = "user-rule-detector"
    label = "User-defined rule detector"
    description = "Detects literals defined by the user."

    def __init__(self, rules: list[str] | None = None) -> None:
        self._rules: list[str] = []
        for rule in rules or []:
            self.add_rule(rule)

    def add_rule(self, rule: str) -> bool:
        """Add a literal.  Returns False for empty or duplicate rules."""
        if not rule or rule in self._rules:
            return False
        self._rules.append(rule)
        return True

    def remove_rule(self, rule: str) -> bool:
        if rule not in self._rules:
            return False
        self._rules.remove(rule)
        return True

    def list_rules(self) -> list[str]:
        return list(self._rules)

    def clear_rules(self) -> None:
        self._rules.clear()

    def detect(
        self,
        text: str,
        context: DetectionContext | None = None,
        trigger: Trigger = "auto",
    ) -> list[Match]:
        if not text or not self._rules:
            return []
        return [
            Match(
                detector_id=self.id,
                source="user",
                entity_type="user_defined_pii",
                value=rule,
                start_index=start,
                end_index=end,
                priority=PRIORITY_USER,
                reason="Matched user-defined rule.",
            )
            for rule in self._rules
            for start, end in find_all(text, rule)
        ]
