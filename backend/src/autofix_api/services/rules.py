from abc import ABC, abstractmethod
from itertools import count
from typing import Any, Dict, List
from ..models.rules import AutoFixRule, AutoFixRuleRequest
from ..logger import get_logger

logger = get_logger(__name__)

class AutoFixRuleStore(ABC):
    """Per-user auto-fix rules and the fix history shown in the dashboard."""

    @abstractmethod
    def list_rules(self, user_id: str) -> List[AutoFixRule]:
        pass

    @abstractmethod
    def create_rule(self, user_id: str, request: AutoFixRuleRequest) -> AutoFixRule:
        pass

    @abstractmethod
    def list_fixable_patches(self, user_id: str) -> List[Dict[str, Any]]:
        pass

    @abstractmethod
    def list_generated_prs(self, user_id: str) -> List[Dict[str, Any]]:
        pass

class UnpersistedRuleStore(AutoFixRuleStore):
    """
    Placeholder until an auto-fix rules table exists.

    Listings are always empty and created rules are validated and returned
    but not stored anywhere.
    """

    def __init__(self):
        self._ids = count(1)

    def list_rules(self, user_id: str) -> List[AutoFixRule]:
        return []

    def create_rule(self, user_id: str, request: AutoFixRuleRequest) -> AutoFixRule:
        rule = AutoFixRule(id=next(self._ids), user_id=user_id, **request.model_dump())
        logger.warning(f"Auto-fix rule '{rule.name}' for user {user_id} is not persisted: no rule storage configured")
        return rule

    def list_fixable_patches(self, user_id: str) -> List[Dict[str, Any]]:
        return []

    def list_generated_prs(self, user_id: str) -> List[Dict[str, Any]]:
        return []

rule_store = UnpersistedRuleStore()
