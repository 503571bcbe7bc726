"""Data models for the combat system."""

from .check_result import AdvantageRoll, CheckResult, DiceExpressionResult
from .condition import (
    ConditionDefinition,
    ConditionInstance,
    DurationPolicy,
    Effect,
    EffectKind,
)
from .combatant import AttackProfile, Combatant, CombatantType
from .action import ActionResult, ActionType, DamageRoll, FailureReason
from .combat_session import CombatLogEvent, CombatPhase, CombatSession
from .combat_result import CombatSummary

__all__ = [
    "AdvantageRoll",
    "CheckResult",
    "DiceExpressionResult",
    "ConditionDefinition",
    "ConditionInstance",
    "DurationPolicy",
    "Effect",
    "EffectKind",
    "AttackProfile",
    "Combatant",
    "CombatantType",
    "ActionResult",
    "ActionType",
    "DamageRoll",
    "FailureReason",
    "CombatLogEvent",
    "CombatPhase",
    "CombatSession",
    "CombatSummary",
]
