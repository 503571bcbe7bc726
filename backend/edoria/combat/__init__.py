"""Combat system package."""

from .checks import CheckResolver
from .combat_engine import CombatEngine
from .conditions import ConditionSystem
from .dice import DiceRoller

__all__ = ["CheckResolver", "CombatEngine", "ConditionSystem", "DiceRoller"]
