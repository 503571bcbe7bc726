"""测试公共夹具：可编排的骰子随机源。"""
import pytest

from edoria.combat.checks import CheckResolver
from edoria.combat.condition_registry import ConditionRegistry
from edoria.combat.conditions import ConditionSystem
from edoria.combat.combat_engine import CombatEngine
from edoria.combat.dice import DiceRoller
from edoria.config import settings


class ScriptedRandom:
    """按预设顺序返回骰值的随机源（替代 random.Random）"""

    def __init__(self, *values):
        self.values = list(values)
        self.calls = []

    def push(self, *values):
        self.values.extend(values)

    def randint(self, low, high):
        self.calls.append((low, high))
        if not self.values:
            raise AssertionError(f"no scripted roll left for d{high}")
        value = self.values.pop(0)
        assert low <= value <= high, f"scripted roll {value} outside [{low}, {high}]"
        return value


@pytest.fixture
def rng():
    return ScriptedRandom()


@pytest.fixture
def dice(rng):
    return DiceRoller(rng)


@pytest.fixture
def resolver(dice):
    return CheckResolver(dice)


@pytest.fixture(scope="session")
def registry():
    return ConditionRegistry.from_file(settings.conditions_path)


@pytest.fixture
def conditions(registry, resolver):
    return ConditionSystem(registry=registry, resolver=resolver, strict=False)


@pytest.fixture
def engine(resolver, conditions):
    return CombatEngine(resolver=resolver, conditions=conditions)
