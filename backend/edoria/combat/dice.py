"""
骰子系统

实现标准 d20 骰子记号解析和投掷
"""
import logging
import random
import re
from typing import Optional, Tuple

from .models.check_result import AdvantageRoll, DiceExpressionResult
from .rules import CRITICAL_HIT_ROLL, CRITICAL_MISS_ROLL

logger = logging.getLogger(__name__)

_DICE_PATTERN = re.compile(r"(\d*)d(\d+)([+-]\d+)?")

# 单个表达式的骰子数量上限，超出视为非法
MAX_DICE_COUNT = 100


def parse_expression(expression: str) -> Optional[Tuple[int, int, int]]:
    """
    解析骰子记号

    Returns:
        Optional[Tuple[int, int, int]]: (骰子数量, 面数, 固定修正)，非法时返回 None
    """
    match = _DICE_PATTERN.fullmatch((expression or "").lower().replace(" ", ""))
    if not match:
        return None
    count = int(match.group(1)) if match.group(1) else 1
    if count > MAX_DICE_COUNT:
        return None
    sides = int(match.group(2))
    modifier = int(match.group(3)) if match.group(3) else 0
    return count, sides, modifier


class DiceRoller:
    """
    骰子投掷器

    随机源可注入（任何带 randint 的对象，如 random.Random），测试时用于固定骰值。
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    def roll_die(self, sides: int) -> int:
        """
        投掷单个骰子

        Args:
            sides: 骰子面数（如20表示d20）

        Returns:
            int: 结果（1到sides）
        """
        if sides < 1:
            raise ValueError(f"Invalid die size: {sides}")
        return self.rng.randint(1, sides)

    def roll_expression(
        self, expression: str, count_override: Optional[int] = None
    ) -> DiceExpressionResult:
        """
        投掷骰子表达式

        Args:
            expression: 骰子记号（如 "1d20", "d6", "3d8+2"）
            count_override: 覆盖骰子数量（暴击翻倍由调用方计算后传入）

        Returns:
            DiceExpressionResult: 非法表达式返回空结果（rolls 为空，total 为 0）

        Examples:
            >>> roller.roll_expression("2d6+3")
            DiceExpressionResult(expression='2d6+3', rolls=(4, 4), total=11, ...)
        """
        parsed = parse_expression(expression)
        if parsed is None:
            logger.debug("Malformed dice expression: %r", expression)
            return DiceExpressionResult(expression=expression or "")

        count, sides, modifier = parsed
        if count_override is not None:
            count = count_override

        if count < 1 or sides < 1:
            logger.debug("Malformed dice expression: %r", expression)
            return DiceExpressionResult(expression=expression)

        rolls = tuple(self.roll_die(sides) for _ in range(count))
        return DiceExpressionResult(
            expression=expression,
            rolls=rolls,
            total=sum(rolls) + modifier,
            modifier=modifier,
            count=count,
            sides=sides,
        )

    def roll_with_advantage(self) -> AdvantageRoll:
        """优势：两次 d20 取高"""
        a, b = self.roll_die(20), self.roll_die(20)
        return AdvantageRoll(component_a=a, component_b=b, chosen=max(a, b))

    def roll_with_disadvantage(self) -> AdvantageRoll:
        """劣势：两次 d20 取低"""
        a, b = self.roll_die(20), self.roll_die(20)
        return AdvantageRoll(component_a=a, component_b=b, chosen=min(a, b))

    def d20(self) -> int:
        return self.roll_die(20)


def is_critical_success(base_roll: int, sides: int = 20) -> bool:
    """暴击只看 d20 原始骰值"""
    return sides == 20 and base_roll == CRITICAL_HIT_ROLL


def is_critical_failure(base_roll: int, sides: int = 20) -> bool:
    return sides == 20 and base_roll == CRITICAL_MISS_ROLL

