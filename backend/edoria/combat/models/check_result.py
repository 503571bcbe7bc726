"""
掷骰与判定结果数据模型

所有结果对象创建后不可变，是表现层与状态系统共同消费的审计记录。
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple


@dataclass(frozen=True)
class DiceExpressionResult:
    """骰子表达式结果（如 "2d6+3"）"""

    expression: str
    rolls: Tuple[int, ...] = ()
    total: int = 0
    modifier: int = 0
    count: int = 0
    sides: int = 0

    @property
    def is_empty(self) -> bool:
        """非法表达式返回的空结果"""
        return not self.rolls

    def to_dict(self) -> Dict[str, Any]:
        return {
            "expression": self.expression,
            "rolls": list(self.rolls),
            "total": self.total,
            "modifier": self.modifier,
            "count": self.count,
            "sides": self.sides,
        }


@dataclass(frozen=True)
class AdvantageRoll:
    """优势/劣势掷骰：两次独立 d20，取较高/较低者"""

    component_a: int
    component_b: int
    chosen: int


@dataclass(frozen=True)
class CheckResult:
    """
    判定结果

    critical / critical_failure 只取决于 d20 的原始骰值，与修正值无关。
    dc 为 None 时 success 也为 None（自由掷骰，如伤害骰）。
    """

    raw_rolls: Tuple[int, ...]  # 实际掷出的所有 d20（优势/劣势时为两个）
    chosen_roll: int  # 采用的骰值
    modifier: int  # 总修正值（含附加骰）
    total: int  # chosen_roll + modifier
    dc: Optional[int] = None
    success: Optional[bool] = None
    critical: bool = False
    critical_failure: bool = False
    advantage: bool = False
    disadvantage: bool = False
    label: str = ""  # 如 "constitution save"、"stealth check"
    bonus_rolls: Tuple[DiceExpressionResult, ...] = field(default_factory=tuple)
    auto_failed: bool = False  # 被状态效果判定为自动失败

    def __str__(self) -> str:
        rolls = "/".join(str(r) for r in self.raw_rolls)
        sign = "+" if self.modifier >= 0 else "-"
        text = f"{self.label or 'd20'} ({rolls}) {sign} {abs(self.modifier)} = {self.total}"
        if self.dc is not None:
            text += f" vs DC {self.dc} → {'成功' if self.success else '失败'}"
        return text

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典"""
        return {
            "raw_rolls": list(self.raw_rolls),
            "chosen_roll": self.chosen_roll,
            "modifier": self.modifier,
            "total": self.total,
            "dc": self.dc,
            "success": self.success,
            "critical": self.critical,
            "critical_failure": self.critical_failure,
            "advantage": self.advantage,
            "disadvantage": self.disadvantage,
            "label": self.label,
            "bonus_rolls": [roll.to_dict() for roll in self.bonus_rolls],
            "auto_failed": self.auto_failed,
        }
