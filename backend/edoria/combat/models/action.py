"""
战斗行动数据模型
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .check_result import CheckResult, DiceExpressionResult


class ActionType(str, Enum):
    """行动类型"""

    ATTACK = "attack"
    DEFEND = "defend"
    MOVE = "move"
    USE_ITEM = "use_item"
    FLEE = "flee"
    SKILL_CHECK = "skill_check"
    SAVING_THROW = "saving_throw"
    APPLY_CONDITION = "apply_condition"
    REMOVE_CONDITION = "remove_condition"
    DAMAGE = "damage"
    HEAL = "heal"
    END_TURN = "end_turn"


class FailureReason(str, Enum):
    """失败原因（类型化失败，不抛异常，由调用方决定如何展示）"""

    TARGET_NOT_FOUND = "target_not_found"
    INVALID_STATE = "invalid_state"  # 重复行动、不是你的回合、战斗已结束等
    UNKNOWN_CONDITION = "unknown_condition"
    UNKNOWN_ITEM = "unknown_item"


@dataclass
class DamageRoll:
    """伤害判定结果"""

    roll: DiceExpressionResult  # 伤害骰（暴击时骰子数量翻倍）
    bonus: int  # 固定伤害加值
    raw_damage: int  # 骰值 + 加值
    actual_damage: int  # 抗性修正并扣减HP后实际造成的伤害
    damage_type: str = "bludgeoning"
    critical: bool = False

    def to_display_text(self) -> str:
        """转换为可读文本"""
        rolls = "+".join(str(r) for r in self.roll.rolls) or "0"
        text = f"{self.roll.expression} ({rolls}) + {self.bonus} → 造成 {self.actual_damage} 点{self.damage_type}伤害"
        if self.critical:
            text = f"暴击！{text}"
        return text

    def to_dict(self) -> Dict[str, Any]:
        return {
            "roll": self.roll.to_dict(),
            "bonus": self.bonus,
            "raw_damage": self.raw_damage,
            "actual_damage": self.actual_damage,
            "damage_type": self.damage_type,
            "critical": self.critical,
        }


@dataclass
class ActionResult:
    """
    行动执行结果
    """

    action_type: ActionType
    actor_id: Optional[str]
    target_id: Optional[str] = None

    # 结果
    success: bool = True
    failure: Optional[FailureReason] = None

    # 检定相关（攻击 / 技能 / 豁免 / 逃跑）
    check: Optional[CheckResult] = None
    is_hit: Optional[bool] = None
    damage_roll: Optional[DamageRoll] = None
    amount: int = 0  # 直接伤害/治疗量
    target_defeated: bool = False

    # 消息（给UI显示）
    messages: List[str] = field(default_factory=list)

    @classmethod
    def failed(
        cls,
        action_type: ActionType,
        actor_id: Optional[str],
        reason: FailureReason,
        message: str,
        target_id: Optional[str] = None,
    ) -> "ActionResult":
        result = cls(
            action_type=action_type,
            actor_id=actor_id,
            target_id=target_id,
            success=False,
            failure=reason,
        )
        result.add_message(message)
        return result

    def add_message(self, message: str):
        """添加消息"""
        self.messages.append(message)

    def to_display_text(self) -> str:
        """
        转换为格式化文本（给UI显示）

        Returns:
            str: 多行文本
        """
        return "\n".join(self.messages)

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典"""
        return {
            "type": self.action_type.value,
            "actor": self.actor_id,
            "target": self.target_id,
            "success": self.success,
            "failure": self.failure.value if self.failure else None,
            "check": self.check.to_dict() if self.check else None,
            "is_hit": self.is_hit,
            "damage": self.damage_roll.to_dict() if self.damage_roll else None,
            "amount": self.amount,
            "target_defeated": self.target_defeated,
            "display_text": self.to_display_text(),
        }
