"""
状态效果数据模型
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class EffectKind(str, Enum):
    """效果类型"""

    # 判定修正
    ATTACK_DISADVANTAGE = "attack_disadvantage"
    ABILITY_CHECK_DISADVANTAGE = "ability_check_disadvantage"
    ADVANTAGE_AGAINST = "advantage_against"  # 针对此单位的攻击获得优势
    AUTO_FAIL_ABILITY = "auto_fail_ability"  # 指定属性豁免自动失败
    SAVE_ADVANTAGE = "save_advantage"
    ATTACK_ROLL_BONUS = "attack_roll_bonus"  # 攻击骰附加骰（如祝福术 1d4）
    SAVING_THROW_BONUS = "saving_throw_bonus"

    # 回合 / 行动经济
    DAMAGE_PER_TURN = "damage_per_turn"
    AC_BONUS = "ac_bonus"
    EXTRA_ACTION = "extra_action"
    CANNOT_ACT = "cannot_act"
    CANNOT_MOVE = "cannot_move"
    DOUBLE_SPEED = "double_speed"
    CANNOT_ATTACK_SOURCE = "cannot_attack_source"

    # 物品效果
    HEAL = "heal"
    REMOVE_CONDITION = "remove_condition"
    APPLY_CONDITION = "apply_condition"


class DurationPolicy(str, Enum):
    """持续策略"""

    UNTIL_SAVED = "until_saved"
    FIXED_TURNS = "fixed_turns"
    UNTIL_NEXT_TURN = "until_next_turn"
    CONCENTRATION = "concentration"


@dataclass(frozen=True)
class Effect:
    """
    效果（类型 + 载荷）

    载荷字段按类型使用：
    - dice: DAMAGE_PER_TURN / ATTACK_ROLL_BONUS / SAVING_THROW_BONUS / HEAL
    - damage_type: DAMAGE_PER_TURN
    - amount: AC_BONUS；APPLY_CONDITION 的持续回合数（0 表示使用状态默认持续）
    - ability: AUTO_FAIL_ABILITY / SAVE_ADVANTAGE
    - condition_id: REMOVE_CONDITION / APPLY_CONDITION
    """

    kind: EffectKind
    dice: Optional[str] = None
    damage_type: Optional[str] = None
    amount: int = 0
    ability: Optional[str] = None
    condition_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"kind": self.kind.value}
        if self.dice is not None:
            data["dice"] = self.dice
        if self.damage_type is not None:
            data["damage_type"] = self.damage_type
        if self.amount:
            data["amount"] = self.amount
        if self.ability is not None:
            data["ability"] = self.ability
        if self.condition_id is not None:
            data["condition_id"] = self.condition_id
        return data


@dataclass(frozen=True)
class ConditionDefinition:
    """状态定义（静态数据，加载一次）"""

    id: str
    name: str
    duration_policy: DurationPolicy
    effects: Tuple[Effect, ...] = ()
    description: str = ""
    kind: str = "debuff"  # buff / debuff
    icon: str = ""
    saving_ability: Optional[str] = None
    default_turns: Optional[int] = None

    def has_effect(self, kind: EffectKind) -> bool:
        return any(effect.kind == kind for effect in self.effects)

    def effects_of(self, kind: EffectKind) -> Tuple[Effect, ...]:
        return tuple(effect for effect in self.effects if effect.kind == kind)


@dataclass
class ConditionInstance:
    """状态实例（归属于唯一的战斗单位）"""

    definition_id: str
    duration_policy: DurationPolicy
    turns_remaining: Optional[int] = None
    source_id: Optional[str] = None
    dc: Optional[int] = None
    applied_at_tick: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "definition_id": self.definition_id,
            "duration_policy": self.duration_policy.value,
            "turns_remaining": self.turns_remaining,
            "source_id": self.source_id,
            "dc": self.dc,
            "applied_at_tick": self.applied_at_tick,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConditionInstance":
        return cls(
            definition_id=data["definition_id"],
            duration_policy=DurationPolicy(data["duration_policy"]),
            turns_remaining=data.get("turns_remaining"),
            source_id=data.get("source_id"),
            dc=data.get("dc"),
            applied_at_tick=data.get("applied_at_tick", 0),
        )
