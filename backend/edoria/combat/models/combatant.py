"""
战斗单位数据模型
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from ..attributes import AttributeProvider, PlayerAttributes, attributes_from_dict
from ..rules import ability_modifier
from .condition import ConditionInstance


class CombatantType(str, Enum):
    """战斗单位类型"""

    PLAYER = "player"
    ENEMY = "enemy"
    ALLY = "ally"


@dataclass
class AttackProfile:
    """攻击配置（由装备系统提供）"""

    name: str = "徒手攻击"
    ability: str = "strength"  # 攻击检定使用的属性
    attack_bonus: int = 0  # 武器/魔法加值
    proficient: bool = True
    damage_dice: str = "1d4"
    damage_bonus: int = 0
    damage_type: str = "bludgeoning"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "ability": self.ability,
            "attack_bonus": self.attack_bonus,
            "proficient": self.proficient,
            "damage_dice": self.damage_dice,
            "damage_bonus": self.damage_bonus,
            "damage_type": self.damage_type,
        }


@dataclass
class Combatant:
    """
    战斗单位

    设计原则：
    - 必需字段放前面
    - HP 只能通过 apply_damage / apply_healing 修改，始终满足 0 <= current_hp <= max_hp
    - 状态实例按 definition_id 存放在单位自身，同一状态最多一个实例
    """

    # ===== 基础信息 =====
    id: str  # 唯一ID（如 "player", "goblin_1"）
    name: str  # 显示名称
    combatant_type: CombatantType  # 类型

    # ===== 生命值 =====
    max_hp: int
    current_hp: Optional[int] = None  # None 表示满血

    # ===== 防御 =====
    armor_class: int = 10

    # ===== 属性 / 攻击 =====
    attributes: AttributeProvider = field(default_factory=PlayerAttributes)
    attack: AttackProfile = field(default_factory=AttackProfile)

    # ===== 先攻 =====
    initiative: int = 0

    # ===== 行动经济 =====
    has_acted: bool = False
    has_moved: bool = False
    actions_used: int = 0

    # ===== 状态 =====
    conditions: Dict[str, ConditionInstance] = field(default_factory=dict)
    last_condition_tick: Optional[int] = None  # 上次结算回合结束状态的tick

    # ===== 抗性 =====
    resistances: List[str] = field(default_factory=list)
    vulnerabilities: List[str] = field(default_factory=list)
    immunities: List[str] = field(default_factory=list)

    def __post_init__(self):
        if self.max_hp < 0:
            raise ValueError(f"max_hp must be >= 0, got {self.max_hp}")
        if self.current_hp is None:
            self.current_hp = self.max_hp
        self.current_hp = max(0, min(self.current_hp, self.max_hp))

    # ===== 便捷方法 =====

    @property
    def is_player_controlled(self) -> bool:
        return self.combatant_type == CombatantType.PLAYER

    def is_player(self) -> bool:
        """是否是玩家"""
        return self.combatant_type == CombatantType.PLAYER

    def is_enemy(self) -> bool:
        """是否是敌人"""
        return self.combatant_type == CombatantType.ENEMY

    def is_dead(self) -> bool:
        return self.current_hp <= 0

    @property
    def is_alive(self) -> bool:
        return not self.is_dead()

    def apply_damage(self, amount: int) -> int:
        """
        受到伤害

        Args:
            amount: 伤害值

        Returns:
            int: 实际受到的伤害（HP 不会低于 0）
        """
        amount = max(0, amount)
        actual_damage = min(amount, self.current_hp)
        self.current_hp -= actual_damage
        return actual_damage

    def apply_healing(self, amount: int) -> int:
        """
        恢复生命值

        Returns:
            int: 实际恢复的量（HP 不会超过上限）
        """
        amount = max(0, amount)
        actual_heal = min(amount, self.max_hp - self.current_hp)
        self.current_hp += actual_heal
        return actual_heal

    def ability_score(self, ability: str) -> int:
        return self.attributes.ability_score(ability)

    def ability_modifier(self, ability: str) -> int:
        """获取能力值修正"""
        return ability_modifier(self.attributes.ability_score(ability))

    def has_condition(self, definition_id: str) -> bool:
        return definition_id in self.conditions

    def reset_turn_flags(self):
        """回合开始时重置行动经济"""
        self.has_acted = False
        self.has_moved = False
        self.actions_used = 0

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典（用于序列化）"""
        return {
            "id": self.id,
            "name": self.name,
            "type": self.combatant_type.value,
            "max_hp": self.max_hp,
            "current_hp": self.current_hp,
            "armor_class": self.armor_class,
            "attributes": self.attributes.to_dict(),
            "attack": self.attack.to_dict(),
            "initiative": self.initiative,
            "has_acted": self.has_acted,
            "has_moved": self.has_moved,
            "actions_used": self.actions_used,
            "conditions": [c.to_dict() for c in self.conditions.values()],
            "last_condition_tick": self.last_condition_tick,
            "resistances": list(self.resistances),
            "vulnerabilities": list(self.vulnerabilities),
            "immunities": list(self.immunities),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Combatant":
        """从快照恢复"""
        conditions = {}
        for entry in data.get("conditions", []):
            instance = ConditionInstance.from_dict(entry)
            conditions[instance.definition_id] = instance

        return cls(
            id=data["id"],
            name=data["name"],
            combatant_type=CombatantType(data["type"]),
            max_hp=data["max_hp"],
            current_hp=data.get("current_hp"),
            armor_class=data.get("armor_class", 10),
            attributes=attributes_from_dict(data.get("attributes", {})),
            attack=AttackProfile(**data.get("attack", {})),
            initiative=data.get("initiative", 0),
            has_acted=data.get("has_acted", False),
            has_moved=data.get("has_moved", False),
            actions_used=data.get("actions_used", 0),
            conditions=conditions,
            last_condition_tick=data.get("last_condition_tick"),
            resistances=list(data.get("resistances", [])),
            vulnerabilities=list(data.get("vulnerabilities", [])),
            immunities=list(data.get("immunities", [])),
        )
