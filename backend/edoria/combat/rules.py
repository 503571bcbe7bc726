"""
战斗规则（d20）

定义所有判定相关的常量和规则
"""
from typing import Dict, Iterable, Optional, Tuple


# ============================================
# 常量定义
# ============================================

ABILITIES: Tuple[str, ...] = (
    "strength",
    "dexterity",
    "constitution",
    "intelligence",
    "wisdom",
    "charisma",
)

# 暴击判定（只看 d20 原始骰值）
CRITICAL_HIT_ROLL = 20
CRITICAL_MISS_ROLL = 1

# 逃跑判定使用的属性
FLEE_ABILITY = "dexterity"

# 每回合基础行动次数
BASE_ACTIONS_PER_TURN = 1


# 技能 → 属性
SKILL_ABILITY_MAP: Dict[str, str] = {
    "athletics": "strength",
    "acrobatics": "dexterity",
    "sleight_of_hand": "dexterity",
    "stealth": "dexterity",
    "arcana": "intelligence",
    "history": "intelligence",
    "investigation": "intelligence",
    "nature": "intelligence",
    "religion": "intelligence",
    "animal_handling": "wisdom",
    "insight": "wisdom",
    "medicine": "wisdom",
    "perception": "wisdom",
    "survival": "wisdom",
    "deception": "charisma",
    "intimidation": "charisma",
    "performance": "charisma",
    "persuasion": "charisma",
}


# ============================================
# 规则函数
# ============================================


def ability_modifier(score: int) -> int:
    """属性修正：floor((score - 10) / 2)"""
    return (score - 10) // 2


def resolve_ability_name(ability_or_skill: str) -> Tuple[str, bool]:
    """
    将属性名或技能名解析为属性

    Returns:
        Tuple[str, bool]: (属性名, 是否为技能)
    """
    key = ability_or_skill.strip().lower().replace(" ", "_")
    if key in SKILL_ABILITY_MAP:
        return SKILL_ABILITY_MAP[key], True
    return key, False


def apply_damage_modifiers(
    damage: int,
    damage_type: Optional[str],
    resistances: Iterable[str] = (),
    vulnerabilities: Iterable[str] = (),
    immunities: Iterable[str] = (),
) -> int:
    """
    应用抗性/易伤/免疫

    免疫优先；抗性减半但至少保留1点伤害。
    """
    if damage <= 0:
        return 0
    if damage_type in immunities:
        return 0
    if damage_type in vulnerabilities:
        return damage * 2
    if damage_type in resistances:
        return max(1, damage // 2)
    return damage
