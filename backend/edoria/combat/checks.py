"""
属性/技能检定与豁免检定

CheckResolver 是纯函数式的：只读取行动者的属性快照，不修改任何状态。
"""
import logging
from typing import Any, Dict, Iterable, Optional

from .attributes import AttributeProvider
from .dice import DiceRoller, is_critical_failure, is_critical_success
from .models.check_result import CheckResult
from .rules import ABILITIES, ability_modifier, resolve_ability_name

logger = logging.getLogger(__name__)


def _provider_of(actor: Any) -> AttributeProvider:
    """接受战斗单位（带 attributes 字段）或属性提供者本身"""
    provider = getattr(actor, "attributes", actor)
    if not isinstance(provider, AttributeProvider):
        raise TypeError(f"{actor!r} does not provide attributes")
    return provider


class CheckResolver:
    """
    检定解析器

    修正值 = floor((属性值 - 10) / 2) [+ 熟练加值]，专精只翻倍熟练加值。
    优势与劣势同时存在时互相抵消。
    """

    def __init__(self, dice: Optional[DiceRoller] = None):
        self.dice = dice or DiceRoller()

    # ============================================
    # 公共接口
    # ============================================

    def resolve_check(
        self,
        actor: Any,
        ability_or_skill: str,
        dc: Optional[int] = None,
        advantage: bool = False,
        disadvantage: bool = False,
        proficient: Optional[bool] = None,
        expertise: Optional[bool] = None,
        extra_modifier: int = 0,
        bonus_dice: Iterable[str] = (),
        label: str = "",
    ) -> CheckResult:
        """
        属性或技能检定

        Args:
            actor: 战斗单位或属性提供者
            ability_or_skill: 属性名（"dexterity"）或技能名（"stealth"）
            dc: 难度等级（None 表示自由掷骰）
            proficient / expertise: None 时从属性提供者读取（仅技能）
            extra_modifier: 外部提供的固定加值（装备等）
            bonus_dice: 附加骰（如祝福术 "1d4"）

        Returns:
            CheckResult
        """
        breakdown = self.modifier_breakdown(
            actor, ability_or_skill, proficient=proficient, expertise=expertise
        )
        modifier = breakdown["total"] + extra_modifier
        name = ability_or_skill.strip().lower()
        return self._roll_d20(
            modifier,
            dc=dc,
            advantage=advantage,
            disadvantage=disadvantage,
            bonus_dice=bonus_dice,
            label=label or f"{name} check",
        )

    def resolve_saving_throw(
        self,
        actor: Any,
        ability: str,
        dc: Optional[int],
        proficient: Optional[bool] = None,
        advantage: bool = False,
        disadvantage: bool = False,
        bonus_dice: Iterable[str] = (),
        label: str = "",
    ) -> CheckResult:
        """
        豁免检定

        豁免熟练由调用方（职业/怪物数据）决定；传入 None 时询问属性提供者。
        """
        provider = _provider_of(actor)
        ability_name = ability.strip().lower()
        if proficient is None:
            proficient = provider.is_save_proficient(ability_name)

        modifier = self._ability_mod(provider, ability_name)
        if proficient:
            modifier += provider.proficiency_bonus()

        return self._roll_d20(
            modifier,
            dc=dc,
            advantage=advantage,
            disadvantage=disadvantage,
            bonus_dice=bonus_dice,
            label=label or f"{ability_name} save",
        )

    def resolve_attack_roll(
        self,
        attacker: Any,
        target_ac: int,
        advantage: bool = False,
        disadvantage: bool = False,
        bonus_dice: Iterable[str] = (),
    ) -> CheckResult:
        """攻击检定：攻击属性修正 + 熟练 + 武器加值 vs AC"""
        provider = _provider_of(attacker)
        profile = attacker.attack
        modifier = self._ability_mod(provider, profile.ability) + profile.attack_bonus
        if profile.proficient:
            modifier += provider.proficiency_bonus()

        return self._roll_d20(
            modifier,
            dc=target_ac,
            advantage=advantage,
            disadvantage=disadvantage,
            bonus_dice=bonus_dice,
            label=f"{attacker.name} attack",
        )

    def auto_fail(self, ability: str, dc: Optional[int], label: str = "") -> CheckResult:
        """被状态效果判定为自动失败的检定（不掷骰）"""
        return CheckResult(
            raw_rolls=(),
            chosen_roll=0,
            modifier=0,
            total=0,
            dc=dc,
            success=False,
            label=label or f"{ability} save",
            auto_failed=True,
        )

    def modifier_breakdown(
        self,
        actor: Any,
        ability_or_skill: str,
        proficient: Optional[bool] = None,
        expertise: Optional[bool] = None,
    ) -> Dict[str, Any]:
        """
        修正值明细（给UI显示）

        Returns:
            Dict: ability / ability_modifier / proficiency_bonus / total / ...
        """
        provider = _provider_of(actor)
        ability, is_skill = resolve_ability_name(ability_or_skill)
        skill = ability_or_skill.strip().lower().replace(" ", "_") if is_skill else None

        if proficient is None:
            proficient = bool(skill) and provider.is_skill_proficient(skill)
        if expertise is None:
            expertise = bool(skill) and provider.has_expertise(skill)

        ability_mod = self._ability_mod(provider, ability)
        proficiency = 0
        if proficient:
            proficiency = provider.proficiency_bonus()
            if expertise:
                proficiency *= 2

        return {
            "ability": ability,
            "skill": skill,
            "ability_modifier": ability_mod,
            "proficiency_bonus": proficiency,
            "is_proficient": bool(proficient),
            "has_expertise": bool(proficient and expertise),
            "total": ability_mod + proficiency,
        }

    # ============================================
    # 私有方法
    # ============================================

    def _ability_mod(self, provider: AttributeProvider, ability: str) -> int:
        if ability not in ABILITIES:
            logger.warning("Unknown ability or skill %r, using modifier 0", ability)
            return 0
        return ability_modifier(provider.ability_score(ability))

    def _roll_d20(
        self,
        modifier: int,
        dc: Optional[int],
        advantage: bool,
        disadvantage: bool,
        bonus_dice: Iterable[str],
        label: str,
    ) -> CheckResult:
        # 优势和劣势同时存在时抵消，按普通掷骰处理
        use_advantage = advantage and not disadvantage
        use_disadvantage = disadvantage and not advantage

        if use_advantage:
            pair = self.dice.roll_with_advantage()
            raw_rolls = (pair.component_a, pair.component_b)
            chosen = pair.chosen
        elif use_disadvantage:
            pair = self.dice.roll_with_disadvantage()
            raw_rolls = (pair.component_a, pair.component_b)
            chosen = pair.chosen
        else:
            chosen = self.dice.roll_die(20)
            raw_rolls = (chosen,)

        bonus_rolls = tuple(self.dice.roll_expression(expr) for expr in bonus_dice)
        total_modifier = modifier + sum(r.total for r in bonus_rolls)
        total = chosen + total_modifier

        result = CheckResult(
            raw_rolls=raw_rolls,
            chosen_roll=chosen,
            modifier=total_modifier,
            total=total,
            dc=dc,
            success=None if dc is None else total >= dc,
            critical=is_critical_success(chosen),
            critical_failure=is_critical_failure(chosen),
            advantage=use_advantage,
            disadvantage=use_disadvantage,
            label=label,
            bonus_rolls=bonus_rolls,
        )
        logger.debug("Check resolved: %s", result)
        return result
