"""
状态效果系统

状态实例存放在战斗单位自身（Combatant.conditions），本模块只负责施加、移除、
回合结束结算以及效果查询。所有效果在加载时已解码为 Effect，这里不再解析原始数据。
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

from edoria.config import settings

from .checks import CheckResolver
from .condition_registry import ConditionRegistry, get_default_registry
from .models.check_result import CheckResult, DiceExpressionResult
from .models.combatant import Combatant
from .models.condition import (
    ConditionDefinition,
    ConditionInstance,
    DurationPolicy,
    Effect,
    EffectKind,
)
from .rules import BASE_ACTIONS_PER_TURN, apply_damage_modifiers

logger = logging.getLogger(__name__)


class ConditionTickError(RuntimeError):
    """同一 tick 内对同一单位重复结算回合结束（调用方的逻辑错误）"""


@dataclass(frozen=True)
class AttackModification:
    """状态带来的攻击优势/劣势（两者同时为真时由检定解析器抵消）"""

    advantage: bool = False
    disadvantage: bool = False


@dataclass
class ConditionChange:
    """施加状态的结果"""

    target_id: str
    definition_id: str
    applied: bool
    replaced: bool = False
    instance: Optional[ConditionInstance] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "target": self.target_id,
            "condition": self.definition_id,
            "applied": self.applied,
            "replaced": self.replaced,
            "instance": self.instance.to_dict() if self.instance else None,
        }


@dataclass
class ConditionDamage:
    definition_id: str
    roll: DiceExpressionResult
    damage_type: Optional[str]
    amount: int  # 抗性修正并扣减HP后的实际伤害


@dataclass
class ConditionSave:
    definition_id: str
    check: CheckResult


@dataclass
class ConditionTickReport:
    """回合结束结算报告"""

    target_id: str
    tick: int
    damage: List[ConditionDamage] = field(default_factory=list)
    saves: List[ConditionSave] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    skipped: bool = False  # 重复结算被拒绝

    @property
    def total_damage(self) -> int:
        return sum(entry.amount for entry in self.damage)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "target": self.target_id,
            "tick": self.tick,
            "damage": [
                {
                    "condition": entry.definition_id,
                    "roll": entry.roll.to_dict(),
                    "damage_type": entry.damage_type,
                    "amount": entry.amount,
                }
                for entry in self.damage
            ],
            "saves": [
                {"condition": entry.definition_id, "check": entry.check.to_dict()}
                for entry in self.saves
            ],
            "removed": list(self.removed),
            "skipped": self.skipped,
        }


class ConditionSystem:
    """
    状态效果系统

    回合结束时每个实例按固定顺序处理：
    1. 持续伤害
    2. fixed_turns 剩余回合 -1
    3. until_next_turn 到期
    4. until_saved 豁免（成功则移除）
    所有实例评估完毕后才统一移除。
    """

    def __init__(
        self,
        registry: Optional[ConditionRegistry] = None,
        resolver: Optional[CheckResolver] = None,
        strict: Optional[bool] = None,
    ):
        self.registry = registry or get_default_registry()
        self.resolver = resolver or CheckResolver()
        self.dice = self.resolver.dice
        self._strict = strict

    @property
    def strict(self) -> bool:
        if self._strict is not None:
            return self._strict
        return settings.strict_mode

    # ============================================
    # 施加 / 移除
    # ============================================

    def apply(
        self,
        target: Combatant,
        definition_id: str,
        duration_override: Union[int, DurationPolicy, str, None] = None,
        source_id: Optional[str] = None,
        dc: Optional[int] = None,
        tick: int = 0,
    ) -> ConditionChange:
        """
        施加状态

        Args:
            target: 目标单位
            definition_id: 状态ID（如 "poisoned"）
            duration_override: 整数表示持续固定回合数；也可直接指定持续策略
            source_id: 施加者（专注 / 魅惑使用）
            dc: until_saved 状态的豁免DC
            tick: 当前回合数

        Returns:
            ConditionChange: 未知状态时 applied=False
        """
        definition = self.registry.get(definition_id)
        if definition is None:
            logger.warning("Unknown condition %r, not applied to %s", definition_id, target.id)
            return ConditionChange(target_id=target.id, definition_id=definition_id, applied=False)

        policy = definition.duration_policy
        turns = definition.default_turns if policy == DurationPolicy.FIXED_TURNS else None

        # bool 是 int 的子类，不能当作回合数
        if isinstance(duration_override, int) and not isinstance(duration_override, bool):
            if duration_override < 1:
                logger.warning(
                    "Ignoring non-positive duration %s for condition %s",
                    duration_override,
                    definition_id,
                )
            else:
                policy = DurationPolicy.FIXED_TURNS
                turns = duration_override
        elif duration_override is not None:
            policy = DurationPolicy(duration_override)
            turns = definition.default_turns if policy == DurationPolicy.FIXED_TURNS else None
            if policy == DurationPolicy.FIXED_TURNS and not turns:
                logger.warning(
                    "Condition %s has no default_turns, treating as until_next_turn",
                    definition_id,
                )
                policy = DurationPolicy.UNTIL_NEXT_TURN

        instance = ConditionInstance(
            definition_id=definition_id,
            duration_policy=policy,
            turns_remaining=turns,
            source_id=source_id,
            dc=dc,
            applied_at_tick=tick,
        )
        replaced = definition_id in target.conditions
        target.conditions[definition_id] = instance

        logger.debug(
            "Applied %s to %s (policy=%s, turns=%s, dc=%s, replaced=%s)",
            definition_id,
            target.id,
            policy.value,
            turns,
            dc,
            replaced,
        )
        return ConditionChange(
            target_id=target.id,
            definition_id=definition_id,
            applied=True,
            replaced=replaced,
            instance=instance,
        )

    def remove(self, target: Combatant, definition_id: str) -> bool:
        """移除状态（幂等：不存在时返回 False）"""
        if target.conditions.pop(definition_id, None) is None:
            return False
        logger.debug("Removed %s from %s", definition_id, target.id)
        return True

    def break_concentration(self, target: Combatant, source_id: Optional[str] = None) -> List[str]:
        """
        打断专注：移除目标身上的专注类状态

        source_id 不为空时只移除该施法者维持的状态。
        """
        removed = [
            instance.definition_id
            for instance in list(target.conditions.values())
            if instance.duration_policy == DurationPolicy.CONCENTRATION
            and (source_id is None or instance.source_id == source_id)
        ]
        for definition_id in removed:
            self.remove(target, definition_id)
        return removed

    def clear_all(self, target: Combatant) -> List[str]:
        removed = list(target.conditions)
        target.conditions.clear()
        return removed

    # ============================================
    # 回合结束结算
    # ============================================

    def end_of_turn(self, target: Combatant, tick: int) -> ConditionTickReport:
        """
        回合结束结算

        Raises:
            ConditionTickError: 严格模式下同一 tick 重复结算同一单位
        """
        if target.last_condition_tick == tick:
            message = f"end_of_turn called twice for {target.id} in tick {tick}"
            if self.strict:
                raise ConditionTickError(message)
            logger.error(message)
            return ConditionTickReport(target_id=target.id, tick=tick, skipped=True)

        target.last_condition_tick = tick
        report = ConditionTickReport(target_id=target.id, tick=tick)
        to_remove: List[str] = []

        for instance in list(target.conditions.values()):
            definition = self.registry.get(instance.definition_id)
            if definition is None:
                logger.warning(
                    "Unknown condition %r on %s, skipping", instance.definition_id, target.id
                )
                continue

            for effect in definition.effects_of(EffectKind.DAMAGE_PER_TURN):
                report.damage.append(self._apply_turn_damage(target, definition, effect))

            if (
                instance.duration_policy == DurationPolicy.FIXED_TURNS
                and instance.turns_remaining is not None
            ):
                instance.turns_remaining -= 1
                if instance.turns_remaining <= 0:
                    to_remove.append(instance.definition_id)

            if instance.duration_policy == DurationPolicy.UNTIL_NEXT_TURN:
                to_remove.append(instance.definition_id)

            if (
                instance.duration_policy == DurationPolicy.UNTIL_SAVED
                and instance.dc is not None
                and definition.saving_ability
            ):
                check = self.saving_throw(
                    target,
                    definition.saving_ability,
                    instance.dc,
                    label=f"{target.name} {definition.saving_ability} save vs {definition.name}",
                )
                report.saves.append(ConditionSave(definition_id=definition.id, check=check))
                if check.success:
                    to_remove.append(instance.definition_id)

        for definition_id in dict.fromkeys(to_remove):
            if self.remove(target, definition_id):
                report.removed.append(definition_id)

        return report

    def _apply_turn_damage(
        self, target: Combatant, definition: ConditionDefinition, effect: Effect
    ) -> ConditionDamage:
        roll = self.dice.roll_expression(effect.dice)
        modified = apply_damage_modifiers(
            roll.total,
            effect.damage_type,
            target.resistances,
            target.vulnerabilities,
            target.immunities,
        )
        actual = target.apply_damage(modified)
        logger.debug(
            "%s takes %d %s damage from %s", target.id, actual, effect.damage_type, definition.id
        )
        return ConditionDamage(
            definition_id=definition.id,
            roll=roll,
            damage_type=effect.damage_type,
            amount=actual,
        )

    # ============================================
    # 判定
    # ============================================

    def saving_throw(
        self,
        target: Combatant,
        ability: str,
        dc: Optional[int],
        advantage: bool = False,
        disadvantage: bool = False,
        proficient: Optional[bool] = None,
        label: str = "",
    ) -> CheckResult:
        """
        带状态修正的豁免检定

        - AUTO_FAIL_ABILITY：对应属性豁免自动失败，不掷骰
        - SAVING_THROW_BONUS：附加骰
        - SAVE_ADVANTAGE：对应属性豁免获得优势
        """
        ability = ability.strip().lower()
        effects = [effect for _, effect in self._active_effects(target)]

        if any(e.kind == EffectKind.AUTO_FAIL_ABILITY and e.ability == ability for e in effects):
            logger.debug("%s automatically fails %s save", target.id, ability)
            return self.resolver.auto_fail(ability, dc, label=label)

        bonus_dice = [e.dice for e in effects if e.kind == EffectKind.SAVING_THROW_BONUS]
        if any(e.kind == EffectKind.SAVE_ADVANTAGE and e.ability == ability for e in effects):
            advantage = True

        return self.resolver.resolve_saving_throw(
            target,
            ability,
            dc,
            proficient=proficient,
            advantage=advantage,
            disadvantage=disadvantage,
            bonus_dice=bonus_dice,
            label=label,
        )

    # ============================================
    # 查询
    # ============================================

    def has_condition(self, target: Combatant, definition_id: str) -> bool:
        return definition_id in target.conditions

    def has_effect(self, target: Combatant, kind: EffectKind) -> bool:
        return any(effect.kind == kind for _, effect in self._active_effects(target))

    def get_active(self, target: Combatant) -> List[ConditionInstance]:
        return list(target.conditions.values())

    def describe(self, target: Combatant) -> List[Dict[str, Any]]:
        """活跃状态的展示信息（给UI）"""
        described = []
        for instance in target.conditions.values():
            definition = self.registry.get(instance.definition_id)
            entry = instance.to_dict()
            if definition is not None:
                entry.update(
                    name=definition.name,
                    icon=definition.icon,
                    kind=definition.kind,
                    description=definition.description,
                )
            described.append(entry)
        return described

    def get_ac_bonus(self, target: Combatant) -> int:
        return sum(
            effect.amount
            for _, effect in self._active_effects(target)
            if effect.kind == EffectKind.AC_BONUS
        )

    def get_attack_modification(self, attacker: Combatant, target: Combatant) -> AttackModification:
        return AttackModification(
            advantage=self.has_effect(target, EffectKind.ADVANTAGE_AGAINST),
            disadvantage=self.has_effect(attacker, EffectKind.ATTACK_DISADVANTAGE),
        )

    def attack_roll_bonus(self, attacker: Combatant) -> Tuple[str, ...]:
        """攻击骰附加骰表达式（如祝福术的 1d4）"""
        return tuple(
            effect.dice
            for _, effect in self._active_effects(attacker)
            if effect.kind == EffectKind.ATTACK_ROLL_BONUS
        )

    def has_check_disadvantage(self, actor: Combatant) -> bool:
        return self.has_effect(actor, EffectKind.ABILITY_CHECK_DISADVANTAGE)

    def allowed_actions(self, target: Combatant) -> int:
        """本回合可用的行动次数"""
        if self.has_effect(target, EffectKind.CANNOT_ACT):
            return 0
        extra = 1 if self.has_effect(target, EffectKind.EXTRA_ACTION) else 0
        return BASE_ACTIONS_PER_TURN + extra

    def can_move(self, target: Combatant) -> bool:
        return not self.has_effect(target, EffectKind.CANNOT_MOVE)

    def can_attack(self, attacker: Combatant, target: Combatant) -> bool:
        """魅惑：不能攻击施加者"""
        for instance, effect in self._active_effects(attacker):
            if effect.kind == EffectKind.CANNOT_ATTACK_SOURCE and instance.source_id == target.id:
                return False
        return True

    def _active_effects(self, target: Combatant) -> Iterator[Tuple[ConditionInstance, Effect]]:
        for instance in target.conditions.values():
            definition = self.registry.get(instance.definition_id)
            if definition is None:
                continue
            for effect in definition.effects:
                yield instance, effect
