"""
战斗引擎

核心战斗逻辑实现。引擎本身不持有会话：调用方持有 CombatSession 并在每次操作时传入，
每个会话是独立的可变单元。
"""
import logging
import uuid
from typing import Iterable, Optional, Tuple

from edoria.config import settings

from .checks import CheckResolver
from .conditions import ConditionSystem, ConditionTickReport
from .dice import parse_expression
from .items import get_item
from .models.action import ActionResult, ActionType, DamageRoll, FailureReason
from .models.check_result import DiceExpressionResult
from .models.combat_result import CombatSummary
from .models.combat_session import CombatPhase, CombatSession
from .models.combatant import Combatant
from .models.condition import EffectKind
from .rules import FLEE_ABILITY, apply_damage_modifiers

logger = logging.getLogger(__name__)


class CombatEngine:
    """
    战斗引擎

    职责：
    - 初始化战斗（先攻、行动顺序）
    - 执行行动（攻击、检定、物品、逃跑等）
    - 管理回合流程与回合结束的状态结算
    - 判定胜负
    """

    def __init__(
        self,
        resolver: Optional[CheckResolver] = None,
        conditions: Optional[ConditionSystem] = None,
    ):
        self.resolver = resolver or (conditions.resolver if conditions else CheckResolver())
        self.conditions = conditions or ConditionSystem(resolver=self.resolver)
        self.dice = self.resolver.dice

    # ============================================
    # 公共接口 - 战斗流程
    # ============================================

    def start_combat(
        self, participants: Iterable[Combatant], combat_id: Optional[str] = None
    ) -> CombatSession:
        """
        开始战斗

        Args:
            participants: 参战单位（必须恰好包含一个玩家）
            combat_id: 会话ID（默认自动生成）

        Returns:
            CombatSession: 战斗会话

        Raises:
            ValueError: 重复ID或没有玩家（调用方的配置错误）

        流程：
        1. 校验参战单位
        2. 骰先攻（d20 + 敏捷修正）
        3. 按先攻降序排列（同值保持传入顺序）
        4. 开始第一个行动者的回合
        """
        roster = list(participants)
        ids = [c.id for c in roster]
        if len(set(ids)) != len(ids):
            raise ValueError(f"Duplicate combatant ids: {ids}")
        players = [c for c in roster if c.is_player()]
        if len(players) != 1:
            raise ValueError(f"Combat requires exactly one player, got {len(players)}")

        session = CombatSession(
            combat_id=combat_id or f"combat_{uuid.uuid4().hex[:8]}",
            participants=roster,
        )

        # 骰先攻
        for combatant in roster:
            combatant.initiative = self.dice.d20() + combatant.ability_modifier("dexterity")
            combatant.reset_turn_flags()

        # sorted 是稳定排序，reverse=True 时同值仍保持原顺序
        ordered = sorted(roster, key=lambda c: c.initiative, reverse=True)
        session.turn_order = [c.id for c in ordered]
        session.current_index = 0
        session.round = 1
        session.phase = CombatPhase.IN_PROGRESS

        session.add_event(
            "system",
            f"战斗开始！行动顺序：{', '.join(session.turn_order)}",
            event_type="combat_start",
            payload={"initiative": {c.id: c.initiative for c in ordered}},
        )
        logger.info("Combat %s started: %s", session.combat_id, session.turn_order)

        # 先攻最高的单位可能已经倒下（以 0 HP 加入战斗）
        first = session.get_current_actor()
        if first is not None and first.is_dead():
            self._advance(session)
        else:
            self.begin_turn(session)
        self._check_end(session)
        return session

    def begin_turn(self, session: CombatSession) -> Optional[Combatant]:
        """开始当前行动者的回合（重复调用不会再次重置）"""
        if not session.in_progress:
            return None
        actor = session.get_current_actor()
        if actor is None:
            return None
        if session.turn_actor_id == actor.id:
            return actor

        session.turn_actor_id = actor.id
        actor.reset_turn_flags()
        session.add_event(actor.id, f"轮到{actor.name}行动", event_type="turn")
        return actor

    def can_act(self, session: CombatSession, combatant_id: str) -> bool:
        """存活、本回合行动次数未用完、且没有无法行动的状态"""
        combatant = session.get_present(combatant_id)
        if combatant is None or combatant.is_dead() or combatant.has_acted:
            return False
        return combatant.actions_used < self.conditions.allowed_actions(combatant)

    def end_turn(self, session: CombatSession) -> ActionResult:
        """
        结束当前回合

        推进到下一个存活单位；最后一个单位结束后对所有存活单位结算回合结束状态，
        然后回合数 +1。
        """
        actor = session.get_current_actor()
        actor_id = actor.id if actor else None
        if not session.in_progress:
            return ActionResult.failed(
                ActionType.END_TURN, actor_id, FailureReason.INVALID_STATE, "战斗未在进行中"
            )

        result = ActionResult(action_type=ActionType.END_TURN, actor_id=actor_id)
        result.add_message(f"{actor.name if actor else '?'}结束了回合")
        session.turn_actor_id = None
        self._advance(session)
        return result

    # ============================================
    # 公共接口 - 行动
    # ============================================

    def resolve_attack(
        self, session: CombatSession, attacker_id: str, target_id: str
    ) -> ActionResult:
        """
        攻击

        流程：
        1. 校验行动者与目标
        2. 攻击检定（目标AC + 状态AC加值；优势/劣势来自状态）
        3. 命中则骰伤害（暴击骰子数量翻倍），应用抗性后扣血
        4. 检查战斗是否结束
        """
        attacker, failure = self._begin_action(session, attacker_id, ActionType.ATTACK, target_id)
        if failure:
            return failure

        target, failure = self._require_target(session, attacker, target_id, ActionType.ATTACK)
        if failure:
            return failure
        if target.id == attacker.id:
            return ActionResult.failed(
                ActionType.ATTACK, attacker.id, FailureReason.INVALID_STATE, "不能攻击自己", target_id
            )
        if not self.conditions.can_attack(attacker, target):
            return ActionResult.failed(
                ActionType.ATTACK,
                attacker.id,
                FailureReason.INVALID_STATE,
                f"{attacker.name}无法攻击{target.name}",
                target_id,
            )

        modification = self.conditions.get_attack_modification(attacker, target)
        target_ac = target.armor_class + self.conditions.get_ac_bonus(target)
        check = self.resolver.resolve_attack_roll(
            attacker,
            target_ac,
            advantage=modification.advantage,
            disadvantage=modification.disadvantage,
            bonus_dice=self.conditions.attack_roll_bonus(attacker),
        )
        # 天然20必中，天然1必失
        is_hit = check.critical or (bool(check.success) and not check.critical_failure)
        self._consume_action(attacker)

        result = ActionResult(
            action_type=ActionType.ATTACK,
            actor_id=attacker.id,
            target_id=target.id,
            check=check,
            is_hit=is_hit,
        )
        result.add_message(f"{attacker.name}使用{attacker.attack.name}攻击{target.name}：{check}")
        session.add_event(
            attacker.id,
            result.messages[-1],
            event_type="attack",
            target_id=target.id,
            payload={"check": check.to_dict(), "target_ac": target_ac, "hit": is_hit},
        )

        if not is_hit:
            result.success = False
            result.add_message("攻击未命中")
            return result

        profile = attacker.attack
        roll = self._roll_damage(profile.damage_dice, critical=check.critical)
        raw_damage = max(0, roll.total + profile.damage_bonus)
        actual = self._deal_damage(session, target, raw_damage, profile.damage_type, attacker.id)

        result.damage_roll = DamageRoll(
            roll=roll,
            bonus=profile.damage_bonus,
            raw_damage=raw_damage,
            actual_damage=actual,
            damage_type=profile.damage_type,
            critical=check.critical,
        )
        result.amount = actual
        result.add_message(result.damage_roll.to_display_text())
        if target.is_dead():
            result.target_defeated = True
            result.add_message(f"{target.name}被击败了！")
        return result

    def apply_damage(
        self,
        session: CombatSession,
        target_id: str,
        amount: int,
        damage_type: Optional[str] = None,
        source_id: Optional[str] = None,
    ) -> ActionResult:
        """直接造成伤害（陷阱、法术等外部来源），不消耗行动"""
        if session.is_over:
            return ActionResult.failed(
                ActionType.DAMAGE, source_id, FailureReason.INVALID_STATE, "战斗已结束", target_id
            )
        target = session.get_present(target_id)
        if target is None:
            return ActionResult.failed(
                ActionType.DAMAGE, source_id, FailureReason.TARGET_NOT_FOUND, f"目标不存在：{target_id}", target_id
            )

        actual = self._deal_damage(session, target, amount, damage_type, source_id)
        result = ActionResult(
            action_type=ActionType.DAMAGE, actor_id=source_id, target_id=target.id, amount=actual
        )
        result.add_message(f"{target.name}受到{actual}点伤害（当前HP: {target.current_hp}/{target.max_hp}）")
        result.target_defeated = target.is_dead()
        return result

    def apply_healing(
        self,
        session: CombatSession,
        target_id: str,
        amount: int,
        source_id: Optional[str] = None,
    ) -> ActionResult:
        """直接治疗，不消耗行动；已倒下的单位不能被治疗"""
        if session.is_over:
            return ActionResult.failed(
                ActionType.HEAL, source_id, FailureReason.INVALID_STATE, "战斗已结束", target_id
            )
        target = session.get_present(target_id)
        if target is None:
            return ActionResult.failed(
                ActionType.HEAL, source_id, FailureReason.TARGET_NOT_FOUND, f"目标不存在：{target_id}", target_id
            )
        if target.is_dead():
            return ActionResult.failed(
                ActionType.HEAL, source_id, FailureReason.INVALID_STATE, f"{target.name}已倒下", target_id
            )

        actual = self._heal(session, target, amount, source_id)
        result = ActionResult(
            action_type=ActionType.HEAL, actor_id=source_id, target_id=target.id, amount=actual
        )
        result.add_message(f"{target.name}恢复了{actual}点生命值（当前HP: {target.current_hp}/{target.max_hp}）")
        return result

    def resolve_skill_check(
        self,
        session: CombatSession,
        actor_id: str,
        ability_or_skill: str,
        dc: Optional[int] = None,
        advantage: bool = False,
        disadvantage: bool = False,
    ) -> ActionResult:
        """属性/技能检定（不消耗行动；ABILITY_CHECK_DISADVANTAGE 状态带来劣势）"""
        actor = session.get_present(actor_id)
        if actor is None:
            return ActionResult.failed(
                ActionType.SKILL_CHECK, actor_id, FailureReason.TARGET_NOT_FOUND, f"单位不存在：{actor_id}"
            )
        if session.is_over:
            return ActionResult.failed(
                ActionType.SKILL_CHECK, actor_id, FailureReason.INVALID_STATE, "战斗已结束"
            )

        check = self.resolver.resolve_check(
            actor,
            ability_or_skill,
            dc=dc,
            advantage=advantage,
            disadvantage=disadvantage or self.conditions.has_check_disadvantage(actor),
            label=f"{actor.name} {ability_or_skill} check",
        )
        result = ActionResult(
            action_type=ActionType.SKILL_CHECK,
            actor_id=actor.id,
            check=check,
            success=check.success is not False,
        )
        result.add_message(str(check))
        session.add_event(
            actor.id, str(check), event_type="check", payload={"check": check.to_dict()}
        )
        return result

    def resolve_saving_throw(
        self,
        session: CombatSession,
        target_id: str,
        ability: str,
        dc: int,
        advantage: bool = False,
        disadvantage: bool = False,
    ) -> ActionResult:
        """豁免检定（含状态修正：自动失败、附加骰、豁免优势）"""
        target = session.get_present(target_id)
        if target is None:
            return ActionResult.failed(
                ActionType.SAVING_THROW, None, FailureReason.TARGET_NOT_FOUND, f"目标不存在：{target_id}", target_id
            )
        if session.is_over:
            return ActionResult.failed(
                ActionType.SAVING_THROW, target.id, FailureReason.INVALID_STATE, "战斗已结束", target_id
            )

        check = self.conditions.saving_throw(
            target,
            ability,
            dc,
            advantage=advantage,
            disadvantage=disadvantage,
            label=f"{target.name} {ability} save",
        )
        result = ActionResult(
            action_type=ActionType.SAVING_THROW,
            actor_id=target.id,
            target_id=target.id,
            check=check,
            success=bool(check.success),
        )
        result.add_message(str(check))
        session.add_event(
            target.id, str(check), event_type="save", target_id=target.id, payload={"check": check.to_dict()}
        )
        return result

    def defend(self, session: CombatSession, actor_id: str) -> ActionResult:
        """防御：AC+2直到下回合"""
        actor, failure = self._begin_action(session, actor_id, ActionType.DEFEND)
        if failure:
            return failure

        self._consume_action(actor)
        self._apply_condition(session, actor, "defending", source_id=actor.id)
        result = ActionResult(action_type=ActionType.DEFEND, actor_id=actor.id)
        result.add_message(f"{actor.name}进入防御姿态（AC+2直到下回合）")
        return result

    def move(self, session: CombatSession, actor_id: str) -> ActionResult:
        """移动（每回合一次，不消耗行动）"""
        actor, failure = self._current_actor(session, actor_id, ActionType.MOVE)
        if failure:
            return failure
        if actor.has_moved:
            return ActionResult.failed(
                ActionType.MOVE, actor.id, FailureReason.INVALID_STATE, "本回合已经移动过了"
            )
        if not self.conditions.can_move(actor):
            return ActionResult.failed(
                ActionType.MOVE, actor.id, FailureReason.INVALID_STATE, f"{actor.name}无法移动"
            )

        actor.has_moved = True
        result = ActionResult(action_type=ActionType.MOVE, actor_id=actor.id)
        result.add_message(f"{actor.name}移动了")
        session.add_event(actor.id, result.messages[-1], event_type="move")
        return result

    def use_item(
        self,
        session: CombatSession,
        actor_id: str,
        item_id: str,
        target_id: Optional[str] = None,
    ) -> ActionResult:
        """
        使用消耗品

        物品效果为已解码的 Effect：HEAL / REMOVE_CONDITION / APPLY_CONDITION。
        背包数量由外部系统管理。
        """
        actor, failure = self._begin_action(session, actor_id, ActionType.USE_ITEM, target_id)
        if failure:
            return failure

        item = get_item(item_id)
        if item is None:
            return ActionResult.failed(
                ActionType.USE_ITEM, actor.id, FailureReason.UNKNOWN_ITEM, f"未知物品：{item_id}"
            )

        target, failure = self._require_target(session, actor, target_id or actor.id, ActionType.USE_ITEM)
        if failure:
            return failure

        self._consume_action(actor)
        result = ActionResult(action_type=ActionType.USE_ITEM, actor_id=actor.id, target_id=target.id)
        result.add_message(f"{actor.name}使用了{item['name']}")

        for effect in item["effects"]:
            if effect.kind == EffectKind.HEAL:
                roll = self.dice.roll_expression(effect.dice)
                actual = self._heal(session, target, roll.total, actor.id)
                result.amount += actual
                result.add_message(
                    f"恢复了{actual}点生命值（当前HP: {target.current_hp}/{target.max_hp}）"
                )
            elif effect.kind == EffectKind.REMOVE_CONDITION:
                if self._remove_condition(session, target, effect.condition_id):
                    result.add_message(f"{target.name}的{effect.condition_id}状态被解除")
            elif effect.kind == EffectKind.APPLY_CONDITION:
                change = self._apply_condition(
                    session,
                    target,
                    effect.condition_id,
                    duration_override=effect.amount or None,
                    source_id=actor.id,
                )
                if change.applied:
                    result.add_message(f"{target.name}获得了{effect.condition_id}状态")
            else:
                logger.warning("Unsupported item effect %s on %s", effect.kind, item_id)

        return result

    def flee(self, session: CombatSession, actor_id: str) -> ActionResult:
        """
        逃跑

        敏捷检定 vs settings.flee_dc；flee_dc 为 None 时必定成功。
        玩家逃跑成功则战斗以 FLED 结束；其他单位逃跑成功只是离开战场，
        随后检查胜负，未结束时直接轮到下一个单位。
        """
        actor, failure = self._begin_action(session, actor_id, ActionType.FLEE)
        if failure:
            return failure

        self._consume_action(actor)
        result = ActionResult(action_type=ActionType.FLEE, actor_id=actor.id)
        result.add_message(f"{actor.name}试图逃跑")

        flee_dc = settings.flee_dc
        if flee_dc is None:
            success = True
        else:
            check = self.resolver.resolve_check(
                actor,
                FLEE_ABILITY,
                dc=flee_dc,
                disadvantage=self.conditions.has_check_disadvantage(actor),
                label=f"{actor.name} flee",
            )
            result.check = check
            result.add_message(f"逃跑判定：{check}")
            success = bool(check.success)

        result.success = success
        session.add_event(
            actor.id,
            "成功逃离！" if success else "逃跑失败，浪费了回合",
            event_type="flee",
            payload={"success": success, "check": result.check.to_dict() if result.check else None},
        )
        if success:
            result.add_message("成功逃离！")
            if actor.is_player_controlled:
                self._finish(session, CombatPhase.FLED)
            else:
                self._withdraw(session, actor)
        else:
            result.add_message("逃跑失败，浪费了回合")
        return result

    def apply_condition(
        self,
        session: CombatSession,
        target_id: str,
        definition_id: str,
        duration_override=None,
        source_id: Optional[str] = None,
        dc: Optional[int] = None,
    ) -> ActionResult:
        """对目标施加状态（不消耗行动；法术/陷阱等外部来源调用）"""
        if session.is_over:
            return ActionResult.failed(
                ActionType.APPLY_CONDITION, source_id, FailureReason.INVALID_STATE, "战斗已结束", target_id
            )
        target = session.get_present(target_id)
        if target is None:
            return ActionResult.failed(
                ActionType.APPLY_CONDITION, source_id, FailureReason.TARGET_NOT_FOUND, f"目标不存在：{target_id}", target_id
            )

        change = self._apply_condition(
            session, target, definition_id, duration_override=duration_override, source_id=source_id, dc=dc
        )
        if not change.applied:
            return ActionResult.failed(
                ActionType.APPLY_CONDITION,
                source_id,
                FailureReason.UNKNOWN_CONDITION,
                f"未知状态：{definition_id}",
                target.id,
            )
        result = ActionResult(action_type=ActionType.APPLY_CONDITION, actor_id=source_id, target_id=target.id)
        result.add_message(f"{target.name}获得了{definition_id}状态")
        return result

    def remove_condition(
        self, session: CombatSession, target_id: str, definition_id: str
    ) -> ActionResult:
        """移除状态（幂等：不存在时 success=False 但不是错误）"""
        target = session.get_present(target_id)
        if target is None:
            return ActionResult.failed(
                ActionType.REMOVE_CONDITION, None, FailureReason.TARGET_NOT_FOUND, f"目标不存在：{target_id}", target_id
            )
        removed = self._remove_condition(session, target, definition_id)
        result = ActionResult(
            action_type=ActionType.REMOVE_CONDITION, actor_id=None, target_id=target.id, success=removed
        )
        result.add_message(
            f"{target.name}的{definition_id}状态被解除" if removed else f"{target.name}没有{definition_id}状态"
        )
        return result

    def summarize(self, session: CombatSession) -> CombatSummary:
        """
        生成战斗结果摘要

        Raises:
            ValueError: 战斗尚未结束
        """
        if not session.is_over:
            raise ValueError("Combat is not ended")

        player = session.get_player()
        defeated = [c.id for c in session.participants if not c.is_player() and c.is_dead()]

        if session.phase == CombatPhase.VICTORY:
            summary = f"你在{session.round}回合内击败了{len(defeated)}个敌人"
        elif session.phase == CombatPhase.DEFEAT:
            summary = "你被敌人击败了"
        else:
            summary = "你成功逃离了战斗"

        return CombatSummary(
            combat_id=session.combat_id,
            result=session.phase,
            summary=summary,
            player_hp_remaining=player.current_hp if player else 0,
            player_max_hp=player.max_hp if player else 0,
            total_rounds=session.round,
            defeated_ids=defeated,
            survivor_ids=[c.id for c in session.get_living()],
            fled_ids=list(session.fled_ids),
            full_log=[event.message for event in session.event_log],
        )

    # ============================================
    # 私有方法 - 校验
    # ============================================

    def _current_actor(
        self, session: CombatSession, actor_id: str, action_type: ActionType
    ) -> Tuple[Optional[Combatant], Optional[ActionResult]]:
        """校验：战斗进行中、单位存在、轮到该单位"""
        if not session.in_progress:
            return None, ActionResult.failed(
                action_type, actor_id, FailureReason.INVALID_STATE, "战斗未在进行中"
            )
        actor = session.get_present(actor_id)
        if actor is None:
            return None, ActionResult.failed(
                action_type, actor_id, FailureReason.TARGET_NOT_FOUND, f"单位不存在：{actor_id}"
            )
        current = session.get_current_actor()
        if current is None or current.id != actor.id:
            return None, ActionResult.failed(
                action_type, actor.id, FailureReason.INVALID_STATE, f"现在不是{actor.name}的回合"
            )
        self.begin_turn(session)
        return actor, None

    def _begin_action(
        self,
        session: CombatSession,
        actor_id: str,
        action_type: ActionType,
        target_id: Optional[str] = None,
    ) -> Tuple[Optional[Combatant], Optional[ActionResult]]:
        """校验需要消耗行动的操作"""
        actor, failure = self._current_actor(session, actor_id, action_type)
        if failure:
            return None, failure
        if not self.can_act(session, actor.id):
            return None, ActionResult.failed(
                action_type, actor.id, FailureReason.INVALID_STATE, f"{actor.name}本回合无法再行动", target_id
            )
        return actor, None

    def _require_target(
        self,
        session: CombatSession,
        actor: Combatant,
        target_id: Optional[str],
        action_type: ActionType,
    ) -> Tuple[Optional[Combatant], Optional[ActionResult]]:
        target = session.get_present(target_id)
        if target is None:
            return None, ActionResult.failed(
                action_type, actor.id, FailureReason.TARGET_NOT_FOUND, f"目标不存在：{target_id}", target_id
            )
        if target.is_dead():
            return None, ActionResult.failed(
                action_type, actor.id, FailureReason.INVALID_STATE, f"{target.name}已倒下", target_id
            )
        return target, None

    def _consume_action(self, actor: Combatant):
        actor.actions_used += 1
        if actor.actions_used >= self.conditions.allowed_actions(actor):
            actor.has_acted = True

    # ============================================
    # 私有方法 - 伤害 / 状态
    # ============================================

    def _roll_damage(self, expression: str, critical: bool) -> DiceExpressionResult:
        """伤害骰：暴击时骰子数量翻倍（修正值不翻倍）"""
        count_override = None
        if critical:
            parsed = parse_expression(expression)
            if parsed is not None:
                count_override = parsed[0] * 2
        return self.dice.roll_expression(expression, count_override=count_override)

    def _deal_damage(
        self,
        session: CombatSession,
        target: Combatant,
        amount: int,
        damage_type: Optional[str],
        source_id: Optional[str],
    ) -> int:
        modified = apply_damage_modifiers(
            amount, damage_type, target.resistances, target.vulnerabilities, target.immunities
        )
        was_alive = target.is_alive
        actual = target.apply_damage(modified)
        session.add_event(
            source_id or "system",
            f"{target.name}受到{actual}点{damage_type or ''}伤害",
            event_type="damage",
            target_id=target.id,
            payload={"raw": amount, "actual": actual, "damage_type": damage_type, "hp": target.current_hp},
        )
        if was_alive and target.is_dead():
            self._handle_defeat(session, target)
        return actual

    def _heal(
        self, session: CombatSession, target: Combatant, amount: int, source_id: Optional[str]
    ) -> int:
        actual = target.apply_healing(amount)
        session.add_event(
            source_id or "system",
            f"{target.name}恢复了{actual}点生命值",
            event_type="heal",
            target_id=target.id,
            payload={"amount": actual, "hp": target.current_hp},
        )
        return actual

    def _handle_defeat(self, session: CombatSession, target: Combatant):
        """单位倒下：移除其状态，打断其维持的专注，检查战斗结束"""
        session.add_event("system", f"{target.name}被击败了！", event_type="defeated", target_id=target.id)
        logger.info("Combatant %s defeated in %s", target.id, session.combat_id)
        for definition_id in self.conditions.clear_all(target):
            session.add_event(
                "system",
                f"{target.name}的{definition_id}状态消失",
                event_type="condition_removed",
                target_id=target.id,
                payload={"condition": definition_id},
            )
        for other in session.participants:
            for definition_id in self.conditions.break_concentration(other, source_id=target.id):
                session.add_event(
                    target.id,
                    f"{other.name}的{definition_id}状态因专注中断而消失",
                    event_type="condition_removed",
                    target_id=other.id,
                    payload={"condition": definition_id, "reason": "concentration"},
                )
        self._check_end(session)

    def _withdraw(self, session: CombatSession, combatant: Combatant):
        """非玩家单位离开战场：移出行动顺序，打断其维持的专注，检查战斗结束"""
        session.fled_ids.append(combatant.id)
        index = session.turn_order.index(combatant.id)
        session.turn_order.remove(combatant.id)
        if index <= session.current_index:
            session.current_index -= 1
        session.turn_actor_id = None
        logger.info("Combatant %s fled from %s", combatant.id, session.combat_id)
        for other in session.participants:
            for definition_id in self.conditions.break_concentration(other, source_id=combatant.id):
                session.add_event(
                    combatant.id,
                    f"{other.name}的{definition_id}状态因专注中断而消失",
                    event_type="condition_removed",
                    target_id=other.id,
                    payload={"condition": definition_id, "reason": "concentration"},
                )
        if self._check_end(session) is None:
            self._advance(session)

    def _apply_condition(
        self,
        session: CombatSession,
        target: Combatant,
        definition_id: str,
        duration_override=None,
        source_id: Optional[str] = None,
        dc: Optional[int] = None,
    ):
        change = self.conditions.apply(
            target,
            definition_id,
            duration_override=duration_override,
            source_id=source_id,
            dc=dc,
            tick=session.round,
        )
        if change.applied:
            session.add_event(
                source_id or "system",
                f"{target.name}获得了{definition_id}状态",
                event_type="condition_applied",
                target_id=target.id,
                payload=change.to_dict(),
            )
        return change

    def _remove_condition(self, session: CombatSession, target: Combatant, definition_id: str) -> bool:
        removed = self.conditions.remove(target, definition_id)
        if removed:
            session.add_event(
                "system",
                f"{target.name}的{definition_id}状态被解除",
                event_type="condition_removed",
                target_id=target.id,
                payload={"condition": definition_id},
            )
        return removed

    # ============================================
    # 私有方法 - 回合推进
    # ============================================

    def _advance(self, session: CombatSession):
        """推进到下一个存活单位，跨越队尾时结算回合结束"""
        count = len(session.turn_order)
        index = session.current_index
        for _ in range(count):
            index += 1
            if index >= count:
                self._end_round(session)
                if session.is_over:
                    return
                index = 0
            combatant = session.get_combatant(session.turn_order[index])
            if combatant is not None and combatant.is_alive:
                session.current_index = index
                self.begin_turn(session)
                return
        logger.error("No living combatant to advance to in %s", session.combat_id)

    def _end_round(self, session: CombatSession):
        for combatant in session.get_living():
            report = self.conditions.end_of_turn(combatant, tick=session.round)
            self._record_tick(session, combatant, report)
            if session.is_over:
                return

        session.round += 1
        session.add_event("system", f"第{session.round}回合开始", event_type="round")

    def _record_tick(self, session: CombatSession, target: Combatant, report: ConditionTickReport):
        """记录回合结束结算产生的事件"""
        for entry in report.damage:
            session.add_event(
                "system",
                f"{target.name}因{entry.definition_id}受到{entry.amount}点{entry.damage_type}伤害",
                event_type="condition_damage",
                target_id=target.id,
                payload={
                    "condition": entry.definition_id,
                    "roll": entry.roll.to_dict(),
                    "amount": entry.amount,
                    "damage_type": entry.damage_type,
                },
            )
        for entry in report.saves:
            session.add_event(
                target.id,
                str(entry.check),
                event_type="save",
                target_id=target.id,
                payload={"condition": entry.definition_id, "check": entry.check.to_dict()},
            )
        for definition_id in report.removed:
            session.add_event(
                "system",
                f"{target.name}的{definition_id}状态结束",
                event_type="condition_removed",
                target_id=target.id,
                payload={"condition": definition_id},
            )
        if target.is_dead():
            self._handle_defeat(session, target)

    def _check_end(self, session: CombatSession) -> Optional[CombatPhase]:
        if not session.in_progress:
            return None
        outcome = session.check_combat_end()
        if outcome:
            self._finish(session, outcome)
        return outcome

    def _finish(self, session: CombatSession, phase: CombatPhase):
        session.phase = phase
        session.turn_actor_id = None
        session.add_event("system", f"战斗结束：{phase.value}", event_type="combat_end", payload={"result": phase.value})
        logger.info("Combat %s ended: %s", session.combat_id, phase.value)