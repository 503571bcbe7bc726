"""
战斗会话数据模型
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from .combatant import Combatant


class CombatPhase(str, Enum):
    """战斗阶段"""

    SETUP = "setup"  # 未开始
    IN_PROGRESS = "in_progress"  # 进行中
    VICTORY = "victory"  # 胜利（终止）
    DEFEAT = "defeat"  # 失败（终止）
    FLED = "fled"  # 逃跑成功（终止）


TERMINAL_PHASES = frozenset({CombatPhase.VICTORY, CombatPhase.DEFEAT, CombatPhase.FLED})


@dataclass
class CombatLogEvent:
    """结构化战斗事件（由表现层按自己的节奏回放）"""

    seq: int
    round: int
    actor_id: str
    event_type: str
    message: str
    timestamp: datetime = field(default_factory=datetime.now)
    target_id: Optional[str] = None
    payload: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "seq": self.seq,
            "round": self.round,
            "actor": self.actor_id,
            "target": self.target_id,
            "event_type": self.event_type,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
            "payload": self.payload,
        }


@dataclass
class CombatSession:
    """
    战斗会话

    由调用方持有并传入引擎的每个操作；会话之间不共享任何可变状态。
    """

    # ===== 基础信息 =====
    combat_id: str
    phase: CombatPhase = CombatPhase.SETUP

    # ===== 战斗单位 =====
    participants: List[Combatant] = field(default_factory=list)

    # ===== 行动顺序 =====
    turn_order: List[str] = field(default_factory=list)  # 按先攻排序的ID列表
    current_index: int = 0
    round: int = 1
    turn_actor_id: Optional[str] = None  # 已经开始回合的行动者
    fled_ids: List[str] = field(default_factory=list)  # 中途逃离战斗的非玩家单位

    # ===== 战斗日志 =====
    event_log: List[CombatLogEvent] = field(default_factory=list)
    event_seq: int = 0
    event_sink: Optional[Callable[[CombatLogEvent], None]] = field(
        default=None, repr=False, compare=False
    )

    # ===== 便捷方法 =====

    @property
    def is_over(self) -> bool:
        return self.phase in TERMINAL_PHASES

    @property
    def in_progress(self) -> bool:
        return self.phase == CombatPhase.IN_PROGRESS

    def get_combatant(self, combatant_id: Optional[str]) -> Optional[Combatant]:
        """根据ID获取战斗单位"""
        for combatant in self.participants:
            if combatant.id == combatant_id:
                return combatant
        return None

    def get_current_actor(self) -> Optional[Combatant]:
        """获取当前回合的行动者"""
        if not self.turn_order or self.current_index >= len(self.turn_order):
            return None
        return self.get_combatant(self.turn_order[self.current_index])

    def has_fled(self, combatant_id: Optional[str]) -> bool:
        return combatant_id in self.fled_ids

    def get_present(self, combatant_id: Optional[str]) -> Optional[Combatant]:
        """获取仍在战场上的单位（已逃离的返回None）"""
        if self.has_fled(combatant_id):
            return None
        return self.get_combatant(combatant_id)

    def get_living(self) -> List[Combatant]:
        """按行动顺序返回存活单位"""
        ordered = [self.get_combatant(cid) for cid in self.turn_order]
        if not ordered:
            ordered = list(self.participants)
        return [c for c in ordered if c is not None and c.is_alive and not self.has_fled(c.id)]

    def get_player(self) -> Optional[Combatant]:
        """获取玩家（假设只有一个玩家）"""
        for combatant in self.participants:
            if combatant.is_player():
                return combatant
        return None

    def get_opponents(self) -> List[Combatant]:
        """获取仍在战场上的敌人（含已倒下的）；队友与已逃离的敌人不计入胜负"""
        return [c for c in self.participants if c.is_enemy() and not self.has_fled(c.id)]

    def set_event_sink(self, sink: Optional[Callable[[CombatLogEvent], None]]):
        """设置事件输出回调（用于推送前端）"""
        self.event_sink = sink

    def add_event(
        self,
        actor_id: str,
        message: str,
        event_type: str = "log",
        target_id: Optional[str] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> CombatLogEvent:
        """添加结构化事件"""
        self.event_seq += 1
        event = CombatLogEvent(
            seq=self.event_seq,
            round=self.round,
            actor_id=actor_id,
            event_type=event_type,
            message=message,
            target_id=target_id,
            payload=payload,
        )
        self.event_log.append(event)
        if self.event_sink:
            self.event_sink(event)
        return event

    def check_combat_end(self) -> Optional[CombatPhase]:
        """
        检查战斗是否结束

        Returns:
            Optional[CombatPhase]: 如果战斗结束返回终止阶段，否则None
        """
        player = self.get_player()
        if not player or player.is_dead():
            return CombatPhase.DEFEAT

        if all(c.is_dead() for c in self.get_opponents()):
            return CombatPhase.VICTORY

        return None

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典（快照）"""
        return {
            "combat_id": self.combat_id,
            "phase": self.phase.value,
            "round": self.round,
            "current_index": self.current_index,
            "turn_order": list(self.turn_order),
            "turn_actor_id": self.turn_actor_id,
            "fled_ids": list(self.fled_ids),
            "participants": [c.to_dict() for c in self.participants],
            "event_seq": self.event_seq,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CombatSession":
        """从快照恢复（事件日志不属于快照）"""
        return cls(
            combat_id=data["combat_id"],
            phase=CombatPhase(data["phase"]),
            participants=[Combatant.from_dict(c) for c in data.get("participants", [])],
            turn_order=list(data.get("turn_order", [])),
            current_index=data.get("current_index", 0),
            round=data.get("round", 1),
            turn_actor_id=data.get("turn_actor_id"),
            fled_ids=list(data.get("fled_ids", [])),
            event_seq=data.get("event_seq", 0),
        )
