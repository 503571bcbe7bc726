"""
战斗结果数据模型
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List

from .combat_session import CombatPhase


@dataclass
class CombatSummary:
    """
    战斗最终结果

    用于返回给外部系统（存档、经验、叙事）
    """

    # ===== 基础信息 =====
    combat_id: str
    result: CombatPhase

    # ===== 摘要 =====
    summary: str  # 如 "你在3回合内击败了2个敌人"

    # ===== 玩家状态 =====
    player_hp_remaining: int = 0
    player_max_hp: int = 0

    # ===== 统计数据 =====
    total_rounds: int = 0
    defeated_ids: List[str] = field(default_factory=list)
    survivor_ids: List[str] = field(default_factory=list)
    fled_ids: List[str] = field(default_factory=list)

    # ===== 完整日志（可选，给UI详细显示） =====
    full_log: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典"""
        result_dict = {
            "combat_id": self.combat_id,
            "result": self.result.value,
            "summary": self.summary,
            "player_state": {
                "hp_remaining": self.player_hp_remaining,
                "max_hp": self.player_max_hp,
            },
            "statistics": {
                "total_rounds": self.total_rounds,
                "defeated": self.defeated_ids,
                "survivors": self.survivor_ids,
                "fled": self.fled_ids,
            },
        }

        if self.full_log:
            result_dict["full_log"] = self.full_log

        return result_dict
