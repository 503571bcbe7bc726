"""Consumable item effects, decoded once into ``Effect`` variants."""
from typing import Any, Dict, Optional

from .models.condition import Effect, EffectKind

ITEM_EFFECTS: Dict[str, Dict[str, Any]] = {
    "healing_potion": {
        "name": "治疗药水",
        "effects": (Effect(EffectKind.HEAL, dice="2d4+2"),),
        "description": "恢复少量生命值",
    },
    "greater_healing_potion": {
        "name": "强效治疗药水",
        "effects": (Effect(EffectKind.HEAL, dice="4d4+4"),),
        "description": "恢复中等生命值",
    },
    "antitoxin": {
        "name": "解毒剂",
        "effects": (Effect(EffectKind.REMOVE_CONDITION, condition_id="poisoned"),),
        "description": "解除中毒",
    },
    "potion_of_speed": {
        "name": "加速药水",
        "effects": (Effect(EffectKind.APPLY_CONDITION, condition_id="haste", amount=10),),
        "description": "获得加速效果",
    },
}


def get_item(item_id: str) -> Optional[Dict[str, Any]]:
    return ITEM_EFFECTS.get(item_id)
