"""
状态定义注册表

从 JSON 数据文件读取状态定义，经 pydantic 校验后一次性解码为不可变的
``ConditionDefinition``。施加状态时不再重新解析。
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Literal, Optional

from pydantic import BaseModel, Field, ValidationError, model_validator

from edoria.config import settings

from .models.condition import ConditionDefinition, DurationPolicy, Effect, EffectKind
from .rules import ABILITIES

logger = logging.getLogger(__name__)

_DICE_KINDS = {
    EffectKind.DAMAGE_PER_TURN,
    EffectKind.ATTACK_ROLL_BONUS,
    EffectKind.SAVING_THROW_BONUS,
    EffectKind.HEAL,
}
_ABILITY_KINDS = {EffectKind.AUTO_FAIL_ABILITY, EffectKind.SAVE_ADVANTAGE}
_CONDITION_REF_KINDS = {EffectKind.REMOVE_CONDITION, EffectKind.APPLY_CONDITION}


class ConditionDataError(ValueError):
    """Condition data file is missing or malformed."""


class EffectSpec(BaseModel):
    """Raw effect entry as stored in the data file."""

    kind: EffectKind
    dice: Optional[str] = None
    damage_type: Optional[str] = None
    amount: int = 0
    ability: Optional[str] = None
    condition_id: Optional[str] = None

    @model_validator(mode="after")
    def _check_payload(self) -> "EffectSpec":
        if self.kind in _DICE_KINDS and not self.dice:
            raise ValueError(f"{self.kind.value} requires 'dice'")
        if self.kind in _ABILITY_KINDS and self.ability not in ABILITIES:
            raise ValueError(f"{self.kind.value} requires a valid 'ability'")
        if self.kind in _CONDITION_REF_KINDS and not self.condition_id:
            raise ValueError(f"{self.kind.value} requires 'condition_id'")
        if self.kind == EffectKind.AC_BONUS and not self.amount:
            raise ValueError("ac_bonus requires a non-zero 'amount'")
        return self

    def to_effect(self) -> Effect:
        return Effect(
            kind=self.kind,
            dice=self.dice,
            damage_type=self.damage_type or ("untyped" if self.kind == EffectKind.DAMAGE_PER_TURN else None),
            amount=self.amount,
            ability=self.ability,
            condition_id=self.condition_id,
        )


class ConditionSpec(BaseModel):
    """Raw condition definition as stored in the data file."""

    name: str = Field(..., min_length=1)
    description: str = ""
    icon: str = ""
    kind: Literal["buff", "debuff"] = "debuff"
    effects: List[EffectSpec] = Field(default_factory=list)
    saving_ability: Optional[str] = None
    duration: DurationPolicy
    default_turns: Optional[int] = Field(default=None, ge=1)

    @model_validator(mode="after")
    def _check_duration(self) -> "ConditionSpec":
        if self.saving_ability is not None and self.saving_ability not in ABILITIES:
            raise ValueError(f"unknown saving_ability {self.saving_ability!r}")
        if self.duration == DurationPolicy.UNTIL_SAVED and not self.saving_ability:
            raise ValueError("until_saved conditions require a saving_ability")
        if self.duration == DurationPolicy.FIXED_TURNS and not self.default_turns:
            raise ValueError("fixed_turns conditions require default_turns")
        return self

    def to_definition(self, condition_id: str) -> ConditionDefinition:
        return ConditionDefinition(
            id=condition_id,
            name=self.name,
            description=self.description,
            icon=self.icon,
            kind=self.kind,
            effects=tuple(effect.to_effect() for effect in self.effects),
            saving_ability=self.saving_ability,
            duration_policy=self.duration,
            default_turns=self.default_turns,
        )


def decode_definitions(raw: Dict[str, Any]) -> Dict[str, ConditionDefinition]:
    """校验并解码 ``{condition_id: 定义}`` 映射。"""
    if not isinstance(raw, dict):
        raise ConditionDataError("condition data must be an object keyed by condition id")

    definitions: Dict[str, ConditionDefinition] = {}
    for condition_id, payload in raw.items():
        try:
            spec = ConditionSpec.model_validate(payload)
        except ValidationError as exc:
            raise ConditionDataError(f"invalid condition {condition_id!r}: {exc}") from exc
        definitions[condition_id] = spec.to_definition(condition_id)
    return definitions


def load_definitions(path: Path) -> Dict[str, ConditionDefinition]:
    """Load condition definitions from a JSON file."""
    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ConditionDataError(f"condition data file not found: {path}") from exc
    except json.JSONDecodeError as exc:
        raise ConditionDataError(f"condition data file is not valid JSON: {path}") from exc

    definitions = decode_definitions(raw)
    logger.info("Loaded %d condition definitions from %s", len(definitions), path)
    return definitions


class ConditionRegistry:
    """In-memory lookup of condition definitions."""

    def __init__(self, definitions: Optional[Iterable[ConditionDefinition]] = None):
        self._definitions: Dict[str, ConditionDefinition] = {}
        for definition in definitions or ():
            self.register(definition)

    @classmethod
    def from_file(cls, path: Optional[Path] = None) -> "ConditionRegistry":
        if path is None:
            path = settings.conditions_path
        return cls(load_definitions(path).values())

    def register(self, definition: ConditionDefinition) -> None:
        if definition.id in self._definitions:
            logger.debug("Overriding condition definition %s", definition.id)
        self._definitions[definition.id] = definition

    def get(self, condition_id: str) -> Optional[ConditionDefinition]:
        return self._definitions.get(condition_id)

    def __contains__(self, condition_id: str) -> bool:
        return condition_id in self._definitions

    def __len__(self) -> int:
        return len(self._definitions)

    def ids(self) -> List[str]:
        return sorted(self._definitions)


_default_registry: Optional[ConditionRegistry] = None


def get_default_registry() -> ConditionRegistry:
    """Registry backed by the configured data file, loaded on first use."""
    global _default_registry
    if _default_registry is None:
        _default_registry = ConditionRegistry.from_file()
    return _default_registry
