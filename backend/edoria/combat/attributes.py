"""Attribute providers: the pull interface for ability scores and proficiencies.

Player and monster data come from different subsystems, so each gets its own
provider; the rules code only talks to the ``AttributeProvider`` protocol.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Optional, Protocol, runtime_checkable

from .rules import ABILITIES, SKILL_ABILITY_MAP

logger = logging.getLogger(__name__)


@runtime_checkable
class AttributeProvider(Protocol):
    """Capability interface consumed by the check resolver."""

    def ability_score(self, ability: str) -> int:
        ...

    def proficiency_bonus(self) -> int:
        ...

    def is_skill_proficient(self, skill: str) -> bool:
        ...

    def has_expertise(self, skill: str) -> bool:
        ...

    def is_save_proficient(self, ability: str) -> bool:
        ...


def _normalize_scores(scores: Optional[Dict[str, int]]) -> Dict[str, int]:
    normalized = {ability: 10 for ability in ABILITIES}
    for key, value in (scores or {}).items():
        name = key.strip().lower()
        if name not in normalized:
            logger.warning("Ignoring unknown ability score: %s", key)
            continue
        normalized[name] = int(value)
    return normalized


@dataclass
class SkillProficiency:
    proficient: bool = False
    expertise: bool = False


@dataclass
class PlayerAttributes:
    """玩家属性（来自角色/装备系统）"""

    scores: Dict[str, int] = field(default_factory=dict)
    proficiency: int = 2
    skills: Dict[str, SkillProficiency] = field(default_factory=dict)
    saving_throws: FrozenSet[str] = frozenset()
    # 装备/临时效果提供的属性加值
    score_bonuses: Dict[str, int] = field(default_factory=dict)

    def __post_init__(self):
        self.scores = _normalize_scores(self.scores)
        self.saving_throws = frozenset(a.lower() for a in self.saving_throws)

    def ability_score(self, ability: str) -> int:
        return self.scores.get(ability, 10) + self.score_bonuses.get(ability, 0)

    def proficiency_bonus(self) -> int:
        return self.proficiency

    def is_skill_proficient(self, skill: str) -> bool:
        entry = self.skills.get(skill)
        return bool(entry and entry.proficient)

    def has_expertise(self, skill: str) -> bool:
        entry = self.skills.get(skill)
        # expertise only counts on top of proficiency
        return bool(entry and entry.proficient and entry.expertise)

    def is_save_proficient(self, ability: str) -> bool:
        return ability in self.saving_throws

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provider": "player",
            "scores": dict(self.scores),
            "proficiency": self.proficiency,
            "skills": {
                name: {"proficient": s.proficient, "expertise": s.expertise}
                for name, s in self.skills.items()
            },
            "saving_throws": sorted(self.saving_throws),
            "score_bonuses": dict(self.score_bonuses),
        }


@dataclass
class MonsterAttributes:
    """怪物属性（来自怪物数据）"""

    scores: Dict[str, int] = field(default_factory=dict)
    challenge_rating: float = 1
    saving_throws: FrozenSet[str] = frozenset()
    skills: FrozenSet[str] = frozenset()

    def __post_init__(self):
        self.scores = _normalize_scores(self.scores)
        self.saving_throws = frozenset(a.lower() for a in self.saving_throws)
        self.skills = frozenset(self.skills)

    def ability_score(self, ability: str) -> int:
        return self.scores.get(ability, 10)

    def proficiency_bonus(self) -> int:
        """按挑战等级推算熟练加值"""
        return max(2, int((self.challenge_rating - 1) // 4) + 2)

    def is_skill_proficient(self, skill: str) -> bool:
        return skill in self.skills

    def has_expertise(self, skill: str) -> bool:
        return False

    def is_save_proficient(self, ability: str) -> bool:
        return ability in self.saving_throws

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provider": "monster",
            "scores": dict(self.scores),
            "challenge_rating": self.challenge_rating,
            "saving_throws": sorted(self.saving_throws),
            "skills": sorted(self.skills),
        }


def attributes_from_dict(data: Dict[str, Any]) -> AttributeProvider:
    """从快照恢复属性提供者"""
    if data.get("provider") == "monster":
        return MonsterAttributes(
            scores=data.get("scores", {}),
            challenge_rating=data.get("challenge_rating", 1),
            saving_throws=frozenset(data.get("saving_throws", [])),
            skills=frozenset(data.get("skills", [])),
        )
    skills = {}
    for name, entry in data.get("skills", {}).items():
        if name not in SKILL_ABILITY_MAP:
            logger.warning("Ignoring unknown skill in snapshot: %s", name)
            continue
        skills[name] = SkillProficiency(
            proficient=entry.get("proficient", False),
            expertise=entry.get("expertise", False),
        )
    return PlayerAttributes(
        scores=data.get("scores", {}),
        proficiency=data.get("proficiency", 2),
        skills=skills,
        saving_throws=frozenset(data.get("saving_throws", [])),
        score_bonuses=data.get("score_bonuses", {}),
    )
