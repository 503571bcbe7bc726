import pytest

from edoria.combat.attributes import MonsterAttributes, PlayerAttributes, SkillProficiency
from edoria.combat.models.combat_session import CombatPhase, CombatSession
from edoria.combat.models.combatant import AttackProfile, Combatant, CombatantType
from edoria.combat.models.condition import ConditionInstance, DurationPolicy


def _player(max_hp: int = 20, **kwargs) -> Combatant:
    return Combatant(id="player", name="玩家", combatant_type=CombatantType.PLAYER, max_hp=max_hp, **kwargs)


def test_overkill_damage_stops_at_zero():
    player = _player()

    actual = player.apply_damage(25)

    assert actual == 20
    assert player.current_hp == 0
    assert player.is_dead()
    assert not player.is_alive


def test_healing_capped_at_max():
    player = _player(current_hp=15)

    assert player.apply_healing(10) == 5
    assert player.current_hp == 20


def test_negative_amounts_are_ignored():
    player = _player(current_hp=10)

    assert player.apply_damage(-5) == 0
    assert player.apply_healing(-5) == 0
    assert player.current_hp == 10


def test_current_hp_defaults_to_max_and_is_clamped():
    assert _player().current_hp == 20
    assert _player(current_hp=50).current_hp == 20
    with pytest.raises(ValueError):
        _player(max_hp=-1)


def test_player_controlled_flag():
    goblin = Combatant(id="goblin", name="哥布林", combatant_type=CombatantType.ENEMY, max_hp=7)
    assert _player().is_player_controlled
    assert not goblin.is_player_controlled


def test_snapshot_restores_state():
    player = _player(
        current_hp=12,
        armor_class=16,
        attributes=PlayerAttributes(
            scores={"dexterity": 16},
            proficiency=3,
            skills={"stealth": SkillProficiency(proficient=True, expertise=True)},
            saving_throws=frozenset({"dexterity"}),
        ),
        attack=AttackProfile(name="短剑", ability="dexterity", damage_dice="1d6", damage_type="piercing"),
        resistances=["fire"],
    )
    player.conditions["poisoned"] = ConditionInstance(
        definition_id="poisoned", duration_policy=DurationPolicy.UNTIL_SAVED, dc=12, applied_at_tick=2
    )

    restored = Combatant.from_dict(player.to_dict())

    assert restored.to_dict() == player.to_dict()
    assert restored.attributes.has_expertise("stealth")
    assert restored.conditions["poisoned"].dc == 12


def test_monster_attributes_snapshot():
    goblin = Combatant(
        id="goblin",
        name="哥布林",
        combatant_type=CombatantType.ENEMY,
        max_hp=7,
        attributes=MonsterAttributes(scores={"dexterity": 14}, challenge_rating=0.25),
    )

    restored = Combatant.from_dict(goblin.to_dict())

    assert isinstance(restored.attributes, MonsterAttributes)
    assert restored.ability_modifier("dexterity") == 2


def test_session_ends_in_defeat_when_player_dies():
    player = _player()
    goblin = Combatant(id="goblin", name="哥布林", combatant_type=CombatantType.ENEMY, max_hp=7)
    session = CombatSession(combat_id="c1", participants=[player, goblin], turn_order=["player", "goblin"])

    assert session.check_combat_end() is None
    player.apply_damage(99)
    assert session.check_combat_end() == CombatPhase.DEFEAT


def test_session_victory_ignores_living_allies():
    player = _player()
    goblin = Combatant(id="goblin", name="哥布林", combatant_type=CombatantType.ENEMY, max_hp=7)
    orc = Combatant(id="orc", name="兽人", combatant_type=CombatantType.ENEMY, max_hp=15)
    wolf = Combatant(id="wolf", name="狼", combatant_type=CombatantType.ALLY, max_hp=11)
    session = CombatSession(combat_id="c1", participants=[player, goblin, orc, wolf])

    goblin.apply_damage(7)
    assert session.check_combat_end() is None
    orc.apply_damage(15)
    assert session.check_combat_end() == CombatPhase.VICTORY


def test_fled_enemy_does_not_block_victory():
    player = _player()
    goblin = Combatant(id="goblin", name="哥布林", combatant_type=CombatantType.ENEMY, max_hp=7)
    orc = Combatant(id="orc", name="兽人", combatant_type=CombatantType.ENEMY, max_hp=15)
    session = CombatSession(combat_id="c1", participants=[player, goblin, orc], turn_order=["player", "orc"])
    session.fled_ids.append("goblin")

    assert session.get_present("goblin") is None
    assert [c.id for c in session.get_living()] == ["player", "orc"]
    orc.apply_damage(15)
    assert session.check_combat_end() == CombatPhase.VICTORY


def test_session_snapshot_round_trip():
    player = _player()
    goblin = Combatant(id="goblin", name="哥布林", combatant_type=CombatantType.ENEMY, max_hp=7)
    session = CombatSession(
        combat_id="c1",
        phase=CombatPhase.IN_PROGRESS,
        participants=[player, goblin],
        turn_order=["goblin", "player"],
        current_index=1,
        round=3,
        fled_ids=["orc"],
    )
    session.add_event("player", "hello")

    restored = CombatSession.from_dict(session.to_dict())

    assert restored.to_dict() == session.to_dict()
    assert restored.event_log == []
    assert restored.get_current_actor().id == "player"
