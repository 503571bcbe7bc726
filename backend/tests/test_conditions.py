import logging

import pytest

from edoria.combat.attributes import PlayerAttributes
from edoria.combat.conditions import ConditionSystem, ConditionTickError
from edoria.combat.models.combatant import Combatant, CombatantType
from edoria.combat.models.condition import ConditionInstance, DurationPolicy, EffectKind


@pytest.fixture
def hero():
    return Combatant(
        id="player",
        name="勇者",
        combatant_type=CombatantType.PLAYER,
        max_hp=20,
        attributes=PlayerAttributes(),
    )


@pytest.fixture
def goblin():
    return Combatant(id="goblin", name="哥布林", combatant_type=CombatantType.ENEMY, max_hp=7)


class TestApplyRemove:
    def test_reapply_keeps_single_instance(self, conditions, hero):
        first = conditions.apply(hero, "poisoned", dc=10, tick=1)
        second = conditions.apply(hero, "poisoned", dc=14, tick=2)

        assert first.applied and not first.replaced
        assert second.replaced
        assert list(hero.conditions) == ["poisoned"]
        assert hero.conditions["poisoned"].dc == 14

    def test_unknown_condition_is_ignored(self, conditions, hero, caplog):
        with caplog.at_level(logging.WARNING):
            change = conditions.apply(hero, "petrified")

        assert not change.applied
        assert hero.conditions == {}
        assert "petrified" in caplog.text

    def test_remove_is_idempotent(self, conditions, hero):
        conditions.apply(hero, "blessed")

        assert conditions.remove(hero, "blessed") is True
        assert conditions.remove(hero, "blessed") is False

    def test_integer_override_means_fixed_turns(self, conditions, hero):
        change = conditions.apply(hero, "stunned", duration_override=2)

        assert change.instance.duration_policy == DurationPolicy.FIXED_TURNS
        assert change.instance.turns_remaining == 2

    def test_policy_override(self, conditions, hero):
        change = conditions.apply(hero, "poisoned", duration_override="until_next_turn")
        assert change.instance.duration_policy == DurationPolicy.UNTIL_NEXT_TURN
        assert change.instance.turns_remaining is None

    def test_break_concentration_by_source(self, conditions, hero):
        conditions.apply(hero, "blessed", source_id="cleric")
        conditions.apply(hero, "haste", source_id="wizard")
        conditions.apply(hero, "poisoned", source_id="cleric", dc=12)

        removed = conditions.break_concentration(hero, source_id="cleric")

        assert removed == ["blessed"]
        assert set(hero.conditions) == {"haste", "poisoned"}

    def test_clear_all(self, conditions, hero):
        conditions.apply(hero, "prone")
        conditions.apply(hero, "blessed")

        assert conditions.clear_all(hero) == ["prone", "blessed"]
        assert hero.conditions == {}


class TestEndOfTurn:
    def test_successful_save_removes_condition(self, conditions, hero, rng):
        conditions.apply(hero, "poisoned", dc=12)
        rng.push(15)

        report = conditions.end_of_turn(hero, tick=1)

        assert report.saves[0].check.total == 15
        assert report.removed == ["poisoned"]
        assert not hero.has_condition("poisoned")

    def test_failed_save_keeps_condition(self, conditions, hero, rng):
        conditions.apply(hero, "poisoned", dc=12)
        rng.push(5)

        report = conditions.end_of_turn(hero, tick=1)

        assert report.saves[0].check.success is False
        assert report.removed == []
        assert hero.conditions["poisoned"].turns_remaining is None

    def test_until_saved_without_dc_never_rolls(self, conditions, hero, rng):
        conditions.apply(hero, "charmed", source_id="goblin")

        report = conditions.end_of_turn(hero, tick=1)

        assert report.saves == []
        assert rng.calls == []
        assert hero.has_condition("charmed")

    def test_fixed_turns_count_down(self, conditions, hero):
        conditions.apply(hero, "stunned", duration_override=2)

        conditions.end_of_turn(hero, tick=1)
        assert hero.conditions["stunned"].turns_remaining == 1

        report = conditions.end_of_turn(hero, tick=2)
        assert report.removed == ["stunned"]

    def test_only_fixed_turns_count_down(self, conditions, hero, rng):
        hero.conditions["charmed"] = ConditionInstance(
            definition_id="charmed",
            duration_policy=DurationPolicy.UNTIL_SAVED,
            turns_remaining=1,
            source_id="goblin",
        )

        report = conditions.end_of_turn(hero, tick=1)

        assert report.removed == []
        assert hero.conditions["charmed"].turns_remaining == 1
        assert rng.calls == []

    def test_until_next_turn_expires(self, conditions, hero):
        conditions.apply(hero, "shield_spell")

        report = conditions.end_of_turn(hero, tick=1)

        assert report.removed == ["shield_spell"]

    def test_concentration_persists(self, conditions, hero):
        conditions.apply(hero, "blessed", source_id="cleric")

        for tick in range(1, 6):
            conditions.end_of_turn(hero, tick=tick)

        assert hero.has_condition("blessed")

    def test_damage_is_rolled_before_the_save(self, conditions, hero, rng):
        conditions.apply(hero, "burning", dc=15)
        rng.push(4, 5)

        report = conditions.end_of_turn(hero, tick=1)

        assert rng.calls == [(1, 6), (1, 20)]
        assert report.total_damage == 4
        assert hero.current_hp == 16
        assert hero.has_condition("burning")

    def test_damage_respects_resistance(self, conditions, hero, rng):
        hero.resistances.append("fire")
        conditions.apply(hero, "burning")
        rng.push(5)

        report = conditions.end_of_turn(hero, tick=1)

        assert report.damage[0].roll.total == 5
        assert report.total_damage == 2

    def test_removals_applied_after_all_instances(self, conditions, hero, rng):
        conditions.apply(hero, "prone")
        conditions.apply(hero, "poisoned", dc=10)
        conditions.apply(hero, "defending")
        rng.push(18)

        report = conditions.end_of_turn(hero, tick=1)

        assert report.removed == ["prone", "poisoned", "defending"]
        assert hero.conditions == {}

    def test_double_tick_is_rejected(self, conditions, hero, rng, caplog):
        conditions.apply(hero, "poisoned", dc=12)
        rng.push(5)
        conditions.end_of_turn(hero, tick=3)

        with caplog.at_level(logging.ERROR):
            report = conditions.end_of_turn(hero, tick=3)

        assert report.skipped
        assert len(rng.calls) == 1
        assert "twice" in caplog.text

    def test_double_tick_raises_in_strict_mode(self, registry, resolver, hero):
        strict = ConditionSystem(registry=registry, resolver=resolver, strict=True)
        strict.end_of_turn(hero, tick=1)

        with pytest.raises(ConditionTickError):
            strict.end_of_turn(hero, tick=1)


class TestQueries:
    def test_ac_bonus_stacks(self, conditions, hero):
        conditions.apply(hero, "haste")
        conditions.apply(hero, "shield_spell")

        assert conditions.get_ac_bonus(hero) == 7

    def test_attack_modification(self, conditions, hero, goblin):
        conditions.apply(hero, "poisoned", dc=10)
        conditions.apply(goblin, "prone")

        modification = conditions.get_attack_modification(hero, goblin)

        assert modification.advantage
        assert modification.disadvantage
        assert not conditions.get_attack_modification(goblin, hero).advantage

    def test_allowed_actions(self, conditions, hero):
        assert conditions.allowed_actions(hero) == 1
        conditions.apply(hero, "haste")
        assert conditions.allowed_actions(hero) == 2
        conditions.apply(hero, "stunned", dc=12)
        assert conditions.allowed_actions(hero) == 0

    def test_has_effect(self, conditions, hero):
        conditions.apply(hero, "restrained", dc=12)
        assert conditions.has_effect(hero, EffectKind.CANNOT_MOVE)
        assert not conditions.can_move(hero)
        assert not conditions.has_effect(hero, EffectKind.CANNOT_ACT)

    def test_charmed_cannot_attack_source(self, conditions, hero, goblin):
        orc = Combatant(id="orc", name="兽人", combatant_type=CombatantType.ENEMY, max_hp=15)
        conditions.apply(hero, "charmed", source_id="goblin")

        assert not conditions.can_attack(hero, goblin)
        assert conditions.can_attack(hero, orc)

    def test_attack_roll_bonus(self, conditions, hero):
        conditions.apply(hero, "blessed")
        assert conditions.attack_roll_bonus(hero) == ("1d4",)

    def test_describe(self, conditions, hero):
        conditions.apply(hero, "blessed")
        (entry,) = conditions.describe(hero)
        assert entry["name"] == "Blessed"
        assert entry["kind"] == "buff"


class TestSavingThrow:
    def test_auto_fail_does_not_roll(self, conditions, hero, rng):
        conditions.apply(hero, "paralyzed", dc=12)

        check = conditions.saving_throw(hero, "dexterity", 5)

        assert check.auto_failed
        assert check.success is False
        assert rng.calls == []

    def test_saving_throw_bonus_dice(self, conditions, hero, rng):
        conditions.apply(hero, "blessed")
        rng.push(10, 2)

        check = conditions.saving_throw(hero, "wisdom", 12)

        assert check.total == 12
        assert check.success

    def test_save_advantage_for_matching_ability(self, conditions, hero, rng):
        conditions.apply(hero, "haste")
        rng.push(4, 16)

        check = conditions.saving_throw(hero, "dexterity", 15)

        assert check.advantage
        assert check.chosen_roll == 16

    def test_save_advantage_only_for_its_ability(self, conditions, hero, rng):
        conditions.apply(hero, "haste")
        rng.push(4)

        check = conditions.saving_throw(hero, "wisdom", 15)

        assert not check.advantage
        assert check.raw_rolls == (4,)
