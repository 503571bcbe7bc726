import json

import pytest

from edoria.combat.condition_registry import (
    ConditionDataError,
    ConditionRegistry,
    decode_definitions,
    load_definitions,
)
from edoria.combat.models.condition import DurationPolicy, EffectKind


def test_bundled_definitions_load(registry):
    expected = {
        "poisoned", "paralyzed", "stunned", "charmed", "frightened", "restrained",
        "prone", "blessed", "haste", "burning", "shield_spell", "defending",
    }
    assert expected <= set(registry.ids())


def test_effects_are_decoded_once(registry):
    burning = registry.get("burning")

    (effect,) = burning.effects
    assert effect.kind == EffectKind.DAMAGE_PER_TURN
    assert effect.dice == "1d6"
    assert effect.damage_type == "fire"
    assert burning.duration_policy == DurationPolicy.UNTIL_SAVED
    assert burning.saving_ability == "dexterity"


def test_haste_payloads(registry):
    haste = registry.get("haste")

    assert haste.has_effect(EffectKind.EXTRA_ACTION)
    assert haste.effects_of(EffectKind.AC_BONUS)[0].amount == 2
    assert haste.effects_of(EffectKind.SAVE_ADVANTAGE)[0].ability == "dexterity"


def test_unknown_id_returns_none(registry):
    assert registry.get("petrified") is None
    assert "petrified" not in registry


def test_until_saved_requires_saving_ability():
    raw = {"cursed": {"name": "Cursed", "duration": "until_saved", "effects": []}}
    with pytest.raises(ConditionDataError):
        decode_definitions(raw)


def test_fixed_turns_requires_default_turns():
    raw = {"dazed": {"name": "Dazed", "duration": "fixed_turns", "effects": []}}
    with pytest.raises(ConditionDataError):
        decode_definitions(raw)


@pytest.mark.parametrize(
    "effect",
    [
        {"kind": "damage_per_turn"},
        {"kind": "auto_fail_ability", "ability": "luck"},
        {"kind": "apply_condition"},
        {"kind": "ac_bonus"},
        {"kind": "fly"},
    ],
)
def test_effect_payload_is_validated(effect):
    raw = {"odd": {"name": "Odd", "duration": "until_next_turn", "effects": [effect]}}
    with pytest.raises(ConditionDataError):
        decode_definitions(raw)


def test_load_from_custom_file(tmp_path):
    path = tmp_path / "conditions.json"
    path.write_text(
        json.dumps(
            {
                "dazed": {
                    "name": "Dazed",
                    "kind": "debuff",
                    "duration": "fixed_turns",
                    "default_turns": 2,
                    "effects": [{"kind": "cannot_act"}],
                }
            }
        ),
        encoding="utf-8",
    )

    registry = ConditionRegistry.from_file(path)

    assert len(registry) == 1
    assert registry.get("dazed").default_turns == 2


def test_missing_or_broken_file(tmp_path):
    with pytest.raises(ConditionDataError):
        load_definitions(tmp_path / "missing.json")

    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")
    with pytest.raises(ConditionDataError):
        load_definitions(broken)
