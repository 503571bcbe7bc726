import random

import pytest

from edoria.combat.dice import (
    DiceRoller,
    is_critical_failure,
    is_critical_success,
    parse_expression,
)


def test_roll_expression_uses_each_die_and_modifier(dice, rng):
    rng.push(3, 3)

    result = dice.roll_expression("2d6+3")

    assert result.rolls == (3, 3)
    assert result.total == 9
    assert result.modifier == 3
    assert (result.count, result.sides) == (2, 6)
    assert rng.calls == [(1, 6), (1, 6)]


def test_count_defaults_to_one(dice, rng):
    rng.push(5)

    result = dice.roll_expression("d8")

    assert result.rolls == (5,)
    assert result.total == 5


def test_negative_modifier_and_loose_formatting(dice, rng):
    rng.push(1, 2)

    result = dice.roll_expression(" 2D4 - 1 ")

    assert result.rolls == (1, 2)
    assert result.total == 2
    assert result.modifier == -1


@pytest.mark.parametrize(
    "expression",
    ["", "abc", "2d", "d", "2x6", "0d6", "1d0", "2d6+", "101d6", "99999999d6", None],
)
def test_malformed_expression_returns_empty_roll(dice, rng, expression):
    result = dice.roll_expression(expression)

    assert result.rolls == ()
    assert result.total == 0
    assert result.is_empty
    assert rng.calls == []


def test_count_override_replaces_dice_count(dice, rng):
    rng.push(4, 5)

    result = dice.roll_expression("1d8+2", count_override=2)

    assert result.rolls == (4, 5)
    assert result.total == 11
    assert result.count == 2


@pytest.mark.parametrize("expression,count,sides,modifier", [("3d8+2", 3, 8, 2), ("1d20", 1, 20, 0), ("4d4-1", 4, 4, -1)])
def test_totals_stay_within_bounds(expression, count, sides, modifier):
    roller = DiceRoller(random.Random(1234))
    for _ in range(200):
        result = roller.roll_expression(expression)
        assert len(result.rolls) == count
        assert count + modifier <= result.total <= count * sides + modifier
        assert all(1 <= r <= sides for r in result.rolls)


def test_advantage_takes_higher(dice, rng):
    rng.push(7, 15)
    pair = dice.roll_with_advantage()
    assert (pair.component_a, pair.component_b, pair.chosen) == (7, 15, 15)


def test_disadvantage_takes_lower(dice, rng):
    rng.push(7, 15)
    pair = dice.roll_with_disadvantage()
    assert pair.chosen == 7


def test_roll_die_rejects_invalid_sides(dice):
    with pytest.raises(ValueError):
        dice.roll_die(0)


def test_critical_flags_only_on_d20():
    assert is_critical_success(20)
    assert not is_critical_success(19)
    assert not is_critical_success(20, sides=12)
    assert is_critical_failure(1)
    assert not is_critical_failure(2)
    assert not is_critical_failure(1, sides=6)


def test_parse_expression():
    assert parse_expression("2d6+3") == (2, 6, 3)
    assert parse_expression("d12") == (1, 12, 0)
    assert parse_expression("nonsense") is None
    assert parse_expression("100d6") == (100, 6, 0)
    assert parse_expression("101d6") is None
