from __future__ import annotations

import pytest

from investor_core.category_mapper import (
    KNOWLEDGE_DOMAINS,
    QuestionCategory,
    choices_for,
    default_for,
    knowledge_levels_from,
    map_category,
    round_half_up,
    score_horizon_bucket,
    score_knowledge,
)


def test_map_category_known_answers():
    assert map_category(QuestionCategory.MAX_LOSS, "-20%") == 4
    assert map_category(QuestionCategory.MAX_LOSS, "0%") == 0
    assert map_category(QuestionCategory.RISK_VISION, "Je remets de l'argent") == 5
    assert map_category(QuestionCategory.SAFETY_MONTHS, "3-6 mois") == 3
    assert map_category(QuestionCategory.GAIN_REACTION, "Je sécurise tout de suite") == 2


def test_map_category_missing_or_unknown_uses_default():
    for category in QuestionCategory:
        assert map_category(category, None) == default_for(category)
        assert map_category(category, "") == default_for(category)
        assert map_category(category, "réponse inattendue") == default_for(category)
    assert default_for(QuestionCategory.GAIN_REACTION) == 3
    assert default_for(QuestionCategory.FOMO) == 2


def test_map_category_accepts_string_category_and_trims():
    assert map_category("income_stability", "  Stables ") == 5


def test_every_table_value_is_bounded():
    for category in QuestionCategory:
        for choice in choices_for(category):
            assert 0 <= map_category(category, choice) <= 5


def test_choices_for_keeps_table_order():
    assert choices_for(QuestionCategory.INCOME_STABILITY) == [
        "Inexistants", "Irréguliers", "Variables", "Stables",
    ]


@pytest.mark.parametrize("answer,points", [
    ("< 1 an", 0),
    ("1-2 ans", 2),
    ("3-5 ans", 5),
    ("5-10 ans", 8),
    ("Plus de 10 ans", 10),
    ("> 10 ans", 10),
    ("> 5 ans", 10),
    ("bientôt", 5),
    (None, 5),
])
def test_score_horizon_bucket(answer, points):
    assert score_horizon_bucket(answer) == points


def test_score_knowledge_defaults_to_minimum_sliders():
    # six sliders at 1 → 1/5 * 10
    assert score_knowledge({}, None) == pytest.approx(2.0)
    assert score_knowledge(None, None) == pytest.approx(2.0)


def test_score_knowledge_zero_and_junk_sliders_count_as_one():
    levels = {"etf": 3, "actions": "beaucoup", "crypto": 0}
    assert score_knowledge(levels, None) == pytest.approx(8 / 6 / 5 * 10)
    assert score_knowledge(levels, "< 6 mois") == pytest.approx(8 / 6 / 5 * 10 - 1)


def test_score_knowledge_is_clamped():
    top = {d: 5 for d in KNOWLEDGE_DOMAINS}
    assert score_knowledge(top, "> 1 an") == 10.0
    assert score_knowledge({}, "Jamais") == 0.0


def test_round_half_up_differs_from_bankers_rounding():
    assert round_half_up(2.5) == 3
    assert round_half_up(0.5) == 1
    assert round_half_up(1.49) == 1
    assert round(2.5) == 2


def test_knowledge_levels_from_flat_record():
    record = {"knowledge_etf": 4, "knowledge_crypto": 2, "first_name": "Alex"}
    assert knowledge_levels_from(record) == {"etf": 4, "crypto": 2}
