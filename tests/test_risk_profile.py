from __future__ import annotations
import dataclasses

import pytest

from investor_core.category_mapper import KNOWLEDGE_DOMAINS
from investor_core.risk_profile import (
    OnboardingAnswers,
    compute_behavior,
    compute_risk_profile,
    risk_label,
)

TOP_ANSWERS = {
    "max_acceptable_loss": "-30% ou plus",
    "risk_vision": "Je remets de l'argent",
    "reaction_to_volatility": "Je renforce",
    "income_stability": "Stables",
    "financial_resilience_months": "> 12 mois",
    "loss_impact": "Rien du tout",
    "panic_selling_history": False,
    "fomo_tendency": "Je méfie",
    "emotional_stability": "Très stable",
    "reaction_to_gains": "Je renforce",
    "investment_horizon": "Plus de 10 ans",
    "knowledge_levels": {d: 5 for d in KNOWLEDGE_DOMAINS},
    "investment_experience": "> 1 an",
}

BOTTOM_ANSWERS = {
    "max_acceptable_loss": "0%",
    "risk_vision": "Je vends",
    "reaction_to_volatility": "Stress extrême",
    "income_stability": "Inexistants",
    "financial_resilience_months": "< 1 mois",
    "loss_impact": "Ton quotidien",
    "panic_selling_history": True,
    "fomo_tendency": "Je veux acheter",
    "emotional_stability": "Impulsif",
    "reaction_to_gains": "Je sécurise tout de suite",
    "investment_horizon": "< 1 an",
    "investment_experience": "Jamais",
}


def _sum(res):
    return res.score_tolerance + res.score_capacity + res.score_behavior + res.score_horizon + res.score_knowledge


def test_empty_answers_use_defaults():
    res = compute_risk_profile({})
    assert res.score_tolerance == 12
    assert res.score_capacity == 10
    assert res.score_behavior == 15
    assert res.score_horizon == 5
    assert res.score_knowledge == 2
    assert res.score_total == 44
    assert res.risk_profile == "Neutre"
    assert compute_risk_profile(None) == res
    assert compute_risk_profile(OnboardingAnswers()) == res


def test_top_answers_reach_maximum():
    res = compute_risk_profile(TOP_ANSWERS)
    assert (res.score_tolerance, res.score_capacity, res.score_behavior) == (30, 25, 25)
    assert (res.score_horizon, res.score_knowledge) == (10, 10)
    assert res.score_total == 100
    assert res.risk_profile == "Très dynamique"


def test_bottom_answers():
    res = compute_risk_profile(BOTTOM_ANSWERS)
    assert res.score_tolerance == 0
    assert res.score_capacity == 0
    # (0 + 0 + 0 + 2) / 4 * 5 = 2.5 rounds half-up
    assert res.score_behavior == 3
    assert res.score_horizon == 0
    assert res.score_knowledge == 0
    assert res.score_total == 3
    assert res.risk_profile == "Prudent"


@pytest.mark.parametrize("answers", [{}, TOP_ANSWERS, BOTTOM_ANSWERS, {"risk_vision": "J'attends"}])
def test_total_is_sum_of_dimensions(answers):
    res = compute_risk_profile(answers)
    assert res.score_total == _sum(res)
    assert 0 <= res.score_tolerance <= 30
    assert 0 <= res.score_capacity <= 25
    assert 0 <= res.score_behavior <= 25
    assert 0 <= res.score_horizon <= 10
    assert 0 <= res.score_knowledge <= 10


@pytest.mark.parametrize("total,label", [
    (0, "Prudent"),
    (30, "Prudent"),
    (31, "Neutre"),
    (55, "Neutre"),
    (56, "Dynamique"),
    (75, "Dynamique"),
    (76, "Très dynamique"),
    (100, "Très dynamique"),
])
def test_risk_label_breakpoints(total, label):
    assert risk_label(total) == label


def test_only_explicit_panic_selling_scores_zero():
    assert compute_behavior(OnboardingAnswers(panic_selling_history=None)) == \
        compute_behavior(OnboardingAnswers(panic_selling_history=False))
    # (0 + 2 + 2 + 3) / 4 * 5
    assert compute_behavior(OnboardingAnswers(panic_selling_history=True)) == pytest.approx(8.75)


def test_from_mapping_cleans_loose_records():
    answers = OnboardingAnswers.from_mapping({
        "max_acceptable_loss": float("nan"),
        "risk_vision": "   ",
        "panic_selling_history": "oui",
        "knowledge_etf": 4,
        "knowledge_crypto": float("nan"),
        "unrelated": "x",
    })
    assert answers.max_acceptable_loss is None
    assert answers.risk_vision is None
    assert answers.panic_selling_history is True
    assert answers.knowledge_levels == {"etf": 4}


def test_result_is_immutable():
    res = compute_risk_profile({})
    with pytest.raises(dataclasses.FrozenInstanceError):
        res.score_total = 99


def test_to_record_has_persisted_fields():
    rec = compute_risk_profile(TOP_ANSWERS).to_record()
    assert rec["score_total"] == 100
    assert rec["risk_profile"] == "Très dynamique"
    assert set(rec) == {
        "score_total", "score_tolerance", "score_capacity", "score_behavior",
        "score_horizon", "score_knowledge", "risk_profile",
    }
