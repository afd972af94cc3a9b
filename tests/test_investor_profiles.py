from __future__ import annotations

import pytest

from investor_core.investor_profiles import (
    PROFILE_ORDER,
    PROFILE_THRESHOLDS,
    ProfileAnswers,
    capacity_score,
    compute_investor_profile,
    get_all_profiles,
    get_profile_recommendations,
    get_profile_thresholds,
    map_legacy_profile,
)

STRONG = {
    "portfolio_share": "Moins de 20%",
    "emergency_fund": "Plus de 12 mois",
    "income_stability": "Très stable",
    "investment_horizon": "Plus de 10 ans",
    "main_objective": "Maximiser la performance",
    "reaction_to_loss": "J'investirais davantage",
    "risk_vision": "Je remets de l'argent",
}


def test_full_marks_with_advanced_experience_is_conviction():
    res = compute_investor_profile(dict(STRONG, experience_level="Avancé"))
    assert res.total == 100
    assert res.weighted_total == pytest.approx(100.0)
    assert res.profile == "Conviction"
    assert res.confidence == "high"
    assert res.thresholds == PROFILE_THRESHOLDS["Conviction"]
    assert res.reasoning[0] == "Score global élevé (100/100)"
    assert res.reasoning[-1] == "Capacité: 100% | Tolérance: 100% | Objectifs: 100%"


def test_conviction_without_experience_falls_back_to_dynamique():
    res = compute_investor_profile(STRONG)
    assert res.profile == "Dynamique"
    assert res.confidence == "medium"
    assert "Profil Conviction requiert expérience avancée" in res.reasoning


def test_dynamique_upgrades_with_experience_and_concentration():
    answers = dict(
        STRONG,
        investment_horizon="5-10 ans",
        main_objective="Préparer la retraite",
        reaction_to_loss="Je ne ferais rien",
        experience_level="Avancé",
        concentration_acceptance="Oui, sans problème",
    )
    res = compute_investor_profile(answers)
    assert res.weighted_total == pytest.approx(83.0)
    assert res.profile == "Conviction"
    assert "Expérience avancée + concentration acceptée → Conviction" in res.reasoning


def test_low_capacity_caps_at_croissance():
    answers = dict(
        STRONG,
        portfolio_share="Plus de 50%",
        emergency_fund="Moins de 3 mois",
        income_stability="Revenus variables",
    )
    res = compute_investor_profile(answers)
    assert res.capacity.score == 9
    assert res.profile == "Croissance"
    assert "⚠️ Capacité financière limitée → profil plafonné" in res.reasoning


def test_low_tolerance_caps_at_equilibre():
    answers = dict(
        STRONG,
        reaction_to_loss="Je vendrais pour limiter",
        risk_vision="Je préfère éviter les pertes",
    )
    res = compute_investor_profile(answers)
    assert res.tolerance.score == 8
    assert res.profile == "Équilibré"


def test_empty_questionnaire():
    res = compute_investor_profile({})
    assert res.capacity.score == 0
    assert res.tolerance.score == 0
    # unspecified objective keeps a neutral 6
    assert res.objectives.score == 6
    assert res.profile == "Prudent"
    assert res.confidence == "low"
    assert "⚠️ Questionnaire incomplet - affiner le profil" in res.reasoning


def test_unstable_income_is_not_read_as_stable():
    dim = capacity_score(ProfileAnswers(income_stability="Instable"))
    assert dim.score == 1
    assert dim.factors == ["Revenus instables ou inexistants (+1)"]


def test_profile_thresholds_are_copies():
    t = get_profile_thresholds("Prudent")
    t.max_stock_position_pct = 50
    assert PROFILE_THRESHOLDS["Prudent"].max_stock_position_pct == 5
    assert get_profile_thresholds("Prudent").cash_target_pct == (15, 25)


def test_get_all_profiles_order():
    assert [p["key"] for p in get_all_profiles()] == PROFILE_ORDER


@pytest.mark.parametrize("legacy,expected", [
    (None, "Équilibré"),
    ("Défensif", "Prudent"),
    ("Prudent", "Prudent"),
    ("Très dynamique", "Dynamique"),
    ("HighVolatility", "Dynamique"),
    ("Growth", "Croissance"),
    ("Conviction", "Conviction"),
    ("Neutre", "Équilibré"),
])
def test_map_legacy_profile(legacy, expected):
    assert map_legacy_profile(legacy) == expected


def test_recommendations_for_prudent_portfolio():
    recs = get_profile_recommendations("Prudent", {
        "current_score": 60, "cash_pct": 10, "over_concentrated_count": 2,
    })
    assert len(recs) == 3
    assert recs[0].startswith("Score de 60/100")
    assert "inférieures à la cible 15-25%" in recs[1]
    assert recs[2].startswith("2 position(s) trop concentrée(s)")


def test_recommendations_for_well_diversified_growth():
    recs = get_profile_recommendations("Croissance", {"current_score": 90, "cash_pct": 20})
    assert "excellente diversification" in recs[0]
    assert recs[1].startswith("Liquidités élevées (20%)")


def test_recommendations_without_context():
    assert get_profile_recommendations("Dynamique") == []
