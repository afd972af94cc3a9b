from __future__ import annotations

import pandas as pd

from investor_core.batch import (
    SCORE_COLUMNS,
    STRATEGY_COLUMNS,
    classify_signals_frame,
    score_answers_frame,
)


def _frame():
    rows = [
        {
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
            "investment_experience": "> 1 an",
            **{f"knowledge_{d}": 5 for d in ("livrets", "etf", "actions", "crypto", "immobilier", "assurance_vie")},
        },
        {},
    ]
    return pd.DataFrame(rows, index=["full", "empty"])


def test_score_answers_frame():
    out = score_answers_frame(_frame())
    assert list(out.columns) == SCORE_COLUMNS
    assert list(out.index) == ["full", "empty"]
    assert out.loc["full", "score_total"] == 100
    assert out.loc["full", "risk_profile"] == "Très dynamique"
    # NaN cells behave like unanswered questions
    assert out.loc["empty", "score_total"] == 44
    assert out.loc["empty", "risk_profile"] == "Neutre"


def test_classify_signals_frame():
    df = pd.DataFrame(
        [
            {"investment_horizon": "Plus de 10 ans", "max_acceptable_loss": "45%",
             "financial_resilience_months": "Plus de 12 mois"},
            {"investment_horizon": None, "max_acceptable_loss": None,
             "financial_resilience_months": None},
        ],
        index=[10, 20],
    )
    out = classify_signals_frame(df)
    assert list(out.columns) == STRATEGY_COLUMNS
    assert out.loc[10, "archetype"] == "HighVolatility"
    assert out.loc[10, "confidence"] == "high"
    assert out.loc[10, "cash_target_pct"] == 4
    assert out.loc[20, "archetype"] == "Balanced"
    assert out.loc[20, "confidence"] == "low"
    assert "Données incomplètes" in out.loc[20, "reasoning"]


def test_duplicate_index_is_kept():
    df = pd.DataFrame([{"investment_horizon": "1-2 ans"}, {"investment_horizon": "Plus de 10 ans"}], index=[1, 1])
    out = classify_signals_frame(df)
    assert len(out) == 2
    assert list(out["archetype"]) == ["Defensive", "Balanced"]


def test_empty_frames():
    empty = pd.DataFrame(columns=["investment_horizon"])
    assert list(score_answers_frame(empty).columns) == SCORE_COLUMNS
    assert classify_signals_frame(empty).empty
