"""
Batch scoring over pandas DataFrames.

One row per user, columns named after the onboarding fields. NaN cells are
treated as unanswered questions. Output frames keep the input index so they
can be joined back onto the source.
"""
from __future__ import annotations
import logging
from typing import Any, Dict, List

import pandas as pd

from .risk_profile import compute_risk_profile
from .strategy_classifier import classify_strategy

_log = logging.getLogger(__name__)

SCORE_COLUMNS = [
    "score_tolerance",
    "score_capacity",
    "score_behavior",
    "score_horizon",
    "score_knowledge",
    "score_total",
    "risk_profile",
]

STRATEGY_COLUMNS = [
    "archetype",
    "confidence",
    "cash_target_pct",
    "max_position_pct",
    "max_asset_class_pct",
    "reasoning",
]


def _records(df: pd.DataFrame) -> List[Dict[str, Any]]:
    # object dtype first, otherwise where() puts NaN back into float columns
    clean = df.astype(object).where(df.notna(), None)
    return clean.to_dict(orient="records")


def score_answers_frame(df: pd.DataFrame) -> pd.DataFrame:
    """Risk profile per row: five sub-scores, total and label."""
    if df.empty:
        return pd.DataFrame(columns=SCORE_COLUMNS, index=df.index)
    rows = [compute_risk_profile(rec).to_record() for rec in _records(df)]
    out = pd.DataFrame(rows, columns=SCORE_COLUMNS, index=df.index)
    _log.info("scored %d onboarding rows", len(out))
    return out


def classify_signals_frame(df: pd.DataFrame, sep: str = " | ") -> pd.DataFrame:
    """Strategy archetype per row, with thresholds and the joined reasoning."""
    if df.empty:
        return pd.DataFrame(columns=STRATEGY_COLUMNS, index=df.index)
    rows = []
    for rec in _records(df):
        res = classify_strategy(rec)
        rows.append({
            "archetype": res.archetype.value,
            "confidence": res.confidence.value,
            **res.thresholds.as_dict(),
            "reasoning": sep.join(res.reasoning),
        })
    out = pd.DataFrame(rows, columns=STRATEGY_COLUMNS, index=df.index)
    _log.info("classified %d onboarding rows", len(out))
    return out


__all__ = ["SCORE_COLUMNS", "STRATEGY_COLUMNS", "score_answers_frame", "classify_signals_frame"]
