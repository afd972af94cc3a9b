"""Onboarding answer → bounded sub-score mapping.

Every table-driven question has an exact-string lookup table (values 0..5) and
a documented default used when the answer is missing or unrecognised. The
horizon and knowledge questions are not table lookups: the horizon is bucketed
by phrase matching and knowledge is derived from six 1..5 sliders.

All functions here are total: they never raise for missing or malformed input.
"""
from __future__ import annotations
import math
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple

__all__ = [
    "QuestionCategory",
    "KNOWLEDGE_DOMAINS",
    "map_category",
    "choices_for",
    "default_for",
    "score_horizon_bucket",
    "score_knowledge",
    "knowledge_levels_from",
    "round_half_up",
    "clamp",
]


class QuestionCategory(str, Enum):
    """Table-driven onboarding questions."""
    MAX_LOSS = "max_loss"
    RISK_VISION = "risk_vision"
    VOLATILITY_REACTION = "volatility_reaction"
    INCOME_STABILITY = "income_stability"
    SAFETY_MONTHS = "safety_months"
    LOSS_IMPACT = "loss_impact"
    FOMO = "fomo"
    EMOTIONAL_STABILITY = "emotional_stability"
    GAIN_REACTION = "gain_reaction"


# (table, default) per category. Tables are read-only and shared process-wide.
_TABLES: Mapping[QuestionCategory, Tuple[Mapping[str, int], int]] = MappingProxyType({
    QuestionCategory.MAX_LOSS: (MappingProxyType({
        "0%": 0,
        "-5%": 1,
        "-10%": 2,
        "-20%": 4,
        "-30% ou plus": 5,
    }), 2),
    QuestionCategory.RISK_VISION: (MappingProxyType({
        "Je vends": 0,
        "J'attends": 2,
        "C'est normal": 4,
        "Je remets de l'argent": 5,
    }), 2),
    QuestionCategory.VOLATILITY_REACTION: (MappingProxyType({
        "Stress extrême": 0,
        "Inconfort": 2,
        "Je m'en fiche": 4,
        "Je renforce": 5,
    }), 2),
    QuestionCategory.INCOME_STABILITY: (MappingProxyType({
        "Inexistants": 0,
        "Irréguliers": 1,
        "Variables": 2,
        "Stables": 5,
    }), 2),
    QuestionCategory.SAFETY_MONTHS: (MappingProxyType({
        "< 1 mois": 0,
        "1-3 mois": 2,
        "3-6 mois": 3,
        "6-12 mois": 4,
        "> 12 mois": 5,
    }), 2),
    QuestionCategory.LOSS_IMPACT: (MappingProxyType({
        "Ton quotidien": 0,
        "Ton loyer": 1,
        "Ton projet principal": 2,
        "Rien du tout": 5,
    }), 2),
    QuestionCategory.FOMO: (MappingProxyType({
        "Je veux acheter": 0,
        "J'hésite": 2,
        "Je m'en fiche": 4,
        "Je méfie": 5,
    }), 2),
    QuestionCategory.EMOTIONAL_STABILITY: (MappingProxyType({
        "Impulsif": 0,
        "Réactif": 2,
        "Calme": 4,
        "Très stable": 5,
    }), 2),
    QuestionCategory.GAIN_REACTION: (MappingProxyType({
        "Je sécurise tout de suite": 2,
        "Je prends une partie": 3,
        "Je laisse tourner": 4,
        "Je renforce": 5,
    }), 3),
})

KNOWLEDGE_DOMAINS: Tuple[str, ...] = (
    "livrets",
    "etf",
    "actions",
    "crypto",
    "immobilier",
    "assurance_vie",
)

# Ordered (phrases, points); first match wins.
_HORIZON_BUCKETS: Tuple[Tuple[Tuple[str, ...], int], ...] = (
    (("< 1 an", "<1 an", "moins d'1 an", "moins de 1 an", "moins d'un an"), 0),
    (("1-2", "1 à 2"), 2),
    (("3-5", "3 à 5"), 5),
    (("5-10", "5 à 10"), 8),
    (("> 10", ">10", "plus de 10"), 10),
    # Legacy single-choice form ("> 5 ans") from the first onboarding version
    (("> 5", ">5", "plus de 5"), 10),
)
HORIZON_DEFAULT = 5

_EXPERIENCE_ADJUSTMENTS: Tuple[Tuple[Tuple[str, ...], int], ...] = (
    (("> 1 an", ">1 an", "plus d'1 an", "plus de 1 an", "plus d'un an"), 1),
    (("< 6 mois", "<6 mois", "moins de 6 mois"), -1),
    (("jamais",), -2),
)


def clamp(x: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, x))


def round_half_up(x: float) -> int:
    """Round to nearest integer with .5 going up (2.5 -> 3, unlike round())."""
    return int(math.floor(x + 0.5))


def _normalize(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def map_category(category: QuestionCategory, value: Optional[str]) -> int:
    """
    Map one answer to its 0..5 sub-score.

    Args:
        category: Which question the answer belongs to.
        value: The raw answer, as offered by ``choices_for(category)``.

    Returns:
        The table value, or the category default when the answer is missing
        or not in the table. Never raises.
    """
    table, default = _TABLES[QuestionCategory(category)]
    key = _normalize(value)
    if not key:
        return default
    return table.get(key, default)


def choices_for(category: QuestionCategory) -> List[str]:
    """Recognised answers for a question, in table order (the enumerated form choices)."""
    table, _ = _TABLES[QuestionCategory(category)]
    return list(table.keys())


def default_for(category: QuestionCategory) -> int:
    """The neutral sub-score used for a missing or unrecognised answer."""
    return _TABLES[QuestionCategory(category)][1]


def score_horizon_bucket(value: Optional[str]) -> int:
    """
    Bucket the investment horizon answer into 0..10 points.

    < 1 year → 0, 1-2 years → 2, 3-5 years → 5, 5-10 years → 8,
    > 10 years → 10; unmatched or missing → 5.
    """
    text = _normalize(value).lower()
    if not text:
        return HORIZON_DEFAULT
    for phrases, points in _HORIZON_BUCKETS:
        if any(p in text for p in phrases):
            return points
    return HORIZON_DEFAULT


def _slider(value: Any) -> float:
    # Missing, zero and non-numeric sliders count as the minimum level
    try:
        v = float(value)
    except (TypeError, ValueError):
        return 1.0
    if math.isnan(v) or v == 0:
        return 1.0
    return v


def score_knowledge(levels: Optional[Mapping[str, Any]], experience: Optional[str]) -> float:
    """
    Knowledge score in [0, 10] (unrounded).

    Mean of the six domain sliders scaled to 0..10, then adjusted by the
    experience bucket: "> 1 an" → +1, "< 6 mois" → -1, "Jamais" → -2.
    """
    levels = levels or {}
    values = [_slider(levels.get(domain)) for domain in KNOWLEDGE_DOMAINS]
    avg = sum(values) / len(values)
    base = (avg / 5.0) * 10.0

    exp = _normalize(experience).lower()
    if exp:
        for phrases, delta in _EXPERIENCE_ADJUSTMENTS:
            if any(p in exp for p in phrases):
                base += delta
                break

    return float(clamp(base, 0.0, 10.0))


def knowledge_levels_from(values: Mapping[str, Any]) -> Dict[str, Any]:
    """Pick the six ``knowledge_<domain>`` columns out of a flat record."""
    out: Dict[str, Any] = {}
    for domain in KNOWLEDGE_DOMAINS:
        key = f"knowledge_{domain}"
        if key in values:
            out[domain] = values[key]
    return out
