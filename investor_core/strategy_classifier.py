"""
Strategy Classifier - onboarding signals to strategy archetype.

Parses three free-text onboarding signals (horizon, max acceptable loss,
financial resilience) into numeric measures, then applies an ordered rule set
to pick one of four archetypes. Each archetype carries default portfolio
thresholds consumed by the concentration / liquidity / diversification alerts.

The free-text parsers keep the historical phrase matching. Checks are ordered
and the first match wins; reordering them changes results.
"""

from __future__ import annotations
import re
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Pattern, Tuple, Union
import logging

from .category_mapper import round_half_up

_log = logging.getLogger(__name__)

__all__ = [
    "StrategyArchetype",
    "Confidence",
    "StrategyThresholds",
    "StrategyResult",
    "OnboardingSignals",
    "ARCHETYPE_LABELS",
    "ARCHETYPE_DESCRIPTIONS",
    "parse_horizon_months",
    "parse_loss_pct",
    "parse_resilience_months",
    "classify_strategy",
    "get_archetype_thresholds",
    "get_all_archetypes",
]


class StrategyArchetype(str, Enum):
    DEFENSIVE = "Defensive"
    BALANCED = "Balanced"
    GROWTH = "Growth"
    HIGH_VOLATILITY = "HighVolatility"


class Confidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass
class StrategyThresholds:
    """Portfolio thresholds, all in percent (0..100)."""
    cash_target_pct: float
    max_position_pct: float
    max_asset_class_pct: float

    def as_dict(self) -> Dict[str, float]:
        return {
            "cash_target_pct": self.cash_target_pct,
            "max_position_pct": self.max_position_pct,
            "max_asset_class_pct": self.max_asset_class_pct,
        }


# Defaults as immutable triples; callers always receive fresh StrategyThresholds.
_ARCHETYPE_DEFAULTS: Mapping[StrategyArchetype, Tuple[float, float, float]] = MappingProxyType({
    #                                    cash  position  asset class
    StrategyArchetype.DEFENSIVE:        (15,   7,        70),
    StrategyArchetype.BALANCED:         (10,   10,       80),
    StrategyArchetype.GROWTH:           (6,    12,       90),
    StrategyArchetype.HIGH_VOLATILITY:  (4,    15,       95),
})

# French labels for UI
ARCHETYPE_LABELS: Mapping[StrategyArchetype, str] = MappingProxyType({
    StrategyArchetype.DEFENSIVE: "Défensif",
    StrategyArchetype.BALANCED: "Équilibré",
    StrategyArchetype.GROWTH: "Croissance",
    StrategyArchetype.HIGH_VOLATILITY: "Haute Volatilité",
})

ARCHETYPE_DESCRIPTIONS: Mapping[StrategyArchetype, str] = MappingProxyType({
    StrategyArchetype.DEFENSIVE: (
        "Priorité à la préservation du capital. Tolérance au risque faible, "
        "horizon court ou capacité financière limitée."
    ),
    StrategyArchetype.BALANCED: (
        "Équilibre entre croissance et sécurité. Tolérance au risque modérée, horizon moyen."
    ),
    StrategyArchetype.GROWTH: (
        "Priorité à la croissance long terme. Tolérance au risque élevée, "
        "horizon long et bonne capacité financière."
    ),
    StrategyArchetype.HIGH_VOLATILITY: (
        "Maximisation du rendement avec volatilité acceptée. Très haute tolérance au risque."
    ),
})


@dataclass
class StrategyResult:
    archetype: StrategyArchetype
    thresholds: StrategyThresholds
    confidence: Confidence
    reasoning: List[str] = field(default_factory=list)


@dataclass
class OnboardingSignals:
    """The onboarding answers the classifier reads.

    ``income_stability`` is carried along for completeness but does not
    influence the archetype.
    """
    investment_horizon: Optional[str] = None
    max_acceptable_loss: Optional[str] = None
    financial_resilience_months: Optional[str] = None
    income_stability: Optional[str] = None

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "OnboardingSignals":
        data = dict(data) if data is not None else {}

        def _text(key: str) -> Optional[str]:
            v = data.get(key)
            if v is None or (isinstance(v, float) and v != v):
                return None
            return str(v)

        return cls(
            investment_horizon=_text("investment_horizon"),
            max_acceptable_loss=_text("max_acceptable_loss"),
            financial_resilience_months=_text("financial_resilience_months"),
            income_stability=_text("income_stability"),
        )


# ============================================================================
# Signal parsers
# ============================================================================

_FIRST_INT = re.compile(r"(\d+)")


def _pct(*numbers: int) -> Pattern[str]:
    # Whole-number percent tokens: "30%" must not match the "0%" rule
    alts = "|".join(str(n) for n in numbers)
    return re.compile(rf"(?<!\d)(?:{alts})\s?%")


HORIZON_DEFAULT_MONTHS = 36
LOSS_DEFAULT_PCT = 20
RESILIENCE_DEFAULT_MONTHS = 3

_HORIZON_RULES: Tuple[Tuple[Tuple[str, ...], int], ...] = (
    (("moins de 2", "< 2", "<2", "court"), 18),
    (("2-5", "2 à 5", "moyen"), 42),
    (("5-10", "5 à 10"), 84),
    (("plus de 10", "> 10", ">10", "long"), 144),
)

_LOSS_RULES: Tuple[Tuple[Pattern[str], Tuple[str, ...], int], ...] = (
    (_pct(0), ("aucune", "pas de"), 0),
    (_pct(5), ("très faible",), 5),
    (_pct(10), ("faible",), 10),
    (_pct(15), (), 15),
    (_pct(20), ("modéré",), 20),
    (_pct(30), ("élevé",), 30),
    (_pct(40, 45, 50), ("très élevé",), 45),
)

_RESILIENCE_RULES: Tuple[Tuple[Tuple[str, ...], int], ...] = (
    (("moins de 3", "< 3", "<3", "1-2"), 2),
    (("3-6", "3 à 6"), 4),
    (("6-12", "6 à 12"), 9),
    (("plus de 12", "> 12", ">12", "1 an"), 18),
)


def _first_int(text: str) -> Optional[int]:
    m = _FIRST_INT.search(text)
    return int(m.group(1)) if m else None


def parse_horizon_months(horizon: Optional[str]) -> int:
    """
    Parse an investment horizon answer to months.

    Phrase rules first ("< 2 ans" → 18, "2-5 ans" → 42, "5-10 ans" → 84,
    "plus de 10 ans" → 144), then the first integer (≤ 30 read as years,
    larger values as months), else 36.
    """
    if not horizon:
        return HORIZON_DEFAULT_MONTHS
    lower = horizon.lower()
    for phrases, months in _HORIZON_RULES:
        if any(p in lower for p in phrases):
            return months
    num = _first_int(horizon)
    if num is not None:
        return num * 12 if num <= 30 else num
    return HORIZON_DEFAULT_MONTHS


def parse_loss_pct(loss: Optional[str]) -> int:
    """
    Parse a max acceptable loss answer to a percentage.

    Phrase rules map to {0, 5, 10, 15, 20, 30, 45}; otherwise the first
    integer is taken as the percentage; else 20.
    """
    if not loss:
        return LOSS_DEFAULT_PCT
    lower = loss.lower()
    for pattern, phrases, pct in _LOSS_RULES:
        if pattern.search(lower) or any(p in lower for p in phrases):
            return pct
    num = _first_int(loss)
    if num is not None:
        return num
    return LOSS_DEFAULT_PCT


def parse_resilience_months(resilience: Optional[str]) -> int:
    """Parse a financial resilience answer (months of expenses saved); default 3."""
    if not resilience:
        return RESILIENCE_DEFAULT_MONTHS
    lower = resilience.lower()
    for phrases, months in _RESILIENCE_RULES:
        if any(p in lower for p in phrases):
            return months
    num = _first_int(resilience)
    if num is not None:
        return num
    return RESILIENCE_DEFAULT_MONTHS


# ============================================================================
# Classification
# ============================================================================

def _years(months: int) -> int:
    return round_half_up(months / 12.0)


def classify_strategy(
    answers: Union[OnboardingSignals, Mapping[str, Any], None] = None,
) -> StrategyResult:
    """
    Determine the strategy archetype from onboarding answers.

    Rules, in priority order (first match wins):
      1) HighVolatility if loss >= 45% (confidence medium if horizon < 60 months)
      2) Defensive if horizon < 36 months OR loss <= 15% OR resilience < 3 months
      3) Growth if horizon > 84 months AND loss >= 30% AND resilience >= 6 months
      4) Balanced otherwise

    Confidence is forced to low whenever the horizon or max-loss answer is
    missing. The returned thresholds are a copy of the archetype defaults.
    """
    if not isinstance(answers, OnboardingSignals):
        answers = OnboardingSignals.from_mapping(answers)

    horizon_months = parse_horizon_months(answers.investment_horizon)
    loss_pct = parse_loss_pct(answers.max_acceptable_loss)
    resilience_months = parse_resilience_months(answers.financial_resilience_months)

    reasoning: List[str] = []
    confidence = Confidence.HIGH

    if loss_pct >= 45:
        archetype = StrategyArchetype.HIGH_VOLATILITY
        reasoning.append(f"Tolérance aux pertes très élevée ({loss_pct}%)")
        if horizon_months < 60:
            confidence = Confidence.MEDIUM
            reasoning.append("⚠️ Horizon court pour ce niveau de risque")
    elif horizon_months < 36 or loss_pct <= 15 or resilience_months < 3:
        archetype = StrategyArchetype.DEFENSIVE
        if horizon_months < 36:
            reasoning.append(f"Horizon court ({_years(horizon_months)} ans)")
        if loss_pct <= 15:
            reasoning.append(f"Tolérance aux pertes limitée ({loss_pct}%)")
        if resilience_months < 3:
            reasoning.append("Résilience financière faible (< 3 mois)")
    elif horizon_months > 84 and loss_pct >= 30 and resilience_months >= 6:
        archetype = StrategyArchetype.GROWTH
        reasoning.append(f"Horizon long ({_years(horizon_months)}+ ans)")
        reasoning.append(f"Tolérance aux pertes élevée ({loss_pct}%)")
        reasoning.append(f"Bonne résilience financière ({resilience_months}+ mois)")
    else:
        archetype = StrategyArchetype.BALANCED
        reasoning.append("Profil équilibré entre risque et sécurité")
        if 36 <= horizon_months <= 84:
            reasoning.append(f"Horizon moyen ({_years(horizon_months)} ans)")
        if 15 < loss_pct < 30:
            reasoning.append(f"Tolérance au risque modérée ({loss_pct}%)")

    if not answers.investment_horizon or not answers.max_acceptable_loss:
        confidence = Confidence.LOW
        reasoning.append("⚠️ Données incomplètes - répondez à l'onboarding pour affiner")

    _log.debug(
        "classified horizon=%sm loss=%s%% resilience=%sm -> %s (%s)",
        horizon_months, loss_pct, resilience_months, archetype.value, confidence.value,
    )
    return StrategyResult(
        archetype=archetype,
        thresholds=get_archetype_thresholds(archetype),
        confidence=confidence,
        reasoning=reasoning,
    )


def get_archetype_thresholds(archetype: Union[StrategyArchetype, str]) -> StrategyThresholds:
    """Return a fresh copy of the archetype's default thresholds."""
    cash, position, asset_class = _ARCHETYPE_DEFAULTS[StrategyArchetype(archetype)]
    return StrategyThresholds(
        cash_target_pct=cash,
        max_position_pct=position,
        max_asset_class_pct=asset_class,
    )


def get_all_archetypes() -> List[Dict[str, Any]]:
    """All archetypes with label, description and default thresholds, for selection UIs."""
    return [
        {
            "key": archetype,
            "label": ARCHETYPE_LABELS[archetype],
            "description": ARCHETYPE_DESCRIPTIONS[archetype],
            "thresholds": get_archetype_thresholds(archetype),
        }
        for archetype in StrategyArchetype
    ]
