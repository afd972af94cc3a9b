from __future__ import annotations
from dataclasses import dataclass, field, fields
from typing import Any, Dict, Mapping, Optional, Union
import math

from .category_mapper import (
    QuestionCategory,
    knowledge_levels_from,
    map_category,
    round_half_up,
    score_horizon_bucket,
    score_knowledge,
)

__all__ = [
    "OnboardingAnswers",
    "RiskProfileResult",
    "compute_risk_profile",
    "compute_tolerance",
    "compute_capacity",
    "compute_behavior",
    "compute_horizon",
    "compute_knowledge",
    "risk_label",
    "RISK_LABELS",
]

# Fixed, inclusive upper bounds on score_total
RISK_LABELS = (
    (30, "Prudent"),
    (55, "Neutre"),
    (75, "Dynamique"),
)
TOP_LABEL = "Très dynamique"

# Sub-score ranges, for reference and tests
SCORE_RANGES = {
    "score_tolerance": (0, 30),
    "score_capacity": (0, 25),
    "score_behavior": (0, 25),
    "score_horizon": (0, 10),
    "score_knowledge": (0, 10),
}


# ============================================================================
# OnboardingAnswers – raw answers, every field optional
# ============================================================================

@dataclass
class OnboardingAnswers:
    """
    Raw onboarding answers grouped in five dimensions.

    All fields are optional; a missing answer falls back to the documented
    default sub-score of its question.
    """
    # Tolerance
    max_acceptable_loss: Optional[str] = None
    reaction_to_volatility: Optional[str] = None
    risk_vision: Optional[str] = None

    # Capacity
    income_stability: Optional[str] = None
    financial_resilience_months: Optional[str] = None
    loss_impact: Optional[str] = None

    # Behavior
    panic_selling_history: Optional[bool] = None
    fomo_tendency: Optional[str] = None
    emotional_stability: Optional[str] = None
    reaction_to_gains: Optional[str] = None
    regretted_purchases_history: Optional[bool] = None

    # Horizon
    investment_horizon: Optional[str] = None

    # Knowledge
    knowledge_levels: Dict[str, Any] = field(default_factory=dict)
    investment_experience: Optional[str] = None

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "OnboardingAnswers":
        """Build answers from a loose record (form payload, DB row, DataFrame row).

        Accepts either a nested ``knowledge_levels`` mapping or flat
        ``knowledge_<domain>`` keys. Unknown keys are ignored; NaN and empty
        strings count as missing.
        """
        data = dict(data) if data is not None else {}
        kwargs: Dict[str, Any] = {}
        for f in fields(cls):
            if f.name == "knowledge_levels":
                continue
            value = _clean(data.get(f.name))
            if value is not None and f.name in _BOOL_FIELDS:
                value = _as_bool(value)
            if value is not None:
                kwargs[f.name] = value

        levels = data.get("knowledge_levels")
        if not isinstance(levels, Mapping):
            levels = knowledge_levels_from(data)
        kwargs["knowledge_levels"] = {k: v for k, v in levels.items() if _clean(v) is not None}
        return cls(**kwargs)


_BOOL_FIELDS = ("panic_selling_history", "regretted_purchases_history")


def _clean(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, str):
        text = value.strip().lower()
        if text in {"1", "true", "yes", "oui"}:
            return True
        if text in {"0", "false", "no", "non"}:
            return False
        return None
    return bool(value)


# ============================================================================
# RiskProfileResult – five sub-scores, total and label
# ============================================================================

@dataclass(frozen=True)
class RiskProfileResult:
    """
    Immutable risk profile.

    Invariant: score_total == score_tolerance + score_capacity
    + score_behavior + score_horizon + score_knowledge.
    """
    score_tolerance: int
    score_capacity: int
    score_behavior: int
    score_horizon: int
    score_knowledge: int
    score_total: int
    risk_profile: str

    def to_record(self) -> Dict[str, Any]:
        """Fields persisted on the user profile record by the onboarding flow."""
        return {
            "score_total": self.score_total,
            "score_tolerance": self.score_tolerance,
            "score_capacity": self.score_capacity,
            "score_behavior": self.score_behavior,
            "score_horizon": self.score_horizon,
            "score_knowledge": self.score_knowledge,
            "risk_profile": self.risk_profile,
        }


# ============================================================================
# Dimension scores
# ============================================================================

def compute_tolerance(answers: OnboardingAnswers) -> float:
    """Tolerance (max 30): mean of max loss, risk vision and volatility reaction, × 6."""
    q1 = map_category(QuestionCategory.MAX_LOSS, answers.max_acceptable_loss)
    q2 = map_category(QuestionCategory.RISK_VISION, answers.risk_vision)
    q3 = map_category(QuestionCategory.VOLATILITY_REACTION, answers.reaction_to_volatility)
    return ((q1 + q2 + q3) / 3.0) * 6.0


def compute_capacity(answers: OnboardingAnswers) -> float:
    """Capacity (max 25): mean of income stability, safety months and loss impact, × 5."""
    r1 = map_category(QuestionCategory.INCOME_STABILITY, answers.income_stability)
    r2 = map_category(QuestionCategory.SAFETY_MONTHS, answers.financial_resilience_months)
    r3 = map_category(QuestionCategory.LOSS_IMPACT, answers.loss_impact)
    return ((r1 + r2 + r3) / 3.0) * 5.0


def compute_behavior(answers: OnboardingAnswers) -> float:
    """
    Behavior (max 25): mean of four answers, × 5.

    Only an explicit ``panic_selling_history=True`` scores 0; anything else
    (False or unanswered) scores 5.
    """
    b1 = 0 if answers.panic_selling_history is True else 5
    b2 = map_category(QuestionCategory.FOMO, answers.fomo_tendency)
    b3 = map_category(QuestionCategory.EMOTIONAL_STABILITY, answers.emotional_stability)
    b4 = map_category(QuestionCategory.GAIN_REACTION, answers.reaction_to_gains)
    return ((b1 + b2 + b3 + b4) / 4.0) * 5.0


def compute_horizon(answers: OnboardingAnswers) -> float:
    return float(score_horizon_bucket(answers.investment_horizon))


def compute_knowledge(answers: OnboardingAnswers) -> float:
    return score_knowledge(answers.knowledge_levels, answers.investment_experience)


def risk_label(score_total: float) -> str:
    """
    Map the total score to its qualitative label.

    Breakpoints are inclusive upper bounds: ≤30 Prudent, ≤55 Neutre,
    ≤75 Dynamique, above that Très dynamique.
    """
    for upper, label in RISK_LABELS:
        if score_total <= upper:
            return label
    return TOP_LABEL


# ============================================================================
# Main Risk Profile Computation
# ============================================================================

def compute_risk_profile(
    answers: Union[OnboardingAnswers, Mapping[str, Any], None] = None,
) -> RiskProfileResult:
    """
    Score onboarding answers into a RiskProfileResult.

    Steps:
      1) each dimension is computed from its mapped sub-scores
      2) each dimension is rounded half-up to an integer
      3) score_total = sum of the five rounded dimensions
      4) risk_profile = risk_label(score_total)

    Accepts an OnboardingAnswers, a plain mapping or None. Never raises for
    missing or unrecognised answers.
    """
    if not isinstance(answers, OnboardingAnswers):
        answers = OnboardingAnswers.from_mapping(answers)

    score_tolerance = round_half_up(compute_tolerance(answers))
    score_capacity = round_half_up(compute_capacity(answers))
    score_behavior = round_half_up(compute_behavior(answers))
    score_horizon = round_half_up(compute_horizon(answers))
    score_knowledge = round_half_up(compute_knowledge(answers))

    score_total = score_tolerance + score_capacity + score_behavior + score_horizon + score_knowledge

    return RiskProfileResult(
        score_tolerance=score_tolerance,
        score_capacity=score_capacity,
        score_behavior=score_behavior,
        score_horizon=score_horizon,
        score_knowledge=score_knowledge,
        score_total=score_total,
        risk_profile=risk_label(score_total),
    )
