from __future__ import annotations
from dataclasses import dataclass, field, fields, replace
from types import MappingProxyType
from typing import Any, Dict, List, Literal, Mapping, Optional, Tuple

from .category_mapper import round_half_up

# Five-profile engine used by the extended questionnaire (capacity / tolerance /
# objectives). Independent from the four strategy archetypes.

InvestorProfile = Literal["Prudent", "Équilibré", "Croissance", "Dynamique", "Conviction"]

# Canonical profile ordering (low → high risk)
PROFILE_ORDER: list[str] = ["Prudent", "Équilibré", "Croissance", "Dynamique", "Conviction"]
DEFAULT_PROFILE = "Équilibré"

PROFILE_DESCRIPTIONS: Dict[str, str] = {
    "Prudent": (
        "Priorité à la stabilité. Aversion forte aux pertes, diversification élevée. "
        "Vous préférez la tranquillité d'esprit à la performance maximale."
    ),
    "Équilibré": (
        "Compromis rendement / risque. Diversification structurée avec une exposition "
        "modérée aux marchés. Horizon moyen terme."
    ),
    "Croissance": (
        "Horizon long. Volatilité acceptée, concentration modérée. "
        "Vous visez la croissance du patrimoine sur le long terme."
    ),
    "Dynamique": (
        "Recherche de performance. Concentration assumée, forte exposition actions. "
        "Vous acceptez les fluctuations importantes."
    ),
    "Conviction": (
        "Investisseur avancé. Concentration élevée possible sur vos convictions. "
        "Le score sert d'indicateur, pas de contrainte."
    ),
}


@dataclass
class ProfileThresholds:
    """Per-profile portfolio guardrails; ranges are (min, max) in percent / score points."""
    cash_target_pct: Tuple[float, float]
    max_stock_position_pct: float
    max_etf_position_pct: float
    max_asset_class_pct: float
    target_score_range: Tuple[float, float]


PROFILE_THRESHOLDS: Mapping[str, ProfileThresholds] = MappingProxyType({
    "Prudent": ProfileThresholds((15, 25), 5, 20, 60, (80, 100)),
    "Équilibré": ProfileThresholds((8, 15), 10, 25, 70, (70, 85)),
    "Croissance": ProfileThresholds((5, 10), 15, 40, 80, (60, 80)),
    "Dynamique": ProfileThresholds((2, 5), 20, 50, 90, (50, 70)),
    "Conviction": ProfileThresholds((0, 5), 30, 100, 100, (40, 65)),
})


@dataclass
class ProfileAnswers:
    # Capacity
    portfolio_share: Optional[str] = None
    emergency_fund: Optional[str] = None
    income_stability: Optional[str] = None
    # Objectives
    investment_horizon: Optional[str] = None
    main_objective: Optional[str] = None
    # Tolerance
    reaction_to_loss: Optional[str] = None
    risk_vision: Optional[str] = None
    # Knowledge & involvement
    experience_level: Optional[str] = None
    time_commitment: Optional[str] = None
    # Allocation preferences
    preferred_style: Optional[str] = None
    concentration_acceptance: Optional[str] = None

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "ProfileAnswers":
        data = dict(data) if data is not None else {}
        kwargs = {}
        for f in fields(cls):
            v = data.get(f.name)
            if isinstance(v, str):
                kwargs[f.name] = v
        return cls(**kwargs)

    def answered_count(self) -> int:
        return sum(1 for f in fields(self) if (getattr(self, f.name) or "").strip())


@dataclass
class DimensionScore:
    name: str
    score: int
    max_score: int
    weight: float
    factors: List[str] = field(default_factory=list)

    @property
    def pct(self) -> float:
        return self.score / self.max_score * 100.0


@dataclass
class ProfileResult:
    profile: str
    capacity: DimensionScore
    tolerance: DimensionScore
    objectives: DimensionScore
    total: int
    weighted_total: float
    thresholds: ProfileThresholds
    confidence: Literal["high", "medium", "low"]
    reasoning: List[str] = field(default_factory=list)


def _lower(value: Optional[str]) -> str:
    return (value or "").lower()


def _has(text: str, *phrases: str) -> bool:
    return any(p in text for p in phrases)


# ============================================================================
# Dimension scores
# ============================================================================

def capacity_score(answers: ProfileAnswers) -> DimensionScore:
    """Objective financial capacity to take risk (max 35)."""
    score, factors = 0, []

    share = _lower(answers.portfolio_share)
    if _has(share, "< 20", "moins de 20"):
        score += 12; factors.append("Portefeuille < 20% du patrimoine (+12)")
    elif "20" in share and "50" in share:
        score += 7; factors.append("Portefeuille 20-50% du patrimoine (+7)")
    elif _has(share, "> 50", "plus de 50"):
        score += 3; factors.append("Portefeuille > 50% du patrimoine (+3)")

    fund = _lower(answers.emergency_fund)
    if _has(fund, "12", "> 6", ">6", "plus de 6", "6 mois", "1 an"):
        score += 12; factors.append("Épargne de précaution > 6 mois (+12)")
    elif "3" in fund and "6" in fund:
        score += 7; factors.append("Épargne de précaution 3-6 mois (+7)")
    elif _has(fund, "< 3", "moins de 3"):
        score += 2; factors.append("Épargne de précaution < 3 mois (+2)")

    income = _lower(answers.income_stability)
    if _has(income, "très stable", "multiples"):
        score += 11; factors.append("Revenus très stables (+11)")
    elif "stable" in income and "in" not in income:
        score += 8; factors.append("Revenus stables (+8)")
    elif "variable" in income:
        score += 4; factors.append("Revenus variables (+4)")
    elif _has(income, "instable", "inexistan", "aucun"):
        score += 1; factors.append("Revenus instables ou inexistants (+1)")

    return DimensionScore("Capacité au risque", score, 35, 0.35, factors)


def tolerance_score(answers: ProfileAnswers) -> DimensionScore:
    """Emotional tolerance (max 35); the reaction to a -20% drawdown weighs most."""
    score, factors = 0, []

    reaction = _lower(answers.reaction_to_loss)
    if _has(reaction, "investirais", "achèterais"):
        score += 18; factors.append("Face à -20%: investirait davantage (+18)")
    elif _has(reaction, "rien", "attendre", "m'en fiche", "men fiche", "m en fiche"):
        score += 12; factors.append("Face à -20%: ne ferait rien (+12)")
    elif _has(reaction, "vendr", "limiter"):
        score += 4; factors.append("Face à -20%: vendrait pour limiter (+4)")

    vision = _lower(answers.risk_vision)
    if ("volatilité" in vision and "ne me dérange" in vision) or _has(vision, "remets", "remet", "rajoute"):
        score += 17; factors.append("Volatilité acceptée si thèse long terme (+17)")
    elif _has(vision, "accepte", "fluctuation"):
        score += 11; factors.append("Accepte les fluctuations pour le rendement (+11)")
    elif _has(vision, "préfère éviter", "limité"):
        score += 4; factors.append("Préfère éviter les pertes (+4)")

    return DimensionScore("Tolérance émotionnelle", score, 35, 0.35, factors)


def objectives_score(answers: ProfileAnswers) -> DimensionScore:
    """Horizon and main goal (max 30)."""
    score, factors = 0, []

    horizon = _lower(answers.investment_horizon)
    if _has(horizon, "plus de 10", "> 10", ">10"):
        score += 18; factors.append("Horizon > 10 ans (+18)")
    elif _has(horizon, "8", "5-10", "5 à 10", "> 5", ">5"):
        score += 13; factors.append("Horizon 5-10 ans (+13)")
    elif _has(horizon, "3", "2-5", "2 à 5"):
        score += 7; factors.append("Horizon 2-5 ans (+7)")
    elif _has(horizon, "< 3", "moins de 2"):
        score += 2; factors.append("Horizon court < 3 ans (+2)")

    objective = _lower(answers.main_objective)
    if _has(objective, "maximiser", "performance"):
        score += 12; factors.append("Objectif: performance maximale (+12)")
    elif _has(objective, "patrimoine", "croître"):
        score += 10; factors.append("Objectif: croissance du patrimoine (+10)")
    elif _has(objective, "retraite", "passifs"):
        score += 6; factors.append("Objectif: retraite/revenus passifs (+6)")
    elif _has(objective, "préserver", "précaution", "immobilier"):
        score += 3; factors.append("Objectif: préservation/projet (+3)")
    else:
        # free-text projects ("voyager") keep a neutral score
        score += 6; factors.append("Objectif non précisé (+6)")

    return DimensionScore("Objectifs & Horizon", score, 30, 0.30, factors)


# ============================================================================
# Profile determination
# ============================================================================

_SCORE_BANDS: Tuple[Tuple[float, str, str], ...] = (
    (85, "Conviction", "Score global élevé"),
    (70, "Dynamique", "Score global dynamique"),
    (50, "Croissance", "Score global croissance"),
    (30, "Équilibré", "Score global équilibré"),
)


def compute_investor_profile(answers: ProfileAnswers | Mapping[str, Any] | None = None) -> ProfileResult:
    """
    Weighted total (0-100) → base profile, then modifiers in order:
      - capacity < 30% caps Conviction/Dynamique at Croissance
      - Conviction requires "avancé" experience (else Dynamique)
      - Dynamique + advanced experience + "oui ... sans problème" concentration → Conviction
      - tolerance < 25% caps anything above Équilibré at Équilibré
    Confidence follows the number of answered questions (>=8 high, >=5 medium).
    """
    if not isinstance(answers, ProfileAnswers):
        answers = ProfileAnswers.from_mapping(answers)

    capacity = capacity_score(answers)
    tolerance = tolerance_score(answers)
    objectives = objectives_score(answers)

    weighted = sum(d.pct * d.weight for d in (capacity, tolerance, objectives))
    reasoning: List[str] = []

    profile = "Prudent"
    label = "Score global prudent"
    for floor, name, text in _SCORE_BANDS:
        if weighted >= floor:
            profile, label = name, text
            break
    reasoning.append(f"{label} ({round_half_up(weighted)}/100)")

    if capacity.pct < 30 and profile in ("Conviction", "Dynamique"):
        profile = "Croissance"
        reasoning.append("⚠️ Capacité financière limitée → profil plafonné")

    experience = _lower(answers.experience_level)
    concentration = _lower(answers.concentration_acceptance)

    if profile == "Conviction" and "avancé" not in experience:
        profile = "Dynamique"
        reasoning.append("Profil Conviction requiert expérience avancée")

    if profile == "Dynamique" and "avancé" in experience and "oui" in concentration and "sans problème" in concentration:
        profile = "Conviction"
        reasoning.append("Expérience avancée + concentration acceptée → Conviction")

    if tolerance.pct < 25 and profile not in ("Prudent", "Équilibré"):
        profile = "Équilibré"
        reasoning.append("⚠️ Tolérance émotionnelle faible → profil modéré")

    answered = answers.answered_count()
    if answered >= 8:
        confidence = "high"
    elif answered >= 5:
        confidence = "medium"
    else:
        confidence = "low"
        reasoning.append("⚠️ Questionnaire incomplet - affiner le profil")

    reasoning.append(
        f"Capacité: {round_half_up(capacity.pct)}% | Tolérance: {round_half_up(tolerance.pct)}% "
        f"| Objectifs: {round_half_up(objectives.pct)}%"
    )

    return ProfileResult(
        profile=profile,
        capacity=capacity,
        tolerance=tolerance,
        objectives=objectives,
        total=capacity.score + tolerance.score + objectives.score,
        weighted_total=weighted,
        thresholds=get_profile_thresholds(profile),
        confidence=confidence,
        reasoning=reasoning,
    )


def get_profile_thresholds(profile: str) -> ProfileThresholds:
    """Return a copy of the profile's thresholds; unknown profiles raise KeyError."""
    return replace(PROFILE_THRESHOLDS[profile])


def get_all_profiles() -> list[Dict[str, Any]]:
    """All profiles in canonical order, for selection UIs."""
    return [
        {
            "key": p,
            "label": p,
            "description": PROFILE_DESCRIPTIONS[p],
            "thresholds": get_profile_thresholds(p),
        }
        for p in PROFILE_ORDER
    ]


def map_legacy_profile(risk_profile: Optional[str]) -> str:
    """Map a legacy risk_profile / archetype string onto the five profiles; default Équilibré."""
    lower = _lower(risk_profile)
    if not lower: return DEFAULT_PROFILE
    if _has(lower, "prudent", "défensif", "defensive"): return "Prudent"
    if "conviction" in lower: return "Conviction"
    if _has(lower, "dynamique", "highvolatility"): return "Dynamique"
    if _has(lower, "croissance", "growth"): return "Croissance"
    # Neutre, Balanced, Équilibré
    return DEFAULT_PROFILE


def get_profile_recommendations(profile: str, context: Optional[Mapping[str, Any]] = None) -> List[str]:
    """
    Profile-aware remarks on the current portfolio state.

    ``context`` keys (all optional): current_score, cash_pct,
    over_concentrated_count.
    """
    ctx = dict(context or {})
    t = PROFILE_THRESHOLDS[profile]
    out: List[str] = []

    score = ctx.get("current_score")
    if score is not None:
        lo, hi = t.target_score_range
        if score < lo:
            if profile == "Conviction":
                out.append(f"Score de {score}/100 - acceptable pour un profil Conviction, mais surveillez les risques.")
            elif profile == "Prudent":
                out.append(f"Score de {score}/100 - améliorez la diversification pour correspondre à votre profil prudent.")
            else:
                out.append(f"Score de {score}/100 - en dessous de la cible {lo}-{hi} pour votre profil.")
        elif score > hi and profile != "Prudent":
            out.append(
                f"Score de {score}/100 - excellente diversification, "
                "vous pouvez envisager plus de concentration si souhaité."
            )

    cash = ctx.get("cash_pct")
    if cash is not None:
        cash_min, cash_max = t.cash_target_pct
        if cash < cash_min:
            out.append(
                f"Liquidités ({cash:.0f}%) inférieures à la cible {cash_min}-{cash_max}% "
                "- renforcez l'épargne de précaution."
            )
        elif cash > cash_max * 1.5:
            out.append(f"Liquidités élevées ({cash:.0f}%) - envisagez de déployer une partie en investissements.")

    n = ctx.get("over_concentrated_count")
    if n:
        if profile == "Prudent":
            out.append(f"{n} position(s) trop concentrée(s) - réduisez pour limiter le risque.")
        elif profile == "Conviction":
            out.append(f"{n} position(s) concentrée(s) - acceptable si vous avez une conviction forte.")
        else:
            out.append(f"{n} position(s) au-dessus du seuil - à surveiller.")

    return out


__all__ = [
    "InvestorProfile",
    "PROFILE_ORDER",
    "PROFILE_DESCRIPTIONS",
    "PROFILE_THRESHOLDS",
    "ProfileThresholds",
    "ProfileAnswers",
    "DimensionScore",
    "ProfileResult",
    "capacity_score",
    "tolerance_score",
    "objectives_score",
    "compute_investor_profile",
    "get_profile_thresholds",
    "get_all_profiles",
    "map_legacy_profile",
    "get_profile_recommendations",
]
