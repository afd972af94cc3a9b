"""Profile-level insights and contextual recommendations (French UI copy)."""
from __future__ import annotations
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, List, Mapping, Optional, Tuple


@dataclass(frozen=True)
class ProfileRules:
    summary: str
    profile_message: str
    insights: Tuple[str, ...]
    important_action: str


_BALANCED = ProfileRules(
    summary="Vous équilibrez sécurité et croissance, acceptant les fluctuations à court terme.",
    profile_message=(
        "Votre profil permet une exposition modérée aux actions tout en gardant une marge de sécurité. "
        "Vous pouvez gérer une certaine volatilité si elle est alignée avec vos objectifs à long terme."
    ),
    insights=(
        "Visez un portefeuille équilibré entre actions et ETF diversifiés.",
        "Évitez l'excès de liquidités : le cash drag réduit la performance.",
        "Limitez les positions individuelles à 10% maximum.",
        "Assurez une exposition aux marchés développés et émergents.",
        "Si la volatilité vous stresse, automatisez les contributions avec le DCA.",
    ),
    important_action="Vérifiez que votre portefeuille contient au moins 50% d'ETF larges.",
)

_DYNAMIC = ProfileRules(
    summary="Vous priorisez la performance et acceptez les fortes oscillations.",
    profile_message=(
        "Votre profil indique une haute tolérance à la volatilité, des objectifs ambitieux "
        "et un état d'esprit axé sur la croissance."
    ),
    insights=(
        "Maximisez l'exposition aux actions mondiales avec des tilts sectoriels.",
        "Les positions jusqu'à 20% sont acceptables sur forte conviction.",
        "Conservez un coussin de sécurité minimal (3 mois de dépenses).",
        "Surveillez régulièrement la concentration sectorielle.",
        "Alignez votre stratégie avec des convictions à long terme.",
    ),
    important_action="Vérifiez que les positions concentrées ne dépassent pas 20%.",
)

RISK_RULES: Mapping[str, ProfileRules] = MappingProxyType({
    "Prudent": ProfileRules(
        summary="Vous privilégiez la stabilité, les pertes limitées et une faible volatilité.",
        profile_message=(
            "Votre profil indique un besoin de préservation du capital et de performances prévisibles. "
            "Vous favorisez des investissements sûrs et diversifiés avec peu de stress de marché."
        ),
        insights=(
            "Privilégiez les ETFs larges et diversifiés (MSCI World, Stoxx 600).",
            "Conservez au moins 6 mois de dépenses en liquidités ou épargne réglementée.",
            "Réduisez l'exposition aux actifs volatils (crypto, small caps).",
            "Utilisez l'investissement progressif (DCA) plutôt qu'en une fois.",
            "Évitez la concentration dans un seul secteur ou région.",
        ),
        important_action="Vérifiez que votre exposition aux actions ne dépasse pas 60% du portefeuille.",
    ),
    "Équilibré": _BALANCED,
    # Legacy label from the first scoring version
    "Neutre": ProfileRules(
        summary=_BALANCED.summary,
        profile_message=(
            "Votre profil permet une exposition modérée aux actions tout en gardant une marge de sécurité."
        ),
        insights=(
            "Visez un portefeuille équilibré entre actions et ETF diversifiés.",
            "Évitez l'excès de liquidités.",
            "Limitez les positions individuelles à 10% maximum.",
            "Assurez une exposition aux marchés développés et émergents.",
        ),
        important_action="Vérifiez l'équilibre global de votre portefeuille.",
    ),
    "Croissance": ProfileRules(
        summary="Vous recherchez une croissance long terme et acceptez une volatilité modérée.",
        profile_message=(
            "Votre profil est adapté à une exposition actions à long terme, avec une résilience "
            "face aux drawdowns moyens et un focus sur la performance."
        ),
        insights=(
            "Augmentez l'exposition aux actions mondiales si sous-pondérées.",
            "Réduisez l'excès de liquidités (>15%), cela ralentit les rendements long terme.",
            "Diversifiez entre régions (EU, US, EM) et secteurs.",
            "Les positions jusqu'à 15% sont acceptables sur conviction.",
            "Utilisez des stratégies à long terme plutôt que de réagir à la volatilité.",
        ),
        important_action="Assurez-vous que les liquidités ne dépassent pas 10% des actifs totaux.",
    ),
    "Dynamique": _DYNAMIC,
    "Très dynamique": _DYNAMIC,
    "Conviction": ProfileRules(
        summary="Vous êtes un investisseur avancé, la concentration fait partie de votre stratégie.",
        profile_message=(
            "Votre profil indique une maîtrise des marchés et une stratégie basée sur des convictions fortes. "
            "Le score de diversification sert d'indicateur, pas de contrainte."
        ),
        insights=(
            "Votre score de diversification peut être bas par choix stratégique.",
            "Documentez vos thèses d'investissement pour chaque position majeure.",
            "Surveillez les corrélations entre vos positions concentrées.",
            "Ayez un plan de sortie défini pour chaque conviction.",
            "Les alertes de concentration sont informatives, pas contraignantes pour votre profil.",
        ),
        important_action="Assurez-vous que vos convictions sont documentées et revues régulièrement.",
    ),
})

# Minimum diversification score and maximum cash share per profile
_TARGET_SCORE_MIN = {"Prudent": 80, "Équilibré": 70, "Croissance": 60, "Dynamique": 50, "Conviction": 40}
_CASH_MAX = {"Prudent": 25, "Équilibré": 15, "Croissance": 10, "Dynamique": 5, "Conviction": 5}

MAX_RECOMMENDATIONS = 5


def get_risk_based_insights(risk_profile: Optional[str] = None) -> ProfileRules:
    """Route any profile / archetype label to its rules; unknown or empty → Équilibré."""
    lower = (risk_profile or "").lower()
    if not lower:
        return RISK_RULES["Équilibré"]
    if any(p in lower for p in ("prudent", "défensif", "defensive")):
        return RISK_RULES["Prudent"]
    if "conviction" in lower:
        return RISK_RULES["Conviction"]
    if any(p in lower for p in ("dynamique", "highvolatility")):
        return RISK_RULES["Dynamique"]
    if any(p in lower for p in ("croissance", "growth")):
        return RISK_RULES["Croissance"]
    return RISK_RULES["Équilibré"]


def get_contextual_recommendations(profile: str, context: Optional[Mapping[str, Any]] = None) -> List[str]:
    """
    Recommendations mixing the portfolio state with the profile's base insights.

    Args:
        profile: One of the five profiles.
        context: Optional keys diversification_score, cash_pct,
            concentrated_positions_count.

    Returns:
        Context-driven messages first, then base insights until five items
        (context messages are never dropped).
    """
    ctx = dict(context or {})
    base = RISK_RULES[profile]
    out: List[str] = []

    score = ctx.get("diversification_score")
    if score is not None:
        target_min = _TARGET_SCORE_MIN.get(profile, 40)
        if score < target_min:
            if profile == "Conviction":
                out.append(f"Score de {score}/100 - acceptable pour votre profil Conviction.")
            else:
                out.append(f"Score de {score}/100 - en dessous de la cible {target_min}+ pour votre profil {profile}.")

    cash = ctx.get("cash_pct")
    if cash is not None:
        cash_max = _CASH_MAX.get(profile, 5)
        if cash > cash_max * 1.5:
            out.append(f"Liquidités à {cash:.0f}% - au-dessus de la cible {cash_max}% pour votre profil.")

    n = ctx.get("concentrated_positions_count")
    if n:
        if profile == "Conviction":
            out.append(f"{n} position(s) concentrée(s) - normal pour un profil Conviction.")
        elif profile == "Prudent":
            out.append(f"{n} position(s) trop concentrée(s) - à réduire pour votre profil Prudent.")
        else:
            out.append(f"{n} position(s) au-dessus du seuil - à surveiller.")

    remaining = MAX_RECOMMENDATIONS - len(out)
    if remaining > 0:
        out.extend(base.insights[:remaining])
    return out


__all__ = [
    "ProfileRules",
    "RISK_RULES",
    "get_risk_based_insights",
    "get_contextual_recommendations",
]
