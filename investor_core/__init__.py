from importlib.metadata import version, PackageNotFoundError
__all__ = [
    "category_mapper",
    "risk_profile",
    "strategy_classifier",
    "strategy_resolver",
    "investor_profiles",
    "investor_rules",
    "batch",
    "utils",
]
try:
    __version__ = version("investor-strategy")
except PackageNotFoundError:
    __version__ = "0.1.0"

# Re-export the entry points most callers need
from .risk_profile import OnboardingAnswers, RiskProfileResult, compute_risk_profile  # noqa: E402
from .strategy_classifier import (  # noqa: E402
    OnboardingSignals,
    StrategyArchetype,
    StrategyResult,
    StrategyThresholds,
    classify_strategy,
    get_archetype_thresholds,
)
from .strategy_resolver import StrategyResolver, UserStrategy  # noqa: E402

__all__ += [
    "OnboardingAnswers",
    "RiskProfileResult",
    "compute_risk_profile",
    "OnboardingSignals",
    "StrategyArchetype",
    "StrategyResult",
    "StrategyThresholds",
    "classify_strategy",
    "get_archetype_thresholds",
    "StrategyResolver",
    "UserStrategy",
]
