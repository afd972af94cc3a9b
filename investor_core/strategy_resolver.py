"""Strategy Resolver - effective thresholds for a user.

Single read/write surface for the thresholds consumed by the decision and
allocation views. A read merges the persisted profile (if any) with the
archetype defaults; a write persists a threshold patch and then marks every
dependent view stale.
"""
from __future__ import annotations
import logging
import os
import re
import threading
from dataclasses import dataclass, fields, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

import yaml

from .strategy_classifier import (
    ARCHETYPE_LABELS,
    OnboardingSignals,
    StrategyArchetype,
    StrategyResult,
    StrategyThresholds,
    classify_strategy,
    get_archetype_thresholds,
)
from .utils.cache import (
    NS_DECISIONS,
    NS_DIVERSIFICATION,
    NS_INSIGHTS,
    NS_PROFILE,
    NS_STRATEGY,
    ViewCache,
    query_key,
)
from .utils.env_tools import ensure_dirs, env_flag, load_config

_log = logging.getLogger(__name__)

__all__ = [
    "AuthenticationRequiredError",
    "ProfileRecord",
    "ProfileStore",
    "InMemoryProfileStore",
    "YamlProfileStore",
    "UserStrategy",
    "THRESHOLD_FIELDS",
    "archetype_from_legacy_label",
    "merge_thresholds",
    "resolve_strategy",
    "StrategyResolver",
    "build_store",
    "build_resolver",
]

THRESHOLD_FIELDS: Tuple[str, ...] = ("cash_target_pct", "max_position_pct", "max_asset_class_pct")

# Dependent views refreshed after a threshold write
DEPENDENT_VIEWS: Tuple[str, ...] = (NS_PROFILE, NS_DIVERSIFICATION, NS_INSIGHTS, NS_DECISIONS)


class AuthenticationRequiredError(PermissionError):
    """Raised by write operations when no authenticated user is available."""


# ============================================================================
# Persisted profile record
# ============================================================================

@dataclass(frozen=True)
class ProfileRecord:
    """User profile row as stored by the settings / onboarding flows."""
    user_id: str
    investment_horizon: Optional[str] = None
    max_acceptable_loss: Optional[str] = None
    financial_resilience_months: Optional[str] = None
    income_stability: Optional[str] = None
    risk_profile: Optional[str] = None
    cash_target_pct: Optional[float] = None
    max_position_pct: Optional[float] = None
    max_asset_class_pct: Optional[float] = None
    first_name: Optional[str] = None
    age: Optional[int] = None
    score_total: Optional[int] = None
    score_tolerance: Optional[int] = None
    score_capacity: Optional[int] = None
    score_behavior: Optional[int] = None
    score_horizon: Optional[int] = None
    score_knowledge: Optional[int] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_mapping(cls, user_id: str, data: Optional[Mapping[str, Any]]) -> "ProfileRecord":
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in dict(data or {}).items() if k in known and k != "user_id"}
        return cls(user_id=str(user_id), **values)

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    def signals(self) -> OnboardingSignals:
        # stored answers may be unquoted YAML numbers; from_mapping coerces to text
        return OnboardingSignals.from_mapping(self.to_dict())


# ============================================================================
# Profile stores
# ============================================================================

class ProfileStore:
    """Storage interface for profile records keyed by user id.

    ``update`` creates the record when it does not exist yet and must
    serialise concurrent writes for the same user (last write wins).
    """

    def get(self, user_id: str) -> Optional[ProfileRecord]:
        raise NotImplementedError

    def update(self, user_id: str, values: Mapping[str, Any]) -> ProfileRecord:
        raise NotImplementedError


class _UserLocks:
    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}

    def __call__(self, user_id: str) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(user_id, threading.Lock())


class InMemoryProfileStore(ProfileStore):
    """Dict-backed store; used by tests, demos and single-process tools."""

    def __init__(self, records: Optional[Mapping[str, Mapping[str, Any]]] = None):
        self._records: Dict[str, ProfileRecord] = {}
        self._lock_for = _UserLocks()
        for user_id, data in (records or {}).items():
            self._records[str(user_id)] = ProfileRecord.from_mapping(user_id, data)

    def get(self, user_id: str) -> Optional[ProfileRecord]:
        return self._records.get(str(user_id))

    def update(self, user_id: str, values: Mapping[str, Any]) -> ProfileRecord:
        user_id = str(user_id)
        with self._lock_for(user_id):
            current = self._records.get(user_id) or ProfileRecord(user_id=user_id)
            record = replace(current, **dict(values))
            self._records[user_id] = record
        return record


_SAFE_ID = re.compile(r"^[A-Za-z0-9_.@-]+$")


class YamlProfileStore(ProfileStore):
    """One YAML document per user under ``root``.

    File-system and YAML errors propagate to the caller unchanged.
    """

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)
        self._lock_for = _UserLocks()

    def _path(self, user_id: str) -> Path:
        user_id = str(user_id)
        if not _SAFE_ID.match(user_id) or user_id in {".", ".."}:
            raise ValueError(f"Invalid user id for file store: {user_id!r}")
        return self.root / f"{user_id}.yaml"

    def _read(self, path: Path) -> Optional[Dict[str, Any]]:
        if not path.exists():
            return None
        with path.open("r", encoding="utf-8") as f:
            return yaml.safe_load(f) or {}

    def get(self, user_id: str) -> Optional[ProfileRecord]:
        data = self._read(self._path(user_id))
        if data is None:
            return None
        return ProfileRecord.from_mapping(user_id, data)

    def update(self, user_id: str, values: Mapping[str, Any]) -> ProfileRecord:
        path = self._path(user_id)
        with self._lock_for(str(user_id)):
            current = ProfileRecord.from_mapping(user_id, self._read(path))
            record = replace(current, **dict(values))
            self.root.mkdir(parents=True, exist_ok=True)
            tmp = path.with_suffix(".yaml.tmp")
            with tmp.open("w", encoding="utf-8") as f:
                yaml.safe_dump(record.to_dict(), f, allow_unicode=True, sort_keys=False)
            os.replace(tmp, path)
        return record


def build_store(cfg: Optional[dict] = None) -> ProfileStore:
    """Build the profile store declared in config (``store.backend``: memory | yaml)."""
    cfg = cfg or load_config()
    backend = str(cfg["store"].get("backend", "memory")).lower()
    if backend == "memory":
        return InMemoryProfileStore()
    if backend == "yaml":
        ensure_dirs(cfg)
        return YamlProfileStore(cfg["store"]["path"])
    raise ValueError(f"Unknown profile store backend: {backend!r}")


# ============================================================================
# Merge logic
# ============================================================================

@dataclass
class UserStrategy:
    thresholds: StrategyThresholds
    archetype: StrategyArchetype
    archetype_label: str
    classification: Optional[StrategyResult]
    profile_exists: bool
    profile_complete: bool
    needs_onboarding: bool
    raw_profile: Optional[ProfileRecord] = None


# Ordered; first match wins. "très dynamique" contains "dynamique" and so
# resolves to Growth.
_LEGACY_LABELS: Tuple[Tuple[Tuple[str, ...], StrategyArchetype], ...] = (
    (("prudent", "défensif"), StrategyArchetype.DEFENSIVE),
    (("dynamique", "growth"), StrategyArchetype.GROWTH),
    (("très dynamique", "high"), StrategyArchetype.HIGH_VOLATILITY),
    (("neutre", "équilibré", "balanced"), StrategyArchetype.BALANCED),
)


def archetype_from_legacy_label(label: Optional[str]) -> Optional[StrategyArchetype]:
    """Map a legacy free-text risk_profile label to an archetype, or None if unrecognised."""
    if label is None:
        return None
    lower = str(label).strip().lower()
    if not lower:
        return None
    for phrases, archetype in _LEGACY_LABELS:
        if any(p in lower for p in phrases):
            return archetype
    return None


def merge_thresholds(
    defaults: StrategyThresholds,
    cash_target_pct: Optional[float] = None,
    max_position_pct: Optional[float] = None,
    max_asset_class_pct: Optional[float] = None,
) -> StrategyThresholds:
    """Apply non-null overrides field by field over the defaults."""
    return StrategyThresholds(
        cash_target_pct=defaults.cash_target_pct if cash_target_pct is None else cash_target_pct,
        max_position_pct=defaults.max_position_pct if max_position_pct is None else max_position_pct,
        max_asset_class_pct=(
            defaults.max_asset_class_pct if max_asset_class_pct is None else max_asset_class_pct
        ),
    )


def resolve_strategy(profile: Optional[ProfileRecord]) -> UserStrategy:
    """
    Merge a persisted profile with the archetype defaults.

    No profile → Balanced defaults and onboarding required. Otherwise the
    classifier suggests an archetype from the onboarding answers, a
    recognised legacy ``risk_profile`` label overrides that suggestion, and
    the user's per-field overrides are applied over the archetype defaults.
    """
    if profile is None:
        archetype = StrategyArchetype.BALANCED
        return UserStrategy(
            thresholds=get_archetype_thresholds(archetype),
            archetype=archetype,
            archetype_label=ARCHETYPE_LABELS[archetype],
            classification=None,
            profile_exists=False,
            profile_complete=False,
            needs_onboarding=True,
            raw_profile=None,
        )

    profile_complete = bool(profile.investment_horizon) and bool(profile.max_acceptable_loss)
    classification = classify_strategy(profile.signals())

    archetype = classification.archetype
    legacy = archetype_from_legacy_label(profile.risk_profile)
    if legacy is not None:
        if legacy != archetype:
            _log.debug("legacy risk_profile %r overrides classifier %s -> %s",
                       profile.risk_profile, archetype.value, legacy.value)
        archetype = legacy

    thresholds = merge_thresholds(
        get_archetype_thresholds(archetype),
        cash_target_pct=profile.cash_target_pct,
        max_position_pct=profile.max_position_pct,
        max_asset_class_pct=profile.max_asset_class_pct,
    )
    return UserStrategy(
        thresholds=thresholds,
        archetype=archetype,
        archetype_label=ARCHETYPE_LABELS[archetype],
        classification=classification,
        profile_exists=True,
        profile_complete=profile_complete,
        needs_onboarding=not profile_complete,
        raw_profile=profile,
    )


def _threshold_patch(patch: Union[StrategyThresholds, Mapping[str, Any]]) -> Dict[str, Optional[float]]:
    if isinstance(patch, StrategyThresholds):
        patch = patch.as_dict()
    unknown = sorted(set(patch) - set(THRESHOLD_FIELDS))
    if unknown:
        raise ValueError(f"Unknown threshold field(s): {', '.join(unknown)}")
    out: Dict[str, Optional[float]] = {}
    for name, value in patch.items():
        if value is None:
            # None clears the override; the archetype default applies again
            out[name] = None
            continue
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError(f"{name} must be a number, got {value!r}")
        if not 0 <= value <= 100:
            raise ValueError(f"{name} must be between 0 and 100, got {value}")
        out[name] = value
    return out


# ============================================================================
# Resolver
# ============================================================================

class StrategyResolver:
    """Read/write surface for a user's effective strategy thresholds."""

    def __init__(self, store: ProfileStore, cache: Optional[ViewCache] = None):
        self.store = store
        self.cache = cache if cache is not None else ViewCache()

    def _profile_key(self, user_id: str):
        return query_key(NS_PROFILE, user_id, NS_STRATEGY)

    def get_strategy(self, user_id: Optional[str]) -> UserStrategy:
        """Effective strategy for ``user_id``; no user behaves like no profile.

        The profile record is memoised per user for the cache staleness
        window; the merge runs on every call. A record fetched before a
        concurrent write completed is returned but not cached.
        """
        if not user_id:
            return resolve_strategy(None)
        key = self._profile_key(user_id)
        profile = self.cache.get(key)
        if profile is None:
            generation = self.cache.generation(key)
            profile = self.store.get(user_id)
            _log.debug("fetched profile for %s (exists=%s)", user_id, profile is not None)
            if profile is not None and not self.cache.set(key, profile, generation):
                _log.debug("profile for %s changed during read; not cached", user_id)
        return resolve_strategy(profile)

    def save_thresholds(
        self,
        user_id: Optional[str],
        patch: Union[StrategyThresholds, Mapping[str, Any]],
    ) -> ProfileRecord:
        """
        Persist a partial threshold patch, then mark dependent views stale.

        Raises:
            AuthenticationRequiredError: no user.
            ValueError: unknown field or out-of-range value in the patch.
            Any store error, unchanged.
        """
        if not user_id:
            raise AuthenticationRequiredError("User not authenticated")
        values: Dict[str, Any] = dict(_threshold_patch(patch))
        values["updated_at"] = datetime.now(timezone.utc).isoformat()
        record = self.store.update(user_id, values)
        _log.info("saved thresholds for %s: %s", user_id,
                  {k: v for k, v in values.items() if k in THRESHOLD_FIELDS})
        self.invalidate_related(user_id)
        return record

    def reset_to_defaults(self, user_id: Optional[str]) -> ProfileRecord:
        """Overwrite all three thresholds with the current archetype's defaults."""
        if not user_id:
            raise AuthenticationRequiredError("User not authenticated")
        current = resolve_strategy(self.store.get(user_id))
        return self.save_thresholds(user_id, get_archetype_thresholds(current.archetype))

    def invalidate_related(self, user_id: str) -> List[Tuple[str, ...]]:
        """Mark the profile, diversification, insights and decisions views stale.

        Best-effort: failures are logged as warnings and returned.
        """
        prefixes = [query_key(ns, user_id) for ns in DEPENDENT_VIEWS]
        return self.cache.broadcast(prefixes)


def build_resolver(cfg: Optional[dict] = None) -> StrategyResolver:
    """Wire a resolver from config: store backend plus view cache windows."""
    cfg = cfg or load_config()
    stale = float(cfg["strategy"]["cache_stale_seconds"])
    if env_flag("INVESTOR_CORE_DISABLE_CACHE", False):
        stale = 0.0
    cache = ViewCache(stale_seconds=stale, gc_seconds=float(cfg["strategy"]["cache_gc_seconds"]))
    return StrategyResolver(build_store(cfg), cache=cache)
