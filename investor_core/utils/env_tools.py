from dotenv import dotenv_values
import os
from pathlib import Path

import yaml

DEFAULT_CONFIG_PATH = Path("config") / "config.yaml"


def load_env_once(dotenv_path: str | None = None):
    """
    Load .env without relying on find_dotenv() to avoid assertion errors in -c / REPL contexts.
    Call this early (e.g., in a handler or script entrypoint).
    """
    dp = dotenv_path or ".env"
    if not os.environ.get("_ENV_LOADED", ""):
        if Path(dp).exists():
            env = dotenv_values(dp)
            for k, v in env.items():
                if v is not None and k not in os.environ:
                    os.environ[k] = str(v)
        os.environ["_ENV_LOADED"] = "1"


def _resolve_config_path(config_path: str | Path | None) -> Path:
    if config_path:
        return Path(config_path)
    load_env_once()
    override = os.getenv("INVESTOR_CORE_CONFIG", "").strip()
    if override:
        return Path(override)
    # Prefer the repo config next to the package, then the working directory
    here = Path(__file__).resolve().parents[2] / DEFAULT_CONFIG_PATH
    return here if here.exists() else DEFAULT_CONFIG_PATH


def load_config(config_path: str | Path | None = None) -> dict:
    """Load YAML config safely, back-filling defaults for missing keys.

    A missing file yields the defaults; a present but malformed file raises
    ``yaml.YAMLError``.
    """
    p = _resolve_config_path(config_path)
    cfg: dict = {}
    if p.exists():
        with p.open("r", encoding="utf-8") as f:
            cfg = yaml.safe_load(f) or {}
    # backfill minimal keys if cfg is partial
    cfg.setdefault("strategy", {})
    cfg["strategy"].setdefault("cache_stale_seconds", 300)
    cfg["strategy"].setdefault("cache_gc_seconds", 1800)
    cfg.setdefault("store", {})
    cfg["store"].setdefault("backend", "memory")
    cfg["store"].setdefault("path", "data/profiles")
    return cfg


def ensure_dirs(cfg: dict) -> None:
    """Create the profile store directory declared in config if it doesn't exist."""
    if cfg.get("store", {}).get("backend") != "yaml":
        return
    d = Path(cfg["store"].get("path", "")).expanduser()
    if str(d):
        d.mkdir(parents=True, exist_ok=True)


def _truthy(value, default: bool = False) -> bool:
    if value is None:
        return bool(default)
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def env_flag(name: str, default: bool | str = False) -> bool:
    """Return boolean interpretation of an environment flag (loads .env once)."""
    load_env_once()
    val = os.getenv(name)
    if val is None:
        return _truthy(default, default=False)
    return _truthy(val, default=False)

