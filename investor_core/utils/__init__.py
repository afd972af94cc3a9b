from __future__ import annotations
import logging
import os


# Entry points (scripts, services) call this once; library modules only use
# logging.getLogger(__name__).
def get_logger(name: str = "investor_core"):
    lvl = os.getenv("LOG_LEVEL", "INFO").upper()
    logger = logging.getLogger(name)
    if not logging.getLogger().handlers:
        logging.basicConfig(level=getattr(logging, lvl, logging.INFO),
                            format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    return logger


from .env_tools import load_config, load_env_once, env_flag  # noqa: E402

__all__ = ["get_logger", "load_config", "load_env_once", "env_flag"]
