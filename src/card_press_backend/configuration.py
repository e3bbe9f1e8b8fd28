"""
Configuration loading for the Card Press backend.

Defaults live in ``config/config.yaml`` next to this module. Secrets and
deployment-specific values are pulled from the environment through
``${oc.env:...}`` interpolations, after a local ``.env`` file has been loaded.
Callers may merge a dictionary of overrides on top of the defaults; unknown
keys are rejected because the merged config is kept in struct mode.
"""
from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from omegaconf import DictConfig, OmegaConf

_HERE = Path(__file__).resolve()
_CANDIDATE_CONFIG_PATHS = [_HERE.parent / "config/config.yaml"] + [parent / "config/config.yaml" for parent in _HERE.parents[1:4]]

CONFIG_PATH = next((path for path in _CANDIDATE_CONFIG_PATHS if path.exists()), None)
if CONFIG_PATH is None:  # pragma: no cover - fail fast in misconfigured environments
    raise FileNotFoundError("Default config.yaml could not be located; ensure the package was installed with its data files.")

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


@lru_cache(maxsize=1)
def _load_default_config() -> DictConfig:
    if not CONFIG_PATH.exists():
        raise FileNotFoundError(f"Default config not found at {CONFIG_PATH}")
    return OmegaConf.load(CONFIG_PATH)


def load_config(overrides: Optional[Dict[str, Any]] = None) -> DictConfig:
    """
    Build the runtime configuration.

    Args:
        overrides: Nested values merged on top of the packaged defaults

    Returns:
        A resolved, read-only DictConfig

    Raises:
        omegaconf.errors.ConfigKeyError: If an override names an unknown key
    """
    load_dotenv()

    base_container = OmegaConf.to_container(_load_default_config(), resolve=False)
    base = OmegaConf.create(base_container)
    OmegaConf.set_struct(base, True)

    merged = DictConfig(OmegaConf.merge(base, OmegaConf.create(overrides or {})))
    OmegaConf.resolve(merged)
    OmegaConf.set_readonly(merged, True)
    return merged


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, str(level).upper(), logging.INFO), format=LOG_FORMAT)
