"""Engine configuration, loaded from YAML.

Example ``glove_engine.yml``:

    port: 3001
    max_delta_time: 1.0
    thresholds:
      finger_closed: 0.7
      finger_open: 0.3
    pinch:
      roll_range: 0.8
    smoothing:
      enabled: true
      confirm_frames: 3
"""

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from glove_engine.classifier import Thresholds
from glove_engine.movement import PinchProxyConfig

logger = logging.getLogger("glove_engine.config")

CONFIG_ENV_VAR = "GLOVE_ENGINE_CONFIG"


@dataclass
class SmoothingConfig:
    enabled: bool = False
    confirm_frames: int = 3


@dataclass
class EngineConfig:
    host: str = "0.0.0.0"
    port: int = 3001
    log_level: str = "info"
    max_delta_time: float = 1.0
    subscriber_queue_size: int = 256
    cors_origins: list[str] = field(default_factory=lambda: ["http://localhost:3000"])
    thresholds: Thresholds = field(default_factory=Thresholds)
    pinch: PinchProxyConfig = field(default_factory=PinchProxyConfig)
    smoothing: SmoothingConfig = field(default_factory=SmoothingConfig)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["thresholds"] = self.thresholds.to_dict()
        data["pinch"] = self.pinch.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: dict) -> EngineConfig:
        """Build a config from a mapping; unknown keys are ignored."""
        config = cls()
        for key in ("host", "port", "log_level", "max_delta_time", "subscriber_queue_size", "cors_origins"):
            if key in data:
                setattr(config, key, data[key])
        if data.get("thresholds"):
            config.thresholds = Thresholds.from_dict(data["thresholds"])
        if data.get("pinch"):
            config.pinch = PinchProxyConfig.from_dict(data["pinch"])
        smoothing = data.get("smoothing") or {}
        config.smoothing = SmoothingConfig(
            enabled=bool(smoothing.get("enabled", False)),
            confirm_frames=int(smoothing.get("confirm_frames", 3)),
        )
        return config


_config: Optional[EngineConfig] = None


def load_config(path: Optional[str | Path] = None) -> EngineConfig:
    """Load configuration from ``path`` or ``$GLOVE_ENGINE_CONFIG``.

    Falls back to defaults when no file is given or the file does not exist.
    Invalid threshold values raise ``ValueError``.
    """
    path = path or os.environ.get(CONFIG_ENV_VAR)
    if not path:
        return EngineConfig()

    path = Path(path)
    if not path.exists():
        logger.warning("Config file %s not found, using defaults", path)
        return EngineConfig()

    with open(path) as f:
        data = yaml.safe_load(f) or {}
    logger.info("Loaded configuration from %s", path)
    return EngineConfig.from_dict(data)


def save_config(config: EngineConfig, path: str | Path):
    with open(path, "w") as f:
        yaml.dump(config.to_dict(), f, default_flow_style=False, sort_keys=False)


def get_config() -> EngineConfig:
    global _config
    if _config is None:
        _config = load_config()
    return _config


def set_config(config: EngineConfig):
    global _config
    _config = config
