"""Utilities for loading YAML configuration files."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Mapping

import yaml

from .windows import TimeWindow

UNMATCHED_ROW_POLICIES = ("skip", "all_trials")


def load_config(path: str | Path) -> Dict[str, Any]:
    """Load a YAML configuration file.

    Parameters
    ----------
    path:
        Path to the YAML file.

    Returns
    -------
    Dict[str, Any]
        Parsed configuration dictionary.
    """

    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with config_path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


@dataclass
class AnalysisConfig:
    """Parameters shared by the session analyses.

    Window defaults follow the response intervals used for the CS/US ratio,
    peak-time histograms and peak normalisation respectively.
    """

    cs_window: TimeWindow = field(default_factory=lambda: TimeWindow(0.05, 0.6))
    us_window: TimeWindow = field(default_factory=lambda: TimeWindow(0.9, 1.5))
    cs_peak_window: TimeWindow = field(default_factory=lambda: TimeWindow(0.45, 0.6))
    us_peak_window: TimeWindow = field(default_factory=lambda: TimeWindow(1.0, 1.6))
    norm_window: TimeWindow = field(default_factory=lambda: TimeWindow(0.45, 0.6))
    smooth_window: int = 15
    default_threshold: float = 0.1
    allow_default_threshold: bool = True
    alpha: float = 0.05
    min_trials_split: int = 4
    min_trials_contrast: int = 3
    unmatched_rows: str = "skip"
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        for f in fields(self):
            if f.name.endswith("_window") and f.name != "smooth_window":
                setattr(self, f.name, TimeWindow.from_value(getattr(self, f.name)))
        self.smooth_window = int(self.smooth_window)
        if self.smooth_window < 1:
            raise ValueError(f"smooth_window must be >= 1, got {self.smooth_window}")
        if self.unmatched_rows not in UNMATCHED_ROW_POLICIES:
            raise ValueError(
                f"unmatched_rows must be one of {UNMATCHED_ROW_POLICIES}, got '{self.unmatched_rows}'"
            )
        if not 0.0 < self.alpha < 1.0:
            raise ValueError(f"alpha must lie in (0, 1), got {self.alpha}")


def parse_config(config_like: Mapping[str, Any] | None) -> AnalysisConfig:
    """Build an :class:`AnalysisConfig`, ignoring keys it does not define."""

    field_names = {f.name for f in fields(AnalysisConfig)}
    filtered = {k: v for k, v in (config_like or {}).items() if k in field_names}
    return AnalysisConfig(**filtered)


def load_analysis_config(path: str | Path) -> AnalysisConfig:
    config_dict = load_config(path)
    return parse_config(config_dict.get("analysis", config_dict))


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO))


__all__ = [
    "AnalysisConfig",
    "UNMATCHED_ROW_POLICIES",
    "configure_logging",
    "load_analysis_config",
    "load_config",
    "parse_config",
]
