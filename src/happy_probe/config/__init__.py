"""Configuration module: settings and target files."""

from happy_probe.config.settings import ProbeSettings
from happy_probe.config.targets import TargetSpec, load_targets

__all__ = [
    "ProbeSettings",
    "TargetSpec",
    "load_targets",
]
