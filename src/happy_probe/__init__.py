"""Happy eyeballs connection race prober."""

from happy_probe.engine import RaceConfig, RaceEngine
from happy_probe.models import Endpoint, Outcome, Sample, Target

__all__ = [
    "Endpoint",
    "Outcome",
    "RaceConfig",
    "RaceEngine",
    "Sample",
    "Target",
]

__version__ = "1.0.0"
