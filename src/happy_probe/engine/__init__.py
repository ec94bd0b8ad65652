"""Connection-race engine: scheduling, readiness loop, classification, ranking."""

from happy_probe.engine.context import RaceConfig, RaceContext
from happy_probe.engine.loop import ReadinessLoop
from happy_probe.engine.pacer import Pacer
from happy_probe.engine.race import RaceEngine
from happy_probe.engine.ranker import rank, rank_endpoints
from happy_probe.engine.resolver import Resolver
from happy_probe.engine.scheduler import Scheduler
from happy_probe.engine.throughput import ThroughputProber
from happy_probe.engine.updater import Updater

__all__ = [
    "Pacer",
    "RaceConfig",
    "RaceContext",
    "RaceEngine",
    "ReadinessLoop",
    "Resolver",
    "Scheduler",
    "ThroughputProber",
    "Updater",
    "rank",
    "rank_endpoints",
]
