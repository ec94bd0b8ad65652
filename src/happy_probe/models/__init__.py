"""Public models for the probe engine and API."""

from happy_probe.models.endpoint import Endpoint, EndpointState, Outcome, Sample
from happy_probe.models.requests import ProbeRequest
from happy_probe.models.responses import ApiResponse
from happy_probe.models.schemas import EndpointReport, RunReport, SampleReport, TargetReport
from happy_probe.models.target import Target

__all__ = [
    "ApiResponse",
    "Endpoint",
    "EndpointReport",
    "EndpointState",
    "Outcome",
    "ProbeRequest",
    "RunReport",
    "Sample",
    "SampleReport",
    "Target",
    "TargetReport",
]
