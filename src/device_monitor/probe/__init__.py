"""
Probe methods for device reachability.

Each probe method implements the same interface:
- async probe(device) -> ProbeVerdict

Methods:
- Simulated: random latency and random outcome (demo / development)
"""

from .base import ProbeMethod
from .simulated import SimulatedProbe

__all__ = [
    "ProbeMethod",
    "SimulatedProbe",
]
