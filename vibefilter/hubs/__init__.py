# Path: vibefilter/hubs/__init__.py
# Purpose: Package initializer for hub detection.
# Layer: vibefilter/hubs.
# Details: Exposes the detector, its accumulator, and the probe builder.

from .detector import HubAccumulator, HubDetector, build_probe_queries

__all__ = ["HubAccumulator", "HubDetector", "build_probe_queries"]
