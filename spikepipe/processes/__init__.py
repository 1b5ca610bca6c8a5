"""
Concrete pipeline stages.

Importing this package registers every stage in ``spikepipe.registry.PROCESSES``
under its class name.
"""

from .scaling import MaxScaling, FeatureScaling
from .pooling import SumPooling, TemporalPooling
from .filters import DefaultOnOffFilter, SeparateSign, LatencyCoding
from .threshold import AdaptiveThreshold


__all__ = [
    # Scaling
    "MaxScaling",
    "FeatureScaling",
    # Pooling
    "SumPooling",
    "TemporalPooling",
    # Filters
    "DefaultOnOffFilter",
    "SeparateSign",
    "LatencyCoding",
    # Homeostasis
    "AdaptiveThreshold",
]
