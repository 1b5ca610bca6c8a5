"""
Concrete analyses, registered in ``spikepipe.registry.ANALYSES``.
"""

from .activity import Activity, ActivityStats
from .svm import Svm


__all__ = [
    "Activity",
    "ActivityStats",
    "Svm",
]
