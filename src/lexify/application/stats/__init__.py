# Application Stats Package
from .metrics_calculator import EnrichedWord, MetricsCalculator

__all__ = ["MetricsCalculator", "EnrichedWord"]
