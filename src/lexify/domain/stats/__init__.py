# Domain Stats Package
from .models import StageDistributionDatum, WordStats

__all__ = ["StageDistributionDatum", "WordStats"]
