"""Premium rating: temporal rating tables, the rating engine and diagnostics."""

from .rate_tables import RatingTableStore
from .rating_engine import NEUTRAL_MULTIPLIER, PremiumRatingEngine, RatingConfig
from .validation import RatingValidationService

__all__ = [
    "NEUTRAL_MULTIPLIER",
    "PremiumRatingEngine",
    "RatingConfig",
    "RatingTableStore",
    "RatingValidationService",
]
