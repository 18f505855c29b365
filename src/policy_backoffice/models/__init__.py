"""Domain models for the policy back-office."""

from .base import BaseModelConfig, IdentifiableModel, TimestampedModel, to_cents
from .policy import (
    ACVariant,
    CategoryDetails,
    Policy,
    PolicyCreate,
    PolicyStatus,
    PolicyUpdate,
)
from .rating import (
    ClientSummary,
    InsuranceCategory,
    PremiumBreakdown,
    RatingFactor,
    RatingValidationResult,
    VehicleAttributes,
)

__all__ = [
    "ACVariant",
    "BaseModelConfig",
    "CategoryDetails",
    "ClientSummary",
    "IdentifiableModel",
    "InsuranceCategory",
    "Policy",
    "PolicyCreate",
    "PolicyStatus",
    "PolicyUpdate",
    "PremiumBreakdown",
    "RatingFactor",
    "RatingValidationResult",
    "TimestampedModel",
    "VehicleAttributes",
    "to_cents",
]
