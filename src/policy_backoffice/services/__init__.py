# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Business services: rating, policy lifecycle and registry lookups."""

from .policy_numbers import PolicyNumberGenerator
from .policy_service import PolicyService
from .rating import (
    PremiumRatingEngine,
    RatingConfig,
    RatingTableStore,
    RatingValidationService,
)
from .registry import RegistryService

__all__ = [
    "PolicyNumberGenerator",
    "PolicyService",
    "PremiumRatingEngine",
    "RatingConfig",
    "RatingTableStore",
    "RatingValidationService",
    "RegistryService",
]
