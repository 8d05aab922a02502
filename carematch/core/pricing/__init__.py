# carematch/core/pricing/__init__.py
"""
Домен тарификации.
Тарифы, ценовые пояса и движок расчёта стоимости.
"""

from carematch.core.pricing.engine import PricingEngine
from carematch.core.pricing.models import (
    AmbulanceAddOns,
    NursingAddOns,
    PhysiotherapyAddOns,
    PriceBreakdown,
    PricingLocation,
    PricingRequest,
    Quote,
    QuoteModifiers,
    ServiceRate,
)
from carematch.core.pricing.repository import RateRepository
from carematch.core.pricing.service import PricingService
from carematch.core.pricing.tiers import CityTierClassifier

__all__ = [
    "PricingEngine",
    "PricingService",
    "RateRepository",
    "CityTierClassifier",
    "ServiceRate",
    "PricingLocation",
    "PricingRequest",
    "QuoteModifiers",
    "NursingAddOns",
    "PhysiotherapyAddOns",
    "AmbulanceAddOns",
    "PriceBreakdown",
    "Quote",
]
