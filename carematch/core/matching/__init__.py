# carematch/core/matching/__init__.py
"""
Домен подбора исполнителей.
Координатор жизненного цикла заказа и соответствие специализаций категориям.
"""

from carematch.core.matching.service import MatchingCoordinator
from carematch.core.matching.specialties import SPECIALTY_CATEGORIES, category_for_specialty

__all__ = [
    "MatchingCoordinator",
    "SPECIALTY_CATEGORIES",
    "category_for_specialty",
]
