# carematch/core/matching/specialties.py
"""
Соответствие специализаций исполнителей категориям услуг.
"""

from __future__ import annotations

from carematch.common.constants import ProviderSpecialty, ServiceCategory
from carematch.core.exceptions import ValidationError

SPECIALTY_CATEGORIES: dict[ProviderSpecialty, ServiceCategory] = {
    ProviderSpecialty.NURSE: ServiceCategory.NURSING,
    ProviderSpecialty.PHYSIOTHERAPIST: ServiceCategory.PHYSIOTHERAPY,
    ProviderSpecialty.AMBULANCE_OPERATOR: ServiceCategory.AMBULANCE,
    ProviderSpecialty.BIOMEDICAL_ENGINEER: ServiceCategory.BIOMEDICAL,
}


def category_for_specialty(specialty: ProviderSpecialty | str) -> ServiceCategory:
    """
    Возвращает категорию услуг для специализации.

    Raises:
        ValidationError: Неизвестная специализация
    """
    try:
        return SPECIALTY_CATEGORIES[ProviderSpecialty(specialty)]
    except (ValueError, KeyError):
        raise ValidationError(f"Неизвестная специализация: {specialty}") from None
