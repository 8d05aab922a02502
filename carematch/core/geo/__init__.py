# carematch/core/geo/__init__.py
"""
Гео-утилиты: расстояние между точками.
"""

from carematch.core.geo.service import Coordinates, distance_km

__all__ = ["Coordinates", "distance_km"]
