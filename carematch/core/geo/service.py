# carematch/core/geo/service.py
"""
Расчёт расстояний по формуле гаверсинусов.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

EARTH_RADIUS_KM = 6371.0


@dataclass(frozen=True)
class Coordinates:
    """Географическая точка."""
    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        if not -90.0 <= self.latitude <= 90.0:
            raise ValueError(f"Широта вне диапазона: {self.latitude}")
        if not -180.0 <= self.longitude <= 180.0:
            raise ValueError(f"Долгота вне диапазона: {self.longitude}")

    def distance_to(self, other: Coordinates) -> float:
        """Расстояние до другой точки в км."""
        return distance_km(self.latitude, self.longitude, other.latitude, other.longitude)


def distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Вычисляет расстояние между двумя точками (в км) по формуле Haversine.

    Симметрична: distance_km(A, B) == distance_km(B, A).
    """
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)

    a = (math.sin(dlat / 2) ** 2 +
         math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) *
         math.sin(dlon / 2) ** 2)

    # min() защищает asin от погрешности округления при a чуть больше 1
    c = 2 * math.asin(min(1.0, math.sqrt(a)))

    return EARTH_RADIUS_KM * c
