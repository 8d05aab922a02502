# carematch/__init__.py
"""
CareMatch: подбор исполнителей и расчёт стоимости медицинских услуг на дому.
"""

__version__ = "1.0.0"
