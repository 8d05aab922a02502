# carematch/core/__init__.py
"""
Бизнес-логика: заказы, расчёт стоимости, подбор исполнителей.
"""
