# carematch/shared/__init__.py
"""
Общие схемы, разделяемые между сервисами.
"""
