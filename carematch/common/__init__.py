# carematch/common/__init__.py
"""
Общие утилиты, константы и логгер.
"""

from carematch.common.constants import TypeMsg
from carematch.common.localization import get_text, load_lang_dict
from carematch.common.logger import get_logger, log_debug, log_error, log_info, log_warning

__all__ = [
    "get_logger",
    "log_info",
    "log_error",
    "log_warning",
    "log_debug",
    "TypeMsg",
    "get_text",
    "load_lang_dict",
]
