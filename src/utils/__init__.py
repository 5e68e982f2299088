"""
Utility helpers: structured logger and enum/model serialization
"""

from .logger import get_logger, get_category_logger, configure_logger
from .serialization import Serializer

__all__ = [
    'get_logger',
    'get_category_logger',
    'configure_logger',
    'Serializer',
]
