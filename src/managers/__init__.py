"""
Managers for configuration and button monitoring
"""

from .button_manager import ButtonManager
from .config_manager import ConfigManager

__all__ = ['ButtonManager', 'ConfigManager']
