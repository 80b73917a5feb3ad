"""
ShopAdmin Core
==============

Configuration, logging and error types shared by the ShopAdmin modules.
"""

from .config import Config, get_config_value
from .database import Database
from .logging_service import LoggingService

__all__ = ['Config', 'get_config_value', 'Database', 'LoggingService']
