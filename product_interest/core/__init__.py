"""
Product Interest Core
=====================

Config, storage and logging shared by the Product Interest modules.
"""

from .config import Config, get_setting
from .database import Database
from .logging_service import LoggingService, db_log

__all__ = ['Config', 'get_setting', 'Database', 'LoggingService', 'db_log']
