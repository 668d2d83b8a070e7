"""Input/output handlers for timbang."""

from .config_manager import ConfigManager
from .data_handler import DataHandler
from .field_store import FieldStore, nearest_time_index

__all__ = ["ConfigManager", "DataHandler", "FieldStore", "nearest_time_index"]
