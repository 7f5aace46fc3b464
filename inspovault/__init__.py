from .constants import APP_NAME, SCHEMA_VERSION
from .view_store import ViewStore, open_library

VERSION = "1.0.0"

__all__ = ["APP_NAME", "SCHEMA_VERSION", "VERSION", "ViewStore", "open_library"]
