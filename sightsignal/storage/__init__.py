"""sightsignal.storage — SQLite persistence for the catalog."""

from sightsignal.storage.database import Database

__all__ = ["Database"]
