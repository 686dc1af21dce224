"""Durable ban list storage."""

from ipgate.adapters.ban_store.base import AbstractBanStore, BanRecord
from ipgate.adapters.ban_store.json_file import JsonFileBanStore

__all__ = ["AbstractBanStore", "BanRecord", "JsonFileBanStore"]
