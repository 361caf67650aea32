"""price_table.state — Two-generation state store, JSON cache, and cache validation."""

from price_table.state.cache import StateCache
from price_table.state.store import StateStore
from price_table.state.validator import consolidate, validate, validate_all

__all__ = ["StateCache", "StateStore", "consolidate", "validate", "validate_all"]
