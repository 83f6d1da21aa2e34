"""
Adapters layer - Booking store integrations (Supabase, in-memory mock).
"""

from .memory_store import InMemoryBookingStore
from .supabase_store import SupabaseBookingStore

__all__ = ["InMemoryBookingStore", "SupabaseBookingStore"]
