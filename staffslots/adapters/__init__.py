"""
Adapters layer - External integrations (Supabase data, auth and realtime).
"""

from .memory_transport import InMemoryChannelTransport
from .mock_bookings_client import MockBookingsClient
from .supabase_authenticator import SupabaseAuthenticator
from .supabase_client import SupabaseClient

__all__ = [
    "InMemoryChannelTransport",
    "MockBookingsClient",
    "SupabaseAuthenticator",
    "SupabaseClient",
]
