"""
staffslots - staff availability and bookable time slots for service shops.
"""

__version__ = "0.1.0"
