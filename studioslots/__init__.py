"""
studioslots - availability and booking-slot engine for recording studios.
"""

__version__ = "0.1.0"
