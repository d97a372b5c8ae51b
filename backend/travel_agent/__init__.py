"""
AI travel itinerary service: streamed generation, persistence and inline editing.
"""

__version__ = "1.0.0"
