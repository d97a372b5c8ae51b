"""
agents package

Intentionally avoid importing submodules at package import time to prevent
side effects (e.g., LLM client construction) during test collection. Import
specific modules directly, e.g.:

    from travel_agent.agents.itinerary_generator import ItineraryGenerator
"""

__all__: list[str] = []
