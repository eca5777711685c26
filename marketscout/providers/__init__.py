"""
Research providers and their registry.

Each provider wraps the generative-text gateway behind a common discovery
contract; the registry decides which of them are enabled.
"""

from .base import ResearchProvider
from .registry import LookupStatus, ProviderLookup, ProviderRegistry

__all__ = ["ResearchProvider", "ProviderRegistry", "ProviderLookup", "LookupStatus"]
