"""MarketScout: multi-provider company research."""

__version__ = "1.0.0"
