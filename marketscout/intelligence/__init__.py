"""
Extraction, scoring and performance tracking for researched companies.
"""

from .performance import PerformanceTracker
from .scoring import ScoringEngine, ScoringWeights

__all__ = ["PerformanceTracker", "ScoringEngine", "ScoringWeights"]
