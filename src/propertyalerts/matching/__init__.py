"""Matching engine for saved-search alerts."""

from .engine import MatchingEngine, matches_filter

__all__ = ["MatchingEngine", "matches_filter"]
