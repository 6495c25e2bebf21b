"""
Matching Package

Approximate string matching and record linkage across sources.
"""
from src.parcelflow.matching.deduplication import PropertyDeduplicator
from src.parcelflow.matching.fuzzy import FuzzyMatcher, FuzzyMatchResult, levenshtein_distance

__all__ = ["PropertyDeduplicator", "FuzzyMatcher", "FuzzyMatchResult", "levenshtein_distance"]
