"""Matching engine and scorers."""

from matching.cache import PrimaryResultCache
from matching.engine import MatchingEngine, MatchReport
from matching.fallback import RuleBasedScorer
from matching.llm import LLMScorer
from matching.scorer import Scorer, rank

__all__ = [
    "LLMScorer",
    "MatchReport",
    "MatchingEngine",
    "PrimaryResultCache",
    "RuleBasedScorer",
    "Scorer",
    "rank",
]
