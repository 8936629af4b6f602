"""Game domain services: scoring, lexicon, word rules, the session state
machine, clock workers and rating updates.

HTTP routes and socket handlers import from here, keeping transport concerns
separated from core game mechanics.
"""

from .engine import SessionEngine, MoveResult, get_engine, now_ms
from .rating import apply_rating_update, elo_delta, k_factor
from .scoring import ScoringWeights, ScoreBreakdown, levenshtein, score_word

__all__ = [
    'SessionEngine',
    'MoveResult',
    'get_engine',
    'now_ms',
    'apply_rating_update',
    'elo_delta',
    'k_factor',
    'ScoringWeights',
    'ScoreBreakdown',
    'levenshtein',
    'score_word',
]
