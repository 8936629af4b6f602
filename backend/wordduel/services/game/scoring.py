"""Word scoring.

Pure functions: no database, no app context. A word scores for its length,
for how far it moved away from the previous word (Levenshtein distance,
normalised by the longer word) and for the rarity of its letters.
"""

import math
from dataclasses import dataclass, asdict
from typing import Dict, Mapping, Optional

# English letter frequency on a 0-12 scale (E most common). Lower is rarer.
LETTER_WEIGHTS: Dict[str, int] = {
    'E': 12, 'T': 9, 'A': 8, 'O': 8, 'I': 7, 'N': 7, 'S': 6, 'H': 6, 'R': 6,
    'D': 4, 'L': 4, 'C': 3, 'U': 3, 'M': 2, 'W': 2, 'F': 2, 'G': 2, 'Y': 2,
    'P': 2, 'B': 1, 'V': 1, 'K': 1, 'J': 0, 'X': 0, 'Q': 0, 'Z': 0,
}
UNKNOWN_LETTER_WEIGHT = 5
MAX_LETTER_WEIGHT = 12


@dataclass(frozen=True)
class ScoringWeights:
    length_exponent: float = 2.0
    length_multiplier: float = 10.0
    leven_exponent: float = 2.0
    leven_base: float = 50.0
    rarity_exponent: float = 2.0
    rarity_multiplier: float = 0.5

    @classmethod
    def from_config(cls, config: Mapping) -> 'ScoringWeights':
        defaults = cls()
        return cls(
            length_exponent=float(config.get('SCORING_LENGTH_EXPONENT', defaults.length_exponent)),
            length_multiplier=float(config.get('SCORING_LENGTH_MULTIPLIER', defaults.length_multiplier)),
            leven_exponent=float(config.get('SCORING_LEVEN_EXPONENT', defaults.leven_exponent)),
            leven_base=float(config.get('SCORING_LEVEN_BASE', defaults.leven_base)),
            rarity_exponent=float(config.get('SCORING_RARITY_EXPONENT', defaults.rarity_exponent)),
            rarity_multiplier=float(config.get('SCORING_RARITY_MULTIPLIER', defaults.rarity_multiplier)),
        )


DEFAULT_WEIGHTS = ScoringWeights()


@dataclass(frozen=True)
class ScoreBreakdown:
    total: int
    length_score: int
    leven_bonus: int
    rarity_bonus: int

    def to_dict(self) -> dict:
        return asdict(self)


def round_half_up(value: float) -> int:
    # round() is banker's rounding; scores round .5 upwards
    return int(math.floor(value + 0.5))


def levenshtein(a: str, b: str) -> int:
    """Edit distance with unit insert/delete/substitute costs."""
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            if ca == cb:
                current.append(previous[j - 1])
            else:
                current.append(min(previous[j - 1], current[j - 1], previous[j]) + 1)
        previous = current
    return previous[-1]


def length_score(word: str, weights: ScoringWeights = DEFAULT_WEIGHTS) -> int:
    if not word:
        return 0
    return round_half_up(len(word) ** weights.length_exponent * weights.length_multiplier)


def leven_bonus(word: str, previous: Optional[str], weights: ScoringWeights = DEFAULT_WEIGHTS) -> int:
    if not previous:
        return 0
    longest = max(len(word), len(previous))
    if longest == 0:
        return 0
    normalized = levenshtein(word, previous) / longest
    return round_half_up(math.exp(normalized * weights.leven_exponent) * weights.leven_base)


def rarity_bonus(word: str, weights: ScoringWeights = DEFAULT_WEIGHTS) -> int:
    total = 0.0
    for letter in word.upper():
        weight = LETTER_WEIGHTS.get(letter, UNKNOWN_LETTER_WEIGHT)
        total += (MAX_LETTER_WEIGHT - weight) ** weights.rarity_exponent
    return round_half_up(total * weights.rarity_multiplier)


def score_word(current: str, previous: Optional[str] = None,
               weights: ScoringWeights = DEFAULT_WEIGHTS) -> ScoreBreakdown:
    """Score ``current`` as played after ``previous`` (None for an opening word)."""
    word = (current or '').lower()
    prev = previous.lower() if previous else None
    ls = length_score(word, weights)
    lb = leven_bonus(word, prev, weights)
    rb = rarity_bonus(word, weights)
    return ScoreBreakdown(total=ls + lb + rb, length_score=ls, leven_bonus=lb, rarity_bonus=rb)
