"""Per-session word requirements.

Each requirement is a WordRule: a RuleKind tag plus the value that kind needs.
Rules are frozen onto a session when it is created so a config change never
alters a game in progress.
"""

import enum
import json
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Tuple, Union

from .lexicon import LookupResult


class RuleKind(enum.Enum):
    MIN_LENGTH = 'min_length'
    PART_OF_SPEECH = 'part_of_speech'
    INCLUDES = 'includes'
    STARTS_WITH = 'starts_with'
    ENDS_WITH = 'ends_with'


RuleValue = Union[int, str, Tuple[str, ...]]


@dataclass(frozen=True)
class WordRule:
    kind: RuleKind
    value: RuleValue

    def to_dict(self) -> dict:
        value = list(self.value) if isinstance(self.value, tuple) else self.value
        return {'kind': self.kind.value, 'value': value}

    @classmethod
    def from_dict(cls, data: dict) -> 'WordRule':
        return make_rule(RuleKind(data['kind']), data['value'])


def make_rule(kind: RuleKind, raw) -> WordRule:
    if kind is RuleKind.MIN_LENGTH:
        return WordRule(kind, int(raw))
    if kind is RuleKind.PART_OF_SPEECH:
        if isinstance(raw, str):
            raw = raw.split(',')
        return WordRule(kind, tuple(p.strip().lower() for p in raw if p.strip()))
    return WordRule(kind, str(raw).strip().lower())


def parse_rules(text: str) -> List[WordRule]:
    """Parse ``"min_length:5;part_of_speech:noun,verb"`` into rules."""
    rules = []
    for chunk in (text or '').split(';'):
        chunk = chunk.strip()
        if not chunk:
            continue
        name, _, raw = chunk.partition(':')
        rules.append(make_rule(RuleKind(name.strip().lower()), raw))
    return rules


def dump_rules(rules: Iterable[WordRule]) -> str:
    return json.dumps([r.to_dict() for r in rules])


def load_rules(payload: Optional[str]) -> List[WordRule]:
    if not payload:
        return []
    return [WordRule.from_dict(d) for d in json.loads(payload)]


def _check_min_length(value, word: str, lookup: LookupResult) -> Optional[str]:
    if len(word) < value:
        return f'must be at least {value} letters long'
    return None


def _check_part_of_speech(value, word: str, lookup: LookupResult) -> Optional[str]:
    if not any(p in value for p in lookup.parts_of_speech):
        return f'must be a {", ".join(value)}'
    return None


def _check_includes(value, word: str, lookup: LookupResult) -> Optional[str]:
    return None if value in word else f'must include "{value}"'


def _check_starts_with(value, word: str, lookup: LookupResult) -> Optional[str]:
    return None if word.startswith(value) else f'must start with "{value}"'


def _check_ends_with(value, word: str, lookup: LookupResult) -> Optional[str]:
    return None if word.endswith(value) else f'must end with "{value}"'


_CHECKS: Dict[RuleKind, Callable[[RuleValue, str, LookupResult], Optional[str]]] = {
    RuleKind.MIN_LENGTH: _check_min_length,
    RuleKind.PART_OF_SPEECH: _check_part_of_speech,
    RuleKind.INCLUDES: _check_includes,
    RuleKind.STARTS_WITH: _check_starts_with,
    RuleKind.ENDS_WITH: _check_ends_with,
}


def check_rule(rule: WordRule, word: str, lookup: LookupResult) -> Optional[str]:
    """Return why ``word`` breaks ``rule``, or None when it satisfies it."""
    return _CHECKS[rule.kind](rule.value, word.lower(), lookup)


def first_violation(rules: Iterable[WordRule], word: str, lookup: LookupResult) -> Optional[str]:
    for rule in rules:
        reason = check_rule(rule, word, lookup)
        if reason:
            return reason
    return None


def parse_banned_letters(text: str) -> List[str]:
    return sorted({c.upper() for c in (text or '') if c.isalpha()})


def banned_letters_in(word: str, banned: Iterable[str]) -> List[str]:
    upper = word.upper()
    return [letter for letter in banned if letter in upper]
