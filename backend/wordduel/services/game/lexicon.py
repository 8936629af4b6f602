"""Lexicon gateway: is a word a known entry, and what is it.

A failed lookup (network error, server error) raises LexiconUnavailable and
must never be reported as "word not found".
"""

import json
import logging
from dataclasses import dataclass, field
from typing import List, Optional

import requests
from sqlalchemy.exc import IntegrityError

from wordduel import db
from wordduel.models import Word
from .errors import LexiconUnavailable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LookupResult:
    found: bool
    part_of_speech: Optional[str] = None
    definitions: List[str] = field(default_factory=list)
    phonetics: Optional[str] = None
    # Every part of speech the entry is listed under
    parts_of_speech: List[str] = field(default_factory=list)

    @property
    def definition(self) -> Optional[str]:
        return self.definitions[0] if self.definitions else None


NOT_FOUND = LookupResult(found=False)


class DatabaseLexicon:
    """Looks words up in the local ``word`` table."""

    def lookup(self, word: str) -> LookupResult:
        rows = Word.query.filter_by(word=word.lower()).order_by(Word.id).all()
        if not rows:
            return NOT_FOUND
        first = rows[0]
        try:
            definitions = json.loads(first.definitions or '[]')
        except ValueError:
            definitions = []
        return LookupResult(
            found=True,
            part_of_speech=first.part_of_speech,
            definitions=definitions,
            phonetics=first.phonetics,
            parts_of_speech=[r.part_of_speech for r in rows],
        )


class HttpLexicon:
    """Looks words up in a dictionaryapi.dev-compatible REST service."""

    def __init__(self, url_template: str, timeout: float = 5.0, session: Optional[requests.Session] = None):
        self.url_template = url_template
        self.timeout = timeout
        self.session = session or requests.Session()

    def lookup(self, word: str) -> LookupResult:
        url = self.url_template.format(word=word.lower())
        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.warning("[lexicon] request failed word=%s error=%s", word, exc)
            raise LexiconUnavailable(f"Dictionary lookup failed: {exc}")
        if response.status_code == 404:
            return NOT_FOUND
        if response.status_code >= 400:
            logger.warning("[lexicon] bad status word=%s status=%s", word, response.status_code)
            raise LexiconUnavailable(f"Dictionary service returned {response.status_code}")
        try:
            entries = response.json()
        except ValueError:
            raise LexiconUnavailable("Dictionary service returned malformed data")
        return parse_entries(entries)


def parse_entries(entries) -> LookupResult:
    """Reduce a dictionaryapi.dev response to a LookupResult."""
    if not entries or not isinstance(entries, list):
        return NOT_FOUND
    parts: List[str] = []
    definitions: List[str] = []
    phonetics = None
    first_part = None
    for entry in entries:
        if phonetics is None:
            phonetics = (entry.get('phonetic') or '').strip() or None
            for ph in entry.get('phonetics') or []:
                text = (ph.get('text') or '').strip()
                if text and phonetics is None:
                    phonetics = text
        for meaning in entry.get('meanings') or []:
            part = meaning.get('partOfSpeech')
            if not part:
                continue
            if part not in parts:
                parts.append(part)
            if first_part is None:
                first_part = part
            if part == first_part:
                definitions.extend(d['definition'] for d in meaning.get('definitions') or [] if d.get('definition'))
    if first_part is None:
        return NOT_FOUND
    return LookupResult(
        found=True,
        part_of_speech=first_part,
        definitions=definitions,
        phonetics=phonetics,
        parts_of_speech=parts,
    )


class CachingLexicon:
    """Database first; on a miss ask the remote service and store what it finds."""

    def __init__(self, local: DatabaseLexicon, remote: HttpLexicon):
        self.local = local
        self.remote = remote

    def lookup(self, word: str) -> LookupResult:
        result = self.local.lookup(word)
        if result.found:
            return result
        result = self.remote.lookup(word)
        if result.found:
            self._store(word.lower(), result)
        return result

    def _store(self, word: str, result: LookupResult) -> None:
        try:
            for part in result.parts_of_speech:
                defs = result.definitions if part == result.part_of_speech else []
                db.session.add(Word(
                    word=word,
                    part_of_speech=part,
                    definitions=json.dumps(defs),
                    phonetics=result.phonetics,
                ))
            db.session.commit()
            logger.info("[lexicon] cached word=%s parts=%s", word, result.parts_of_speech)
        except IntegrityError:
            # Cache write raced with another lookup of the same word
            db.session.rollback()


def build_lexicon(config):
    backend = config.get('LEXICON_BACKEND', 'cached')
    if backend == 'database':
        return DatabaseLexicon()
    remote = HttpLexicon(
        config.get('LEXICON_API_URL'),
        timeout=float(config.get('LEXICON_TIMEOUT_SEC', 5)),
    )
    if backend == 'http':
        return remote
    if backend == 'cached':
        return CachingLexicon(DatabaseLexicon(), remote)
    raise ValueError(f"Unknown LEXICON_BACKEND {backend!r}")
