"""Local projection of a session built from the server event stream.

The authoritative catch-up (snapshot plus ordered moves) replaces everything.
Between catch-ups, ``state_changed`` and ``move_inserted`` events are applied
at most once: stale snapshots and already-seen moves are dropped, and moves
arriving ahead of a gap are held until the gap closes.
"""

from typing import Any, Dict, List, Optional


def _freshness(snapshot: Dict[str, Any]):
    return (snapshot.get('last_move_at') or 0, snapshot.get('version') or 0)


class SessionReadModel:
    def __init__(self, player_id: Optional[int] = None):
        self.player_id = player_id
        self.session: Optional[Dict[str, Any]] = None
        self.moves: List[Dict[str, Any]] = []
        self.needs_resync = False
        self._words = set()
        self._pending: Dict[int, Dict[str, Any]] = {}

    # ---- event application ----

    def rebuild(self, payload: Dict[str, Any]) -> None:
        """Replace local state with an authoritative catch-up payload."""
        self.session = payload.get('session')
        self.moves = sorted(payload.get('moves') or [], key=lambda m: m['seq'])
        self._words = {m['word'] for m in self.moves}
        self._pending = {}
        self.needs_resync = False

    def apply_state_changed(self, snapshot: Dict[str, Any]) -> bool:
        """Adopt ``snapshot`` unless it is not newer than the one held. True if adopted."""
        if snapshot is None:
            return False
        if self.session is not None and _freshness(snapshot) <= _freshness(self.session):
            return False
        self.session = snapshot
        return True

    def apply_move_inserted(self, move: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Apply one move event; return the moves that became visible because of it."""
        seq = move.get('seq')
        if seq is None or move.get('word') in self._words or seq <= self.last_seq:
            return []
        if seq != self.last_seq + 1:
            self._pending[seq] = move
            self.needs_resync = True
            return []

        applied = []
        while move is not None:
            if move['word'] not in self._words:
                self.moves.append(move)
                self._words.add(move['word'])
                applied.append(move)
            move = self._pending.pop(self.last_seq + 1, None)
        self.needs_resync = bool(self._pending)
        return applied

    # ---- derived views ----

    @property
    def last_seq(self) -> int:
        return self.moves[-1]['seq'] if self.moves else 0

    @property
    def status(self) -> Optional[str]:
        return self.session.get('status') if self.session else None

    @property
    def is_finished(self) -> bool:
        return self.status == 'finished'

    @property
    def current_turn(self) -> Optional[int]:
        return self.session.get('current_turn') if self.session else None

    @property
    def players(self) -> List[Dict[str, Any]]:
        return (self.session or {}).get('players') or []

    def seat_of(self, player_id) -> Optional[int]:
        for player in self.players:
            if player.get('id') == player_id:
                return player.get('seat')
        return None

    def is_my_turn(self) -> bool:
        if self.player_id is None or self.status != 'active':
            return False
        seat = self.seat_of(self.player_id)
        return seat is not None and seat == self.current_turn

    def scores(self) -> Dict[Any, int]:
        """Session score per player id, summed from valid moves seen so far."""
        totals = {p.get('id'): 0 for p in self.players}
        for move in self.moves:
            if move.get('is_valid') and move.get('score') is not None:
                totals[move['player_id']] = totals.get(move['player_id'], 0) + move['score']
        return totals

    @property
    def winner_id(self):
        return self.session.get('winner_id') if self.session else None

    def previous_valid_word(self) -> Optional[str]:
        for move in reversed(self.moves):
            if move.get('is_valid'):
                return move['word']
        return None
