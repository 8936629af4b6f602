import pytest
from sqlalchemy import update

from wordduel import db
from wordduel.models import GameSession, Move, Player
from wordduel.services.game import get_engine
from wordduel.services.game.engine import _Change
from wordduel.services.game.errors import (
    BannedLetters, DuplicateWord, InvalidClockUpdate, InvalidState, InvalidWord,
    LexiconUnavailable, LobbyFull, NotInSession, NotPlayersTurn, PlayerNotFound,
    SessionConflict,
)


def test_first_init_creates_session_without_running_clocks(engine, players):
    alice = players[0]
    session = engine.initialize_session('L1', alice, now=1000)
    assert session.status == 'active'
    assert session.current_turn == 0
    assert session.player1_time == session.player2_time == 60000
    assert session.last_tick_at is None
    assert [p.id for p in session.seats] == [alice]

    # Time passes but nobody is charged until the second seat fills
    session = engine.tick('L1', now=9000)
    assert session.player1_time == 60000


def test_second_seat_starts_clocks_and_init_is_idempotent(engine, players, started):
    alice, bob, _ = players
    session = engine.initialize_session(started, alice, now=5000)
    assert session.last_tick_at == 1000
    assert [p.id for p in session.seats] == [alice, bob]
    assert session.to_dict()['players'][1]['seat'] == 1


def test_lobby_holds_two_players(engine, players, started):
    with pytest.raises(LobbyFull):
        engine.initialize_session(started, players[2], now=2000)
    with pytest.raises(PlayerNotFound):
        engine.initialize_session('L2', 999, now=2000)


def test_turns_alternate_and_scores_accumulate(engine, players, started):
    alice, bob, _ = players
    first = engine.submit_move(started, alice, 'Glass', now=3000)
    assert first.move.word == 'glass'
    assert first.move.seq == 1
    assert first.move.is_valid
    assert first.move.score == 376
    assert first.session.current_turn == 1
    # Only the seat holding the turn was charged
    assert first.session.player1_time == 58000
    assert first.session.player2_time == 60000

    second = engine.submit_move(started, bob, 'grass', now=4000)
    assert second.move.leven_bonus == 75
    assert second.move.score == 437
    assert second.session.current_turn == 0
    assert second.session.player2_time == 59000
    assert second.session.session_scores() == [376, 437]
    assert second.move.part_of_speech == 'noun'


def test_out_of_turn_and_outsider_moves_are_rejected(engine, players, started):
    alice, bob, cara = players
    with pytest.raises(NotPlayersTurn):
        engine.submit_move(started, bob, 'glass', now=2000)
    with pytest.raises(NotInSession):
        engine.submit_move(started, cara, 'glass', now=2000)
    session = engine.get_session(started)
    assert session.moves.count() == 0
    assert session.player1_time == 60000


def test_duplicate_words_are_rejected(engine, players, started):
    alice, bob, _ = players
    engine.submit_move(started, alice, 'glass', now=2000)
    with pytest.raises(DuplicateWord):
        engine.submit_move(started, bob, 'GLASS', now=3000)
    assert engine.get_session(started).current_turn == 1


def test_invalid_word_is_recorded_but_keeps_the_turn(engine, players, started):
    alice, bob, _ = players
    result = engine.submit_move(started, alice, 'qwzzk', now=2000)
    assert not result.move.is_valid
    assert result.move.rejection_reason == 'not found in dictionary'
    assert result.move.score is None
    assert result.session.current_turn == 0
    assert result.session.status == 'active'

    short = engine.submit_move(started, alice, 'cat', now=2500)
    assert short.move.rejection_reason == 'must be at least 5 letters long'
    pronoun = engine.submit_move(started, alice, 'whose', now=2600)
    assert not pronoun.move.is_valid
    assert pronoun.move.seq == 3

    # A rejected word can't be retried either
    with pytest.raises(DuplicateWord):
        engine.submit_move(started, alice, 'qwzzk', now=2700)

    # Scoring compares against the last valid word only
    valid = engine.submit_move(started, alice, 'glass', now=3000)
    assert valid.move.leven_bonus == 0
    assert valid.session.current_turn == 1


def test_malformed_words_are_rejected(engine, players, started):
    for word in ('', '   ', 'gl4ss', 'two words', None):
        with pytest.raises(InvalidWord):
            engine.submit_move(started, players[0], word, now=2000)


def test_banned_letters_are_rejected_without_recording(engine, players):
    alice, bob, _ = players
    engine.banned_letters = ['Z']
    engine.initialize_session('L9', alice, now=1000)
    engine.initialize_session('L9', bob, now=1000)
    with pytest.raises(BannedLetters) as exc_info:
        engine.submit_move('L9', alice, 'zebra', now=2000)
    assert exc_info.value.details == {'letters': ['Z']}
    session = engine.get_session('L9')
    assert session.moves.count() == 0
    assert session.current_turn == 0


def test_moves_need_an_opponent(engine, players):
    engine.initialize_session('L1', players[0], now=1000)
    with pytest.raises(InvalidState):
        engine.submit_move('L1', players[0], 'glass', now=2000)


def test_lexicon_outage_leaves_session_untouched(engine, players, started):
    class DownLexicon:
        calls = 0

        def lookup(self, word):
            DownLexicon.calls += 1
            raise LexiconUnavailable()

    engine.lexicon = DownLexicon()
    with pytest.raises(LexiconUnavailable):
        engine.submit_move(started, players[0], 'glass', now=2000)
    # One try plus LEXICON_RETRIES
    assert DownLexicon.calls == 2
    session = engine.get_session(started)
    assert session.moves.count() == 0
    assert session.current_turn == 0


def test_clock_expiry_finishes_session_and_rates_players(engine, players, started):
    alice, bob, _ = players
    session = engine.tick(started, now=30000)
    assert session.player1_time == 31000
    assert session.status == 'active'

    session = engine.tick(started, now=61000)
    assert session.player1_time == 0
    assert session.player2_time == 60000
    assert session.status == 'finished'
    assert session.finish_reason == 'time'
    # The seat that ran out of time loses
    assert session.winner_index == 1
    assert session.elo_updated
    assert session.elo_delta == 32
    assert session.archived_at is not None
    assert db.session.get(Player, bob).elo_rating == 1232
    assert db.session.get(Player, alice).elo_rating == 1168


def test_move_after_time_ran_out_finishes_instead(engine, players, started):
    with pytest.raises(InvalidState):
        engine.submit_move(started, players[0], 'glass', now=70000)
    session = engine.get_session(started)
    assert session.status == 'finished'
    assert session.winner_index == 1
    assert session.moves.count() == 0


def test_finished_session_rejects_moves_and_ticks_are_noops(engine, players, started):
    engine.forfeit(started, players[0], now=2000)
    with pytest.raises(InvalidState):
        engine.submit_move(started, players[0], 'glass', now=3000)
    before = engine.get_session(started).version
    assert engine.tick(started, now=90000).version == before


def test_update_clock_only_moves_down(engine, players, started):
    session = engine.update_clock(started, 'player1_time', 50000, now=2000)
    assert session.player1_time == 50000

    session = engine.update_clock(started, 'player1_time', 70000, now=3000)
    assert session.player1_time == 49000

    with pytest.raises(InvalidClockUpdate):
        engine.update_clock(started, 'player2_time', 1000, now=3000)
    with pytest.raises(InvalidClockUpdate):
        engine.update_clock(started, 'player3_time', 1000, now=3000)

    session = engine.update_clock(started, 'player1_time', 0, now=4000)
    assert session.status == 'finished'
    assert session.winner_index == 1


def test_pause_and_resume_do_not_charge_paused_time(engine, players, started):
    session = engine.pause(started, now=5000)
    assert session.status == 'paused'
    assert session.player1_time == 56000

    assert engine.tick(started, now=20000).player1_time == 56000
    with pytest.raises(InvalidState):
        engine.submit_move(started, players[0], 'glass', now=21000)
    with pytest.raises(InvalidState):
        engine.pause(started, now=21000)

    session = engine.resume(started, now=30000)
    assert session.status == 'active'
    assert session.last_tick_at == 30000
    assert engine.tick(started, now=31000).player1_time == 55000


def test_forfeit(engine, players, started):
    alice, bob, cara = players
    with pytest.raises(NotInSession):
        engine.forfeit(started, cara, now=2000)
    session = engine.forfeit(started, bob, now=2000)
    assert session.status == 'finished'
    assert session.finish_reason == 'forfeit'
    assert session.winner_index == 0
    assert session.elo_updated
    with pytest.raises(InvalidState):
        engine.forfeit(started, alice, now=3000)


def test_forfeit_before_opponent_joins(engine, players):
    alice, bob, _ = players
    engine.initialize_session('L1', alice, now=1000)
    with pytest.raises(InvalidState):
        engine.forfeit('L1', alice, now=2000)
    with pytest.raises(NotInSession):
        engine.forfeit('L1', bob, now=2000)
    assert engine.get_session('L1').status == 'active'


def test_end_session_is_idempotent(engine, players, started):
    alice, bob, _ = players
    with pytest.raises(InvalidState):
        engine.end_session(started, 'finished', 'time', now=2000)

    engine.forfeit(started, alice, now=2000)
    outcome = engine.end_session(started, 'finished', 'forfeit')
    assert not outcome.applied
    assert outcome.winner_id == bob
    assert outcome.delta == 32
    assert db.session.get(Player, bob).elo_rating == 1232
    assert db.session.get(Player, bob).games_played == 1


def test_end_session_settles_an_expired_clock(engine, players, started):
    outcome = engine.end_session(started, 'finished', 'time', now=62000)
    assert outcome.applied
    assert outcome.winner_id == players[1]
    assert outcome.delta == 32
    with pytest.raises(InvalidState):
        engine.end_session(started, 'paused', 'time')


def test_lost_race_is_retried(engine, players, started):
    attempts = []

    def mutate(session):
        attempts.append(session.version)
        if len(attempts) == 1:
            # Another writer commits between our read and our write
            db.session.execute(
                update(GameSession)
                .where(GameSession.id == session.id)
                .values(version=GameSession.version + 1)
                .execution_options(synchronize_session=False)
            )
        session.current_turn = 1
        return _Change()

    session, _ = engine._write(started, mutate)
    assert len(attempts) == 2
    assert attempts[1] == attempts[0]
    assert session.current_turn == 1


def test_persistent_conflict_gives_up(engine, players, started):
    def mutate(session):
        db.session.execute(
            update(GameSession)
            .where(GameSession.id == session.id)
            .values(version=GameSession.version + 1)
            .execution_options(synchronize_session=False)
        )
        session.current_turn = 1
        return _Change()

    with pytest.raises(SessionConflict):
        engine._write(started, mutate)
    assert engine.get_session(started).current_turn == 0


def test_report_word(engine, players, started):
    alice, bob, cara = players
    move = engine.submit_move(started, alice, 'glass', now=2000).move
    report = engine.report_word(started, move.id, bob, 'Not English', 'sounds made up')
    assert report.to_dict()['reason'] == 'Not English'
    with pytest.raises(NotInSession):
        engine.report_word(started, move.id, cara, 'Other')


def test_engine_is_cached_per_app(flask_app):
    assert get_engine(flask_app) is get_engine(flask_app)
    assert Move.query.count() == 0
