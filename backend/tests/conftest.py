import os
import sys
import pytest

# Ensure the backend root (containing the `wordduel` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from wordduel import create_app, db, socketio


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    STARTING_CLOCK_MS = 60000
    LEXICON_BACKEND = 'database'
    LEXICON_RETRIES = 1
    WORD_RULES = 'min_length:5;part_of_speech:noun,verb,adjective,adverb'
    BANNED_LETTERS = ''
    DEFAULT_ELO = 1200


SEED_WORDS = {
    'glass': 'noun',
    'grass': 'noun',
    'brave': 'adjective',
    'plant': 'noun',
    'quick': 'adjective',
    'dance': 'verb',
    'zebra': 'noun',
    'whose': 'pronoun',
    'cat': 'noun',
}


def seed_words():
    from wordduel.models import Word
    for text, part in SEED_WORDS.items():
        db.session.add(Word(word=text, part_of_speech=part, definitions=f'["a {part}"]'))
    db.session.commit()


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import wordduel.models  # noqa: F401
        db.create_all()
        seed_words()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass


@pytest.fixture()
def players(flask_app):
    """Three rated players: two to fill a lobby and one spare."""
    from wordduel.models import Player
    created = [Player(display_name=name, elo_rating=1200) for name in ('alice', 'bob', 'cara')]
    db.session.add_all(created)
    db.session.commit()
    return [p.id for p in created]


@pytest.fixture()
def engine(flask_app):
    from wordduel.services.game import get_engine
    return get_engine(flask_app)


@pytest.fixture()
def started(engine, players):
    """Lobby L1 with alice in seat 0 and bob in seat 1, clocks started at t=1000."""
    alice, bob, _ = players
    engine.initialize_session('L1', alice, now=1000)
    engine.initialize_session('L1', bob, now=1000)
    return 'L1'
