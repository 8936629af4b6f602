from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
migrate = Migrate()
allowed_origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]
socketio = SocketIO(cors_allowed_origins=allowed_origins, async_mode=None)

def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    @flask_app.route('/')
    def index():
        return jsonify({'message': 'Welcome to the Word Duel game server!'})

    from wordduel.api.players import players
    flask_app.register_blueprint(players, url_prefix='/api/players')

    from wordduel.api.sessions import sessions
    flask_app.register_blueprint(sessions, url_prefix='/api/sessions')

    # Register Socket.IO event handlers
    from wordduel.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database."""
        from wordduel.models import Player, Word
        with flask_app.app_context():
            db.drop_all()
            db.create_all()

            # Seed players
            for name in ['alice', 'bob', 'cara']:
                db.session.add(Player(display_name=name, elo_rating=flask_app.config['DEFAULT_ELO']))

            # Seed a handful of lexicon entries so local games work offline
            seed_words = {
                'glass': 'noun', 'grass': 'noun', 'brave': 'adjective', 'plant': 'noun',
                'quick': 'adjective', 'dance': 'verb', 'jumpy': 'adjective', 'zebra': 'noun',
            }
            for text, part in seed_words.items():
                db.session.add(Word(word=text, part_of_speech=part, definitions='[]'))

            db.session.commit()
            print('Database has been reset and seeded!')

    flask_app.cli.add_command(db_reset_command)

    return flask_app
