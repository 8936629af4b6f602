class GameError(Exception):
    """Base class for errors reported back to the submitting client."""
    code = 'game_error'
    status = 400

    def __init__(self, message=None, **details):
        super().__init__(message or self.__class__.__doc__ or self.code)
        self.message = message or (self.__class__.__doc__ or self.code).strip()
        self.details = details

    def to_dict(self):
        payload = {'error': self.message, 'code': self.code}
        payload.update(self.details)
        return payload


class SessionNotFound(GameError):
    """No session exists for this lobby"""
    code = 'session_not_found'
    status = 404


class InvalidState(GameError):
    """Session is not accepting this operation"""
    code = 'invalid_state'
    status = 409


class NotPlayersTurn(GameError):
    """It's not your turn"""
    code = 'not_players_turn'
    status = 403


class DuplicateWord(GameError):
    """Word has already been played in this session"""
    code = 'duplicate_word'
    status = 409


class BannedLetters(GameError):
    """Word contains banned letters"""
    code = 'banned_letters'
    status = 400


class InvalidWord(GameError):
    """Word must be a single alphabetic word"""
    code = 'invalid_word'
    status = 400


class LobbyFull(GameError):
    """Lobby already has two players"""
    code = 'lobby_full'
    status = 409


class LexiconUnavailable(GameError):
    """Dictionary lookup failed, try again"""
    code = 'lexicon_unavailable'
    status = 503


class SessionConflict(GameError):
    """Session changed concurrently, re-read and retry"""
    code = 'session_conflict'
    status = 409


class RatingUpdateConflict(GameError):
    """Another writer already claimed the rating update"""
    code = 'rating_update_conflict'
    status = 409


class PlayerNotFound(GameError):
    """Player does not exist"""
    code = 'player_not_found'
    status = 404


class NotInSession(GameError):
    """You are not a player in this session"""
    code = 'not_in_session'
    status = 403


class InvalidClockUpdate(GameError):
    """Only the clock of the player holding the turn can be written"""
    code = 'invalid_clock_update'
    status = 400


class MoveNotFound(GameError):
    """Move does not exist in this session"""
    code = 'move_not_found'
    status = 404


class InvalidReport(GameError):
    """Report reason is not recognised"""
    code = 'invalid_report'
    status = 400
