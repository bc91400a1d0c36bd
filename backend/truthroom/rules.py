"""Game phase rules shared by the store and the session client."""

WAITING = 'waiting'
PLAYING = 'playing'
ENDED = 'ended'

MIN_PLAYERS = 2
MIN_QUESTIONS = 3


def can_start(player_count: int, question_count: int, min_players: int = MIN_PLAYERS, min_questions: int = MIN_QUESTIONS) -> bool:
    return player_count >= min_players and question_count >= min_questions


def start_shortfall(player_count: int, question_count: int, min_players: int = MIN_PLAYERS, min_questions: int = MIN_QUESTIONS) -> str:
    """Human readable reason a room cannot start yet (empty when it can)."""
    missing = []
    if player_count < min_players:
        missing.append(f'{min_players - player_count} more player(s)')
    if question_count < min_questions:
        missing.append(f'{min_questions - question_count} more question(s)')
    return ' and '.join(missing)
