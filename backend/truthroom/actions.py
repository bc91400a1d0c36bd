"""Player action vocabulary shared by the relay and the session client."""
from enum import Enum


class PlayerAction(str, Enum):
    SUBMIT_QUESTION = 'SUBMIT_QUESTION'
    START_GAME = 'START_GAME'
    DRAW_QUESTION = 'DRAW_QUESTION'
    END_GAME = 'END_GAME'

    @classmethod
    def parse(cls, value):
        """Return the member for ``value`` or None if it is not a player action."""
        try:
            return cls(value)
        except ValueError:
            return None


def action_message(action: PlayerAction, payload=None) -> dict:
    """Wire form of an action: ``{type, payload}``."""
    return {'type': action.value, 'payload': payload}
