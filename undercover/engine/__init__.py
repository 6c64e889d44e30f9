"""Game engine - roles, phases, settings, words and the round engine."""

from .errors import InvalidActionError, InvalidSettingsError, WordBankError
from .game import GameResult, GameSnapshot, Player, RoundEngine, evaluate_win_condition
from .phases import GamePhase
from .roles import ROLES, Role, assign_roles
from .settings import GameSettings
from .words import WordPair, draw_word_pair, load_word_bank

__all__ = [
    "GamePhase",
    "GameResult",
    "GameSettings",
    "GameSnapshot",
    "InvalidActionError",
    "InvalidSettingsError",
    "Player",
    "ROLES",
    "Role",
    "RoundEngine",
    "WordBankError",
    "WordPair",
    "assign_roles",
    "draw_word_pair",
    "evaluate_win_condition",
    "load_word_bank",
]
