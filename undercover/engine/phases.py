"""Game phase definitions and transitions."""

from enum import Enum


class GamePhase(Enum):
    """Phases of an Undercover game."""
    LOBBY = "lobby"                    # Settings editable
    REGISTRATION = "registration"      # Players enter name and avatar, then see their card
    DISCUSSION = "discussion"          # Players talk it out
    VOTING = "voting"                  # Device passed around, one vote each
    ELIMINATION = "elimination"        # Reveal of the voted-out player
    MR_WHITE_GUESS = "mr_white_guess"  # Eliminated Mr. White gets one guess
    GAME_OVER = "game_over"            # Terminal until reset

    def __str__(self) -> str:
        return self.value

    @property
    def is_reveal(self) -> bool:
        """Whether this phase waits for an elimination to be acknowledged."""
        return self in (GamePhase.ELIMINATION, GamePhase.MR_WHITE_GUESS)


# Moves a front end may request through set_phase. Elimination, Mr. White
# guess and game over are entered only by their own actions.
TRANSITIONS: dict[GamePhase, frozenset[GamePhase]] = {
    GamePhase.LOBBY: frozenset({GamePhase.REGISTRATION}),
    GamePhase.REGISTRATION: frozenset({GamePhase.LOBBY, GamePhase.DISCUSSION}),
    GamePhase.DISCUSSION: frozenset({GamePhase.VOTING}),
    GamePhase.VOTING: frozenset({GamePhase.DISCUSSION}),
    GamePhase.ELIMINATION: frozenset(),
    GamePhase.MR_WHITE_GUESS: frozenset(),
    GamePhase.GAME_OVER: frozenset(),
}


def can_transition(current: GamePhase, target: GamePhase) -> bool:
    """Check whether set_phase may move from current to target."""
    return target in TRANSITIONS[current]

