"""Round engine for Undercover."""

import random
import uuid
from collections import Counter
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Callable, Literal, Mapping, Optional, Sequence, Union

from ..communication.markdown_logger import MarkdownLogger
from .avatars import AVATAR_ICONS, available_avatars
from .errors import InvalidActionError
from .phases import GamePhase, can_transition
from .roles import CIVILIAN, MR_WHITE, assign_roles, get_role
from .settings import MAX_PLAYERS, MIN_PLAYERS, GameSettings
from .words import WordPair, draw_word_pair, get_categories, load_word_bank

CREW_WIN_REASON = "All imposters have been eliminated!"
IMPOSTERS_WIN_REASON = "Imposters have taken over!"
MR_WHITE_WIN_REASON = "Mr. White correctly guessed the word!"


@dataclass(frozen=True)
class Player:
    """One participant. Replaced, never mutated, when its state changes."""
    id: str
    name: str
    avatar_icon: str
    role: str = CIVILIAN  # Placeholder until roles are dealt
    word: Optional[str] = None
    is_alive: bool = True

    @property
    def is_imposter(self) -> bool:
        return get_role(self.role).is_imposter


@dataclass(frozen=True)
class GameResult:
    """Terminal outcome of a game."""
    winner: Literal["crew", "imposters", "mr_white"]
    reason: str


@dataclass(frozen=True)
class GameSnapshot:
    """Everything a front end may read. Published once per action."""
    phase: GamePhase = GamePhase.LOBBY
    players: tuple[Player, ...] = ()
    settings: GameSettings = field(default_factory=GameSettings)
    current_player_index: int = 0  # Reveal order and voting order
    current_word_pair: Optional[WordPair] = None
    votes: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    eliminated_player_id: Optional[str] = None
    game_result: Optional[GameResult] = None
    round_number: int = 0
    mr_white_guessed: bool = False  # The single guess after elimination is spent

    @property
    def alive_players(self) -> list[Player]:
        return [p for p in self.players if p.is_alive]

    @property
    def roles_dealt(self) -> bool:
        return self.current_word_pair is not None

    def get_player(self, player_id: Optional[str]) -> Optional[Player]:
        return next((p for p in self.players if p.id == player_id), None)


def evaluate_win_condition(players: Sequence[Player]) -> Optional[GameResult]:
    """Check if the game has ended.

    Returns:
        The result if one faction has won, None if the game goes on.
    """
    alive = [p for p in players if p.is_alive]
    imposter_count = sum(1 for p in alive if p.is_imposter)
    civilian_count = len(alive) - imposter_count

    if imposter_count == 0:
        return GameResult(winner="crew", reason=CREW_WIN_REASON)
    if imposter_count >= civilian_count:
        return GameResult(winner="imposters", reason=IMPOSTERS_WIN_REASON)
    return None


class RoundEngine:
    """State container and action API for one shared device.

    Every action builds the complete next state before committing it, so
    subscribers never see a half-applied transition.
    """

    def __init__(
        self,
        word_bank: Optional[Sequence[WordPair]] = None,
        settings: Optional[GameSettings] = None,
        rng: Optional[random.Random] = None,
        logger: Optional[MarkdownLogger] = None,
        min_players: int = MIN_PLAYERS,
        max_players: int = MAX_PLAYERS,
        redraw_words_each_round: bool = False,
    ):
        """Initialize the engine.

        Args:
            word_bank: Word pairs to draw from. The packaged bank is loaded if omitted.
            settings: Settings restored by reset_game. Defaults to GameSettings().
            rng: Random source for dealing, word draws and tie-breaks.
            logger: Optional markdown transcript.
            min_players: Smallest player count the lobby accepts.
            max_players: Largest player count the lobby accepts.
            redraw_words_each_round: Deal a fresh word pair at every new round.
        """
        self.word_bank: tuple[WordPair, ...] = tuple(
            word_bank if word_bank is not None else load_word_bank()
        )
        self.rng = rng or random.Random()
        self.logger = logger
        self.min_players = min_players
        self.max_players = max_players
        self.redraw_words_each_round = redraw_words_each_round
        self.default_settings = settings or GameSettings()
        self.default_settings.validate(self.available_categories, min_players, max_players)

        self._listeners: list[Callable[[GameSnapshot], None]] = []
        self._state = GameSnapshot(settings=self.default_settings)

    # --- Reading state ---

    def snapshot(self) -> GameSnapshot:
        """The current published state."""
        return self._state

    def subscribe(self, listener: Callable[[GameSnapshot], None]) -> Callable[[], None]:
        """Call listener with every new snapshot.

        Returns:
            A function that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    @property
    def phase(self) -> GamePhase:
        return self._state.phase

    @property
    def players(self) -> tuple[Player, ...]:
        return self._state.players

    @property
    def settings(self) -> GameSettings:
        return self._state.settings

    @property
    def current_word_pair(self) -> Optional[WordPair]:
        return self._state.current_word_pair

    @property
    def votes(self) -> Mapping[str, str]:
        return self._state.votes

    @property
    def eliminated_player_id(self) -> Optional[str]:
        return self._state.eliminated_player_id

    @property
    def game_result(self) -> Optional[GameResult]:
        return self._state.game_result

    @property
    def current_player_index(self) -> int:
        return self._state.current_player_index

    @property
    def round_number(self) -> int:
        return self._state.round_number

    @property
    def available_categories(self) -> list[str]:
        return get_categories(self.word_bank)

    @property
    def alive_players(self) -> list[Player]:
        return self._state.alive_players

    @property
    def available_avatars(self) -> list[str]:
        return available_avatars([p.avatar_icon for p in self.players])

    @property
    def is_registration_complete(self) -> bool:
        return len(self.players) == self.settings.player_count and self._state.roles_dealt

    @property
    def next_voter(self) -> Optional[Player]:
        """First alive player, in registration order, who has not voted yet."""
        if self.phase != GamePhase.VOTING:
            return None
        return next((p for p in self.alive_players if p.id not in self.votes), None)

    def get_player(self, player_id: Optional[str]) -> Optional[Player]:
        return self._state.get_player(player_id)

    def _commit(self, **changes: Any) -> None:
        """Replace the state in one step and publish it."""
        if "votes" in changes:
            changes["votes"] = MappingProxyType(dict(changes["votes"]))
        self._state = replace(self._state, **changes)
        for listener in list(self._listeners):
            listener(self._state)

    def _require_phase(self, *phases: GamePhase) -> None:
        if self.phase not in phases:
            expected = ", ".join(str(p) for p in phases)
            raise InvalidActionError(f"Not allowed during {self.phase}; expected {expected}")

    # --- Lobby ---

    def set_phase(self, phase: Union[GamePhase, str]) -> None:
        """Move to another phase along the allowed transitions.

        Raises:
            InvalidActionError: If the move is not allowed from the current phase.
            InvalidSettingsError: If leaving the lobby with settings that cannot start.
        """
        target = GamePhase(phase)
        current = self.phase
        if not can_transition(current, target):
            raise InvalidActionError(f"Cannot move from {current} to {target}")

        if target == GamePhase.REGISTRATION:
            self.settings.require_startable()
            self._commit(phase=target, current_player_index=0)
        elif current == GamePhase.REGISTRATION and target == GamePhase.LOBBY:
            if self.players:
                raise InvalidActionError("Players are already registered; reset the game instead")
            self._commit(phase=target)
        elif target == GamePhase.DISCUSSION and current == GamePhase.REGISTRATION:
            self.finish_registration()
        else:
            # Entering or abandoning a vote starts from an empty ballot
            self._commit(phase=target, votes={}, eliminated_player_id=None, current_player_index=0)

    def update_settings(self, partial: Optional[dict[str, Any]] = None, **changes: Any) -> GameSettings:
        """Merge new values into the lobby settings.

        Returns:
            The updated settings.
        """
        self._require_phase(GamePhase.LOBBY)
        merged = self.settings.merged({**(partial or {}), **changes})
        merged.validate(self.available_categories, self.min_players, self.max_players)
        self._commit(settings=merged)
        return merged

    # --- Registration ---

    def _new_player(self, name: str, avatar_icon: str) -> Player:
        self._require_phase(GamePhase.REGISTRATION)
        name = name.strip()
        if not name:
            raise InvalidActionError("Player name cannot be empty")
        if avatar_icon not in AVATAR_ICONS:
            raise InvalidActionError(f"Unknown avatar: {avatar_icon}")
        if avatar_icon not in self.available_avatars:
            raise InvalidActionError(f"Avatar already taken: {avatar_icon}")
        if len(self.players) >= self.settings.player_count:
            raise InvalidActionError("All players are already registered")
        return Player(id=uuid.uuid4().hex, name=name, avatar_icon=avatar_icon)

    def register_player(self, name: str, avatar_icon: str) -> Player:
        """Register the next player.

        The player that completes the roster is routed through
        register_last_player_and_initialize.
        """
        if len(self.players) == self.settings.player_count - 1:
            return self.register_last_player_and_initialize(name, avatar_icon)

        player = self._new_player(name, avatar_icon)
        self._commit(players=self.players + (player,))
        return player

    def register_last_player_and_initialize(self, name: str, avatar_icon: str) -> Player:
        """Register the final player and deal roles and words in the same update."""
        if len(self.players) != self.settings.player_count - 1:
            raise InvalidActionError(
                f"{len(self.players)} of {self.settings.player_count} players registered; "
                "this is not the last registration"
            )
        newcomer = self._new_player(name, avatar_icon)
        settings = self.settings

        word_pair = draw_word_pair(self.word_bank, settings.selected_category, self.rng)
        roles = assign_roles(
            settings.player_count,
            settings.undercover_count,
            settings.mr_white_count,
            self.rng,
        )
        players = tuple(
            replace(player, role=role, word=word_pair.word_for(role))
            for player, role in zip(self.players + (newcomer,), roles)
        )

        self._commit(
            players=players,
            current_word_pair=word_pair,
            current_player_index=0,
            round_number=1,
        )

        if self.logger:
            self.logger.start_game()
            self.logger.log_setup(
                players=[{"name": p.name, "avatar": p.avatar_icon} for p in players],
                role_assignments={p.name: p.role for p in players},
                word_pair=word_pair,
            )
        return players[-1]

    def next_player(self) -> int:
        """Advance the pass-the-device cursor (reveal or voting order)."""
        index = self.current_player_index + 1
        self._commit(current_player_index=index)
        return index

    def finish_registration(self) -> None:
        """Start the first discussion once everybody has seen their card."""
        self._require_phase(GamePhase.REGISTRATION)
        if not self.is_registration_complete:
            raise InvalidActionError("Roles have not been dealt yet")
        self._commit(phase=GamePhase.DISCUSSION, current_player_index=0)
        if self.logger:
            self.logger.log_round_start(self.round_number)

    # --- Voting ---

    def cast_vote(self, voter_id: str, target_id: str) -> bool:
        """Record a vote. Re-voting replaces the voter's earlier choice.

        Returns:
            False, with nothing recorded, if the vote is not valid.
        """
        if self.phase != GamePhase.VOTING:
            return False
        voter = self.get_player(voter_id)
        target = self.get_player(target_id)
        if voter is None or target is None:
            return False
        if not voter.is_alive or not target.is_alive or voter.id == target.id:
            return False

        self._commit(votes={**self.votes, voter_id: target_id})
        return True

    def tally_votes(self) -> Optional[str]:
        """Count the votes once every alive player has voted.

        Ties are broken uniformly at random among the players tied for the most votes.

        Returns:
            Id of the player to eliminate, or None if voting is not complete.
        """
        if self.phase != GamePhase.VOTING:
            return None
        alive_ids = [p.id for p in self.alive_players]
        if not alive_ids or any(pid not in self.votes for pid in alive_ids):
            return None

        vote_counts = Counter(self.votes[pid] for pid in alive_ids)
        top = max(vote_counts.values())
        tied = [target for target, count in vote_counts.items() if count == top]
        eliminated = tied[0] if len(tied) == 1 else self.rng.choice(tied)

        self._commit(eliminated_player_id=eliminated)

        if self.logger:
            names = {p.id: p.name for p in self.players}
            self.logger.log_vote(
                self.round_number,
                {names[v]: names[t] for v, t in self.votes.items()},
                names[eliminated],
                tie_break=len(tied) > 1,
            )
        return eliminated

    def eliminate_player(self, player_id: str) -> bool:
        """Eliminate a player and open the matching reveal phase.

        Returns:
            False, with nothing changed, for unknown or dead players or outside voting.
        """
        if self.phase != GamePhase.VOTING:
            return False
        player = self.get_player(player_id)
        if player is None or not player.is_alive:
            return False

        players = tuple(replace(p, is_alive=False) if p.id == player_id else p for p in self.players)
        next_phase = GamePhase.MR_WHITE_GUESS if player.role == MR_WHITE else GamePhase.ELIMINATION
        self._commit(
            players=players,
            phase=next_phase,
            eliminated_player_id=player_id,
            mr_white_guessed=False,
        )

        if self.logger:
            self.logger.log_elimination(player.name, player.role, self.round_number)
        return True

    # --- Resolution ---

    def check_win_condition(self) -> Optional[GameResult]:
        """Check if the game has ended and, the first time it has, end it.

        Repeated calls return the stored result without changing anything.
        """
        if self.game_result is not None:
            return self.game_result
        if not self._state.roles_dealt:
            return None

        result = evaluate_win_condition(self.players)
        if result:
            self._finish(result)
        return result

    def handle_mr_white_guess(self, guess: str) -> bool:
        """Let an eliminated Mr. White guess the civilian word.

        Only the first non-empty guess counts. A wrong guess leaves the phase
        open for acknowledge_elimination.

        Returns:
            True if the guess matched and Mr. White won.
        """
        word_pair = self.current_word_pair
        if self.phase != GamePhase.MR_WHITE_GUESS or word_pair is None:
            return False
        if self._state.mr_white_guessed:
            return False
        if not guess or not guess.strip():
            return False

        correct = word_pair.matches_civilian(guess)
        if self.logger:
            guesser = self.get_player(self.eliminated_player_id)
            self.logger.log_mr_white_guess(
                guesser.name if guesser else "Mr. White", guess.strip(), correct
            )
        if correct:
            self._finish(
                GameResult(winner="mr_white", reason=MR_WHITE_WIN_REASON),
                mr_white_guessed=True,
            )
        else:
            self._commit(mr_white_guessed=True)
        return correct

    def skip_mr_white_guess(self) -> Optional[GameResult]:
        """Give up the guess and resolve the round."""
        self._require_phase(GamePhase.MR_WHITE_GUESS)
        if self.logger and not self._state.mr_white_guessed:
            guesser = self.get_player(self.eliminated_player_id)
            self.logger.log_mr_white_guess(guesser.name if guesser else "Mr. White", None, False)
        return self.acknowledge_elimination()

    def acknowledge_elimination(self) -> Optional[GameResult]:
        """Close a reveal: end the game or start the next round.

        Returns:
            The result if the game is over, otherwise None.
        """
        if self.phase == GamePhase.GAME_OVER:
            return self.game_result
        self._require_phase(GamePhase.ELIMINATION, GamePhase.MR_WHITE_GUESS)

        result = self.check_win_condition()
        if result is None:
            self.start_new_round()
        return result

    def start_new_round(self) -> None:
        """Clear the ballot and go back to discussion with the same roles."""
        self._require_phase(
            GamePhase.DISCUSSION,
            GamePhase.VOTING,
            GamePhase.ELIMINATION,
            GamePhase.MR_WHITE_GUESS,
        )
        if evaluate_win_condition(self.players):
            raise InvalidActionError("The game is already decided; check the win condition")

        changes: dict[str, Any] = {}
        if self.redraw_words_each_round:
            word_pair = draw_word_pair(
                self.word_bank,
                self.settings.selected_category,
                self.rng,
                exclude=self.current_word_pair,
            )
            changes["current_word_pair"] = word_pair
            changes["players"] = tuple(
                replace(p, word=word_pair.word_for(p.role)) if p.is_alive else p
                for p in self.players
            )

        round_number = self.round_number + 1
        self._commit(
            phase=GamePhase.DISCUSSION,
            votes={},
            eliminated_player_id=None,
            mr_white_guessed=False,
            current_player_index=0,
            round_number=round_number,
            **changes,
        )

        if self.logger:
            self.logger.log_round_start(round_number, changes.get("current_word_pair"))

    def reset_game(self) -> None:
        """Drop every player and go back to the lobby."""
        self._commit(
            phase=GamePhase.LOBBY,
            players=(),
            settings=self.default_settings,
            current_player_index=0,
            current_word_pair=None,
            votes={},
            eliminated_player_id=None,
            game_result=None,
            round_number=0,
            mr_white_guessed=False,
        )

    def _finish(self, result: GameResult, **changes: Any) -> None:
        self._commit(game_result=result, phase=GamePhase.GAME_OVER, **changes)
        if self.logger:
            self.logger.log_game_end(
                winner=result.winner,
                reason=result.reason,
                surviving_players=[{"name": p.name, "role": p.role} for p in self.alive_players],
                all_players=[{
                    "name": p.name,
                    "role": p.role,
                    "team": get_role(p.role).team,
                    "word": p.word,
                    "alive": p.is_alive,
                } for p in self.players],
            )
