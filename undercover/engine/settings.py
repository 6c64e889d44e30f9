"""Game settings chosen in the lobby."""

import math
from dataclasses import asdict, dataclass, fields, replace
from typing import Any, Iterable, Optional

from pydantic import TypeAdapter, ValidationError

from .errors import InvalidSettingsError

MIN_PLAYERS = 3
MAX_PLAYERS = 10
MIN_CIVILIANS = 2


@dataclass(frozen=True)
class GameSettings:
    """Configuration for a game."""
    player_count: int = 4
    undercover_count: int = 1
    mr_white_count: int = 0
    selected_category: Optional[str] = None  # None = random

    @property
    def imposter_count(self) -> int:
        return self.undercover_count + self.mr_white_count

    @property
    def civilian_count(self) -> int:
        return self.player_count - self.imposter_count

    @property
    def max_imposters(self) -> int:
        """Most imposters this player count allows."""
        return max(0, self.player_count - MIN_CIVILIANS)

    @property
    def is_startable(self) -> bool:
        """Whether a game can start with these settings."""
        return (
            self.player_count >= MIN_PLAYERS
            and self.civilian_count >= MIN_CIVILIANS
            and self.imposter_count >= 1
        )

    def validate(
        self,
        categories: Optional[Iterable[str]] = None,
        min_players: int = MIN_PLAYERS,
        max_players: int = MAX_PLAYERS,
    ) -> None:
        """Check the limits that hold even while settings are being edited.

        Args:
            categories: Known word bank categories. Skips the category check if omitted.
            min_players: Smallest allowed player count.
            max_players: Largest allowed player count.

        Raises:
            InvalidSettingsError: If any limit is broken.
        """
        check_setting_types(asdict(self))
        if not min_players <= self.player_count <= max_players:
            raise InvalidSettingsError(
                f"Player count must be between {min_players} and {max_players}, "
                f"got {self.player_count}"
            )
        if self.undercover_count < 0 or self.mr_white_count < 0:
            raise InvalidSettingsError("Imposter counts cannot be negative")
        if self.imposter_count > self.max_imposters:
            raise InvalidSettingsError(
                f"At most {self.max_imposters} imposters fit in a "
                f"{self.player_count}-player game ({MIN_CIVILIANS} civilians required)"
            )
        if categories is not None and self.selected_category is not None:
            known = list(categories)
            if self.selected_category not in known:
                raise InvalidSettingsError(
                    f"Unknown category: {self.selected_category}. Available: {known}"
                )

    def require_startable(self) -> None:
        """Raise unless a game can start with these settings."""
        if not self.is_startable:
            raise InvalidSettingsError(
                f"Cannot start with {self.player_count} players, "
                f"{self.undercover_count} undercover and {self.mr_white_count} Mr. White: "
                f"need at least one imposter and {MIN_CIVILIANS} civilians"
            )

    def merged(self, partial: dict[str, Any]) -> "GameSettings":
        """Return a copy with the given fields replaced."""
        known = {f.name for f in fields(self)}
        unknown = set(partial) - known
        if unknown:
            raise InvalidSettingsError(f"Unknown settings: {sorted(unknown)}")
        check_setting_types(partial)
        return replace(self, **partial)


_FIELD_TYPES = {f.name: TypeAdapter(f.type) for f in fields(GameSettings)}


def check_setting_types(values: dict[str, Any]) -> None:
    """Raise InvalidSettingsError for values of the wrong type.

    Validation is strict: "5" is not a player count and neither is True.
    """
    for name, value in values.items():
        adapter = _FIELD_TYPES.get(name)
        if adapter is None:
            continue
        try:
            adapter.validate_python(value, strict=True)
        except ValidationError as e:
            raise InvalidSettingsError(f"Invalid value for {name}: {value!r}") from e


def adjust_player_count(
    settings: GameSettings,
    delta: int,
    min_players: int = MIN_PLAYERS,
    max_players: int = MAX_PLAYERS,
) -> GameSettings:
    """Step the player count, shedding imposters that no longer fit.

    Excess imposters are removed half from undercover (rounded up) and the
    rest from Mr. White, spilling over when one side runs out.
    """
    new_count = min(max_players, max(min_players, settings.player_count + delta))
    excess = settings.imposter_count - max(0, new_count - MIN_CIVILIANS)
    if excess <= 0:
        return replace(settings, player_count=new_count)

    from_undercover = min(settings.undercover_count, math.ceil(excess / 2))
    from_mr_white = min(settings.mr_white_count, excess - from_undercover)
    from_undercover += excess - from_undercover - from_mr_white
    return replace(
        settings,
        player_count=new_count,
        undercover_count=settings.undercover_count - from_undercover,
        mr_white_count=settings.mr_white_count - from_mr_white,
    )


def adjust_undercover_count(settings: GameSettings, delta: int) -> GameSettings:
    """Step the undercover count within what the player count allows."""
    cap = settings.max_imposters - settings.mr_white_count
    new_count = min(cap, max(0, settings.undercover_count + delta))
    return replace(settings, undercover_count=new_count)


def adjust_mr_white_count(settings: GameSettings, delta: int) -> GameSettings:
    """Step the Mr. White count within what the player count allows."""
    cap = settings.max_imposters - settings.undercover_count
    new_count = min(cap, max(0, settings.mr_white_count + delta))
    return replace(settings, mr_white_count=new_count)
