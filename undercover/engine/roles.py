"""Role definitions and role dealing for the Undercover game."""

import random
from dataclasses import dataclass
from typing import Literal, Optional


@dataclass(frozen=True)
class Role:
    """A role in the Undercover game."""

    name: str
    team: Literal["crew", "imposters"]
    receives_word: bool = True
    description: str = ""

    def __str__(self) -> str:
        return self.name

    @property
    def is_imposter(self) -> bool:
        return self.team == "imposters"


CIVILIAN = "civilian"
UNDERCOVER = "undercover"
MR_WHITE = "mr_white"

# All available roles
ROLES = {
    CIVILIAN: Role(
        name=CIVILIAN,
        team="crew",
        receives_word=True,
        description="Knows the crew word. Find the imposters without giving the word away."
    ),
    UNDERCOVER: Role(
        name=UNDERCOVER,
        team="imposters",
        receives_word=True,
        description="Holds a word close to the crew's. Blend in and survive."
    ),
    MR_WHITE: Role(
        name=MR_WHITE,
        team="imposters",
        receives_word=False,
        description="Has no word at all. If caught, one guess at the crew word steals the win."
    ),
}


def get_role(name: str) -> Role:
    """Get a role by name."""
    if name not in ROLES:
        raise ValueError(f"Unknown role: {name}. Available: {list(ROLES.keys())}")
    return ROLES[name]


def assign_roles(
    player_count: int,
    undercover_count: int,
    mr_white_count: int,
    rng: Optional[random.Random] = None,
) -> list[str]:
    """Build and shuffle the role pool for one game.

    Args:
        player_count: Total number of players.
        undercover_count: Number of Undercover players.
        mr_white_count: Number of Mr. White players.
        rng: Random source. The module-level generator is used if omitted.

    Returns:
        Role names, position i belonging to the i-th registered player.
    """
    civilian_count = player_count - undercover_count - mr_white_count
    if min(undercover_count, mr_white_count, civilian_count) < 0:
        raise ValueError(
            f"Cannot deal {undercover_count} undercover and {mr_white_count} "
            f"Mr. White among {player_count} players"
        )

    # Create role pool
    role_pool: list[str] = []
    role_pool.extend([MR_WHITE] * mr_white_count)
    role_pool.extend([UNDERCOVER] * undercover_count)
    role_pool.extend([CIVILIAN] * civilian_count)

    # Fisher-Yates
    (rng or random).shuffle(role_pool)
    return role_pool
