"""Avatar icon identifiers players pick from at registration."""

AVATAR_ICONS = (
    "account-cowboy-hat",
    "ninja",
    "robot",
    "alien",
    "pirate",
    "crown",
    "wizard-hat",
    "emoticon-devil",
    "cat",
    "dog",
    "owl",
    "penguin",
    "fish",
    "elephant",
    "spider",
    "unicorn",
    "ghost",
    "skull-crossbones",
    "shield",
    "sword",
    "chess-knight",
    "cards-spade",
    "diamond-stone",
    "star-four-points",
)


def available_avatars(used: list[str]) -> list[str]:
    """Icons not yet taken, in display order."""
    taken = set(used)
    return [icon for icon in AVATAR_ICONS if icon not in taken]
