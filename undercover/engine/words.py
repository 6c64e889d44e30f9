"""Word bank loading and word pair selection."""

import random
from pathlib import Path
from typing import Optional, Sequence, Union

import yaml
from pydantic import BaseModel, ConfigDict, ValidationError, model_validator

from .errors import WordBankError
from .roles import UNDERCOVER, get_role

DEFAULT_WORD_BANK = Path(__file__).resolve().parent.parent / "data" / "words.yaml"


class WordPair(BaseModel):
    """A themed pair of related but distinct words."""
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    category: str
    civilian: str
    undercover: str

    @model_validator(mode="after")
    def check_words_differ(self) -> "WordPair":
        if not self.civilian or not self.undercover:
            raise ValueError("Both words of a pair must be non-empty")
        if self.civilian.casefold() == self.undercover.casefold():
            raise ValueError(f"Civilian and undercover words are the same: {self.civilian}")
        return self

    def word_for(self, role_name: str) -> Optional[str]:
        """The secret word a player holding role_name is shown."""
        if not get_role(role_name).receives_word:
            return None
        return self.undercover if role_name == UNDERCOVER else self.civilian

    def matches_civilian(self, guess: str) -> bool:
        """Trimmed, case-insensitive comparison against the civilian word."""
        return guess.strip().casefold() == self.civilian.casefold()


def load_word_bank(path: Optional[Union[str, Path]] = None) -> list[WordPair]:
    """Load and validate the word bank.

    Args:
        path: YAML file holding a list of {category, civilian, undercover}.
            The bank shipped with the package is used if omitted.

    Returns:
        The word pairs in file order.

    Raises:
        WordBankError: If the file is missing, empty or malformed.
    """
    path = Path(path) if path else DEFAULT_WORD_BANK
    if not path.exists():
        raise WordBankError(f"Word bank not found: {path}")

    try:
        with open(path, encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise WordBankError(f"Word bank {path} is not valid YAML: {e}") from e

    if not isinstance(raw, list) or not raw:
        raise WordBankError(f"Word bank {path} must be a non-empty list of word pairs")

    try:
        return [WordPair.model_validate(entry) for entry in raw]
    except ValidationError as e:
        raise WordBankError(f"Word bank {path} has an invalid entry: {e}") from e


def get_categories(word_bank: Sequence[WordPair]) -> list[str]:
    """Distinct categories in order of first appearance."""
    return list(dict.fromkeys(pair.category for pair in word_bank))


def draw_word_pair(
    word_bank: Sequence[WordPair],
    category: Optional[str] = None,
    rng: Optional[random.Random] = None,
    exclude: Optional[WordPair] = None,
) -> WordPair:
    """Draw a pair uniformly at random.

    Args:
        word_bank: Pairs to draw from.
        category: Restrict to this category. Falls back to the whole bank
            when the category has no pairs.
        rng: Random source. The module-level generator is used if omitted.
        exclude: Avoid this pair if anything else is available.

    Returns:
        The drawn pair.
    """
    if not word_bank:
        raise WordBankError("Cannot draw from an empty word bank")

    pairs = [p for p in word_bank if p.category == category] if category else list(word_bank)
    if not pairs:
        pairs = list(word_bank)
    if exclude is not None and len(pairs) > 1:
        pairs = [p for p in pairs if p != exclude] or pairs

    return (rng or random).choice(pairs)
