"""Shared fixtures for engine tests."""

import random

import pytest

from undercover.engine.avatars import AVATAR_ICONS
from undercover.engine.game import RoundEngine
from undercover.engine.phases import GamePhase
from undercover.engine.words import WordPair

PLAYER_NAMES = ["Alice", "Bob", "Chloe", "Dmitri", "Emeka", "Fatima", "Goro", "Hana", "Ines", "Jamal"]


@pytest.fixture
def word_bank() -> list[WordPair]:
    return [
        WordPair(category="Places", civilian="Beach", undercover="Desert"),
        WordPair(category="Food", civilian="Coffee", undercover="Tea"),
        WordPair(category="Food", civilian="Pizza", undercover="Burger"),
    ]


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture
def make_engine(word_bank, rng):
    """Factory for an engine with every player registered and roles dealt."""

    def factory(
        player_count: int = 4,
        undercover_count: int = 1,
        mr_white_count: int = 0,
        selected_category=None,
        finish: bool = True,
        **kwargs,
    ) -> RoundEngine:
        kwargs.setdefault("rng", rng)
        engine = RoundEngine(word_bank=word_bank, **kwargs)
        engine.update_settings(
            player_count=player_count,
            undercover_count=undercover_count,
            mr_white_count=mr_white_count,
            selected_category=selected_category,
        )
        engine.set_phase(GamePhase.REGISTRATION)
        for i in range(player_count):
            engine.register_player(PLAYER_NAMES[i], AVATAR_ICONS[i])
        if finish:
            engine.finish_registration()
        return engine

    return factory
