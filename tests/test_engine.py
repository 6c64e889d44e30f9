import random
from collections import Counter

import pytest

from undercover.engine.avatars import AVATAR_ICONS
from undercover.engine.errors import InvalidActionError, InvalidSettingsError
from undercover.engine.game import GameResult, RoundEngine, evaluate_win_condition
from undercover.engine.phases import GamePhase
from undercover.engine.roles import CIVILIAN, MR_WHITE, UNDERCOVER, assign_roles
from undercover.engine.settings import GameSettings

from .helpers import by_role, vote_out


# --- Lobby and registration ---


def test_initial_state(word_bank):
    engine = RoundEngine(word_bank=word_bank)
    assert engine.phase == GamePhase.LOBBY
    assert engine.players == ()
    assert engine.settings == GameSettings()
    assert engine.game_result is None
    assert engine.available_categories == ["Places", "Food"]


def test_engine_loads_packaged_bank_by_default():
    assert RoundEngine().word_bank


def test_update_settings_merges_partial(word_bank):
    engine = RoundEngine(word_bank=word_bank)
    engine.update_settings({"player_count": 6})
    engine.update_settings(mr_white_count=1, selected_category="Food")
    assert engine.settings == GameSettings(
        player_count=6, undercover_count=1, mr_white_count=1, selected_category="Food"
    )


def test_update_settings_rejects_bad_values(word_bank):
    engine = RoundEngine(word_bank=word_bank)
    with pytest.raises(InvalidSettingsError):
        engine.update_settings(player_count="5")
    with pytest.raises(InvalidSettingsError):
        engine.update_settings(selected_category="Space")
    with pytest.raises(InvalidSettingsError):
        engine.update_settings(player_count=12)
    assert engine.settings == GameSettings()


def test_update_settings_only_in_lobby(make_engine):
    engine = make_engine()
    with pytest.raises(InvalidActionError):
        engine.update_settings(player_count=5)


def test_cannot_start_without_imposters(word_bank):
    engine = RoundEngine(word_bank=word_bank)
    engine.update_settings(undercover_count=0)
    with pytest.raises(InvalidSettingsError):
        engine.set_phase(GamePhase.REGISTRATION)
    assert engine.phase == GamePhase.LOBBY


def test_illegal_phase_moves(word_bank):
    engine = RoundEngine(word_bank=word_bank)
    with pytest.raises(InvalidActionError):
        engine.set_phase(GamePhase.VOTING)
    with pytest.raises(InvalidActionError):
        engine.set_phase("game_over")
    with pytest.raises(ValueError):
        engine.set_phase("night")


def test_back_to_lobby_before_anyone_registers(word_bank):
    engine = RoundEngine(word_bank=word_bank)
    engine.set_phase("registration")
    engine.set_phase("lobby")
    assert engine.phase == GamePhase.LOBBY

    engine.set_phase("registration")
    engine.register_player("Alice", AVATAR_ICONS[0])
    with pytest.raises(InvalidActionError):
        engine.set_phase("lobby")


def test_registration_validation(word_bank):
    engine = RoundEngine(word_bank=word_bank)
    with pytest.raises(InvalidActionError):
        engine.register_player("Alice", AVATAR_ICONS[0])

    engine.set_phase(GamePhase.REGISTRATION)
    alice = engine.register_player("  Alice ", AVATAR_ICONS[0])
    assert alice.name == "Alice"
    assert alice.is_alive and alice.word is None
    assert AVATAR_ICONS[0] not in engine.available_avatars

    with pytest.raises(InvalidActionError, match="empty"):
        engine.register_player("   ", AVATAR_ICONS[1])
    with pytest.raises(InvalidActionError, match="taken"):
        engine.register_player("Bob", AVATAR_ICONS[0])
    with pytest.raises(InvalidActionError, match="Unknown avatar"):
        engine.register_player("Bob", "dragon")
    assert len(engine.players) == 1


def test_last_registration_deals_roles_in_one_update(word_bank, rng):
    engine = RoundEngine(word_bank=word_bank, rng=rng)
    engine.update_settings(player_count=5, undercover_count=1, mr_white_count=1)
    engine.set_phase(GamePhase.REGISTRATION)

    published = []
    engine.subscribe(published.append)
    for i, name in enumerate(["Alice", "Bob", "Chloe", "Dmitri", "Emeka"]):
        engine.register_player(name, AVATAR_ICONS[i])

    assert len(published) == 5
    for snapshot in published[:-1]:
        assert snapshot.current_word_pair is None
        assert len(snapshot.players) < 5

    final = published[-1]
    assert len(final.players) == 5
    assert final.current_word_pair is not None
    counts = Counter(p.role for p in final.players)
    assert counts == {CIVILIAN: 3, UNDERCOVER: 1, MR_WHITE: 1}
    for player in final.players:
        assert player.word == final.current_word_pair.word_for(player.role)
    assert engine.is_registration_complete
    assert engine.round_number == 1


def test_register_last_player_explicitly(word_bank):
    engine = RoundEngine(word_bank=word_bank)
    engine.update_settings(player_count=3, undercover_count=1)
    engine.set_phase(GamePhase.REGISTRATION)
    engine.register_player("Alice", AVATAR_ICONS[0])

    with pytest.raises(InvalidActionError, match="not the last"):
        engine.register_last_player_and_initialize("Bob", AVATAR_ICONS[1])

    engine.register_player("Bob", AVATAR_ICONS[1])
    chloe = engine.register_last_player_and_initialize("Chloe", AVATAR_ICONS[2])
    assert chloe.name == "Chloe"
    assert engine.current_word_pair is not None

    with pytest.raises(InvalidActionError):
        engine.register_player("Dmitri", AVATAR_ICONS[3])


def test_roles_follow_registration_order(word_bank):
    # Same seed, same dealing: position i of the shuffle goes to player i
    engine = RoundEngine(word_bank=word_bank, rng=random.Random(42))
    engine.update_settings(mr_white_count=1, selected_category="Places")
    engine.set_phase(GamePhase.REGISTRATION)
    for i, name in enumerate(["Alice", "Bob", "Chloe", "Dmitri"]):
        engine.register_player(name, AVATAR_ICONS[i])

    # Single-pair category: the draw consumes one number before the shuffle
    rng = random.Random(42)
    rng.choice([None])
    assert [p.role for p in engine.players] == assign_roles(4, 1, 1, rng)


def test_finish_registration(word_bank):
    engine = RoundEngine(word_bank=word_bank)
    engine.set_phase(GamePhase.REGISTRATION)
    with pytest.raises(InvalidActionError):
        engine.finish_registration()
    with pytest.raises(InvalidActionError):
        engine.set_phase(GamePhase.DISCUSSION)

    for i, name in enumerate(["Alice", "Bob", "Chloe", "Dmitri"]):
        engine.register_player(name, AVATAR_ICONS[i])
    assert engine.next_player() == 1
    engine.set_phase(GamePhase.DISCUSSION)
    assert engine.phase == GamePhase.DISCUSSION
    assert engine.current_player_index == 0


# --- Voting ---


def test_cast_vote_rejections(make_engine):
    engine = make_engine()
    alice, bob = engine.players[0], engine.players[1]

    assert not engine.cast_vote(alice.id, bob.id)  # Still in discussion
    engine.set_phase(GamePhase.VOTING)
    assert not engine.cast_vote(alice.id, alice.id)
    assert not engine.cast_vote(alice.id, "ghost")
    assert not engine.cast_vote("ghost", bob.id)
    assert engine.votes == {}

    assert engine.cast_vote(alice.id, bob.id)
    assert engine.votes == {alice.id: bob.id}


def test_dead_players_cannot_vote_or_be_voted(make_engine):
    engine = make_engine(player_count=5)
    victim = by_role(engine, CIVILIAN)[0]
    vote_out(engine, victim.id)
    engine.acknowledge_elimination()
    engine.set_phase(GamePhase.VOTING)

    other = next(p for p in engine.alive_players)
    assert not engine.cast_vote(victim.id, other.id)
    assert not engine.cast_vote(other.id, victim.id)


def test_revote_replaces_previous_choice(make_engine):
    engine = make_engine()
    a, b, c = engine.players[:3]
    engine.set_phase(GamePhase.VOTING)
    engine.cast_vote(a.id, b.id)
    engine.cast_vote(a.id, c.id)
    assert engine.votes == {a.id: c.id}


def test_tally_waits_for_every_alive_player(make_engine):
    engine = make_engine()
    a, b, c, d = engine.players
    assert engine.tally_votes() is None  # Not voting yet

    engine.set_phase(GamePhase.VOTING)
    assert engine.next_voter == a
    engine.cast_vote(a.id, b.id)
    engine.cast_vote(b.id, c.id)
    engine.cast_vote(c.id, b.id)
    assert engine.next_voter == d
    assert engine.tally_votes() is None
    assert engine.eliminated_player_id is None

    engine.cast_vote(d.id, b.id)
    assert engine.next_voter is None
    assert engine.tally_votes() == b.id
    assert engine.eliminated_player_id == b.id
    # Tallying does not eliminate by itself
    assert engine.get_player(b.id).is_alive


def test_tie_breaks_only_among_tied_players(make_engine):
    outcomes = Counter()
    for seed in range(40):
        engine = make_engine(rng=random.Random(seed))
        a, b, c, d = engine.players
        engine.set_phase(GamePhase.VOTING)
        engine.cast_vote(a.id, b.id)
        engine.cast_vote(b.id, a.id)
        engine.cast_vote(c.id, b.id)
        engine.cast_vote(d.id, a.id)
        outcomes[engine.players.index(engine.get_player(engine.tally_votes()))] += 1

    assert set(outcomes) == {0, 1}


def test_tie_break_is_reproducible_with_seed(make_engine):
    def run(seed):
        engine = make_engine(rng=random.Random(seed))
        a, b, c, d = engine.players
        engine.set_phase(GamePhase.VOTING)
        engine.cast_vote(a.id, c.id)
        engine.cast_vote(b.id, d.id)
        engine.cast_vote(c.id, d.id)
        engine.cast_vote(d.id, c.id)
        return engine.players.index(engine.get_player(engine.tally_votes()))

    assert run(11) == run(11)
    assert run(11) in (2, 3)


def test_back_to_discussion_clears_ballot(make_engine):
    engine = make_engine()
    a, b = engine.players[:2]
    engine.set_phase(GamePhase.VOTING)
    engine.cast_vote(a.id, b.id)
    engine.set_phase(GamePhase.DISCUSSION)
    assert engine.votes == {}


def test_back_to_discussion_forgets_tallied_elimination(make_engine):
    engine = make_engine()
    engine.set_phase(GamePhase.VOTING)
    target = engine.players[0]
    for voter in engine.players[1:]:
        engine.cast_vote(voter.id, target.id)
    engine.cast_vote(target.id, engine.players[1].id)
    assert engine.tally_votes() == target.id

    engine.set_phase(GamePhase.DISCUSSION)
    assert engine.eliminated_player_id is None
    assert engine.votes == {}
    assert all(p.is_alive for p in engine.players)


# --- Elimination and win conditions ---


def test_eliminate_player_branches_on_role(make_engine):
    engine = make_engine(player_count=6, undercover_count=1, mr_white_count=1)
    civilian = by_role(engine, CIVILIAN)[0]
    vote_out(engine, civilian.id)
    assert engine.phase == GamePhase.ELIMINATION
    assert not engine.get_player(civilian.id).is_alive
    assert engine.acknowledge_elimination() is None
    assert engine.phase == GamePhase.DISCUSSION

    mr_white = by_role(engine, MR_WHITE)[0]
    vote_out(engine, mr_white.id)
    assert engine.phase == GamePhase.MR_WHITE_GUESS
    assert engine.eliminated_player_id == mr_white.id


def test_eliminate_player_rejections(make_engine):
    engine = make_engine()
    target = engine.players[0]
    assert not engine.eliminate_player(target.id)  # Not voting
    engine.set_phase(GamePhase.VOTING)
    assert not engine.eliminate_player("ghost")
    assert engine.eliminate_player(target.id)
    assert engine.phase.is_reveal
    assert not engine.eliminate_player(target.id)


def test_crew_wins_four_player_game(make_engine):
    engine = make_engine(player_count=4, undercover_count=1, mr_white_count=1)
    mr_white = by_role(engine, MR_WHITE)[0]
    undercover = by_role(engine, UNDERCOVER)[0]

    vote_out(engine, mr_white.id)
    assert engine.handle_mr_white_guess("Definitely not the word") is False
    assert engine.phase == GamePhase.MR_WHITE_GUESS
    assert engine.acknowledge_elimination() is None
    assert engine.phase == GamePhase.DISCUSSION
    assert engine.round_number == 2

    vote_out(engine, undercover.id)
    result = engine.acknowledge_elimination()
    assert result == GameResult(winner="crew", reason="All imposters have been eliminated!")
    assert engine.phase == GamePhase.GAME_OVER
    assert engine.game_result == result
    assert [p.role for p in engine.alive_players] == [CIVILIAN, CIVILIAN]


def test_imposters_win_when_they_match_civilians(make_engine):
    engine = make_engine(player_count=5, undercover_count=1, mr_white_count=0)
    civilians = by_role(engine, CIVILIAN)

    vote_out(engine, civilians[0].id)
    assert engine.acknowledge_elimination() is None
    vote_out(engine, civilians[1].id)
    # 2 civilians against 1 undercover: still going
    assert engine.acknowledge_elimination() is None
    vote_out(engine, civilians[2].id)

    result = engine.acknowledge_elimination()
    assert result == GameResult(winner="imposters", reason="Imposters have taken over!")
    assert engine.phase == GamePhase.GAME_OVER


def test_imposters_win_after_second_elimination_with_four_players(make_engine):
    engine = make_engine(player_count=4, undercover_count=1)
    civilians = by_role(engine, CIVILIAN)
    vote_out(engine, civilians[0].id)
    assert engine.acknowledge_elimination() is None
    vote_out(engine, civilians[1].id)
    assert engine.acknowledge_elimination().winner == "imposters"


def test_evaluate_win_condition_is_pure(make_engine):
    engine = make_engine()
    players = engine.players
    assert evaluate_win_condition(players) is None
    assert engine.players == players


def test_check_win_condition_is_idempotent(make_engine):
    engine = make_engine(player_count=4, undercover_count=1)
    civilians = by_role(engine, CIVILIAN)
    vote_out(engine, civilians[0].id)
    engine.acknowledge_elimination()
    vote_out(engine, civilians[1].id)

    published = []
    engine.subscribe(published.append)
    first = engine.check_win_condition()
    players, votes = engine.players, dict(engine.votes)
    second = engine.check_win_condition()

    assert first == second
    assert first.winner == "imposters"
    assert len(published) == 1
    assert engine.players == players
    assert dict(engine.votes) == votes


def test_check_win_condition_without_result_changes_nothing(make_engine):
    engine = make_engine()
    published = []
    engine.subscribe(published.append)
    assert engine.check_win_condition() is None
    assert engine.check_win_condition() is None
    assert published == []
    assert engine.phase == GamePhase.DISCUSSION


def test_check_win_condition_before_dealing(word_bank):
    engine = RoundEngine(word_bank=word_bank)
    assert engine.check_win_condition() is None
    assert engine.phase == GamePhase.LOBBY


# --- Mr. White ---


@pytest.fixture
def mr_white_engine(make_engine):
    engine = make_engine(
        player_count=5, undercover_count=1, mr_white_count=1, selected_category="Places"
    )
    vote_out(engine, by_role(engine, MR_WHITE)[0].id)
    return engine


def test_mr_white_correct_guess_wins(mr_white_engine):
    assert mr_white_engine.current_word_pair.civilian == "Beach"
    assert mr_white_engine.handle_mr_white_guess(" beach ") is True
    assert mr_white_engine.phase == GamePhase.GAME_OVER
    assert mr_white_engine.game_result == GameResult(
        winner="mr_white", reason="Mr. White correctly guessed the word!"
    )
    # The stored result is kept
    assert mr_white_engine.check_win_condition().winner == "mr_white"
    assert mr_white_engine.acknowledge_elimination().winner == "mr_white"


def test_mr_white_undercover_word_is_wrong(mr_white_engine):
    assert mr_white_engine.handle_mr_white_guess("Desert") is False
    assert mr_white_engine.game_result is None
    assert mr_white_engine.phase == GamePhase.MR_WHITE_GUESS

    # Falls through to the normal check: 3 civilians against 1 undercover
    assert mr_white_engine.acknowledge_elimination() is None
    assert mr_white_engine.phase == GamePhase.DISCUSSION


def test_mr_white_gets_only_one_guess(mr_white_engine):
    assert mr_white_engine.handle_mr_white_guess("Nope") is False
    assert mr_white_engine.snapshot().mr_white_guessed

    assert mr_white_engine.handle_mr_white_guess("Beach") is False
    assert mr_white_engine.game_result is None
    assert mr_white_engine.phase == GamePhase.MR_WHITE_GUESS

    assert mr_white_engine.acknowledge_elimination() is None
    assert not mr_white_engine.snapshot().mr_white_guessed


def test_mr_white_empty_guess(mr_white_engine):
    assert mr_white_engine.handle_mr_white_guess("   ") is False
    assert mr_white_engine.phase == GamePhase.MR_WHITE_GUESS


def test_mr_white_guess_outside_guess_phase(make_engine):
    engine = make_engine(selected_category="Places")
    assert engine.handle_mr_white_guess("Beach") is False
    assert engine.game_result is None


def test_skip_mr_white_guess(mr_white_engine):
    assert mr_white_engine.skip_mr_white_guess() is None
    assert mr_white_engine.phase == GamePhase.DISCUSSION


def test_skip_only_during_guess(make_engine):
    with pytest.raises(InvalidActionError):
        make_engine().skip_mr_white_guess()


# --- Rounds and reset ---


def test_new_round_keeps_roles_and_words(make_engine):
    engine = make_engine(player_count=5)
    before = {p.id: (p.role, p.word) for p in engine.players}
    word_pair = engine.current_word_pair

    vote_out(engine, by_role(engine, CIVILIAN)[0].id)
    engine.acknowledge_elimination()

    assert engine.phase == GamePhase.DISCUSSION
    assert engine.votes == {}
    assert engine.eliminated_player_id is None
    assert engine.round_number == 2
    assert engine.current_word_pair == word_pair
    assert {p.id: (p.role, p.word) for p in engine.players} == before


def test_new_round_can_redraw_words(make_engine):
    engine = make_engine(player_count=5, selected_category="Food", redraw_words_each_round=True)
    first = engine.current_word_pair
    roles = {p.id: p.role for p in engine.players}

    vote_out(engine, by_role(engine, CIVILIAN)[0].id)
    engine.acknowledge_elimination()

    second = engine.current_word_pair
    assert second != first
    assert second.category == "Food"
    assert {p.id: p.role for p in engine.players} == roles
    for player in engine.alive_players:
        assert player.word == second.word_for(player.role)


def test_start_new_round_refuses_a_decided_game(make_engine):
    engine = make_engine(player_count=4, undercover_count=1)
    civilians = by_role(engine, CIVILIAN)
    vote_out(engine, civilians[0].id)
    engine.acknowledge_elimination()
    vote_out(engine, civilians[1].id)
    with pytest.raises(InvalidActionError, match="decided"):
        engine.start_new_round()


def test_no_actions_after_game_over(make_engine):
    engine = make_engine(player_count=4, undercover_count=1)
    civilians = by_role(engine, CIVILIAN)
    vote_out(engine, civilians[0].id)
    engine.acknowledge_elimination()
    vote_out(engine, civilians[1].id)
    engine.acknowledge_elimination()

    with pytest.raises(InvalidActionError):
        engine.start_new_round()
    with pytest.raises(InvalidActionError):
        engine.set_phase(GamePhase.DISCUSSION)
    assert not engine.cast_vote(engine.players[0].id, engine.players[1].id)


def test_reset_game(make_engine):
    engine = make_engine(player_count=5, mr_white_count=1)
    vote_out(engine, engine.players[0].id)
    engine.reset_game()

    snapshot = engine.snapshot()
    assert snapshot.phase == GamePhase.LOBBY
    assert snapshot.players == ()
    assert snapshot.settings == GameSettings()
    assert snapshot.current_word_pair is None
    assert snapshot.votes == {}
    assert snapshot.eliminated_player_id is None
    assert snapshot.game_result is None
    assert snapshot.round_number == 0


def test_snapshots_are_read_only(make_engine):
    engine = make_engine()
    snapshot = engine.snapshot()
    with pytest.raises(AttributeError):
        snapshot.phase = GamePhase.GAME_OVER
    with pytest.raises(AttributeError):
        snapshot.players[0].is_alive = False
    with pytest.raises(TypeError):
        snapshot.votes["x"] = "y"


def test_unsubscribe(make_engine):
    engine = make_engine()
    published = []
    unsubscribe = engine.subscribe(published.append)
    engine.set_phase(GamePhase.VOTING)
    unsubscribe()
    engine.set_phase(GamePhase.DISCUSSION)
    assert [s.phase for s in published] == [GamePhase.VOTING]


def test_game_result_only_in_game_over(make_engine):
    engine = make_engine(player_count=4, undercover_count=1, mr_white_count=1)
    phases = []
    engine.subscribe(lambda s: phases.append((s.phase, s.game_result is not None)))

    vote_out(engine, by_role(engine, MR_WHITE)[0].id)
    engine.skip_mr_white_guess()
    vote_out(engine, by_role(engine, UNDERCOVER)[0].id)
    engine.acknowledge_elimination()

    for phase, has_result in phases:
        assert has_result == (phase == GamePhase.GAME_OVER)
    assert phases[-1] == (GamePhase.GAME_OVER, True)
