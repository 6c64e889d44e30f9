"""Helpers for driving an engine through rounds in tests."""

from undercover.engine.game import RoundEngine
from undercover.engine.phases import GamePhase


def by_role(engine: RoundEngine, role: str, alive_only: bool = True):
    """Players holding role, in registration order."""
    return [p for p in engine.players if p.role == role and (p.is_alive or not alive_only)]


def vote_out(engine: RoundEngine, target_id: str) -> str:
    """Have every alive player vote so that target_id is eliminated."""
    if engine.phase == GamePhase.DISCUSSION:
        engine.set_phase(GamePhase.VOTING)
    alive = engine.alive_players
    for voter in alive:
        if voter.id == target_id:
            other = next(p for p in alive if p.id != target_id)
            assert engine.cast_vote(voter.id, other.id)
        else:
            assert engine.cast_vote(voter.id, target_id)
    eliminated = engine.tally_votes()
    assert eliminated == target_id
    assert engine.eliminate_player(eliminated)
    return eliminated
