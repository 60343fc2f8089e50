"""
Engine: phases.py
Rôle:
- Cycle de vie d'une partie : active → voting → results (+ réouverture results → voting).
- Vote "pire cadeau" (downvotes) autorisé uniquement pendant `voting`.

Échéance du vote:
- `voting_ends_at` est la donnée de référence ; le moteur ne bloque jamais.
  Un ordonnanceur de confiance (watcher serveur, poll client) appelle
  `EndVoting(only_if_expired=True)` quand il estime l'échéance passée.
"""
from __future__ import annotations

from typing import Optional

from app.models.actions import Downvote, EndGame, EndVoting, ReopenVoting, SetPhase
from app.models.game import PHASE_ACTIVE, PHASE_RESULTS, PHASE_VOTING, Game
from .errors import InvalidInput, InvalidPhaseTransition, NotFound


def voting_expired(game: Game, now: int) -> bool:
    """True si le vote est ouvert et que son échéance est atteinte."""
    return (
        game.phase == PHASE_VOTING
        and game.voting_ends_at is not None
        and game.voting_ends_at <= now
    )


def _require_phase(game: Game, expected: str, operation: str) -> None:
    if game.phase != expected:
        raise InvalidPhaseTransition(f"{operation} requires phase '{expected}' (current: '{game.phase}')")


def _open_voting(game: Game, duration_seconds: int, now: int) -> None:
    game.phase = PHASE_VOTING
    game.voting_ends_at = now + duration_seconds * 1000


def _close(game: Game, now: int, reason: str) -> None:
    game.phase = PHASE_RESULTS
    game.voting_ends_at = None
    game.log("phase_changed", "Results are in", now, phase=PHASE_RESULTS, reason=reason)


def end_game(game: Game, action: EndGame, now: int) -> Game:
    _require_phase(game, PHASE_ACTIVE, "end_game")
    for participant in game.participants:
        participant.turn_start_time = None
    if action.voting_duration_seconds:
        _open_voting(game, action.voting_duration_seconds, now)
        game.log("phase_changed", "Worst-gift voting is open", now,
                 phase=PHASE_VOTING, voting_ends_at=game.voting_ends_at)
    else:
        _close(game, now, reason="end_game")
    return game


def end_voting(game: Game, action: EndVoting, now: int) -> Game:
    _require_phase(game, PHASE_VOTING, "end_voting")
    if action.only_if_expired and not voting_expired(game, now):
        raise InvalidPhaseTransition("Voting deadline has not passed yet")
    _close(game, now, reason="deadline" if action.only_if_expired else "manual")
    return game


def reopen_voting(game: Game, action: ReopenVoting, now: int) -> Game:
    _require_phase(game, PHASE_RESULTS, "reopen_voting")
    _open_voting(game, action.duration_seconds, now)
    game.log("phase_changed", "Voting was reopened", now,
             phase=PHASE_VOTING, voting_ends_at=game.voting_ends_at)
    return game


def set_phase(game: Game, action: SetPhase, now: int, default_duration: Optional[int] = None) -> Game:
    """
    Traduit la demande admin "passer en <phase>" vers la transition légale :
      - voting  depuis active  → end_game(durée)
      - voting  depuis results → reopen_voting(durée)
      - results depuis active  → end_game(sans durée)
      - results depuis voting  → end_voting()
    """
    if action.phase == PHASE_VOTING:
        duration = action.duration_seconds or default_duration
        if not duration:
            raise InvalidInput("duration_seconds is required to open voting")
        if game.phase == PHASE_RESULTS:
            return reopen_voting(game, ReopenVoting(duration_seconds=duration), now)
        return end_game(game, EndGame(voting_duration_seconds=duration), now)

    if game.phase == PHASE_VOTING:
        return end_voting(game, EndVoting(), now)
    return end_game(game, EndGame(), now)


def downvote(game: Game, action: Downvote, now: int) -> Game:
    _require_phase(game, PHASE_VOTING, "downvote")
    voter_id = (action.voter_id or "").strip()
    if not voter_id:
        raise InvalidInput("voter_id must be a non-empty string")
    gift = game.find_gift(action.gift_id)
    if gift is None:
        raise NotFound(f"Gift {action.gift_id} not found")

    present = voter_id in gift.downvotes
    wanted = (not present) if action.value is None else action.value
    if wanted and not present:
        gift.downvotes.append(voter_id)
    elif not wanted and present:
        gift.downvotes.remove(voter_id)
    return game
