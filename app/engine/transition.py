"""
Engine: transition.py (fonctions pures).

`apply(game, action, now)` est l'unique point de transition :
- travaille sur une copie profonde du snapshot reçu (l'original n'est jamais touché),
- lève une `GameError` si l'action est refusée,
- sinon renvoie le snapshot suivant avec `version + 1` et `last_activity = now`.
"""
from __future__ import annotations

from typing import Callable, Dict, Optional

from app.config.settings import settings
from app.models.actions import Action
from app.models.game import Game, now_ms
from . import phases, processor
from .errors import InvalidInput

Handler = Callable[[Game, object, int], Game]


def _set_phase(game: Game, action, now: int) -> Game:
    return phases.set_phase(game, action, now, default_duration=settings.DEFAULT_VOTING_SECONDS)


HANDLERS: Dict[str, Handler] = {
    "add_participant": processor.add_participant,
    "open_gift": processor.open_gift,
    "steal_gift": processor.steal_gift,
    "skip_turn": processor.skip_turn,
    "reset_timer": processor.reset_timer,
    "edit_gift": processor.edit_gift,
    "update_settings": processor.update_settings,
    "add_image": processor.add_image,
    "remove_image": processor.remove_image,
    "set_primary_image": processor.set_primary_image,
    "reset_game": processor.reset_game,
    "end_game": phases.end_game,
    "end_voting": phases.end_voting,
    "reopen_voting": phases.reopen_voting,
    "set_phase": _set_phase,
    "downvote": phases.downvote,
}


def apply(game: Game, action: Action, now: Optional[int] = None) -> Game:
    handler = HANDLERS.get(getattr(action, "type", None))
    if handler is None:
        raise InvalidInput(f"Unknown action {action!r}")
    ts = now if now is not None else now_ms()

    draft = game.model_copy(deep=True)
    result = handler(draft, action, ts)
    result.version = game.version + 1
    result.last_activity = ts
    return result
