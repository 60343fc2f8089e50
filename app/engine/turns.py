"""
Engine: turns.py
Rôle:
- Déterminer qui peut agir maintenant (slots actifs).

Priorité:
1) Les victimes (joueurs venant de se faire voler) sont toujours actives.
2) Les slots restants (`active_player_count` - victimes) vont à la file d'attente,
   triée par numéro de passage, à partir de `current_turn`.

Fonctions pures, sans I/O ; `refresh_turn_timers` modifie le snapshot reçu.
"""
from __future__ import annotations

from typing import List, Optional

from app.models.game import Game, Participant


def pending_victims(game: Game) -> List[Participant]:
    return [p for p in game.participants if p.is_victim and p.status != "done"]


def _queue(game: Game) -> List[Participant]:
    waiting = [
        p for p in game.participants
        if p.status == "waiting" and not p.is_victim and p.number >= game.current_turn
    ]
    return sorted(waiting, key=lambda p: p.number)


def active_participant_ids(game: Game) -> List[str]:
    """IDs actifs : victimes d'abord, puis la tranche de file qui tient dans les slots."""
    victims = pending_victims(game)
    slots_for_queue = max(0, game.settings.active_player_count - len(victims))
    queue = _queue(game)[:slots_for_queue]
    return [p.id for p in victims] + [p.id for p in queue]


def is_active(game: Game, participant_id: str) -> bool:
    participant = game.find_participant(participant_id)
    if participant is None or participant.status == "done":
        return False
    if participant.is_victim:
        return True
    return participant_id in active_participant_ids(game)


def queue_head(game: Game) -> Optional[Participant]:
    """Premier joueur de la file normale (hors victimes), ou None."""
    queue = _queue(game)
    return queue[0] if queue else None


def refresh_turn_timers(game: Game, now: int) -> None:
    """
    Démarre le chrono des joueurs qui viennent de devenir actifs
    et efface celui des joueurs qui ne le sont plus.
    """
    active_ids = set(active_participant_ids(game))
    for participant in game.participants:
        if participant.id in active_ids:
            if not participant.turn_start_time:
                participant.turn_start_time = now
        else:
            participant.turn_start_time = None
