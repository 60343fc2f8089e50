"""
Service: voting_watcher.py
Rôle:
- Clore automatiquement le vote "pire cadeau" quand `voting_ends_at` est atteint.

Fonctionnement:
- Registre {game_id: voting_ends_at} alimenté par GameService après chaque sauvegarde
  (hook `track`) et amorcé depuis le store au démarrage (`seed`).
- Boucle asyncio non bloquante (tick toutes les `VOTING_WATCH_INTERVAL` secondes) ;
  la clôture passe par `EndVoting(only_if_expired=True)` dans un thread worker,
  donc revalidée sur l'état courant (une réouverture entre-temps est respectée).

API:
- WATCHER.track(game), WATCHER.seed(), WATCHER.expired(now), WATCHER.tick()
- WATCHER.start(), WATCHER.stop()
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from threading import RLock
from typing import Dict, List, Optional

import anyio

from app.config.settings import settings
from app.engine.errors import NotFound
from app.models.game import PHASE_VOTING, Game
from .game_service import GameService

logger = logging.getLogger(__name__)


@dataclass
class VotingWatcher:
    service: GameService
    interval: float = field(default_factory=lambda: settings.VOTING_WATCH_INTERVAL)
    _lock: RLock = field(default_factory=RLock, init=False, repr=False)
    _deadlines: Dict[str, int] = field(default_factory=dict, init=False)
    _task: Optional[asyncio.Task] = field(default=None, init=False, repr=False)

    # === registre ===
    def track(self, game: Game) -> None:
        with self._lock:
            if game.phase == PHASE_VOTING and game.voting_ends_at is not None:
                self._deadlines[game.id] = game.voting_ends_at
            else:
                self._deadlines.pop(game.id, None)

    def seed(self) -> int:
        """Recharge les échéances de toutes les parties connues (après redémarrage)."""
        for gid in self.service.store.list_ids():
            try:
                self.track(self.service.store.load(gid))
            except NotFound:
                continue
        with self._lock:
            return len(self._deadlines)

    def expired(self, now: int) -> List[str]:
        with self._lock:
            return [gid for gid, deadline in self._deadlines.items() if deadline <= now]

    def pending(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._deadlines)

    def tick(self, now: Optional[int] = None) -> List[str]:
        """Clôt les votes échus ; renvoie les game_ids effectivement passés en results."""
        closed: List[str] = []
        for gid in self.expired(now if now is not None else self.service.clock()):
            game = self.service.close_expired_voting(gid)
            if game is None:
                # partie supprimée, déjà close ou rouverte : on resynchronise le registre
                try:
                    self.track(self.service.store.load(gid))
                except NotFound:
                    with self._lock:
                        self._deadlines.pop(gid, None)
                continue
            logger.info("Voting closed at deadline", extra={"game_id": gid})
            closed.append(gid)
        return closed

    # === boucle ===
    async def _run(self) -> None:
        try:
            while True:
                await asyncio.sleep(self.interval)
                if self.expired(self.service.clock()):
                    await anyio.to_thread.run_sync(self.tick)
        except asyncio.CancelledError:
            return

    def start(self) -> None:
        """Démarre la boucle (à appeler depuis la loop de l'application)."""
        if self._task and not self._task.done():
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> None:
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None


_watcher: Optional[VotingWatcher] = None


def get_voting_watcher(service: GameService) -> VotingWatcher:
    """Watcher unique branché sur le service (hook `on_saved` enregistré une fois)."""
    global _watcher
    if _watcher is None or _watcher.service is not service:
        _watcher = VotingWatcher(service=service)
        service.on_saved.append(_watcher.track)
    return _watcher
