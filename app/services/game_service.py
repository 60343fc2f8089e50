"""
Service: game_service.py
Rôle:
- Exécuter une action sur une partie de façon atomique :
  verrou par partie → load → engine.apply → save(version attendue) → publish.
- Relancer (borné) si le store signale une écriture concurrente, en revalidant
  l'action sur le snapshot fraîchement rechargé.
- Créer une partie à la première référence, la lister, la supprimer.

Intégrations:
- Store: `app.services.game_store` (file / memory).
- Diffusion: `ws_publish_safe(game_id, snapshot)` par défaut (injectable).
- Watcher de vote: notifié après chaque sauvegarde via `on_saved`.
"""
from __future__ import annotations

import logging
from threading import RLock
from typing import Any, Callable, Dict, List, Optional

from app.config.settings import settings
from app.engine.transition import apply
from app.engine.errors import ConcurrentModification, GameError, NotFound
from app.models.actions import Action, EndVoting
from app.models.game import Game, default_game, now_ms
from .game_store import GameStore, build_store, validate_game_id
from .ws_manager import ws_publish_safe

logger = logging.getLogger(__name__)

Publisher = Callable[[str, Dict[str, Any]], None]
SavedHook = Callable[[Game], None]


class GameService:
    def __init__(
        self,
        store: GameStore,
        *,
        publisher: Optional[Publisher] = None,
        max_attempts: Optional[int] = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.store = store
        self.publisher = publisher
        self.max_attempts = max(1, max_attempts or settings.SAVE_MAX_ATTEMPTS)
        self.clock = clock
        self.on_saved: List[SavedHook] = []
        self._locks: Dict[str, RLock] = {}
        self._locks_guard = RLock()

    # -----------------------------
    # Verrous par partie
    # -----------------------------
    def _lock_for(self, game_id: str) -> RLock:
        with self._locks_guard:
            lock = self._locks.get(game_id)
            if lock is None:
                lock = RLock()
                self._locks[game_id] = lock
            return lock

    def _after_save(self, game: Game) -> None:
        for hook in self.on_saved:
            hook(game)
        if self.publisher is not None:
            try:
                self.publisher(game.id, game.to_dict())
            except Exception:
                # diffusion best-effort : l'état est déjà persisté
                logger.warning("Broadcast failed", exc_info=True, extra={"game_id": game.id})

    # -----------------------------
    # Lecture / cycle de vie
    # -----------------------------
    def get(self, game_id: str) -> Game:
        return self.store.load(validate_game_id(game_id))

    def ensure(self, game_id: str) -> Game:
        """Retourne la partie, en la créant (état par défaut) si elle n'existe pas."""
        gid = validate_game_id(game_id)
        with self._lock_for(gid):
            try:
                return self.store.load(gid)
            except NotFound:
                game = default_game(gid, self.clock())
            try:
                self.store.save(game, expected_version=None)
            except ConcurrentModification:
                # créée entre-temps par un autre worker
                return self.store.load(gid)
            logger.info("Game created", extra={"game_id": gid})
        self._after_save(game)
        return game

    def delete(self, game_id: str) -> bool:
        gid = validate_game_id(game_id)
        with self._lock_for(gid):
            removed = self.store.delete(gid)
        with self._locks_guard:
            self._locks.pop(gid, None)
        logger.info("Game deleted", extra={"game_id": gid, "removed": removed})
        return removed

    def flush(self) -> int:
        ids = self.store.list_ids()
        for gid in ids:
            self.delete(gid)
        return len(ids)

    def list_games(self) -> List[Dict[str, Any]]:
        """Résumé de toutes les parties, les plus récemment actives d'abord."""
        games: List[Dict[str, Any]] = []
        for gid in self.store.list_ids():
            try:
                game = self.store.load(gid)
            except NotFound:
                continue  # supprimée entre-temps
            games.append({
                "id": game.id,
                "players": len(game.participants),
                "gifts": len(game.gifts),
                "created_at": game.created_at,
                "last_activity": game.last_activity,
                "phase": game.phase,
            })
        games.sort(key=lambda g: g["last_activity"], reverse=True)
        return games

    # -----------------------------
    # Actions
    # -----------------------------
    def execute(self, game_id: str, action: Action) -> Game:
        """
        Applique `action` à la dernière version de la partie et persiste le résultat.
        Lève la `GameError` du moteur telle quelle ; `ConcurrentModification` après
        `max_attempts` conflits consécutifs.
        La diffusion a lieu une fois le verrou relâché : un abonné lent ne bloque
        pas les actions suivantes (les clients ordonnent par `version`).
        """
        gid = validate_game_id(game_id)
        with self._lock_for(gid):
            nxt = self._apply_with_retry(gid, action)
        self._after_save(nxt)
        return nxt

    def _apply_with_retry(self, gid: str, action: Action) -> Game:
        for attempt in range(1, self.max_attempts + 1):
            current = self.store.load(gid)
            try:
                nxt = apply(current, action, self.clock())
            except GameError as exc:
                logger.info(
                    "Action rejected",
                    extra={"game_id": gid, "action": action.type, "error": exc.code},
                )
                raise
            try:
                self.store.save(nxt, expected_version=current.version)
            except ConcurrentModification:
                logger.warning(
                    "Concurrent write, retrying",
                    extra={"game_id": gid, "action": action.type, "attempt": attempt},
                )
                continue
            logger.info(
                "Action applied",
                extra={"game_id": gid, "action": action.type, "version": nxt.version},
            )
            return nxt
        raise ConcurrentModification(f"Game {gid} kept changing after {self.max_attempts} attempts")

    def close_expired_voting(self, game_id: str) -> Optional[Game]:
        """Clôt le vote si l'échéance est passée ; None si rien à faire."""
        try:
            return self.execute(game_id, EndVoting(only_if_expired=True))
        except GameError:
            return None


# -----------------------------
# Singleton global
# -----------------------------
_instance: Optional[GameService] = None


def get_game_service() -> GameService:
    """Instance unique pour tout le backend (lazy) ; utilisable comme dépendance FastAPI."""
    global _instance
    if _instance is None:
        _instance = GameService(build_store(), publisher=ws_publish_safe)
    return _instance
