# app/services/ws_manager.py
"""
Service: ws_manager.py
- Mapping game_id -> sockets ET socket -> game_id (ws_to_game).
- Abonnement idempotent (déplacement du socket si le client change de partie).
- Snapshots immuables pour éviter "set changed size during iteration".
- publish(game_id, snapshot) : fan-out "fire-and-forget", les sockets mortes sont retirées.
- Admin: stats(), close_game(), close_all().
"""
from __future__ import annotations
from typing import Dict, Set, Any
from dataclasses import dataclass, field
from threading import RLock
import asyncio
import logging

import anyio
import orjson
from starlette.websockets import WebSocket

logger = logging.getLogger(__name__)

STATE_UPDATE = "state_update"


@dataclass
class WSManager:
    _lock: RLock = field(default_factory=RLock, init=False, repr=False)
    # game_id -> set(WebSocket)
    clients_by_game: Dict[str, Set[WebSocket]] = field(default_factory=dict)
    # reverse map: socket -> game_id
    ws_to_game: Dict[WebSocket, str] = field(default_factory=dict)

    async def connect(self, ws: WebSocket, game_id: str) -> None:
        """Accepte la connexion WS et l'abonne à la partie."""
        await ws.accept()
        self.subscribe(ws, game_id)

    def subscribe(self, ws: WebSocket, game_id: str) -> None:
        """Associe un WebSocket à une partie (le retire de la précédente si besoin)."""
        with self._lock:
            self._unlink_nolock(ws)
            self.clients_by_game.setdefault(game_id, set()).add(ws)
            self.ws_to_game[ws] = game_id

    def _unlink_nolock(self, ws: WebSocket) -> None:
        prev_gid = self.ws_to_game.pop(ws, None)
        if prev_gid:
            bucket = self.clients_by_game.get(prev_gid)
            if bucket and ws in bucket:
                bucket.discard(ws)
                if not bucket:
                    self.clients_by_game.pop(prev_gid, None)

    def unsubscribe(self, ws: WebSocket) -> None:
        with self._lock:
            self._unlink_nolock(ws)

    async def disconnect(self, ws: WebSocket) -> None:
        """Ferme proprement la connexion et nettoie les registres."""
        self.unsubscribe(ws)
        try:
            await ws.close()
        except RuntimeError:
            # socket déjà fermée côté client
            pass

    async def _send_json_one(self, ws: WebSocket, payload: Any) -> bool:
        """Envoie à un WS; renvoie True si succès, sinon False (et retire le WS mort)."""
        try:
            await ws.send_text(orjson.dumps(payload).decode("utf-8"))
            return True
        except Exception:
            logger.info("Dropping dead websocket", extra={"game_id": self.ws_to_game.get(ws)})
            self.unsubscribe(ws)
            return False

    async def send_json(self, ws: WebSocket, payload: Any) -> bool:
        return await self._send_json_one(ws, payload)

    # ---------- snapshots immuables ----------
    def _snapshot_game(self, game_id: str) -> list[WebSocket]:
        with self._lock:
            return list(self.clients_by_game.get(game_id, set()))

    def _snapshot_all(self) -> list[WebSocket]:
        with self._lock:
            result: list[WebSocket] = []
            for bucket in self.clients_by_game.values():
                result.extend(list(bucket))
            return result

    # ---------- envois ----------
    async def publish(self, game_id: str, snapshot: Dict[str, Any]) -> int:
        """Diffuse le snapshot complet à tous les abonnés de la partie."""
        return await self.publish_type(game_id, STATE_UPDATE, snapshot)

    async def publish_type(self, game_id: str, event_type: str, payload: Any) -> int:
        conns = self._snapshot_game(game_id)
        success = 0
        for ws in conns:
            if await self._send_json_one(ws, {"type": event_type, "game_id": game_id, "payload": payload}):
                success += 1
        logger.debug("WS publish", extra={"game_id": game_id, "event_type": event_type,
                                          "delivered": success, "subscribers": len(conns)})
        return success

    # ---------- admin ----------
    def stats(self) -> dict:
        with self._lock:
            by_game = {gid: len(conns) for gid, conns in self.clients_by_game.items()}
            return {"games": by_game, "subscribers_total": sum(by_game.values())}

    async def close_game(self, game_id: str) -> int:
        """Ferme toutes les sockets abonnées à une partie (ex: partie supprimée)."""
        conns = self._snapshot_game(game_id)
        for ws in conns:
            await self.disconnect(ws)
        return len(conns)

    async def close_all(self) -> dict:
        conns = self._snapshot_all()
        for ws in conns:
            await self.disconnect(ws)
        return self.stats()


WS = WSManager()

# =====================================================
# WRAPPERS THREAD-SAFE (utilisables depuis routes sync)
# =====================================================

def _run_async(coro):
    """
    Exécute une coroutine depuis un contexte potentiellement synchrone.
    - Essaie anyio.from_thread.run si on est dans un worker anyio (run_in_threadpool).
    - Sinon, planifie sur la loop courante si elle tourne, ou crée une loop.
    """
    async def _runner():
        return await coro

    try:
        # cas FastAPI sync -> route exécutée dans un thread anyio
        return anyio.from_thread.run(_runner)
    except RuntimeError:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None
        if loop is not None:
            loop.create_task(_runner())  # fire-and-forget
            return None
        return asyncio.run(_runner())


def ws_publish_safe(game_id: str, snapshot: Dict[str, Any]) -> None:
    """Wrapper synchrone : publie le snapshot d'une partie à ses abonnés."""
    _run_async(WS.publish(game_id, snapshot))


def ws_close_game_safe(game_id: str) -> None:
    _run_async(WS.close_game(game_id))
