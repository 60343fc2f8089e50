# app/routes/websocket.py
"""
WebSocket endpoint.

- /ws/{game_id} : abonnement d'un client (console, écran partagé, mobile) à une partie.
  * à la connexion : crée la partie si besoin et envoie le snapshot courant (type=state_update),
  * ensuite : chaque snapshot publié par GameService,
  * ping/pong pour heartbeat, "refresh" pour redemander l'état.
"""
from __future__ import annotations

import json

import anyio
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from app.engine.errors import GameError
from app.services.game_service import GameService, get_game_service
from app.services.ws_manager import STATE_UPDATE, WS

router = APIRouter()


@router.websocket("/ws/{game_id}")
async def websocket_game_stream(ws: WebSocket, game_id: str, service: GameService = Depends(get_game_service)):
    try:
        game = await anyio.to_thread.run_sync(service.ensure, game_id)
    except GameError as exc:
        await ws.accept()
        await ws.send_json({"type": "error", **exc.to_dict()})
        await ws.close(code=1008)
        return

    await WS.connect(ws, game.id)
    await WS.send_json(ws, {"type": STATE_UPDATE, "game_id": game.id, "payload": game.to_dict()})
    try:
        while True:
            raw = await ws.receive_text()
            try:
                msg = json.loads(raw)
            except json.JSONDecodeError:
                # Message non JSON -> ignore
                continue

            mtype = msg.get("type") if isinstance(msg, dict) else None
            if mtype == "ping":
                await WS.send_json(ws, {"type": "pong"})
            elif mtype == "refresh":
                try:
                    current = await anyio.to_thread.run_sync(service.get, game.id)
                except GameError as exc:
                    await WS.send_json(ws, {"type": "error", **exc.to_dict()})
                    continue
                await WS.send_json(ws, {"type": STATE_UPDATE, "game_id": game.id, "payload": current.to_dict()})
            else:
                await WS.send_json(ws, {"type": "ack", "received": msg})
    except WebSocketDisconnect:
        pass
    finally:
        WS.unsubscribe(ws)
