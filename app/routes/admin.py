"""
Module routes/admin.py
Rôle:
- Administration globale des parties (super-admin) : liste, suppression, purge.
- Protégé par `admin_required` sur tout le router.

Remarques:
- La suppression ferme aussi les sockets abonnées à la partie.
- Les fichiers d'images (gérés par le service d'upload) ne sont pas touchés ici.
"""
from fastapi import APIRouter, Depends, HTTPException

from app.deps.auth import admin_required
from app.engine.errors import GameError
from app.services.game_service import GameService, get_game_service
from app.services.ws_manager import WS, ws_close_game_safe

router = APIRouter(
    prefix="/api/admin",
    tags=["admin"],
    dependencies=[Depends(admin_required)],  # ← garde-fou admin sur tout le router
)


@router.get("/games")
def list_games(service: GameService = Depends(get_game_service)):
    """Toutes les parties, les plus récemment actives d'abord."""
    return {"games": service.list_games()}


@router.get("/ws")
def ws_stats():
    """Abonnés WebSocket par partie (diagnostic)."""
    return WS.stats()


@router.delete("/games/{game_id}")
def delete_game(game_id: str, service: GameService = Depends(get_game_service)):
    try:
        removed = service.delete(game_id)
    except GameError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.to_dict()) from exc
    if not removed:
        raise HTTPException(status_code=404, detail={"error": "not_found", "message": f"Game {game_id} not found"})
    ws_close_game_safe(game_id)
    return {"ok": True, "deleted": game_id}


@router.delete("/flush")
def flush_games(service: GameService = Depends(get_game_service)):
    """Supprime TOUTES les parties (option nucléaire)."""
    count = service.flush()
    return {"ok": True, "count": count}
