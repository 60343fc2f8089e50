"""
Module routes/health.py
Rôle:
- Endpoint de santé (service OK + backend de stockage joignable).
"""
from fastapi import APIRouter, Depends

from app.config.settings import settings
from app.services.game_service import GameService, get_game_service

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
def health(service: GameService = Depends(get_game_service)):
    """Renvoie un OK minimal avec le nom de service et le nombre de parties stockées."""
    try:
        games = len(service.store.list_ids())
    except OSError as e:
        return {"ok": False, "service": settings.APP_NAME, "store": settings.STORE_BACKEND, "error": str(e)}
    return {"ok": True, "service": settings.APP_NAME, "store": settings.STORE_BACKEND, "games": games}
