"""
Application FastAPI : point d'entrée
====================================

Rôle
----
- Instancie l'app FastAPI, configure le CORS pour les fronts (console, écran, mobiles),
- Monte les routeurs (REST + WebSocket),
- Démarre le watcher de clôture automatique du vote,
- Affiche la configuration et la liste des routes au démarrage.

Notes
-----
- Le router admin est monté AVANT le router des parties (préfixe /api commun).
- ⚠️ Le middleware CORS doit être ajouté AVANT les include_router.
"""
import logging

import anyio
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.routes.admin import router as admin_router
from app.routes.games import router as games_router
from app.routes.health import router as health_router
from app.routes.websocket import router as ws_router

from app.config.settings import settings
from app.services.game_service import get_game_service
from app.services.voting_watcher import get_voting_watcher
from app.services.ws_manager import WS

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# --- App FastAPI principale  ---
app = FastAPI(title="Elephant Exchange Backend")

# ===========================
# CORS
# ===========================
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,   # ← whitelist des frontends autorisés
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],             # ← dont Authorization
)

# ===========================
# Montage des routers
# ===========================
app.include_router(admin_router)
app.include_router(games_router)
app.include_router(ws_router)                  # WebSocket endpoint (/ws/{game_id})
app.include_router(health_router)


# --- Racine utile pour "ping" simple (sans /health) ---
@app.get("/")
async def root():
    """Ping basique : permet de vérifier que l'app tourne."""
    return {"ok": True, "service": "elephant-exchange-backend"}


# --- Hooks de cycle de vie ---
@app.on_event("startup")
async def startup():
    """
    Au démarrage:
    - démarre le watcher de vote (si VOTING_AUTO_CLOSE), amorcé depuis le store,
    - liste les routes (path + méthodes) dans la console (diagnostic).
    """
    print("== Store ==", settings.STORE_BACKEND, settings.DATA_DIR)
    if settings.VOTING_AUTO_CLOSE:
        watcher = get_voting_watcher(get_game_service())
        pending = await anyio.to_thread.run_sync(watcher.seed)
        watcher.start()
        print(f"== Voting watcher == every {watcher.interval}s, {pending} open vote(s)")
    print("== Registered routes ==")
    for r in app.routes:
        methods = getattr(r, "methods", None) or {"WS"}
        print(r.path, methods)


@app.on_event("shutdown")
async def shutdown():
    if settings.VOTING_AUTO_CLOSE:
        await get_voting_watcher(get_game_service()).stop()
    # ferme proprement les écrans/mobiles encore abonnés
    await WS.close_all()
