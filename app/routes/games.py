"""
Module routes/games.py
Rôle:
- Endpoints d'une partie : création, état, joueurs, ouverture/vol, réglages,
  images, phases, vote.

Intégrations:
- GameService (Depends(get_game_service)) : load → apply → save → publish.
- admin_required : toutes les mutations sauf le vote public et l'expiration.

Réponses:
- Succès : {"ok": true, "state": <snapshot complet>} (+ champs utiles selon la route).
- Refus moteur : HTTPException(status, detail={"error": code, "message": ...}).
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from app.deps.auth import admin_required
from app.engine.errors import GameError
from app.models.actions import (
    AddGiftImage,
    AddParticipant,
    Downvote,
    EditGiftDescription,
    EndVoting,
    OpenGift,
    RemoveGiftImage,
    ResetGame,
    ResetTimer,
    SetPhase,
    SetPrimaryImage,
    SkipTurn,
    StealGift,
    UpdateSettings,
)
from app.models.game import Game
from app.services.game_service import GameService, get_game_service

router = APIRouter(prefix="/api", tags=["games"])
admin = [Depends(admin_required)]


# ---------------------------------------------------------------------------
# Modèles Pydantic (payloads)
# ---------------------------------------------------------------------------
class CreatePayload(BaseModel):
    game_id: str


class ParticipantPayload(BaseModel):
    name: Optional[str] = None
    number: Optional[int] = Field(None, ge=1)


class OpenPayload(BaseModel):
    participant_id: str
    description: str


class StealPayload(BaseModel):
    thief_id: str
    gift_id: str


class GiftEditPayload(BaseModel):
    description: str


class ImagePayload(BaseModel):
    path: str = Field(..., description="Chemin public déjà attribué par le service d'upload")
    image_id: Optional[str] = None
    uploader: Optional[str] = None
    timestamp: Optional[int] = None


class PrimaryImagePayload(BaseModel):
    image_id: str


class VotingPayload(BaseModel):
    duration_seconds: Optional[int] = Field(None, ge=1)


class VotePayload(BaseModel):
    gift_id: str
    voter_id: str
    value: Optional[bool] = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _http_error(exc: GameError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.to_dict())


def _run(service: GameService, game_id: str, action) -> Game:
    try:
        return service.execute(game_id, action)
    except GameError as exc:
        raise _http_error(exc) from exc


def _ok(game: Game, **extra) -> dict:
    return {"ok": True, **extra, "state": game.to_dict()}


# ---------------------------------------------------------------------------
# Cycle de vie
# ---------------------------------------------------------------------------
@router.post("/create", dependencies=admin)
def create_game(payload: CreatePayload, service: GameService = Depends(get_game_service)):
    """Crée la partie si elle n'existe pas encore (idempotent)."""
    try:
        game = service.ensure(payload.game_id)
    except GameError as exc:
        raise _http_error(exc) from exc
    return _ok(game, game_id=game.id)


@router.get("/{game_id}/state")
def get_state(game_id: str, service: GameService = Depends(get_game_service)):
    """Snapshot complet (lecture publique : écran partagé, mobiles)."""
    try:
        return service.get(game_id).to_dict()
    except GameError as exc:
        raise _http_error(exc) from exc


@router.post("/{game_id}/reset", dependencies=admin)
def reset_game(game_id: str, service: GameService = Depends(get_game_service)):
    return _ok(_run(service, game_id, ResetGame()))


# ---------------------------------------------------------------------------
# Joueurs & tours
# ---------------------------------------------------------------------------
@router.post("/{game_id}/participants", dependencies=admin)
def add_participant(game_id: str, payload: ParticipantPayload, service: GameService = Depends(get_game_service)):
    try:
        before = {p.id for p in service.get(game_id).participants}
    except GameError as exc:
        raise _http_error(exc) from exc
    game = _run(service, game_id, AddParticipant(name=payload.name, number=payload.number))
    created = next((p for p in game.participants if p.id not in before), None)
    return _ok(game, participant=created.model_dump() if created else None)


@router.post("/{game_id}/open-new", dependencies=admin)
def open_gift(game_id: str, payload: OpenPayload, service: GameService = Depends(get_game_service)):
    return _ok(_run(service, game_id, OpenGift(**payload.model_dump())))


@router.post("/{game_id}/steal", dependencies=admin)
def steal_gift(game_id: str, payload: StealPayload, service: GameService = Depends(get_game_service)):
    return _ok(_run(service, game_id, StealGift(**payload.model_dump())))


@router.post("/{game_id}/skip", dependencies=admin)
def skip_turn(game_id: str, service: GameService = Depends(get_game_service)):
    return _ok(_run(service, game_id, SkipTurn()))


@router.post("/{game_id}/participants/{participant_id}/reset-timer", dependencies=admin)
def reset_timer(game_id: str, participant_id: str, service: GameService = Depends(get_game_service)):
    return _ok(_run(service, game_id, ResetTimer(participant_id=participant_id)))


# ---------------------------------------------------------------------------
# Cadeaux, images, réglages
# ---------------------------------------------------------------------------
@router.put("/{game_id}/gifts/{gift_id}", dependencies=admin)
def edit_gift(game_id: str, gift_id: str, payload: GiftEditPayload, service: GameService = Depends(get_game_service)):
    return _ok(_run(service, game_id, EditGiftDescription(gift_id=gift_id, description=payload.description)))


@router.put("/{game_id}/settings", dependencies=admin)
def update_settings(game_id: str, payload: UpdateSettings, service: GameService = Depends(get_game_service)):
    game = _run(service, game_id, payload)
    return _ok(game, settings=game.settings.model_dump())


@router.post("/{game_id}/gifts/{gift_id}/images", dependencies=admin)
def add_image(game_id: str, gift_id: str, payload: ImagePayload, service: GameService = Depends(get_game_service)):
    game = _run(service, game_id, AddGiftImage(gift_id=gift_id, **payload.model_dump()))
    gift = game.find_gift(gift_id)
    return _ok(game, image=gift.images[-1].model_dump() if gift and gift.images else None)


@router.delete("/{game_id}/gifts/{gift_id}/images/{image_id}", dependencies=admin)
def remove_image(game_id: str, gift_id: str, image_id: str, service: GameService = Depends(get_game_service)):
    return _ok(_run(service, game_id, RemoveGiftImage(gift_id=gift_id, image_id=image_id)))


@router.put("/{game_id}/gifts/{gift_id}/images/primary", dependencies=admin)
def set_primary_image(
    game_id: str, gift_id: str, payload: PrimaryImagePayload, service: GameService = Depends(get_game_service)
):
    return _ok(_run(service, game_id, SetPrimaryImage(gift_id=gift_id, image_id=payload.image_id)))


# ---------------------------------------------------------------------------
# Phases & vote "pire cadeau"
# ---------------------------------------------------------------------------
@router.post("/{game_id}/phase/voting", dependencies=admin)
def start_voting(
    game_id: str,
    payload: Optional[VotingPayload] = None,
    service: GameService = Depends(get_game_service),
):
    """Ouvre (ou rouvre depuis results) le vote ; durée par défaut: DEFAULT_VOTING_SECONDS."""
    duration = payload.duration_seconds if payload else None
    return _ok(_run(service, game_id, SetPhase(phase="voting", duration_seconds=duration)))


@router.post("/{game_id}/phase/results", dependencies=admin)
def show_results(game_id: str, service: GameService = Depends(get_game_service)):
    return _ok(_run(service, game_id, SetPhase(phase="results")))


@router.post("/{game_id}/phase/expire")
def expire_voting(game_id: str, service: GameService = Depends(get_game_service)):
    """Clôture à l'échéance, déclenchable par n'importe quel client (409 si pas encore échu)."""
    return _ok(_run(service, game_id, EndVoting(only_if_expired=True)))


@router.post("/{game_id}/vote")
def cast_vote(game_id: str, payload: VotePayload, service: GameService = Depends(get_game_service)):
    game = _run(service, game_id, Downvote(**payload.model_dump()))
    gift = game.find_gift(payload.gift_id)
    return _ok(game, downvotes=len(gift.downvotes) if gift else 0)
