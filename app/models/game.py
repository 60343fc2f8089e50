"""
Models / game.py
Rôle:
- Définir le snapshot typé d'une partie d'échange de cadeaux (participants, cadeaux, réglages, historique).
- Ce snapshot est la valeur persistée par le store et diffusée telle quelle aux clients WS.

Champs clés:
- version: incrémentée à chaque action appliquée (compare-and-swap côté store).
- current_turn: numéro de passage à partir duquel la file d'attente est lue.
- phase: "active" → "voting" → "results" (réouverture results → voting autorisée).
- voting_ends_at / timestamps: millisecondes epoch (même unité que les clients JS).

Helpers d'invariants:
- find_participant / find_gift / holder_of / next_number / new_id / default_game.
"""
from __future__ import annotations

import time
from typing import Any, Dict, List, Literal, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from app.config.settings import settings

Phase = Literal["active", "voting", "results"]
ParticipantStatus = Literal["waiting", "done"]

PHASE_ACTIVE = "active"
PHASE_VOTING = "voting"
PHASE_RESULTS = "results"


def now_ms() -> int:
    return int(time.time() * 1000)


def new_id(prefix: str) -> str:
    """Identifiant court préfixé (ex: "g_3f9a0c1d2e4b")."""
    return f"{prefix}_{uuid4().hex[:12]}"


class GameSettings(BaseModel):
    """Règles modifiables en cours de partie par le modérateur."""
    max_steals: int = Field(default_factory=lambda: settings.DEFAULT_MAX_STEALS, ge=1)
    turn_duration_seconds: int = Field(default_factory=lambda: settings.DEFAULT_TURN_DURATION_SECONDS, ge=1)
    active_player_count: int = Field(default_factory=lambda: settings.DEFAULT_ACTIVE_PLAYER_COUNT, ge=1)
    is_paused: bool = False


class Participant(BaseModel):
    id: str
    name: str
    number: int  # ordre de passage, unique dans la partie
    status: ParticipantStatus = "waiting"
    held_gift_id: Optional[str] = None
    forbidden_gift_id: Optional[str] = None  # "pas de reprise" immédiate
    is_victim: bool = False
    turn_start_time: Optional[int] = None
    times_stolen_from: int = 0  # statistique uniquement


class GiftImage(BaseModel):
    """Référence vers une image déjà stockée par le collaborateur d'upload."""
    id: str
    path: str
    uploader: str = "Anonymous"
    timestamp: int = Field(default_factory=now_ms)


class Gift(BaseModel):
    id: str
    description: str
    owner_id: Optional[str] = None
    steal_count: int = 0
    is_frozen: bool = False
    images: List[GiftImage] = Field(default_factory=list)
    primary_image_id: Optional[str] = None
    downvotes: List[str] = Field(default_factory=list)  # ensemble ordonné de voter ids


class HistoryEntry(BaseModel):
    """Entrée du journal append-only (affichée sur l'écran partagé)."""
    id: str = Field(default_factory=lambda: new_id("h"))
    kind: str
    ts: int = Field(default_factory=now_ms)
    message: str
    payload: Dict[str, Any] = Field(default_factory=dict)


class Game(BaseModel):
    """Snapshot complet d'une partie."""
    id: str
    version: int = 0
    participants: List[Participant] = Field(default_factory=list)
    gifts: List[Gift] = Field(default_factory=list)
    settings: GameSettings = Field(default_factory=GameSettings)
    current_turn: int = 1
    phase: Phase = PHASE_ACTIVE
    voting_ends_at: Optional[int] = None
    active_victim_id: Optional[str] = None
    history: List[HistoryEntry] = Field(default_factory=list)
    created_at: int = Field(default_factory=now_ms)
    last_activity: int = Field(default_factory=now_ms)

    def to_dict(self) -> Dict[str, Any]:
        """Dump JSON-compatible (utilisé par le store et la diffusion WS)."""
        return self.model_dump(mode="json")

    # -----------------------------
    # Lookups
    # -----------------------------
    def find_participant(self, participant_id: Optional[str]) -> Optional[Participant]:
        for participant in self.participants:
            if participant.id == participant_id:
                return participant
        return None

    def find_gift(self, gift_id: Optional[str]) -> Optional[Gift]:
        for gift in self.gifts:
            if gift.id == gift_id:
                return gift
        return None

    def holder_of(self, gift_id: str) -> Optional[Participant]:
        """Participant qui détient `gift_id` (au plus un par invariant)."""
        for participant in self.participants:
            if participant.held_gift_id == gift_id:
                return participant
        return None

    def next_number(self) -> int:
        return max((p.number for p in self.participants), default=0) + 1

    def log(self, kind: str, message: str, ts: int, **payload: Any) -> HistoryEntry:
        entry = HistoryEntry(kind=kind, message=message, ts=ts, payload=payload)
        self.history.append(entry)
        return entry


def default_game(game_id: str, now: Optional[int] = None) -> Game:
    """État initial d'une nouvelle partie (ou après reset)."""
    ts = now if now is not None else now_ms()
    return Game(id=game_id, created_at=ts, last_activity=ts)
