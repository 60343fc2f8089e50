"""
Models / actions.py
Rôle:
- Décrire, sous forme de commandes typées, chaque action applicable à une partie.
- `Action` est une union discriminée par `type` : une route construit l'action,
  `app.engine.transition.apply()` la valide puis produit le snapshot suivant.

Notes:
- Les bornes simples (>= 1, etc.) sont validées ici par Pydantic ; les règles
  qui dépendent de l'état courant (tour, gel, phase...) vivent dans `app.engine`.
"""
from __future__ import annotations

from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field


class AddParticipant(BaseModel):
    type: Literal["add_participant"] = "add_participant"
    name: Optional[str] = None
    number: Optional[int] = Field(None, ge=1, description="Numéro de passage (défaut: max+1)")


class OpenGift(BaseModel):
    type: Literal["open_gift"] = "open_gift"
    participant_id: str
    description: str


class StealGift(BaseModel):
    type: Literal["steal_gift"] = "steal_gift"
    thief_id: str
    gift_id: str


class SkipTurn(BaseModel):
    """Fait avancer la file au-delà du joueur en tête, sans cadeau."""
    type: Literal["skip_turn"] = "skip_turn"


class ResetTimer(BaseModel):
    type: Literal["reset_timer"] = "reset_timer"
    participant_id: str


class EditGiftDescription(BaseModel):
    type: Literal["edit_gift"] = "edit_gift"
    gift_id: str
    description: str


class UpdateSettings(BaseModel):
    type: Literal["update_settings"] = "update_settings"
    max_steals: Optional[int] = Field(None, ge=1)
    turn_duration_seconds: Optional[int] = Field(None, ge=1)
    active_player_count: Optional[int] = Field(None, ge=1)
    is_paused: Optional[bool] = None


class AddGiftImage(BaseModel):
    type: Literal["add_image"] = "add_image"
    gift_id: str
    path: str
    image_id: Optional[str] = None
    uploader: Optional[str] = None
    timestamp: Optional[int] = None


class RemoveGiftImage(BaseModel):
    type: Literal["remove_image"] = "remove_image"
    gift_id: str
    image_id: str


class SetPrimaryImage(BaseModel):
    type: Literal["set_primary_image"] = "set_primary_image"
    gift_id: str
    image_id: str


class ResetGame(BaseModel):
    type: Literal["reset_game"] = "reset_game"


class EndGame(BaseModel):
    """Fin du jeu actif : vers `results`, ou vers `voting` si une durée est donnée."""
    type: Literal["end_game"] = "end_game"
    voting_duration_seconds: Optional[int] = Field(None, ge=1)


class EndVoting(BaseModel):
    type: Literal["end_voting"] = "end_voting"
    only_if_expired: bool = False


class ReopenVoting(BaseModel):
    type: Literal["reopen_voting"] = "reopen_voting"
    duration_seconds: int = Field(..., ge=1)


class SetPhase(BaseModel):
    """Point d'entrée admin "set-phase" : choisit la transition selon la phase courante."""
    type: Literal["set_phase"] = "set_phase"
    phase: Literal["voting", "results"]
    duration_seconds: Optional[int] = Field(None, ge=1)


class Downvote(BaseModel):
    type: Literal["downvote"] = "downvote"
    voter_id: str
    gift_id: str
    value: Optional[bool] = None  # None = bascule, True/False = pose/retire (idempotent)


Action = Annotated[
    Union[
        AddParticipant,
        OpenGift,
        StealGift,
        SkipTurn,
        ResetTimer,
        EditGiftDescription,
        UpdateSettings,
        AddGiftImage,
        RemoveGiftImage,
        SetPrimaryImage,
        ResetGame,
        EndGame,
        EndVoting,
        ReopenVoting,
        SetPhase,
        Downvote,
    ],
    Field(discriminator="type"),
]
