"""
Erreurs métier du moteur de partie.

Chaque refus porte un `code` stable (renvoyé aux clients) et le statut HTTP que
la couche routes doit utiliser. Aucune de ces erreurs n'est fatale : l'état
persisté n'est jamais modifié quand l'une d'elles est levée.
"""
from __future__ import annotations


class GameError(RuntimeError):
    """Base des refus d'action."""

    code = "game_error"
    status_code = 400

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.code)
        self.message = message or self.code

    def to_dict(self) -> dict:
        return {"error": self.code, "message": self.message}


class NotFound(GameError):
    code = "not_found"
    status_code = 404


class NotActive(GameError):
    code = "not_active"


class AlreadyHolding(GameError):
    code = "already_holding"


class GiftFrozen(GameError):
    code = "gift_frozen"


class NoTakeBacks(GameError):
    code = "no_take_backs"


class NoOwner(GameError):
    code = "no_owner"


class GamePaused(GameError):
    code = "game_paused"


class InvalidInput(GameError):
    code = "invalid_input"


class InvalidPhaseTransition(GameError):
    code = "invalid_phase_transition"
    status_code = 409


class ConcurrentModification(GameError):
    code = "concurrent_modification"
    status_code = 409
