from __future__ import annotations

import pytest

from app.engine.transition import apply
from app.models.actions import AddParticipant, UpdateSettings
from app.models.game import Game, default_game
from app.services.game_service import GameService
from app.services.game_store import MemoryGameStore

NOW = 1_700_000_000_000


def build_game(players: int = 2, game_id: str = "party", **settings) -> Game:
    """Partie avec `players` joueurs numérotés 1..n (ids via `pid(game, n)`)."""
    game = default_game(game_id, NOW)
    if settings:
        game = apply(game, UpdateSettings(**settings), NOW)
    for number in range(1, players + 1):
        game = apply(game, AddParticipant(name=f"P{number}", number=number), NOW)
    return game


def pid(game: Game, number: int) -> str:
    return next(p.id for p in game.participants if p.number == number)


class FakeClock:
    def __init__(self, start: int = NOW) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += int(seconds * 1000)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def published():
    return []


@pytest.fixture
def service(clock, published):
    return GameService(
        MemoryGameStore(),
        publisher=lambda game_id, snapshot: published.append((game_id, snapshot)),
        clock=clock,
    )
