from __future__ import annotations

import threading

import pytest

from app.engine.errors import ConcurrentModification, NotActive, NotFound
from app.engine.transition import apply
from app.models.actions import AddParticipant, EndGame, OpenGift
from app.services.game_service import GameService
from app.services.game_store import FileGameStore, MemoryGameStore
from app.services.voting_watcher import VotingWatcher


class RivalWriterStore(MemoryGameStore):
    """Simule un autre processus qui écrit juste avant notre sauvegarde."""

    def __init__(self, rival_action=None, conflicts: int = 1):
        super().__init__()
        self.rival_action = rival_action
        self.conflicts = conflicts

    def save(self, game, expected_version):
        if expected_version is not None and self.conflicts:
            self.conflicts -= 1
            current = self.load(game.id)
            if self.rival_action is not None:
                rival = apply(current, self.rival_action, game.last_activity)
            else:
                rival = current.model_copy(update={"version": current.version + 1})
            super().save(rival, expected_version=current.version)
        super().save(game, expected_version)


def _seed(service: GameService, players: int = 2):
    service.ensure("party")
    for number in range(1, players + 1):
        service.execute("party", AddParticipant(name=f"P{number}", number=number))
    return service.get("party")


def test_execute_persists_and_publishes(service, published):
    game = _seed(service)
    first = next(p for p in game.participants if p.number == 1)

    result = service.execute("party", OpenGift(participant_id=first.id, description="Mug"))
    assert service.get("party") == result
    assert published[-1] == ("party", result.to_dict())
    assert result.version == game.version + 1


def test_rejected_action_is_not_saved_nor_published(service, published):
    game = _seed(service)
    second = next(p for p in game.participants if p.number == 2)
    count = len(published)

    with pytest.raises(NotActive):
        service.execute("party", OpenGift(participant_id=second.id, description="Mug"))
    assert service.get("party").version == game.version
    assert len(published) == count


def test_execute_on_unknown_game(service):
    with pytest.raises(NotFound):
        service.execute("ghost", AddParticipant())


def test_retry_revalidates_against_fresh_state(clock):
    store = RivalWriterStore(conflicts=0)
    service = GameService(store, clock=clock, max_attempts=3)
    game = _seed(service)
    first = next(p for p in game.participants if p.number == 1)

    # le rival ouvre un cadeau pour #1 pendant notre tentative : la relance doit refuser
    store.rival_action = OpenGift(participant_id=first.id, description="Rival mug")
    store.conflicts = 1
    with pytest.raises(NotActive):
        service.execute("party", OpenGift(participant_id=first.id, description="Mug"))

    stored = service.get("party")
    assert [g.description for g in stored.gifts] == ["Rival mug"]


def test_retry_succeeds_after_unrelated_conflict(clock):
    store = RivalWriterStore(conflicts=0)
    service = GameService(store, clock=clock, max_attempts=3)
    game = _seed(service)
    store.conflicts = 2

    result = service.execute("party", AddParticipant(name="Late"))
    assert result.version == game.version + 3
    assert result.participants[-1].name == "Late"


def test_retry_is_bounded(clock):
    store = RivalWriterStore(conflicts=0)
    service = GameService(store, clock=clock, max_attempts=2)
    _seed(service)
    store.conflicts = 5

    with pytest.raises(ConcurrentModification):
        service.execute("party", AddParticipant(name="Late"))


def test_concurrent_actions_are_serialized(tmp_path, clock):
    service = GameService(FileGameStore(tmp_path), clock=clock)
    service.ensure("party")

    threads = [
        threading.Thread(target=service.execute, args=("party", AddParticipant(name=f"T{i}", number=i + 1)))
        for i in range(12)
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    game = service.get("party")
    assert sorted(p.number for p in game.participants) == list(range(1, 13))
    assert game.version == 12


def test_concurrent_opens_by_same_player_only_one_wins(service):
    game = _seed(service)
    first = next(p for p in game.participants if p.number == 1)
    outcomes = []

    def _open(label):
        try:
            service.execute("party", OpenGift(participant_id=first.id, description=label))
            outcomes.append("ok")
        except NotActive:
            outcomes.append("rejected")

    threads = [threading.Thread(target=_open, args=(f"Gift {i}",)) for i in range(6)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert outcomes.count("ok") == 1
    assert len(service.get("party").gifts) == 1


def test_ensure_list_and_delete(service, clock):
    service.ensure("old")
    clock.advance(5)
    service.ensure("new")
    assert service.ensure("new").version == 0

    listing = service.list_games()
    assert [g["id"] for g in listing] == ["new", "old"]
    assert listing[0] == {
        "id": "new", "players": 0, "gifts": 0,
        "created_at": clock.now, "last_activity": clock.now, "phase": "active",
    }

    assert service.delete("old") is True
    assert service.flush() == 1
    assert service.list_games() == []


def test_voting_watcher_closes_expired_votes(service, clock):
    watcher = VotingWatcher(service=service, interval=0.01)
    service.on_saved.append(watcher.track)
    _seed(service)

    service.execute("party", EndGame(voting_duration_seconds=30))
    assert watcher.pending() == {"party": clock.now + 30_000}
    assert watcher.tick() == []

    clock.advance(31)
    assert watcher.tick() == ["party"]
    assert service.get("party").phase == "results"
    assert watcher.pending() == {}


def test_voting_watcher_seed_and_vanished_game(service, clock):
    _seed(service)
    service.execute("party", EndGame(voting_duration_seconds=1))

    watcher = VotingWatcher(service=service, interval=0.01)
    assert watcher.seed() == 1
    service.delete("party")
    clock.advance(2)
    assert watcher.tick() == []
    assert watcher.pending() == {}


def test_broadcast_happens_after_the_game_lock_is_released(clock):
    service = GameService(MemoryGameStore(), clock=clock)
    service.ensure("party")
    lock_free = []

    def _try_lock(game_id):
        lock = service._lock_for(game_id)
        acquired = lock.acquire(blocking=False)
        if acquired:
            lock.release()
        lock_free.append(acquired)

    def publisher(game_id, snapshot):
        # un autre thread doit pouvoir prendre le verrou pendant la diffusion
        worker = threading.Thread(target=_try_lock, args=(game_id,))
        worker.start()
        worker.join()

    service.publisher = publisher
    service.execute("party", AddParticipant(name="Ana"))
    assert lock_free == [True]
