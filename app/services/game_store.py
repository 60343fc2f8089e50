"""
Service: game_store.py
Rôle:
- Persister un snapshot `Game` par identifiant de partie.
- Refuser toute sauvegarde basée sur une version périmée (compare-and-swap).

Stockage:
- backend "file"   : `games/<game_id>.json` sous DATA_DIR (écriture atomique orjson).
  Le cycle lecture → comparaison → écriture est protégé par un verrou OS
  exclusif sur `games/<game_id>.lock` : plusieurs workers uvicorn peuvent
  partager le même DATA_DIR.
- backend "memory" : dictionnaire en RAM (tests, démos sans disque, un seul process)

API commune:
- load(game_id) → Game            (NotFound si absent)
- save(game, expected_version)    (ConcurrentModification si la version stockée diffère ;
                                   expected_version=None signifie "ne doit pas exister")
- delete(game_id) → bool
- list_ids() → list[str]
"""
from __future__ import annotations

import re
import sys
from contextlib import contextmanager
from pathlib import Path
from threading import RLock
from typing import Any, Dict, Iterator, List, Optional

from app.config.settings import settings
from app.engine.errors import ConcurrentModification, InvalidInput, NotFound
from app.models.game import Game
from .io_utils import read_json, write_json

GAMES_DIRNAME = "games"
_GAME_ID_RE = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


@contextmanager
def file_lock(path: Path) -> Iterator[None]:
    """Verrou exclusif inter-processus (bloquant) sur `path`."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("a+b") as handle:
        if sys.platform == "win32":
            import msvcrt
            handle.seek(0)
            msvcrt.locking(handle.fileno(), msvcrt.LK_LOCK, 1)
            try:
                yield
            finally:
                handle.seek(0)
                msvcrt.locking(handle.fileno(), msvcrt.LK_UNLCK, 1)
        else:
            import fcntl
            fcntl.flock(handle.fileno(), fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(handle.fileno(), fcntl.LOCK_UN)


def validate_game_id(game_id: Optional[str]) -> str:
    """Normalise un identifiant de partie (utilisé aussi comme nom de fichier)."""
    gid = (game_id or "").strip()
    if not _GAME_ID_RE.match(gid):
        raise InvalidInput("game_id must be 1-64 characters among letters, digits, '-' and '_'")
    return gid


class _BaseStore:
    def __init__(self) -> None:
        self._lock = RLock()

    # primitives brutes à fournir par le backend
    def _read_raw(self, game_id: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def _write_raw(self, game_id: str, data: Dict[str, Any]) -> None:
        raise NotImplementedError

    def _remove_raw(self, game_id: str) -> bool:
        raise NotImplementedError

    def list_ids(self) -> List[str]:
        raise NotImplementedError

    @contextmanager
    def _guard(self, game_id: str) -> Iterator[None]:
        """Exclusion entre processus autour d'un compare-and-swap (aucune en RAM)."""
        yield

    # API publique
    def load(self, game_id: str) -> Game:
        with self._lock:
            raw = self._read_raw(game_id)
        if raw is None:
            raise NotFound(f"Game {game_id} not found")
        return Game.model_validate(raw)

    def save(self, game: Game, expected_version: Optional[int]) -> None:
        with self._lock, self._guard(game.id):
            current = self._read_raw(game.id)
            stored_version = current.get("version", 0) if current is not None else None
            if stored_version != expected_version:
                raise ConcurrentModification(
                    f"Game {game.id} changed (expected version {expected_version}, found {stored_version})"
                )
            self._write_raw(game.id, game.to_dict())

    def delete(self, game_id: str) -> bool:
        with self._lock, self._guard(game_id):
            return self._remove_raw(game_id)


class FileGameStore(_BaseStore):
    """Un fichier JSON par partie, plus un fichier `.lock` partagé entre workers."""

    def __init__(self, root: Path) -> None:
        super().__init__()
        self.root = Path(root)

    def _path(self, game_id: str) -> Path:
        return self.root / f"{game_id}.json"

    def _guard(self, game_id: str):
        # le fichier .lock reste en place : le supprimer casserait l'exclusion
        return file_lock(self.root / f"{game_id}.lock")

    def _read_raw(self, game_id: str) -> Optional[Dict[str, Any]]:
        return read_json(self._path(game_id))

    def _write_raw(self, game_id: str, data: Dict[str, Any]) -> None:
        write_json(self._path(game_id), data)

    def _remove_raw(self, game_id: str) -> bool:
        path = self._path(game_id)
        if not path.exists():
            return False
        path.unlink()
        return True

    def list_ids(self) -> List[str]:
        if not self.root.exists():
            return []
        return sorted(path.stem for path in self.root.glob("*.json"))


class MemoryGameStore(_BaseStore):
    """Stockage RAM ; les snapshots sont gardés sérialisés pour éviter tout aliasing."""

    def __init__(self) -> None:
        super().__init__()
        self._games: Dict[str, Dict[str, Any]] = {}

    def _read_raw(self, game_id: str) -> Optional[Dict[str, Any]]:
        return self._games.get(game_id)

    def _write_raw(self, game_id: str, data: Dict[str, Any]) -> None:
        self._games[game_id] = data

    def _remove_raw(self, game_id: str) -> bool:
        return self._games.pop(game_id, None) is not None

    def list_ids(self) -> List[str]:
        with self._lock:
            return sorted(self._games.keys())


GameStore = _BaseStore


def build_store() -> GameStore:
    """Construit le backend désigné par `settings.STORE_BACKEND`."""
    backend = (settings.STORE_BACKEND or "file").strip().lower()
    if backend == "memory":
        return MemoryGameStore()
    if backend == "file":
        return FileGameStore(Path(settings.DATA_DIR) / GAMES_DIRNAME)
    raise RuntimeError(f"Unknown STORE_BACKEND: {settings.STORE_BACKEND}")
