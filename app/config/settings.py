"""
Configuration de l'application (Settings)
=========================================

Rôle
----
- Centraliser les paramètres du serveur (nom, host/port, jeton admin, stockage, règles par défaut).
- Les valeurs par défaut conviennent pour un environnement de dev local.
- Les variables peuvent être surchargées via un fichier `.env` ou l'environnement.

Intégrations
------------
- `pydantic-settings` charge automatiquement les variables d'env et `.env`.
- Les services/routers importent `from app.config.settings import settings`.

Bonnes pratiques
----------------
- *Ne commitez pas* une valeur réelle de `ADMIN_TOKEN`. Utilisez `.env`.
- `DATA_DIR` calcule un chemin relatif au repo : `<repo>/app/data`.
- `STORE_BACKEND="memory"` garde les parties en RAM (perdues au redémarrage).

Exemples de `.env`
------------------
APP_NAME="Elephant Exchange (Staging)"
PORT=8080
ADMIN_TOKEN="mettre-une-valeur-secrète-en-prod"
DATA_DIR="/var/opt/elephant/data"
DEFAULT_MAX_STEALS=2
VOTING_WATCH_INTERVAL=2
"""
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict
import os


class Settings(BaseSettings):
    # Nom du service (apparaît dans /health)
    APP_NAME: str = "Elephant Exchange Backend"
    # Bind réseau (FastAPI / Uvicorn)
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    LOG_LEVEL: str = "INFO"

    # Jeton admin (console du modérateur) utilisé par la dépendance `admin_required`
    # ⚠️ Remplacez en production via .env
    ADMIN_TOKEN: str = "changeme-super-secret"

    # Frontends autorisés (CORS)
    ALLOWED_ORIGINS: List[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]

    # Répertoire des fichiers persistés (un JSON par partie sous games/)
    # Par défaut: <repo>/app/data
    DATA_DIR: str = os.path.join(os.path.dirname(os.path.dirname(__file__)), "data")
    # "file" (JSON sur disque) ou "memory"
    STORE_BACKEND: str = "file"
    # Tentatives load → apply → save avant de remonter ConcurrentModification
    SAVE_MAX_ATTEMPTS: int = 3

    # Règles appliquées aux nouvelles parties (modifiables ensuite via /settings)
    DEFAULT_MAX_STEALS: int = 3
    DEFAULT_TURN_DURATION_SECONDS: int = 60
    DEFAULT_ACTIVE_PLAYER_COUNT: int = 1
    DEFAULT_VOTING_SECONDS: int = 180

    # Clôture automatique du vote à l'échéance (tâche de fond)
    VOTING_AUTO_CLOSE: bool = True
    VOTING_WATCH_INTERVAL: float = 1.0

    # Paramétrage pydantic-settings :
    # - lit le fichier .env (UTF-8) si présent
    # - ignore les clés supplémentaires pour éviter les erreurs
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


# Instance unique importable partout : `settings`
settings = Settings()
