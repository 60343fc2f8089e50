"""
Dépendance d'authentification admin (console du modérateur)
===========================================================

Objectif
--------
Fournir une *dependency* FastAPI `admin_required` qui autorise les routes de
pilotage (ouvrir/voler, réglages, phases, reset, administration) via un
**Bearer token** (`settings.ADMIN_TOKEN`).

Les lectures (état, flux WS) et le vote du public ne sont pas protégés.

Pourquoi accepter le préflight CORS ?
-------------------------------------
Le navigateur envoie une requête **OPTIONS** sans header `Authorization`. On
protège donc chaque route (ou router) avec `Depends(admin_required)`, et le
middleware CORS répond seul aux préflights.

Comportement & codes retour
---------------------------
- 401 si aucun Bearer n'est fourni.
- 403 si le Bearer est invalide.
- True sinon.
"""

from __future__ import annotations

import secrets
from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from app.config.settings import settings

# Schéma Bearer (désactive l'erreur auto pour qu'on rende nos 401/403)
bearer = HTTPBearer(auto_error=False)


def admin_required(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
):
    """Dépendance d'accès admin : `Authorization: Bearer <settings.ADMIN_TOKEN>`."""
    if credentials and (credentials.scheme or "").lower() == "bearer":
        if secrets.compare_digest(credentials.credentials, settings.ADMIN_TOKEN):
            return True
        raise HTTPException(status_code=403, detail="Invalid token")

    raise HTTPException(status_code=401, detail="Admin authentication required")
