"""
Engine: processor.py
Rôle:
- Appliquer les actions de jeu (ouvrir, voler, passer un tour, chrono, édition,
  réglages, images, reset) à une copie du snapshot.

Contrat:
- Chaque handler reçoit `(game, action, now)` où `game` est déjà une copie
  privée ; il valide TOUT avant la première mutation, puis renvoie le snapshot
  résultant (le même objet, ou un nouveau pour le reset).
- Les refus lèvent une `GameError` : l'appelant jette alors la copie.

Chaînes de vols:
- Aucun cas particulier ici : la priorité des victimes (turns.py) fait de la
  dernière victime le prochain joueur actif, jusqu'à ce qu'elle ouvre un cadeau.
"""
from __future__ import annotations

from typing import Optional

from app.models.actions import (
    AddGiftImage,
    AddParticipant,
    EditGiftDescription,
    OpenGift,
    RemoveGiftImage,
    ResetGame,
    ResetTimer,
    SetPrimaryImage,
    SkipTurn,
    StealGift,
    UpdateSettings,
)
from app.models.game import (
    PHASE_ACTIVE,
    Game,
    Gift,
    GiftImage,
    Participant,
    default_game,
    new_id,
)
from .errors import (
    AlreadyHolding,
    GamePaused,
    GiftFrozen,
    InvalidInput,
    InvalidPhaseTransition,
    NoOwner,
    NoTakeBacks,
    NotActive,
    NotFound,
)
from .turns import is_active, pending_victims, queue_head, refresh_turn_timers


# -----------------------------
# Validation helpers
# -----------------------------
def _clean_text(value: object, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidInput(f"{field_name} must be a non-empty string")
    return value.strip()


def _require_participant(game: Game, participant_id: str) -> Participant:
    participant = game.find_participant(participant_id)
    if participant is None:
        raise NotFound(f"Participant {participant_id} not found")
    return participant


def _require_gift(game: Game, gift_id: str) -> Gift:
    gift = game.find_gift(gift_id)
    if gift is None:
        raise NotFound(f"Gift {gift_id} not found")
    return gift


def _require_playable(game: Game) -> None:
    if game.phase != PHASE_ACTIVE:
        raise InvalidPhaseTransition(f"Gameplay is closed (phase={game.phase})")
    if game.settings.is_paused:
        raise GamePaused("Game is paused")


def _next_victim_id(game: Game) -> Optional[str]:
    """Victime à afficher : la courante si elle attend encore, sinon la première restante."""
    victims = pending_victims(game)
    if any(p.id == game.active_victim_id for p in victims):
        return game.active_victim_id
    return victims[0].id if victims else None


def _advance_past_head(game: Game, head: Optional[Participant], actor: Participant) -> None:
    """Avance current_turn si l'acteur occupait la tête de la file normale."""
    if head is not None and head.id == actor.id:
        game.current_turn = max(game.current_turn, actor.number + 1)


# -----------------------------
# Participants
# -----------------------------
def add_participant(game: Game, action: AddParticipant, now: int) -> Game:
    number = action.number or game.next_number()
    if any(p.number == number for p in game.participants):
        raise InvalidInput(f"Number {number} is already taken")
    name = action.name.strip() if action.name and action.name.strip() else f"Player {number}"

    participant = Participant(id=new_id("p"), name=name, number=number)
    game.participants.append(participant)
    game.participants.sort(key=lambda p: p.number)
    refresh_turn_timers(game, now)
    game.log("participant_added", f"{name} joined as #{number}", now,
             participant_id=participant.id, number=number)
    return game


def reset_timer(game: Game, action: ResetTimer, now: int) -> Game:
    participant = _require_participant(game, action.participant_id)
    participant.turn_start_time = now
    return game


# -----------------------------
# Gameplay
# -----------------------------
def open_gift(game: Game, action: OpenGift, now: int) -> Game:
    description = _clean_text(action.description, "description")
    player = _require_participant(game, action.participant_id)
    _require_playable(game)
    if not is_active(game, player.id):
        raise NotActive(f"It is not {player.name}'s turn")
    if player.held_gift_id:
        raise AlreadyHolding(f"{player.name} already holds a gift")

    was_victim = player.is_victim
    head = queue_head(game)

    gift = Gift(id=new_id("g"), description=description, owner_id=player.id)
    game.gifts.append(gift)

    player.held_gift_id = gift.id
    player.status = "done"
    player.is_victim = False
    player.forbidden_gift_id = None
    player.turn_start_time = None
    if not was_victim:
        _advance_past_head(game, head, player)
    game.active_victim_id = _next_victim_id(game)

    refresh_turn_timers(game, now)
    game.log("gift_opened", f"{player.name} opened {description}", now,
             participant_id=player.id, gift_id=gift.id)
    return game


def steal_gift(game: Game, action: StealGift, now: int) -> Game:
    thief = _require_participant(game, action.thief_id)
    gift = _require_gift(game, action.gift_id)
    _require_playable(game)
    if not is_active(game, thief.id):
        raise NotActive(f"It is not {thief.name}'s turn")
    if thief.held_gift_id:
        raise AlreadyHolding(f"{thief.name} already holds a gift")
    # "no take-backs" prime sur le gel : c'est la raison la plus précise pour la victime
    if thief.forbidden_gift_id == gift.id:
        raise NoTakeBacks(f"{thief.name} cannot steal {gift.description} back immediately")
    if gift.is_frozen:
        raise GiftFrozen(f"{gift.description} is locked")
    victim = game.find_participant(gift.owner_id)
    if victim is None or game.holder_of(gift.id) is not victim:
        raise NoOwner(f"{gift.description} has no owner to steal from")

    was_victim = thief.is_victim
    head = queue_head(game)

    victim.held_gift_id = None
    victim.is_victim = True
    victim.status = "waiting"
    victim.forbidden_gift_id = gift.id
    victim.times_stolen_from += 1
    victim.turn_start_time = None

    thief.held_gift_id = gift.id
    thief.status = "done"
    thief.is_victim = False
    thief.forbidden_gift_id = None
    thief.turn_start_time = None
    if not was_victim:
        _advance_past_head(game, head, thief)

    gift.owner_id = thief.id
    gift.steal_count += 1
    if gift.steal_count >= game.settings.max_steals:
        gift.is_frozen = True

    game.active_victim_id = victim.id
    refresh_turn_timers(game, now)
    game.log("gift_stolen", f"{thief.name} stole {gift.description} from {victim.name}", now,
             thief_id=thief.id, victim_id=victim.id, gift_id=gift.id,
             steal_count=gift.steal_count, frozen=gift.is_frozen)
    return game


def skip_turn(game: Game, action: SkipTurn, now: int) -> Game:
    _require_playable(game)
    head = queue_head(game)
    if head is None:
        raise InvalidInput("Nobody is waiting in the queue")
    game.current_turn = head.number + 1
    refresh_turn_timers(game, now)
    game.log("turn_skipped", f"{head.name} was skipped", now, participant_id=head.id)
    return game


# -----------------------------
# Gifts & images
# -----------------------------
def edit_gift(game: Game, action: EditGiftDescription, now: int) -> Game:
    description = _clean_text(action.description, "description")
    gift = _require_gift(game, action.gift_id)
    gift.description = description
    return game


def add_image(game: Game, action: AddGiftImage, now: int) -> Game:
    path = _clean_text(action.path, "path")
    gift = _require_gift(game, action.gift_id)
    image_id = action.image_id or new_id("img")
    if any(img.id == image_id for img in gift.images):
        raise InvalidInput(f"Image {image_id} already registered")

    image = GiftImage(
        id=image_id,
        path=path,
        uploader=(action.uploader or "").strip() or "Anonymous",
        timestamp=action.timestamp or now,
    )
    if not gift.images:
        gift.primary_image_id = image.id
    gift.images.append(image)
    return game


def remove_image(game: Game, action: RemoveGiftImage, now: int) -> Game:
    gift = _require_gift(game, action.gift_id)
    remaining = [img for img in gift.images if img.id != action.image_id]
    if len(remaining) == len(gift.images):
        raise NotFound(f"Image {action.image_id} not found")
    gift.images = remaining
    if gift.primary_image_id == action.image_id:
        gift.primary_image_id = remaining[0].id if remaining else None
    return game


def set_primary_image(game: Game, action: SetPrimaryImage, now: int) -> Game:
    gift = _require_gift(game, action.gift_id)
    if not any(img.id == action.image_id for img in gift.images):
        raise NotFound(f"Image {action.image_id} not found")
    gift.primary_image_id = action.image_id
    return game


# -----------------------------
# Settings & reset
# -----------------------------
def update_settings(game: Game, action: UpdateSettings, now: int) -> Game:
    changes = action.model_dump(exclude={"type"}, exclude_none=True)
    for key, value in changes.items():
        setattr(game.settings, key, value)

    if "max_steals" in changes:
        # gel permanent : on gèle ce qui atteint la nouvelle limite, sans jamais dégeler
        for gift in game.gifts:
            if gift.steal_count >= game.settings.max_steals:
                gift.is_frozen = True
    refresh_turn_timers(game, now)
    return game


def reset_game(game: Game, action: ResetGame, now: int) -> Game:
    fresh = default_game(game.id, now)
    fresh.log("game_reset", "Game was reset", now)
    refresh_turn_timers(fresh, now)
    return fresh
