from app.engine.transition import apply
from app.engine.turns import active_participant_ids, is_active, queue_head, refresh_turn_timers
from app.models.actions import OpenGift, SkipTurn, StealGift

from conftest import NOW, build_game, pid


def test_single_slot_picks_lowest_waiting_number():
    game = build_game(4)
    assert active_participant_ids(game) == [pid(game, 1)]
    assert is_active(game, pid(game, 1))
    assert not is_active(game, pid(game, 2))


def test_single_slot_follows_current_turn():
    game = build_game(4)
    game = apply(game, OpenGift(participant_id=pid(game, 1), description="Mug"), NOW)
    assert game.current_turn == 2
    assert active_participant_ids(game) == [pid(game, 2)]


def test_numbers_below_current_turn_are_not_queued():
    game = build_game(3)
    game = apply(game, SkipTurn(), NOW)
    assert game.current_turn == 2
    # #1 a été sauté : toujours "waiting" mais hors file
    assert not is_active(game, pid(game, 1))
    assert queue_head(game).number == 2


def test_parallel_slots():
    game = build_game(5, active_player_count=3)
    assert active_participant_ids(game) == [pid(game, n) for n in (1, 2, 3)]


def test_victim_takes_priority_over_queue():
    game = build_game(3)
    game = apply(game, OpenGift(participant_id=pid(game, 1), description="Mug"), NOW)
    game = apply(game, StealGift(thief_id=pid(game, 2), gift_id=game.gifts[0].id), NOW)

    victim = game.find_participant(pid(game, 1))
    assert victim.is_victim and victim.status == "waiting"
    assert active_participant_ids(game) == [pid(game, 1)]
    assert not is_active(game, pid(game, 3))


def test_victim_active_regardless_of_slots():
    game = build_game(3, active_player_count=1)
    victim = game.find_participant(pid(game, 3))
    victim.is_victim = True
    game.current_turn = 10
    assert is_active(game, victim.id)


def test_victims_consume_queue_slots():
    game = build_game(4, active_player_count=2)
    game.find_participant(pid(game, 4)).is_victim = True
    assert active_participant_ids(game) == [pid(game, 4), pid(game, 1)]


def test_more_victims_than_slots_leaves_queue_empty():
    game = build_game(4, active_player_count=1)
    game.find_participant(pid(game, 3)).is_victim = True
    game.find_participant(pid(game, 4)).is_victim = True
    assert set(active_participant_ids(game)) == {pid(game, 3), pid(game, 4)}
    assert not is_active(game, pid(game, 1))


def test_done_participant_is_never_active():
    game = build_game(2)
    player = game.find_participant(pid(game, 1))
    player.status = "done"
    player.is_victim = True
    assert not is_active(game, player.id)


def test_unknown_participant_is_inactive():
    assert not is_active(build_game(2), "p_missing")


def test_refresh_turn_timers_starts_and_clears():
    game = build_game(3)
    first, second = game.find_participant(pid(game, 1)), game.find_participant(pid(game, 2))
    assert first.turn_start_time == NOW
    assert second.turn_start_time is None

    second.turn_start_time = 123
    first.turn_start_time = 456
    refresh_turn_timers(game, NOW + 5)
    assert first.turn_start_time == 456  # déjà actif : chrono conservé
    assert second.turn_start_time is None
