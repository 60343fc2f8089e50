import pytest

from app.engine.errors import InvalidInput, InvalidPhaseTransition, NotFound
from app.engine.phases import voting_expired
from app.engine.transition import apply
from app.models.actions import Downvote, EndGame, EndVoting, OpenGift, ReopenVoting, SetPhase

from conftest import NOW, build_game, pid


@pytest.fixture
def played_game():
    game = build_game(2)
    game = apply(game, OpenGift(participant_id=pid(game, 1), description="Mug"), NOW)
    return apply(game, OpenGift(participant_id=pid(game, 2), description="Candle"), NOW)


def test_voting_scenario(played_game):
    gift_id = played_game.gifts[0].id

    game = apply(played_game, EndGame(voting_duration_seconds=180), NOW)
    assert game.phase == "voting"
    assert game.voting_ends_at == NOW + 180_000

    game = apply(game, Downvote(voter_id="v1", gift_id=gift_id), NOW)
    assert game.gifts[0].downvotes == ["v1"]

    game = apply(game, EndVoting(), NOW + 1000)
    assert game.phase == "results"
    assert game.voting_ends_at is None

    with pytest.raises(InvalidPhaseTransition):
        apply(game, Downvote(voter_id="v2", gift_id=gift_id), NOW)


def test_end_game_without_duration_goes_to_results(played_game):
    game = apply(played_game, EndGame(), NOW)
    assert game.phase == "results"
    assert all(p.turn_start_time is None for p in game.participants)


def test_downvote_rejected_while_active(played_game):
    with pytest.raises(InvalidPhaseTransition):
        apply(played_game, Downvote(voter_id="v1", gift_id=played_game.gifts[0].id), NOW)


def test_downvote_toggle_and_explicit_value(played_game):
    game = apply(played_game, EndGame(voting_duration_seconds=60), NOW)
    gift_id = game.gifts[1].id

    game = apply(game, Downvote(voter_id="v1", gift_id=gift_id), NOW)
    game = apply(game, Downvote(voter_id="v1", gift_id=gift_id), NOW)
    assert game.gifts[1].downvotes == []

    game = apply(game, Downvote(voter_id="v1", gift_id=gift_id, value=True), NOW)
    game = apply(game, Downvote(voter_id="v1", gift_id=gift_id, value=True), NOW)
    assert game.gifts[1].downvotes == ["v1"]

    game = apply(game, Downvote(voter_id="v1", gift_id=gift_id, value=False), NOW)
    assert game.gifts[1].downvotes == []


def test_downvote_unknown_gift_or_blank_voter(played_game):
    game = apply(played_game, EndGame(voting_duration_seconds=60), NOW)
    with pytest.raises(NotFound):
        apply(game, Downvote(voter_id="v1", gift_id="g_nope"), NOW)
    with pytest.raises(InvalidInput):
        apply(game, Downvote(voter_id="  ", gift_id=game.gifts[0].id), NOW)


def test_transitions_outside_source_phase(played_game):
    with pytest.raises(InvalidPhaseTransition):
        apply(played_game, EndVoting(), NOW)
    with pytest.raises(InvalidPhaseTransition):
        apply(played_game, ReopenVoting(duration_seconds=30), NOW)

    voting = apply(played_game, EndGame(voting_duration_seconds=30), NOW)
    with pytest.raises(InvalidPhaseTransition):
        apply(voting, EndGame(), NOW)


def test_reopen_voting_from_results_keeps_votes(played_game):
    game = apply(played_game, EndGame(voting_duration_seconds=60), NOW)
    game = apply(game, Downvote(voter_id="v1", gift_id=game.gifts[0].id), NOW)
    game = apply(game, EndVoting(), NOW + 10)

    game = apply(game, ReopenVoting(duration_seconds=30), NOW + 20)
    assert game.phase == "voting"
    assert game.voting_ends_at == NOW + 20 + 30_000
    assert game.gifts[0].downvotes == ["v1"]


def test_end_voting_only_if_expired(played_game):
    game = apply(played_game, EndGame(voting_duration_seconds=10), NOW)
    assert not voting_expired(game, NOW + 9_999)
    with pytest.raises(InvalidPhaseTransition):
        apply(game, EndVoting(only_if_expired=True), NOW + 9_999)

    assert voting_expired(game, NOW + 10_000)
    closed = apply(game, EndVoting(only_if_expired=True), NOW + 10_000)
    assert closed.phase == "results"
    assert closed.history[-1].payload["reason"] == "deadline"


@pytest.mark.parametrize(
    "start,target,expected",
    [
        ("active", "voting", "voting"),
        ("active", "results", "results"),
        ("voting", "results", "results"),
        ("results", "voting", "voting"),
    ],
)
def test_set_phase_maps_to_legal_transition(played_game, start, target, expected):
    game = played_game
    if start == "voting":
        game = apply(game, EndGame(voting_duration_seconds=60), NOW)
    elif start == "results":
        game = apply(game, EndGame(), NOW)

    game = apply(game, SetPhase(phase=target, duration_seconds=45), NOW)
    assert game.phase == expected
    if expected == "voting":
        assert game.voting_ends_at == NOW + 45_000


def test_set_phase_results_twice_is_rejected(played_game):
    game = apply(played_game, SetPhase(phase="results"), NOW)
    with pytest.raises(InvalidPhaseTransition):
        apply(game, SetPhase(phase="results"), NOW)
