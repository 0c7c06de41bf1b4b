import pytest
from sqlalchemy.exc import IntegrityError

from wager_ledger.core.errors import InvalidInput, PlayerNotFound
from wager_ledger.models import Player
from wager_ledger.services import player_service


def test_get_or_create_starts_at_zero(db):
    player = player_service.get_or_create(db, "W1")

    assert (player.wins, player.losses, player.ties, player.balance) == (0, 0, 0, 0)
    assert player.held_balance == 0
    assert player.version == 1
    assert player.created_at is not None


def test_get_or_create_is_idempotent(db):
    first = player_service.get_or_create(db, "W1")
    created_at = first.created_at
    second = player_service.get_or_create(db, "W1")

    assert second.wallet_address == "W1"
    assert second.created_at == created_at
    assert db.query(Player).count() == 1


def test_wallet_addresses_are_case_sensitive(db):
    player_service.get_or_create(db, "abc")
    player_service.get_or_create(db, "ABC")

    assert db.query(Player).count() == 2


def test_get_or_create_rereads_after_losing_the_race(db, session_factory, monkeypatch):
    # another request registers the wallet between our read and our insert
    other = session_factory()
    other.add(Player(wallet_address="W1", balance=0, held_balance=0))
    other.commit()
    other.close()

    real_find = player_service.find
    calls = []

    def find_missing_once(session, wallet_address):
        calls.append(wallet_address)
        if len(calls) == 1:
            return None
        return real_find(session, wallet_address)

    monkeypatch.setattr(player_service, "find", find_missing_once)

    player = player_service.get_or_create(db, "W1")

    assert player.wallet_address == "W1"
    assert len(calls) == 2
    assert db.query(Player).count() == 1


def test_get_or_create_reraises_integrity_error_without_row(db, monkeypatch):
    monkeypatch.setattr(player_service, "find", lambda session, wallet_address: None)

    def broken_commit():
        raise IntegrityError("INSERT", {}, Exception("boom"))

    monkeypatch.setattr(db, "commit", broken_commit)

    with pytest.raises(IntegrityError):
        player_service.get_or_create(db, "W1")


@pytest.mark.parametrize("address", ["", "   ", "has space", "x" * 65, None, 42])
def test_invalid_addresses_are_rejected(db, address):
    with pytest.raises(InvalidInput):
        player_service.get_or_create(db, address)
    assert db.query(Player).count() == 0


def test_get_unknown_player(db):
    with pytest.raises(PlayerNotFound):
        player_service.get(db, "nobody")
