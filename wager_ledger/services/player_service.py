import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from wager_ledger.core.database import ledger_transaction
from wager_ledger.core.errors import InvalidInput, PlayerNotFound
from wager_ledger.models.player import Player, WALLET_ADDRESS_LENGTH

logger = logging.getLogger(__name__)


def validate_wallet_address(wallet_address) -> str:
    if not isinstance(wallet_address, str) or not wallet_address.strip():
        raise InvalidInput("Missing or invalid wallet address")
    if len(wallet_address) > WALLET_ADDRESS_LENGTH:
        raise InvalidInput("Wallet address is too long")
    if any(c.isspace() for c in wallet_address):
        raise InvalidInput("Wallet address must not contain whitespace")
    return wallet_address


def find(db: Session, wallet_address: str):
    return db.query(Player).filter(Player.wallet_address == wallet_address).first()


def get(db: Session, wallet_address: str) -> Player:
    validate_wallet_address(wallet_address)
    player = find(db, wallet_address)
    if not player:
        raise PlayerNotFound(f"No player for wallet {wallet_address}")
    return player


def get_or_create(db: Session, wallet_address: str) -> Player:
    """Return the player for this wallet, registering it on first sight.

    Creation commits on its own. When a concurrent request registers the
    same wallet first, the unique key rejects our insert and the winner's
    row is returned.
    """
    validate_wallet_address(wallet_address)

    player = find(db, wallet_address)
    if player:
        return player

    player = Player(
        wallet_address=wallet_address,
        wins=0,
        losses=0,
        ties=0,
        balance=0,
        held_balance=0,
    )
    try:
        with ledger_transaction(db):
            db.add(player)
    except IntegrityError:
        player = find(db, wallet_address)
        if not player:
            raise
        return player

    db.refresh(player)
    logger.info("Registered player %s", wallet_address)
    return player
