from wager_ledger.models.player import Player
from wager_ledger.models.game_record import GameRecord
from wager_ledger.models.withdrawal import WithdrawalAttempt

__all__ = ['Player', 'GameRecord', 'WithdrawalAttempt']
