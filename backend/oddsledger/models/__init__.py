from oddsledger.models.bet import Bet
from oddsledger.models.game import Game
from oddsledger.models.odds import CurrentOdds, OpeningOdds
from oddsledger.models.strategy import Strategy, StrategyBet, StrategyLeaderboard

__all__ = ["Game", "CurrentOdds", "OpeningOdds", "Bet", "Strategy", "StrategyBet", "StrategyLeaderboard"]
