"""
Match module: turns completed-match statistics into experience, lifetime
counters and currency.

- rewards: PlayerMatchStats, MatchRewardResult
- service: MatchRewardService
"""
