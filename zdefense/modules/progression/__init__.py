"""
Progression module: the progression record store and the prestige resetter.

- repository: atomic reads/updates of PlayerProgression
- service: ProgressionService (get progression)
- prestige_service: PrestigeService (prestige reset and tier cosmetics)
"""
