"""
Configuration for the progression engine.

- `Config` (config.py): static settings from the environment (.env supported).
- `ConfigManager` (manager.py): game-balance values from YAML with
  dot-notation access. Import it from `zdefense.core.config.manager`; it
  depends on the logging subsystem, which itself reads `Config`.
"""

from .config import Config, Environment

__all__ = ["Config", "Environment"]
