"""
tacboard Domains - Game-specific analysis engines.

This module contains:
- roster: Team and starting-side resolution
- health: Per-round HP and applied damage
- economy: Inventory, loadout values, loss bonus
- combat: Trades and clutches
- rating: Round and match rating
- wpa: Win probability added
- series: Series grouping and map helpers
"""

__all__: list[str] = []
