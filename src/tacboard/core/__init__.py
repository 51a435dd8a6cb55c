"""
tacboard Core - Foundation modules.

This module contains:
- constants: Tick rate, sides, reason codes, item values, WPA tables
- config: Configuration dataclasses and loading
- models: Output data model (PlayerRoundStats ... Match)
- lifecycle: The round lifecycle contract for sub-engines
"""
