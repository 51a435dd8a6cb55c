"""
tacboard - CS2 match-demo analytics engine

Turns a demo-event JSON document into a reconciled Match: roster and sides,
a per-round timeline, per-player round and match statistics (rating, KAST%,
ADR, trades, clutches) and win probability added.

Usage:
    from tacboard import parse_match

    match = parse_match(json.loads(text))
    for player in match.players:
        print(f"{player.player_id}: {player.rating:.2f}")
"""

__version__ = "0.3.0"
__author__ = "tacboard contributors"


def __getattr__(name):
    """Lazy import for the pipeline (pulls in numpy/pandas)."""
    if name == "parse_match":
        from tacboard.pipeline.orchestrator import parse_match
        return parse_match
    elif name == "MatchOrchestrator":
        from tacboard.pipeline.orchestrator import MatchOrchestrator
        return MatchOrchestrator
    elif name == "DemoFormatError":
        from tacboard.parsing.normalizer import DemoFormatError
        return DemoFormatError
    elif name == "Match":
        from tacboard.core.models import Match
        return Match
    elif name == "BatchImporter":
        from tacboard.infra.parallel import BatchImporter
        return BatchImporter
    elif name == "load_config":
        from tacboard.core.config import load_config
        return load_config
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "__version__",
    "parse_match",
    "MatchOrchestrator",
    "DemoFormatError",
    "Match",
    "BatchImporter",
    "load_config",
]
