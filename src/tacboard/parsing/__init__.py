"""
tacboard Parsing - raw demo events to typed GameEvents.

- events: GameEvent variants
- normalizer: EventNormalizer, field helpers, name resolution
"""
