"""
tacboard Pipeline - Match analysis orchestration.

This module handles the complete processing pipeline:
- Round lifecycle (RoundLifecycleController)
- Match assembly (parse_match)
- Output contract validation
"""
