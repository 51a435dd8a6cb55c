"""
tacboard Infrastructure.

- parallel: Concurrent batch import with per-file error isolation
"""
