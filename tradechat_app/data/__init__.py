"""
Data models and parsing module.

Decodes streamed model frames, normalizes market snapshots and keeps the
per-session snapshot cache.
"""
