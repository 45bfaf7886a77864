"""
Utility functions for release-sync.

    - cutoff_instant: start of a lookback window
    - parse_release_instant: Spotify release date -> UTC instant
"""

from release_sync.utils.dates import cutoff_instant, parse_release_instant

__all__ = [
    "cutoff_instant",
    "parse_release_instant",
]
