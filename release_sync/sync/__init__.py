"""
Release scan and playlist sync for release-sync.

This module provides:
    - RetryPolicy / Throttle: request pacing
    - iter_pages / collect: cursor pagination
    - CandidateAggregator: followed artists -> candidate track URIs
    - PlaylistSync: dedup against the playlist and batched adds
    - run_sync and the preview helpers: orchestration

Usage:
    from release_sync.sync import CandidateAggregator, PlaylistSync, run_sync

    summary = run_sync(aggregator, playlist, store, playlist_id, per_artist_limit=5)
    print(summary.to_dict())
"""

from release_sync.sync.aggregator import CandidateAggregator, CandidateResult
from release_sync.sync.pagination import collect, iter_pages
from release_sync.sync.pipeline import (
    RunSummary,
    find_followed_artist,
    match_artist,
    preview_releases,
    preview_tracks,
    run_sync,
)
from release_sync.sync.playlist import PlaylistSync
from release_sync.sync.retry import RetryPolicy, Throttle

__all__ = [
    # Pacing
    "RetryPolicy",
    "Throttle",
    # Pagination
    "iter_pages",
    "collect",
    # Scan
    "CandidateAggregator",
    "CandidateResult",
    # Playlist
    "PlaylistSync",
    # Orchestration
    "RunSummary",
    "run_sync",
    "preview_releases",
    "preview_tracks",
    "match_artist",
    "find_followed_artist",
]
