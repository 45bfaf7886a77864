"""
release-sync: Add new releases from followed Spotify artists to a playlist.

Every run walks the artists the user follows, keeps the releases that
came out inside each artist's lookback window, and appends their tracks
to a target playlist, skipping tracks that are already there.

Architecture:
    State (core/state.py)
        - JSON document remembering the last successful run and which
          artists were already scanned
        - First scan of an artist looks back bootstrap_days (30), later
          scans incremental_days + buffer_days (7 + 2)

    Scan (sync/aggregator.py)
        - Followed artists (paginated)
        - Newest albums and singles per artist, fetched concurrently
        - Tracks of every qualifying release

    Sync (sync/playlist.py)
        - Current playlist contents (paginated)
        - Append missing URIs in batches of 100

    Pacing (sync/retry.py)
        - Retry on HTTP 429 honoring Retry-After, else exponential backoff
        - Fixed pause between artists

Modules:
    core/       - Configuration, state, logging, exceptions
    spotify/    - OAuth helpers, API client, data models
    sync/       - Retry, pagination, scan, playlist sync, orchestration
    utils/      - Release date helpers
    cli.py      - Command-line interface

Usage:
    Command Line:
        release-sync login
        release-sync would-add
        release-sync run

    Python API:
        from release_sync.core import load_config, StateStore
        from release_sync.spotify import SpotifyClient, refresh_access_token
        from release_sync.sync import CandidateAggregator, PlaylistSync, run_sync

        config = load_config()
        client = SpotifyClient(refresh_access_token(config.spotify))
        summary = run_sync(
            CandidateAggregator(client),
            PlaylistSync(client),
            StateStore(config.state.path),
            playlist_id=config.playlist.id,
            per_artist_limit=config.releases.limit_per_artist,
        )

Requirements:
    - Python 3.10+
    - spotipy: Spotify Web API
    - rich-click: CLI
    - PyYAML, python-dotenv: configuration
    - tqdm: progress bar
"""

__version__ = "0.1.0"
__author__ = "release-sync contributors"
