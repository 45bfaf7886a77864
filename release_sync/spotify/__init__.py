"""
Spotify module for release-sync.

Provides:
    - SpotifyClient: spotipy wrapper bound to an explicit access token
    - refresh_access_token / authorize: OAuth helpers
    - Artist, Release, AlbumTrack: immutable data models

Usage:
    from release_sync.spotify import SpotifyClient, refresh_access_token

    token = refresh_access_token(config.spotify)
    client = SpotifyClient(token)
"""

from release_sync.spotify.auth import SCOPES, authorize, build_oauth, refresh_access_token
from release_sync.spotify.client import SpotifyClient
from release_sync.spotify.models import AlbumTrack, Artist, Release

__all__ = [
    # Client
    "SpotifyClient",
    # Auth
    "SCOPES",
    "authorize",
    "build_oauth",
    "refresh_access_token",
    # Models
    "Artist",
    "Release",
    "AlbumTrack",
]
