"""
Data models for Spotify entities.

Immutable dataclasses for the few Spotify objects the release scan
touches. They exist only for the duration of one run; nothing here is
persisted.

Design Decisions:
    - All dataclasses are frozen (immutable)
    - Field names follow the Spotify API where possible
    - from_spotify_api() tolerates missing optional fields but requires ids

Usage:
    from release_sync.spotify.models import Artist, Release

    artist = Artist.from_spotify_api(item)
    release = Release.from_spotify_api(album_item)
    print(release.released_at)
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from release_sync.utils.dates import parse_release_instant


@dataclass(frozen=True)
class Artist:
    """
    A followed artist.

    Attributes:
        id: Spotify artist id.
        name: Display name.
    """
    id: str
    name: str

    @classmethod
    def from_spotify_api(cls, data: dict[str, Any]) -> "Artist":
        return cls(id=data["id"], name=data.get("name") or "")


@dataclass(frozen=True)
class Release:
    """
    An album or single from an artist's discography.

    Attributes:
        id: Spotify album id.
        name: Release title.
        release_date: Raw date string ("2024", "2024-10" or "2024-10-17").
        release_date_precision: "year", "month" or "day".
        album_type: "album", "single" or "compilation".
        uri: Spotify URI of the album.
        spotify_url: open.spotify.com link.

    Class Methods:
        from_spotify_api: Build from a simplified album object as returned
                          by the artist albums endpoint.

    Example:
        release = Release.from_spotify_api({
            "id": "4aawyAB9vmqN3uQ7FjRGTy",
            "name": "Global Warming",
            "release_date": "2012-11-16",
            "release_date_precision": "day",
            "album_type": "album",
        })
        assert release.released_at.year == 2012
    """
    id: str
    name: str
    release_date: str
    release_date_precision: str
    album_type: str = ""
    uri: str = ""
    spotify_url: str = ""

    @classmethod
    def from_spotify_api(cls, data: dict[str, Any]) -> "Release":
        release_id = data["id"]
        return cls(
            id=release_id,
            name=data.get("name") or "",
            release_date=data.get("release_date") or "",
            release_date_precision=data.get("release_date_precision") or "day",
            album_type=data.get("album_type") or "",
            uri=data.get("uri") or f"spotify:album:{release_id}",
            spotify_url=(data.get("external_urls") or {}).get(
                "spotify",
                f"https://open.spotify.com/album/{release_id}"
            ),
        )

    @property
    def released_at(self) -> datetime:
        """
        Release date as a UTC instant.

        Raises:
            ReleaseDateError: If release_date does not match its precision.
        """
        return parse_release_instant(self.release_date, self.release_date_precision)

    def to_preview_dict(self) -> dict[str, Any]:
        """Plain dictionary for the preview commands' JSON output."""
        return {
            "id": self.id,
            "name": self.name,
            "release_date": self.release_date,
            "release_date_precision": self.release_date_precision,
            "type": self.album_type,
        }


@dataclass(frozen=True)
class AlbumTrack:
    """
    A track listed on a release.

    Attributes:
        id: Spotify track id (None for unavailable tracks).
        name: Track title.
        uri: Spotify track URI, the unit of playlist de-duplication.
        track_number: Position on its disc.
    """
    id: str | None
    name: str
    uri: str | None
    track_number: int = 0

    @classmethod
    def from_spotify_api(cls, data: dict[str, Any]) -> "AlbumTrack":
        return cls(
            id=data.get("id"),
            name=data.get("name") or "",
            uri=data.get("uri"),
            track_number=data.get("track_number") or 0,
        )
