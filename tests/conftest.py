"""Test configuration and fixtures"""

import threading
from datetime import datetime, timezone

import pytest

from release_sync.core.exceptions import SpotifyError
from release_sync.core.state import StateStore
from release_sync.sync.retry import RetryPolicy, Throttle


# Fixed reference time for every window computation in the tests
NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def release_item(release_id, release_date, precision="day", album_type="album", name=None):
    """Simplified album object as returned by the artist albums endpoint"""
    return {
        "id": release_id,
        "name": name or f"Release {release_id}",
        "release_date": release_date,
        "release_date_precision": precision,
        "album_type": album_type,
        "uri": f"spotify:album:{release_id}",
        "external_urls": {"spotify": f"https://open.spotify.com/album/{release_id}"},
    }


def track_item(uri, name=None, number=1):
    """Simplified track object as returned by the album tracks endpoint"""
    track_id = uri.rsplit(":", 1)[-1] if uri else None
    return {"id": track_id, "name": name or f"Track {track_id}", "uri": uri, "track_number": number}


def rate_limit_error(retry_after=None):
    headers = {"Retry-After": str(retry_after)} if retry_after is not None else {}
    return SpotifyError(
        "Rate limited",
        details={"http_status": 429},
        is_rate_limit=True,
        http_status=429,
        headers=headers,
    )


class FakeSpotifyClient:
    """
    In-memory stand-in for SpotifyClient.

    Serves followed artists, releases, album tracks and playlist items
    from plain dictionaries, paginating the same way the real client
    does. Errors queued in `failures[method]` are raised (one per call)
    before the method does its normal work.
    """

    def __init__(self):
        self.artists = []
        self.releases = {}
        self.album_tracks = {}
        self.playlists = {}
        self.failures = {}
        self.calls = []
        self.added_batches = []
        self.user = {"id": "test_user", "display_name": "Test User"}
        self._lock = threading.Lock()

    # Setup helpers

    def follow(self, artist_id, name, albums=(), singles=()):
        self.artists.append({"id": artist_id, "name": name})
        self.releases[artist_id] = {"album": list(albums), "single": list(singles)}

    def set_tracks(self, album_id, uris):
        self.album_tracks[album_id] = [
            track_item(uri, number=index + 1) for index, uri in enumerate(uris)
        ]

    def set_playlist(self, playlist_id, uris):
        self.playlists[playlist_id] = [{"track": {"uri": uri}} for uri in uris]

    def fail(self, method, *errors):
        self.failures.setdefault(method, []).extend(errors)

    def _maybe_fail(self, method):
        # Release groups are fetched from two threads
        with self._lock:
            queue = self.failures.get(method)
            error = queue.pop(0) if queue else None
        if error is not None:
            raise error

    # SpotifyClient interface

    def current_user(self):
        self.calls.append(("current_user",))
        self._maybe_fail("current_user")
        return self.user

    def followed_artists_page(self, after=None, limit=50):
        self.calls.append(("followed_artists_page", after))
        self._maybe_fail("followed_artists_page")
        ids = [artist["id"] for artist in self.artists]
        start = ids.index(after) + 1 if after else 0
        page = self.artists[start:start + limit]
        more = start + limit < len(self.artists)
        return list(page), (page[-1]["id"] if more and page else None)

    def artist_releases(self, artist_id, group, limit):
        self.calls.append(("artist_releases", artist_id, group))
        self._maybe_fail("artist_releases")
        return list(self.releases.get(artist_id, {}).get(group, []))[:limit]

    def album_tracks_page(self, album_id, offset=0, limit=50):
        self.calls.append(("album_tracks_page", album_id, offset))
        self._maybe_fail("album_tracks_page")
        items = self.album_tracks.get(album_id, [])
        page = items[offset:offset + limit]
        return list(page), (offset + limit if offset + limit < len(items) else None)

    def playlist_tracks_page(self, playlist_id, offset=0, limit=100):
        self.calls.append(("playlist_tracks_page", playlist_id, offset))
        self._maybe_fail("playlist_tracks_page")
        items = self.playlists.get(playlist_id, [])
        page = items[offset:offset + limit]
        return list(page), (offset + limit if offset + limit < len(items) else None)

    def add_tracks(self, playlist_id, uris):
        self.calls.append(("add_tracks", playlist_id, len(uris)))
        assert len(uris) <= 100
        self._maybe_fail("add_tracks")
        self.added_batches.append(list(uris))
        self.playlists.setdefault(playlist_id, []).extend({"track": {"uri": uri}} for uri in uris)
        return "snapshot"

    def create_playlist(self, user_id, name, description="", public=False):
        self.calls.append(("create_playlist", user_id, name, public))
        self._maybe_fail("create_playlist")
        return {"id": "new_playlist_id_123", "name": name,
                "external_urls": {"spotify": "https://open.spotify.com/playlist/new_playlist_id_123"}}

    def playlist_uris(self, playlist_id):
        return [item["track"]["uri"] for item in self.playlists.get(playlist_id, [])]


class RecordingSleep:
    """Replacement for time.sleep that records requested delays"""

    def __init__(self):
        self.delays = []

    def __call__(self, seconds):
        self.delays.append(seconds)


@pytest.fixture
def fake_client():
    """Empty fake Spotify client"""
    return FakeSpotifyClient()


@pytest.fixture
def sleep():
    """Recording sleep function"""
    return RecordingSleep()


@pytest.fixture
def retry_policy(sleep):
    """Retry policy that never really waits"""
    return RetryPolicy(sleep=sleep)


@pytest.fixture
def throttle():
    """Throttle that never really waits"""
    return Throttle(delay=0.15, sleep=RecordingSleep())


@pytest.fixture
def state_path(tmp_path):
    """Location of a state file inside a temporary directory"""
    return tmp_path / "data" / "state.json"


@pytest.fixture
def store(state_path):
    """State store backed by a temporary file"""
    return StateStore(state_path)
