"""Test candidate discovery over followed artists"""

from datetime import timedelta

import pytest

from release_sync.core.exceptions import ReleaseDateError, SpotifyError
from release_sync.core.state import RunMode, RunState
from release_sync.spotify.models import Release
from release_sync.sync.aggregator import CandidateAggregator

from conftest import NOW, rate_limit_error, release_item


def days_ago(days):
    return (NOW - timedelta(days=days)).strftime("%Y-%m-%d")


@pytest.fixture
def aggregator(fake_client, retry_policy, throttle):
    """Aggregator over the fake client with a fixed clock"""
    return CandidateAggregator(fake_client, retry_policy=retry_policy, throttle=throttle, now=NOW)


class TestNewestReleases:
    """Test merging of album and single listings"""

    def test_merges_and_sorts_newest_first(self, fake_client, aggregator):
        """Albums and singles are merged and sorted by date descending"""
        fake_client.follow(
            "artist1", "Artist One",
            albums=[release_item("alb_old", "2024-01-01"), release_item("alb_new", "2026-10-01")],
            singles=[release_item("sgl", "2026-10-10", album_type="single")],
        )

        releases = aggregator.newest_releases("artist1", limit=5)

        assert [r.id for r in releases] == ["sgl", "alb_new", "alb_old"]

    def test_duplicate_release_keeps_later_group(self, fake_client, aggregator):
        """A release listed as album and single appears once, from the single listing"""
        fake_client.follow(
            "artist1", "Artist One",
            albums=[release_item("same", "2026-10-01", album_type="album", name="From Albums")],
            singles=[release_item("same", "2026-10-01", album_type="single", name="From Singles")],
        )

        releases = aggregator.newest_releases("artist1", limit=5)

        assert len(releases) == 1
        assert releases[0].name == "From Singles"

    def test_requests_both_groups(self, fake_client, aggregator):
        """One request per group"""
        fake_client.follow("artist1", "Artist One")
        aggregator.newest_releases("artist1", limit=5)

        groups = sorted(call[2] for call in fake_client.calls if call[0] == "artist_releases")
        assert groups == ["album", "single"]

    def test_group_request_is_retried(self, fake_client, aggregator, sleep):
        """A rate-limited group request is retried on its own"""
        fake_client.follow("artist1", "Artist One", albums=[release_item("a", "2026-10-01")])
        fake_client.fail("artist_releases", rate_limit_error(retry_after=2))

        releases = aggregator.newest_releases("artist1", limit=5)

        assert [r.id for r in releases] == ["a"]
        assert sleep.delays == [2.0]

    def test_malformed_date_propagates(self, fake_client, aggregator):
        """An unparseable release date aborts the scan"""
        fake_client.follow("artist1", "Artist One", albums=[release_item("bad", "2026-13-45")])
        with pytest.raises(ReleaseDateError):
            aggregator.newest_releases("artist1", limit=5)


class TestQualifyingReleases:
    """Test the cutoff filter"""

    def test_boundary_is_inclusive(self):
        """A release exactly at the cutoff qualifies"""
        cutoff = NOW.replace(hour=0) - timedelta(days=9)
        on_cutoff = Release.from_spotify_api(release_item("on", cutoff.strftime("%Y-%m-%d")))
        before = Release.from_spotify_api(
            release_item("before", (cutoff - timedelta(days=1)).strftime("%Y-%m-%d"))
        )

        result = CandidateAggregator.qualifying_releases([on_cutoff, before], cutoff)

        assert [r.id for r in result] == ["on"]

    def test_coarse_precision_uses_first_day(self):
        """Month and year dates count from their first day"""
        cutoff = NOW - timedelta(days=30)
        this_month = Release.from_spotify_api(release_item("m", "2026-10", precision="month"))
        this_year = Release.from_spotify_api(release_item("y", "2026", precision="year"))

        result = CandidateAggregator.qualifying_releases([this_month, this_year], cutoff)

        assert [r.id for r in result] == ["m"]


class TestBuildCandidates:
    """Test the full candidate scan"""

    def test_bootstrap_scan(self, fake_client, aggregator):
        """First run looks back bootstrap_days and collects unique track URIs"""
        fake_client.follow(
            "artist1", "Artist One",
            albums=[release_item("recent_album", days_ago(20)), release_item("old_album", days_ago(40))],
            singles=[release_item("recent_single", days_ago(2), album_type="single")],
        )
        fake_client.set_tracks("recent_album", ["spotify:track:t1", "spotify:track:t2"])
        fake_client.set_tracks("recent_single", ["spotify:track:t2"])
        fake_client.set_tracks("old_album", ["spotify:track:old"])

        state = RunState()
        result = aggregator.build_candidates(state, per_artist_limit=5)

        assert result.candidate_uris == {"spotify:track:t1", "spotify:track:t2"}
        assert result.qualifying_release_count == 2
        assert result.artists_scanned == 1
        assert [release.id for _, release in result.releases] == ["recent_single", "recent_album"]

    def test_incremental_window_for_known_artist(self, fake_client, aggregator):
        """Known artists only look back incremental_days + buffer_days"""
        fake_client.follow("known", "Known", albums=[release_item("k_old", days_ago(20))])
        fake_client.follow("new", "New", albums=[release_item("n_old", days_ago(20))])
        fake_client.set_tracks("k_old", ["spotify:track:k"])
        fake_client.set_tracks("n_old", ["spotify:track:n"])

        state = RunState(mode=RunMode.INCREMENTAL, last_run_at=NOW - timedelta(days=1),
                         artists={"known": True})
        result = aggregator.build_candidates(state, per_artist_limit=5)

        assert result.candidate_uris == {"spotify:track:n"}

    def test_release_on_cutoff_day_is_included(self, fake_client, retry_policy, throttle):
        """A day-precision release dated exactly at the cutoff instant qualifies"""
        midnight = NOW.replace(hour=0)
        fake_client.follow("a1", "One", albums=[
            release_item("edge", (midnight - timedelta(days=30)).strftime("%Y-%m-%d")),
            release_item("outside", (midnight - timedelta(days=31)).strftime("%Y-%m-%d")),
        ])
        fake_client.set_tracks("edge", ["spotify:track:edge"])
        fake_client.set_tracks("outside", ["spotify:track:outside"])
        aggregator = CandidateAggregator(fake_client, retry_policy=retry_policy,
                                         throttle=throttle, now=midnight)

        result = aggregator.build_candidates(RunState(), per_artist_limit=5)

        assert result.candidate_uris == {"spotify:track:edge"}

    def test_no_completed_run_ignores_markers(self, fake_client, aggregator):
        """With last_run_at null even marked artists get the bootstrap window"""
        fake_client.follow("a1", "One", albums=[release_item("x", days_ago(20))])
        fake_client.set_tracks("x", ["spotify:track:x"])

        state = RunState(artists={"a1": True})
        result = aggregator.build_candidates(state, per_artist_limit=5)

        assert result.candidate_uris == {"spotify:track:x"}

    def test_every_artist_is_marked(self, fake_client, aggregator):
        """Artists are marked scanned even without qualifying releases"""
        fake_client.follow("a1", "One", albums=[release_item("x", days_ago(1))])
        fake_client.follow("a2", "Two")
        fake_client.set_tracks("x", ["spotify:track:x"])

        state = RunState()
        aggregator.build_candidates(state, per_artist_limit=5)

        assert state.artists == {"a1": True, "a2": True}

    def test_fixed_window_without_state(self, fake_client, aggregator):
        """Preview scans use the given window and mark nothing"""
        fake_client.follow("a1", "One", albums=[release_item("x", days_ago(20))])
        fake_client.set_tracks("x", ["spotify:track:x"])

        assert aggregator.build_candidates(None, lookback_days=10).candidate_uris == set()
        assert aggregator.build_candidates(None, lookback_days=25).candidate_uris == {"spotify:track:x"}

    def test_requires_window_source(self, aggregator):
        """Either a state or a window must be given"""
        with pytest.raises(ValueError):
            aggregator.build_candidates(None)

    def test_throttles_between_artists(self, fake_client, aggregator, throttle):
        """The throttle pauses once per artist"""
        for index in range(3):
            fake_client.follow(f"a{index}", f"Artist {index}")

        aggregator.build_candidates(RunState(), per_artist_limit=5)

        assert throttle.sleep.delays == [0.15, 0.15, 0.15]

    def test_followed_artists_are_paginated(self, fake_client, aggregator):
        """More than one page of followed artists is read completely"""
        for index in range(120):
            fake_client.follow(f"a{index:03d}", f"Artist {index}")

        artists = aggregator.followed_artists()

        assert len(artists) == 120
        assert len({artist.id for artist in artists}) == 120
        pages = [call for call in fake_client.calls if call[0] == "followed_artists_page"]
        assert len(pages) == 3

    def test_album_tracks_are_paginated(self, fake_client, aggregator):
        """Releases with more than one page of tracks are read completely"""
        fake_client.set_tracks("big", [f"spotify:track:{n}" for n in range(75)])
        assert len(aggregator.release_track_uris("big")) == 75

    def test_tracks_without_uri_are_skipped(self, fake_client, aggregator):
        """Unavailable tracks contribute no URI"""
        fake_client.set_tracks("rel", ["spotify:track:a", None])
        assert aggregator.release_track_uris("rel") == ["spotify:track:a"]

    def test_error_stops_scan(self, fake_client, aggregator):
        """A non-retryable error propagates out of the scan"""
        fake_client.follow("a1", "One")
        fake_client.fail("artist_releases", SpotifyError("Server error", http_status=500))

        with pytest.raises(SpotifyError):
            aggregator.build_candidates(RunState(), per_artist_limit=5)
