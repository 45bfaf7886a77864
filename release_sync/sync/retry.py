"""
Request pacing: reactive retry on rate limits and a fixed courtesy delay.

Two independent policies:
    RetryPolicy - reacts to HTTP 429. Waits for the server-suggested
                  Retry-After, or backs off exponentially, then retries.
    Throttle    - a fixed pause between artists that smooths the request
                  rate before Spotify has to push back.

Retry Strategy:
    - Retry-After header (seconds) when present and numeric
    - Otherwise exponential backoff: 1s -> 2s -> 4s -> 8s -> 16s -> 30s (capped)
    - At most 8 retries per call; the 9th rate-limit failure is re-raised
    - Any non rate-limit error is re-raised at once, without waiting

The attempt counter lives inside call(), so a single policy object can be
shared by every request of a run and each call still backs off on its own.
"""

import time
from typing import Callable, TypeVar

from release_sync.core.exceptions import SpotifyError
from release_sync.core.logger import get_logger


logger = get_logger(__name__)

T = TypeVar("T")

# Maximum number of retries for a single rate-limited request
MAX_RETRIES = 8

# First backoff delay in seconds, doubled per attempt
RETRY_DELAY_BASE = 1.0

# Backoff ceiling in seconds
RETRY_DELAY_MAX = 30.0

# Pause between two artists in seconds
ARTIST_DELAY = 0.15


class RetryPolicy:
    """
    Retries an operation while it fails with a rate-limit SpotifyError.

    Attributes:
        max_retries: Retries allowed per call before re-raising.
        base_delay: Backoff delay for the first retry, in seconds.
        max_delay: Upper bound for the backoff delay, in seconds.
        sleep: Function used to wait (injectable for tests).

    Example:
        policy = RetryPolicy()
        page = policy.call(
            lambda: client.followed_artists_page(after=None),
            description="followed artists"
        )
    """

    def __init__(
        self,
        max_retries: int = MAX_RETRIES,
        base_delay: float = RETRY_DELAY_BASE,
        max_delay: float = RETRY_DELAY_MAX,
        sleep: Callable[[float], None] = time.sleep
    ) -> None:
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.sleep = sleep

    def backoff_delay(self, attempt: int) -> float:
        """Exponential delay for a zero-based attempt number, capped at max_delay."""
        return min(self.base_delay * (2 ** attempt), self.max_delay)

    def wait_time(self, error: SpotifyError, attempt: int) -> float:
        """
        Seconds to wait before retrying after `error`.

        Retry-After wins when it is a usable number; the backoff
        schedule is the fallback.
        """
        retry_after = error.retry_after
        if retry_after is not None:
            return retry_after
        return self.backoff_delay(attempt)

    def call(self, operation: Callable[[], T], description: str = "request") -> T:
        """
        Run `operation`, retrying while it raises a rate-limit SpotifyError.

        Args:
            operation: Zero-argument callable performing one remote request.
            description: Short label used in log messages.

        Returns:
            Whatever `operation` returns.

        Raises:
            SpotifyError: The last rate-limit error once max_retries
                          retries are used up.
            Exception: Any other error raised by `operation`, unchanged
                       and without retrying.
        """
        attempt = 0
        while True:
            try:
                return operation()
            except SpotifyError as e:
                if not e.is_rate_limit:
                    raise

                delay = self.wait_time(e, attempt)
                attempt += 1
                if attempt > self.max_retries:
                    logger.error(
                        f"Rate limited on {description}, giving up after "
                        f"{self.max_retries} retries"
                    )
                    raise

                logger.warning(
                    f"Rate limited on {description}. "
                    f"Retry {attempt}/{self.max_retries} in {delay:.1f}s"
                )
                self.sleep(delay)


class Throttle:
    """
    Fixed delay between consecutive units of work (one artist each).

    Example:
        throttle = Throttle(0.15)
        for artist in artists:
            scan(artist)
            throttle.pause()
    """

    def __init__(self, delay: float = ARTIST_DELAY, sleep: Callable[[float], None] = time.sleep) -> None:
        self.delay = delay
        self.sleep = sleep

    def pause(self) -> None:
        if self.delay > 0:
            self.sleep(self.delay)
