"""
Logging configuration for release-sync.

This module sets up the logging system with multiple outputs:
    - Console: Colored, tqdm-compatible output (INFO, or DEBUG with --verbose)
    - log_full_<ts>.log: Complete log of all events (DEBUG and above)
    - log_errors_<ts>.log: Only ERROR and CRITICAL level messages
    - releases_found_<ts>.log: Every qualifying release seen during a scan
    - tracks_added_<ts>.log: Every track URI appended to the playlist

Everything printed to screen is also saved to file, then filtered into
specialized report files.

Usage:
    from release_sync.core.logger import setup_logging, get_logger

    setup_logging(log_dir)          # Call once at startup
    logger = get_logger(__name__)   # Get logger for each module

    logger.info("Scanning followed artists")
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Iterable, TextIO

from tqdm import tqdm


# Log format for file output (detailed with timestamp)
FILE_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
FILE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Libraries that are chatty at DEBUG level
NOISY_LOGGERS = ("urllib3", "spotipy")


class Colors:
    """ANSI color codes for terminal output."""
    RESET = "\033[0m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    CYAN = "\033[36m"
    WHITE = "\033[37m"
    BOLD = "\033[1m"


class ColoredConsoleFormatter(logging.Formatter):
    """
    Formatter that prefixes console messages with a colored level name.

    Colors:
        - DEBUG: Blue
        - INFO: Green
        - WARNING: Yellow
        - ERROR: Red
        - CRITICAL: Bold Red
    """

    LEVEL_COLORS = {
        logging.DEBUG: Colors.BLUE,
        logging.INFO: Colors.GREEN,
        logging.WARNING: Colors.YELLOW,
        logging.ERROR: Colors.RED,
        logging.CRITICAL: Colors.BOLD + Colors.RED,
    }

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno, Colors.WHITE)
        return f"{color}{record.levelname}{Colors.RESET}: {record.getMessage()}"


class TqdmLoggingHandler(logging.Handler):
    """
    Logging handler that writes to console without breaking tqdm progress bars.

    tqdm redraws its bar in place with carriage returns; a plain stream
    handler writing to the same terminal corrupts it. tqdm.write() prints
    the message above the active bar instead.

    Attributes:
        stream: The output stream (defaults to sys.stderr).
    """

    def __init__(self, stream: TextIO = sys.stderr) -> None:
        super().__init__()
        self.stream = stream

    def emit(self, record: logging.LogRecord) -> None:
        try:
            msg = self.format(record)
            tqdm.write(msg, file=self.stream)
        except Exception:
            self.handleError(record)


class ReportFileHandler(logging.Handler):
    """
    Base handler that copies selected log records into a report file.

    A record is written only when it carries the subclass's marker
    attribute (passed through the `extra` argument of a logging call).
    Subclasses set `marker` and implement format_entry().

    Attributes:
        report_path: Path of the report file.
        report_file: Open file handle, None until open() is called.
    """

    marker = ""

    def __init__(self, report_path: Path) -> None:
        super().__init__()
        self.report_path = report_path
        self.report_file: TextIO | None = None

    def open(self) -> None:
        """Open the report file in write mode (overwrites existing content)."""
        self.report_file = open(self.report_path, "w", encoding="utf-8")

    def format_entry(self, record: logging.LogRecord) -> str:
        raise NotImplementedError

    def emit(self, record: logging.LogRecord) -> None:
        if not hasattr(record, self.marker):
            return

        if self.report_file is None:
            return

        try:
            self.acquire()
            try:
                self.report_file.write(self.format_entry(record))
                self.report_file.flush()
            finally:
                self.release()
        except Exception:
            self.handleError(record)

    def close(self) -> None:
        """Close the report file handle. Safe to call multiple times."""
        if self.report_file is not None:
            try:
                self.report_file.close()
            except OSError:
                pass
            self.report_file = None
        super().close()


class QualifyingReleaseHandler(ReportFileHandler):
    """
    Writes every qualifying release to releases_found_<ts>.log:

        2026-10-17  Artist Name - Release Name (single)
        https://open.spotify.com/album/xxxxx

    Fed by log_qualifying_release().
    """

    marker = "release_found_name"

    def format_entry(self, record: logging.LogRecord) -> str:
        name = getattr(record, "release_found_name", "Unknown")
        artist = getattr(record, "release_found_artist", "Unknown")
        date = getattr(record, "release_found_date", "")
        album_type = getattr(record, "release_found_type", "")
        url = getattr(record, "release_found_url", "")
        return f"{date}  {artist} - {name} ({album_type})\n{url}\n\n"


class AddedTracksHandler(ReportFileHandler):
    """
    Writes every batch of URIs appended to the playlist to tracks_added_<ts>.log,
    one URI per line under a playlist header.

    Fed by log_added_tracks().
    """

    marker = "tracks_added_uris"

    def format_entry(self, record: logging.LogRecord) -> str:
        playlist_id = getattr(record, "tracks_added_playlist", "")
        uris = getattr(record, "tracks_added_uris", [])
        lines = [f"# playlist {playlist_id}"]
        lines.extend(uris)
        return "\n".join(lines) + "\n\n"


class ErrorOnlyFilter(logging.Filter):
    """Filter that only allows ERROR and CRITICAL level records."""

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= logging.ERROR


def setup_logging(log_dir: Path, verbose: bool = False) -> None:
    """
    Configure the logging system for the application.

    Call ONCE at application startup, after the configuration is loaded
    and before any Spotify request is made.

    Args:
        log_dir: Directory where log files are created. Created if missing.
        verbose: Show DEBUG messages on the console.

    Behavior:
        1. Create log_dir if it doesn't exist
        2. Configure root logger level to DEBUG
        3. Console handler (TqdmLoggingHandler, colored)
        4. Full log file handler: log_dir/log_full_{timestamp}.log
        5. Error log file handler: log_dir/log_errors_{timestamp}.log
        6. Release report: log_dir/releases_found_{timestamp}.log
        7. Added tracks report: log_dir/tracks_added_{timestamp}.log

    Thread Safety:
        NOT thread-safe. Call from the main thread before starting
        any worker threads.
    """
    log_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.handlers.clear()

    console_handler = TqdmLoggingHandler()
    console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    console_handler.setFormatter(ColoredConsoleFormatter())
    root_logger.addHandler(console_handler)

    file_formatter = logging.Formatter(FILE_LOG_FORMAT, FILE_DATE_FORMAT)

    full_handler = logging.FileHandler(log_dir / f"log_full_{timestamp}.log", mode="w", encoding="utf-8")
    full_handler.setLevel(logging.DEBUG)
    full_handler.setFormatter(file_formatter)
    root_logger.addHandler(full_handler)

    error_handler = logging.FileHandler(log_dir / f"log_errors_{timestamp}.log", mode="w", encoding="utf-8")
    error_handler.setLevel(logging.DEBUG)  # Filter handles the level restriction
    error_handler.setFormatter(file_formatter)
    error_handler.addFilter(ErrorOnlyFilter())
    root_logger.addHandler(error_handler)

    releases_handler = QualifyingReleaseHandler(log_dir / f"releases_found_{timestamp}.log")
    releases_handler.open()
    root_logger.addHandler(releases_handler)

    added_handler = AddedTracksHandler(log_dir / f"tracks_added_{timestamp}.log")
    added_handler.open()
    root_logger.addHandler(added_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module.

    Args:
        name: The logger name, typically __name__ of the calling module.

    Returns:
        logging.Logger: A logger configured by setup_logging().

    Note:
        Loggers obtained before setup_logging() is called produce no
        output until it runs.
    """
    return logging.getLogger(name)


def log_qualifying_release(
    logger: logging.Logger,
    artist: str,
    release_name: str,
    release_date: str,
    album_type: str,
    spotify_url: str
) -> None:
    """
    Log a release that falls inside its artist's lookback window.

    Logs an INFO message and attaches the extra fields that
    QualifyingReleaseHandler writes to releases_found_<ts>.log.

    Example:
        log_qualifying_release(
            logger,
            artist="Artist Name",
            release_name="Release Name",
            release_date="2026-10-17",
            album_type="single",
            spotify_url="https://open.spotify.com/album/xxx"
        )
    """
    logger.info(
        f"New release: {artist} - {release_name} ({release_date})",
        extra={
            "release_found_name": release_name,
            "release_found_artist": artist,
            "release_found_date": release_date,
            "release_found_type": album_type,
            "release_found_url": spotify_url,
        }
    )


def log_added_tracks(logger: logging.Logger, playlist_id: str, uris: Iterable[str]) -> None:
    """Log a batch of URIs appended to a playlist for the added-tracks report."""
    uris = list(uris)
    logger.info(
        f"Added {len(uris)} tracks to playlist {playlist_id}",
        extra={
            "tracks_added_playlist": playlist_id,
            "tracks_added_uris": uris,
        }
    )


def shutdown_logging() -> None:
    """
    Flush, close and detach every handler of the root logger.

    Typically called in a finally block at application exit.
    """
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        try:
            handler.flush()
            handler.close()
        except OSError:
            pass
        root_logger.removeHandler(handler)
