"""
Command-line interface for release-sync.

This module implements the CLI using Click, providing every command for
scanning followed artists and filling the target playlist.
rich-click is used for the output colors.

Commands:
    release-sync run                    Scan, add new tracks, save state
    release-sync would-add              Dry run: show what run would add
    release-sync releases               Preview recent releases (5 artists)
    release-sync tracks                 Preview tracks of recent releases (10 releases)
    release-sync artists                List followed artists
    release-sync debug-artist NAME      Show an artist's releases as the scan sees them
    release-sync create-playlist        Create the target playlist
    release-sync whoami                 Show the account behind the refresh token
    release-sync login                  Authorize and print a refresh token
    release-sync state                  Show the state file

Options:
    --config <path>                     Explicit config.yaml
    --verbose                           Debug output on the console

Usage:
    # First time: get a refresh token, put it in .env
    release-sync login

    # Create a playlist and put its id in .env as TARGET_PLAYLIST_ID
    release-sync create-playlist

    # Check what would happen, then do it
    release-sync would-add
    release-sync run

Configuration:
    Credentials come from .env or the environment (SPOTIFY_CLIENT_ID,
    SPOTIFY_CLIENT_SECRET, SPOTIFY_REFRESH_TOKEN, TARGET_PLAYLIST_ID);
    tuning from an optional config.yaml. See release_sync.core.config.

Exit Codes:
    0    success
    1    configuration error or unexpected error
    2    state file error
    3    Spotify API error
    4    other release-sync error
    130  interrupted
"""

import json
import sys
from pathlib import Path
from typing import Any, Callable

import rich_click as click

# Configure rich-click for better help formatting
click.rich_click.USE_RICH_MARKUP = True
click.rich_click.SHOW_ARGUMENTS = True
click.rich_click.GROUP_ARGUMENTS_OPTIONS = True
click.rich_click.STYLE_ERRORS_SUGGESTION = "magenta italic"
click.rich_click.ERRORS_SUGGESTION = ""
click.rich_click.MAX_WIDTH = 100
click.rich_click.COMMAND_GROUPS = {
    "release-sync": [
        {
            "name": "Sync",
            "commands": ["run", "would-add"],
        },
        {
            "name": "Inspect",
            "commands": ["releases", "tracks", "artists", "debug-artist", "state"],
        },
        {
            "name": "Account",
            "commands": ["login", "whoami", "create-playlist"],
        },
    ],
}

from release_sync import __version__
from release_sync.core import (
    Config,
    ConfigError,
    ReleaseSyncError,
    SpotifyError,
    StateError,
    StateStore,
    get_logger,
    load_config,
    setup_logging,
    shutdown_logging,
    validate_playlist_id,
)
from release_sync.spotify import SpotifyClient, authorize, refresh_access_token
from release_sync.sync import (
    CandidateAggregator,
    PlaylistSync,
    RetryPolicy,
    Throttle,
    find_followed_artist,
    preview_releases,
    preview_tracks,
    run_sync,
)

logger = get_logger(__name__)

PLAYLIST_DESCRIPTION = "Auto-generated from new releases of followed artists"

# Followed artists listed by `artists`
ARTIST_PREVIEW_SIZE = 10


@click.group()
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    help="Path to config.yaml (default: ./config.yaml if present)",
)
@click.option(
    "--verbose", "-v",
    is_flag=True,
    help="Show debug messages on the console",
)
@click.version_option(version=__version__, prog_name="release-sync")
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None, verbose: bool) -> None:
    """
    Add new releases from the artists you follow on Spotify to a playlist.

    [bold]Examples:[/bold]

        release-sync login

        release-sync would-add

        release-sync run
    """
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose


@cli.command()
@click.pass_context
def run(ctx: click.Context) -> None:
    """Scan followed artists, add new tracks and record the run."""
    _execute(ctx, lambda config: _sync(config, dry_run=False))


@cli.command("would-add")
@click.pass_context
def would_add(ctx: click.Context) -> None:
    """Show what [bold]run[/bold] would add, without adding or saving state."""
    _execute(ctx, lambda config: _sync(config, dry_run=True))


@cli.command()
@click.option("--lookback-days", type=click.IntRange(min=0), default=None,
              help="Window in days (default: RELEASE_LOOKBACK_DAYS)")
@click.option("--limit", "per_artist_limit", type=click.IntRange(1, 50), default=None,
              help="Releases per group and artist (default: RELEASE_LIMIT_PER_ARTIST)")
@click.pass_context
def releases(ctx: click.Context, lookback_days: int | None, per_artist_limit: int | None) -> None:
    """Preview recent releases of the first artists that have any."""
    def action(config: Config) -> dict[str, Any]:
        aggregator = _build_aggregator(config, _connect(config))
        return preview_releases(
            aggregator,
            lookback_days if lookback_days is not None else config.releases.lookback_days,
            per_artist_limit or config.releases.limit_per_artist,
        )
    _execute(ctx, action)


@cli.command()
@click.option("--lookback-days", type=click.IntRange(min=0), default=None,
              help="Window in days (default: RELEASE_LOOKBACK_DAYS)")
@click.option("--limit", "per_artist_limit", type=click.IntRange(1, 50), default=None,
              help="Releases per group and artist (default: RELEASE_LIMIT_PER_ARTIST)")
@click.pass_context
def tracks(ctx: click.Context, lookback_days: int | None, per_artist_limit: int | None) -> None:
    """Preview the tracks of the first recent releases."""
    def action(config: Config) -> dict[str, Any]:
        aggregator = _build_aggregator(config, _connect(config))
        return preview_tracks(
            aggregator,
            lookback_days if lookback_days is not None else config.releases.lookback_days,
            per_artist_limit or config.releases.limit_per_artist,
        )
    _execute(ctx, action)


@cli.command()
@click.pass_context
def artists(ctx: click.Context) -> None:
    """List how many artists you follow and the first few names."""
    def action(config: Config) -> dict[str, Any]:
        followed = _build_aggregator(config, _connect(config)).followed_artists()
        return {
            "followed_artists_count": len(followed),
            "first_10": [artist.name for artist in followed[:ARTIST_PREVIEW_SIZE]],
        }
    _execute(ctx, action)


@cli.command("debug-artist")
@click.argument("name")
@click.pass_context
def debug_artist(ctx: click.Context, name: str) -> None:
    """Show the newest releases of a followed artist NAME as the scan sees them."""
    def action(config: Config) -> dict[str, Any]:
        aggregator = _build_aggregator(config, _connect(config))
        return find_followed_artist(aggregator, name, config.releases.limit_per_artist)
    _execute(ctx, action)


@cli.command("create-playlist")
@click.option("--name", default=None, help="Playlist name (default: TARGET_PLAYLIST_NAME)")
@click.pass_context
def create_playlist(ctx: click.Context, name: str | None) -> None:
    """Create a private playlist to use as TARGET_PLAYLIST_ID."""
    def action(config: Config) -> dict[str, Any]:
        client = _connect(config)
        user = client.current_user()
        playlist = client.create_playlist(
            user["id"],
            name or config.playlist.name,
            description=PLAYLIST_DESCRIPTION,
            public=False,
        )
        logger.info(f"Playlist created: {playlist.get('name')}")
        return {
            "id": playlist.get("id"),
            "name": playlist.get("name"),
            "url": (playlist.get("external_urls") or {}).get("spotify"),
        }
    _execute(ctx, action)


@cli.command()
@click.pass_context
def whoami(ctx: click.Context) -> None:
    """Show the Spotify account the refresh token belongs to."""
    def action(config: Config) -> dict[str, Any]:
        user = _connect(config).current_user()
        return {"id": user.get("id"), "display_name": user.get("display_name")}
    _execute(ctx, action)


@cli.command()
@click.option("--no-browser", is_flag=True, help="Print the authorization URL instead of opening it")
@click.pass_context
def login(ctx: click.Context, no_browser: bool) -> None:
    """Authorize release-sync and print the refresh token to store in .env."""
    def action(config: Config) -> None:
        token_info = authorize(config.spotify, open_browser=not no_browser)
        click.echo("Authorization successful. Add this line to your .env file:\n")
        click.echo(f"SPOTIFY_REFRESH_TOKEN={token_info['refresh_token']}")
    _execute(ctx, action)


@cli.command()
@click.pass_context
def state(ctx: click.Context) -> None:
    """Show where the run state lives and what it contains."""
    def action(config: Config) -> dict[str, Any]:
        store = StateStore(config.state.path)
        return {"path": str(store.path), "exists": store.path.exists(), "state": store.load().to_dict()}
    _execute(ctx, action)


def _sync(config: Config, dry_run: bool) -> dict[str, Any]:
    """Shared body of `run` and `would-add`."""
    # Validated before any request so a bad id never touches the API
    playlist_id = validate_playlist_id(config.playlist.id)
    client = _connect(config)

    summary = run_sync(
        aggregator=_build_aggregator(config, client),
        playlist=PlaylistSync(client, _build_retry_policy(config), max_pages=config.requests.max_pages),
        store=StateStore(config.state.path),
        playlist_id=playlist_id,
        per_artist_limit=config.releases.limit_per_artist,
        dry_run=dry_run,
        keep_progress_on_failure=config.state.keep_progress_on_failure,
    )
    return summary.to_dict()


def _connect(config: Config) -> SpotifyClient:
    """
    Exchange the refresh token and build a client for this invocation.

    Raises:
        ConfigError: If no refresh token is configured.
        SpotifyError: If the token exchange fails.
    """
    access_token = refresh_access_token(config.spotify)
    return SpotifyClient(access_token, timeout=config.requests.timeout)


def _build_retry_policy(config: Config) -> RetryPolicy:
    return RetryPolicy(max_retries=config.requests.max_retries)


def _build_aggregator(config: Config, client: SpotifyClient) -> CandidateAggregator:
    return CandidateAggregator(
        client,
        retry_policy=_build_retry_policy(config),
        throttle=Throttle(config.requests.artist_delay),
        max_pages=config.requests.max_pages,
        show_progress=sys.stderr.isatty(),
    )


def _execute(ctx: click.Context, action: Callable[[Config], Any]) -> None:
    """
    Load configuration, set up logging, run `action` and map errors to exit codes.

    A non-None result of `action` is printed to stdout as JSON.
    """
    options = ctx.obj or {}
    try:
        config = load_config(options.get("config_path"))
        setup_logging(config.logging.directory, verbose=options.get("verbose", False))

        result = action(config)
        if result is not None:
            click.echo(json.dumps(result, indent=2))

    except ConfigError as e:
        click.echo(f"Configuration error: {e.message}", err=True)
        sys.exit(1)

    except StateError as e:
        click.echo(f"State error: {e.message}", err=True)
        logger.error(f"State error: {e.message}", exc_info=True)
        sys.exit(2)

    except SpotifyError as e:
        click.echo(f"Spotify error: {e.message}", err=True)
        if e.details.get("body"):
            click.echo(json.dumps(e.details["body"]), err=True)
        if e.is_auth_error:
            click.echo("Check SPOTIFY_CLIENT_ID, SPOTIFY_CLIENT_SECRET and SPOTIFY_REFRESH_TOKEN", err=True)
        logger.error(f"Spotify error: {e.message}", exc_info=True)
        sys.exit(3)

    except ReleaseSyncError as e:
        click.echo(f"Error: {e.message}", err=True)
        logger.error(f"Error: {e.message}", exc_info=True)
        sys.exit(4)

    except KeyboardInterrupt:
        click.echo("\nInterrupted by user", err=True)
        logger.info("Interrupted by user")
        sys.exit(130)

    except Exception as e:
        click.echo(f"Unexpected error: {e}", err=True)
        logger.exception("Unexpected error")
        sys.exit(1)

    finally:
        shutdown_logging()


def main() -> None:
    """
    Entry point for the CLI.

    Called when running `release-sync` from the command line.
    """
    cli()


if __name__ == "__main__":
    main()
