"""Command-line interface for Spotify Playlist Monitor."""

from pathlib import Path
from typing import List, Optional
from urllib.parse import urlparse

import typer
from rich.console import Console
from rich.table import Table

from .config.database import SnapshotStore
from .config.settings import Settings
from .models.result import CheckResult
from .utils.platform import get_config_dir

app = typer.Typer(help="Spotify Playlist Change Monitor")
console = Console()

ConfigOption = typer.Option(
    None,
    "--config",
    "-c",
    help="Path to configuration file"
)


def get_settings(config_path: Optional[Path] = None) -> Settings:
    """Load settings from file (or defaults) and the environment."""
    return Settings.load(config_path)


def get_store(settings: Settings) -> SnapshotStore:
    """Get snapshot store."""
    return SnapshotStore(settings.database.path)


def get_service(config_path: Optional[Path] = None, settings: Optional[Settings] = None):
    """Build the service (imported lazily to keep CLI startup fast)."""
    from .service import PlaylistMonitorService

    return PlaylistMonitorService(config_path=config_path, settings=settings)


def extract_playlist_id(url_or_id: str) -> str:
    """Extract playlist ID from URL or URI, or return as-is if already an ID.

    Args:
        url_or_id: Spotify playlist URL, ``spotify:playlist:`` URI, or ID

    Returns:
        Playlist ID

    Raises:
        ValueError: If URL format is invalid
    """
    value = url_or_id.strip()

    if value.startswith('spotify:'):
        # Format: spotify:playlist:<ID>
        parts = value.split(':')
        if len(parts) == 3 and parts[1] == 'playlist' and parts[2]:
            return parts[2]
        raise ValueError(f"Invalid playlist URI format: {url_or_id}")

    if value.startswith('http'):
        # Format: https://open.spotify.com/playlist/<ID>?si=...
        parts = urlparse(value).path.rstrip('/').split('/')
        if 'playlist' in parts:
            idx = parts.index('playlist')
            if idx + 1 < len(parts) and parts[idx + 1]:
                return parts[idx + 1]
        raise ValueError(f"Invalid playlist URL format: {url_or_id}")

    if not value:
        raise ValueError("Playlist ID is required")
    return value


def print_result(result: CheckResult) -> None:
    """Print one check result."""
    if not result.success:
        console.print(f"[red]{result.playlist_id}: {result.error or result.message}[/red]")
        return

    name = result.playlist.name if result.playlist else result.playlist_id

    if result.is_first_check:
        console.print(f"[cyan]{name}: stored for the first time[/cyan]")
        return

    if not result.new_songs:
        console.print(f"[green]{name}: no new songs[/green]")
        return

    console.print(f"[green]{name}: {len(result.new_songs)} new song(s)[/green]")
    for track in result.new_songs:
        console.print(f"  {track.name} - {track.artists}")

    if result.email_sent:
        console.print("  Notification sent")
    else:
        console.print("  [yellow]Notification failed[/yellow]")


@app.command()
def start(
    config: Optional[Path] = ConfigOption,
    no_server: bool = typer.Option(
        False,
        "--no-server",
        help="Only run scheduled checks, without the HTTP API"
    )
):
    """Start the monitoring service (scheduler and HTTP API)."""
    console.print("[cyan]Starting Spotify Playlist Monitor service...[/cyan]")

    try:
        service = get_service(config)
        service.start(serve_http=not no_server)
    except KeyboardInterrupt:
        console.print("\n[yellow]Service stopped by user[/yellow]")
    except Exception as e:
        console.print(f"[red]Service error: {e}[/red]")
        raise typer.Exit(1)


@app.command()
def serve(config: Optional[Path] = ConfigOption):
    """Serve only the HTTP API, without scheduled checks."""
    try:
        service = get_service(config)
        service.scheduler = None
        service.start(serve_http=True)
    except Exception as e:
        console.print(f"[red]Server error: {e}[/red]")
        raise typer.Exit(1)


@app.command()
def check(
    url: str = typer.Argument(..., help="Spotify playlist URL, URI or ID"),
    config: Optional[Path] = ConfigOption
):
    """Check one playlist for new songs now."""
    try:
        playlist_id = extract_playlist_id(url)
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    service = get_service(config)
    try:
        result = service.monitor.check_playlist(playlist_id)
    finally:
        service.shutdown()
    print_result(result)

    if not result.success:
        raise typer.Exit(1)


@app.command(name="check-now")
def check_now(config: Optional[Path] = ConfigOption):
    """Check all configured playlists now."""
    settings = get_settings(config)
    playlist_ids: List[str] = settings.scheduler.playlist_ids

    if not playlist_ids:
        console.print("[yellow]No monitored playlists configured[/yellow]")
        console.print("\nSet MONITORED_PLAYLISTS or scheduler.playlist_ids in the config file")
        return

    console.print("[cyan]Checking playlists for changes...[/cyan]")
    service = get_service(config, settings=settings)
    try:
        results = service.monitor.check_multiple_playlists(playlist_ids)
    finally:
        service.shutdown()

    for result in results:
        print_result(result)

    total_new = sum(len(result.new_songs) for result in results)
    console.print(f"\n[bold]Found {total_new} new song(s) across {len(results)} playlist(s)[/bold]")

    if any(not result.success for result in results):
        raise typer.Exit(1)


@app.command(name="list-playlists")
def list_playlists(config: Optional[Path] = ConfigOption):
    """List all stored playlist snapshots."""
    settings = get_settings(config)
    store = get_store(settings)

    try:
        snapshots = store.list_snapshots()

        if not snapshots:
            console.print("[yellow]No playlists stored yet[/yellow]")
            console.print("\nUse the 'check' command to start tracking a playlist")
            return

        table = Table(title="Monitored Playlists")
        table.add_column("ID", style="cyan")
        table.add_column("Name", style="green")
        table.add_column("Owner")
        table.add_column("Tracks", justify="right")
        table.add_column("Stored", justify="right")
        table.add_column("Last Checked")

        for snapshot in snapshots:
            last_checked = (
                snapshot.last_checked.strftime("%Y-%m-%d %H:%M")
                if snapshot.last_checked
                else "Never"
            )
            table.add_row(
                snapshot.playlist_id,
                snapshot.playlist_name,
                snapshot.owner or "Unknown",
                str(snapshot.total_songs),
                str(store.count_tracks(snapshot.playlist_id)),
                last_checked
            )

        console.print(table)

    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)


@app.command(name="show-playlist")
def show_playlist(
    playlist_id: str = typer.Argument(..., help="Playlist URL, URI or ID"),
    config: Optional[Path] = ConfigOption
):
    """Show the stored track listing of a playlist."""
    settings = get_settings(config)
    store = get_store(settings)

    try:
        snapshot = store.find_by_playlist_id(extract_playlist_id(playlist_id))
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    if snapshot is None:
        console.print(f"[red]Playlist {playlist_id} not found[/red]")
        raise typer.Exit(1)

    table = Table(title=f"{snapshot.playlist_name} ({len(snapshot.tracks)} tracks)")
    table.add_column("#", justify="right")
    table.add_column("Title", style="green")
    table.add_column("Artists")
    table.add_column("Album")
    table.add_column("Added")

    for index, track in snapshot.display_order():
        table.add_row(
            str(index),
            track.name,
            track.artists,
            track.album or "",
            track.added_at.strftime("%Y-%m-%d") if track.added_at else ""
        )

    console.print(table)


@app.command(name="remove-playlist")
def remove_playlist(
    playlist_id: str = typer.Argument(..., help="Playlist URL, URI or ID to remove"),
    config: Optional[Path] = ConfigOption
):
    """Delete a stored playlist snapshot."""
    settings = get_settings(config)
    store = get_store(settings)

    try:
        playlist_id = extract_playlist_id(playlist_id)
        snapshot = store.find_by_playlist_id(playlist_id)
        if not snapshot:
            console.print(f"[red]Playlist {playlist_id} not found[/red]")
            raise typer.Exit(1)

        console.print(f"Playlist: {snapshot.playlist_name}")
        console.print(f"Tracks: {len(snapshot.tracks)}")

        confirm = typer.confirm("Delete this playlist snapshot?", default=False)

        if confirm:
            store.remove(playlist_id)
            console.print("[green]Playlist removed[/green]")
        else:
            console.print("[yellow]Cancelled[/yellow]")

    except typer.Exit:
        raise
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)


@app.command()
def status(config: Optional[Path] = ConfigOption):
    """Show configuration and stored snapshot statistics."""
    settings = get_settings(config)
    store = get_store(settings)

    try:
        snapshots = store.list_snapshots()

        console.print("[cyan]Spotify Playlist Monitor Status[/cyan]\n")

        console.print(f"Config directory: {get_config_dir()}")
        console.print(f"Database: {settings.database.path}")
        console.print(f"Log file: {settings.logging.path}\n")

        console.print("[bold]Spotify:[/bold]")
        credentials = settings.spotify.client_id and settings.spotify.client_secret
        console.print(f"  Credentials: {'configured' if credentials else '[red]missing[/red]'}\n")

        console.print("[bold]Schedule:[/bold]")
        if settings.scheduler.enabled:
            console.print(f"  Playlists: {', '.join(settings.scheduler.playlist_ids)}")
            if settings.scheduler.use_cron_schedule:
                console.print(f"  Cron: {settings.scheduler.cron_schedule}")
            else:
                console.print(f"  Every {settings.scheduler.check_interval_minutes} minute(s)")
        else:
            console.print("  Disabled (no playlists configured)")

        console.print("\n[bold]Notifications:[/bold]")
        console.print(f"  Backend: {settings.notifications.backend}")
        console.print(f"  Enabled: {settings.notifications.enabled}")

        console.print("\n[bold]Snapshots:[/bold]")
        console.print(f"  Stored playlists: {len(snapshots)}")
        if snapshots and snapshots[0].last_checked:
            console.print(f"  Last check: {snapshots[0].last_checked.strftime('%Y-%m-%d %H:%M')}")

    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)


@app.command(name="test-notification")
def test_notification(config: Optional[Path] = ConfigOption):
    """Send a test notification through the configured backend."""
    service = get_service(config)
    try:
        result = service.notifier.send_test()
    finally:
        service.shutdown()

    if result.success:
        console.print(f"[green]Test notification sent via {result.backend}[/green]")
    else:
        console.print(f"[red]Test notification failed: {result.error}[/red]")
        raise typer.Exit(1)


@app.command()
def init_config(
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output path for config file"
    )
):
    """Initialize a configuration file with defaults."""
    if output is None:
        output = get_config_dir() / 'config.yaml'

    if output.exists():
        overwrite = typer.confirm(
            f"Config file already exists at {output}. Overwrite?",
            default=False
        )
        if not overwrite:
            console.print("[yellow]Cancelled[/yellow]")
            return

    settings = Settings()
    settings.save(output)

    console.print(f"[green]Configuration file created: {output}[/green]")
    console.print("\nEdit this file to customize your settings")
    console.print("Secrets (client secret, SMTP password, API key) belong in the environment or .env")


if __name__ == "__main__":
    app()
