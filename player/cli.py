import click
from rich.console import Console
from rich.table import Table
from rich.live import Live
from rich.panel import Panel
from rich.text import Text
import logging
import queue
import threading
from typing import Optional

from shared.config import setup_logging
from shared.constants import DEFAULT_VOLUME, TIME_UPDATE_INTERVAL
from .controller import PlaybackController
from .library import LibraryManager
from .session import get_session, close_session
from .state import PlaybackSnapshot

# Try to import the mpv sink, handle missing libmpv
try:
    from .engine import MpvMediaSink
    MPV_AVAILABLE = True
except OSError:
    MPV_AVAILABLE = False

console = Console()
logger = logging.getLogger(__name__)


def _load_library() -> Optional[LibraryManager]:
    lib = LibraryManager()
    if not lib.sync_library():
        console.print("[red]Could not reach the library API. Is `tunedeck serve` running?[/red]")
        return None
    return lib


def render_now_playing(state: PlaybackSnapshot) -> Panel:
    track = state.current
    if track is None:
        return Panel(Text("No song selected", style="gray"), title="Now Playing")

    total = state.known_duration or 0
    percent = min(100, (state.elapsed / total) * 100) if total else 0

    status = Text()
    status.append(f"{track.title}\n", style="bold green")
    status.append(f"{track.artist}\n\n", style="cyan")
    status.append("▶ " if state.is_playing else "⏸ ", style="bold")
    status.append(f"{state.elapsed_text} ", style="cyan")
    status.append("━" * int(percent / 2), style="blue")
    status.append(" " * (50 - int(percent / 2)), style="gray")
    status.append(f" {state.duration_text}", style="cyan")
    status.append(f"\n\nTrack {state.position + 1}/{len(state.sequence)}  ·  Volume {state.volume}%",
                  style="magenta")
    return Panel(status, title="Now Playing")


SEEK_STEP = 10  # seconds
VOLUME_STEP = 5  # percent
NO_KEYBOARD = ""
KEY_HELP = "space play/pause · n next · p previous · ←/→ or [/] seek · +/- volume · q quit"

# Arrow keys arrive as escape sequences from click.getchar
KEY_LEFT = ("\x1b[D", "\xe0K", "[")
KEY_RIGHT = ("\x1b[C", "\xe0M", "]")


def _read_keys(keys: "queue.Queue[str]") -> None:
    """Feed key presses into ``keys`` until stdin runs dry."""
    while True:
        try:
            key = click.getchar()
        except KeyboardInterrupt:
            keys.put("q")
            return
        except (EOFError, OSError) as e:
            logger.debug("Keyboard input unavailable: %s", e)
            key = NO_KEYBOARD
        keys.put(key)
        if key == NO_KEYBOARD:
            return


def _handle_transport(controller: PlaybackController, key: str) -> bool:
    if key == " ":
        controller.toggle_play()
    elif key == "n":
        controller.next()
    elif key == "p":
        controller.previous()
    else:
        return False
    return True


def _handle_seek(controller: PlaybackController, key: str) -> bool:
    if key in KEY_LEFT:
        controller.seek(controller.state.elapsed - SEEK_STEP)
    elif key in KEY_RIGHT:
        controller.seek(controller.state.elapsed + SEEK_STEP)
    else:
        return False
    return True


def _handle_volume(controller: PlaybackController, key: str) -> bool:
    if key in ("+", "="):
        controller.set_volume(controller.state.volume + VOLUME_STEP)
    elif key in ("-", "_"):
        controller.set_volume(controller.state.volume - VOLUME_STEP)
    else:
        return False
    return True


def handle_key(controller: PlaybackController, key: str) -> bool:
    """Apply one key press to the controller. Returns False when the user quits."""
    if key.lower() == "q":
        return False
    for handler in (_handle_transport, _handle_seek, _handle_volume):
        if handler(controller, key):
            break
    return True


@click.group()
def cli():
    """🎵 Tunedeck music player"""
    setup_logging()


@cli.command(name="list")
@click.argument('query', required=False)
def list_tracks(query):
    """List tracks in library."""
    lib = _load_library()
    if lib is None:
        return

    tracks = lib.search(query)
    if not tracks:
        console.print("[yellow]No matching tracks found.[/yellow]" if query else "[yellow]Library is empty.[/yellow]")
        return

    table = Table(title=f"Library ({len(tracks)} tracks)")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Title", style="bold white")
    table.add_column("Artist", style="green")
    table.add_column("Duration", style="magenta")

    for t in tracks:
        table.add_row(t.id[:8], t.title, t.artist, t.duration_label)

    console.print(table)


@cli.command()
def playlists():
    """List playlists."""
    lib = _load_library()
    if lib is None:
        return
    if not lib.playlists:
        console.print("[yellow]No playlists yet.[/yellow]")
        return

    table = Table(title=f"Playlists ({len(lib.playlists)})")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Name", style="bold white")
    table.add_column("Songs", style="magenta", justify="right")
    for p in lib.playlists:
        table.add_row(p.id[:8], p.name, str(len(p.tracks)))
    console.print(table)


@cli.command()
@click.argument('query', required=False)
@click.option('--playlist', '-p', help="Play a playlist by name or id.")
@click.option('--start', default=1, show_default=True, help="Track number to start from.")
@click.option('--volume', default=DEFAULT_VOLUME, show_default=True, help="Volume (0-100).")
def play(query, playlist, start, volume):
    """Play music. Optionally filter by query or pick a playlist."""
    if not MPV_AVAILABLE:
        console.print(Panel.fit(
            "[red bold]Missing System Dependency: libmpv[/red bold]\n\n"
            "The music player requires the [cyan]libmpv[/cyan] library to work.\n\n"
            "Please install it:\n"
            "• Ubuntu/Debian: [green]sudo apt install libmpv1[/green]\n"
            "• Fedora: [green]sudo dnf install mpv-libs[/green]\n"
            "• Arch: [green]sudo pacman -S mpv[/green]",
            border_style="red"
        ))
        return

    lib = _load_library()
    if lib is None:
        return

    if playlist:
        found = lib.get_playlist(playlist, refresh=True)
        if found is None:
            console.print(f"[yellow]No playlist named '{playlist}'.[/yellow]")
            return
        tracks = found.tracks
    else:
        tracks = lib.search(query)

    if not tracks:
        console.print("[yellow]No matching tracks found.[/yellow]")
        return

    try:
        session = get_session(sink=MpvMediaSink(), library=lib, volume=volume)
    except Exception as e:
        console.print(f"[red]Error initializing player: {e}[/red]")
        return

    controller = session.controller
    session.play_tracks(tracks, start_index=start - 1)

    keys: "queue.Queue[str]" = queue.Queue()
    threading.Thread(target=_read_keys, args=(keys,), name="key-reader", daemon=True).start()
    console.print(KEY_HELP, style="dim", markup=False)

    # Without a keyboard the panel is drawn until playback stops on its own
    interactive = True
    try:
        with Live(render_now_playing(controller.state), refresh_per_second=4, console=console) as live:
            while True:
                try:
                    key = keys.get(timeout=TIME_UPDATE_INTERVAL)
                except queue.Empty:
                    key = None
                if key == NO_KEYBOARD:
                    interactive = False
                elif key is not None and not handle_key(controller, key):
                    break
                state = controller.state
                live.update(render_now_playing(state))
                if not interactive and not state.is_playing:
                    break
        controller.stop()
    except KeyboardInterrupt:
        controller.stop()
        console.print("\n[yellow]Stopped.[/yellow]")
    finally:
        close_session()


@cli.command()
@click.option('--host', default=None, help="Interface to bind (default from HOST).")
@click.option('--port', default=None, type=int, help="Port to listen on (default from PORT).")
@click.option('--debug', is_flag=True, help="Enable Flask debug mode.")
def serve(host, port, debug):
    """Run the library API server."""
    from shared.api import run_server
    run_server(host=host, port=port, debug=debug)


if __name__ == '__main__':
    cli()
