"""CLI entry point for the productivity tracker and bitmap editor."""

from __future__ import annotations

import json
import logging
import sys
import time
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path

import click

from ptracker.auth import AuthSession, LocalIdentityProvider, clear_session, load_session, save_session
from ptracker.canvas import render_text
from ptracker.config import Settings, load_settings
from ptracker.editor import PRESET_COLORS, BitmapEditor
from ptracker.errors import TrackerError
from ptracker.models import ActivityOption, Design
from ptracker.productivity import ProductivityTracker
from ptracker.remote import SupabaseIdentityProvider, SupabaseTableStore
from ptracker.session import format_elapsed
from ptracker.stats import (
    PERIODS,
    aggregate,
    format_date_range,
    format_duration,
    get_range,
    make_progress_bar,
    total_hours,
)
from ptracker.store import SqliteTableStore, TableStore
from ptracker.ticker import ELAPSED_INTERVAL, SCHEDULE_INTERVAL, Ticker, run

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class App:
    """Store, identity and settings for one CLI invocation."""

    def __init__(self, settings: Settings, store: TableStore, auth: AuthSession) -> None:
        self.settings = settings
        self.store = store
        self.auth = auth

    @property
    def supabase(self) -> SupabaseIdentityProvider:
        assert self.settings.supabase_url and self.settings.supabase_key
        return SupabaseIdentityProvider(
            self.settings.supabase_url,
            self.settings.supabase_key,
            self.settings.site_url,
        )


@contextmanager
def open_app(settings: Settings) -> Iterator[App]:
    user, token = load_session(settings.resolved_session_path)
    auth = AuthSession(user, token)
    if settings.use_supabase:
        assert settings.supabase_url and settings.supabase_key
        store: TableStore = SupabaseTableStore(settings.supabase_url, settings.supabase_key, auth)
    else:
        settings.db_path.parent.mkdir(parents=True, exist_ok=True)
        store = SqliteTableStore.open(settings.db_path)
    try:
        yield App(settings, store, auth)
    finally:
        store.close()


@contextmanager
def errors_to_exit() -> Iterator[None]:
    """Report tracker and input errors on stderr and exit 1."""
    try:
        yield
    except (TrackerError, ValueError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


def fail(message: str) -> None:
    click.echo(message, err=True)
    sys.exit(1)


def require_login(app: App) -> None:
    if not app.auth.signed_in:
        fail("Not signed in. Run 'ptracker login' first.")


def tracker_for(app: App) -> ProductivityTracker:
    return ProductivityTracker(app.store, app.auth, pending_path=app.settings.pending_logs_path)


def short_id(value: str) -> str:
    return value[:8]


def local_time(moment: datetime, fmt: str = "%H:%M") -> str:
    return moment.astimezone().strftime(fmt)


def parse_when(text: str, now: datetime | None = None) -> datetime:
    """Parse an ISO 8601 timestamp or a bare HH:MM (today, local time)."""
    text = text.strip()
    try:
        moment = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        try:
            clock = datetime.strptime(text, "%H:%M")
        except ValueError:
            raise ValueError(f"Invalid time: {text}. Use HH:MM or YYYY-MM-DDTHH:MM.") from None
        base = (now or datetime.now()).astimezone()
        return base.replace(hour=clock.hour, minute=clock.minute, second=0, microsecond=0)
    if moment.tzinfo is None:
        moment = moment.astimezone()
    return moment


def resolve_option(options: list[ActivityOption], ref: str) -> ActivityOption:
    """Find an option by id, name (case-insensitive) or unique id prefix.

    Raises:
        ValueError: If nothing matches or the prefix is ambiguous.
    """
    for option in options:
        if option.id == ref:
            return option
    by_name = [o for o in options if o.name.lower() == ref.lower()]
    if len(by_name) == 1:
        return by_name[0]
    by_prefix = [o for o in options if o.id.startswith(ref)]
    if len(by_prefix) == 1:
        return by_prefix[0]
    if len(by_prefix) > 1 or len(by_name) > 1:
        matches = by_name or by_prefix
        raise ValueError(f"Ambiguous activity '{ref}' matches: {', '.join(short_id(o.id) for o in matches)}")
    raise ValueError(f"No activity matching '{ref}'")


def resolve_design(designs: list[Design], ref: str) -> Design:
    for design in designs:
        if design.id == ref:
            return design
    matches = [d for d in designs if d.id.startswith(ref)] or [d for d in designs if d.name == ref]
    if len(matches) == 1:
        return matches[0]
    if matches:
        raise ValueError(f"Ambiguous design '{ref}' matches: {', '.join(short_id(d.id) for d in matches)}")
    raise ValueError(f"No design matching '{ref}'")


@click.group()
@click.option(
    "--db",
    type=click.Path(path_type=Path),
    default=None,
    help="Path to the local SQLite database (env: PTRACKER_DB)",
)
@click.option("-v", "--verbose", is_flag=True, help="Log debug output to stderr")
@click.pass_context
def main(ctx: click.Context, db: Path | None, verbose: bool) -> None:
    """Productivity tracker and bitmap editor CLI."""
    settings = load_settings(db_path=db)
    level = logging.DEBUG if verbose else getattr(logging, settings.log_level, logging.WARNING)
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger("ptracker").setLevel(level)
    ctx.obj = settings


# ---------- identity ----------


@main.command("login")
@click.option("--email", help="Local profile email")
@click.option("--name", default="", help="Display name for a new local profile")
@click.option("--provider", default="google", show_default=True, help="OAuth provider (hosted backend)")
@click.option("--token", help="Access token from the OAuth callback (hosted backend)")
@click.pass_obj
def login_command(settings: Settings, email: str | None, name: str, provider: str, token: str | None) -> None:
    """Sign in.

    With the hosted backend this prints the provider's sign-in URL and asks
    for the access token the callback page shows. Locally it signs in to (or
    creates) the profile for EMAIL.
    """
    with open_app(settings) as app, errors_to_exit():
        if settings.use_supabase:
            if not token:
                click.echo("Open this URL to sign in:")
                click.echo(app.supabase.authorize_url(provider))
                token = click.prompt("Access token", hide_input=True)
            user = app.supabase.user_from_token(token)
            app.auth.sign_in(user, token)
        else:
            assert isinstance(app.store, SqliteTableStore)
            if not email:
                email = click.prompt("Email")
            user = LocalIdentityProvider(app.store).sign_in(email, name)
            app.auth.sign_in(user)

        save_session(settings.resolved_session_path, user, app.auth.access_token)
        click.echo(f"Signed in as {user.display_name or user.email} <{user.email}>")


@main.command("logout")
@click.pass_obj
def logout_command(settings: Settings) -> None:
    """Sign out and forget the saved session."""
    with open_app(settings) as app:
        if settings.use_supabase:
            app.supabase.sign_out(app.auth.access_token)
        app.auth.sign_out()
    if clear_session(settings.resolved_session_path):
        click.echo("Signed out")
    else:
        click.echo("Not signed in")


@main.command("whoami")
@click.pass_obj
def whoami_command(settings: Settings) -> None:
    """Show the signed-in user."""
    with open_app(settings) as app:
        user = app.auth.user
    if user is None:
        fail("Not signed in")
        return
    click.echo(f"{user.display_name or user.email} <{user.email}>")
    click.echo(f"  id: {user.id}")
    if user.avatar_url:
        click.echo(f"  avatar: {user.avatar_url}")
    click.echo(f"  backend: {'supabase' if settings.use_supabase else settings.db_path}")


# ---------- activity options ----------


@main.group("option")
def option_group() -> None:
    """Manage activity options."""


@option_group.command("list")
@click.pass_obj
def option_list(settings: Settings) -> None:
    """List activity options."""
    with open_app(settings) as app:
        require_login(app)
        tracker = tracker_for(app)
        tracker.fetch()
    if not tracker.options:
        click.echo("No activities created yet. Add one with 'ptracker option add NAME'.")
        return
    for option in tracker.options:
        click.echo(f"  {short_id(option.id)}  {option.color}  {option.name}")


@option_group.command("add")
@click.argument("name")
@click.option("--color", default=PRESET_COLORS[0], show_default=True, help="Hex color")
@click.pass_obj
def option_add(settings: Settings, name: str, color: str) -> None:
    """Create an activity option."""
    with open_app(settings) as app, errors_to_exit():
        tracker = tracker_for(app)
        option = tracker.add_option(name, color)
    if option is None:
        fail("Activity name cannot be empty")
        return
    click.echo(f"Added {option.name} ({short_id(option.id)})")


@option_group.command("delete")
@click.argument("option")
@click.pass_obj
def option_delete(settings: Settings, option: str) -> None:
    """Delete an activity option by id, id prefix or name."""
    with open_app(settings) as app, errors_to_exit():
        require_login(app)
        tracker = tracker_for(app)
        tracker.fetch()
        target = resolve_option(tracker.options, option)
        tracker.delete_option(target.id)
    click.echo(f"Deleted {target.name}")


# ---------- schedule ----------


@main.group("schedule")
def schedule_group() -> None:
    """Manage scheduled activities."""


@schedule_group.command("list")
@click.option("--week", is_flag=True, help="Show the whole week instead of today")
@click.pass_obj
def schedule_list(settings: Settings, week: bool) -> None:
    """Show the calendar."""
    with open_app(settings) as app:
        require_login(app)
        tracker = tracker_for(app)
        tracker.fetch()

    start, end = get_range("week" if week else "day")
    events = [e for e in tracker.calendar_events() if e.end >= start and e.start < end]
    click.echo(f"Schedule: {format_date_range(start, end, 'week' if week else 'day')}")
    if not events:
        click.echo("  (nothing scheduled)")
        return
    current = tracker.current_scheduled()
    for event in events:
        marker = "*" if current is not None and current.id == event.id else " "
        day = local_time(event.start, "%a %d") + " " if week else ""
        click.echo(
            f" {marker}{day}{local_time(event.start)}-{local_time(event.end)}  "
            f"{event.title:<20} {short_id(event.scheduled_id)}"
        )


@schedule_group.command("add")
@click.argument("option")
@click.argument("start")
@click.argument("end")
@click.pass_obj
def schedule_add(settings: Settings, option: str, start: str, end: str) -> None:
    """Schedule OPTION from START to END (HH:MM today, or ISO 8601)."""
    with open_app(settings) as app, errors_to_exit():
        require_login(app)
        tracker = tracker_for(app)
        tracker.fetch()
        target = resolve_option(tracker.options, option)
        activity = tracker.schedule_activity(target.id, parse_when(start), parse_when(end))
    click.echo(
        f"Scheduled {target.name} {local_time(activity.start_time)}-{local_time(activity.end_time)} "
        f"({short_id(activity.id)})"
    )


@schedule_group.command("delete")
@click.argument("scheduled_id")
@click.pass_obj
def schedule_delete(settings: Settings, scheduled_id: str) -> None:
    """Remove a scheduled activity by id or id prefix."""
    with open_app(settings) as app, errors_to_exit():
        require_login(app)
        tracker = tracker_for(app)
        tracker.fetch()
        matches = [s for s in tracker.scheduled if s.id.startswith(scheduled_id)]
        if len(matches) != 1:
            raise ValueError(
                f"No scheduled activity matching '{scheduled_id}'"
                if not matches
                else f"Ambiguous id '{scheduled_id}'"
            )
        tracker.delete_scheduled(matches[0].id)
    click.echo(f"Deleted {short_id(matches[0].id)}")


# ---------- tracking ----------


def describe_state(tracker: ProductivityTracker, now: datetime | None = None) -> str:
    """One-line status of the tracker.

    Reads the cached ``tracker.current``; callers refresh it.
    """
    now = now or datetime.now(timezone.utc)
    session = tracker.active
    if session is not None:
        option = tracker.option(session.option_id)
        name = option.name if option else "Unknown"
        return f"{name}  {format_elapsed(tracker.elapsed_seconds(now))}  (started {local_time(session.started_at)})"
    activity = tracker.current
    if activity is not None:
        option = tracker.option(activity.option_id)
        name = option.name if option else "Unknown"
        return (
            f"Scheduled: {name} {local_time(activity.start_time)}-"
            f"{local_time(activity.end_time)}  (ready to start)"
        )
    return "No activity scheduled"


@main.command("now")
@click.pass_obj
def now_command(settings: Settings) -> None:
    """Show what is scheduled right now."""
    with open_app(settings) as app:
        require_login(app)
        tracker = tracker_for(app)
        tracker.fetch()
        tracker.refresh_current()
    click.echo(describe_state(tracker))


TRACK_HELP = """Commands:
  start [ACTIVITY]   start ACTIVITY, or the scheduled one if omitted
  switch ACTIVITY    stop the running activity and start another
  stop               stop and log the running activity
  status             show the current state
  watch [SECONDS]    live timer (Ctrl-C to return)
  options            list activities
  quit               stop any running activity and exit"""


def refresh_schedule(tracker: ProductivityTracker) -> None:
    """Once-a-minute work: pick up the current slot and retry queued logs."""
    tracker.refresh_current()
    tracker.flush_pending()


def watch(tracker: ProductivityTracker, seconds: float | None = None) -> None:
    """Redraw the status line every second until interrupted or ``seconds`` pass."""
    deadline = time.monotonic() + seconds if seconds is not None else None

    def redraw() -> None:
        click.echo(f"\r{describe_state(tracker)}   ", nl=False)

    tickers = [
        Ticker(SCHEDULE_INTERVAL, lambda: refresh_schedule(tracker)),
        Ticker(ELAPSED_INTERVAL, redraw),
    ]
    try:
        run(tickers, lambda: deadline is None or time.monotonic() < deadline)
    except KeyboardInterrupt:
        pass
    click.echo()


def _track_step(tracker: ProductivityTracker, command: str, arg: str) -> bool:
    """Run one prompt command. Returns False when the loop should end."""
    if command in ("quit", "exit", "q"):
        if tracker.active is not None:
            log = tracker.stop()
            if log is not None:
                click.echo(f"Logged {format_duration(log.duration_minutes).strip()}")
        return False

    if command == "start":
        if arg:
            option = resolve_option(tracker.options, arg)
            tracker.start(option.id)
        elif tracker.start_scheduled() is None:
            raise ValueError("Nothing scheduled now; name an activity to start")
        click.echo(describe_state(tracker))
    elif command == "switch":
        if not arg:
            raise ValueError("switch needs an activity")
        option = resolve_option(tracker.options, arg)
        log, _ = tracker.switch(option.id)
        if log is not None:
            click.echo(f"Logged {format_duration(log.duration_minutes).strip()}")
        click.echo(describe_state(tracker))
    elif command == "stop":
        log = tracker.stop()
        if log is None:
            click.echo("Nothing running")
        else:
            click.echo(f"Logged {format_duration(log.duration_minutes).strip()}")
    elif command == "status":
        tracker.refresh_current()
        click.echo(describe_state(tracker))
    elif command == "watch":
        watch(tracker, float(arg) if arg else None)
    elif command == "options":
        for option in tracker.options:
            click.echo(f"  {short_id(option.id)}  {option.name}")
    elif command in ("help", "?", ""):
        click.echo(TRACK_HELP)
    else:
        click.echo(f"Unknown command: {command}. Type 'help'.")
    return True


@main.command("track")
@click.pass_obj
def track_command(settings: Settings) -> None:
    """Interactive activity tracker.

    The running activity lives in this process; quitting stops and logs it.
    """
    with open_app(settings) as app:
        require_login(app)
        tracker = tracker_for(app)
        tracker.fetch()
        tracker.refresh_current()
        click.echo(describe_state(tracker))
        click.echo("Type 'help' for commands.")

        running = True
        while running:
            try:
                line = click.prompt("track", default="", show_default=False, prompt_suffix="> ")
            except click.Abort:
                line = "quit"
            command, _, arg = line.strip().partition(" ")
            tracker.flush_pending()
            try:
                running = _track_step(tracker, command.lower(), arg.strip())
            except (TrackerError, ValueError) as e:
                click.echo(f"Error: {e}", err=True)
                if command.lower() in ("quit", "exit", "q"):
                    running = False

        left = tracker.pending_count()
        if left:
            click.echo(
                f"{left} activity log(s) could not be saved yet; they will be retried next time",
                err=True,
            )
        tracker.close()


@main.command("logs")
@click.option("--limit", type=int, default=20, show_default=True, help="Maximum number of logs")
@click.pass_obj
def logs_command(settings: Settings, limit: int) -> None:
    """Show recent activity logs."""
    with open_app(settings) as app:
        require_login(app)
        tracker = tracker_for(app)
        tracker.fetch()
    if not tracker.logs:
        click.echo("No activity logged yet")
        return
    for log in tracker.logs[:limit]:
        option = tracker.option(log.option_id)
        name = option.name if option else "Unknown"
        click.echo(
            f"  {local_time(log.started_at, '%Y-%m-%d %H:%M')}-{local_time(log.ended_at)}  "
            f"{name:<20} {format_duration(log.duration_minutes):>7}"
            + ("  (scheduled)" if log.scheduled_id else "")
        )


@main.command("stats")
@click.option("--day", "period", flag_value="day", default=True, help="Today")
@click.option("--week", "period", flag_value="week", help="This week (Mon-Sun)")
@click.option("--month", "period", flag_value="month", help="This month")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@click.pass_obj
def stats_command(settings: Settings, period: str, output_json: bool) -> None:
    """Hours per activity for today, this week or this month."""
    with open_app(settings) as app:
        require_login(app)
        tracker = tracker_for(app)
        tracker.fetch()

    now = datetime.now().astimezone()
    summary = {p: total_hours(aggregate(tracker.options, tracker.logs, *get_range(p, now))) for p in PERIODS}
    start, end = get_range(period, now)
    totals = aggregate(tracker.options, tracker.logs, start, end)

    if output_json:
        output = {
            "period": period,
            "start": start.isoformat(),
            "end": end.isoformat(),
            "generated_at": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
            "summary_hours": summary,
            "by_activity": [t.model_dump() for t in totals],
        }
        click.echo(json.dumps(output, indent=2))
        return

    click.echo(f"Activity Statistics: {format_date_range(start, end, period)}")
    click.echo()
    click.echo(
        f"Hours today: {summary['day']:.1f}   this week: {summary['week']:.1f}   "
        f"this month: {summary['month']:.1f}"
    )
    click.echo()
    if not totals:
        click.echo("No activity data for this period.")
        return

    max_minutes = max(t.minutes for t in totals)
    for total in totals:
        name = total.name if len(total.name) <= 20 else total.name[:17] + "..."
        bar = make_progress_bar(total.minutes, max_minutes)
        click.echo(f"  {name:<20} {total.hours:>5.1f} hrs {format_duration(total.minutes):>8}   {bar}")


# ---------- bitmap designs ----------


@main.group("design")
def design_group() -> None:
    """Edit staggered-grid bitmap designs."""


@contextmanager
def editing(settings: Settings, ref: str, *, save: bool = True) -> Iterator[BitmapEditor]:
    """Load a design into an editor, yield it, and save it afterwards."""
    with open_app(settings) as app, errors_to_exit():
        require_login(app)
        editor = BitmapEditor(app.store, app.auth)
        if not editor.fetch_designs():
            fail("Could not load designs")
        design = resolve_design(editor.designs, ref)
        if not editor.load_design(design.id):
            fail(f"Could not load design {short_id(design.id)}")
        yield editor
        if save and not editor.save_design():
            fail("Could not save design")


@design_group.command("list")
@click.pass_obj
def design_list(settings: Settings) -> None:
    """List saved designs, most recently updated first."""
    with open_app(settings) as app:
        require_login(app)
        editor = BitmapEditor(app.store, app.auth)
        if not editor.fetch_designs():
            fail("Could not load designs")
    click.echo(f"Saved Designs ({len(editor.designs)})")
    if not editor.designs:
        click.echo("No saved designs yet. Create one with 'ptracker design new NAME'.")
        return
    for design in editor.designs:
        click.echo(
            f"  {short_id(design.id)}  {design.name:<24} {design.rows}x{design.cols}  "
            f"{len(design.cells)} cells  {local_time(design.updated_at, '%Y-%m-%d %H:%M')}"
        )


@design_group.command("new")
@click.argument("name")
@click.option("--rows", type=int, default=None, help="Rows (1-50, default 10)")
@click.option("--cols", type=int, default=None, help="Columns (1-50, default 5)")
@click.option("--cell-size", type=int, default=None, help="Cell size in pixels (default 40)")
@click.pass_obj
def design_new(settings: Settings, name: str, rows: int | None, cols: int | None, cell_size: int | None) -> None:
    """Create and save an empty design."""
    with open_app(settings) as app, errors_to_exit():
        require_login(app)
        editor = BitmapEditor(app.store, app.auth)
        editor.new_design()
        editor.current_design_name = name
        if rows is not None:
            editor.set_rows(rows)
        if cols is not None:
            editor.set_cols(cols)
        if cell_size is not None:
            editor.set_cell_size(cell_size)
        if not editor.save_design():
            fail("Could not save design")
    assert editor.current_design_id is not None
    click.echo(f"Created {name} ({short_id(editor.current_design_id)}) {editor.rows}x{editor.cols}")


@design_group.command("show")
@click.argument("design")
@click.pass_obj
def design_show(settings: Settings, design: str) -> None:
    """Print a text preview of a design."""
    with editing(settings, design, save=False) as editor:
        click.echo(f"{editor.current_design_name} ({editor.rows}x{editor.cols}, {len(editor.cells)} painted)")
        click.echo(render_text(editor.geometry, editor.cells))


@design_group.command("paint")
@click.argument("design")
@click.argument("row", type=int)
@click.argument("col", type=int)
@click.option("--color", default=None, help="Hex color (default: red)")
@click.pass_obj
def design_paint(settings: Settings, design: str, row: int, col: int, color: str | None) -> None:
    """Paint the cell at ROW, COL."""
    with editing(settings, design) as editor:
        if color is not None:
            editor.set_selected_color(color)
        editor.set_cell_color(row, col, editor.selected_color)
    click.echo(f"Painted ({row}, {col}) {editor.selected_color}")


@design_group.command("erase")
@click.argument("design")
@click.argument("row", type=int)
@click.argument("col", type=int)
@click.pass_obj
def design_erase(settings: Settings, design: str, row: int, col: int) -> None:
    """Clear the cell at ROW, COL."""
    with editing(settings, design) as editor:
        editor.clear_cell(row, col)
    click.echo(f"Erased ({row}, {col})")


@design_group.command("click")
@click.argument("design")
@click.argument("x", type=float)
@click.argument("y", type=float)
@click.option("--zoom", type=float, default=1.0, show_default=True)
@click.option("--color", default=None, help="Hex color")
@click.option("--erase", is_flag=True, help="Erase instead of paint")
@click.pass_obj
def design_click(
    settings: Settings, design: str, x: float, y: float, zoom: float, color: str | None, erase: bool
) -> None:
    """Paint whatever cell covers canvas pixel X, Y."""
    with editing(settings, design) as editor:
        editor.set_zoom(zoom)
        if color is not None:
            editor.set_selected_color(color)
        editor.erasing = erase
        cell = editor.pointer_down(x, y)
        editor.pointer_up()
    if cell is None:
        click.echo(f"No cell at ({x:g}, {y:g})")
    else:
        click.echo(f"{'Erased' if erase else 'Painted'} ({cell[0]}, {cell[1]})")


def _parse_point(text: str) -> tuple[float, float]:
    try:
        x, y = text.split(",")
        return float(x), float(y)
    except ValueError:
        raise click.BadParameter(f"Expected X,Y but got '{text}'") from None


@design_group.command("drag")
@click.argument("design")
@click.argument("points", nargs=-1, required=True)
@click.option("--zoom", type=float, default=1.0, show_default=True)
@click.option("--color", default=None, help="Hex color")
@click.option("--erase", is_flag=True, help="Erase instead of paint")
@click.pass_obj
def design_drag(
    settings: Settings, design: str, points: tuple[str, ...], zoom: float, color: str | None, erase: bool
) -> None:
    """Drag through canvas points given as X,Y, painting every cell passed."""
    path = [_parse_point(p) for p in points]
    touched: set[tuple[int, int]] = set()
    with editing(settings, design) as editor:
        editor.set_zoom(zoom)
        if color is not None:
            editor.set_selected_color(color)
        editor.erasing = erase
        first = editor.pointer_down(*path[0])
        if first is not None:
            touched.add(first)
        for x, y in path[1:]:
            cell = editor.pointer_move(x, y)
            if cell is not None:
                touched.add(cell)
        editor.pointer_up()
    click.echo(f"{'Erased' if erase else 'Painted'} {len(touched)} cell(s)")


@design_group.command("clear")
@click.argument("design")
@click.pass_obj
def design_clear(settings: Settings, design: str) -> None:
    """Clear every cell."""
    with editing(settings, design) as editor:
        editor.clear_all_cells()
    click.echo("Cleared")


@design_group.command("resize")
@click.argument("design")
@click.option("--rows", type=int, default=None)
@click.option("--cols", type=int, default=None)
@click.pass_obj
def design_resize(settings: Settings, design: str, rows: int | None, cols: int | None) -> None:
    """Change the grid size; cells outside the new grid are dropped."""
    with editing(settings, design) as editor:
        if rows is not None:
            editor.set_rows(rows)
        if cols is not None:
            editor.set_cols(cols)
    click.echo(f"Resized to {editor.rows}x{editor.cols}")


@design_group.command("rename")
@click.argument("design")
@click.argument("name")
@click.pass_obj
def design_rename(settings: Settings, design: str, name: str) -> None:
    """Rename a design."""
    with editing(settings, design) as editor:
        editor.current_design_name = name
    click.echo(f"Renamed to {name}")


@design_group.command("delete")
@click.argument("design")
@click.pass_obj
def design_delete(settings: Settings, design: str) -> None:
    """Delete a design."""
    with open_app(settings) as app, errors_to_exit():
        require_login(app)
        editor = BitmapEditor(app.store, app.auth)
        editor.fetch_designs()
        target = resolve_design(editor.designs, design)
        if not editor.delete_design(target.id):
            fail("Could not delete design")
    click.echo(f"Deleted {target.name}")


@design_group.command("export")
@click.argument("design")
@click.option("--out", type=click.Path(path_type=Path), default=None, help="Output file (default: from name)")
@click.option("--zoom", type=float, default=1.0, show_default=True)
@click.option("--grid/--no-grid", default=True, help="Draw grid lines")
@click.option("--pins/--no-pins", default=True, help="Draw pins")
@click.pass_obj
def design_export(
    settings: Settings, design: str, out: Path | None, zoom: float, grid: bool, pins: bool
) -> None:
    """Export a design as a JPEG."""
    with editing(settings, design, save=False) as editor:
        editor.set_zoom(zoom)
        editor.show_grid = grid
        editor.show_pins = pins
        path = editor.export(out)
    click.echo(f"Exported {path}")


if __name__ == "__main__":
    main()
