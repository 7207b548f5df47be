"""Command line interface for the planner."""

from __future__ import annotations

import difflib
import json
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Iterable, Optional

import click
import yaml
from rich.console import Console
from rich.logging import RichHandler
from rich.syntax import Syntax
from rich.table import Table

from igplanner.catalog import ImageEntry, is_image_name
from igplanner.config import ConfigError, ConfigManager, PlannerConfig, resolve_with_precedence
from igplanner.config.models import LoggingSettings
from igplanner.server import run_server
from igplanner.session import PlannerSession, SessionError
from igplanner.state import (
    ImportFormatError,
    PlanRepository,
    PostPlan,
    StateError,
    plan_payload,
)
from igplanner.suggestion import SUGGESTION_MODES, SuggestionError, SuggestionService
from igplanner.webdav import DavError, NextcloudClient, proxy_url

console = Console()
LOGGER = logging.getLogger(__name__)


def _configure_logging(settings: LoggingSettings, *, verbose: bool = False) -> None:
    """Route log records to the console and, optionally, a rotating file.

    Args:
        settings: Logging configuration.
        verbose: Force DEBUG level regardless of ``settings.level``.
    """
    level = logging.DEBUG if verbose else getattr(logging, settings.level.upper(), logging.WARNING)
    handlers: list[logging.Handler] = [
        RichHandler(console=Console(stderr=True), show_path=False, rich_tracebacks=True)
    ]
    if settings.file:
        log_path = Path(settings.file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=settings.max_size_mb * 1024 * 1024,
            backupCount=settings.backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        handlers.append(file_handler)
    logging.basicConfig(level=level, format="%(message)s", handlers=handlers, force=True)


def _load_config(ctx: click.Context) -> PlannerConfig:
    """Return the configuration cached on the click context."""
    obj = ctx.ensure_object(dict)
    if "config" not in obj:
        try:
            obj["config"] = ConfigManager().load()
        except ConfigError as exc:
            raise click.ClickException(str(exc)) from exc
        _configure_logging(obj["config"].logging, verbose=obj.get("verbose", False))
    return obj["config"]


def _build_session(config: PlannerConfig, folders: Iterable[str] = ()) -> PlannerSession:
    nextcloud = NextcloudClient(config.nextcloud) if config.nextcloud.is_configured else None
    session = PlannerSession(
        PlanRepository(Path(config.storage.state_dir)),
        nextcloud=nextcloud,
    )
    folder_paths = [Path(folder) for folder in folders]
    if folder_paths:
        session.connect_folders(folder_paths)
        LOGGER.debug(
            "Connected %d folder(s) holding %d image(s).", len(folder_paths), len(session.catalog)
        )
    return session


def _catalog_table(entries: Iterable[ImageEntry], title: str) -> Table:
    table = Table(title=title)
    table.add_column("Id", overflow="fold")
    table.add_column("Name")
    table.add_column("Size", justify="right")
    for entry in entries:
        size = f"{entry.size_bytes:,}" if entry.size_bytes is not None else "-"
        table.add_row(entry.id, entry.name, size)
    return table


def _plans_table(plans: Iterable[PostPlan], catalog: Iterable[ImageEntry] = ()) -> Table:
    known = {entry.id for entry in catalog}
    table = Table(title="Planned posts")
    table.add_column("Image", overflow="fold")
    table.add_column("Scheduled")
    table.add_column("Caption", overflow="fold")
    table.add_column("Hashtags", overflow="fold")
    for plan in plans:
        image = plan.image_id
        if known and image not in known:
            image = f"{image} (missing)"
        table.add_row(
            image,
            plan.scheduled_at or "not set",
            plan.caption or "(No caption)",
            plan.hashtags,
        )
    return table


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(package_name="igplanner")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """Plan Instagram posts from local folders and a Nextcloud share."""
    ctx.ensure_object(dict)["verbose"] = verbose


@cli.command()
@click.option("--host", type=str, help="Interface to bind (overrides server.host).")
@click.option("--port", type=int, help="Port to listen on (overrides server.port).")
@click.option("--debug", is_flag=True, help="Run Flask in debug mode.")
@click.pass_context
def serve(ctx: click.Context, host: Optional[str], port: Optional[int], debug: bool) -> None:
    """Run the HTTP API.

    Args:
        ctx: Click context carrying shared state.
        host: Optional host override.
        port: Optional port override.
        debug: Whether to enable Flask debug mode.
    """
    config = _load_config(ctx)
    overrides: dict[str, Any] = {}
    if host:
        overrides["server.host"] = host
    if port:
        overrides["server.port"] = port
    if overrides:
        try:
            config = resolve_with_precedence(defaults=config, cli_overrides=overrides)
        except ConfigError as exc:
            raise click.ClickException(str(exc)) from exc
    run_server(config, debug=debug)


@cli.command()
@click.option("--json", "json_output", is_flag=True, help="Emit the sample list as JSON.")
@click.option("--limit", type=click.IntRange(min=1), help="Override nextcloud.sample_limit.")
@click.pass_context
def samples(ctx: click.Context, json_output: bool, limit: Optional[int]) -> None:
    """Crawl the configured Nextcloud directory and list image samples."""
    config = _load_config(ctx)
    if not config.nextcloud.is_configured:
        raise click.ClickException(
            "Missing NEXTCLOUD_* env vars (base URL, username, app password)."
        )
    settings = config.nextcloud
    if limit is not None:
        settings = settings.model_copy(update={"sample_limit": limit})
    try:
        images = NextcloudClient(settings).sample_images()
    except DavError as exc:
        raise click.ClickException(str(exc)) from exc

    if json_output:
        console.print_json(
            data={
                "images": [
                    {"name": image.name, "path": image.path, "url": proxy_url(image.path)}
                    for image in images
                ]
            }
        )
        return

    table = Table(title=f"Nextcloud samples ({len(images)})")
    table.add_column("Path", overflow="fold")
    table.add_column("Name")
    for image in images:
        table.add_row(image.path, image.name)
    console.print(table)


@cli.command()
@click.argument("folders", nargs=-1, required=True, type=click.Path(exists=True, file_okay=False))
@click.option("--json", "json_output", is_flag=True, help="Emit the catalog as JSON.")
@click.pass_context
def scan(ctx: click.Context, folders: tuple[str, ...], json_output: bool) -> None:
    """List the images of FOLDERS in catalog order."""
    config = _load_config(ctx)
    session = _build_session(config, folders)
    catalog = session.catalog

    if json_output:
        console.print_json(
            data={
                "images": [
                    entry.model_dump(mode="json", exclude={"locator"}) for entry in catalog
                ]
            }
        )
    else:
        console.print(_catalog_table(catalog, f"{len(catalog)} images"))
    session.clear_folders()


@cli.command()
@click.argument("target", type=click.Path(exists=True))
@click.option(
    "--mode",
    type=click.Choice(SUGGESTION_MODES),
    default="both",
    show_default=True,
    help="Which fields to suggest.",
)
@click.option("--save", is_flag=True, help="Store the suggestion as the image's plan.")
@click.option("--at", "scheduled_at", type=str, help="Schedule time stored with --save.")
@click.pass_context
def suggest(
    ctx: click.Context,
    target: str,
    mode: str,
    save: bool,
    scheduled_at: Optional[str],
) -> None:
    """Suggest a caption and hashtags for TARGET.

    TARGET is an image file, or a folder from which a random image is picked.

    Args:
        ctx: Click context carrying shared state.
        target: Image file or folder.
        mode: Suggestion mode.
        save: Whether to persist the applied suggestion as a plan.
        scheduled_at: Optional schedule time stored with the plan.

    Raises:
        click.ClickException: If the image cannot be used or the request fails.
    """
    config = _load_config(ctx)
    path = Path(target).expanduser().resolve()
    folder = path if path.is_dir() else path.parent
    if path.is_file() and not is_image_name(path.name):
        raise click.ClickException(f"Not a supported image file: {path.name}")

    session = _build_session(config, [str(folder)])
    try:
        if path.is_dir():
            entry = session.pick_random_image()
            if entry is None:
                raise click.ClickException("No images loaded yet.")
        else:
            entry = next(
                (
                    item
                    for item in session.catalog
                    if item.has_handle and session.registry.resolve(item.locator) == path
                ),
                None,
            )
            if entry is None:
                raise click.ClickException(f"Image not found in catalog: {path}")
            session.select(entry.id)

        result, draft = session.suggest(SuggestionService(config.llm), mode, image_id=entry.id)
        if scheduled_at:
            draft.scheduled_at = scheduled_at
        console.print(f"[bold]{entry.id}[/bold]")
        if draft.caption:
            console.print(f"Caption: {draft.caption}")
        if draft.hashtags:
            console.print(f"Hashtags: {draft.hashtags}")
        if not (result.caption or result.hashtags):
            console.print(f"[yellow]No labeled fields in output:[/yellow] {result.raw}")
        if save:
            session.save_plan(draft, image_id=entry.id)
            console.print("[green]Plan saved.[/green]")
    except (SuggestionError, SessionError, DavError, StateError) as exc:
        raise click.ClickException(str(exc)) from exc
    finally:
        session.clear_folders()


@cli.group()
def plans() -> None:
    """Manage the planned post queue."""


@plans.command("list")
@click.option("--json", "json_output", is_flag=True, help="Emit the queue as JSON.")
@click.option(
    "--folder",
    "folders",
    multiple=True,
    type=click.Path(exists=True, file_okay=False),
    help="Local folder used to flag plans whose image is missing (repeatable).",
)
@click.pass_context
def plans_list(ctx: click.Context, json_output: bool, folders: tuple[str, ...]) -> None:
    """Show planned posts in schedule order."""
    session = _build_session(_load_config(ctx), folders)
    try:
        if json_output:
            console.print_json(data={"plans": [plan.to_document() for plan in session.plans]})
        elif not session.plans:
            console.print("No posts planned yet.")
        else:
            console.print(_plans_table(session.plans, session.catalog))
    finally:
        session.clear_folders()


@plans.command("save")
@click.argument("image_id")
@click.option("--caption", type=str, help="Caption text.")
@click.option("--hashtags", type=str, help="Hashtags; commas or spaces separate tokens.")
@click.option("--at", "scheduled_at", type=str, help="Schedule time (ISO 8601).")
@click.option("--unschedule", is_flag=True, help="Clear the schedule time.")
@click.pass_context
def plans_save(
    ctx: click.Context,
    image_id: str,
    caption: Optional[str],
    hashtags: Optional[str],
    scheduled_at: Optional[str],
    unschedule: bool,
) -> None:
    """Create or update the plan for IMAGE_ID."""
    session = _build_session(_load_config(ctx))
    draft = session.draft_for(image_id)
    if caption is not None:
        draft.caption = caption
    if hashtags is not None:
        draft.hashtags = hashtags
    if scheduled_at is not None:
        draft.scheduled_at = scheduled_at
    if unschedule:
        draft.scheduled_at = None

    existed = session.queue.get(image_id) is not None
    try:
        plan = session.save_plan(draft, image_id=image_id)
    except (SessionError, StateError) as exc:
        raise click.ClickException(str(exc)) from exc
    verb = "Updated" if existed else "Added"
    console.print(f"[green]{verb} plan for {plan.image_id}.[/green]")


@plans.command("delete")
@click.argument("image_id")
@click.pass_context
def plans_delete(ctx: click.Context, image_id: str) -> None:
    """Delete the plan for IMAGE_ID."""
    session = _build_session(_load_config(ctx))
    try:
        removed = session.delete_plan(image_id)
    except StateError as exc:
        raise click.ClickException(str(exc)) from exc
    if not removed:
        raise click.ClickException(f"No plan found for {image_id}.")
    console.print(f"[green]Deleted plan for {image_id}.[/green]")


@plans.command("show")
@click.argument("image_id")
@click.option(
    "--folder",
    "folders",
    multiple=True,
    type=click.Path(exists=True, file_okay=False),
    help="Local folder used to resolve image metadata (repeatable).",
)
@click.pass_context
def plans_show(ctx: click.Context, image_id: str, folders: tuple[str, ...]) -> None:
    """Print the portable JSON document for the plan of IMAGE_ID."""
    session = _build_session(_load_config(ctx), folders)
    try:
        plan = session.queue.get(image_id)
        if plan is None:
            raise click.ClickException(f"No plan found for {image_id}.")
        entry = next((item for item in session.catalog if item.id == image_id), None)
        click.echo(json.dumps(plan_payload(plan, entry), indent=2))
    finally:
        session.clear_folders()


@plans.command("export")
@click.option(
    "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Write the document to this file instead of stdout.",
)
@click.option(
    "--folder",
    "folders",
    multiple=True,
    type=click.Path(exists=True, file_okay=False),
    help="Local folder used to resolve image metadata (repeatable).",
)
@click.option("--nextcloud", "with_nextcloud", is_flag=True, help="Resolve against Nextcloud too.")
@click.pass_context
def plans_export(
    ctx: click.Context,
    output: Optional[Path],
    folders: tuple[str, ...],
    with_nextcloud: bool,
) -> None:
    """Export the queue as JSON with image metadata resolved where possible."""
    session = _build_session(_load_config(ctx), folders)
    try:
        if with_nextcloud:
            session.load_remote_samples()
        document = session.export_plans()
    except (SessionError, DavError) as exc:
        raise click.ClickException(str(exc)) from exc
    finally:
        session.clear_folders()

    text = json.dumps(document, indent=2)
    if output is None:
        click.echo(text)
        return
    output.write_text(text + "\n", encoding="utf-8")
    console.print(f"[green]Exported {len(document['plans'])} plan(s) to {output}.[/green]")


@plans.command("import")
@click.argument("source", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def plans_import(ctx: click.Context, source: Path) -> None:
    """Replace the whole queue with the plans stored in SOURCE."""
    session = _build_session(_load_config(ctx))
    try:
        data = json.loads(source.read_text(encoding="utf-8"))
        imported = session.import_plans(data)
    except json.JSONDecodeError as exc:
        raise click.ClickException(f"Invalid JSON file: {exc}") from exc
    except (ImportFormatError, StateError) as exc:
        raise click.ClickException(str(exc)) from exc
    console.print(f"[green]Imported {len(imported)} plan(s).[/green]")


@cli.group()
def config() -> None:
    """Manage planner configuration files and overrides."""


@config.command("view")
@click.option("--no-env", is_flag=True, help="Ignore environment overrides when displaying output.")
@click.option("--show-secrets", is_flag=True, help="Print passwords and API keys unmasked.")
def config_view(no_env: bool, show_secrets: bool) -> None:
    """Display the effective configuration after applying precedence rules.

    Args:
        no_env: If True, ignore environment-derived overrides.
        show_secrets: If True, do not mask credentials.

    Raises:
        click.ClickException: If configuration cannot be loaded.
    """
    manager = ConfigManager()
    try:
        manager.ensure_exists()
        loaded = manager.load(include_env=not no_env)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    data = loaded.model_dump(mode="python")
    if not show_secrets:
        for section, key in (("nextcloud", "app_password"), ("llm", "api_key")):
            if data[section].get(key):
                data[section][key] = "********"
    yaml_text = yaml.safe_dump(data, sort_keys=False)
    console.print(Syntax(yaml_text, "yaml", word_wrap=True))


def _assign_nested(target: dict[str, Any], path: list[str], value: Any) -> None:
    """Assign a nested value within a dictionary for a dotted path.

    Raises:
        ConfigError: If a non-mapping value is encountered along the path.
    """
    node = target
    for segment in path[:-1]:
        existing = node.get(segment)
        if existing is None:
            existing = {}
            node[segment] = existing
        elif not isinstance(existing, dict):
            raise ConfigError(
                f"Cannot assign into '{segment}' because it is not a mapping in the config file."
            )
        node = existing
    node[path[-1]] = value


@config.command("set")
@click.argument("key")
@click.option("--value", required=True, help="Value to assign to KEY.")
def config_set(key: str, value: str) -> None:
    """Persist a configuration value expressed as a dotted KEY.

    Args:
        key: Dotted path describing the configuration field to update.
        value: YAML-literal value to write into the configuration file.

    Raises:
        click.ClickException: If parsing, assignment, or validation fails.
    """
    manager = ConfigManager()
    manager.ensure_exists()

    before = manager.read_text().splitlines()
    segments = [segment.strip() for segment in key.split(".") if segment.strip()]
    if not segments:
        raise click.ClickException("KEY must specify a dotted path such as 'nextcloud.dir'.")

    try:
        parsed_value = yaml.safe_load(value)
    except yaml.YAMLError as exc:
        raise click.ClickException(f"Unable to parse value: {exc}") from exc

    file_data = manager.load_file_overrides()

    try:
        _assign_nested(file_data, segments, parsed_value)
        resolve_with_precedence(defaults=PlannerConfig(), file_overrides=file_data)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    manager.save(file_data)
    after = manager.read_text().splitlines()

    diff = [
        line
        for line in difflib.unified_diff(
            before,
            after,
            fromfile="config.yaml (before)",
            tofile="config.yaml (after)",
            lineterm="",
        )
        if not line.lstrip("+-").startswith("# Last updated:")
    ]

    if len(diff) > 2:
        console.print(Syntax("\n".join(diff), "diff", word_wrap=False))
    else:
        console.print("[yellow]No changes applied; value already up to date.[/yellow]")
        return

    console.print(f"[green]Updated {'.'.join(segments)}.[/green]")


def main() -> None:
    """Invoke the Click CLI as the console script entry point."""
    cli()


if __name__ == "__main__":
    main()
