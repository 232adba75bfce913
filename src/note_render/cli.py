"""CLI interface for note-render.

Commands:
    setup    - Configure the profile service and recognition settings
    render   - Render a note to HTML, resolving mentions
    extract  - List media, links, hashtags and quoted references
    profile  - Show how an npub renders as a mention
    status   - Show current configuration
"""

import asyncio
import json
import sys
from pathlib import Path

import click

from .config import (
    CONFIG_FILE,
    AppConfig,
    BlinkSettings,
    config_exists,
    load_config,
    load_config_or_default,
    save_config,
)
from .logging_config import setup_logging


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.option("--quiet", "-q", is_flag=True, help="Only log errors")
@click.option("--config", type=click.Path(), default=None, help="Config file path")
@click.pass_context
def main(ctx, verbose, quiet, config):
    """Nostr note renderer — escape, enrich and resolve mentions in note content."""
    setup_logging(debug=verbose, quiet=quiet)
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = Path(config) if config else CONFIG_FILE


@main.command()
@click.pass_context
def setup(ctx):
    """Configure the profile service and recognition window."""
    config_path = ctx.obj["config_path"]

    click.echo("Note Renderer — Setup")
    click.echo("=" * 40)
    click.echo()
    click.echo("Mentions are resolved through a profile index serving kind-0 metadata.")
    click.echo("Leave the URL empty to render without resolving profiles.")
    click.echo()

    service_url = click.prompt("Profile service URL", default="", show_default=False)
    window_days = click.prompt(
        "Recognition window in days (0 = off, -1 = always)",
        type=click.IntRange(min=-1),
        default=90,
    )
    cycles = click.prompt("Blink cycles", type=click.IntRange(min=1), default=3)

    config = AppConfig(
        service_url=service_url or None,
        window_days=window_days,
        blink=BlinkSettings(cycles=cycles),
    )
    save_config(config, config_path)
    click.echo(f"\nConfig saved to {config_path}")


@main.command()
@click.argument("input_file", type=click.Path(exists=True))
@click.option(
    "--tags",
    "tags_file",
    type=click.Path(exists=True),
    default=None,
    help="JSON file with the note's tag list",
)
@click.option(
    "--profiles",
    "profiles_file",
    type=click.Path(exists=True),
    default=None,
    help="JSON file mapping hex pubkeys to kind-0 metadata (offline resolution)",
)
@click.option("--no-resolve", is_flag=True, help="Leave mentions pending")
@click.option("-o", "--output", type=click.Path(), default=None, help="Output HTML file")
@click.pass_context
def render(ctx, input_file, tags_file, profiles_file, no_resolve, output):
    """Render a note to HTML.

    INPUT_FILE is plain note text, or a NIP-01 event as .json.
    """
    from .client import HttpProfileService
    from .profile_cache import StaticProfileService

    try:
        config = load_config_or_default(ctx.obj["config_path"])
        text, tags = _load_note(Path(input_file), Path(tags_file) if tags_file else None)

        service = None
        if profiles_file:
            service = StaticProfileService(_load_profiles(Path(profiles_file)))
        elif no_resolve or not config.service_url:
            service = StaticProfileService()

        if service is None:
            async def _with_http():
                async with HttpProfileService(config.service_url, config.service_timeout) as http:
                    return await _render_note(text, tags, config, http)

            html = asyncio.run(_with_http())
        else:
            html = asyncio.run(_render_note(text, tags, config, service))
    except (ValueError, RuntimeError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if output:
        Path(output).write_text(html, encoding="utf-8")
        click.echo(f"HTML written to {output}", err=True)
    else:
        click.echo(html)


@main.command()
@click.argument("input_file", type=click.Path(exists=True))
@click.option(
    "--format",
    "fmt",
    type=click.Choice(["json", "csv"]),
    default="json",
    help="Output format",
)
def extract(input_file, fmt):
    """List the media, links, hashtags and quoted references in a note."""
    from .export import entities_to_csv, entities_to_dict
    from .pipeline import ContentProcessor
    from .profile_cache import ProfileCache, StaticProfileService

    try:
        text, tags = _load_note(Path(input_file), None)
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    processed = ContentProcessor(ProfileCache(StaticProfileService())).process_content(text, tags)

    if fmt == "csv":
        click.echo(entities_to_csv(processed), nl=False)
    else:
        click.echo(json.dumps(entities_to_dict(processed), indent=2, ensure_ascii=False))


@main.command()
@click.argument("npub")
@click.option(
    "--profiles",
    "profiles_file",
    type=click.Path(exists=True),
    required=True,
    help="JSON file mapping hex pubkeys to kind-0 metadata",
)
@click.pass_context
def profile(ctx, npub, profiles_file):
    """Show how NPUB appears as a mention."""
    from .mentions import mention_label, profile_href, render_mention
    from .models import extract_display_name
    from .nip19 import npub_to_hex

    try:
        config = load_config_or_default(ctx.obj["config_path"])
        pubkey = npub_to_hex(npub)
        profiles = _load_profiles(Path(profiles_file))
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    found = profiles.get(pubkey)
    click.echo(f"Pubkey: {pubkey}")
    click.echo(f"Label: {mention_label(npub, profiles.get)}")
    click.echo(f"Display name: {(extract_display_name(found) if found else '') or '(none)'}")
    click.echo(f"Link: {profile_href(pubkey, config.render)}")
    click.echo(f"HTML: {render_mention(npub, profiles.get, config.render)}")


@main.command()
@click.pass_context
def status(ctx):
    """Show current configuration."""
    config_path = ctx.obj["config_path"]
    has_config = config_exists(config_path)

    click.echo("Note Renderer — Status")
    click.echo("=" * 40)
    click.echo(f"Config: {'Found' if has_config else 'Not configured'} ({config_path})")

    config = load_config(config_path) if has_config else AppConfig()
    click.echo(f"Profile service: {config.service_url or 'none (mentions stay pending)'}")

    window = config.window_days
    if window == 0:
        window_desc = "disabled"
    elif window == -1:
        window_desc = "always"
    else:
        window_desc = f"{window} days"
    click.echo(f"Recognition window: {window_desc}")
    click.echo(
        f"Blink: {config.blink.cycles} cycles every {config.blink.interval:g}s"
    )

    if not has_config:
        click.echo("\nRun 'note-render setup' to configure a profile service.")


async def _render_note(text, tags, config, service) -> str:
    from .pipeline import build_renderer

    # headless: identity changes swap immediately
    renderer = build_renderer(service, config, animate=False)
    renderer.render(text, tags, key="note")
    await renderer.cache.drain()
    return renderer.document.to_html("note")


def _load_note(input_path: Path, tags_path: Path | None) -> tuple[str, list[list[str]]]:
    """Read note text and tags from a text file or a NIP-01 event JSON file."""
    raw = input_path.read_text(encoding="utf-8")
    text, tags = raw, []

    if input_path.suffix == ".json":
        event = json.loads(raw)
        if not isinstance(event, dict) or not isinstance(event.get("content"), str):
            raise ValueError(f"{input_path.name} is not a NIP-01 event (no string 'content')")
        text = event["content"]
        tags = event.get("tags", [])

    if tags_path is not None:
        tags = json.loads(tags_path.read_text(encoding="utf-8"))

    if not isinstance(tags, list) or not all(
        isinstance(tag, list) and all(isinstance(v, str) for v in tag) for tag in tags
    ):
        raise ValueError("Tags must be a list of string lists")
    return text, tags


def _load_profiles(path: Path) -> dict:
    """Read a JSON object mapping hex pubkeys to kind-0 metadata."""
    from .models import Profile

    metadata = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(metadata, dict):
        raise ValueError("Profiles file must map pubkeys to metadata objects")
    return {pk: Profile.from_metadata(pk, md) for pk, md in metadata.items() if isinstance(md, dict)}
