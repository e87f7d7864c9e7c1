"""CLI interface for objsync."""

import asyncio
import logging
import signal
from pathlib import Path
from typing import Any, Optional

import click

from . import __version__
from .api import ObjectStoreClient
from .config import config
from .exceptions import ObjSyncConfigError
from .output import OutputFormatter
from .sync import SyncEngine, SyncOptions, SyncReport
from .utils import DEFAULT_CONCURRENCY, DEFAULT_COPIES, parse_header

logger = logging.getLogger(__name__)


def _parse_headers(
    ctx: click.Context, param: click.Parameter, values: tuple[str, ...]
) -> dict[str, str]:
    """Turn repeated ``--header 'Name: value'`` options into a dict."""
    headers: dict[str, str] = {}
    for value in values:
        try:
            name, header_value = parse_header(value)
        except ValueError as e:
            raise click.BadParameter(str(e), ctx=ctx, param=param) from e
        headers[name] = header_value
    return headers


def _dump_status(engine: SyncEngine, out: OutputFormatter) -> None:
    out.print_status(engine.status())


async def _run_engine(engine: SyncEngine, out: OutputFormatter) -> SyncReport:
    """Run the engine with SIGUSR1 wired to a status dump."""
    loop = asyncio.get_running_loop()
    status_signal = getattr(signal, "SIGUSR1", None)
    if status_signal is not None:
        try:
            loop.add_signal_handler(status_signal, _dump_status, engine, out)
        except (NotImplementedError, RuntimeError, ValueError):
            logger.debug("Status signal handler not available")
            status_signal = None

    try:
        return await engine.run()
    finally:
        if status_signal is not None:
            loop.remove_signal_handler(status_signal)


@click.group()
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output the run report as JSON")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option(version=__version__, prog_name="objsync")
@click.pass_context
def main(ctx: Any, quiet: bool, json: bool, verbose: bool) -> None:
    """objsync - Sync a local directory to a remote object store."""
    ctx.ensure_object(dict)
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet)
    ctx.obj["verbose"] = verbose

    # Configure logging based on verbose flag
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("objsync").setLevel(logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)


@main.command()
@click.option("--url", prompt="Object store URL", help="Object store base URL")
@click.option("--token", default=None, help="Bearer token for authentication")
@click.pass_context
def init(ctx: Any, url: str, token: Optional[str]) -> None:
    """Initialize objsync configuration.

    Stores the object store URL (and token) in ~/.config/objsync/config
    for future use.
    """
    out: OutputFormatter = ctx.obj["out"]

    try:
        config_path = config.save(url, token)
    except OSError as e:
        out.error(f"Initialization failed: {e}")
        ctx.exit(1)
        return

    out.print_summary(
        "Initialization Complete",
        [
            ("Status", "Configuration saved successfully"),
            ("Config file", str(config_path)),
        ],
    )


@main.command()
@click.argument("local_dir", type=click.Path(path_type=Path))
@click.argument("remote_dir")
@click.option(
    "--concurrency",
    "-c",
    type=click.IntRange(min=1),
    default=DEFAULT_CONCURRENCY,
    show_default=True,
    help="Maximum number of concurrent operations per stage",
)
@click.option(
    "--copies",
    type=click.IntRange(min=1),
    default=DEFAULT_COPIES,
    show_default=True,
    help="Number of copies the store should keep of each upload",
)
@click.option(
    "--md5",
    "-m",
    "checksum",
    is_flag=True,
    help="Compare MD5 checksums instead of sizes",
)
@click.option(
    "--dry-run", "-n", is_flag=True, help="Show what would be done without doing it"
)
@click.option(
    "--delete",
    "-d",
    is_flag=True,
    help="Delete remote objects that do not exist locally",
)
@click.option(
    "--just-delete",
    "-j",
    is_flag=True,
    help="Only delete remote orphans, do not upload anything",
)
@click.option(
    "--header",
    "-H",
    "headers",
    multiple=True,
    callback=_parse_headers,
    help="Extra upload header as 'Name: value' (repeatable)",
)
@click.option("--url", envvar="OBJSYNC_URL", help="Object store base URL")
@click.option("--token", envvar="OBJSYNC_TOKEN", help="Bearer token")
@click.pass_context
def sync(
    ctx: Any,
    local_dir: Path,
    remote_dir: str,
    concurrency: int,
    copies: int,
    checksum: bool,
    dry_run: bool,
    delete: bool,
    just_delete: bool,
    headers: dict[str, str],
    url: Optional[str],
    token: Optional[str],
) -> None:
    """Sync LOCAL_DIR to REMOTE_DIR in the object store.

    Files missing remotely or differing in size (or MD5 with --md5) are
    uploaded. With --delete, remote objects without a local counterpart
    are removed afterwards. Send SIGUSR1 to print the items in flight.

    Examples:
        objsync sync ./photos /stor/photos
        objsync sync ./photos /stor/photos --md5 --delete
        objsync sync ./site /public/site -H 'Cache-Control: max-age=60'
        objsync sync ./data /stor/data --dry-run --delete
    """
    out: OutputFormatter = ctx.obj["out"]

    try:
        client = ObjectStoreClient(api_url=url, token=token)
    except ObjSyncConfigError as e:
        out.error(str(e))
        ctx.exit(1)
        return

    options = SyncOptions(
        local_root=local_dir,
        remote_root=remote_dir,
        concurrency=concurrency,
        copies=copies,
        checksum=checksum,
        dry_run=dry_run,
        delete=delete or just_delete,
        delete_only=just_delete,
        headers=headers,
    )
    engine = SyncEngine(client, options, out)

    try:
        report = asyncio.run(_run_engine(engine, out))
    except ValueError as e:
        out.error(str(e))
        ctx.exit(1)
        return

    if out.json_output:
        out.print_json(report.to_dict())

    ctx.exit(report.exit_code)


if __name__ == "__main__":
    main()
