"""CLI interface for drivedl."""

import logging
from pathlib import Path
from typing import Any, Optional

import click

from .api import DriveClient
from .cli_progress import RichProgressAggregator
from .config import config
from .download import DownloadEngine
from .exceptions import DriveAPIError, DriveConfigError, LocalAccessError
from .output import OutputFormatter
from .utils import extract_file_id

logger = logging.getLogger(__name__)


@click.group()
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output the summary in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option(package_name="drivedl")
@click.pass_context
def main(ctx: Any, quiet: bool, json: bool, verbose: bool) -> None:
    """drivedl - Download files and folders from Google Drive."""
    ctx.ensure_object(dict)
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet)

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("drivedl").setLevel(logging.DEBUG)
        # httpx logs every request at INFO
        logging.getLogger("httpx").setLevel(logging.WARNING)
    else:
        logging.basicConfig(level=logging.WARNING)


@main.command()
@click.argument("identifier", type=str)
@click.option(
    "--path",
    "-p",
    type=click.Path(file_okay=False),
    default=".",
    show_default=True,
    help="Folder path to store the download",
)
@click.option(
    "--conn",
    "-c",
    type=click.IntRange(min=1),
    default=None,
    help="Number of concurrent file downloads [default: 2]",
)
@click.option(
    "--output-name",
    "-o",
    default=None,
    help="Local name for the downloaded file or folder",
)
@click.option(
    "--acknowledge-abuse",
    is_flag=True,
    help="Download files Drive has flagged as malware or spam",
)
@click.option(
    "--token",
    "-t",
    envvar="DRIVEDL_ACCESS_TOKEN",
    default=None,
    help="OAuth access token (default: DRIVEDL_ACCESS_TOKEN or config file)",
)
@click.option("--no-progress", is_flag=True, help="Disable progress bars")
@click.pass_context
def download(
    ctx: Any,
    identifier: str,
    path: str,
    conn: Optional[int],
    output_name: Optional[str],
    acknowledge_abuse: bool,
    token: Optional[str],
    no_progress: bool,
) -> None:
    """Download a file or folder from Google Drive.

    IDENTIFIER: Drive file/folder id or share link

    Files that are already complete locally are skipped and partially
    downloaded files are resumed.

    Examples:
        drivedl download 1AbCdEf                                   # By id
        drivedl download https://drive.google.com/drive/folders/1AbCdEf
        drivedl download -p ./dest -c 4 1AbCdEf                    # 4 at once
        drivedl download -o renamed.zip 1AbCdEf                    # Local name
    """
    out: OutputFormatter = ctx.obj["out"]

    file_id = extract_file_id(identifier)
    out.info(f"Detected File-Id: {file_id}")

    try:
        concurrency = conn or config.concurrency
        client = DriveClient(access_token=token)
    except DriveConfigError as e:
        out.error(str(e))
        ctx.exit(1)

    silent = no_progress or out.quiet or out.json_output
    try:
        with client:
            engine = DownloadEngine(client, out)
            engine.set_concurrency(concurrency)
            engine.set_acknowledge_abuse(acknowledge_abuse)
            out.info(f"Using concurrency: {concurrency}")

            if out.quiet or out.json_output:
                engine.set_silent(True)

            if silent:
                stats = engine.download(file_id, Path(path), output_name)
            else:
                with RichProgressAggregator() as progress:
                    engine.progress = progress
                    stats = engine.download(file_id, Path(path), output_name)

    except KeyboardInterrupt:
        out.warning("\nDownload cancelled by user")
        ctx.exit(130)
    except (DriveAPIError, LocalAccessError) as e:
        out.error(str(e))
        ctx.exit(1)

    if out.json_output:
        out.output_json({"id": file_id, **stats})

    if stats["errors"] > 0 and stats["downloads"] == 0 and stats["skips"] == 0:
        ctx.exit(1)


if __name__ == "__main__":
    main()
