"""Command-line interface for scrapchat."""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

import click

from scrapchat.chat.exceptions import NotLiveError, ScrapChatError
from scrapchat.config import load_config
from scrapchat.models import Config, OutputFormat, OutputTarget
from scrapchat.output import LiveOutput, write_info
from scrapchat.scraper import ScrapChat

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


def output_options(func):
    """Options shared by the live and info commands."""
    options = [
        click.option(
            "--output",
            "-o",
            type=click.Choice([t.value for t in OutputTarget]),
            help="Output result destination",
        ),
        click.option(
            "--format",
            "-f",
            "fmt",
            type=click.Choice([f.value for f in OutputFormat]),
            help="Format of result",
        ),
        click.option(
            "--custom-output",
            "-co",
            help='Custom output template (e.g. "AUTHOR_NAME: MESSAGE")',
        ),
        click.option(
            "--cookies",
            type=click.Path(exists=True, path_type=Path),
            help="Path to Netscape cookie file",
        ),
        click.option(
            "--config",
            "config_path",
            type=click.Path(path_type=Path),
            default=None,
            help="Path to config YAML file (default: config.yaml)",
        ),
        click.option("--verbose", "-v", is_flag=True, help="Log protocol traffic"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def build_config(
    config_path: Optional[Path],
    output: Optional[str],
    fmt: Optional[str],
    custom_output: Optional[str],
    cookies: Optional[Path],
    verbose: bool,
) -> Config:
    """Load the config file and apply command-line overrides."""
    cfg = load_config(
        config_path,
        output=output,
        format=fmt,
        custom_output=custom_output,
        cookies_file=str(cookies) if cookies else None,
        verbose=True if verbose else None,
    )

    if cfg.format == OutputFormat.CUSTOM and not (cfg.custom_output or "").strip():
        raise click.UsageError("Custom format selected but no custom-output template provided")

    if cfg.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    return cfg


@click.group()
@click.version_option(version="0.1.0")
def cli():
    """scrapchat - YouTube live chat and channel info scraper."""
    pass


@cli.command()
@click.argument("url")
@output_options
def live(url: str, output, fmt, custom_output, cookies, config_path, verbose):
    """Stream live chat messages of a stream URL or @handle."""
    cfg = build_config(config_path, output, fmt, custom_output, cookies, verbose)

    async def run(writer: LiveOutput) -> None:
        async with ScrapChat(config=cfg) as scrap:
            async for message in scrap.fetch_live_chat(url):
                writer.write(message)

    with LiveOutput(cfg.output, cfg.format, cfg.custom_output) as writer:
        try:
            asyncio.run(run(writer))
        except KeyboardInterrupt:
            logger.info("Received interrupt signal, stopping")
        except NotLiveError as e:
            logger.error(f"Stream not live: {e}")
            sys.exit(1)
        except ScrapChatError as e:
            logger.error(f"Error fetching live chat: {e}")
            sys.exit(1)
        finally:
            logger.info(f"Wrote {writer.count} messages")


@cli.command()
@click.argument("url")
@output_options
def info(url: str, output, fmt, custom_output, cookies, config_path, verbose):
    """Fetch channel info of a channel URL or @handle."""
    cfg = build_config(config_path, output, fmt, custom_output, cookies, verbose)

    async def run():
        async with ScrapChat(config=cfg) as scrap:
            return await scrap.fetch_channel_info(url)

    try:
        result = asyncio.run(run())
    except ScrapChatError as e:
        logger.error(f"Error fetching info: {e}")
        sys.exit(1)

    write_info(result, cfg.output, cfg.format, cfg.custom_output)


if __name__ == "__main__":
    cli()
