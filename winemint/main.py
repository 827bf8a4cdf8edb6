import click
import asyncio
import logging
import json
import signal
import sys
from typing import List

from .batch_processor import BatchMintingProcessor
from .blockfrost_client import BlockfrostClient
from .config import MAX_WINERIES_PER_RUN
from .exceptions import ConfigurationError, WineMintError
from .history import MintHistory
from .iot_client import IotStorageClient
from .mock_minting import MockMintingApi
from .models import Winery
from .observers import ConsoleObserver
from .orchestrator import MainNetworkOrchestrator, FAILED_RUN
from .session import MintingSession, MAIN_MODE, TEST_MODE
from .tokenization_client import TokenizationClient
from .wineries import load_wineries

# Configure logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


def build_session(mode: str, wineries: List[Winery], history: MintHistory,
                  max_wineries: int = MAX_WINERIES_PER_RUN) -> MintingSession:
    """Wires the runner for the requested mode. Main mode needs the live API credentials."""
    observer = ConsoleObserver()
    if mode == MAIN_MODE:
        orchestrator = MainNetworkOrchestrator(
            tokenization=TokenizationClient(),
            status_client=BlockfrostClient(),
            iot_client=IotStorageClient(),
            history=history,
            observer=observer,
        )
        return MintingSession(wineries, mode=MAIN_MODE, history=history,
                              orchestrator=orchestrator, max_wineries=max_wineries)

    processor = BatchMintingProcessor(MockMintingApi(), observer=observer, history=history)
    return MintingSession(wineries, mode=TEST_MODE, history=history,
                          processor=processor, max_wineries=max_wineries)


@click.group()
def cli():
    """Bulk minter for wine provenance NFTs on Cardano"""
    pass


@cli.command()
@click.option('--source', default=None, help='Wineries JSON file or URL (defaults to WINERIES_SOURCE)')
def wineries(source):
    """List wineries and their wines."""
    for winery in load_wineries(source):
        click.echo(f"{winery.name} [{winery.id}] - {len(winery.wines)} wines")
        for wine in winery.wines:
            marker = "" if wine.has_valid_image else "  (no valid image, cannot mint)"
            click.echo(f"  - {wine.id}: {wine.label}{marker}")


@cli.command()
@click.option('--mode', type=click.Choice([TEST_MODE, MAIN_MODE]), default=TEST_MODE,
              help='test uses the mock minting service, main mints on chain')
@click.option('--source', default=None, help='Wineries JSON file or URL (defaults to WINERIES_SOURCE)')
@click.option('--max-wineries', default=MAX_WINERIES_PER_RUN, help='Number of wineries to include')
@click.option('--results-file', default=None, type=click.Path(dir_okay=False),
              help='Write successful mints to this JSON file')
def mint(mode, source, max_wineries, results_file):
    """Mint every wine sequentially. Ctrl-C stops after the current step."""
    all_wineries = load_wineries(source)
    history = MintHistory()
    try:
        session = build_session(mode, all_wineries, history, max_wineries)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        raise click.ClickException(str(e))

    click.echo(f"Starting {mode} minting for {min(len(all_wineries), max_wineries)} wineries...")

    async def _mint():
        loop = asyncio.get_running_loop()
        try:
            loop.add_signal_handler(signal.SIGINT, session.stop)
        except (NotImplementedError, RuntimeError, ValueError):
            logger.debug("SIGINT handler not available, stop with the default interrupt")
        try:
            return await session.start()
        finally:
            try:
                loop.remove_signal_handler(signal.SIGINT)
            except (NotImplementedError, RuntimeError, ValueError):
                pass

    report = asyncio.run(_mint())

    resume = history.resume_data()
    click.echo(f"Outcome: {report.outcome} ({report.processed}/{report.total} processed)")
    click.echo(f"History: {resume.completed} successful, {resume.failed} failed, "
               f"{resume.pending} pending, {resume.confirming} confirming")
    if report.error:
        click.echo(f"Stopped at {report.failed_wine_id}: {report.error}")

    if results_file:
        count = history.write_results(results_file, all_wineries, mode)
        click.echo(f"Wrote {count} results to {results_file}")

    if report.outcome == FAILED_RUN:
        sys.exit(1)


@cli.command()
@click.argument('tx_id')
def status(tx_id):
    """Check the on-chain status of a transaction."""
    async def _status():
        client = BlockfrostClient()
        return await client.get_transaction_status(tx_id)

    try:
        result = asyncio.run(_status())
    except WineMintError as e:
        logger.error(f"Error checking status: {e}")
        raise click.ClickException(str(e))

    click.echo(f"{tx_id}: {result.status} - {result.details}")
    if result.block_height:
        click.echo(f"Block height: {result.block_height}")


@cli.command()
@click.argument('unit')
def asset(unit):
    """Retrieve a tokenized asset by unit."""
    async def _asset():
        client = TokenizationClient()
        return await client.retrieve_asset(unit)

    try:
        data = asyncio.run(_asset())
    except WineMintError as e:
        logger.error(f"Asset retrieval failed: {e}")
        raise click.ClickException(str(e))
    click.echo(json.dumps(data, indent=2))


@cli.command('test-connection')
def test_connection():
    """Probe the tokenization API."""
    try:
        client = TokenizationClient()
    except ConfigurationError as e:
        raise click.ClickException(str(e))

    ok = asyncio.run(client.test_connection())
    click.echo(json.dumps(client.get_config(), indent=2))
    if ok:
        click.echo("Connection successful")
    else:
        click.echo("Connection failed")
        sys.exit(1)


if __name__ == '__main__':
    cli()
