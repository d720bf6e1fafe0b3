# borrow_indexer/cli/__main__.py

"""
Borrow Indexer CLI

Usage: python -m borrow_indexer.cli [--config PATH] [command] [options]
"""

import signal
import sys
from pathlib import Path

import click

from ..clients.rpc_client import Web3RpcClient
from ..core.exceptions import IndexerError
from ..core.logging import IndexerLogger
from ..factory import build_graph, create_lookups, create_registry
from ..types import BlockRange
from .context import CLIContext


@click.group()
@click.option('--config', '-c', 'config_path', default='config/config.yaml',
              envvar='BORROW_INDEXER_CONFIG', show_default=True,
              type=click.Path(dir_okay=False), help='Pipeline configuration file')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
@click.option('--log-file', is_flag=True, help='Also write logs to the configured log directory')
@click.pass_context
def cli(ctx, config_path, verbose, log_file):
    """Borrow Indexer - derive vault, auction and price history from chain logs"""
    ctx.ensure_object(dict)

    log_level = "DEBUG" if verbose else "INFO"
    IndexerLogger.configure(
        log_dir=Path.cwd() / "logs",
        log_level=log_level,
        console_enabled=True,
        file_enabled=log_file,
        structured_format=verbose,
    )

    cli_context = CLIContext(config_path)
    ctx.obj['cli_context'] = cli_context
    ctx.call_on_close(cli_context.shutdown)


def _fail(message: str, error: Exception) -> None:
    click.echo(f"❌ {message}: {error}", err=True)
    sys.exit(1)


@cli.command()
@click.pass_context
def validate(ctx):
    """Load the configuration and check sources and the transformer graph"""
    cli_context: CLIContext = ctx.obj['cli_context']
    try:
        config = cli_context.config
        registry = create_registry(config)
        lookups = create_lookups(config, Web3RpcClient(config.rpc), lambda token, block: None)
        graph = build_graph(config, registry, lookups)
    except IndexerError as e:
        _fail("Configuration invalid", e)
        return

    click.echo(f"✅ {config.name}: {len(registry)} sources, {len(graph.order)} transformers")
    click.echo("\nSources:")
    for source in registry.all():
        target = source.address or f"{len(source.topics)} topics"
        click.echo(f"  {source.id:<28} {source.kind.value:<26} from {source.starting_block:<10} {target}")

    click.echo("\nTransformer order:")
    for position, name in enumerate(graph.order, start=1):
        click.echo(f"  {position:>2}. {name}")

    collisions = registry.find_topic_collisions()
    unceded = registry.find_unceded_addresses()
    if collisions or unceded:
        click.echo("\n⚠️  Unresolved overlaps:")
        for first, second, topic in collisions:
            click.echo(f"  {first} and {second} both claim {topic}")
        for address_source, topic_source in unceded:
            click.echo(f"  {topic_source} does not exclude the address of {address_source}")


@cli.command()
@click.option('--until-block', type=int, help='Stop once this block is processed')
@click.option('--max-batches', type=int, help='Stop after this many batches')
@click.pass_context
def run(ctx, until_block, max_batches):
    """Process batches from the checkpoints onward"""
    cli_context: CLIContext = ctx.obj['cli_context']
    try:
        pipeline = cli_context.pipeline
    except IndexerError as e:
        _fail("Could not start pipeline", e)
        return

    signal.signal(signal.SIGINT, lambda signum, frame: pipeline.stop())
    signal.signal(signal.SIGTERM, lambda signum, frame: pipeline.stop())

    try:
        batches = pipeline.run(until_block=until_block, max_batches=max_batches)
    except IndexerError as e:
        _fail("Pipeline failed", e)
        return
    click.echo(f"✅ Processed {batches} batches")


@cli.command('range')
@click.argument('start', type=int)
@click.argument('end', type=int)
@click.pass_context
def process_range(ctx, start, end):
    """Process one fixed block range, replacing anything stored for it"""
    cli_context: CLIContext = ctx.obj['cli_context']
    try:
        block_range = BlockRange(start, end)
    except ValueError as e:
        _fail("Invalid range", e)
        return

    try:
        result = cli_context.pipeline.process_range(block_range)
    except IndexerError as e:
        _fail(f"Range {block_range} failed", e)
        return
    click.echo(f"✅ {block_range}: {result.decoded_count} decoded, {result.derived_count} derived")


@cli.command()
@click.pass_context
def checkpoints(ctx):
    """List per-source checkpoints"""
    cli_context: CLIContext = ctx.obj['cli_context']
    stored = cli_context.store.get_checkpoints()
    registry = create_registry(cli_context.config)

    for source in registry.all():
        last = stored.get(source.id)
        shown = str(last) if last is not None else f"- (starts at {source.starting_block})"
        click.echo(f"  {source.id:<28} {shown}")


@cli.command()
@click.argument('block', type=int)
@click.option('--yes', is_flag=True, help='Do not ask for confirmation')
@click.pass_context
def rewind(ctx, block, yes):
    """Rewind checkpoints so that everything after BLOCK is derived again"""
    cli_context: CLIContext = ctx.obj['cli_context']
    if not yes:
        click.confirm(f"Delete derived data after block {block} and rewind checkpoints?", abort=True)

    try:
        rewound = cli_context.pipeline.rewind(block)
    except IndexerError as e:
        _fail("Rewind failed", e)
        return

    if not rewound:
        click.echo(f"Nothing to rewind, no checkpoint is past {block}")
    for source_id, value in sorted(rewound.items()):
        click.echo(f"  {source_id:<28} -> {value}")


if __name__ == '__main__':
    cli()
