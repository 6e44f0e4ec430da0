"""Command-line interface for the analytics pipeline."""

import sys
import json
from typing import Optional, Tuple
import click
import structlog

from bch_analytics.core.exceptions import AnalyticsError
from bch_analytics.core.pipeline import AnalyticsPipeline, MODELS
from bch_analytics.database.manager import DatabaseManager
from bch_analytics.models.config import PipelineConfig
from bch_analytics.utils.logging import setup_logging

logger = structlog.get_logger(__name__)


@click.group()
@click.option('--config-file', '-c', type=click.Path(exists=True),
              help='Path to configuration file')
@click.option('--log-level', '-l', default=None,
              type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR']),
              help='Logging level (default: BCH_LOG_LEVEL or INFO)')
@click.pass_context
def cli(ctx, config_file: Optional[str], log_level: Optional[str]):
    """Bitcoin Cash Analytics Pipeline CLI."""
    ctx.ensure_object(dict)
    
    try:
        if config_file:
            config = PipelineConfig(_env_file=config_file)
        else:
            config = PipelineConfig()
        
        if log_level:
            config.log_level = log_level
        setup_logging(config)
        
        ctx.obj['config'] = config
        
    except Exception as e:
        click.echo(f"Error loading configuration: {e}", err=True)
        sys.exit(1)


@cli.command()
@click.option('--with-source', is_flag=True,
              help='Also create the source tables (local setups)')
@click.pass_context
def init_db(ctx, with_source: bool):
    """Create the derived tables."""
    config = ctx.obj['config']
    
    click.echo("Initializing database...")
    
    try:
        db_manager = DatabaseManager(config)
        
        if not db_manager.test_connection():
            click.echo("❌ Failed to connect to database", err=True)
            sys.exit(1)
        
        db_manager.create_tables(include_source=with_source)
        db_manager.close()
        click.echo("✅ Database initialized successfully")
        
    except Exception as e:
        click.echo(f"❌ Database initialization failed: {e}", err=True)
        sys.exit(1)


@cli.command()
@click.option('--select', '-s', 'models', multiple=True,
              type=click.Choice(list(MODELS)),
              help='Model to build (repeatable, default: all)')
@click.option('--dry-run', is_flag=True,
              help='Compute and check, but do not write tables')
@click.option('--json-output', is_flag=True,
              help='Print the run summary as JSON')
@click.pass_context
def run(ctx, models: Tuple[str, ...], dry_run: bool, json_output: bool):
    """Build the staging and mart tables from the source snapshot."""
    config = ctx.obj['config']
    pipeline = None
    
    try:
        pipeline = AnalyticsPipeline(config)
        
        if not pipeline.initialize():
            click.echo("❌ Failed to initialize pipeline", err=True)
            sys.exit(1)
        
        result = pipeline.run(select=models or MODELS, materialize=not dry_run)
        
        if json_output:
            click.echo(json.dumps(result.to_dict(), indent=2, default=str))
        else:
            if result.staging is not None:
                click.echo(f"📊 Staging rows: {len(result.staging.rows)} "
                           f"(duplicates removed: {result.staging.duplicates_removed})")
            if result.mart is not None:
                click.echo(f"📊 Mart addresses: {len(result.mart.balances)} "
                           f"(coinbase excluded: {result.mart.excluded_address_count})")
            if dry_run:
                click.echo("ℹ️  Dry run, no tables written")
            else:
                click.echo("✅ Tables refreshed successfully")
        
    except AnalyticsError as e:
        click.echo(f"❌ Run aborted: {e}", err=True)
        sys.exit(1)
    except Exception as e:
        click.echo(f"❌ Run failed: {e}", err=True)
        sys.exit(1)
    finally:
        if pipeline is not None:
            pipeline.close()


@cli.command()
@click.pass_context
def check(ctx):
    """Run the contract checks against the published tables."""
    config = ctx.obj['config']
    
    try:
        pipeline = AnalyticsPipeline(config)
        try:
            results = pipeline.check_materialized()
        finally:
            pipeline.close()
    except Exception as e:
        click.echo(f"❌ Checks could not run: {e}", err=True)
        sys.exit(1)
    
    failed = [r for r in results if not r.passed]
    for r in results:
        status = "PASS" if r.passed else "FAIL"
        click.echo(f"{status} {r.name} {r.table}.{r.column} (failures: {r.failures})")
    
    if failed:
        click.echo(f"❌ {len(failed)} check(s) failed", err=True)
        sys.exit(1)
    
    click.echo("✅ All checks passed")


def main():
    """Main entry point."""
    cli()


if __name__ == '__main__':
    main()
