"""Click CLI: ``csv-split`` command group."""

from __future__ import annotations

import json
import math

import click
from loguru import logger

from csv_splitter.config import STRATEGY_CHOICES, load_config
from csv_splitter.exit_codes import ExitCode, exit_code_from_result
from csv_splitter.logging import bind_run_context, new_run_id, setup_logging


# ---------------------------------------------------------------------------
# Root group
# ---------------------------------------------------------------------------

@click.group(invoke_without_command=True)
@click.version_option(package_name="csv-splitter", prog_name="csv-split")
@click.option("--config", "config_path", default=None, type=click.Path(exists=True),
              help="Path to splitter YAML config.")
@click.option("--log-level", default="INFO",
              type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False))
@click.option("--log-format", default="text",
              type=click.Choice(["text", "json"]),
              help="Log output format.")
@click.option("--log-file", default=None, type=click.Path(dir_okay=False),
              help="Also write DEBUG-level logs to this file.")
@click.option("--run-id", default=None, help="Override auto-generated run ID.")
@click.option("--show-config", is_flag=True, help="Print resolved config as YAML and exit.")
@click.pass_context
def csv_split(ctx: click.Context, config_path, log_level, log_format, log_file, run_id,
              show_config):
    """Split large CSV files into row-bounded shards."""
    ctx.ensure_object(dict)

    run_id = run_id or new_run_id()
    ctx.obj["run_id"] = run_id
    bind_run_context(run_id)
    setup_logging(level=log_level, fmt=log_format, log_file=log_file)

    try:
        ctx.obj["cfg"] = load_config(config_path)
    except (ValueError, OSError) as exc:
        raise click.BadParameter(str(exc), param_hint="--config")

    if show_config:
        import dataclasses
        import yaml as _yaml
        click.echo(_yaml.dump(dataclasses.asdict(ctx.obj["cfg"]), default_flow_style=False))
        ctx.exit(ExitCode.SUCCESS)
        return

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


# ---------------------------------------------------------------------------
# split
# ---------------------------------------------------------------------------

@csv_split.command()
@click.argument("input_csv", type=click.Path())
@click.option("-o", "--output-dir", required=True, help="Directory for the shard files.")
@click.option("-n", "--rows-per-file", required=True, type=int,
              help="Maximum data rows per shard.")
@click.option("--header/--no-header", "has_header", default=True,
              help="Whether the first line is a header row.")
@click.option("--excel", "convert_to_excel", is_flag=True,
              help="Convert each shard to .xlsx (the .csv shard is removed).")
@click.option("--strategy", default="auto",
              type=click.Choice(("auto",) + STRATEGY_CHOICES),
              help="Force a splitting strategy instead of choosing by file size.")
@click.option("--max-workers", type=int, default=None,
              help="Concurrent shard writers in parallel mode.")
@click.option("--balanced", is_flag=True,
              help="Parallel mode: spread rows evenly across shards.")
@click.option("--report-dir", default=None, help="Write JSON/CSV/text shard reports here.")
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON.")
@click.option("--dry-run", is_flag=True, help="Show the plan without writing any files.")
@click.pass_context
def split(ctx, input_csv, output_dir, rows_per_file, has_header, convert_to_excel,
          strategy, max_workers, balanced, report_dir, as_json, dry_run):
    """Split INPUT_CSV into files of at most --rows-per-file data rows."""
    from csv_splitter.models import SplitRequest
    from csv_splitter.steps.split import run_split
    from csv_splitter.tracking import ShardTracker

    cfg = ctx.obj["cfg"]
    if strategy != "auto":
        cfg.strategy.force = strategy
    if max_workers is not None:
        if max_workers < 1:
            raise click.BadParameter("must be at least 1", param_hint="--max-workers")
        cfg.parallel.max_workers = max_workers
        cfg.parallel.scale_with_size = False
    if balanced:
        cfg.parallel.balanced_chunks = True

    request = SplitRequest(
        input_path=input_csv,
        output_dir=output_dir,
        rows_per_file=rows_per_file,
        has_header=has_header,
        convert_to_excel=convert_to_excel,
    )

    if dry_run:
        ctx.exit(_dry_run(request, cfg))
        return

    tracker = ShardTracker(run_id=ctx.obj["run_id"])
    result = run_split(request, cfg, tracker)

    if report_dir:
        tracker.save_reports(report_dir)

    if as_json:
        click.echo(json.dumps(result.to_dict()))
    elif result.success:
        ext = ".xlsx" if convert_to_excel else ".csv"
        click.echo(f"Created {result.file_count} {ext} files in {output_dir}")
    else:
        click.echo(f"Error: {result.error}", err=True)

    ctx.exit(exit_code_from_result(result))


def _dry_run(request, cfg) -> ExitCode:
    """Print the strategy and shard plan for *request* without writing anything."""
    from csv_splitter.errors import SplitError
    from csv_splitter.splitting.line_index import build_line_index, chunk_stride, record_lines
    from csv_splitter.splitting.mapped_source import MappedSource
    from csv_splitter.splitting.parallel import worker_count
    from csv_splitter.splitting.strategy import Strategy, select_strategy
    from csv_splitter.splitting.validation import validate_request

    try:
        size = validate_request(request)
        chosen = select_strategy(request.source, cfg.strategy, file_size=size)
        with MappedSource(request.source) as source:
            index = build_line_index(source.view)
            first_data_line = 1 if request.has_header else 0
            data_rows = len(record_lines(index, source.view, first_data_line))
    except SplitError as exc:
        click.echo(f"Error: {exc}", err=True)
        return ExitCode.BAD_INPUT

    click.echo(f"Input: {request.input_path} ({size:,} bytes)")
    click.echo(f"Strategy: {chosen.value}")
    click.echo(f"Data lines: {data_rows:,}")
    if data_rows == 0:
        click.echo("Expected files: 0 (no data rows)")
        return ExitCode.BAD_INPUT

    shards = math.ceil(data_rows / request.rows_per_file)
    if chosen is Strategy.PARALLEL:
        stride = chunk_stride(data_rows, request.rows_per_file, cfg.parallel.balanced_chunks)
        click.echo(f"Expected files: {shards} (up to {stride:,} rows each, "
                   f"{worker_count(size, cfg.parallel)} workers)")
    else:
        click.echo(f"Expected files: {shards} (up to {request.rows_per_file:,} rows each)")
    logger.debug("Dry run; nothing written")
    return ExitCode.SUCCESS
