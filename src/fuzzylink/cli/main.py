"""Command-line interface for fuzzylink.

Provides the ``link`` command for linking two CSV datasets.
"""

import importlib.metadata
import sys
import time
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import click

from fuzzylink.errors import FuzzyLinkError

__all__ = ["cli"]

try:
    __version__ = importlib.metadata.version("fuzzylink")
except importlib.metadata.PackageNotFoundError:
    __version__ = "0.1.0"  # Fallback for development


def build_providers(
    *,
    api_key: str | None,
    embedding_model: str,
    embedding_dimensions: int | None,
    embedding_base_url: str | None,
    model: str,
    examples: Sequence[tuple[str, str, str]] = (),
    max_workers: int,
    parallel: bool,
) -> tuple[Any, Any]:
    """Create the HTTP embedding provider and match oracle."""
    from fuzzylink.providers.openai import OPENAI_BASE_URL, OpenAIEmbeddings, OpenAIOracle

    embedder = OpenAIEmbeddings(
        model=embedding_model,
        dimensions=embedding_dimensions,
        api_key=api_key,
        base_url=embedding_base_url or OPENAI_BASE_URL,
        max_workers=max_workers,
        parallel=parallel,
    )
    oracle = OpenAIOracle(
        model=model,
        examples=examples,
        api_key=api_key,
        max_workers=max_workers,
        parallel=parallel,
    )
    return embedder, oracle


@click.group()
@click.version_option(version=__version__, prog_name="fuzzylink")
def cli() -> None:
    """Probabilistic record linkage with embeddings and an LLM match oracle.

    Use 'fuzzylink COMMAND --help' for command-specific help.
    """


@cli.command()
@click.argument("dataset_a", type=click.Path(exists=True, dir_okay=False))
@click.argument("dataset_b", type=click.Path(exists=True, dir_okay=False))
@click.option("--by", required=True, help="Column with the strings to match (in both files)")
@click.option(
    "--block",
    "blocking_variables",
    multiple=True,
    help="Blocking column; rows must agree exactly (repeatable)",
)
@click.option("--output", "-o", type=click.Path(), required=True, help="Output CSV file path")
@click.option(
    "--record-type",
    default="entity",
    show_default=True,
    help="Singular noun describing the records (e.g. person, organization)",
)
@click.option("--instructions", default=None, help="Extra guidance for the match oracle")
@click.option(
    "--examples",
    "examples_file",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="CSV of labeled pairs (columns A, B, match) shown to the oracle",
)
@click.option(
    "--classifier",
    type=click.Choice(["logistic", "forest"]),
    default="logistic",
    show_default=True,
    help="Classifier family",
)
@click.option("--initial-sample-size", type=int, default=500, show_default=True)
@click.option("--batch-size", type=int, default=100, show_default=True)
@click.option("--kernel-sd", type=float, default=0.2, show_default=True)
@click.option("--window", type=int, default=5, show_default=True)
@click.option(
    "--stop-threshold",
    type=float,
    default=None,
    help="Convergence threshold (default: 0.01 logistic, 0.1 forest)",
)
@click.option(
    "--max-labels",
    type=int,
    default=10_000,
    show_default=True,
    help="Hard cap on oracle-confirmed labels",
)
@click.option("--max-iterations", type=int, default=None, help="Active-learning iteration limit")
@click.option(
    "--recall-search/--no-recall-search",
    default=True,
    show_default=True,
    help="Search for matches of unmatched records after convergence",
)
@click.option("--recall-cutoff-fallback", type=float, default=0.5, show_default=True)
@click.option(
    "--cutoff-range",
    type=(float, float),
    default=(0.0, 1.0),
    show_default=True,
    help="Range searched for the match-probability cutoff",
)
@click.option("--return-all-pairs", is_flag=True, help="Output every scored candidate pair")
@click.option("--seed", type=int, default=None, help="Random seed")
@click.option(
    "--embedding-model",
    default="text-embedding-3-large",
    show_default=True,
    help="Embedding model identifier",
)
@click.option(
    "--embedding-dimensions",
    type=int,
    default=256,
    show_default=True,
    help="Embedding length; 0 lets the provider decide",
)
@click.option(
    "--embedding-base-url",
    default=None,
    help="OpenAI-compatible embedding endpoint (e.g. https://api.mistral.ai/v1)",
)
@click.option("--model", default="gpt-4o", show_default=True, help="Oracle chat model identifier")
@click.option(
    "--api-key",
    envvar="OPENAI_API_KEY",
    default=None,
    show_envvar=True,
    help="API key for the providers",
)
@click.option("--max-workers", type=int, default=20, show_default=True, help="Concurrent requests")
@click.option("--sequential", is_flag=True, help="Send provider requests one at a time")
@click.option("--log-file", type=click.Path(), default=None, help="Write JSONL audit events here")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
def link(
    dataset_a: str,
    dataset_b: str,
    by: str,
    blocking_variables: tuple[str, ...],
    output: str,
    record_type: str,
    instructions: str | None,
    examples_file: str | None,
    classifier: str,
    initial_sample_size: int,
    batch_size: int,
    kernel_sd: float,
    window: int,
    stop_threshold: float | None,
    max_labels: int,
    max_iterations: int | None,
    recall_search: bool,
    recall_cutoff_fallback: float,
    cutoff_range: tuple[float, float],
    return_all_pairs: bool,
    seed: int | None,
    embedding_model: str,
    embedding_dimensions: int,
    embedding_base_url: str | None,
    model: str,
    api_key: str | None,
    max_workers: int,
    sequential: bool,
    log_file: str | None,
    verbose: bool,
) -> None:
    """Link DATASET_A to DATASET_B on an inexactly matching column.

    Every row of DATASET_A appears in the output, joined to the rows of
    DATASET_B judged to refer to the same entity.

    Examples
    --------
        fuzzylink link senators.csv donors.csv --by name -o linked.csv
        fuzzylink link a.csv b.csv --by name --block state --block year -o out.csv
    """
    from fuzzylink.api import read_dataset, read_examples, write_dataset
    from fuzzylink.audit import AuditLogger, generate_run_id
    from fuzzylink.engine import LinkageConfig, run_linkage
    from fuzzylink.utils import calculate_file_sha256, digest_files, format_clock_time

    def progress(message: str) -> None:
        if verbose:
            click.echo(f"{message} ({format_clock_time()})", err=True)

    logger: AuditLogger | None = None
    start = time.perf_counter()

    try:
        config = LinkageConfig(
            by=by,
            blocking_variables=list(blocking_variables),
            record_type=record_type,
            instructions=instructions,
            classifier=classifier,
            initial_sample_size=initial_sample_size,
            batch_size=batch_size,
            kernel_sd=kernel_sd,
            window=window,
            stop_threshold=stop_threshold,
            max_labels=max_labels,
            max_iterations=max_iterations,
            recall_search=recall_search,
            recall_cutoff_fallback=recall_cutoff_fallback,
            cutoff_range=cutoff_range,
            return_all_pairs=return_all_pairs,
            seed=seed,
        )

        if log_file:
            logger = AuditLogger(run_id=generate_run_id(), log_path=Path(log_file))
            logger.run_started(
                command=sys.argv,
                parameters=config.to_dict(),
                inputs=digest_files([dataset_a, dataset_b]),
            )

        progress("Reading datasets")
        df_a = read_dataset(dataset_a)
        df_b = read_dataset(dataset_b)
        examples = read_examples(examples_file) if examples_file else []

        embedder, oracle = build_providers(
            api_key=api_key,
            embedding_model=embedding_model,
            embedding_dimensions=embedding_dimensions or None,
            embedding_base_url=embedding_base_url,
            model=model,
            examples=examples,
            max_workers=max_workers,
            parallel=not sequential,
        )

        progress(f"Linking {len(df_a)} x {len(df_b)} records")
        result = run_linkage(df_a, df_b, config, embedder, oracle, logger=logger)

        output_path = Path(output)
        bytes_written = write_dataset(result.data, output_path)
        if logger:
            logger.artifact_written(
                path=str(output_path),
                sha256=calculate_file_sha256(output_path),
                stage="assembly",
                bytes_written=bytes_written,
                row_count=len(result.data),
            )
            logger.run_finished(
                status="success",
                duration_seconds=time.perf_counter() - start,
                oracle_labels=result.labels_total,
            )

        progress("Done!")
        if verbose:
            cutoff = result.cutoff
            click.echo("\nResults:", err=True)
            click.echo(f"  Candidate pairs: {len(result.pairs)}", err=True)
            click.echo(f"  Oracle calls: {result.oracle_calls}", err=True)
            click.echo(f"  Confirmed labels: {result.labels_total}", err=True)
            if cutoff.is_defined:
                click.echo(
                    f"  Cutoff: {cutoff.cutoff:.4f} (expected F1 {cutoff.expected_f1:.3f})",
                    err=True,
                )
            else:
                click.echo("  Cutoff: undefined (no confirmed matches)", err=True)

        matched = int(result.data["B"].notna().sum())
        click.secho(
            f"✓ Wrote {len(result.data)} rows ({matched} matched) to {output}",
            fg="green",
        )

    except FuzzyLinkError as e:
        if logger:
            logger.run_finished(status="failed", duration_seconds=time.perf_counter() - start)
        click.secho(f"✗ Error: {e}", fg="red", err=True)
        if verbose:
            import traceback

            click.echo(traceback.format_exc(), err=True)
        sys.exit(1)
    finally:
        if logger:
            logger.close()


if __name__ == "__main__":
    cli()
