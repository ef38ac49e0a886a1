"""Command-line interface for mapping-qc.

Provides CLI commands for scoring reference-mapped queries.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import click


def setup_logging(verbose: bool = False, debug: bool = False) -> logging.Logger:
    """Setup logging for CLI commands."""
    level = logging.DEBUG if debug else (logging.INFO if verbose else logging.WARNING)
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S",
    )
    return logging.getLogger("mapping_qc")


@click.group()
@click.version_option(version="0.1.0", prog_name="mapping-qc")
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
@click.option("--debug", is_flag=True, help="Enable debug output")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, debug: bool) -> None:
    """mapping-qc: Per-cell mapping confidence for reference-projected queries.

    Scores each query cell by its membership-weighted Mahalanobis distance
    to the reference clusters and flags cells above median + k * MAD.

    Examples:

        # Global threshold
        mapping-qc score -i mapped_query.h5ad -r reference.npz -o qc/

        # Per-donor thresholds
        mapping-qc score -i mapped_query.h5ad -r reference.npz -o qc/ --donor-key donor

        # Check reference covariances
        mapping-qc inspect-reference -r reference.npz
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["debug"] = debug
    ctx.obj["logger"] = setup_logging(verbose, debug)


@cli.command()
@click.option("--input", "-i", "input_path", required=True, type=click.Path(exists=True),
              help="Query AnnData file (.h5ad)")
@click.option("--reference", "-r", "reference_path", required=True, type=click.Path(exists=True),
              help="Reference archive (.npz)")
@click.option("--out", "-o", "output_path", required=True, type=click.Path(),
              help="Output directory")
@click.option("--config", "-c", type=click.Path(exists=True),
              help="Mapping error configuration (YAML)")
@click.option("--mad-threshold", type=float, default=None,
              help="MADs above the median before a cell fails [default: 2.5]")
@click.option("--donor-key", default=None,
              help="obs column with donor labels; enables per-donor thresholds")
@click.option("--embedding-key", default=None, help="obsm key of the query embedding")
@click.option("--weights-key", default=None, help="obsm key of the soft cluster weights")
@click.option("--n-jobs", type=int, default=None, help="Parallel workers across clusters")
@click.option("--store-distances", is_flag=True, help="Store per-cluster distances in obsm")
@click.option("--skip-figures", is_flag=True, help="Skip figure generation")
@click.pass_context
def score(
    ctx: click.Context,
    input_path: str,
    reference_path: str,
    output_path: str,
    config: Optional[str],
    mad_threshold: Optional[float],
    donor_key: Optional[str],
    embedding_key: Optional[str],
    weights_key: Optional[str],
    n_jobs: Optional[int],
    store_distances: bool,
    skip_figures: bool,
) -> None:
    """Score query cells and call mapping QC.

    Writes the annotated AnnData, per-cell scores, per-group thresholds,
    a JSON summary and a score distribution figure.
    """
    logger = ctx.obj["logger"]
    logger.info(f"Scoring query: {input_path}")
    logger.info(f"Reference: {reference_path}")

    from mapping_qc.core.mapping_error import MappingErrorConfig, MappingQCError
    from mapping_qc.core.mapping_error.__main__ import run_mapping_error

    cfg = MappingErrorConfig.from_yaml(Path(config)) if config else MappingErrorConfig()
    overrides = {
        "mad_threshold": mad_threshold,
        "embedding_key": embedding_key,
        "weights_key": weights_key,
        "n_jobs": n_jobs,
    }
    for key, value in overrides.items():
        if value is not None:
            setattr(cfg, key, value)
    if donor_key:
        cfg.donor_key = donor_key
        cfg.threshold_by_donor = True
    if store_distances:
        cfg.store_distances = True

    try:
        result = run_mapping_error(
            input_path=Path(input_path),
            reference_path=Path(reference_path),
            output_dir=Path(output_path),
            config=cfg,
            verbose=ctx.obj["verbose"] or ctx.obj["debug"],
            skip_figures=skip_figures,
        )
    except MappingQCError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo(f"Mapping QC complete: {result.n_pass} pass, {result.n_fail} fail")
    click.echo(f"Output saved to: {output_path}")


@cli.command("inspect-reference")
@click.option("--reference", "-r", "reference_path", required=True, type=click.Path(exists=True),
              help="Reference archive (.npz)")
@click.pass_context
def inspect_reference(ctx: click.Context, reference_path: str) -> None:
    """Summarize a reference and check its covariances.

    Prints cluster count, dimensionality and the condition number of
    each cluster covariance; exits non-zero if any is singular.
    """
    from mapping_qc.core.mapping_error import MappingQCError, ReferenceModel
    from mapping_qc.core.mapping_error.distance import is_computationally_singular

    try:
        reference = ReferenceModel.from_npz(Path(reference_path))
    except MappingQCError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo(f"Clusters: {reference.n_clusters}")
    click.echo(f"Dimensions: {reference.n_dims}")

    n_singular = 0
    for name, cond in zip(reference.cluster_names, reference.condition_numbers()):
        singular = is_computationally_singular(cond)
        n_singular += int(singular)
        flag = "  SINGULAR" if singular else ""
        click.echo(f"  {name}: cond={cond:.3e}{flag}")

    if n_singular:
        click.echo(f"{n_singular} singular covariance(s) found", err=True)
        sys.exit(1)


def main() -> None:
    """Main entry point for CLI."""
    cli(obj={})


if __name__ == "__main__":
    main()
