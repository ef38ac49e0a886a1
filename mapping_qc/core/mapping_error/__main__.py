"""Mapping error CLI runner.

Enables scoring a query as:
    python -m mapping_qc.core.mapping_error --input <h5ad> --reference <npz> --output <dir>

Usage Examples:
    # Global threshold across all query cells
    python -m mapping_qc.core.mapping_error \\
        --input output/query/mapped_query.h5ad \\
        --reference data/reference/reference.npz \\
        --output output/query/mapping_qc

    # Per-donor thresholds (recommended for multi-sample queries)
    python -m mapping_qc.core.mapping_error \\
        --input output/query/mapped_query.h5ad \\
        --reference data/reference/reference.npz \\
        --output output/query/mapping_qc \\
        --threshold-by-donor --donor-key donor

    # Parameters from YAML, Harmony-style K x N weight matrix
    python -m mapping_qc.core.mapping_error \\
        --input mapped_query.h5ad --reference reference.npz --output out/ \\
        --config configs/mapping_error.yaml \\
        --weights-layout clusters_by_cells
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Optional, Sequence

from ...io.logging import log_json, log_yaml, setup_logging
from .config import WEIGHT_LAYOUTS, MappingErrorConfig
from .engine import MappingErrorEngine, MappingErrorResult
from .errors import MappingQCError
from .export import export_scores, export_summary, export_thresholds
from .reference import ReferenceModel
from .viz import plot_score_distribution


def run_mapping_error(
    input_path: Path,
    reference_path: Path,
    output_dir: Path,
    config: Optional[MappingErrorConfig] = None,
    verbose: bool = False,
    skip_figures: bool = False,
    dpi: int = 200,
    log_dir: Optional[Path] = None,
    write_h5ad: bool = True,
) -> MappingErrorResult:
    """Score a query AnnData against a reference and write QC artifacts.

    Writes to ``output_dir``:
    - query_mapping_qc.h5ad (unless write_h5ad is False)
    - mapping_error_scores.csv
    - mapping_error_thresholds.csv
    - mapping_error_summary.json
    - figures/mapping_error_distribution.png (unless skip_figures)

    Parameters
    ----------
    input_path : Path
        Query AnnData (.h5ad) with the reference-space embedding and
        soft cluster weights in obsm
    reference_path : Path
        Reference archive (.npz) with centers and covariances
    output_dir : Path
        Output directory
    config : MappingErrorConfig, optional
        Scoring configuration
    verbose : bool
        Enable verbose logging
    skip_figures : bool
        Skip figure generation
    dpi : int
        Figure resolution
    log_dir : Path, optional
        Directory for the log file and the JSON-lines run record
    write_h5ad : bool
        Write the annotated query AnnData

    Returns
    -------
    MappingErrorResult
        Scores, labels and thresholds
    """
    import anndata as ad

    logger = setup_logging(verbose, log_dir=log_dir, log_filename="mapping_error.log")
    config = config or MappingErrorConfig()
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    logger.info("Mapping error QC")
    logger.info("Input: %s", input_path)
    logger.info("Reference: %s", reference_path)
    logger.info("Output: %s", output_dir)
    log_yaml({"mapping_error": config.to_dict()}, logger=logger)

    logger.info("Loading reference...")
    reference = ReferenceModel.from_npz(reference_path)
    logger.info(
        "Loaded reference: %d clusters, %d dimensions",
        reference.n_clusters,
        reference.n_dims,
    )

    logger.info("Loading AnnData...")
    adata = ad.read_h5ad(input_path)
    logger.info("Loaded: %s cells", f"{adata.n_obs:,}")

    start_time = time.time()
    engine = MappingErrorEngine(config, logger)
    result = engine.run(adata, reference)
    logger.info("Scoring completed in %.1fs", time.time() - start_time)

    export_scores(adata, result, config, output_dir / "mapping_error_scores.csv", logger)
    export_thresholds(result, output_dir / "mapping_error_thresholds.csv", logger)
    export_summary(
        result,
        config,
        output_dir / "mapping_error_summary.json",
        logger,
        extra={"input": str(input_path), "reference": str(reference_path)},
    )

    if not skip_figures:
        groups = adata.obs[config.donor_key] if config.threshold_by_donor else None
        figure_path = output_dir / "figures" / "mapping_error_distribution.png"
        plot_score_distribution(
            result.scores,
            result.labels,
            result.thresholds,
            figure_path,
            groups=groups,
            dpi=dpi,
        )
        logger.info("Wrote %s", figure_path)

    if write_h5ad:
        h5ad_path = output_dir / "query_mapping_qc.h5ad"
        adata.write_h5ad(h5ad_path)
        logger.info("Wrote %s", h5ad_path)

    if log_dir:
        log_json(
            Path(log_dir) / "mapping_error_runs.jsonl",
            {
                "timestamp": datetime.now().isoformat(timespec="seconds"),
                "input": str(input_path),
                "reference": str(reference_path),
                "output": str(output_dir),
                **result.to_dict(),
            },
        )

    return result


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Per-cell mapping error scores and MAD-based QC",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Global threshold
  python -m mapping_qc.core.mapping_error \\
      --input mapped_query.h5ad --reference reference.npz --output out/

  # Per-donor thresholds
  python -m mapping_qc.core.mapping_error \\
      --input mapped_query.h5ad --reference reference.npz --output out/ \\
      --threshold-by-donor --donor-key donor
        """,
    )

    parser.add_argument(
        "--input", "-i",
        type=Path,
        required=True,
        help="Path to query AnnData (.h5ad) mapped into the reference",
    )
    parser.add_argument(
        "--reference", "-r",
        type=Path,
        required=True,
        help="Path to reference archive (.npz) with centers and covariances",
    )
    parser.add_argument(
        "--output", "-o",
        type=Path,
        required=True,
        help="Output directory",
    )
    parser.add_argument(
        "--config", "-c",
        type=Path,
        default=None,
        help="YAML configuration (command-line flags override it)",
    )

    # Thresholding
    parser.add_argument(
        "--mad-threshold",
        type=float,
        default=None,
        help="MADs above the median before a cell fails (default: 2.5)",
    )
    parser.add_argument(
        "--threshold-by-donor",
        action="store_true",
        help="Compute the threshold within each donor",
    )
    parser.add_argument(
        "--donor-key",
        type=str,
        default=None,
        help="obs column with donor labels (required with --threshold-by-donor)",
    )

    # Input keys
    parser.add_argument(
        "--embedding-key",
        type=str,
        default=None,
        help="obsm key of the reference-space embedding (default: X_pca)",
    )
    parser.add_argument(
        "--weights-key",
        type=str,
        default=None,
        help="obsm key of the soft cluster weights (default: R)",
    )
    parser.add_argument(
        "--weights-layout",
        choices=WEIGHT_LAYOUTS,
        default=None,
        help="Layout of the weight matrix; clusters_by_cells is read from uns "
        "(default: cells_by_clusters)",
    )

    # Execution
    parser.add_argument(
        "--store-distances",
        action="store_true",
        help="Also store the per-cluster distance matrix in obsm",
    )
    parser.add_argument(
        "--n-jobs",
        type=int,
        default=None,
        help="Parallel workers across reference clusters (default: 1)",
    )

    # Output
    parser.add_argument(
        "--skip-figures",
        action="store_true",
        help="Skip figure generation",
    )
    parser.add_argument(
        "--dpi",
        type=int,
        default=200,
        help="Figure resolution (default: 200)",
    )
    parser.add_argument(
        "--no-h5ad",
        action="store_true",
        help="Do not write the annotated AnnData",
    )
    parser.add_argument(
        "--log-dir",
        type=Path,
        default=None,
        help="Directory for log file",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging",
    )

    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> MappingErrorConfig:
    """Merge YAML config (if any) with command-line overrides."""
    config = MappingErrorConfig.from_yaml(args.config) if args.config else MappingErrorConfig()

    overrides = {
        "mad_threshold": args.mad_threshold,
        "donor_key": args.donor_key,
        "embedding_key": args.embedding_key,
        "weights_key": args.weights_key,
        "weights_layout": args.weights_layout,
        "n_jobs": args.n_jobs,
    }
    for key, value in overrides.items():
        if value is not None:
            setattr(config, key, value)
    if args.threshold_by_donor:
        config.threshold_by_donor = True
    if args.store_distances:
        config.store_distances = True
    return config


def main(argv: Optional[Sequence[str]] = None):
    """CLI entry point."""
    args = parse_args(argv)

    if args.threshold_by_donor and args.donor_key is None and args.config is None:
        print("Error: --donor-key is required with --threshold-by-donor", file=sys.stderr)
        sys.exit(1)

    try:
        run_mapping_error(
            input_path=args.input,
            reference_path=args.reference,
            output_dir=args.output,
            config=build_config(args),
            verbose=args.verbose,
            skip_figures=args.skip_figures,
            dpi=args.dpi,
            log_dir=args.log_dir,
            write_h5ad=not args.no_h5ad,
        )
    except MappingQCError as e:
        logging.getLogger("mapping_qc").error("Mapping error QC failed: %s", e)
        sys.exit(1)


if __name__ == "__main__":
    main()
