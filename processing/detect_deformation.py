"""detect_deformation CLI (thin wrapper)

Compares two captures of the same object (reference = earlier, comparison =
later) and reports per-point deformation. It only parses CLI arguments,
merges them over the YAML config and invokes the deformation engine.
"""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Optional

from common.cli import add_config_arg, add_log_level_arg, parse_args_with_config, setup_logging
from common.logging import CountingHandler
from deformation_analysis.domain.model import ComparisonResult, MatcherKind, ThresholdMode
from deformation_analysis.entrypoints.compare_point_clouds import (
    compare_point_cloud_files,
    compare_point_clouds,
)
from deformation_analysis.infrastructure import JsonComparisonRepository, cloud_from_arrays
from exceptions.exceptions import ConfigurationError, DeformationError, InvalidInputError
from pcdtools.presenters import print_comparison_summary
from pcdtools.synthetic import capture_pair


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Detect deformation between two point cloud captures of the same object"
    )
    add_config_arg(parser)
    add_log_level_arg(parser)
    parser.add_argument("reference", nargs="?", help="Earlier capture (PCD/PLY/XYZ)")
    parser.add_argument("comparison", nargs="?", help="Later capture (PCD/PLY/XYZ)")
    parser.add_argument(
        "--synthetic",
        action="store_true",
        help="Compare a generated sphere against a bulged copy instead of files",
    )
    parser.add_argument(
        "--max-search-distance",
        type=float,
        help="Neighbor search radius in meters; farther points stay unmatched",
    )
    parser.add_argument(
        "--threshold",
        type=float,
        help="Significance threshold (meters, or a fraction of the bbox diagonal)",
    )
    parser.add_argument(
        "--threshold-mode",
        choices=[m.value for m in ThresholdMode],
        help="How --threshold is interpreted",
    )
    parser.add_argument(
        "--matcher",
        choices=[m.value for m in MatcherKind],
        help="Nearest-neighbor strategy",
    )
    parser.add_argument("--workers", type=int, help="Worker threads for neighbor queries")
    parser.add_argument("--timeout", type=float, help="Wall-clock budget in seconds")
    parser.add_argument(
        "--no-timeout",
        action="store_true",
        help="Disable the wall-clock budget",
    )
    parser.add_argument("--json-out", type=str, help="Write the result as JSON to this path")
    parser.add_argument(
        "--record-limit",
        type=int,
        help="Maximum number of records written to --json-out",
    )
    parser.add_argument(
        "--colored-cloud-out",
        type=str,
        help="Write the reference cloud colored by deformation (PCD/PLY)",
    )
    return parser


def _defaults_from_cfg(cfg) -> dict:
    return dict(
        log_level=cfg.logging.level,
        max_search_distance=cfg.matching.max_search_distance,
        threshold=cfg.scoring.significance_threshold,
        threshold_mode=cfg.scoring.threshold_mode,
        matcher=cfg.matching.matcher,
        workers=cfg.matching.workers,
        timeout=cfg.matching.timeout_s,
        json_out=cfg.output.json_out,
        record_limit=cfg.output.record_limit,
        colored_cloud_out=cfg.output.colored_cloud_out,
    )


def run(args: argparse.Namespace, cfg) -> ComparisonResult:
    settings = replace(
        cfg.comparison_settings(),
        max_search_distance=args.max_search_distance,
        significance_threshold=args.threshold,
        threshold_mode=args.threshold_mode,
        matcher=args.matcher,
        workers=args.workers,
        timeout_s=None if args.no_timeout else args.timeout,
    )
    if args.record_limit is not None and args.record_limit < 0:
        raise ConfigurationError("record_limit must be >= 0", "record_limit")
    repo = JsonComparisonRepository(Path(args.json_out)) if args.json_out else None

    if args.synthetic:
        ref_xyz, cmp_xyz = capture_pair(
            cfg.synthetic.point_count,
            seed=cfg.synthetic.seed,
            displacement=cfg.synthetic.displacement,
        )
        logging.info("Generated synthetic pair with %d points", len(ref_xyz))
        result = compare_point_clouds(
            cloud_from_arrays("synthetic-reference", ref_xyz),
            cloud_from_arrays("synthetic-comparison", cmp_xyz),
            settings=settings,
        )
        if repo is not None:
            out = repo.save(result=result, limit=args.record_limit)
            logging.info("Wrote %s", out)
    else:
        if not args.reference or not args.comparison:
            raise InvalidInputError("Two capture paths are required unless --synthetic is set", "cli")
        result = compare_point_cloud_files(
            reference_path=Path(args.reference),
            comparison_path=Path(args.comparison),
            settings=settings,
            result_repo=repo,
            record_limit=args.record_limit,
        )

    if args.colored_cloud_out:
        from deformation_analysis.infrastructure.open3d_source import export_colored_cloud

        out = export_colored_cloud(result, Path(args.colored_cloud_out))
        logging.info("Wrote colored cloud %s", out)

    return result


def main(argv: Optional[list] = None) -> int:
    try:
        args, cfg = parse_args_with_config(build_parser, _defaults_from_cfg, argv)
    except DeformationError as e:
        setup_logging("INFO")
        logging.error("%s: %s", e.code, e.message)
        return 1

    setup_logging(args.log_level)
    counter = CountingHandler()
    logging.getLogger().addHandler(counter)

    status = 0
    try:
        result = run(args, cfg)
        print_comparison_summary(result)
    except DeformationError as e:
        logging.error("%s: %s", e.code, e.message)
        status = 1
    finally:
        logging.getLogger().removeHandler(counter)

    logging.info("Warnings: %d, Errors: %d", counter.warnings, counter.errors)
    return status


if __name__ == "__main__":
    sys.exit(main())
