"""
Command-line entry point for RNA-seq GSEA.

Usage:
    rnaseq-gsea --config analysis.yaml all
    rnaseq-gsea --config analysis.yaml gsea -v
"""

import argparse
import logging
import sys
from typing import List, Optional

from . import __version__
from .config import load_config
from .errors import RNASeqGSEAError
from .pipeline import STAGES, run_de_stage, run_diff_stage, run_gsea_stage, run_screen_stage


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rnaseq-gsea",
        description="Bulk RNA-seq DE contrasts, contrast differences and batch GSEA prerank"
    )
    parser.add_argument("--config", "-c", required=True, help="Analysis YAML file")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "stage",
        choices=STAGES + ("all",),
        help="Stage to run; 'all' runs de, diff, gsea and screen (screen only if configured)"
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s [%(levelname)s] %(message)s'
    )

    try:
        config = load_config(args.config)
    except (OSError, RNASeqGSEAError) as e:
        logging.error(f"Cannot load config: {e}")
        return 2

    stages = STAGES if args.stage == "all" else (args.stage,)
    exit_code = 0

    try:
        for stage in stages:
            logging.info(f"=== Stage: {stage} ===")
            if stage == "de":
                if args.stage == "all" and config.paths.counts is None:
                    logging.info("No count matrix configured, skipping")
                    continue
                run_de_stage(config)
            elif stage == "diff":
                run_diff_stage(config)
            elif stage == "gsea":
                summary = run_gsea_stage(config)
                if summary.failed:
                    for outcome in summary.errors:
                        logging.error(f"Failed: {outcome.collection} / {outcome.de_path}: {outcome.error}")
                    exit_code = 1
            elif stage == "screen":
                if args.stage == "all" and config.paths.screen is None:
                    logging.info("No screen table configured, skipping")
                    continue
                run_screen_stage(config)
    except (OSError, RNASeqGSEAError) as e:
        logging.error(f"Stage '{stage}' failed: {e}")
        return 1

    return exit_code


if __name__ == "__main__":
    sys.exit(main())
