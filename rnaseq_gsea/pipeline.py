"""
Analysis Pipeline for RNA-seq GSEA

Runs the analysis stages from one AnalysisConfig:
1. de     - normalize counts, DESeq2 contrasts, ortholog annotation
2. diff   - contrast differences between pairs of DE tables
3. gsea   - batch GSEA prerank over gene set collections x tables
4. screen - cross-reference DE tables with the dependency screen
"""

import logging
from pathlib import Path
from typing import List

from .config import AnalysisConfig
from .contrast import calc_condition_difference
from .de_analysis import (
    add_group_column,
    annotate_human_symbols,
    load_counts,
    load_ortholog_table,
    load_sample_metadata,
    normalize_counts,
    run_pydeseq2,
    write_de_tables,
)
from .de_table import condition_name, load_de_table, save_de_table
from .enrichment.batch import BatchSummary, discover_de_tables, run_batch_gsea
from .errors import MalformedInputError
from .screen import cross_reference_screen, load_screen_table


logger = logging.getLogger("RNASeqGSEA.Pipeline")

STAGES = ("de", "diff", "gsea", "screen")


def de_table_path(config: AnalysisConfig, contrast: str) -> Path:
    return config.paths.de_root / contrast / f"{config.design.de_basename}.csv"


def run_de_stage(config: AnalysisConfig) -> List[Path]:
    """
    Normalize counts and write one annotated DE table per contrast.

    Returns:
        Paths of the DE tables written
    """
    paths, design = config.paths, config.design
    if paths.counts is None or paths.metadata is None:
        raise MalformedInputError("paths.counts and paths.metadata are required for the DE stage")

    counts = load_counts(paths.counts)
    metadata = add_group_column(
        load_sample_metadata(paths.metadata),
        design.factors,
        name=design.group_column,
        sep=design.group_sep
    )

    normed, size_factors = normalize_counts(counts)
    paths.de_root.mkdir(parents=True, exist_ok=True)
    normed.to_csv(paths.de_root / "normalized_counts.csv")
    size_factors.to_csv(paths.de_root / "size_factors.csv")

    orthologs = load_ortholog_table(paths.orthologs, design.id_column) if paths.orthologs else None

    results = run_pydeseq2(
        counts,
        metadata,
        design_factor=design.group_column,
        contrasts=design.contrasts,
        alpha=config.thresholds.de_alpha,
        n_cpus=design.n_cpus
    )
    tables = {
        name: annotate_human_symbols(table, orthologs, design.id_column)
        for name, table in results.items()
    }
    return write_de_tables(tables, paths.de_root, design.de_basename)


def run_diff_stage(config: AnalysisConfig) -> List[Path]:
    """
    Write one difference table per configured DifferenceSpec.

    Loader and differencer errors propagate to the caller.
    """
    written = []
    for spec in config.differences:
        table_a = load_de_table(de_table_path(config, spec.a), id_column=config.design.id_column)
        table_b = load_de_table(de_table_path(config, spec.b), id_column=config.design.id_column)

        diff = calc_condition_difference(
            table_a,
            table_b,
            padj_threshold=config.thresholds.difference_padj,
            id_column=config.design.id_column,
            missing_policy=config.missing_gene_policy
        )
        out = config.paths.diff_root / spec.name / f"{config.design.de_basename}.csv"
        written.append(save_de_table(diff, out))
        logger.info(f"Difference '{spec.name}' ({spec.a} minus {spec.b}): {len(diff)} genes")
    return written


def gsea_inputs(config: AnalysisConfig) -> List[Path]:
    """Explicit gsea.inputs, or every DE and difference table on disk."""
    if config.gsea.inputs:
        return list(config.gsea.inputs)
    return discover_de_tables(
        [config.paths.de_root, config.paths.diff_root],
        basename=config.design.de_basename
    )


def run_gsea_stage(config: AnalysisConfig) -> BatchSummary:
    if not config.gene_sets:
        raise MalformedInputError("No gene set collections configured (gene_sets)")

    inputs = gsea_inputs(config)
    if not inputs:
        logger.warning("No DE tables found for GSEA")

    return run_batch_gsea(
        config.gene_sets,
        inputs,
        config.paths.gsea_root,
        gsea_config=config.gsea,
        ranking_padj=config.thresholds.ranking_padj,
        id_column=config.design.id_column
    )


def run_screen_stage(config: AnalysisConfig) -> List[Path]:
    """Cross-reference every DE table with the dependency screen."""
    if config.paths.screen is None:
        raise MalformedInputError("paths.screen is required for the screen stage")

    screen = load_screen_table(config.paths.screen, symbol_column=config.screen_symbol_column)

    written = []
    for path in discover_de_tables([config.paths.de_root], basename=config.design.de_basename):
        table = load_de_table(path, id_column=config.design.id_column)
        hits = cross_reference_screen(
            table,
            screen,
            padj_threshold=config.thresholds.screen_padj,
            symbol_column=config.screen_symbol_column,
            score_column=config.screen_score_column,
            score_threshold=config.thresholds.screen_score
        )
        out = config.paths.screen_out / condition_name(path) / f"{path.stem}_screen.csv"
        written.append(save_de_table(hits, out))
    return written
