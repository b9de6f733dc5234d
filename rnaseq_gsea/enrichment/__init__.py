"""
Enrichment analysis for RNA-seq GSEA

- Ranking vectors from DE tables
- GSEA prerank (gseapy)
- Batch runs over gene set collections x DE tables
- Reproducibility metadata
"""

from .ranking import build_ranking_vector, aggregate_duplicate_symbols
from .gsea import run_gsea_prerank, export_gsea_table, GSEAReport
from .batch import run_batch_gsea, gsea_output_path, BatchSummary, PairOutcome
from .repro import ReproducibilityLogger, PipelineMetadata

__all__ = [
    "build_ranking_vector",
    "aggregate_duplicate_symbols",
    "run_gsea_prerank",
    "export_gsea_table",
    "GSEAReport",
    "run_batch_gsea",
    "gsea_output_path",
    "BatchSummary",
    "PairOutcome",
    "ReproducibilityLogger",
    "PipelineMetadata",
]
