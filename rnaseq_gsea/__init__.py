"""
RNA-seq GSEA

Bulk RNA-seq differential expression contrasts, contrast differences and
batch GSEA prerank over curated gene set collections.
"""

__version__ = "1.0.0"

from .errors import (
    RNASeqGSEAError,
    MalformedInputError,
    EmptyRankingError,
    MissingGeneLookupError,
    ExternalStatisticError,
)
from .config import AnalysisConfig, load_config
from .de_table import load_de_table, save_de_table
from .contrast import significant_gene_set, calc_condition_difference
from .gene_set_utils import load_gmt

__all__ = [
    "RNASeqGSEAError",
    "MalformedInputError",
    "EmptyRankingError",
    "MissingGeneLookupError",
    "ExternalStatisticError",
    "AnalysisConfig",
    "load_config",
    "load_de_table",
    "save_de_table",
    "significant_gene_set",
    "calc_condition_difference",
    "load_gmt",
]
