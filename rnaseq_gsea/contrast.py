"""
Contrast Differencer for RNA-seq GSEA

Compares two related DE contrasts (e.g. the genotype effect under two culture
conditions) and produces a synthetic DE table whose fold changes are the
difference between them, restricted to genes significant in either one.
"""

import logging
from typing import List

import numpy as np
import pandas as pd

from .de_table import SYMBOL_COLUMN, LFC_COLUMN, PADJ_COLUMN
from .errors import MalformedInputError, MissingGeneLookupError


logger = logging.getLogger("RNASeqGSEA.Contrast")

MISSING_POLICIES = ("skip", "zero", "raise")


def significant_gene_set(
    table_a: pd.DataFrame,
    table_b: pd.DataFrame,
    padj_threshold: float = 0.25,
    id_column: str = "gene_id"
) -> List:
    """
    Union of gene ids with padj < threshold in either table.

    Genes with a missing padj are never significant.

    Returns:
        Sorted list of unique gene ids
    """
    sig_a = table_a.loc[table_a[PADJ_COLUMN] < padj_threshold, id_column]
    sig_b = table_b.loc[table_b[PADJ_COLUMN] < padj_threshold, id_column]
    return sorted(set(sig_a) | set(sig_b))


def calc_condition_difference(
    table_a: pd.DataFrame,
    table_b: pd.DataFrame,
    padj_threshold: float = 0.25,
    id_column: str = "gene_id",
    missing_policy: str = "skip"
) -> pd.DataFrame:
    """
    Build a Difference Table: log2FoldChange = A - B over the significant genes.

    Args:
        table_a: DE table treated as minuend and canonical symbol source
        table_b: DE table treated as subtrahend
        padj_threshold: padj cutoff defining the significant gene set
        id_column: Gene identifier column shared by both tables
        missing_policy: What to do with a significant gene absent from one table:
            'skip' drops it, 'zero' treats the absent fold change as 0,
            'raise' raises MissingGeneLookupError

    Returns:
        DataFrame with columns id, HumanSymbol, log2FoldChange, padj,
        log2FoldChange_a, log2FoldChange_b. padj holds padj_threshold for
        every row so the table can be fed back into the ranking builder.
    """
    if missing_policy not in MISSING_POLICIES:
        raise ValueError(f"missing_policy must be one of {MISSING_POLICIES}, got '{missing_policy}'")

    for label, table in (("A", table_a), ("B", table_b)):
        missing = [c for c in (id_column, SYMBOL_COLUMN, LFC_COLUMN, PADJ_COLUMN) if c not in table.columns]
        if missing:
            raise MalformedInputError(f"Table {label} is missing columns {missing}")

    genes = significant_gene_set(table_a, table_b, padj_threshold, id_column)

    a = table_a.set_index(id_column)
    b = table_b.set_index(id_column)

    absent_a = [g for g in genes if g not in a.index]
    absent_b = [g for g in genes if g not in b.index]

    if missing_policy == "raise":
        if absent_a:
            raise MissingGeneLookupError(absent_a, side="A")
        if absent_b:
            raise MissingGeneLookupError(absent_b, side="B")

    if missing_policy == "skip" and (absent_a or absent_b):
        dropped = set(absent_a) | set(absent_b)
        logger.warning(
            f"Skipping {len(dropped)} significant genes missing from one contrast "
            f"({len(absent_a)} absent from A, {len(absent_b)} absent from B)"
        )
        genes = [g for g in genes if g not in dropped]

    lfc_a = a[LFC_COLUMN].reindex(genes)
    lfc_b = b[LFC_COLUMN].reindex(genes)

    if missing_policy == "zero":
        # Only absence counts as zero; a present-but-NaN fold change stays NaN
        lfc_a = lfc_a.where(~lfc_a.index.isin(absent_a), 0.0)
        lfc_b = lfc_b.where(~lfc_b.index.isin(absent_b), 0.0)

    # Symbol from A, falling back to B only where A lacks the gene
    symbols = a[SYMBOL_COLUMN].reindex(genes)
    symbols = symbols.where(~symbols.index.isin(absent_a), b[SYMBOL_COLUMN].reindex(genes))

    diff = pd.DataFrame({
        id_column: genes,
        SYMBOL_COLUMN: symbols.to_numpy(),
        LFC_COLUMN: (lfc_a - lfc_b).to_numpy(dtype=float),
        PADJ_COLUMN: np.full(len(genes), padj_threshold, dtype=float),
        f"{LFC_COLUMN}_a": lfc_a.to_numpy(dtype=float),
        f"{LFC_COLUMN}_b": lfc_b.to_numpy(dtype=float),
    })

    logger.info(
        f"Contrast difference: {len(diff)} genes "
        f"(padj < {padj_threshold} in either contrast, policy={missing_policy})"
    )
    return diff
