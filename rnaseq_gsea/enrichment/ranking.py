"""
Ranked-Vector Builder for RNA-seq GSEA

Turns a DE table (or difference table) into the symbol-keyed ranking that
GSEA prerank consumes.
"""

import logging
from typing import Dict, List, Tuple

import numpy as np
import pandas as pd

from ..de_table import SYMBOL_COLUMN, LFC_COLUMN, PADJ_COLUMN
from ..errors import EmptyRankingError, MalformedInputError


logger = logging.getLogger("RNASeqGSEA.Enrichment.Ranking")

RANK_NAME = "rank"


def aggregate_duplicate_symbols(table: pd.DataFrame) -> pd.Series:
    """
    Collapse records sharing a human symbol into one value.

    Several species gene ids can map to the same human ortholog; each symbol
    gets the arithmetic mean of its records' log2 fold changes.

    Returns:
        Series indexed by symbol, in symbol order
    """
    grouped = table.groupby(SYMBOL_COLUMN, sort=True)[LFC_COLUMN].mean()
    n_collapsed = len(table) - len(grouped)
    if n_collapsed:
        logger.debug(f"Averaged {n_collapsed} duplicate symbol records into {len(grouped)} symbols")
    return grouped


def build_ranking_vector(
    table: pd.DataFrame,
    padj_threshold: float = 1.0,
    ascending: bool = True
) -> pd.Series:
    """
    Build a ranking vector from a DE table.

    Steps:
        1. keep records with padj < padj_threshold (missing padj is dropped)
        2. drop records without a human symbol or with a non-finite fold change
        3. average log2FoldChange per symbol
        4. sort by value; ties are ordered by symbol, ascending

    Args:
        table: DE table with HumanSymbol, log2FoldChange and padj columns
        padj_threshold: Strict upper bound on padj
        ascending: Sort direction of the values

    Returns:
        pd.Series named 'rank', indexed by unique human symbol

    Raises:
        MalformedInputError: If required columns are missing
        EmptyRankingError: If no record survives filtering
    """
    missing = [c for c in (SYMBOL_COLUMN, LFC_COLUMN, PADJ_COLUMN) if c not in table.columns]
    if missing:
        raise MalformedInputError(f"Cannot rank table without columns {missing}")

    padj = pd.to_numeric(table[PADJ_COLUMN], errors='coerce')
    lfc = pd.to_numeric(table[LFC_COLUMN], errors='coerce')
    symbols = table[SYMBOL_COLUMN]
    # Blank strings count as missing symbols
    symbols = symbols.where(symbols.astype(str).str.strip() != "", np.nan)

    keep = (padj < padj_threshold) & symbols.notna() & np.isfinite(lfc)
    kept = pd.DataFrame({
        SYMBOL_COLUMN: symbols[keep].astype(str).str.strip(),
        LFC_COLUMN: lfc[keep].astype(float),
    })

    if kept.empty:
        raise EmptyRankingError(
            f"No genes left for ranking: {len(table)} records, "
            f"none with padj < {padj_threshold} and a human symbol"
        )

    ranking = aggregate_duplicate_symbols(kept)

    # Symbol order first, then a stable sort on value keeps ties in symbol order
    ranking = ranking.sort_index(kind='mergesort').sort_values(ascending=ascending, kind='mergesort')
    ranking.name = RANK_NAME
    ranking.index.name = SYMBOL_COLUMN

    logger.info(
        f"Ranking vector: {len(ranking)} symbols from {len(table)} records "
        f"(padj < {padj_threshold}, {'ascending' if ascending else 'descending'})"
    )
    return ranking


def validate_gene_ranking(ranking: Dict[str, float]) -> Tuple[Dict[str, float], List[str]]:
    """
    Validate and clean a gene ranking mapping.

    Returns:
        Tuple of (valid_ranking, warnings)
    """
    if ranking is None or len(ranking) == 0:
        return {}, ["Empty gene ranking provided"]

    valid_ranking = {}
    warnings_list = []
    invalid_count = 0

    for gene, score in dict(ranking).items():
        gene = str(gene).strip()
        if not gene or gene.lower() == "nan":
            invalid_count += 1
            continue

        try:
            score = float(score)
        except (ValueError, TypeError):
            invalid_count += 1
            warnings_list.append(f"Gene '{gene}' has invalid score: {score}")
            continue

        if not np.isfinite(score):
            invalid_count += 1
            warnings_list.append(f"Gene '{gene}' has non-finite score {score}")
            continue

        valid_ranking[gene] = score

    if invalid_count > 0:
        warnings_list.append(f"Removed {invalid_count}/{len(ranking)} genes with invalid names or scores")

    return valid_ranking, warnings_list
