"""
Dependency screen cross-reference for RNA-seq GSEA

Intersects significant DE genes with an in-vivo dependency screen
(gene-level screen summary, one row per gene with a dependency score).
"""

import logging
from pathlib import Path
from typing import Optional

import pandas as pd

from .de_table import SYMBOL_COLUMN, PADJ_COLUMN, TAB_SUFFIXES
from .errors import MalformedInputError


logger = logging.getLogger("RNASeqGSEA.Screen")

SCREEN_PREFIX = "screen_"


def load_screen_table(path, symbol_column: str = "gene") -> pd.DataFrame:
    """
    Load a gene-level dependency screen summary.

    Args:
        path: CSV/TSV with a gene symbol column and score columns
        symbol_column: Column holding gene symbols

    Returns:
        DataFrame with one row per symbol (first occurrence kept)
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Screen table not found: {path}")

    sep = '\t' if path.suffix.lower() in TAB_SUFFIXES else ','
    screen = pd.read_csv(path, sep=sep)

    if symbol_column not in screen.columns:
        raise MalformedInputError(
            f"Screen table {path} has no '{symbol_column}' column; found {list(screen.columns)}"
        )

    screen = screen.dropna(subset=[symbol_column])
    screen[symbol_column] = screen[symbol_column].astype(str).str.strip()
    n_dup = int(screen[symbol_column].duplicated().sum())
    if n_dup:
        logger.warning(f"Screen table {path}: {n_dup} duplicate symbols, keeping first occurrence")
        screen = screen.drop_duplicates(subset=symbol_column)

    logger.info(f"Loaded screen table with {len(screen)} genes from {path}")
    return screen.reset_index(drop=True)


def cross_reference_screen(
    de_table: pd.DataFrame,
    screen: pd.DataFrame,
    padj_threshold: float = 0.10,
    symbol_column: str = "gene",
    score_column: str = "score",
    score_threshold: Optional[float] = None
) -> pd.DataFrame:
    """
    Join significant DE genes with the dependency screen on human symbol.

    Args:
        de_table: DE table with HumanSymbol and padj
        screen: Screen table (see load_screen_table)
        padj_threshold: DE genes need padj < padj_threshold
        symbol_column: Symbol column of the screen table
        score_column: Dependency score column of the screen table
        score_threshold: If given, adds is_dependency = screen score <= threshold
            (more negative scores mean stronger dependency)

    Returns:
        DE rows found in the screen, screen columns prefixed with 'screen_',
        sorted by padj
    """
    for col in (SYMBOL_COLUMN, PADJ_COLUMN):
        if col not in de_table.columns:
            raise MalformedInputError(f"DE table lacks '{col}' column")
    for col in (symbol_column, score_column):
        if col not in screen.columns:
            raise MalformedInputError(f"Screen table lacks '{col}' column")

    significant = de_table[(de_table[PADJ_COLUMN] < padj_threshold) & de_table[SYMBOL_COLUMN].notna()]

    prefixed = screen.rename(columns={c: f"{SCREEN_PREFIX}{c}" for c in screen.columns})
    merged = significant.merge(
        prefixed,
        left_on=SYMBOL_COLUMN,
        right_on=f"{SCREEN_PREFIX}{symbol_column}",
        how="inner"
    ).drop(columns=[f"{SCREEN_PREFIX}{symbol_column}"])

    score = f"{SCREEN_PREFIX}{score_column}"
    if score_threshold is not None:
        merged["is_dependency"] = pd.to_numeric(merged[score], errors='coerce') <= score_threshold

    merged = merged.sort_values([PADJ_COLUMN, SYMBOL_COLUMN], kind='mergesort').reset_index(drop=True)

    logger.info(
        f"Screen cross-reference: {len(significant)} DE genes with padj < {padj_threshold}, "
        f"{len(merged)} found in screen"
        + (f", {int(merged['is_dependency'].sum())} dependencies" if score_threshold is not None else "")
    )
    return merged
