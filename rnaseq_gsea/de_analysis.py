"""
Differential Expression (DE) Analysis Module for RNA-seq GSEA

Loads the gene x sample count matrix and sample sheet, normalizes counts,
runs pairwise DESeq2 contrasts across a multi-factor design (culture
condition x genotype) and annotates the results with human ortholog symbols.

All statistics are delegated to pyDESeq2.
"""

import itertools
import logging
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from pydeseq2.dds import DeseqDataSet
from pydeseq2.ds import DeseqStats
from pydeseq2.preprocessing import deseq2_norm

from .de_table import SYMBOL_COLUMN, TAB_SUFFIXES, save_de_table
from .errors import ExternalStatisticError, MalformedInputError


logger = logging.getLogger("RNASeqGSEA.DE")


def _read_table(path, index_col=0) -> pd.DataFrame:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    sep = '\t' if path.suffix.lower() in TAB_SUFFIXES else ','
    return pd.read_csv(path, sep=sep, index_col=index_col)


def load_counts(path) -> pd.DataFrame:
    """
    Load a raw read-count matrix.

    Args:
        path: CSV/TSV with gene ids in the first column and one column per sample

    Returns:
        Integer DataFrame, genes x samples

    Raises:
        MalformedInputError: If counts are empty, non-numeric or negative
    """
    counts = _read_table(path)

    if counts.empty:
        raise MalformedInputError(f"Empty counts matrix: {path}")

    numeric = counts.apply(pd.to_numeric, errors='coerce')
    bad_cols = [c for c in numeric.columns if numeric[c].isna().any()]
    if bad_cols:
        raise MalformedInputError(f"Non-numeric counts in samples {bad_cols[:5]} of {path}")
    if (numeric < 0).any().any():
        raise MalformedInputError(f"Negative counts in {path}")
    if counts.index.duplicated().any():
        raise MalformedInputError(f"Duplicate gene ids in counts matrix {path}")

    counts = numeric.round().astype(int)
    logger.info(f"Loaded counts: {counts.shape[0]} genes x {counts.shape[1]} samples from {path}")
    return counts


def load_sample_metadata(path) -> pd.DataFrame:
    """Load the sample sheet (sample ids in the first column)."""
    metadata = _read_table(path)
    if metadata.empty:
        raise MalformedInputError(f"Empty sample metadata: {path}")
    metadata.index = metadata.index.astype(str)
    return metadata


def load_ortholog_table(path, id_column: str = "gene_id") -> pd.Series:
    """
    Load a species gene id -> human symbol map.

    The file needs the id column and a HumanSymbol column. When an id maps
    to several human symbols the first one listed is kept.

    Returns:
        Series indexed by gene id
    """
    table = _read_table(path, index_col=None)
    missing = [c for c in (id_column, SYMBOL_COLUMN) if c not in table.columns]
    if missing:
        raise MalformedInputError(f"Ortholog table {path} is missing columns {missing}")

    table = table.dropna(subset=[id_column, SYMBOL_COLUMN])
    n_multi = int(table[id_column].duplicated().sum())
    if n_multi:
        logger.warning(f"{n_multi} gene ids map to several human symbols; keeping the first")
    return table.drop_duplicates(subset=id_column).set_index(id_column)[SYMBOL_COLUMN]


def add_group_column(
    metadata: pd.DataFrame,
    factors: Sequence[str],
    name: str = "group",
    sep: str = "-"
) -> pd.DataFrame:
    """
    Combine several design factors into one group label per sample.

    For factors ['condition', 'genotype'] a sample with condition=hypoxia and
    genotype=KO gets group 'hypoxia-KO'.
    """
    missing = [f for f in factors if f not in metadata.columns]
    if missing:
        raise MalformedInputError(
            f"Sample metadata lacks design columns {missing}; found {list(metadata.columns)}"
        )

    metadata = metadata.copy()
    metadata[name] = metadata[list(factors)].astype(str).agg(sep.join, axis=1)
    return metadata


def align_samples(counts: pd.DataFrame, metadata: pd.DataFrame) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """
    Restrict counts and metadata to their shared samples, in metadata order.
    """
    shared = [s for s in metadata.index if s in counts.columns]
    if not shared:
        raise MalformedInputError("No sample ids shared between counts and metadata")

    dropped_counts = set(counts.columns) - set(shared)
    dropped_meta = set(metadata.index) - set(shared)
    if dropped_counts or dropped_meta:
        logger.warning(
            f"Dropping {len(dropped_counts)} count columns and {len(dropped_meta)} "
            f"metadata rows without a match"
        )
    return counts[shared], metadata.loc[shared]


def normalize_counts(counts: pd.DataFrame) -> Tuple[pd.DataFrame, pd.Series]:
    """
    DESeq2 median-of-ratios normalization.

    Args:
        counts: Raw counts, genes x samples

    Returns:
        Tuple of (normalized counts genes x samples, size factor per sample)
    """
    if counts.empty:
        raise MalformedInputError("Empty counts matrix provided")

    try:
        normed, size_factors = deseq2_norm(counts.T)
    except Exception as e:
        raise ExternalStatisticError(f"Count normalization failed: {e}") from e

    normed = pd.DataFrame(np.asarray(normed), index=counts.columns, columns=counts.index).T
    size_factors = pd.Series(np.asarray(size_factors), index=counts.columns, name="size_factor")
    logger.info(f"Size factors range {size_factors.min():.3f}-{size_factors.max():.3f}")
    return normed, size_factors


def contrast_name(numerator: str, denominator: str) -> str:
    return f"{numerator}_vs_{denominator}"


def design_contrasts(
    levels: Sequence[str],
    contrasts: Optional[Sequence[Tuple[str, str]]] = None
) -> List[Tuple[str, str]]:
    """
    Resolve the (numerator, denominator) pairs to test.

    Args:
        levels: Group labels present in the data
        contrasts: Explicit pairs; all pairwise combinations of the sorted
            levels when empty (first level is the numerator)

    Returns:
        List of (numerator, denominator) tuples
    """
    levels = sorted(set(map(str, levels)))
    if len(levels) < 2:
        raise MalformedInputError(f"Need at least two groups for a contrast, got {levels}")

    if not contrasts:
        return list(itertools.combinations(levels, 2))

    resolved = []
    for pair in contrasts:
        numerator, denominator = (str(x) for x in pair)
        unknown = [x for x in (numerator, denominator) if x not in levels]
        if unknown:
            raise MalformedInputError(f"Contrast {pair} names unknown groups {unknown}; available {levels}")
        if numerator == denominator:
            raise MalformedInputError(f"Contrast compares '{numerator}' with itself")
        resolved.append((numerator, denominator))
    return resolved


def run_pydeseq2(
    counts: pd.DataFrame,
    metadata: pd.DataFrame,
    design_factor: str = "group",
    contrasts: Optional[Sequence[Tuple[str, str]]] = None,
    alpha: float = 0.05,
    n_cpus: int = 1
) -> Dict[str, pd.DataFrame]:
    """
    Fit DESeq2 once on the design factor and compute each pairwise contrast.

    Args:
        counts: Raw count matrix (genes x samples)
        metadata: Sample metadata containing design_factor
        design_factor: Metadata column the model is fit on
        contrasts: (numerator, denominator) pairs; all pairs when None
        alpha: Significance level for independent filtering
        n_cpus: Worker processes for pyDESeq2

    Returns:
        Dictionary contrast name -> DESeq2 results (gene ids as index), where
        log2FoldChange is numerator over denominator
    """
    if design_factor not in metadata.columns:
        raise MalformedInputError(f"Design factor '{design_factor}' not in sample metadata")

    counts, metadata = align_samples(counts, metadata)
    metadata = metadata[[design_factor]].astype(str)
    pairs = design_contrasts(metadata[design_factor].unique(), contrasts)

    logger.info(
        f"Running DESeq2 on {counts.shape[0]} genes x {counts.shape[1]} samples, "
        f"design ~ {design_factor}, {len(pairs)} contrasts"
    )

    try:
        dds = DeseqDataSet(
            counts=counts.T,
            metadata=metadata,
            design=f"~ {design_factor}",
            refit_cooks=True,
            n_cpus=n_cpus,
            quiet=True
        )
        dds.deseq2()
    except Exception as e:
        raise ExternalStatisticError(f"DESeq2 model fit failed: {e}") from e

    results = {}
    for numerator, denominator in pairs:
        name = contrast_name(numerator, denominator)
        try:
            stat_res = DeseqStats(
                dds,
                contrast=[design_factor, numerator, denominator],
                alpha=alpha,
                quiet=True
            )
            stat_res.summary()
        except Exception as e:
            raise ExternalStatisticError(f"DESeq2 contrast {name} failed: {e}") from e

        table = stat_res.results_df.copy()
        n_sig = int((table["padj"] < alpha).sum())
        logger.info(f"DESeq2 {name}: {len(table)} genes, {n_sig} with padj < {alpha}")
        results[name] = table

    return results


def annotate_human_symbols(
    results: pd.DataFrame,
    orthologs: Optional[pd.Series],
    id_column: str = "gene_id"
) -> pd.DataFrame:
    """
    Turn a DESeq2 results table (indexed by gene id) into a DE table.

    Adds the id as a regular column and a HumanSymbol column looked up in the
    ortholog map; genes without an ortholog get a missing symbol. Without an
    ortholog map the gene ids are assumed to be human symbols already.
    """
    table = results.copy()
    table.index.name = id_column
    table = table.reset_index()

    if orthologs is None:
        table[SYMBOL_COLUMN] = table[id_column].astype(str)
    else:
        table[SYMBOL_COLUMN] = table[id_column].map(orthologs)
        n_missing = int(table[SYMBOL_COLUMN].isna().sum())
        if n_missing:
            logger.info(f"{n_missing}/{len(table)} genes have no human ortholog")

    front = [id_column, SYMBOL_COLUMN]
    return table[front + [c for c in table.columns if c not in front]]


def write_de_tables(tables: Dict[str, pd.DataFrame], de_root, basename: str = "deseq2_results") -> List[Path]:
    """
    Persist DE tables as <de_root>/<contrast>/<basename>.csv

    Returns:
        Paths written, in input order
    """
    return [
        save_de_table(table, Path(de_root) / name / f"{basename}.csv")
        for name, table in tables.items()
    ]
