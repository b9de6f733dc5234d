"""
GSEA (Gene Set Enrichment Analysis) for RNA-seq GSEA

Wrapper around gseapy prerank: validates the inputs, runs the statistic and
returns a normalized results table sorted by nominal p-value.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Union

import gseapy as gp
import pandas as pd

from ..errors import EmptyRankingError, ExternalStatisticError, MalformedInputError
from ..gene_set_utils import validate_gene_sets
from .ranking import validate_gene_ranking


logger = logging.getLogger("RNASeqGSEA.Enrichment.GSEA")

RESULT_COLUMNS = ["pathway", "es", "nes", "pval", "padj", "size", "leading_edge"]

# res2d column names differ between gseapy releases (1.x first, 0.x second)
_RES2D_ALIASES = {
    "pathway": ("Term", "term"),
    "es": ("ES", "es"),
    "nes": ("NES", "nes"),
    "pval": ("NOM p-val", "pval"),
    "padj": ("FDR q-val", "fdr"),
    "leading_edge": ("Lead_genes", "ledge_genes"),
}


@dataclass
class GSEAReport:
    """Prerank results together with the inputs that produced them"""

    results: pd.DataFrame
    ranking: pd.Series
    gene_sets: Dict[str, List[str]]
    parameters: Dict[str, Any] = field(default_factory=dict)

    def significant(self, fdr: float = 0.25) -> pd.DataFrame:
        """Rows with padj < fdr (GSEA convention uses FDR 0.25)"""
        return self.results[self.results["padj"] < fdr]

    def __len__(self) -> int:
        return len(self.results)


def run_gsea_prerank(
    ranking: pd.Series,
    gene_sets: Dict[str, List[str]],
    min_size: int = 15,
    max_size: int = 500,
    permutation_num: int = 5000,
    seed: int = 42,
    threads: int = 1
) -> GSEAReport:
    """
    Run GSEA prerank on a ranking vector.

    Args:
        ranking: Series of symbol -> score (see build_ranking_vector)
        gene_sets: Dictionary of pathway_name -> gene_list
        min_size: Minimum gene set size (genes present in the ranking)
        max_size: Maximum gene set size
        permutation_num: Number of permutations for p-value estimation
        seed: Random seed for reproducibility
        threads: Worker threads for gseapy

    Returns:
        GSEAReport whose results are sorted ascending by nominal p-value

    Raises:
        EmptyRankingError: If the ranking is empty or has no finite score
        MalformedInputError: If there are no gene sets, or none fits the size bounds
        ExternalStatisticError: If gseapy fails or returns an unexpected table
    """
    if ranking is None or len(ranking) == 0:
        raise EmptyRankingError("Empty ranking vector provided to GSEA")
    if not gene_sets:
        raise MalformedInputError("Empty gene set collection provided to GSEA")
    if not ranking.index.is_unique:
        raise MalformedInputError("Ranking vector has duplicate gene symbols")

    valid_ranking, ranking_warnings = validate_gene_ranking(ranking.to_dict())
    for w in ranking_warnings:
        logger.warning(w)
    if not valid_ranking:
        raise EmptyRankingError("Ranking vector has no gene with a finite score")
    rnk = pd.Series(valid_ranking, name=ranking.name or "rank", dtype=float)
    rnk.index.name = ranking.index.name

    testable, _ = validate_gene_sets(gene_sets, min_size=min_size, max_size=max_size, universe=rnk.index)
    if not testable:
        raise MalformedInputError(
            f"None of {len(gene_sets)} gene sets has {min_size}-{max_size} genes "
            f"in the ranking ({len(rnk)} symbols)"
        )

    logger.info(
        f"Running GSEA prerank: {len(rnk)} genes, {len(testable)}/{len(gene_sets)} "
        f"testable gene sets, {permutation_num} permutations"
    )

    try:
        pre_res = gp.prerank(
            rnk=rnk,
            gene_sets=gene_sets,
            min_size=min_size,
            max_size=max_size,
            permutation_num=permutation_num,
            outdir=None,
            no_plot=True,
            seed=seed,
            threads=threads,
            verbose=False
        )
        res2d = pre_res.res2d
    except Exception as e:
        raise ExternalStatisticError(f"GSEA prerank failed: {e}") from e

    results = normalize_prerank_results(res2d, rnk, gene_sets)

    n_sig = int((results["padj"] < 0.25).sum())
    logger.info(f"GSEA complete: {len(results)} gene sets tested, {n_sig} with FDR < 0.25")

    return GSEAReport(
        results=results,
        ranking=rnk,
        gene_sets=gene_sets,
        parameters={
            "min_size": min_size,
            "max_size": max_size,
            "permutation_num": permutation_num,
            "seed": seed,
        },
    )


def normalize_prerank_results(
    res2d: pd.DataFrame,
    ranking: pd.Series,
    gene_sets: Dict[str, List[str]]
) -> pd.DataFrame:
    """
    Map a gseapy res2d table onto RESULT_COLUMNS and sort it by p-value.

    The size column is the number of genes of each set present in the
    ranking, computed here since gseapy releases report it differently.
    """
    if not isinstance(res2d, pd.DataFrame):
        raise ExternalStatisticError(f"Unexpected prerank result type: {type(res2d).__name__}")

    table = res2d
    if "Term" not in table.columns and "term" not in table.columns:
        table = table.reset_index()
        table = table.rename(columns={table.columns[0]: "Term"})

    columns = {}
    for target, aliases in _RES2D_ALIASES.items():
        source = next((a for a in aliases if a in table.columns), None)
        if source is None:
            if target == "leading_edge":
                columns[target] = pd.Series([""] * len(table), index=table.index)
                continue
            raise ExternalStatisticError(
                f"Prerank result lacks a '{target}' column; got {list(table.columns)}"
            )
        columns[target] = table[source]

    results = pd.DataFrame(columns)
    results["pathway"] = results["pathway"].astype(str)
    for col in ("es", "nes", "pval", "padj"):
        results[col] = pd.to_numeric(results[col], errors='coerce')
    results["leading_edge"] = results["leading_edge"].fillna("").astype(str)

    symbols = set(ranking.index)
    results["size"] = [
        sum(1 for g in set(gene_sets.get(name, [])) if g in symbols)
        for name in results["pathway"]
    ]

    results = results[RESULT_COLUMNS]
    return results.sort_values(["pval", "pathway"], kind='mergesort').reset_index(drop=True)


def export_gsea_table(results: Union[GSEAReport, pd.DataFrame], output_path) -> Path:
    """
    Write GSEA results as a tab-separated report.

    Columns: pathway, es, nes, pval, padj, size, leading_edge
    """
    if isinstance(results, GSEAReport):
        results = results.results

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    results.to_csv(output_path, sep='\t', index=False)

    logger.info(f"Exported {len(results)} GSEA terms to {output_path}")
    return output_path
