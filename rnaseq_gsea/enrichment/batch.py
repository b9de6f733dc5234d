"""
Batch Enrichment Analysis for RNA-seq GSEA
Runs GSEA prerank for every (gene set collection, DE table) pair.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Tuple, Union

import pandas as pd

from ..config import GSEAConfig
from ..de_table import load_de_table, condition_name
from ..gene_set_utils import load_gmt
from .gsea import run_gsea_prerank, export_gsea_table
from .ranking import build_ranking_vector
from .repro import ReproducibilityLogger


logger = logging.getLogger("RNASeqGSEA.Enrichment.Batch")

METADATA_FILENAME = "run_metadata.yaml"

GeneSetSource = Union[str, Path, Dict[str, List[str]]]


@dataclass
class PairOutcome:
    """Result of one (collection, DE table) pair"""

    collection: str
    de_path: Path
    status: str
    output_path: Optional[Path] = None
    n_terms: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"


@dataclass
class BatchSummary:
    """Per-pair outcomes of a batch run"""

    outcomes: List[PairOutcome] = field(default_factory=list)
    metadata_path: Optional[Path] = None

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def successful(self) -> int:
        return sum(1 for o in self.outcomes if o.ok)

    @property
    def failed(self) -> int:
        return self.total - self.successful

    @property
    def errors(self) -> List[PairOutcome]:
        return [o for o in self.outcomes if not o.ok]

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame([
            {
                "collection": o.collection,
                "de_path": str(o.de_path),
                "status": o.status,
                "output_path": str(o.output_path) if o.output_path else None,
                "n_terms": o.n_terms,
                "error": o.error,
            }
            for o in self.outcomes
        ])


def gsea_output_path(output_root, collection: str, de_path, suffix: str = "gsea.tsv") -> Path:
    """
    Report location for one pair:
    <output_root>/<collection>/<condition>/<de-table stem>_<suffix>

    The condition is the DE table's parent directory name.
    """
    de_path = Path(de_path)
    return Path(output_root) / collection / condition_name(de_path) / f"{de_path.stem}_{suffix}"


def discover_de_tables(roots: Iterable, basename: Optional[str] = None) -> List[Path]:
    """
    Find DE tables laid out as <root>/<condition>/<file>.csv.

    Args:
        roots: Directories to search (missing ones are skipped)
        basename: Only match files with this stem

    Returns:
        Sorted list of paths
    """
    pattern = f"*/{basename}.csv" if basename else "*/*.csv"
    found = []
    for root in roots:
        root = Path(root)
        if not root.is_dir():
            logger.warning(f"DE table directory not found: {root}")
            continue
        found.extend(sorted(root.glob(pattern)))
    return found


def run_batch_gsea(
    collections: Dict[str, GeneSetSource],
    de_paths: Iterable,
    output_root,
    gsea_config: Optional[GSEAConfig] = None,
    ranking_padj: float = 1.0,
    id_column: Optional[str] = None,
    progress_callback: Optional[Callable[[PairOutcome, int, int], None]] = None,
    write_metadata: bool = True
) -> BatchSummary:
    """
    Run GSEA prerank on every (gene set collection, DE table) pair.

    A failure in one pair is logged and recorded; the other pairs still run.

    Args:
        collections: Collection name -> GMT path (or already loaded gene sets)
        de_paths: DE or difference tables to rank
        output_root: Root directory for the reports
        gsea_config: Size bounds, permutations, seed, suffix, max_workers
        ranking_padj: padj cutoff used when building each ranking
        id_column: Gene identifier column of the DE tables (first column if None)
        progress_callback: Optional callback(outcome, completed, total)
        write_metadata: Write run_metadata.yaml into output_root

    Returns:
        BatchSummary with one PairOutcome per pair, in collection x path order
    """
    cfg = gsea_config or GSEAConfig()
    output_root = Path(output_root)
    de_paths = list(dict.fromkeys(Path(p) for p in de_paths))
    names = list(collections)
    total = len(names) * len(de_paths)

    outcomes: Dict[Tuple[str, Path], PairOutcome] = {}
    completed = 0

    def record(outcome: PairOutcome):
        nonlocal completed
        outcomes[(outcome.collection, outcome.de_path)] = outcome
        completed += 1
        if progress_callback:
            progress_callback(outcome, completed, total)

    repro = ReproducibilityLogger()

    # Gene set collections, loaded once each
    loaded_sets: Dict[str, Dict[str, List[str]]] = {}
    for name in names:
        source = collections[name]
        try:
            gene_sets = dict(source) if isinstance(source, dict) else load_gmt(source)
        except Exception as e:
            logger.error(f"Cannot load gene set collection '{name}' from {source}: {e}")
            for path in de_paths:
                record(PairOutcome(name, path, "error", error=f"gene set collection: {e}"))
            continue
        loaded_sets[name] = gene_sets
        repro.add_gene_set_collection(
            name, gene_sets, source=None if isinstance(source, dict) else source
        )

    # Tables whose reports would land on an earlier table's path are not run
    report_keys: Dict[Tuple[str, str], Path] = {}
    colliding = set()
    for path in de_paths:
        key = (condition_name(path), path.stem)
        if key in report_keys:
            colliding.add(path)
            logger.error(f"GSEA report path of {path} collides with {report_keys[key]}; skipping it")
            for name in loaded_sets:
                record(PairOutcome(name, path, "error",
                                   error=f"report path collides with {report_keys[key]}"))
        else:
            report_keys[key] = path

    # Rankings, built once per DE table
    rankings: Dict[Path, pd.Series] = {}
    for path in de_paths:
        if path in colliding:
            continue
        try:
            table = load_de_table(path, id_column=id_column)
            rankings[path] = build_ranking_vector(
                table, padj_threshold=ranking_padj, ascending=cfg.ascending
            )
        except Exception as e:
            logger.error(f"Cannot build ranking from {path}: {e}")
            for name in loaded_sets:
                record(PairOutcome(name, path, "error", error=str(e)))

    def process_pair(name: str, path: Path) -> PairOutcome:
        out_path = gsea_output_path(output_root, name, path, cfg.output_suffix)
        try:
            report = run_gsea_prerank(
                rankings[path],
                loaded_sets[name],
                min_size=cfg.min_size,
                max_size=cfg.max_size,
                permutation_num=cfg.permutation_num,
                seed=cfg.seed,
                threads=cfg.threads
            )
            export_gsea_table(report, out_path)
        except Exception as e:
            logger.error(f"GSEA failed for collection '{name}', table {path}: {e}")
            return PairOutcome(name, path, "error", error=str(e))
        return PairOutcome(name, path, "ok", output_path=out_path, n_terms=len(report))

    jobs = [(name, path) for name in loaded_sets for path in de_paths if path in rankings]
    logger.info(
        f"Batch GSEA: {len(jobs)} runnable pairs of {total} "
        f"({len(names)} collections x {len(de_paths)} tables)"
    )

    if cfg.max_workers <= 1:
        for name, path in jobs:
            record(process_pair(name, path))
    else:
        with ThreadPoolExecutor(max_workers=cfg.max_workers) as executor:
            futures = [executor.submit(process_pair, name, path) for name, path in jobs]
            for future in as_completed(futures):
                record(future.result())

    summary = BatchSummary(
        outcomes=[outcomes[(name, path)] for name in names for path in de_paths]
    )

    for outcome in summary.errors:
        repro.add_warning(f"{outcome.collection} / {outcome.de_path}: {outcome.error}")

    if write_metadata:
        repro.set_parameters(
            min_size=cfg.min_size,
            max_size=cfg.max_size,
            permutation_num=cfg.permutation_num,
            seed=cfg.seed,
            ranking_padj=ranking_padj,
            ascending=cfg.ascending
        )
        repro.set_input_summary(
            collections=names,
            de_tables=[str(p) for p in de_paths],
            ranked_symbols={str(p): len(r) for p, r in rankings.items()}
        )
        repro.set_output_summary(
            total_pairs=summary.total,
            successful=summary.successful,
            failed=summary.failed,
            reports=[str(o.output_path) for o in summary.outcomes if o.ok]
        )
        summary.metadata_path = repro.export_yaml(output_root / METADATA_FILENAME)

    logger.info(f"Batch GSEA finished: {summary.successful}/{summary.total} succeeded, {summary.failed} failed")
    return summary
