"""
Gene Set Utilities for RNA-seq GSEA
Handles GMT file loading, validation, and gene set statistics.
"""

import hashlib
import logging
from typing import Dict, Iterable, List, Optional, Tuple, Any
from pathlib import Path

from .errors import MalformedInputError


def load_gmt(file_path) -> Dict[str, List[str]]:
    """
    Load gene sets from GMT (Gene Matrix Transposed) format file.

    GMT Format: Each line is tab-separated:
    <gene_set_name> <description> <gene1> <gene2> ... <geneN>

    Args:
        file_path: Path to GMT file

    Returns:
        Dictionary mapping gene set names to gene lists

    Raises:
        FileNotFoundError: If file doesn't exist
        MalformedInputError: If the file is not UTF-8 text
    """
    file_path = Path(file_path)

    if not file_path.exists():
        raise FileNotFoundError(f"GMT file not found: {file_path}")

    gene_sets = {}

    try:
        with open(file_path, 'r', encoding='utf-8') as f:
            for line_num, line in enumerate(f, 1):
                line = line.rstrip('\r\n')

                # Skip empty lines and comments
                if not line.strip() or line.startswith('#'):
                    continue

                parts = line.split('\t')

                if len(parts) < 3:
                    logging.warning(
                        f"{file_path.name} line {line_num}: Expected at least 3 fields "
                        f"(name, description, genes), got {len(parts)}. Skipping."
                    )
                    continue

                name = parts[0].strip()
                # parts[1] is the description / URL field
                genes = [g.strip() for g in parts[2:] if g.strip()]

                if not name or not genes:
                    logging.warning(f"{file_path.name} line {line_num}: Gene set '{name}' has no genes. Skipping.")
                    continue

                if name in gene_sets:
                    logging.warning(
                        f"{file_path.name} line {line_num}: Duplicate gene set name '{name}'. "
                        f"Merging genes."
                    )
                    gene_sets[name] = _unique(gene_sets[name] + genes)
                else:
                    gene_sets[name] = _unique(genes)
    except UnicodeDecodeError as e:
        raise MalformedInputError(f"Invalid encoding in {file_path}. Expected UTF-8: {e}") from e

    logging.info(f"Loaded {len(gene_sets)} gene sets from {file_path}")

    return gene_sets


def save_gmt(gene_sets: Dict[str, List[str]], file_path, description: str = "") -> None:
    """
    Save gene sets to GMT format file.

    Args:
        gene_sets: Dictionary mapping gene set names to gene lists
        file_path: Output file path
        description: Optional description for all gene sets (default: empty)
    """
    file_path = Path(file_path)
    file_path.parent.mkdir(parents=True, exist_ok=True)

    with open(file_path, 'w', encoding='utf-8') as f:
        for name, genes in gene_sets.items():
            f.write(f"{name}\t{description}\t" + "\t".join(genes) + "\n")

    logging.info(f"Saved {len(gene_sets)} gene sets to {file_path}")


def validate_gene_sets(gene_sets: Dict[str, List[str]],
                       min_size: int = 15,
                       max_size: int = 500,
                       universe: Optional[Iterable[str]] = None) -> Tuple[Dict[str, List[str]], List[str]]:
    """
    Validate gene sets and filter by size.

    When a universe (e.g. the ranked symbols) is given, sizes are counted
    on the genes of each set that are present in it, the way prerank counts them.

    Args:
        gene_sets: Dictionary of gene set name -> gene list
        min_size: Minimum number of genes
        max_size: Maximum number of genes
        universe: Optional genes to intersect each set with before counting

    Returns:
        Tuple of (valid_gene_sets, warnings)
    """
    universe = set(universe) if universe is not None else None
    valid_sets = {}
    warnings = []

    for name, genes in gene_sets.items():
        unique_genes = _unique(genes)

        if len(unique_genes) != len(genes):
            warnings.append(f"'{name}': Removed {len(genes) - len(unique_genes)} duplicate genes")

        counted = [g for g in unique_genes if g in universe] if universe is not None else unique_genes

        if len(counted) < min_size:
            warnings.append(f"'{name}': Too few genes ({len(counted)} < {min_size}). Excluded.")
            continue

        if len(counted) > max_size:
            warnings.append(f"'{name}': Too many genes ({len(counted)} > {max_size}). Excluded.")
            continue

        valid_sets[name] = unique_genes

    logging.info(
        f"Validated gene sets: {len(valid_sets)}/{len(gene_sets)} kept "
        f"(size {min_size}-{max_size})"
    )

    return valid_sets, warnings


def get_gene_set_stats(gene_sets: Dict[str, List[str]]) -> Dict[str, Any]:
    """
    Get statistics about gene sets.

    Returns:
        Dictionary with stats: total_sets, total_genes, unique_genes, avg_size, min_size, max_size
    """
    if not gene_sets:
        return {
            "total_sets": 0,
            "total_genes": 0,
            "unique_genes": 0,
            "avg_size": 0,
            "min_size": 0,
            "max_size": 0
        }

    sizes = [len(genes) for genes in gene_sets.values()]
    all_genes = set()
    for genes in gene_sets.values():
        all_genes.update(genes)

    return {
        "total_sets": len(gene_sets),
        "total_genes": sum(sizes),
        "unique_genes": len(all_genes),
        "avg_size": sum(sizes) / len(sizes),
        "min_size": min(sizes),
        "max_size": max(sizes)
    }


def gene_set_hash(gene_sets: Dict[str, List[str]]) -> str:
    """
    Short SHA256 of a gene set collection.

    Based on sorted set names and their sorted genes, so file order does not matter.
    """
    items = [f"{name}::{','.join(sorted(gene_sets[name]))}" for name in sorted(gene_sets)]
    return hashlib.sha256("||".join(items).encode()).hexdigest()[:16]


def _unique(genes: List[str]) -> List[str]:
    # Order-preserving dedupe
    return list(dict.fromkeys(genes))
