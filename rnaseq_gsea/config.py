"""
Analysis Configuration for RNA-seq GSEA

All paths, thresholds and statistic parameters are resolved once from a
YAML file into an AnalysisConfig and passed down explicitly to each stage.

Example YAML:

    paths:
      counts: data/counts.csv
      metadata: data/samples.csv
      orthologs: data/mouse_human_orthologs.csv
      screen: data/invivo_screen.csv
      de_root: results/de
      diff_root: results/diff
      gsea_root: results/gsea
    gene_sets:
      hallmark: genesets/h.all.v2023.2.Hs.symbols.gmt
      reactome: genesets/c2.cp.reactome.v2023.2.Hs.symbols.gmt
    design:
      factors: [condition, genotype]
    thresholds:
      difference_padj: 0.25
    differences:
      - name: KO_hypoxia_minus_normoxia
        a: hypoxia-KO_vs_hypoxia-WT
        b: normoxia-KO_vs_normoxia-WT
"""

import logging
from dataclasses import dataclass, field, asdict, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from .errors import MalformedInputError


MISSING_GENE_POLICIES = ("skip", "zero", "raise")


@dataclass
class PathsConfig:
    """Input and output locations"""

    counts: Optional[Path] = None
    metadata: Optional[Path] = None
    orthologs: Optional[Path] = None
    screen: Optional[Path] = None
    de_root: Path = Path("results/de")
    diff_root: Path = Path("results/diff")
    gsea_root: Path = Path("results/gsea")
    screen_out: Path = Path("results/screen")


@dataclass
class DesignConfig:
    """Experimental design used for the DESeq2 contrasts"""

    factors: List[str] = field(default_factory=lambda: ["condition", "genotype"])
    group_column: str = "group"
    group_sep: str = "-"
    # Explicit (numerator, denominator) group pairs; empty means all pairs
    contrasts: List[Tuple[str, str]] = field(default_factory=list)
    id_column: str = "gene_id"
    de_basename: str = "deseq2_results"
    n_cpus: int = 1


@dataclass
class ThresholdConfig:
    """Significance cutoffs per analysis stage"""

    de_alpha: float = 0.05
    difference_padj: float = 0.25
    ranking_padj: float = 1.0
    screen_padj: float = 0.10
    screen_score: Optional[float] = None


@dataclass
class GSEAConfig:
    """Parameters handed to the prerank statistic and the batch driver"""

    min_size: int = 15
    max_size: int = 500
    permutation_num: int = 5000
    seed: int = 42
    threads: int = 1
    ascending: bool = True
    output_suffix: str = "gsea.tsv"
    max_workers: int = 1
    # Explicit DE/difference tables to rank; empty means discover under de_root and diff_root
    inputs: List[Path] = field(default_factory=list)


@dataclass
class DifferenceSpec:
    """One contrast difference: table `a` minus table `b`"""

    name: str
    a: str
    b: str


@dataclass
class AnalysisConfig:
    """Top-level configuration, resolved once and passed to every stage"""

    paths: PathsConfig = field(default_factory=PathsConfig)
    design: DesignConfig = field(default_factory=DesignConfig)
    thresholds: ThresholdConfig = field(default_factory=ThresholdConfig)
    gsea: GSEAConfig = field(default_factory=GSEAConfig)
    gene_sets: Dict[str, Path] = field(default_factory=dict)
    differences: List[DifferenceSpec] = field(default_factory=list)
    missing_gene_policy: str = "skip"
    screen_symbol_column: str = "gene"
    screen_score_column: str = "score"

    def validate(self) -> None:
        """Check cross-field constraints; raises MalformedInputError."""
        if self.missing_gene_policy not in MISSING_GENE_POLICIES:
            raise MalformedInputError(
                f"missing_gene_policy must be one of {MISSING_GENE_POLICIES}, "
                f"got '{self.missing_gene_policy}'"
            )

        t = self.thresholds
        for name in ("de_alpha", "difference_padj", "screen_padj"):
            value = getattr(t, name)
            if not 0 < value <= 1:
                raise MalformedInputError(f"thresholds.{name} must be in (0, 1], got {value}")
        if t.ranking_padj <= 0:
            raise MalformedInputError(f"thresholds.ranking_padj must be positive, got {t.ranking_padj}")

        g = self.gsea
        if g.min_size < 1 or g.max_size < g.min_size:
            raise MalformedInputError(
                f"Invalid gene set size bounds: min_size={g.min_size}, max_size={g.max_size}"
            )
        if g.permutation_num < 1:
            raise MalformedInputError(f"gsea.permutation_num must be >= 1, got {g.permutation_num}")
        if g.max_workers < 1:
            raise MalformedInputError(f"gsea.max_workers must be >= 1, got {g.max_workers}")

        if not self.design.factors:
            raise MalformedInputError("design.factors must name at least one metadata column")

        if self.differences:
            # Difference tables carry padj == difference_padj and ranking keeps padj < ranking_padj
            if t.ranking_padj <= t.difference_padj:
                raise MalformedInputError(
                    f"thresholds.ranking_padj ({t.ranking_padj}) must exceed thresholds.difference_padj "
                    f"({t.difference_padj}) or every difference table ranks empty"
                )

            # Reports are keyed on the table's directory name, shared by de_root and diff_root
            contrasts = {f"{num}_vs_{den}" for num, den in self.design.contrasts}
            for spec in self.differences:
                contrasts.update((spec.a, spec.b))
            seen = set()
            for spec in self.differences:
                if spec.name in seen:
                    raise MalformedInputError(f"Duplicate difference name '{spec.name}'")
                if spec.name in contrasts:
                    raise MalformedInputError(
                        f"Difference name '{spec.name}' is also a DE contrast name; "
                        f"their GSEA reports would share a path"
                    )
                seen.add(spec.name)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]], base_dir: Optional[Path] = None) -> "AnalysisConfig":
        """
        Build a config from a plain mapping (as parsed from YAML).

        Args:
            data: Mapping with optional sections paths/design/thresholds/gsea/gene_sets/differences
            base_dir: Directory relative paths are resolved against (default: leave relative)

        Returns:
            Validated AnalysisConfig
        """
        data = dict(data or {})

        def section(name: str, klass):
            raw = data.pop(name, None) or {}
            if not isinstance(raw, dict):
                raise MalformedInputError(f"Config section '{name}' must be a mapping")
            known = {f.name for f in fields(klass)}
            unknown = set(raw) - known
            if unknown:
                raise MalformedInputError(f"Unknown keys in '{name}': {sorted(unknown)}")
            return klass(**raw)

        paths = section("paths", PathsConfig)
        for f in fields(PathsConfig):
            value = getattr(paths, f.name)
            if value is not None:
                setattr(paths, f.name, _resolve(value, base_dir))

        design = section("design", DesignConfig)
        design.contrasts = [tuple(pair) for pair in design.contrasts]
        for pair in design.contrasts:
            if len(pair) != 2:
                raise MalformedInputError(f"Contrast must be [numerator, denominator], got {list(pair)}")

        thresholds = section("thresholds", ThresholdConfig)
        gsea = section("gsea", GSEAConfig)
        gsea.inputs = [_resolve(p, base_dir) for p in gsea.inputs]

        gene_sets = {
            str(name): _resolve(path, base_dir)
            for name, path in (data.pop("gene_sets", None) or {}).items()
        }

        differences = []
        for item in data.pop("differences", None) or []:
            try:
                differences.append(DifferenceSpec(name=item["name"], a=item["a"], b=item["b"]))
            except (KeyError, TypeError) as e:
                raise MalformedInputError(f"Difference entry needs name, a and b: {item}") from e

        known_top = {"missing_gene_policy", "screen_symbol_column", "screen_score_column"}
        unknown = set(data) - known_top
        if unknown:
            raise MalformedInputError(f"Unknown config keys: {sorted(unknown)}")

        config = cls(
            paths=paths,
            design=design,
            thresholds=thresholds,
            gsea=gsea,
            gene_sets=gene_sets,
            differences=differences,
            **data,
        )
        config.validate()
        return config

    def to_dict(self) -> Dict[str, Any]:
        """Plain-data view (paths as strings) suitable for YAML/JSON dumps"""
        return _plain(asdict(self))


def load_config(path) -> AnalysisConfig:
    """
    Load an AnalysisConfig from a YAML file.

    Relative paths inside the file are resolved against the file's directory.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, 'r', encoding='utf-8') as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise MalformedInputError(f"Invalid YAML in {path}: {e}") from e

    if data is not None and not isinstance(data, dict):
        raise MalformedInputError(f"Config root must be a mapping: {path}")

    config = AnalysisConfig.from_dict(data, base_dir=path.parent)
    logging.info(f"Loaded analysis config from {path}")
    return config


def _resolve(value, base_dir: Optional[Path]) -> Path:
    p = Path(value).expanduser()
    if base_dir is not None and not p.is_absolute():
        p = Path(base_dir) / p
    return p


def _plain(obj):
    if isinstance(obj, dict):
        return {k: _plain(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_plain(v) for v in obj]
    if isinstance(obj, Path):
        return str(obj)
    return obj
