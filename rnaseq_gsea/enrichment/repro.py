"""
Reproducibility Logger for RNA-seq GSEA

Tracks the metadata needed to reproduce a batch enrichment run:
- Software versions
- Gene set collection hashes
- Analysis parameters
- Input/output summaries
"""

import json
import logging
import sys
import uuid
from dataclasses import dataclass, asdict, field
from datetime import datetime, timezone
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .. import __version__
from ..gene_set_utils import gene_set_hash, get_gene_set_stats


TRACKED_PACKAGES = ("pandas", "numpy", "gseapy", "pydeseq2")


@dataclass
class PipelineMetadata:
    """Complete metadata for a single batch run"""

    run_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    software_version: str = __version__
    python_version: str = ""
    dependencies: Dict[str, str] = field(default_factory=dict)

    method: str = "GSEA prerank"
    # collection name -> {path, hash, stats}
    gene_sets: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    parameters: Dict[str, Any] = field(default_factory=dict)
    input_summary: Dict[str, Any] = field(default_factory=dict)
    output_summary: Dict[str, Any] = field(default_factory=dict)

    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return asdict(self)

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2, default=str)


class ReproducibilityLogger:
    """
    Collects reproducibility metadata while a batch runs.
    """

    def __init__(self):
        self.metadata = PipelineMetadata()
        self._initialize_versions()

    def _initialize_versions(self):
        """Record interpreter and dependency versions"""
        info = sys.version_info
        self.metadata.python_version = f"{info.major}.{info.minor}.{info.micro}"

        deps = {}
        for name in TRACKED_PACKAGES:
            try:
                deps[name] = version(name)
            except PackageNotFoundError:
                deps[name] = "not installed"
        self.metadata.dependencies = deps

    def add_gene_set_collection(self, name: str, gene_sets: Dict[str, list], source: Optional[str] = None):
        """
        Record a gene set collection by content hash.

        Args:
            name: Collection name used in output paths
            gene_sets: The loaded gene sets
            source: File the sets were read from
        """
        self.metadata.gene_sets[name] = {
            "source": str(source) if source is not None else None,
            "hash": gene_set_hash(gene_sets),
            "stats": get_gene_set_stats(gene_sets),
        }

    def set_parameters(self, **params):
        self.metadata.parameters.update(params)

    def set_input_summary(self, **summary):
        self.metadata.input_summary.update(summary)

    def set_output_summary(self, **summary):
        self.metadata.output_summary.update(summary)

    def add_warning(self, warning: str):
        self.metadata.warnings.append(warning)

    def get_metadata(self) -> PipelineMetadata:
        return self.metadata

    def export_yaml(self, output_path) -> Path:
        """Export pipeline metadata as YAML"""
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, 'w', encoding='utf-8') as f:
            yaml.safe_dump(json.loads(self.metadata.to_json()), f, default_flow_style=False, sort_keys=False)
        logging.info(f"Saved pipeline metadata (YAML) to {output_path}")
        return output_path

    def export_json(self, output_path) -> Path:
        """Export pipeline metadata as JSON"""
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, 'w', encoding='utf-8') as f:
            f.write(self.metadata.to_json())
        logging.info(f"Saved pipeline metadata to {output_path}")
        return output_path
