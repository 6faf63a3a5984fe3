"""
Export of the augmented population and its dataset manifest.

Two snapshots are written side by side:
1) ``<stem>.pkl`` - pandas pickle, keeps categorical and nullable dtypes
2) ``<stem>.csv`` - delimited text for tools outside Python

A manifest then locks the snapshot with SHA-256 hashes of both files.
"""

from __future__ import annotations

import datetime
import hashlib
import json
import os
import platform
from pathlib import Path
from typing import Iterable

import pandas as pd

from . import config
from .errors import ExportError
from .logging_config import get_logger
from .schemas import AUGMENTED_DTYPES, apply_dtypes

_LOGGER = get_logger(__name__)

MANIFEST_NAME = "dataset_manifest.json"


def file_hash(path: Path) -> str:
    """Compute SHA-256 hash of a file (streaming-safe)."""
    h = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(8192), b""):
            h.update(chunk)
    return h.hexdigest()


def export_table(
    table: pd.DataFrame,
    output_dir: str | Path,
    stem: str = config.OUTPUT_STEM,
) -> dict[str, Path]:
    """Write ``table`` as pickle and CSV under ``output_dir``.

    Returns:
        Mapping of format name ("pickle", "csv") to written path.

    Raises:
        ExportError: The directory or a file cannot be written.
    """
    output_dir = Path(output_dir)
    paths = {
        "pickle": output_dir / f"{stem}.pkl",
        "csv": output_dir / f"{stem}.csv",
    }
    # both files are staged first and only moved into place once both exist
    staged = {name: path.with_name(path.name + ".partial") for name, path in paths.items()}
    published: list[Path] = []
    try:
        output_dir.mkdir(parents=True, exist_ok=True)
        table.to_pickle(staged["pickle"], compression=None)
        table.to_csv(staged["csv"], index=False)
        for name, path in paths.items():
            os.replace(staged[name], path)
            published.append(path)
    except OSError as error:
        discard([*staged.values(), *published])
        raise ExportError(f"Cannot write export under {output_dir}: {error}") from error

    _LOGGER.info("export_completed", rows=len(table), paths={k: str(p) for k, p in paths.items()})
    return paths


def discard(paths: Iterable[Path]) -> None:
    """Remove files written by a run that did not complete."""
    for path in paths:
        if path.is_file():
            path.unlink()


def read_exported(path: str | Path) -> pd.DataFrame:
    """Read an exported snapshot back with the augmented schema."""
    path = Path(path)
    if path.suffix == ".pkl":
        table = pd.read_pickle(path)
    elif path.suffix == ".csv":
        table = pd.read_csv(path)
    else:
        raise ExportError(f"Unknown export format: {path}")
    return apply_dtypes(table, AUGMENTED_DTYPES)


def write_manifest(
    paths: dict[str, Path],
    pipeline_config: config.PipelineConfig,
    row_counts: dict[str, int],
) -> Path:
    """Write the dataset manifest next to the exported files.

    The API credential is never recorded.
    """
    manifest = {
        "dataset_version": config.DATASET_VERSION,
        "generated_at_utc": datetime.datetime.now(datetime.timezone.utc).isoformat(),
        "generator_entrypoint": "pums_synth.cli",
        "generator_function": "run_pipeline",
        "python_version": platform.python_version(),
        "platform": platform.platform(),
        "source_url": pipeline_config.source_url,
        "geography": pipeline_config.geography,
        "seed": pipeline_config.seed,
        "n_synthetic": pipeline_config.n_synthetic,
        "min_age": pipeline_config.min_age,
        "insurance_model": {
            "intercept": pipeline_config.intercept,
            "age_coef": pipeline_config.age_coef,
            "sex_coef": pipeline_config.sex_coef,
        },
        "row_counts": row_counts,
        "file_hashes_sha256": {
            path.name: file_hash(path) for path in paths.values()
        },
    }

    manifest_path = next(iter(paths.values())).parent / MANIFEST_NAME
    try:
        with open(manifest_path, "w") as f:
            json.dump(manifest, f, indent=2)
    except OSError as error:
        raise ExportError(f"Cannot write manifest {manifest_path}: {error}") from error
    return manifest_path
