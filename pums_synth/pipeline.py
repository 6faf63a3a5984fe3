"""
Straight-line pipeline: fetch -> normalize -> synthesize -> augment -> export.

One numpy Generator, seeded from the run configuration, is threaded through
synthesis and augmentation so the whole run is reproducible from the seed.
Any stage error stops the run; export is the last stage, so a failed run
never leaves partial outputs behind.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import numpy as np
import pandas as pd
import requests

from .augment import InsuranceModel, add_insured
from .config import PipelineConfig
from .errors import ExportError
from .export import discard, export_table, write_manifest
from .fetch import fetch_raw
from .logging_config import get_logger
from .normalize import normalize
from .synthesize import synthesize

_LOGGER = get_logger(__name__)


@dataclass
class PipelineResult:
    raw: pd.DataFrame
    clean: pd.DataFrame
    synthetic: pd.DataFrame
    augmented: pd.DataFrame
    paths: dict[str, Path] = field(default_factory=dict)
    manifest_path: Path | None = None

    def row_counts(self) -> dict[str, int]:
        return {
            "raw": len(self.raw),
            "clean": len(self.clean),
            "synthetic": len(self.synthetic),
            "augmented": len(self.augmented),
        }


def build_population(
    raw: pd.DataFrame,
    pipeline_config: PipelineConfig,
) -> tuple[pd.DataFrame, pd.DataFrame, pd.DataFrame]:
    """Normalize, synthesize and augment an already fetched raw table.

    Returns:
        clean, synthetic, augmented
    """
    rng = np.random.default_rng(pipeline_config.seed)

    clean = normalize(raw)
    synthetic = synthesize(
        clean,
        n=pipeline_config.n_synthetic,
        rng=rng,
        min_age=pipeline_config.min_age,
        min_samples_leaf=pipeline_config.min_samples_leaf,
    )
    model = InsuranceModel(
        intercept=pipeline_config.intercept,
        age_coef=pipeline_config.age_coef,
        sex_coef=pipeline_config.sex_coef,
    )
    augmented = add_insured(synthetic, rng, model)
    return clean, synthetic, augmented


def run_pipeline(
    pipeline_config: PipelineConfig,
    session: requests.Session | None = None,
    raw: pd.DataFrame | None = None,
    write: bool = True,
) -> PipelineResult:
    """Run every stage for ``pipeline_config``.

    Args:
        pipeline_config: Validated run configuration.
        session: HTTP session for the fetch, a fresh one otherwise.
        raw: Pre-fetched raw table; skips the network when given.
        write: Export tables and the manifest after the last stage.
    """
    pipeline_config.validate()
    if raw is None:
        raw = fetch_raw(pipeline_config, session=session)

    clean, synthetic, augmented = build_population(raw, pipeline_config)
    result = PipelineResult(raw=raw, clean=clean, synthetic=synthetic, augmented=augmented)

    if write:
        result.paths = export_table(
            augmented, pipeline_config.output_dir, pipeline_config.output_stem
        )
        try:
            result.manifest_path = write_manifest(
                result.paths, pipeline_config, result.row_counts()
            )
        except ExportError:
            discard(result.paths.values())
            raise

    _LOGGER.info("pipeline_completed", seed=pipeline_config.seed, **result.row_counts())
    return result


def insured_rate_by(table: pd.DataFrame, column: str) -> pd.Series:
    """Share of insured persons per level of ``column``."""
    return table.groupby(column, observed=True)["insured"].mean()
