"""
Life-insurance flag for synthetic persons.

    p(insured) = intercept + age_coef * age + sex_coef * is_female

The probability is linear, not logistic: parameters must keep every row's
probability inside [0, 1], anything else is rejected as a configuration
error rather than clipped.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import pandas as pd

from . import config
from .errors import ConfigError
from .logging_config import get_logger

_LOGGER = get_logger(__name__)

FEMALE_LABEL = "Female"


@dataclass(frozen=True)
class InsuranceModel:
    intercept: float = config.INSURANCE_INTERCEPT
    age_coef: float = config.INSURANCE_AGE_COEF
    sex_coef: float = config.INSURANCE_SEX_COEF


def insurance_probability(table: pd.DataFrame, model: InsuranceModel) -> np.ndarray:
    """Per-row success probability of the insured draw.

    Raises:
        ConfigError: Some row's probability falls outside [0, 1].
    """
    age = table["age"].to_numpy(dtype=float)
    is_female = (table["sex"] == FEMALE_LABEL).to_numpy(dtype=float)
    p = model.intercept + model.age_coef * age + model.sex_coef * is_female

    if len(p) and (p.min() < 0.0 or p.max() > 1.0):
        raise ConfigError(
            f"Insurance model {model} yields probabilities in "
            f"[{p.min():.4f}, {p.max():.4f}], outside [0, 1]"
        )
    return p


def add_insured(
    table: pd.DataFrame,
    rng: np.random.Generator,
    model: InsuranceModel | None = None,
) -> pd.DataFrame:
    """Return a copy of ``table`` with a boolean ``insured`` column appended."""
    model = model or InsuranceModel()
    p = insurance_probability(table, model)

    augmented = table.copy()
    augmented["insured"] = rng.random(len(augmented)) < p

    _LOGGER.info(
        "augment_completed",
        rows=len(augmented),
        insured_rate=round(float(augmented["insured"].mean()), 4) if len(augmented) else None,
        intercept=model.intercept,
        age_coef=model.age_coef,
        sex_coef=model.sex_coef,
    )
    return augmented
