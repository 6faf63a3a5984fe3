"""
Configuration for synthetic PUMS population generation.

Module-level constants are the defaults. ``PipelineConfig`` bundles them
into one validated object, overlaid with environment variables where the
value must not live in source (the API credential) or is commonly changed
between runs.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from .errors import ConfigError

# ---------------- Source feed ---------------- #

# ACS 1-year person-level PUMS endpoint, returns a JSON array that the
# feed proxy serves as CSV (brackets leak into the first/last fields)
SOURCE_URL: str = "https://api.census.gov/data/2019/acs/acs1/pums"

# Raw feed field -> canonical column
FIELD_MAP: dict[str, str] = {
    "SEX": "sex",
    "AGEP": "age",
    "HINCP": "income",
    "SCHL": "education",
}
RAW_FIELDS: list[str] = list(FIELD_MAP)

# Geography clause for the query; whole state of Washington by default
GEOGRAPHY: str = "state:53"

FETCH_TIMEOUT_SECONDS: float = 60.0

API_KEY_ENV: str = "PUMS_SYNTH_API_KEY"


# ---------------- Synthesis ---------------- #

SEED: int = 1234
N_SYNTHETIC: int = 2_000
MIN_AGE: int = 18

# ACS top-codes AGEP at 99; bounds the insurance probability check
MAX_AGE: int = 99

# Smallest leaf a tree may grow; donors are drawn from leaves
MIN_SAMPLES_LEAF: int = 5


# ---------------- Life insurance model ---------------- #

# p(insured) = intercept + age_coef * age + sex_coef * is_female
# ~60% prevalence for a population with mean age ~45, half female
INSURANCE_INTERCEPT: float = 0.5
INSURANCE_AGE_COEF: float = 0.002
INSURANCE_SEX_COEF: float = 0.02


# ---------------- Output ---------------- #

OUTPUT_DIR: Path = Path(__file__).resolve().parents[1] / "data" / "synthetic"
OUTPUT_STEM: str = "synthetic_population"
DATASET_VERSION: str = "v1.0"


@dataclass(frozen=True)
class PipelineConfig:
    """Validated configuration for one pipeline run.

    Attributes:
        api_key: Census API credential, ``None`` for keyless requests.
        seed: Seed of the single generator shared by synthesis and augmentation.
        n_synthetic: Number of synthetic rows to draw.
        min_age: Rows younger than this are dropped before fitting.
        intercept: Insurance model intercept.
        age_coef: Insurance model age coefficient.
        sex_coef: Insurance model coefficient on the Female indicator.
        output_dir: Directory receiving exported tables and the manifest.
    """

    api_key: str | None = None
    seed: int = SEED
    n_synthetic: int = N_SYNTHETIC
    min_age: int = MIN_AGE
    intercept: float = INSURANCE_INTERCEPT
    age_coef: float = INSURANCE_AGE_COEF
    sex_coef: float = INSURANCE_SEX_COEF
    output_dir: Path = OUTPUT_DIR
    output_stem: str = OUTPUT_STEM
    source_url: str = SOURCE_URL
    geography: str = GEOGRAPHY
    fields: tuple[str, ...] = tuple(RAW_FIELDS)
    timeout: float = FETCH_TIMEOUT_SECONDS
    min_samples_leaf: int = MIN_SAMPLES_LEAF

    @classmethod
    def from_env(cls, **overrides: object) -> "PipelineConfig":
        """Build config from defaults, environment, then explicit overrides.

        Raises:
            ConfigError: If an environment value cannot be parsed.
        """
        values: dict[str, object] = {
            "api_key": os.getenv(API_KEY_ENV) or None,
            "seed": _parse_int("PUMS_SYNTH_SEED", SEED),
            "n_synthetic": _parse_int("PUMS_SYNTH_N", N_SYNTHETIC),
        }
        output_dir = os.getenv("PUMS_SYNTH_OUTPUT_DIR")
        if output_dir:
            values["output_dir"] = Path(output_dir).expanduser().resolve()
        values.update({k: v for k, v in overrides.items() if v is not None})
        config = cls(**values)  # type: ignore[arg-type]
        config.validate()
        return config

    def validate(self) -> None:
        """Reject values no stage can work with."""
        if self.n_synthetic <= 0:
            raise ConfigError(f"n_synthetic must be positive, got {self.n_synthetic}")
        if self.min_age < 0:
            raise ConfigError(f"min_age must be non-negative, got {self.min_age}")
        if self.timeout <= 0:
            raise ConfigError(f"timeout must be positive, got {self.timeout}")
        if self.min_samples_leaf < 1:
            raise ConfigError(
                f"min_samples_leaf must be at least 1, got {self.min_samples_leaf}"
            )
        missing = [f for f in RAW_FIELDS if f not in self.fields]
        if missing:
            raise ConfigError(f"fields must include {RAW_FIELDS}, missing {missing}")
        self._validate_insurance_model()

    def _validate_insurance_model(self) -> None:
        # p is affine in age and the Female indicator, so its extremes sit
        # at the corners of [min_age, MAX_AGE] x {0, 1}
        corners = [
            self.intercept + self.age_coef * age + self.sex_coef * is_female
            for age in (self.min_age, MAX_AGE)
            for is_female in (0, 1)
        ]
        if min(corners) < 0.0 or max(corners) > 1.0:
            raise ConfigError(
                f"Insurance coefficients (intercept={self.intercept}, "
                f"age_coef={self.age_coef}, sex_coef={self.sex_coef}) give "
                f"probabilities in [{min(corners):.4f}, {max(corners):.4f}] for ages "
                f"{self.min_age}..{MAX_AGE}, outside [0, 1]"
            )


def _parse_int(name: str, default: int) -> int:
    raw_value = os.getenv(name)
    if raw_value is None or raw_value == "":
        return default
    try:
        return int(raw_value)
    except ValueError as error:
        raise ConfigError(
            f"Invalid {name} value: expected integer, got '{raw_value}'."
        ) from error
