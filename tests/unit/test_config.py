"""Unit tests for run configuration."""

from __future__ import annotations

from pathlib import Path

import pytest

from pums_synth import config
from pums_synth.config import PipelineConfig
from pums_synth.errors import ConfigError


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (config.API_KEY_ENV, "PUMS_SYNTH_SEED", "PUMS_SYNTH_N", "PUMS_SYNTH_OUTPUT_DIR"):
        monkeypatch.delenv(name, raising=False)


def test_from_env_uses_module_defaults() -> None:
    """Without environment overrides the module constants apply."""
    pipeline_config = PipelineConfig.from_env()

    assert pipeline_config.api_key is None
    assert pipeline_config.seed == config.SEED
    assert pipeline_config.n_synthetic == 2000
    assert pipeline_config.min_age == 18
    assert (pipeline_config.intercept, pipeline_config.age_coef, pipeline_config.sex_coef) == (
        0.5,
        0.002,
        0.02,
    )


def test_from_env_reads_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Credential, seed, size and output directory come from the environment."""
    monkeypatch.setenv(config.API_KEY_ENV, "k-123")
    monkeypatch.setenv("PUMS_SYNTH_SEED", "99")
    monkeypatch.setenv("PUMS_SYNTH_N", "150")
    monkeypatch.setenv("PUMS_SYNTH_OUTPUT_DIR", str(tmp_path))

    pipeline_config = PipelineConfig.from_env()

    assert pipeline_config.api_key == "k-123"
    assert pipeline_config.seed == 99
    assert pipeline_config.n_synthetic == 150
    assert pipeline_config.output_dir == tmp_path.resolve()


def test_from_env_explicit_overrides_win(monkeypatch: pytest.MonkeyPatch) -> None:
    """Explicit values beat environment values; None means not given."""
    monkeypatch.setenv("PUMS_SYNTH_SEED", "99")

    pipeline_config = PipelineConfig.from_env(seed=7, min_age=None)

    assert pipeline_config.seed == 7
    assert pipeline_config.min_age == config.MIN_AGE


def test_from_env_rejects_non_integer_seed(monkeypatch: pytest.MonkeyPatch) -> None:
    """A malformed integer variable should raise a config error."""
    monkeypatch.setenv("PUMS_SYNTH_SEED", "abc")

    with pytest.raises(ConfigError, match="PUMS_SYNTH_SEED"):
        PipelineConfig.from_env()


@pytest.mark.parametrize(
    "overrides",
    [{"n_synthetic": 0}, {"min_age": -1}, {"timeout": 0.0}, {"fields": ("SEX", "AGEP")}],
)
def test_validate_rejects_unusable_values(overrides: dict) -> None:
    """Values no stage can use should be rejected up front."""
    with pytest.raises(ConfigError):
        PipelineConfig.from_env(**overrides)


@pytest.mark.parametrize(
    "overrides",
    [
        {"intercept": 0.9, "age_coef": 0.01},
        {"intercept": 0.0, "age_coef": -0.01},
        {"intercept": -0.1, "age_coef": 0.0, "sex_coef": 0.0},
        {"sex_coef": 0.6},
    ],
)
def test_validate_rejects_insurance_probabilities_outside_unit_interval(overrides: dict) -> None:
    """Coefficients must keep p(insured) within [0, 1] for every allowed age."""
    with pytest.raises(ConfigError, match="Insurance coefficients"):
        PipelineConfig.from_env(**overrides)


def test_validate_checks_insurance_model_from_min_age_to_max_age() -> None:
    """The bound holds at the configured minimum age and at the top-coded age."""
    # 0.1 - 0.005 * 18 = 0.01 at the youngest, 0.1 - 0.005 * 99 < 0 at the oldest
    with pytest.raises(ConfigError, match=f"{config.MAX_AGE}"):
        PipelineConfig.from_env(intercept=0.1, age_coef=-0.005)

    accepted = PipelineConfig.from_env(intercept=0.0, age_coef=0.01, sex_coef=0.0)
    assert accepted.age_coef == 0.01
