"""Unit tests for raw feed normalization."""

from __future__ import annotations

import pandas as pd
import pytest

from pums_synth.errors import RecodeError, SchemaError
from pums_synth.normalize import (
    EDUCATION_CODES,
    normalize,
    parse_codes,
    recode_education,
    recode_income,
    recode_sex,
)
from pums_synth.schemas import EDUCATION_LABELS


def _raw(**columns: list) -> pd.DataFrame:
    return pd.DataFrame(columns)


def test_normalize_decodes_bachelor_female_row() -> None:
    """Bracketed codes should decode into labels with income kept."""
    raw = _raw(SEX=["[2]"], AGEP=["34"], HINCP=["45000"], SCHL=["21]"])

    clean = normalize(raw)

    row = clean.iloc[0]
    assert list(clean.columns) == ["sex", "age", "income", "education"]
    assert row["sex"] == "Female"
    assert row["age"] == 34
    assert row["income"] == 45000
    assert row["education"] == "Bachelor's degree"


def test_normalize_marks_sentinel_income_and_zero_education_missing() -> None:
    """Income sentinel and education code 0 should both become missing."""
    raw = _raw(SEX=["[1]"], AGEP=["70"], HINCP=["-60000"], SCHL=["0]"])

    clean = normalize(raw)

    row = clean.iloc[0]
    assert row["sex"] == "Male"
    assert row["age"] == 70
    assert pd.isna(row["income"])
    assert pd.isna(row["education"])


def test_normalize_produces_typed_columns(raw_feed: pd.DataFrame) -> None:
    """Cleaned table should carry categorical and nullable integer dtypes."""
    clean = normalize(raw_feed)

    assert len(clean) == len(raw_feed)
    assert isinstance(clean["sex"].dtype, pd.CategoricalDtype)
    assert list(clean["sex"].cat.categories) == ["Male", "Female"]
    assert clean["age"].dtype == "int64"
    assert clean["income"].dtype == "Int64"
    assert clean["education"].cat.ordered
    assert set(clean["education"].dropna().unique()) <= set(EDUCATION_LABELS)


def test_normalize_does_not_mutate_raw(raw_feed: pd.DataFrame) -> None:
    """Normalization should leave its input untouched."""
    before = raw_feed.copy()

    normalize(raw_feed)

    pd.testing.assert_frame_equal(raw_feed, before)


def test_normalize_raises_for_missing_field() -> None:
    """A feed without one of the four fields is a schema error."""
    raw = _raw(SEX=["1"], AGEP=["30"], HINCP=["100"])

    with pytest.raises(SchemaError):
        normalize(raw)


def test_normalize_raises_for_missing_age() -> None:
    """Age is required on every record."""
    raw = _raw(SEX=["1"], AGEP=[""], HINCP=["100"], SCHL=["16"])

    with pytest.raises(RecodeError) as info:
        normalize(raw)

    assert info.value.column == "age"


@pytest.mark.parametrize("code, label", [(1, "Male"), (2, "Female")])
def test_recode_sex_maps_valid_codes(code: int, label: str) -> None:
    """Codes 1 and 2 should map to Male and Female."""
    assert recode_sex(pd.Series([code]))[0] == label


@pytest.mark.parametrize("code", [0, 3, 9])
def test_recode_sex_rejects_unmapped_codes(code: int) -> None:
    """Any other sex code should raise with the column and value attached."""
    with pytest.raises(RecodeError) as info:
        recode_sex(pd.Series([1, code]))

    assert info.value.column == "sex"
    assert info.value.value == code


def test_recode_sex_rejects_blank() -> None:
    """A missing sex code is not silently passed through."""
    with pytest.raises(RecodeError):
        recode_sex(pd.Series([1, None], dtype="Int64"))


def test_recode_education_follows_attainment_table() -> None:
    """Every code 0..24 should land on its documented label."""
    expected = (
        [None]
        + ["Did not complete high school"] * 15
        + ["High school diploma", "Vocational education"]
        + ["Some college"] * 3
        + ["Bachelor's degree", "Master's degree", "Master's degree", "PhD"]
    )

    labels = recode_education(pd.Series(range(25)))

    assert len(EDUCATION_CODES) == 25
    for code, label in enumerate(expected):
        if label is None:
            assert pd.isna(labels[code])
        else:
            assert labels[code] == label


@pytest.mark.parametrize("code", [25, -1])
def test_recode_education_rejects_out_of_range(code: int) -> None:
    """Codes outside 0..24 should raise."""
    with pytest.raises(RecodeError) as info:
        recode_education(pd.Series([16, code]))

    assert info.value.column == "education"


def test_recode_income_only_drops_sentinel() -> None:
    """Only -60000 becomes missing; other negatives pass unchanged."""
    income = recode_income(pd.Series([-60000, -5000, 0, 45000, -59999]))

    assert pd.isna(income[0])
    assert income[1:].tolist() == [-5000, 0, 45000, -59999]


def test_parse_codes_strips_bracket_noise() -> None:
    """Brackets and quotes around codes should not block parsing."""
    parsed = parse_codes(pd.Series(["[2]", "21]", '["7"', " 3 ", ""]), "code")

    assert parsed[:4].tolist() == [2, 21, 7, 3]
    assert pd.isna(parsed[4])


def test_parse_codes_rejects_text() -> None:
    """Non-numeric codes should name the column and the bad value."""
    with pytest.raises(RecodeError) as info:
        parse_codes(pd.Series(["1", "abc"]), "education")

    assert info.value.column == "education"
    assert info.value.value == "abc"
