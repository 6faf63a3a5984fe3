"""
Normalization of the raw feed into labelled, typed columns.

Recode tables are exhaustive: every code a column may legally carry is
listed, and anything else raises ``RecodeError`` naming the column and
offending value instead of silently becoming missing.
"""

from __future__ import annotations

import numpy as np
import pandas as pd

from .config import FIELD_MAP
from .errors import RecodeError, SchemaError
from .logging_config import get_logger
from .schemas import CLEAN_DTYPES, EDUCATION_DTYPE, SEX_DTYPE, apply_dtypes

_LOGGER = get_logger(__name__)

_NOISE_CHARS = '[]" '

# ---------------- Recode tables ---------------- #

SEX_CODES: dict[int, str] = {
    1: "Male",
    2: "Female",
}

INCOME_NOT_APPLICABLE: int = -60000


def _education_table() -> dict[int, str | None]:
    table: dict[int, str | None] = {0: None}
    for code in range(1, 16):
        table[code] = "Did not complete high school"
    table[16] = "High school diploma"
    table[17] = "Vocational education"
    for code in (18, 19, 20):
        table[code] = "Some college"
    table[21] = "Bachelor's degree"
    table[22] = "Master's degree"
    table[23] = "Master's degree"
    table[24] = "PhD"
    return table


# 0 = not applicable (under 3 years old), 1..24 = attainment ladder
EDUCATION_CODES: dict[int, str | None] = _education_table()


# ---------------- Public API ---------------- #

def normalize(raw: pd.DataFrame) -> pd.DataFrame:
    """Turn a raw feed table into the cleaned population table.

    Returns:
        New DataFrame with columns [sex, age, income, education]:
        categorical sex, int64 age, nullable Int64 income and ordered
        categorical education.

    Raises:
        SchemaError: A raw field is missing.
        RecodeError: A value cannot be parsed or is outside its enumeration.
    """
    missing = [f for f in FIELD_MAP if f not in raw.columns]
    if missing:
        raise SchemaError(
            f"Raw table lacks fields {missing}; got columns {list(raw.columns)}"
        )
    renamed = raw.loc[:, list(FIELD_MAP)].rename(columns=FIELD_MAP)

    clean = pd.DataFrame(
        {
            "sex": recode_sex(parse_codes(renamed["sex"], "sex")),
            "age": _parse_age(renamed["age"]),
            "income": recode_income(parse_codes(renamed["income"], "income")),
            "education": recode_education(parse_codes(renamed["education"], "education")),
        }
    )
    clean = apply_dtypes(clean, CLEAN_DTYPES)

    _LOGGER.info(
        "normalize_completed",
        rows=len(clean),
        income_missing=int(clean["income"].isna().sum()),
        education_missing=int(clean["education"].isna().sum()),
    )
    return clean


def strip_noise(values: pd.Series) -> pd.Series:
    """Remove surrounding bracket, quote and space characters."""
    return values.astype("string").str.strip(_NOISE_CHARS)


def parse_codes(values: pd.Series, column: str) -> pd.Series:
    """Parse encoded values into nullable integers.

    Blank cells become missing; anything else that is not an integer
    raises ``RecodeError``.
    """
    stripped = strip_noise(values).fillna("")
    blank = (stripped == "") | (stripped.str.lower() == "nan")
    numbers = pd.to_numeric(stripped.mask(blank), errors="coerce").astype("Float64")

    bad = ~blank & (numbers.isna() | (numbers % 1 != 0)).fillna(True)
    if bad.any():
        value = values[bad].iloc[0]
        raise RecodeError(column, value, f"Non-integer code {value!r} in column '{column}'")
    return numbers.astype("Int64")


def recode_sex(codes: pd.Series) -> pd.Series:
    """1 -> Male, 2 -> Female, anything else raises ``RecodeError``."""
    return _recode(codes, SEX_CODES, "sex", SEX_DTYPE)


def recode_income(values: pd.Series) -> pd.Series:
    """Replace the not-applicable sentinel with missing; pass all else through."""
    income = values.astype("Int64")
    return income.mask((income == INCOME_NOT_APPLICABLE).fillna(False))


def recode_education(codes: pd.Series) -> pd.Series:
    """Collapse 0..24 attainment codes into the labelled ladder; 0 is missing."""
    return _recode(codes, EDUCATION_CODES, "education", EDUCATION_DTYPE)


# ---------------- Helpers ---------------- #

def _recode(
    codes: pd.Series,
    table: dict[int, str | None],
    column: str,
    dtype: pd.CategoricalDtype,
) -> pd.Series:
    codes = codes.astype("Int64")
    unmapped = codes.isna() | ~codes.isin(list(table))
    if unmapped.any():
        raise RecodeError(column, codes[unmapped].iloc[0])
    labels = [table[int(code)] for code in codes]
    return pd.Series(
        pd.Categorical(labels, dtype=dtype),
        index=codes.index,
        name=column,
    )


def _parse_age(values: pd.Series) -> pd.Series:
    ages = parse_codes(values, "age")
    if ages.isna().any():
        raise RecodeError("age", values[ages.isna()].iloc[0], "Missing age in column 'age'")
    return ages.astype(np.int64)
