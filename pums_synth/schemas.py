"""
Schema definitions for the tables flowing through the pipeline.

These schemas define the **contract** between:
- the raw feed and normalization
- normalization and synthesis
- synthesis, augmentation and export

They are intentionally kept lightweight and mirror the pandas DataFrame
structures used throughout the project: one dataclass field per column.
"""

from dataclasses import dataclass
from typing import Optional

import pandas as pd


# ---------------- Enumerations ---------------- #

SEX_LABELS = ["Male", "Female"]

EDUCATION_LABELS = [
    "Did not complete high school",
    "High school diploma",
    "Vocational education",
    "Some college",
    "Bachelor's degree",
    "Master's degree",
    "PhD",
]

SEX_DTYPE = pd.CategoricalDtype(SEX_LABELS)
EDUCATION_DTYPE = pd.CategoricalDtype(EDUCATION_LABELS, ordered=True)


# ---------------- Raw feed ---------------- #

@dataclass
class RawRecordSchema:
    SEX: str            # "1" / "2", possibly wrapped in brackets
    AGEP: int
    HINCP: int          # -60000 = not applicable
    SCHL: str           # "0".."24", possibly wrapped in brackets


# ---------------- Cleaned ---------------- #

@dataclass
class CleanRecordSchema:
    sex: str                    # Male | Female
    age: int
    income: Optional[int]       # None where the feed had the sentinel
    education: Optional[str]    # EDUCATION_LABELS or None


# ---------------- Augmented ---------------- #

@dataclass
class AugmentedRecordSchema(CleanRecordSchema):
    insured: bool


CLEAN_DTYPES = {
    "sex": SEX_DTYPE,
    "age": "int64",
    "income": "Int64",
    "education": EDUCATION_DTYPE,
}

AUGMENTED_DTYPES = {**CLEAN_DTYPES, "insured": "bool"}


def apply_dtypes(table: pd.DataFrame, dtypes: dict) -> pd.DataFrame:
    """Return a copy of ``table`` restricted to and cast to ``dtypes``."""
    out = table.loc[:, list(dtypes)].copy()
    for column, dtype in dtypes.items():
        out[column] = out[column].astype(dtype)
    return out
