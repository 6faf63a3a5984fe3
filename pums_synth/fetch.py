"""
Raw feed retrieval.

The source answers a field-list query with a CSV table: a header row, an
auxiliary leading index column, and bracket/quote noise around some
values (the feed is a JSON array re-served as CSV). This module only
fetches and selects columns; values stay as strings for the normalizer.
"""

from __future__ import annotations

import io
from pathlib import Path
from typing import Iterable

import pandas as pd
import requests

from .config import PipelineConfig
from .errors import (
    AuthenticationError,
    ExportError,
    MalformedResponseError,
    NetworkError,
    SchemaError,
    SourceNotFoundError,
)
from .logging_config import get_logger

_LOGGER = get_logger(__name__)

_NOISE_CHARS = '[]" '
_AUTH_STATUS = (401, 403)


def build_query(fields: Iterable[str], geography: str, api_key: str | None) -> dict[str, str]:
    """Query parameters for the field-list request."""
    params = {"get": ",".join(fields), "for": geography}
    if api_key:
        params["key"] = api_key
    return params


def fetch_raw(
    config: PipelineConfig,
    session: requests.Session | None = None,
) -> pd.DataFrame:
    """Fetch the raw person table for ``config.fields``.

    Args:
        config: Run configuration (endpoint, fields, credential, timeout).
        session: Optional requests session, a fresh one is used otherwise.

    Returns:
        DataFrame with one string column per requested field.

    Raises:
        AuthenticationError: The source rejected the credential.
        NetworkError: Connection failure, timeout or other HTTP error.
        MalformedResponseError: The body is empty or not CSV.
        SchemaError: A requested field is absent from the header.
    """
    http = session or requests.Session()
    params = build_query(config.fields, config.geography, config.api_key)

    _LOGGER.info("fetch_started", url=config.source_url, fields=list(config.fields))
    try:
        response = http.get(config.source_url, params=params, timeout=config.timeout)
    except requests.Timeout as error:
        raise NetworkError(
            f"Timed out after {config.timeout}s fetching {config.source_url}"
        ) from error
    except requests.RequestException as error:
        raise NetworkError(
            f"Request to {config.source_url} failed: "
            f"{_redact(str(error), config.api_key)}"
        ) from error

    if response.status_code in _AUTH_STATUS:
        raise AuthenticationError(
            f"Source rejected the credential (HTTP {response.status_code}); "
            f"check {config.source_url} access and the API key",
            status_code=response.status_code,
        )
    try:
        response.raise_for_status()
    except requests.HTTPError as error:
        raise NetworkError(
            f"HTTP {response.status_code} from {config.source_url}",
            status_code=response.status_code,
        ) from error

    raw = parse_raw_csv(response.text, config.fields, source=config.source_url)
    _LOGGER.info("fetch_completed", rows=len(raw))
    return raw


def read_raw_csv(path: str | Path, fields: Iterable[str]) -> pd.DataFrame:
    """Load a previously dumped raw feed from disk."""
    path = Path(path)
    if not path.is_file():
        raise SourceNotFoundError(f"Raw feed not found: {path}")
    raw = parse_raw_csv(path.read_text(encoding="utf-8"), fields, source=str(path))
    _LOGGER.info("raw_csv_loaded", path=str(path), rows=len(raw))
    return raw


def save_raw_csv(raw: pd.DataFrame, path: str | Path) -> Path:
    """Dump the raw feed so later runs can skip the network.

    Raises:
        ExportError: The dump cannot be written.
    """
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        raw.to_csv(path, index=False)
    except OSError as error:
        raise ExportError(f"Cannot write raw feed dump {path}: {error}") from error
    return path


def parse_raw_csv(text: str, fields: Iterable[str], source: str = "<feed>") -> pd.DataFrame:
    """Parse feed text and keep only ``fields``, in that order.

    Header names are cleaned of bracket and quote noise before matching;
    cell values are left untouched.
    """
    fields = list(fields)
    if not text.strip():
        raise MalformedResponseError(f"Empty response body from {source}")
    try:
        table = pd.read_csv(
            io.StringIO(text),
            dtype=str,
            keep_default_na=False,
            skipinitialspace=True,
        )
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as error:
        raise MalformedResponseError(f"Response from {source} is not CSV: {error}") from error

    table.columns = [_clean_header(c) for c in table.columns]
    table = _drop_index_column(table)

    missing = [f for f in fields if f not in table.columns]
    if missing:
        raise SchemaError(
            f"Feed from {source} lacks requested fields {missing}; "
            f"got columns {list(table.columns)}"
        )
    return table.loc[:, fields].reset_index(drop=True)


# ---------------- Helpers ---------------- #

def _clean_header(name: object) -> str:
    return str(name).strip(_NOISE_CHARS)


def _drop_index_column(table: pd.DataFrame) -> pd.DataFrame:
    if len(table.columns) == 0:
        return table
    first = table.columns[0]
    if first == "" or first.startswith("Unnamed"):
        return table.drop(columns=first)
    return table


def _redact(message: str, secret: str | None) -> str:
    if not secret:
        return message
    return message.replace(secret, "***")
