"""Fetch the abalone CSV and move datasets in and out of headerless CSV."""

import csv
import io
import logging
import math
import urllib.error
import urllib.request
from pathlib import Path

import pandas as pd

from abalone_pipeline.config import DATA_URL, LABEL, RAW_COLUMNS, SEX_COLUMNS
from abalone_pipeline.errors import FetchError, ParseError

logger = logging.getLogger(__name__)


def fetch(url: str = DATA_URL, timeout: float = 60.0) -> str:
    req = urllib.request.Request(url, headers={"User-Agent": "abalone-pipeline"})
    try:
        with urllib.request.urlopen(req, timeout=timeout) as response:
            if response.status != 200:
                raise FetchError(f"GET {url} returned HTTP {response.status}")
            body = response.read()
    except urllib.error.HTTPError as e:
        raise FetchError(f"GET {url} returned HTTP {e.code}") from e
    except (urllib.error.URLError, OSError) as e:
        raise FetchError(f"GET {url} failed: {e}") from e

    logger.info(f"Fetched {len(body)} bytes from {url}")
    try:
        return body.decode("utf-8")
    except UnicodeDecodeError as e:
        raise ParseError(f"Response from {url} is not valid UTF-8: {e}") from e


def parse(text: str) -> pd.DataFrame:
    """Parse headerless abalone CSV into a typed frame with RAW_COLUMNS."""
    rows = []
    for line_no, parts in enumerate(csv.reader(io.StringIO(text)), start=1):
        if not parts or all(not p.strip() for p in parts):
            continue
        if len(parts) != len(RAW_COLUMNS):
            raise ParseError(f"Line {line_no}: expected {len(RAW_COLUMNS)} columns, got {len(parts)}")

        sex = parts[0].strip()
        if sex not in SEX_COLUMNS:
            raise ParseError(f"Line {line_no}: unknown sex code {sex!r}")
        try:
            values = [float(v) for v in parts[1:]]
        except ValueError as e:
            raise ParseError(f"Line {line_no}: non-numeric value ({e})") from e
        if not all(math.isfinite(v) for v in values):
            raise ParseError(f"Line {line_no}: non-finite value in {parts[1:]}")
        if not values[-1].is_integer():
            raise ParseError(f"Line {line_no}: {LABEL} must be an integer, got {parts[-1]!r}")

        rows.append([sex, *values])

    df = pd.DataFrame(rows, columns=RAW_COLUMNS)
    df[LABEL] = df[LABEL].astype("int64")
    return df


def load(url: str = DATA_URL, timeout: float = 60.0) -> pd.DataFrame:
    df = parse(fetch(url, timeout=timeout))
    logger.info(f"Loaded {len(df)} abalone records")
    return df


def write_csv(df: pd.DataFrame, path) -> Path:
    # No header, no index: the training container reads the label from column 0
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, header=False, index=False)
    return path


def read_csv(path, columns) -> pd.DataFrame:
    return pd.read_csv(path, header=None, names=list(columns))
