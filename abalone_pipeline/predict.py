import logging
import re

import numpy as np
import pandas as pd

from abalone_pipeline.errors import ParseError, RangeError

logger = logging.getLogger(__name__)

PREDICTION_COLUMN = "predicted_rings"
DEFAULT_BATCH_SIZE = 500

# The tutorial container answers "a,b,c"; newer XGBoost images put one value per line
_SEPARATORS = re.compile(r"[,\n]")


def serialize_rows(rows: pd.DataFrame) -> str:
    return rows.to_csv(header=False, index=False).rstrip("\n")


def parse_predictions(body, expected: int) -> np.ndarray:
    if isinstance(body, bytes):
        body = body.decode("utf-8")

    tokens = _SEPARATORS.split(body.strip())
    try:
        values = np.array([float(t) for t in tokens], dtype=np.float64)
    except ValueError as e:
        raise ParseError(f"Non-numeric prediction in endpoint response: {e}") from e

    if len(values) != expected:
        raise ParseError(f"Endpoint returned {len(values)} predictions for {expected} rows")
    return values


def merge(rows: pd.DataFrame, predictions: np.ndarray) -> pd.DataFrame:
    result = rows.copy()
    result.insert(0, PREDICTION_COLUMN, predictions)
    return result


def predict(service, handle, features: pd.DataFrame, batch_size: int = DEFAULT_BATCH_SIZE) -> pd.DataFrame:
    """Score the first ``batch_size`` label-free rows on the endpoint.

    Returns those rows with the predictions as the leading column.
    """
    if not 1 <= batch_size <= len(features):
        raise RangeError(f"batch_size must be between 1 and {len(features)}, got {batch_size}")

    rows = features.iloc[:batch_size]
    body = service.invoke(handle.name, serialize_rows(rows), handle.content_type)
    predictions = parse_predictions(body, expected=batch_size)

    logger.info(f"Received {len(predictions)} predictions from {handle.name}")
    return merge(rows, predictions)
