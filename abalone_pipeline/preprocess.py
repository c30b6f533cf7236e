import logging
import time
from typing import NamedTuple

import numpy as np
import pandas as pd

from abalone_pipeline.config import (
    LABEL,
    PREPARED_COLUMNS,
    SEX_COLUMNS,
    TEST_FRACTION_OF_REST,
    TRAIN_FRACTION,
)

logger = logging.getLogger(__name__)


class Partitions(NamedTuple):
    train: pd.DataFrame
    validation: pd.DataFrame
    test: pd.DataFrame
    seed: int


def drop_zero_height(df: pd.DataFrame) -> pd.DataFrame:
    # height == 0 rows are measurement artifacts
    return df[df["height"] != 0]


def one_hot_sex(df: pd.DataFrame) -> pd.DataFrame:
    out = df.copy()
    for code, name in SEX_COLUMNS.items():
        out[name] = (out["sex"] == code).astype("int64")
    return out.drop(columns="sex")


def reorder_columns(df: pd.DataFrame) -> pd.DataFrame:
    return df[PREPARED_COLUMNS]


def clean(df: pd.DataFrame) -> pd.DataFrame:
    """Filter, encode and reorder; the label ends up in column 0."""
    return reorder_columns(one_hot_sex(drop_zero_height(df)))


def split(df: pd.DataFrame, seed: int) -> tuple[pd.DataFrame, pd.DataFrame, pd.DataFrame]:
    """70% train; the remaining 30% halved into test and validation.

    Rows keep their original index, so partitions are disjoint by index.
    """
    rng = np.random.default_rng(seed)
    train = df.sample(frac=TRAIN_FRACTION, random_state=rng)
    rest = df.drop(index=train.index)
    test = rest.sample(frac=TEST_FRACTION_OF_REST, random_state=rng)
    validation = rest.drop(index=test.index)
    return train, validation, test


def prepare(df: pd.DataFrame, seed: int | None = None) -> Partitions:
    if seed is None:
        seed = time.time_ns() % (2**32)
        logger.info(f"No seed given, using {seed}")

    cleaned = clean(df)
    dropped = len(df) - len(cleaned)
    if dropped:
        logger.info(f"Dropped {dropped} rows with height == 0")

    train, validation, test = split(cleaned, seed)
    logger.info(f"Partitions: train={len(train)} validation={len(validation)} test={len(test)}")
    return Partitions(train, validation, test, seed)


def features(df: pd.DataFrame) -> pd.DataFrame:
    return df.drop(columns=LABEL)
