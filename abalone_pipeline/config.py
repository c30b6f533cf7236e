import os
from dataclasses import dataclass, field
from pathlib import Path

# ===========================
# Dataset
# ===========================
DATA_URL = "https://archive.ics.uci.edu/ml/machine-learning-databases/abalone/abalone.data"

RAW_COLUMNS = [
    "sex", "length", "diameter", "height", "whole_weight",
    "shucked_weight", "viscera_weight", "shell_weight", "rings",
]
LABEL = "rings"

# Raw sex code -> one-hot column name (order is the column order)
SEX_COLUMNS = {"F": "female", "M": "male", "I": "infant"}

MEASUREMENT_COLUMNS = [c for c in RAW_COLUMNS if c not in ("sex", LABEL)]
PREPARED_COLUMNS = [LABEL, *SEX_COLUMNS.values(), *MEASUREMENT_COLUMNS]

TRAIN_FRACTION = 0.7
TEST_FRACTION_OF_REST = 0.5

# ===========================
# SageMaker
# ===========================
# Built-in XGBoost image per region
CONTAINERS = {
    "us-west-2": "433757028032.dkr.ecr.us-west-2.amazonaws.com/xgboost:latest",
    "us-east-1": "811284229777.dkr.ecr.us-east-1.amazonaws.com/xgboost:latest",
    "us-east-2": "825641698319.dkr.ecr.us-east-2.amazonaws.com/xgboost:latest",
    "eu-west-1": "685385470294.dkr.ecr.eu-west-1.amazonaws.com/xgboost:latest",
}

JOB_NAME_PREFIX = "sagemaker-train-xgboost"
ENDPOINT_NAME_PREFIX = "sagemaker-xgboost-abalone"

TRAIN_FILE = "abalone_train.csv"
VALIDATION_FILE = "abalone_valid.csv"
PREDICTIONS_FILE = "abalone_predictions.csv"


def _env_int(name: str, default=None):
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return int(value)


@dataclass(frozen=True)
class PipelineConfig:
    """Knobs for a single pipeline run."""

    role: str | None = None
    data_url: str = DATA_URL
    key_prefix: str = "data"
    output_prefix: str = "output"
    seed: int | None = None

    train_instance_type: str = "ml.m5.large"
    train_instance_count: int = 1
    train_volume_size: int = 5
    train_max_run: int = 3600
    input_mode: str = "File"
    hyperparameters: dict = field(default_factory=lambda: {"num_round": 100})

    endpoint_instance_type: str = "ml.t2.medium"
    endpoint_instance_count: int = 1

    batch_size: int = 500
    poll_interval: float = 30.0
    work_dir: Path = Path(".")

    @classmethod
    def from_env(cls, **overrides) -> "PipelineConfig":
        values = {
            "role": os.getenv("SAGEMAKER_ROLE"),
            "data_url": os.getenv("ABALONE_DATA_URL", DATA_URL),
            "key_prefix": os.getenv("ABALONE_KEY_PREFIX", "data"),
            "seed": _env_int("ABALONE_SEED"),
            "batch_size": _env_int("ABALONE_BATCH_SIZE", 500),
            "train_instance_type": os.getenv("ABALONE_TRAIN_INSTANCE_TYPE", "ml.m5.large"),
            "endpoint_instance_type": os.getenv("ABALONE_ENDPOINT_INSTANCE_TYPE", "ml.t2.medium"),
            "work_dir": Path(os.getenv("ABALONE_WORK_DIR", ".")),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
