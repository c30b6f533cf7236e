import logging
import threading
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol

from sagemaker.estimator import Estimator
from sagemaker.inputs import TrainingInput

from abalone_pipeline.config import CONTAINERS, JOB_NAME_PREFIX, PipelineConfig
from abalone_pipeline.errors import Cancelled, TrainingFailedError, UnsupportedRegionError

logger = logging.getLogger(__name__)

TERMINAL_FAILURES = ("Failed", "Stopped")


@dataclass(frozen=True)
class Channel:
    uri: str
    content_type: str = "csv"


@dataclass(frozen=True)
class TrainingRequest:
    job_name: str
    image_uri: str
    role: str
    output_path: str
    channels: dict
    hyperparameters: dict = field(default_factory=dict)
    instance_count: int = 1
    instance_type: str = "ml.m5.large"
    volume_size: int = 5
    max_run: int = 3600
    input_mode: str = "File"


@dataclass(frozen=True)
class JobStatus:
    status: str
    model_artifact: str | None = None
    failure_reason: str | None = None


class TrainingService(Protocol):
    def submit(self, request: TrainingRequest) -> None: ...

    def describe(self, job_name: str) -> JobStatus: ...

    def stop(self, job_name: str) -> None: ...


def container_for(region: str) -> str:
    try:
        return CONTAINERS[region]
    except KeyError:
        raise UnsupportedRegionError(
            f"No XGBoost container for region {region!r}; supported: {sorted(CONTAINERS)}"
        ) from None


def unique_name(prefix: str, now: datetime | None = None) -> str:
    # Wall-clock seconds alone collide when two runs start in the same second
    now = now or datetime.now()
    return f"{prefix}-{now:%H-%M-%S}-{uuid.uuid4().hex[:6]}"


def job_name(now: datetime | None = None) -> str:
    return unique_name(JOB_NAME_PREFIX, now)


def build_request(config: PipelineConfig, image_uri: str, role: str, bucket: str,
                  train_uri: str, validation_uri: str, name: str | None = None) -> TrainingRequest:
    return TrainingRequest(
        job_name=name or job_name(),
        image_uri=image_uri,
        role=role,
        output_path=f"s3://{bucket}/{config.output_prefix}",
        channels={
            "train": Channel(train_uri, content_type="csv"),
            "validation": Channel(validation_uri, content_type="csv"),
        },
        hyperparameters=dict(config.hyperparameters),
        instance_count=config.train_instance_count,
        instance_type=config.train_instance_type,
        volume_size=config.train_volume_size,
        max_run=config.train_max_run,
        input_mode=config.input_mode,
    )


def train(service: TrainingService, request: TrainingRequest,
          cancel: threading.Event | None = None, poll_interval: float = 30.0) -> str:
    """Submit a training job and block until it finishes.

    Returns the S3 location of the model artifact. Setting ``cancel`` stops the
    remote job and raises Cancelled.
    """
    cancel = cancel or threading.Event()
    if cancel.is_set():
        raise Cancelled(f"Training job {request.job_name} cancelled before submission")

    try:
        service.submit(request)
    except Exception as e:
        raise TrainingFailedError(f"Could not submit training job {request.job_name}: {e}") from e
    logger.info(f"Submitted training job {request.job_name}")

    last_status = None
    while True:
        try:
            status = service.describe(request.job_name)
        except Exception as e:
            _stop_quietly(service, request.job_name)
            raise TrainingFailedError(f"Could not read status of training job {request.job_name}: {e}") from e

        if status.status != last_status:
            logger.info(f"Training job {request.job_name}: {status.status}")
            last_status = status.status

        if status.status == "Completed":
            if not status.model_artifact:
                raise TrainingFailedError(f"Training job {request.job_name} completed without a model artifact")
            logger.info(f"Model artifact: {status.model_artifact}")
            return status.model_artifact
        if status.status in TERMINAL_FAILURES:
            raise TrainingFailedError(
                f"Training job {request.job_name} {status.status.lower()}: {status.failure_reason or 'no reason given'}"
            )

        if cancel.wait(poll_interval):
            _stop_quietly(service, request.job_name)
            raise Cancelled(f"Training job {request.job_name} cancelled")


def _stop_quietly(service: TrainingService, name: str) -> None:
    try:
        service.stop(name)
        logger.info(f"Requested stop of training job {name}")
    except Exception as e:
        logger.warning(f"Could not stop training job {name}: {e}")


# ===========================
# SageMaker backend
# ===========================
class SageMakerTrainingService:
    """TrainingService backed by the SageMaker Python SDK."""

    def __init__(self, sagemaker_session):
        self.sagemaker_session = sagemaker_session

    def submit(self, request: TrainingRequest) -> None:
        estimator = Estimator(
            image_uri=request.image_uri,
            role=request.role,
            instance_count=request.instance_count,
            instance_type=request.instance_type,
            volume_size=request.volume_size,
            max_run=request.max_run,
            input_mode=request.input_mode,
            output_path=request.output_path,
            sagemaker_session=self.sagemaker_session,
        )
        estimator.set_hyperparameters(**request.hyperparameters)

        inputs = {
            name: TrainingInput(s3_data=channel.uri, content_type=channel.content_type)
            for name, channel in request.channels.items()
        }
        estimator.fit(inputs=inputs, job_name=request.job_name, wait=False, logs=False)

    def describe(self, job_name: str) -> JobStatus:
        desc = self.sagemaker_session.sagemaker_client.describe_training_job(TrainingJobName=job_name)
        return JobStatus(
            status=desc["TrainingJobStatus"],
            model_artifact=desc.get("ModelArtifacts", {}).get("S3ModelArtifacts"),
            failure_reason=desc.get("FailureReason"),
        )

    def stop(self, job_name: str) -> None:
        self.sagemaker_session.sagemaker_client.stop_training_job(TrainingJobName=job_name)
