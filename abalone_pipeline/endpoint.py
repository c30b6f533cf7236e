"""Hosted inference endpoint: deploy, invoke, and guaranteed teardown."""

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Protocol

from botocore.exceptions import BotoCoreError, ClientError
from sagemaker.deserializers import StringDeserializer
from sagemaker.model import Model
from sagemaker.predictor import Predictor
from sagemaker.serializers import IdentitySerializer

from abalone_pipeline.config import ENDPOINT_NAME_PREFIX
from abalone_pipeline.errors import Cancelled, DeploymentError, InvocationError
from abalone_pipeline.notify import send_to_slack
from abalone_pipeline.train import unique_name

logger = logging.getLogger(__name__)

FAILED_STATUSES = ("Failed", "OutOfService")


@dataclass
class EndpointHandle:
    name: str
    content_type: str = "text/csv"
    deleted: bool = False


class HostingService(Protocol):
    def create(self, name: str, model_artifact: str, instance_type: str, instance_count: int) -> None: ...

    def describe(self, name: str) -> str: ...

    def invoke(self, name: str, payload: str, content_type: str) -> str: ...

    def delete(self, name: str) -> None: ...


def endpoint_name() -> str:
    return unique_name(ENDPOINT_NAME_PREFIX)


def deploy(service: HostingService, model_artifact: str, instance_type: str = "ml.t2.medium",
           count: int = 1, name: str | None = None, cancel: threading.Event | None = None,
           poll_interval: float = 30.0) -> EndpointHandle:
    """Create an endpoint from ``model_artifact`` and block until it is InService."""
    handle = EndpointHandle(name or endpoint_name())
    cancel = cancel or threading.Event()
    if cancel.is_set():
        raise Cancelled(f"Deployment of {handle.name} cancelled before creation")

    try:
        service.create(handle.name, model_artifact, instance_type, count)
    except Exception as e:
        raise DeploymentError(f"Could not create endpoint {handle.name}: {e}") from e
    logger.info(f"Creating endpoint {handle.name} ({count} x {instance_type})")

    # Once created, any exit from the wait deletes the endpoint
    try:
        _wait_in_service(service, handle, cancel, poll_interval)
    except BaseException:
        delete_endpoint(service, handle)
        raise
    return handle


def _wait_in_service(service: HostingService, handle: EndpointHandle,
                     cancel: threading.Event, poll_interval: float) -> None:
    last_status = None
    while True:
        try:
            status = service.describe(handle.name)
        except Exception as e:
            raise DeploymentError(f"Could not read status of endpoint {handle.name}: {e}") from e

        if status != last_status:
            logger.info(f"Endpoint {handle.name}: {status}")
            last_status = status

        if status == "InService":
            return
        if status in FAILED_STATUSES:
            raise DeploymentError(f"Endpoint {handle.name} provisioning ended in status {status}")

        if cancel.wait(poll_interval):
            raise Cancelled(f"Deployment of {handle.name} cancelled")


def delete_endpoint(service: HostingService, handle: EndpointHandle) -> bool:
    """Delete the endpoint once. Never raises; a failure is logged and alerted."""
    if handle.deleted:
        return True
    try:
        service.delete(handle.name)
    except Exception as e:
        message = f"Failed to delete endpoint {handle.name}, it is still billing: {e}"
        logger.warning(message)
        send_to_slack(f"*Abalone pipeline:* {message}")
        return False

    handle.deleted = True
    logger.info(f"Deleted endpoint {handle.name}")
    return True


@contextmanager
def hosted_endpoint(service: HostingService, model_artifact: str, instance_type: str = "ml.t2.medium",
                    count: int = 1, name: str | None = None, cancel: threading.Event | None = None,
                    poll_interval: float = 30.0) -> Iterator[EndpointHandle]:
    handle = deploy(service, model_artifact, instance_type, count,
                    name=name, cancel=cancel, poll_interval=poll_interval)
    try:
        yield handle
    finally:
        delete_endpoint(service, handle)


# ===========================
# SageMaker backend
# ===========================
class SageMakerHostingService:
    """HostingService backed by the SageMaker Python SDK."""

    def __init__(self, sagemaker_session, image_uri: str, role: str):
        self.sagemaker_session = sagemaker_session
        self.image_uri = image_uri
        self.role = role

    def _predictor(self, name: str, content_type: str = "text/csv") -> Predictor:
        return Predictor(
            endpoint_name=name,
            sagemaker_session=self.sagemaker_session,
            serializer=IdentitySerializer(content_type=content_type),
            deserializer=StringDeserializer(),
        )

    def create(self, name: str, model_artifact: str, instance_type: str, instance_count: int) -> None:
        model = Model(
            image_uri=self.image_uri,
            model_data=model_artifact,
            role=self.role,
            name=name,
            sagemaker_session=self.sagemaker_session,
        )
        model.deploy(
            initial_instance_count=instance_count,
            instance_type=instance_type,
            endpoint_name=name,
            wait=False,
        )

    def describe(self, name: str) -> str:
        desc = self.sagemaker_session.sagemaker_client.describe_endpoint(EndpointName=name)
        return desc["EndpointStatus"]

    def invoke(self, name: str, payload: str, content_type: str) -> str:
        try:
            return self._predictor(name, content_type).predict(payload)
        except (BotoCoreError, ClientError) as e:
            raise InvocationError(f"Invoking endpoint {name} failed: {e}") from e

    def delete(self, name: str) -> None:
        self._predictor(name).delete_endpoint(delete_endpoint_config=True)
        # create() registers the model under the endpoint name
        self.sagemaker_session.delete_model(name)
