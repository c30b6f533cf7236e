import logging
from typing import NamedTuple

import sagemaker
from botocore.exceptions import BotoCoreError, ClientError

from abalone_pipeline.errors import AuthenticationError

logger = logging.getLogger(__name__)


class Connection(NamedTuple):
    session: sagemaker.Session
    bucket: str
    role_arn: str


def resolve_role(sagemaker_session, role=None) -> str:
    # No role given: use the one attached to the notebook / training host
    if not role:
        return sagemaker.get_execution_role(sagemaker_session)
    if role.startswith("arn:"):
        return role
    return sagemaker_session.expand_role(role)


def connect(role=None) -> Connection:
    """Open a SageMaker session, resolve the execution role and the default bucket."""
    try:
        sagemaker_session = sagemaker.Session()
        role_arn = resolve_role(sagemaker_session, role)
        bucket = sagemaker_session.default_bucket()
    except (BotoCoreError, ClientError, ValueError) as e:
        raise AuthenticationError(f"Could not resolve SageMaker role/session: {e}") from e

    logger.info(f"Region: {sagemaker_session.boto_region_name}")
    logger.info(f"Role: {role_arn}")
    logger.info(f"Bucket: {bucket}")
    return Connection(sagemaker_session, bucket, role_arn)
