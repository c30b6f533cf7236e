import logging
from pathlib import Path

import pandas as pd
from boto3.exceptions import S3UploadFailedError
from botocore.exceptions import BotoCoreError, ClientError

from abalone_pipeline.dataset import write_csv
from abalone_pipeline.errors import UploadError

logger = logging.getLogger(__name__)


def upload(df: pd.DataFrame, bucket: str, key_prefix: str, session, filename: str, work_dir=".") -> str:
    """Write ``df`` as headerless CSV under ``work_dir`` and copy it to s3://bucket/key_prefix/filename.

    ``session`` is anything with SageMaker's ``upload_data(path, bucket, key_prefix)``.
    Returns the S3 URI.
    """
    local_path = Path(work_dir) / filename
    try:
        write_csv(df, local_path)
        s3_uri = session.upload_data(path=str(local_path), bucket=bucket, key_prefix=key_prefix)
    except (OSError, BotoCoreError, ClientError, S3UploadFailedError) as e:
        raise UploadError(f"Upload of {local_path} to s3://{bucket}/{key_prefix} failed: {e}") from e

    logger.info(f"Uploaded {len(df)} rows to {s3_uri}")
    return s3_uri
