"""End-to-end abalone run: load -> prepare -> upload -> train -> deploy -> predict -> teardown.

Example usage:
  python -m abalone_pipeline --role SageMakerRole -v
  python -m abalone_pipeline --seed 42 --batch-size 100 --work-dir runs/
"""

import argparse
import json
import logging
import signal
import threading
from contextlib import ExitStack, contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

import pandas as pd

from abalone_pipeline.config import PREDICTIONS_FILE, TRAIN_FILE, VALIDATION_FILE, PipelineConfig
from abalone_pipeline.dataset import load
from abalone_pipeline.endpoint import SageMakerHostingService, hosted_endpoint
from abalone_pipeline.errors import StepFailed
from abalone_pipeline.notify import format_failure, send_to_slack
from abalone_pipeline.predict import predict
from abalone_pipeline.preprocess import features, prepare
from abalone_pipeline.session import connect
from abalone_pipeline.train import SageMakerTrainingService, build_request, container_for, train
from abalone_pipeline.upload import upload

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    predictions: pd.DataFrame
    model_artifact: str
    job_name: str
    endpoint_name: str
    seed: int
    completed_steps: list
    predictions_path: Path | None = None


def setup_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )


@contextmanager
def _step(name: str, completed: list):
    logger.info(f"==> {name}")
    try:
        yield
    except StepFailed:
        raise
    except Exception as e:
        logger.error(f"Step {name} failed: {e}")
        raise StepFailed(name, e, completed) from e
    completed.append(name)


def run_pipeline(config: PipelineConfig, connect_fn=connect, loader=load,
                 training=None, hosting=None, cancel: threading.Event | None = None) -> PipelineResult:
    """Run every step once, in order.

    ``training`` and ``hosting`` default to the SageMaker-backed services built from
    the connected session. The endpoint is deleted on every exit path once created.
    """
    completed = []
    handle = None
    work_dir = Path(config.work_dir)

    try:
        # ===========================
        # 1. Session / bucket / role
        # ===========================
        with _step("connect", completed):
            conn = connect_fn(config.role)
            region = conn.session.boto_region_name

        # ===========================
        # 2-3. Load and prepare data
        # ===========================
        with _step("load", completed):
            raw = loader(config.data_url)

        with _step("prepare", completed):
            partitions = prepare(raw, seed=config.seed)

        # ===========================
        # 4. Upload channels to S3
        # ===========================
        with _step("upload", completed):
            train_uri = upload(partitions.train, conn.bucket, config.key_prefix, conn.session,
                               TRAIN_FILE, work_dir)
            validation_uri = upload(partitions.validation, conn.bucket, config.key_prefix, conn.session,
                                    VALIDATION_FILE, work_dir)

        # ===========================
        # 5. Managed training job
        # ===========================
        with _step("train", completed):
            image_uri = container_for(region)
            if training is None:
                training = SageMakerTrainingService(conn.session)
            request = build_request(config, image_uri, conn.role_arn, conn.bucket, train_uri, validation_uri)
            model_artifact = train(training, request, cancel=cancel, poll_interval=config.poll_interval)

        # ===========================
        # 6-8. Deploy, predict, tear down
        # ===========================
        if hosting is None:
            hosting = SageMakerHostingService(conn.session, image_uri, conn.role_arn)
        with ExitStack() as stack:
            with _step("deploy", completed):
                handle = stack.enter_context(hosted_endpoint(
                    hosting, model_artifact,
                    instance_type=config.endpoint_instance_type,
                    count=config.endpoint_instance_count,
                    cancel=cancel,
                    poll_interval=config.poll_interval,
                ))
            with _step("predict", completed):
                scored = predict(hosting, handle, features(partitions.test), batch_size=config.batch_size)
    except StepFailed as failure:
        if handle is not None and handle.deleted:
            failure.completed_steps.append("teardown")
        raise

    if handle.deleted:
        completed.append("teardown")

    with _step("save", completed):
        work_dir.mkdir(parents=True, exist_ok=True)
        predictions_path = work_dir / PREDICTIONS_FILE
        scored.to_csv(predictions_path, index=False)

    return PipelineResult(
        predictions=scored,
        model_artifact=model_artifact,
        job_name=request.job_name,
        endpoint_name=handle.name,
        seed=partitions.seed,
        completed_steps=completed,
        predictions_path=predictions_path,
    )


# ===========================
# CLI
# ===========================
def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="abalone-pipeline",
        description="Train and serve an XGBoost abalone model on SageMaker, score a test batch, then delete the endpoint.",
    )
    p.add_argument("-v", "--verbose", action="count", default=0, help="Increase verbosity (-v, -vv).")
    p.add_argument("--role", help="Execution role name or ARN (default: SAGEMAKER_ROLE or the notebook role)")
    p.add_argument("--data-url", help="Headerless abalone CSV URL")
    p.add_argument("--key-prefix", help="S3 key prefix for the uploaded channels")
    p.add_argument("--seed", type=int, help="Seed for the train/validation/test split")
    p.add_argument("--batch-size", type=int, help="Number of test rows to score (default 500)")
    p.add_argument("--train-instance-type")
    p.add_argument("--endpoint-instance-type")
    p.add_argument("--work-dir", type=Path, help="Where CSVs and predictions are written")
    p.add_argument("--poll-interval", type=float, help="Seconds between job/endpoint status checks")
    return p


def _install_cancel_handler(cancel: threading.Event) -> None:
    # First Ctrl-C cancels the remote job/endpoint, the second one aborts
    def handler(signum, frame):
        if cancel.is_set():
            raise KeyboardInterrupt
        logger.warning("Cancellation requested, stopping remote work...")
        cancel.set()

    signal.signal(signal.SIGINT, handler)


def main(argv: Iterable[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    setup_logging(args.verbose)

    config = PipelineConfig.from_env(
        role=args.role,
        data_url=args.data_url,
        key_prefix=args.key_prefix,
        seed=args.seed,
        batch_size=args.batch_size,
        train_instance_type=args.train_instance_type,
        endpoint_instance_type=args.endpoint_instance_type,
        work_dir=args.work_dir,
        poll_interval=args.poll_interval,
    )

    cancel = threading.Event()
    _install_cancel_handler(cancel)

    try:
        result = run_pipeline(config, cancel=cancel)
    except StepFailed as failure:
        report = failure.to_dict()
        print(json.dumps(report, indent=2))
        send_to_slack(format_failure(report))
        return 1

    print(result.predictions.head().to_string())
    print(f"✅ {len(result.predictions)} predictions written to {result.predictions_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
