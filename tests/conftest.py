from types import SimpleNamespace

import pytest

from abalone_pipeline.session import Connection
from abalone_pipeline.train import JobStatus

SAMPLE_CSV = """\
M,0.455,0.365,0.095,0.514,0.2245,0.101,0.15,15
M,0.35,0.265,0.09,0.2255,0.0995,0.0485,0.07,7
F,0.53,0.42,0.135,0.677,0.2565,0.1415,0.21,9
M,0.44,0.365,0.125,0.516,0.2155,0.114,0.155,10
I,0.33,0.255,0.08,0.205,0.0895,0.0395,0.055,7
I,0.425,0.3,0.095,0.3515,0.141,0.0775,0.12,8
F,0.53,0.415,0.15,0.7775,0.237,0.1415,0.33,20
F,0.545,0.425,0.125,0.768,0.294,0.1495,0.26,16
M,0.475,0.37,0.125,0.5095,0.2165,0.1125,0.165,9
F,0.55,0.44,0.15,0.8945,0.3145,0.151,0.32,19
F,0.525,0.38,0.14,0.6065,0.194,0.1475,0.21,14
I,0.43,0.34,0,0.428,0.2065,0.086,0.115,8
M,0.49,0.38,0.135,0.5415,0.2175,0.095,0.19,11
F,0.535,0.405,0.145,0.6845,0.2725,0.171,0.205,10
F,0.47,0.355,0.1,0.4755,0.1675,0.0805,0.185,10
M,0.5,0.4,0.13,0.6645,0.258,0.133,0.24,12
I,0.355,0.28,0.085,0.2905,0.095,0.0395,0.115,7
F,0.44,0.34,0.1,0.451,0.188,0.087,0.13,10
M,0.365,0.295,0.08,0.2555,0.097,0.043,0.1,7
M,0.45,0.32,0.1,0.381,0.1705,0.075,0.115,9
"""


@pytest.fixture
def sample_csv() -> str:
    return SAMPLE_CSV


class FakeSession:
    boto_region_name = "us-west-2"

    def __init__(self, fail=None):
        self.uploads = []
        self.fail = fail

    def upload_data(self, path, bucket, key_prefix):
        if self.fail is not None:
            raise self.fail
        with open(path, encoding="utf-8") as f:
            self.uploads.append(SimpleNamespace(path=path, bucket=bucket, key_prefix=key_prefix, body=f.read()))
        return f"s3://{bucket}/{key_prefix}/{path.rsplit('/', 1)[-1]}"


class FakeTrainingService:
    def __init__(self, statuses=None, submit_error=None):
        self.statuses = list(statuses or [
            JobStatus("InProgress"),
            JobStatus("Completed", model_artifact="s3://bucket/output/job/output/model.tar.gz"),
        ])
        self.submit_error = submit_error
        self.submitted = []
        self.stopped = []

    def submit(self, request):
        if self.submit_error is not None:
            raise self.submit_error
        self.submitted.append(request)

    def describe(self, job_name):
        if len(self.statuses) > 1:
            return self.statuses.pop(0)
        return self.statuses[0]

    def stop(self, job_name):
        self.stopped.append(job_name)


class FakeHostingService:
    def __init__(self, statuses=("Creating", "InService"), response=None, delete_error=None):
        self.statuses = list(statuses)
        self.response = response
        self.delete_error = delete_error
        self.created = []
        self.invocations = []
        self.deleted = []

    def create(self, name, model_artifact, instance_type, instance_count):
        self.created.append((name, model_artifact, instance_type, instance_count))

    def describe(self, name):
        if len(self.statuses) > 1:
            return self.statuses.pop(0)
        return self.statuses[0]

    def invoke(self, name, payload, content_type):
        rows = payload.split("\n")
        self.invocations.append((name, payload, content_type))
        if self.response is not None:
            return self.response
        return ",".join(str(float(i) + 0.5) for i in range(len(rows)))

    def delete(self, name):
        self.deleted.append(name)
        if self.delete_error is not None:
            raise self.delete_error


@pytest.fixture
def fake_session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def fake_connect(fake_session):
    def _connect(role=None):
        return Connection(fake_session, "test-bucket", "arn:aws:iam::123456789012:role/test")
    return _connect


@pytest.fixture(autouse=True)
def no_slack(monkeypatch):
    monkeypatch.delenv("SLACK_CHANNEL", raising=False)
    monkeypatch.delenv("SLACK_TOKEN", raising=False)
