"""
Pytest configuration and shared fixtures.

The store is an in-memory stand-in for the Supabase query builder, so run
state transitions can be asserted on rows instead of on mock calls.
"""

import copy
import threading
from unittest.mock import MagicMock

import pytest

from aip.core.dependencies import WorkerDeps
from aip.modules.credentials.broker import CredentialBroker
from aip.modules.credentials.schemas import ScopedCredentials
from aip.modules.jobs.queue import JobQueue
from aip.modules.jobs.schemas import JobEnvelope
from aip.modules.provisioning.driver import ProvisioningDriver
from aip.modules.provisioning.output_capturer import OutputCapturer
from aip.modules.provisioning.provisioner import ScriptedProvisioner
from aip.modules.runs.service import RunStateTracker


class FakeResponse:
    def __init__(self, data):
        self.data = data


class FakeQuery:
    """Supports the subset of the PostgREST builder the worker uses."""

    def __init__(self, store, table):
        self.store = store
        self.table = table
        self.op = "select"
        self.payload = None
        self.filters = []
        self.single = False
        self.row_limit = None

    def select(self, *columns):
        self.op = "select"
        return self

    def update(self, payload):
        self.op = "update"
        self.payload = payload
        return self

    def eq(self, column, value):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def neq(self, column, value):
        self.filters.append(lambda row: row.get(column) != value)
        return self

    def in_(self, column, values):
        values = list(values)
        self.filters.append(lambda row: row.get(column) in values)
        return self

    def is_(self, column, value):
        assert value == "null"
        self.filters.append(lambda row: row.get(column) is None)
        return self

    def limit(self, n):
        self.row_limit = n
        return self

    def maybe_single(self):
        self.single = True
        return self

    def execute(self):
        self.store.calls += 1
        if self.store.fail_with is not None:
            raise self.store.fail_with
        if self.store.fail_on_call == self.store.calls:
            raise ConnectionError(f"store request {self.store.calls} dropped")
        rows = [r for r in self.store.tables[self.table] if all(f(r) for f in self.filters)]
        if self.op == "update":
            for row in rows:
                row.update(copy.deepcopy(self.payload))
            self.store.writes.append((self.table, copy.deepcopy(self.payload)))
            return FakeResponse([dict(r) for r in rows])
        if self.single:
            return FakeResponse(dict(rows[0]) if rows else None)
        if self.row_limit is not None:
            rows = rows[:self.row_limit]
        return FakeResponse([dict(r) for r in rows])


class FakeSupabase:
    def __init__(self):
        self.tables = {"runs": [], "deployments": []}
        self.writes = []
        self.fail_with = None
        # 1-based index of a single request to fail
        self.fail_on_call = None
        self.calls = 0

    def table(self, name):
        return FakeQuery(self, name)

    def run(self, run_id):
        return next(r for r in self.tables["runs"] if r["id"] == run_id)

    def deployment(self, deployment_id):
        return next(d for d in self.tables["deployments"] if d["id"] == deployment_id)


PREVIOUS_OUTPUTS = {"cluster_arn": {"value": "arn:aws:ecs:ap-northeast-1:123456789012:cluster/old"}}


@pytest.fixture
def fake_supabase():
    store = FakeSupabase()
    store.tables["deployments"] = [
        {"id": 7, "blueprint_id": 1, "environment_id": 3, "status": "active", "outputs_json": copy.deepcopy(PREVIOUS_OUTPUTS)},
        {"id": 8, "blueprint_id": 1, "environment_id": 4, "status": "active", "outputs_json": None},
    ]
    store.tables["runs"] = [
        {"id": 42, "deployment_id": 7, "action": "apply", "status": "queued", "summary": None, "started_at": None, "finished_at": None},
        {"id": 43, "deployment_id": 7, "action": "plan", "status": "queued", "summary": None, "started_at": None, "finished_at": None},
        {"id": 50, "deployment_id": 8, "action": "plan", "status": "queued", "summary": None, "started_at": None, "finished_at": None},
    ]
    return store


@pytest.fixture
def tracker(fake_supabase):
    return RunStateTracker(fake_supabase)


@pytest.fixture
def credentials():
    return ScopedCredentials(
        access_key_id="ASIAEXAMPLEKEY000001",
        secret_access_key="very-secret-access-key",
        session_token="very-secret-session-token",
        region="us-east-1",
    )


@pytest.fixture
def make_job():
    def _make(**overrides):
        data = {
            "run_id": 42,
            "action": "apply",
            "blueprint_key": "ecs-service",
            "version": "1.0",
            "inputs": {"replica_count": 3},
            "aws": {
                "roleArn": "arn:aws:iam::123456789012:role/deploy",
                "externalId": "ext-1",
                "region": "us-east-1",
            },
        }
        data.update(overrides)
        return JobEnvelope.model_validate(data)
    return _make


@pytest.fixture
def modules_root(tmp_path):
    root = tmp_path / "modules"
    (root / "ecs-service").mkdir(parents=True)
    return root


@pytest.fixture
def provisioner():
    return ScriptedProvisioner()


@pytest.fixture
def stop_event():
    return threading.Event()


@pytest.fixture
def driver(provisioner, modules_root, stop_event):
    return ProvisioningDriver(
        provisioner,
        modules_root=str(modules_root),
        blueprint_modules={"ecs-service": "ecs-service", "rds-postgres": "rds-postgres"},
        prepare_timeout=300,
        apply_timeout=600,
        output_timeout=120,
        stop_event=stop_event,
    )


@pytest.fixture
def broker(credentials):
    mock = MagicMock(spec=CredentialBroker)
    mock.assume_role.return_value = credentials
    return mock


@pytest.fixture
def queue():
    mock = MagicMock(spec=JobQueue)
    mock.name = "aip:jobs"
    mock.dequeue.return_value = None
    return mock


@pytest.fixture
def deps(queue, tracker, broker, driver, stop_event):
    return WorkerDeps(
        queue=queue,
        tracker=tracker,
        broker=broker,
        driver=driver,
        capturer=OutputCapturer(driver),
        stop_event=stop_event,
    )
