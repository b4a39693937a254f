"""
Tests for job envelope decoding.
"""

import json

import pytest
from pydantic import ValidationError

from aip.core.errors import DecodeError
from aip.modules.jobs.schemas import JobAction, JobEnvelope, decode_job


EXAMPLE = (
    '{"run_id":42,"action":"apply","blueprint_key":"ecs-service","version":"1.0",'
    '"inputs":{"replica_count":3},"aws":{"roleArn":"arn:aws:iam::123456789012:role/deploy",'
    '"externalId":"ext-1","region":"us-east-1"}}'
)


class TestDecodeJob:
    def test_decodes_wire_field_names(self):
        job = decode_job(EXAMPLE)

        assert job.run_id == 42
        assert job.action == JobAction.APPLY.value
        assert job.template_key == "ecs-service"
        assert job.template_version == "1.0"
        assert job.inputs == {"replica_count": 3}
        assert job.role_descriptor.role_arn == "arn:aws:iam::123456789012:role/deploy"
        assert job.role_descriptor.external_id == "ext-1"
        assert job.role_descriptor.region == "us-east-1"

    def test_accepts_bytes(self):
        assert decode_job(EXAMPLE.encode()).run_id == 42

    def test_missing_optional_sections_default_to_empty(self):
        job = decode_job('{"run_id": 5, "action": "plan", "blueprint_key": "ecs-service"}')

        assert job.inputs == {}
        assert job.role_descriptor.role_arn == ""
        assert job.role_descriptor.external_id == ""
        assert job.role_descriptor.region == ""

    def test_null_sections_default_to_empty(self):
        job = decode_job('{"run_id": 5, "action": "plan", "inputs": null, "aws": {"roleArn": "x", "region": null}}')

        assert job.inputs == {}
        assert job.role_descriptor.role_arn == "x"
        assert job.role_descriptor.region == ""

    def test_unknown_action_is_kept_as_is(self):
        job = decode_job('{"run_id": 5, "action": "destroy"}')
        assert job.action == "destroy"

    @pytest.mark.parametrize("payload", [
        "not json at all",
        "",
        "[1, 2, 3]",
        '"just a string"',
        '{"action": "plan"}',
        '{"run_id": "forty-two", "action": "plan"}',
        '{"run_id": 42}',
        '{"run_id": 42, "action": "plan", "inputs": [1, 2]}',
    ])
    def test_malformed_payload_raises_decode_error(self, payload):
        with pytest.raises(DecodeError):
            decode_job(payload)

    def test_non_utf8_bytes_raise_decode_error(self):
        with pytest.raises(DecodeError, match="not UTF-8"):
            decode_job(b"\xff\xfe garbage")


class TestJobEnvelope:
    def test_is_immutable(self):
        job = decode_job(EXAMPLE)
        with pytest.raises(ValidationError):
            job.run_id = 43

    def test_to_wire_uses_wire_field_names(self):
        wire = json.loads(decode_job(EXAMPLE).to_wire())

        assert wire["blueprint_key"] == "ecs-service"
        assert wire["version"] == "1.0"
        assert wire["aws"] == {
            "roleArn": "arn:aws:iam::123456789012:role/deploy",
            "externalId": "ext-1",
            "region": "us-east-1",
        }
        assert "template_key" not in wire

    def test_describe(self):
        assert decode_job(EXAMPLE).describe() == "run=42 action=apply blueprint=ecs-service@1.0"

    def test_accepts_python_field_names(self):
        job = JobEnvelope(run_id=1, action="plan", template_key="ecs-service", template_version="2.0")
        assert job.template_key == "ecs-service"
