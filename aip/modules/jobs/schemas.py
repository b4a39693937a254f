from enum import Enum
from typing import Any, Dict, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from aip.core.errors import DecodeError


class JobAction(str, Enum):
    PLAN = "plan"
    APPLY = "apply"


class RoleDescriptor(BaseModel):
    """Target-account role to assume for one job (wire key: ``aws``)."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    role_arn: str = Field("", alias="roleArn")
    external_id: str = Field("", alias="externalId")
    region: str = ""

    @field_validator("role_arn", "external_id", "region", mode="before")
    @classmethod
    def _none_as_empty(cls, value):
        return "" if value is None else value


class JobEnvelope(BaseModel):
    """
    One unit of work popped from the queue.

    Wire field names are fixed by the intake layer: ``blueprint_key`` and
    ``version`` identify the template, ``aws`` carries the role descriptor.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    run_id: int
    action: str
    template_key: str = Field("", alias="blueprint_key")
    template_version: str = Field("", alias="version")
    inputs: Dict[str, Any] = Field(default_factory=dict)
    role_descriptor: RoleDescriptor = Field(default_factory=RoleDescriptor, alias="aws")

    @field_validator("inputs", mode="before")
    @classmethod
    def _null_inputs(cls, value):
        return {} if value is None else value

    @field_validator("role_descriptor", mode="before")
    @classmethod
    def _null_role(cls, value):
        return {} if value is None else value

    def describe(self) -> str:
        return f"run={self.run_id} action={self.action} blueprint={self.template_key}@{self.template_version}"

    def to_wire(self) -> str:
        return self.model_dump_json(by_alias=True)


def decode_job(payload: Union[str, bytes]) -> JobEnvelope:
    """Decode a raw queue payload, raising DecodeError on anything malformed."""
    if isinstance(payload, bytes):
        try:
            payload = payload.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError(f"invalid job payload: not UTF-8: {e}") from e
    try:
        return JobEnvelope.model_validate_json(payload)
    except ValidationError as e:
        raise DecodeError(f"invalid job payload: {e.error_count()} error(s): {e.errors()[0]['msg']}") from e
