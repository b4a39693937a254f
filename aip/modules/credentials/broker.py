import logging
from typing import Callable, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from aip.config import settings
from aip.core.errors import CredentialError
from aip.modules.credentials.schemas import ScopedCredentials
from aip.modules.jobs.schemas import RoleDescriptor

logger = logging.getLogger(__name__)


def _default_sts_client(region: str):
    # A fresh session per call: boto3's default session is not thread-safe.
    return boto3.session.Session(region_name=region).client("sts")


class CredentialBroker:
    def __init__(
        self,
        client_factory: Optional[Callable[[str], object]] = None,
        default_region: Optional[str] = None,
        duration_seconds: Optional[int] = None,
    ):
        """
        Exchange a job's role descriptor for temporary credentials via STS AssumeRole.

        Args:
            client_factory: Builds an STS client for a region. Defaults to a new
                            boto3 session using the platform's default credential chain.
            default_region: Region used when the descriptor has none
            duration_seconds: Lifetime requested for the credentials
        """
        self.client_factory = client_factory or _default_sts_client
        self.default_region = default_region or settings.default_region
        self.duration_seconds = duration_seconds or settings.credential_duration_sec

    def assume_role(self, run_id: int, role: RoleDescriptor) -> ScopedCredentials:
        """Assume the target role for ``run_id``. One STS round trip, no retry, no caching."""
        region = role.region or self.default_region

        if not role.role_arn or not role.external_id:
            raise CredentialError("missing roleArn or externalId in job aws descriptor")

        try:
            sts = self.client_factory(region)
            response = sts.assume_role(
                RoleArn=role.role_arn,
                RoleSessionName=f"aip-run-{run_id}",
                ExternalId=role.external_id,
                DurationSeconds=self.duration_seconds,
            )
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "Unknown")
            raise CredentialError(f"STS AssumeRole error ({code}): {e}") from e
        except BotoCoreError as e:
            raise CredentialError(f"STS AssumeRole error: {e}") from e

        creds = response.get("Credentials")
        if not creds:
            raise CredentialError("STS AssumeRole returned no credentials")

        logger.info(f"run {run_id}: assumed {role.role_arn} in {region}")
        return ScopedCredentials(
            access_key_id=creds["AccessKeyId"],
            secret_access_key=creds["SecretAccessKey"],
            session_token=creds["SessionToken"],
            region=region,
        )
