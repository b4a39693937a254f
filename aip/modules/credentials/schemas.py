from dataclasses import dataclass, field
from typing import Dict


@dataclass(frozen=True)
class ScopedCredentials:
    """Temporary credentials for one job. Kept in memory only; repr hides secrets."""

    access_key_id: str
    secret_access_key: str = field(repr=False)
    session_token: str = field(repr=False)
    region: str

    def as_env(self) -> Dict[str, str]:
        """Environment variables Terraform's AWS provider reads."""
        return {
            "AWS_ACCESS_KEY_ID": self.access_key_id,
            "AWS_SECRET_ACCESS_KEY": self.secret_access_key,
            "AWS_SESSION_TOKEN": self.session_token,
            "AWS_REGION": self.region,
            "AWS_DEFAULT_REGION": self.region,
        }
