"""
Worker exceptions.

Only CredentialError, UnsupportedTemplateError and PhaseExecutionError turn a
run into ``failed``. The others are logged by the consumer and isolated.
"""


class AipError(Exception):
    """Base exception for all worker errors."""
    pass


class DecodeError(AipError):
    """Raised when a queue payload is not a valid job envelope."""
    pass


class CredentialError(AipError):
    """Raised when role assumption input is invalid or the STS exchange fails."""
    pass


class UnsupportedTemplateError(AipError):
    """Raised when a blueprint key is not on the module allow-list."""

    def __init__(self, template_key: str, reason: str = "unsupported blueprint"):
        self.template_key = template_key
        super().__init__(f"{reason} {template_key!r}")


class PhaseExecutionError(AipError):
    """Raised when a Terraform phase exits non-zero, times out or cannot start."""

    def __init__(self, phase: str, detail: str):
        self.phase = phase
        self.detail = detail
        super().__init__(f"terraform {phase} failed: {detail}")


class OutputCaptureError(AipError):
    """Raised when outputs cannot be read after a successful apply. Never fails the run."""
    pass


class PersistenceError(AipError):
    """Raised when a runs/deployments write fails. Logged only."""
    pass
