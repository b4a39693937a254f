import json
import logging
from pathlib import Path
from typing import Any

from aip.core.errors import OutputCaptureError, PhaseExecutionError
from aip.modules.credentials.schemas import ScopedCredentials
from aip.modules.jobs.schemas import JobEnvelope
from aip.modules.provisioning.driver import ProvisioningDriver

logger = logging.getLogger(__name__)


class OutputCapturer:
    """Reads ``terraform output -json`` after a successful apply."""

    def __init__(self, driver: ProvisioningDriver):
        self.driver = driver

    def capture(self, job: JobEnvelope, module_dir: Path, credentials: ScopedCredentials) -> Any:
        """
        Return the parsed output document, verbatim.

        Raises OutputCaptureError if the phase fails or its output is not JSON.
        """
        try:
            raw = self.driver.read_outputs(job, module_dir, credentials)
        except PhaseExecutionError as e:
            raise OutputCaptureError(str(e)) from e

        if not raw or not raw.strip():
            raise OutputCaptureError("terraform output returned nothing")
        try:
            outputs = json.loads(raw)
        except json.JSONDecodeError as e:
            raise OutputCaptureError(f"failed to parse terraform outputs: {e}") from e

        logger.info(f"run {job.run_id}: captured {len(outputs) if isinstance(outputs, dict) else 1} output(s)")
        return outputs
