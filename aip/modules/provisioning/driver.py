import json
import logging
import threading
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

from aip.config import settings
from aip.core.errors import PhaseExecutionError, UnsupportedTemplateError
from aip.modules.credentials.schemas import ScopedCredentials
from aip.modules.jobs.schemas import JobEnvelope
from aip.modules.provisioning.provisioner import Provisioner
from aip.modules.provisioning.schemas import Phase, PhaseInvocation, PhaseResult

logger = logging.getLogger(__name__)


def format_var_value(value: Any) -> str:
    """Render an input value the way Terraform parses ``-var name=value``."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"), sort_keys=True)
    return str(value)


def build_var_args(inputs: Dict[str, Any]) -> List[str]:
    args = []
    for name in sorted(inputs):
        args.extend(["-var", f"{name}={format_var_value(inputs[name])}"])
    return args


class ProvisioningDriver:
    def __init__(
        self,
        provisioner: Provisioner,
        modules_root: Optional[str] = None,
        blueprint_modules: Optional[Dict[str, str]] = None,
        prepare_timeout: Optional[float] = None,
        apply_timeout: Optional[float] = None,
        output_timeout: Optional[float] = None,
        stop_event: Optional[threading.Event] = None,
    ):
        """
        Sequence Terraform phases for a job inside its allow-listed module directory.

        Args:
            provisioner: Executes individual phases
            modules_root: Directory holding the Terraform modules
            blueprint_modules: Allow-list of blueprint key -> module directory name
            prepare_timeout: Budget in seconds shared by init and plan
            apply_timeout: Timeout in seconds for apply
            output_timeout: Timeout in seconds for output capture
            stop_event: Once set, no further phase is started
        """
        self.provisioner = provisioner
        self.modules_root = Path(modules_root or settings.modules_root)
        self.blueprint_modules = dict(blueprint_modules if blueprint_modules is not None else settings.blueprint_modules)
        self.prepare_timeout = prepare_timeout or settings.prepare_timeout_sec
        self.apply_timeout = apply_timeout or settings.apply_timeout_sec
        self.output_timeout = output_timeout or settings.output_timeout_sec
        self.stop_event = stop_event

    def resolve_module_dir(self, template_key: str) -> Path:
        """Map a blueprint key to its module directory. Only allow-listed keys resolve."""
        module_name = self.blueprint_modules.get(template_key)
        if not module_name:
            raise UnsupportedTemplateError(template_key)
        module_dir = self.modules_root / module_name
        if not module_dir.is_dir():
            raise UnsupportedTemplateError(template_key, reason=f"module directory {module_dir} missing for blueprint")
        return module_dir

    def plan(self, job: JobEnvelope, module_dir: Path, credentials: ScopedCredentials) -> None:
        """init + plan, sharing one timeout budget."""
        deadline = time.monotonic() + self.prepare_timeout
        env = credentials.as_env()
        logger.info(f"run {job.run_id}: running terraform plan in {module_dir} in region {credentials.region}")

        self._run_phase(job.run_id, Phase.INIT, module_dir, ["-input=false", "-no-color"], env, self._remaining(deadline))
        self._run_phase(
            job.run_id,
            Phase.PLAN,
            module_dir,
            ["-input=false", "-no-color", *build_var_args(job.inputs)],
            env,
            self._remaining(deadline),
        )

    def apply(self, job: JobEnvelope, module_dir: Path, credentials: ScopedCredentials) -> None:
        """init (prepare budget) + apply (own timeout)."""
        env = credentials.as_env()
        logger.info(f"run {job.run_id}: running terraform apply in {module_dir} in region {credentials.region}")

        self._run_phase(job.run_id, Phase.INIT, module_dir, ["-input=false", "-no-color"], env, self.prepare_timeout)
        self._run_phase(
            job.run_id,
            Phase.APPLY,
            module_dir,
            ["-input=false", "-auto-approve", "-no-color", *build_var_args(job.inputs)],
            env,
            self.apply_timeout,
        )

    def read_outputs(self, job: JobEnvelope, module_dir: Path, credentials: ScopedCredentials) -> str:
        """Run ``terraform output -json`` and return its raw stdout."""
        result = self._run_phase(
            job.run_id,
            Phase.OUTPUT,
            module_dir,
            ["-json", "-no-color"],
            credentials.as_env(),
            self.output_timeout,
            capture_output=True,
        )
        return result.stdout

    @staticmethod
    def _remaining(deadline: float) -> float:
        return max(deadline - time.monotonic(), 0.0)

    def _run_phase(
        self,
        run_id: int,
        phase: Phase,
        module_dir: Path,
        args: List[str],
        env: Dict[str, str],
        timeout: float,
        capture_output: bool = False,
    ) -> PhaseResult:
        if self.stop_event is not None and self.stop_event.is_set():
            raise PhaseExecutionError(phase.value, "worker shutting down")
        if timeout <= 0:
            raise PhaseExecutionError(phase.value, "timeout budget exhausted before phase start")

        result = self.provisioner.run(PhaseInvocation(
            run_id=run_id,
            phase=phase,
            module_dir=module_dir,
            args=args,
            env=env,
            timeout=timeout,
            capture_output=capture_output,
        ))
        if result.timed_out:
            raise PhaseExecutionError(phase.value, f"timed out after {timeout:.0f}s")
        if result.returncode != 0:
            detail = f"exit status {result.returncode}"
            if result.diagnostic:
                detail = f"{detail}: {result.diagnostic}"
            raise PhaseExecutionError(phase.value, detail)
        return result
