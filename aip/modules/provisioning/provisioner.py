import logging
import os
import subprocess
import threading
from abc import ABC, abstractmethod
from collections import deque
from typing import Dict, List, Optional

from aip.modules.provisioning import process_registry
from aip.modules.provisioning.schemas import Phase, PhaseInvocation, PhaseResult

logger = logging.getLogger(__name__)
tf_logger = logging.getLogger("aip.terraform")

DIAGNOSTIC_TAIL_LINES = 20


class Provisioner(ABC):
    """Runs one phase of the provisioning tool. Never raises for tool failures."""

    @abstractmethod
    def run(self, invocation: PhaseInvocation) -> PhaseResult:
        ...


class TerraformProvisioner(Provisioner):
    def __init__(self, terraform_bin: str = "terraform"):
        self.terraform_bin = terraform_bin

    def build_command(self, invocation: PhaseInvocation) -> List[str]:
        # -chdir keeps the worker's own working directory untouched
        return [
            self.terraform_bin,
            f"-chdir={invocation.module_dir}",
            invocation.phase.value,
            *invocation.args,
        ]

    def _build_env(self, invocation: PhaseInvocation) -> Dict[str, str]:
        """Inherit the worker environment and override with the job's scoped credentials."""
        env = os.environ.copy()
        env.update(invocation.env)
        return env

    def run(self, invocation: PhaseInvocation) -> PhaseResult:
        cmd = self.build_command(invocation)
        logger.info(f"run {invocation.run_id}: exec terraform {' '.join(cmd[1:])}")

        try:
            proc = subprocess.Popen(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE if invocation.capture_output else subprocess.STDOUT,
                text=True,
                env=self._build_env(invocation),
                bufsize=1,
            )
        except FileNotFoundError:
            return PhaseResult(returncode=127, diagnostic=f"{self.terraform_bin} not found on PATH")
        except OSError as e:
            return PhaseResult(returncode=126, diagnostic=str(e))

        process_registry.register(invocation.run_id, proc)
        try:
            if invocation.capture_output:
                return self._run_captured(proc, invocation)
            return self._run_streamed(proc, invocation)
        finally:
            process_registry.unregister(invocation.run_id)

    def _run_captured(self, proc: subprocess.Popen, invocation: PhaseInvocation) -> PhaseResult:
        try:
            stdout, stderr = proc.communicate(timeout=invocation.timeout)
        except subprocess.TimeoutExpired:
            process_registry.stop_process(proc)
            stdout, stderr = proc.communicate()
            return PhaseResult(returncode=proc.returncode, stdout=stdout or "", diagnostic=(stderr or "").strip(), timed_out=True)
        return PhaseResult(returncode=proc.returncode, stdout=stdout or "", diagnostic=(stderr or "").strip())

    def _run_streamed(self, proc: subprocess.Popen, invocation: PhaseInvocation) -> PhaseResult:
        tail = deque(maxlen=DIAGNOSTIC_TAIL_LINES)
        prefix = f"[run {invocation.run_id} {invocation.phase.value}]"

        def stream_output():
            for line in iter(proc.stdout.readline, ''):
                line = line.rstrip()
                if line.strip():
                    tail.append(line)
                    tf_logger.info(f"{prefix} {line}")

        stream_thread = threading.Thread(target=stream_output, daemon=True)
        stream_thread.start()
        timed_out = False
        try:
            proc.wait(timeout=invocation.timeout)
        except subprocess.TimeoutExpired:
            timed_out = True
            process_registry.stop_process(proc)
        stream_thread.join(timeout=5)
        return PhaseResult(returncode=proc.returncode, diagnostic="\n".join(tail), timed_out=timed_out)


class ScriptedProvisioner(Provisioner):
    """
    Provisioner that returns canned results per phase and records every invocation.

    Lets the driver's phase sequencing run without a Terraform binary.
    Phases without a scripted result succeed with empty output.
    """

    def __init__(self, results: Optional[Dict[Phase, PhaseResult]] = None):
        self.results = dict(results or {})
        self.invocations: List[PhaseInvocation] = []
        self._lock = threading.Lock()

    def run(self, invocation: PhaseInvocation) -> PhaseResult:
        with self._lock:
            self.invocations.append(invocation)
        return self.results.get(invocation.phase, PhaseResult(returncode=0))

    @property
    def phases(self) -> List[Phase]:
        return [i.phase for i in self.invocations]
