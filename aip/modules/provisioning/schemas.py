from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List


class Phase(str, Enum):
    INIT = "init"
    PLAN = "plan"
    APPLY = "apply"
    OUTPUT = "output"


@dataclass
class PhaseInvocation:
    """One Terraform subprocess: ``terraform -chdir=<module_dir> <phase> <args...>``."""

    run_id: int
    phase: Phase
    module_dir: Path
    args: List[str]
    env: Dict[str, str] = field(repr=False)
    timeout: float
    capture_output: bool = False


@dataclass
class PhaseResult:
    returncode: int
    stdout: str = ""
    diagnostic: str = ""  # last lines of tool output, for failure summaries
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and not self.timed_out
