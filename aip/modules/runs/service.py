from datetime import datetime, timezone
from typing import Any
import logging

from supabase import Client

from aip.core.errors import PersistenceError
from aip.modules.runs.schemas import ACTIVE_STATUSES, RunStatus

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class RunStateTracker:
    """
    Records run lifecycle transitions and deployment outputs.

    Every method raises PersistenceError on failure; the consumer logs it and
    carries on. Request timeouts are bounded by the client options
    (see SupabaseClient).
    """

    def __init__(self, supabase: Client):
        self.supabase = supabase

    def mark_running(self, run_id: int) -> None:
        """
        Move a queued run to running; started_at is only set if unset.

        Each request writes a complete row: status and started_at together
        while started_at is still null, otherwise status alone.
        """
        try:
            result = self.supabase.table("runs")\
                .update({"status": RunStatus.RUNNING.value, "started_at": _now()})\
                .eq("id", run_id)\
                .in_("status", ACTIVE_STATUSES)\
                .is_("started_at", "null")\
                .execute()
            if not result.data:
                self.supabase.table("runs")\
                    .update({"status": RunStatus.RUNNING.value})\
                    .eq("id", run_id)\
                    .in_("status", ACTIVE_STATUSES)\
                    .execute()
        except Exception as e:
            raise PersistenceError(f"failed to mark run {run_id} running: {e}") from e

    def mark_succeeded(self, run_id: int) -> None:
        """Terminal success; finished_at is only set if unset. A failed run stays failed."""
        try:
            result = self.supabase.table("runs")\
                .update({"status": RunStatus.SUCCEEDED.value, "finished_at": _now()})\
                .eq("id", run_id)\
                .neq("status", RunStatus.FAILED.value)\
                .is_("finished_at", "null")\
                .execute()
            if not result.data:
                self.supabase.table("runs")\
                    .update({"status": RunStatus.SUCCEEDED.value})\
                    .eq("id", run_id)\
                    .neq("status", RunStatus.FAILED.value)\
                    .execute()
        except Exception as e:
            raise PersistenceError(f"failed to mark run {run_id} succeeded: {e}") from e

    def mark_failed(self, run_id: int, summary: str) -> None:
        """Terminal failure; always overwrites summary and finished_at. A succeeded run stays succeeded."""
        try:
            self.supabase.table("runs")\
                .update({
                    "status": RunStatus.FAILED.value,
                    "summary": summary,
                    "finished_at": _now(),
                })\
                .eq("id", run_id)\
                .neq("status", RunStatus.SUCCEEDED.value)\
                .execute()
        except Exception as e:
            raise PersistenceError(f"failed to mark run {run_id} failed: {e}") from e

    def update_deployment_outputs(self, run_id: int, outputs: Any) -> None:
        """Overwrite outputs_json of the deployment that owns run_id."""
        try:
            result = self.supabase.table("runs")\
                .select("deployment_id")\
                .eq("id", run_id)\
                .maybe_single()\
                .execute()
        except Exception as e:
            raise PersistenceError(f"failed to look up deployment for run {run_id}: {e}") from e

        if not result or not result.data:
            raise PersistenceError(f"run {run_id} not found")
        deployment_id = result.data["deployment_id"]

        try:
            self.supabase.table("deployments")\
                .update({"outputs_json": outputs})\
                .eq("id", deployment_id)\
                .execute()
        except Exception as e:
            raise PersistenceError(f"failed to store outputs for deployment {deployment_id}: {e}") from e
        logger.info(f"run {run_id}: stored outputs on deployment {deployment_id}")

    def ping(self) -> bool:
        """True if the runs table answers a trivial query."""
        try:
            self.supabase.table("runs").select("id").limit(1).execute()
            return True
        except Exception as e:
            logger.warning(f"Store not reachable: {e}")
            return False
