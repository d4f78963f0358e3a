"""Signed audit trail of provisioning runs.

Every run appends JSON lines to ``$AUDIT_LOG_DIR/provisioning-events.jsonl``:

    run_started → progress (one per stage) → run_completed | run_failed

Events of one run share a ``run_id`` and a ``seq`` counter, and each event
carries the signature of the event before it, so a line removed from the
middle of a run breaks verification of the next one. The terminal event holds
a summary of what the run left in the tenant (application, service principal,
grants, extension objects). The client secret is never part of any event.

Usage:
    python scripts/audit.py            # verify the default log
"""
from __future__ import annotations
import datetime
import hashlib
import hmac
import json
import os
import sys
import uuid
from pathlib import Path
from typing import TYPE_CHECKING, Any

PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from entra_provisioner.config.settings import _load_secret_from_file

if TYPE_CHECKING:
    from entra_provisioner.core.exceptions import StageFailedError
    from entra_provisioner.core.models import ProvisionRequest, RunProgress
    from entra_provisioner.core.orchestrator import RunState

AUDIT_LOG_NAME = "provisioning-events.jsonl"


def audit_log_path() -> Path:
    return Path(os.environ.get("AUDIT_LOG_DIR", ".runtime/audit")) / AUDIT_LOG_NAME


def load_signing_key() -> bytes:
    """Signing key from /run/secrets/audit_log_signing_key or AUDIT_LOG_SIGNING_KEY.

    An empty key disables signing.
    """
    key = _load_secret_from_file("audit_log_signing_key", "AUDIT_LOG_SIGNING_KEY")
    return key.strip().encode("utf-8") if key else b""


def _signature(event: dict[str, Any], key: bytes) -> str:
    canonical = json.dumps(event, sort_keys=True, separators=(",", ":"))
    return hmac.new(key, canonical.encode("utf-8"), hashlib.sha256).hexdigest()


def summarize_run(state: "RunState") -> dict[str, Any]:
    """What a run has done to the tenant so far, as audit fields."""
    summary: dict[str, Any] = {
        "completed_stages": list(state.completed),
        "grants": len(state.grants),
        "declared_roles": {block.resource_app_id: len(block.roles) for block in state.access_blocks},
    }
    if state.application is not None:
        summary["application"] = {
            "object_id": state.application.object_id,
            "client_id": state.application.client_id,
            "service_principal_id": state.application.service_principal_object_id,
        }
    if state.mail_session is not None:
        summary["mail_extension"] = {
            "organization": state.mail_session.organization,
            "registered": state.mail_session.registered,
        }
    if state.role_assignments:
        summary["role_assignments"] = len(state.role_assignments)
    return summary


class ProvisioningAudit:
    """Audit writer bound to one provisioning run."""

    def __init__(
        self,
        application_name: str,
        *,
        operator: str = "cli",
        path: Path | None = None,
        signing_key: bytes | None = None,
        run_id: str | None = None,
    ):
        self.application_name = application_name
        self.operator = operator
        self.path = path or audit_log_path()
        self.signing_key = load_signing_key() if signing_key is None else signing_key
        self.run_id = run_id or uuid.uuid4().hex
        self.tenant = ""
        self._seq = 0
        self._previous = ""

    def _append(self, event_type: str, success: bool, fields: dict[str, Any]) -> dict[str, Any]:
        self._seq += 1
        event = {
            "timestamp": datetime.datetime.now(datetime.timezone.utc).isoformat(),
            "run_id": self.run_id,
            "seq": self._seq,
            "event_type": event_type,
            "application_name": self.application_name,
            "operator": self.operator,
            "tenant": self.tenant,
            "success": success,
            **fields,
        }
        if self.signing_key:
            event["previous"] = self._previous
            event["signature"] = _signature(event, self.signing_key)
            self._previous = event["signature"]

        self.path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
        with self.path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(event, ensure_ascii=False) + "\n")
        self.path.chmod(0o600)
        return event

    def record(self, event_type: str, *, success: bool = True, **fields: Any) -> bool:
        """Append one event. A write failure is reported on stderr, never raised."""
        try:
            self._append(event_type, success, fields)
            return True
        except (OSError, TypeError, ValueError) as e:
            print(f"[audit] Warning: could not record {event_type} for run {self.run_id}: {e}", file=sys.stderr)
            return False

    def started(self, request: "ProvisionRequest", tenant: str) -> bool:
        self.tenant = tenant
        return self.record(
            "run_started",
            include_exchange=request.include_mail_extension,
            include_azure=request.include_resource_mgmt_extension,
        )

    def progress(self, progress: "RunProgress", stage: str) -> bool:
        return self.record(
            "progress",
            stage=stage,
            step=progress.current_stage,
            total=progress.total_stages,
            percent=progress.percent,
        )

    def completed(self, state: "RunState") -> bool:
        self.tenant = state.tenant_id or self.tenant
        return self.record("run_completed", summary=summarize_run(state))

    def failed(self, state: "RunState", error: "StageFailedError") -> bool:
        self.tenant = state.tenant_id or self.tenant
        return self.record(
            "run_failed",
            success=False,
            stage=error.stage,
            kind=error.kind,
            error=str(error.cause),
            summary=summarize_run(state),
        )


def verify_audit_log(path: Path | None = None, signing_key: bytes | None = None) -> tuple[int, int]:
    """Check every event's signature and its link to the previous event of its run.

    Returns:
        Tuple of (total_events, valid_events)
    """
    path = path or audit_log_path()
    key = load_signing_key() if signing_key is None else signing_key
    if not path.exists():
        return 0, 0

    total = 0
    valid = 0
    last_signature: dict[str, str] = {}
    with path.open("r", encoding="utf-8") as f:
        for line in f:
            if not line.strip():
                continue
            total += 1
            try:
                event = json.loads(line)
            except json.JSONDecodeError:
                continue
            stored = event.pop("signature", "")
            if not stored or not key:
                continue
            run_id = event.get("run_id", "")
            chained = event.get("previous", "") == last_signature.get(run_id, "")
            last_signature[run_id] = stored
            if chained and hmac.compare_digest(stored, _signature(event, key)):
                valid += 1
    return total, valid


if __name__ == "__main__":
    total, valid = verify_audit_log()
    print(f"Audit log: {valid}/{total} events verified")
    sys.exit(0 if total == valid else 1)
