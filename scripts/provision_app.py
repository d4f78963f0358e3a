"""Provision a Microsoft Entra app registration for read-only tenant assessment.

This module serves as a CLI wrapper around entra_provisioner.core services.
"""
from __future__ import annotations
import argparse
import functools
import json
import logging
import sys
from pathlib import Path

SCRIPT_DIR = Path(__file__).parent
PROJECT_ROOT = SCRIPT_DIR.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from entra_provisioner.config.settings import load_settings
from entra_provisioner.core.connection import connect_control_plane
from entra_provisioner.core.dependencies import DependencyCheck, pip_install
from entra_provisioner.core.exceptions import StageFailedError
from entra_provisioner.core.models import ProvisionRequest, RunProgress
from entra_provisioner.core.orchestrator import ProvisioningOrchestrator
from scripts import audit


def _print_progress(progress: RunProgress, stage: str) -> None:
    print(
        f"[provision] [{progress.current_stage:>2}/{progress.total_stages}] {progress.percent:>3}% {stage}",
        file=sys.stderr,
    )


def _print_result(result, output: str) -> None:
    if output == "json":
        print(json.dumps(result.as_dict(), indent=2))
        return
    print("==== App registration credentials ====")
    print(f"Tenant ID:     {result.tenant_id}")
    print(f"Client ID:     {result.client_id}")
    print(f"Client Secret: {result.client_secret}")
    print("Store the secret now; it is not shown again.")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Entra app registration provisioner")
    parser.add_argument("--name", required=True, help="Display name of the application to create")
    parser.add_argument("--include-exchange", action="store_true",
                        help="Grant Exchange.ManageAsApp and connect an app-only Exchange Online session")
    parser.add_argument("--include-azure", action="store_true",
                        help="Assign Reader at the root and identity-provider management scopes")
    parser.add_argument("--propagation-delay", type=float, default=None,
                        help="Seconds to wait after consent (default: PROPAGATION_DELAY_SECONDS or 30)")
    parser.add_argument("--install-missing", action="store_true",
                        help="pip install missing client libraries instead of failing")
    parser.add_argument("--output", choices=("text", "json"), default="text")
    parser.add_argument("--operator", default="cli",
                        help="Operator identifier for audit logs (default: cli)")
    parser.add_argument("--verbose", action="store_true")
    return parser


def main(argv: list[str] | None = None) -> None:
    """Command-line entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.name.strip():
        parser.error("--name must not be empty")
    if args.propagation_delay is not None and args.propagation_delay < 0:
        parser.error("--propagation-delay must not be negative")

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="[%(name)s] %(levelname)s %(message)s",
        stream=sys.stderr,
    )

    try:
        config = load_settings()
    except (RuntimeError, ValueError) as e:
        print(f"[provision] Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    request = ProvisionRequest(
        application_name=args.name.strip(),
        include_mail_extension=args.include_exchange,
        include_resource_mgmt_extension=args.include_azure,
    )
    delay = config.propagation_delay_seconds if args.propagation_delay is None else args.propagation_delay
    trail = audit.ProvisioningAudit(request.application_name, operator=args.operator)

    def on_progress(progress: RunProgress, stage: str) -> None:
        _print_progress(progress, stage)
        trail.progress(progress, stage)

    orchestrator = ProvisioningOrchestrator(
        request,
        functools.partial(connect_control_plane, config),
        dependency_check=DependencyCheck(installer=pip_install if args.install_missing else None),
        propagation_delay=delay,
        secret_validity_months=config.secret_validity_months,
        secret_display_name=config.secret_display_name,
        on_progress=on_progress,
    )

    trail.started(request, config.tenant_id)
    try:
        result = orchestrator.run()
    except StageFailedError as e:
        state = orchestrator.state
        print(f"[provision] Error: stage '{e.stage}' failed ({e.kind}): {e.cause}", file=sys.stderr)
        if state.application is not None:
            print(
                f"[provision] Application {state.application.object_id} was left in place "
                f"({len(state.grants)} grants issued); no rollback performed.",
                file=sys.stderr,
            )
        trail.failed(state, e)
        sys.exit(1)

    trail.completed(orchestrator.state)
    _print_result(result, args.output)


if __name__ == "__main__":
    main()
