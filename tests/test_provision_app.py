import json
from pathlib import Path

import pytest

import scripts.provision_app as cli
from entra_provisioner.config.settings import AppConfig
from conftest import PresentModules


@pytest.fixture(autouse=True)
def isolated_run(monkeypatch, tmp_path, control_plane):
    """Route every CLI run to the in-memory control plane and a temp audit log."""
    audit_dir = tmp_path / "audit"
    monkeypatch.setenv("AUDIT_LOG_DIR", str(audit_dir))
    monkeypatch.setenv("AUDIT_LOG_SIGNING_KEY", "test-key")

    monkeypatch.setattr(cli, "load_settings", lambda: AppConfig(propagation_delay_seconds=0))
    monkeypatch.setattr(cli, "connect_control_plane", lambda config: control_plane)
    monkeypatch.setattr(cli, "DependencyCheck", lambda installer=None: PresentModules())
    return audit_dir


def _audit_events(audit_dir: Path):
    return [json.loads(line) for line in (audit_dir / "provisioning-events.jsonl").read_text().splitlines()]


def test_name_is_required():
    with pytest.raises(SystemExit):
        cli.main([])


def test_blank_name_rejected():
    with pytest.raises(SystemExit):
        cli.main(["--name", "   "])


def test_negative_delay_rejected():
    with pytest.raises(SystemExit):
        cli.main(["--name", "Maester", "--propagation-delay", "-5"])


def test_success_prints_result_once_as_json(capsys, isolated_run):
    cli.main(["--name", "Maester", "--output", "json"])

    out = capsys.readouterr()
    result = json.loads(out.out)
    assert result == {"tenantId": "tenant-0001", "clientId": "client-1", "clientSecret": "secret-1"}
    assert "[provision] [ 9/9] 100% Done" in out.err

    events = _audit_events(isolated_run)
    assert events[0]["event_type"] == "run_started"
    assert [e["stage"] for e in events if e["event_type"] == "progress"][-1] == "Done"
    assert len({e["run_id"] for e in events}) == 1
    completed = events[-1]
    assert completed["event_type"] == "run_completed"
    assert completed["tenant"] == "tenant-0001"
    assert completed["summary"]["application"]["client_id"] == "client-1"
    assert completed["summary"]["grants"] == 13
    assert cli.audit.verify_audit_log() == (len(events), len(events))
    assert "secret-1" not in (isolated_run / "provisioning-events.jsonl").read_text()


def test_success_text_output(capsys):
    cli.main(["--name", "Maester"])

    out = capsys.readouterr().out
    assert "Client ID:     client-1" in out
    assert out.count("secret-1") == 1


def test_failure_reports_stage_and_exits_nonzero(capsys, directory, isolated_run):
    directory.roles = []

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["--name", "Maester"])

    assert excinfo.value.code == 1
    err = capsys.readouterr().err
    assert "stage 'CheckPrivilege' failed (PrivilegeDenied)" in err

    failed = _audit_events(isolated_run)[-1]
    assert failed["event_type"] == "run_failed"
    assert failed["success"] is False
    assert failed["stage"] == "CheckPrivilege"
    assert failed["kind"] == "PrivilegeDenied"
    assert "application" not in failed["summary"]


def test_failure_after_creation_mentions_leftover_application(capsys, directory):
    directory.organizations[0]["verifiedDomains"] = []

    with pytest.raises(SystemExit):
        cli.main(["--name", "Maester", "--include-exchange"])

    err = capsys.readouterr().err
    assert "ConnectMailExtension" in err
    assert "Application obj-1 was left in place (14 grants issued)" in err


def test_flags_reach_the_orchestrator(monkeypatch, resource_management, sleep):
    captured = {}
    real = cli.ProvisioningOrchestrator

    def spy(request, connect, **kwargs):
        captured["request"] = request
        captured["delay"] = kwargs["propagation_delay"]
        kwargs["sleep"] = sleep
        return real(request, connect, **kwargs)

    monkeypatch.setattr(cli, "ProvisioningOrchestrator", spy)

    cli.main(["--name", " Maester ", "--include-azure", "--propagation-delay", "12"])

    assert captured["request"].application_name == "Maester"
    assert captured["request"].include_resource_mgmt_extension is True
    assert captured["request"].include_mail_extension is False
    assert captured["delay"] == 12
    assert sleep.calls == [12]
    assert len(resource_management.assignments) == 2


def test_configuration_error_exits(monkeypatch, capsys):
    def broken():
        raise RuntimeError("PROVISIONER_AUTH_MODE must be one of device_code, client_secret")

    monkeypatch.setattr(cli, "load_settings", broken)

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["--name", "Maester"])

    assert excinfo.value.code == 1
    assert "Configuration error" in capsys.readouterr().err
