"""Tests for scheduled expiry checks."""
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from conftest import FakeRunner, openssl_date
from mkcert_web.exceptions import InvalidConfiguration
from mkcert_web.services import EmailService, MonitoringService
from mkcert_web.services.monitoring import CHECK_JOB_ID, parse_cron

NOW = datetime(2025, 6, 1, tzinfo=timezone.utc)


def expiring_in(days_by_file):
    """Runner answering -enddate per certificate file name."""
    def enddate(command, cwd):
        for name, days in days_by_file.items():
            if f'/{name}"' in command:
                return f"notAfter={openssl_date(NOW + timedelta(days=days))}\n"
        return ""
    return FakeRunner({"-enddate": enddate, "-text": "Subject: CN = host.local\n"})


@pytest.fixture
def monitor(settings, cert_root):
    settings.MONITORING_ENABLED = True
    runner = expiring_in({"soon.pem": 3, "later.pem": 20, "fine.pem": 100, "expired.pem": -1})
    for name in ("soon.pem", "soon-key.pem", "later.pem", "fine.pem", "expired.pem"):
        (cert_root / name).write_text("x")
    email = EmailService(settings)
    return MonitoringService(settings, runner, email, root=str(cert_root))


def test_parse_cron():
    assert parse_cron("0 8 * * *") is not None
    with pytest.raises(InvalidConfiguration):
        parse_cron("not a cron")


async def test_analyze_sorts_and_prioritises(monitor):
    paths = monitor.find_certificates_to_monitor()
    expiring = await monitor.analyze_expiring_certificates(paths, now=NOW)
    assert [c["path"].rsplit("/", 1)[1] for c in expiring] == ["soon.pem", "later.pem"]
    assert [c["priority"] for c in expiring] == ["critical", "warning"]
    assert [c["daysUntilExpiry"] for c in expiring] == [3, 20]
    assert expiring[0]["domains"] == ["host.local"]


async def test_uploaded_certificates_can_be_excluded(monitor, cert_root):
    (cert_root / "uploaded").mkdir()
    (cert_root / "uploaded" / "soon.pem").write_text("x")
    assert len(monitor.find_certificates_to_monitor()) == 6
    monitor.include_uploaded = False
    assert len(monitor.find_certificates_to_monitor()) == 5


async def test_check_logs_when_email_disabled(monitor, caplog):
    caplog.set_level("WARNING", logger="mkcert_web.services.monitoring")
    monitor.runner = FakeRunner({
        "-enddate": f"notAfter={openssl_date(datetime.now(timezone.utc) + timedelta(days=2))}\n",
    })
    report = await monitor.check_certificates()
    assert report["notified"] is False
    assert report["checked"] == 5
    assert len(report["expiring"]) == 4
    assert "EXPIRING CERTIFICATES REPORT" in caplog.text
    assert monitor.last_check is not None


async def test_check_sends_email(monitor, settings):
    settings.EMAIL_ENABLED = True
    monitor.email_service = MagicMock()
    monitor.email_service.send_expiry_alert.return_value = {"success": True}
    monitor.runner = FakeRunner({
        "-enddate": f"notAfter={openssl_date(datetime.now(timezone.utc) + timedelta(days=2))}\n",
    })
    report = await monitor.check_certificates()
    assert report["notified"] is True
    monitor.email_service.send_expiry_alert.assert_called_once()


async def test_disabled_check_does_nothing(monitor):
    monitor.enabled = False
    assert await monitor.manual_check() == {"checked": 0, "expiring": [], "notified": False}
    assert monitor.runner.commands == []


async def test_start_and_stop(monitor):
    monitor.start(initial_check=False)
    try:
        assert monitor.is_running
        assert monitor.scheduler.get_job(CHECK_JOB_ID) is not None
        assert monitor.get_status()["nextRun"] is not None
        monitor.start()
        assert monitor.scheduler.get_job("initial-check") is None
    finally:
        monitor.stop()
    assert not monitor.is_running
    assert monitor.get_status()["nextRun"] is None


async def test_update_restarts_running_schedule(monitor):
    monitor.start(initial_check=False)
    try:
        first = monitor.scheduler
        updates = monitor.update_configuration(check_interval="30 2 * * 1")
        assert updates == {"checkInterval": "30 2 * * 1"}
        assert monitor.is_running
        assert monitor.scheduler is not first
    finally:
        monitor.stop()


def test_update_validation(monitor):
    with pytest.raises(InvalidConfiguration):
        monitor.update_configuration(check_interval="bogus")
    with pytest.raises(InvalidConfiguration):
        monitor.update_configuration(warning_days=5, critical_days=10)
    assert monitor.warning_days == 30
    assert monitor.critical_days == 7
