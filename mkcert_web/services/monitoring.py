"""
Scheduled certificate expiry checks.

A cron job on an ``AsyncIOScheduler`` (UTC) scans the certificates root,
collects certificates expiring within the warning window and either emails
a report or writes it to the log.
"""
import asyncio
import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from ..config import Settings
from ..exceptions import InvalidConfiguration
from ..utils import certificates as cert_utils
from .certificate_store import UPLOADED_FOLDER
from .email_service import EmailService

logger = logging.getLogger(__name__)

CHECK_JOB_ID = "certificate-expiry-check"
INITIAL_CHECK_DELAY = 5


def parse_cron(expression: str) -> CronTrigger:
    """Build a UTC trigger from a five-field crontab expression"""
    try:
        return CronTrigger.from_crontab(expression, timezone="UTC")
    except (ValueError, TypeError) as e:
        raise InvalidConfiguration(f"Check interval must be a valid cron expression: {e}") from e


class MonitoringService:
    """Runs the expiry check on a schedule and on demand"""

    def __init__(self, settings: Settings, runner, email_service: EmailService, root: Optional[str] = None):
        self.settings = settings
        self.runner = runner
        self.email_service = email_service
        self.root = os.path.abspath(root or str(settings.certificates_root))

        self.enabled = settings.MONITORING_ENABLED
        self.warning_days = settings.CERT_WARNING_DAYS
        self.critical_days = settings.CERT_CRITICAL_DAYS
        self.check_interval = settings.CERT_CHECK_INTERVAL
        self.include_uploaded = settings.MONITOR_INCLUDE_UPLOADED

        self.scheduler: Optional[AsyncIOScheduler] = None
        self.last_check: Optional[datetime] = None

    @property
    def is_running(self) -> bool:
        return self.scheduler is not None and self.scheduler.running

    def start(self, initial_check: bool = True):
        if self.is_running:
            logger.info("Certificate monitoring service is already running")
            return

        trigger = parse_cron(self.check_interval)
        logger.info("Starting certificate monitoring service with interval: %s", self.check_interval)

        self.scheduler = AsyncIOScheduler(timezone="UTC")
        self.scheduler.add_job(self.check_certificates, trigger, id=CHECK_JOB_ID, coalesce=True, max_instances=1)
        if initial_check:
            self.scheduler.add_job(
                self.check_certificates,
                "date",
                run_date=datetime.now(timezone.utc) + timedelta(seconds=INITIAL_CHECK_DELAY),
                id="initial-check",
            )
        self.scheduler.start()
        logger.info("Certificate monitoring service started")

    def stop(self):
        if self.scheduler is not None:
            if self.scheduler.running:
                self.scheduler.shutdown(wait=False)
            self.scheduler = None
            logger.info("Certificate monitoring service stopped")

    def restart(self):
        self.stop()
        if self.enabled:
            self.start(initial_check=False)

    def find_certificates_to_monitor(self) -> List[str]:
        uploaded_dir = os.path.join(self.root, UPLOADED_FOLDER)
        paths = []
        for info in cert_utils.find_certificate_files(self.root):
            in_uploaded = info["fullPath"].startswith(uploaded_dir + os.sep)
            if in_uploaded and not self.include_uploaded:
                continue
            paths.append(info["fullPath"])
        logger.info("Found %d certificate files to monitor", len(paths))
        return paths

    async def analyze_expiring_certificates(self, paths: List[str], now: Optional[datetime] = None) -> List[Dict]:
        now = now or datetime.now(timezone.utc)
        expiring = []

        for path in paths:
            if not path.endswith(".pem") or cert_utils.is_key_file(os.path.basename(path)):
                continue

            expiry = await cert_utils.get_certificate_expiry(self.runner, path)
            if expiry is None:
                logger.warning("Could not determine expiry date for: %s", path)
                continue

            days = cert_utils.days_until(expiry, now)
            if 0 <= days <= self.warning_days:
                domains = await cert_utils.get_certificate_domains(self.runner, path)
                expiring.append({
                    "path": path,
                    "expiry": expiry,
                    "daysUntilExpiry": days,
                    "domains": domains,
                    "priority": "critical" if days <= self.critical_days else "warning",
                })
                logger.info("Expiring certificate found: %s (%d days remaining)", path, days)

        expiring.sort(key=lambda c: c["daysUntilExpiry"])
        return expiring

    def log_expiring_certificates(self, certificates: List[Dict]):
        lines = ["=== EXPIRING CERTIFICATES REPORT ==="]
        for cert in certificates:
            lines.append(f"{cert['priority'].upper()} - {cert['path']}")
            lines.append(f"  Expires: {cert['expiry']:%Y-%m-%d}")
            lines.append(f"  Days remaining: {cert['daysUntilExpiry']}")
            if cert["domains"]:
                lines.append(f"  Domains: {', '.join(cert['domains'])}")
        logger.warning("\n".join(lines))

    async def check_certificates(self) -> Dict:
        if not self.enabled:
            logger.info("Certificate monitoring is disabled")
            return {"checked": 0, "expiring": [], "notified": False}

        logger.info("Starting certificate expiry check...")
        paths = self.find_certificates_to_monitor()
        expiring = await self.analyze_expiring_certificates(paths)
        self.last_check = datetime.now(timezone.utc)

        notified = False
        if not expiring:
            logger.info("No expiring certificates found")
        elif self.settings.EMAIL_ENABLED:
            result = await asyncio.to_thread(self.email_service.send_expiry_alert, expiring)
            notified = result.get("success", False)
        else:
            logger.warning("Email notifications disabled - expiring certificates found but not notified")
            self.log_expiring_certificates(expiring)

        return {"checked": len(paths), "expiring": expiring, "notified": notified}

    async def manual_check(self) -> Dict:
        logger.info("Running manual certificate expiry check...")
        return await self.check_certificates()

    def get_status(self) -> Dict:
        next_run = None
        if self.is_running:
            job = self.scheduler.get_job(CHECK_JOB_ID)
            next_run = job.next_run_time if job else None
        return {
            "enabled": self.enabled,
            "running": self.is_running,
            "schedule": self.check_interval,
            "warningDays": self.warning_days,
            "criticalDays": self.critical_days,
            "includeUploaded": self.include_uploaded,
            "emailEnabled": self.settings.EMAIL_ENABLED,
            "lastCheck": self.last_check,
            "nextRun": next_run,
        }

    def update_configuration(
        self,
        warning_days: Optional[int] = None,
        critical_days: Optional[int] = None,
        check_interval: Optional[str] = None,
        include_uploaded: Optional[bool] = None,
    ) -> Dict:
        """Apply runtime changes and restart the schedule if it was running"""
        updates = {}
        if check_interval is not None:
            parse_cron(check_interval)
            updates["checkInterval"] = check_interval

        new_warning = warning_days if warning_days is not None else self.warning_days
        new_critical = critical_days if critical_days is not None else self.critical_days
        if new_critical > new_warning:
            raise InvalidConfiguration("Critical days must not exceed warning days")

        if warning_days is not None:
            updates["warningDays"] = warning_days
        if critical_days is not None:
            updates["criticalDays"] = critical_days
        if include_uploaded is not None:
            updates["includeUploaded"] = include_uploaded

        was_running = self.is_running
        self.warning_days = new_warning
        self.critical_days = new_critical
        self.check_interval = updates.get("checkInterval", self.check_interval)
        if include_uploaded is not None:
            self.include_uploaded = include_uploaded

        if was_running:
            self.restart()
        logger.info("Certificate monitoring configuration updated: %s", updates)
        return updates
