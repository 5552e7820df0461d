"""
Certificate inspection helpers built on ``openssl x509`` output.

The ``parse_*`` functions are pure and work on captured openssl output; the
``get_*`` coroutines run openssl through a ``CommandRunner`` and return
``None`` (or an empty list) when the certificate cannot be read.
"""

import logging
import os
import re
from datetime import datetime, timezone
from typing import Dict, List, Optional

from ..exceptions import ConsoleError

logger = logging.getLogger(__name__)

CERTIFICATE_EXTENSIONS = (".pem", ".crt")

_NOT_AFTER = re.compile(r"notAfter=(.+)")
_NOT_BEFORE = re.compile(r"notBefore=(.+)")
_FINGERPRINT = re.compile(r"SHA256 Fingerprint=(.+)", re.IGNORECASE)
_SUBJECT = re.compile(r"^subject\s*=\s*(.+)$", re.MULTILINE)
_ISSUER = re.compile(r"^issuer\s*=\s*(.+)$", re.MULTILINE)
_SUBJECT_CN = re.compile(r"Subject:.*CN\s*=\s*([^,\n]+)")
_SAN = re.compile(r"X509v3 Subject Alternative Name:.*\n\s*([^\n]+)")


def parse_openssl_date(value: str) -> Optional[datetime]:
    """Parse an openssl date such as ``Jan  5 12:34:56 2026 GMT`` into an aware UTC datetime."""
    collapsed = " ".join(value.split())
    for fmt in ("%b %d %H:%M:%S %Y %Z", "%b %d %H:%M:%S %Y"):
        try:
            return datetime.strptime(collapsed, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
    logger.warning("Unrecognised openssl date: %r", value)
    return None


def parse_expiry(output: str) -> Optional[datetime]:
    match = _NOT_AFTER.search(output)
    return parse_openssl_date(match.group(1).strip()) if match else None


def parse_fingerprint(output: str) -> Optional[str]:
    match = _FINGERPRINT.search(output)
    return match.group(1).strip() if match else None


def parse_domains(text: str) -> List[str]:
    """Extract the subject CN and the DNS subject alternative names, de-duplicated in order."""
    domains = []

    cn_match = _SUBJECT_CN.search(text)
    if cn_match:
        domains.append(cn_match.group(1).strip())

    san_match = _SAN.search(text)
    if san_match:
        for entry in san_match.group(1).split(","):
            entry = entry.strip()
            if entry.startswith("DNS:"):
                domains.append(entry[len("DNS:"):])

    return list(dict.fromkeys(domains))


def days_until(moment: Optional[datetime], now: Optional[datetime] = None) -> Optional[int]:
    """Whole days from ``now`` until ``moment``, rounded up; negative once expired."""
    if moment is None:
        return None
    now = now or datetime.now(timezone.utc)
    seconds = (moment - now).total_seconds()
    days, remainder = divmod(seconds, 86400)
    return int(days) + (1 if remainder > 0 else 0)


def parse_root_ca_info(output: str, now: Optional[datetime] = None) -> Dict:
    """Parse ``openssl x509 -subject -issuer -dates -fingerprint -sha256`` output."""
    subject = _SUBJECT.search(output)
    issuer = _ISSUER.search(output)
    not_before = _NOT_BEFORE.search(output)
    expiry = parse_expiry(output)

    return {
        "subject": subject.group(1).strip() if subject else "Unknown",
        "issuer": issuer.group(1).strip() if issuer else "Unknown",
        "validFrom": parse_openssl_date(not_before.group(1).strip()) if not_before else None,
        "expiry": expiry,
        "daysUntilExpiry": days_until(expiry, now),
        "fingerprint": parse_fingerprint(output) or "Unknown",
    }


def is_key_file(filename: str) -> bool:
    return filename.endswith("-key.pem")


def companion_filename(filename: str) -> Optional[str]:
    """``x.pem`` <-> ``x-key.pem``; None for anything else."""
    if filename.endswith("-key.pem"):
        return filename[: -len("-key.pem")] + ".pem"
    if filename.endswith(".pem"):
        return filename[: -len(".pem")] + "-key.pem"
    return None


def find_certificate_files(directory: str, relative_path: str = "") -> List[Dict]:
    """Recursively list ``.pem``/``.crt`` files under ``directory``."""
    files = []
    if not os.path.isdir(directory):
        return files

    for entry in sorted(os.scandir(directory), key=lambda e: e.name):
        relative_file_path = os.path.join(relative_path, entry.name)
        if entry.is_dir(follow_symlinks=False):
            files.extend(find_certificate_files(entry.path, relative_file_path))
        elif entry.is_file() and entry.name.endswith(CERTIFICATE_EXTENSIONS):
            files.append({
                "name": entry.name,
                "fullPath": entry.path,
                "relativePath": relative_file_path,
                "directory": relative_path,
            })
    return files


async def _openssl(runner, cert_path: str, flags: str) -> Optional[str]:
    try:
        result = await runner.run(f'openssl x509 -in "{cert_path}" -noout {flags}')
    except ConsoleError as e:
        logger.error("Error reading certificate %s: %s", cert_path, e)
        return None
    return result.stdout


async def get_certificate_expiry(runner, cert_path: str) -> Optional[datetime]:
    output = await _openssl(runner, cert_path, "-enddate")
    return parse_expiry(output) if output else None


async def get_certificate_fingerprint(runner, cert_path: str) -> Optional[str]:
    output = await _openssl(runner, cert_path, "-fingerprint -sha256")
    return parse_fingerprint(output) if output else None


async def get_certificate_domains(runner, cert_path: str) -> List[str]:
    output = await _openssl(runner, cert_path, "-text")
    return parse_domains(output) if output else []
