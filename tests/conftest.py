"""Shared fixtures: isolated settings, a fake command runner and a test client."""
import re
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from mkcert_web.config import Settings
from mkcert_web.database import get_db
from mkcert_web.exceptions import InvalidCommand
from mkcert_web.main import create_app
from mkcert_web.models import Base
from mkcert_web.utils.rate_limit import limiter
from mkcert_web.utils.runner import CommandResult, CommandRunner


def openssl_date(moment: datetime) -> str:
    return moment.strftime("%b %d %H:%M:%S %Y GMT")


CERT_TEXT = """Certificate:
    Data:
        Subject: O = mkcert development certificate, OU = dev@host, CN = example.com
        X509v3 extensions:
            X509v3 Subject Alternative Name: 
                DNS:example.com, DNS:www.example.com, IP Address:127.0.0.1
"""

ROOT_CA_OUTPUT = """subject=O = mkcert development CA, OU = dev@host, CN = mkcert dev@host
issuer=O = mkcert development CA, OU = dev@host, CN = mkcert dev@host
notBefore=Jan  1 00:00:00 2024 GMT
notAfter=Jan  1 00:00:00 2034 GMT
sha256 Fingerprint=AB:CD:EF:01
"""


def _write_pkcs12(command, cwd):
    out = re.search(r'-out "([^"]+)"', command).group(1)
    with open(out, "wb") as f:
        f.write(b"PKCS12DATA")
    return ""


def _mkcert_files(command, cwd):
    match = re.match(r'cd "([^"]+)" && mkcert -cert-file "([^"]+)" -key-file "([^"]+)"', command)
    folder, cert, key = match.groups()
    base = f"{cwd}/{folder}" if cwd else folder
    for name in (cert, key):
        with open(f"{base}/{name}", "w") as f:
            f.write("-----BEGIN CERTIFICATE-----\n")
    return f"Created a new certificate valid for the following names\nThe certificate is at \"./{cert}\""


class FakeRunner(CommandRunner):
    """Validates commands like the real runner, then answers from a table instead of spawning."""

    def __init__(self, responses=None):
        super().__init__()
        self.commands = []
        self.responses = dict(responses or {})

    async def run(self, command, cwd=None):
        reason = self.validator.rejection_reason(command)
        if reason is not None:
            raise InvalidCommand(f"Command not allowed for security reasons: {reason}")
        self.commands.append((command, cwd))
        for needle, outcome in self.responses.items():
            if needle in command:
                if isinstance(outcome, Exception):
                    raise outcome
                stdout = outcome(command, cwd) if callable(outcome) else outcome
                return CommandResult(command=command, stdout=stdout, stderr="", exit_code=0)
        return CommandResult(command=command, stdout="", stderr="", exit_code=0)


@pytest.fixture
def caroot(tmp_path):
    path = tmp_path / "caroot"
    path.mkdir()
    (path / "rootCA.pem").write_text("ROOT CA\n")
    (path / "rootCA-key.pem").write_text("ROOT KEY\n")
    return path


@pytest.fixture
def runner(caroot):
    return FakeRunner({
        "mkcert -CAROOT": f"{caroot}\n",
        "-subject -issuer": ROOT_CA_OUTPUT,
        "-enddate": "notAfter=Jan  1 00:00:00 2030 GMT\n",
        "-fingerprint": "sha256 Fingerprint=12:34:56:78\n",
        "-text": CERT_TEXT,
        "openssl pkcs12": _write_pkcs12,
        "mkcert -cert-file": _mkcert_files,
        "ls -la": "-rw-r--r-- 1 user user 1 Jan 1 00:00 localhost.pem\n",
    })


@pytest.fixture
def expiring_runner(runner):
    """Runner whose certificates all expire in five days."""
    soon = datetime.now(timezone.utc) + timedelta(days=5, hours=1)
    runner.responses["-enddate"] = f"notAfter={openssl_date(soon)}\n"
    return runner


@pytest.fixture
def cert_root(tmp_path):
    root = tmp_path / "certificates"
    root.mkdir()
    return root


@pytest.fixture
def settings(cert_root):
    return Settings(
        CERTIFICATES_DIR=str(cert_root),
        DATABASE_URL="sqlite://",
        PUBLIC_DIR=None,
        ENABLE_AUTH=False,
        RATE_LIMIT_ENABLED=False,
        EMAIL_ENABLED=False,
        MONITORING_ENABLED=False,
        MAX_UPLOAD_BYTES=1024,
    )


@pytest.fixture
def db_session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def app(settings, runner, db_session_factory):
    app = create_app(settings=settings, runner=runner)

    def override_get_db():
        db = db_session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield app
    limiter.enabled = False
    limiter.reset()


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def populated(cert_root):
    """A dated pair, a root-level interface pair and an uploaded certificate."""
    dated = cert_root / "2024-01-15"
    dated.mkdir()
    (dated / "example.com.pem").write_text("CERT\n")
    (dated / "example.com-key.pem").write_text("KEY\n")
    (cert_root / "localhost.pem").write_text("LOCAL CERT\n")
    (cert_root / "localhost-key.pem").write_text("LOCAL KEY\n")
    uploaded = cert_root / "uploaded"
    uploaded.mkdir()
    (uploaded / "partner.pem").write_text("PARTNER\n")
    return cert_root
