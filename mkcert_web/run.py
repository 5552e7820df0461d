#!/usr/bin/env python3
"""
Entry point for the ``mkcert-web`` console script.
"""
import asyncio
import logging
import os
from typing import Optional, Tuple

import uvicorn
from dotenv import load_dotenv

# Load environment variables before the settings object is built
load_dotenv()

from .config import settings  # noqa: E402
from .main import create_app  # noqa: E402

logger = logging.getLogger("mkcert_web")


def find_ssl_files() -> Optional[Tuple[str, str]]:
    """Locate ``<SSL_DOMAIN>.pem`` and ``<SSL_DOMAIN>-key.pem`` in the certificates dir or the cwd"""
    for directory in (str(settings.certificates_root), os.getcwd()):
        cert = os.path.join(directory, f"{settings.SSL_DOMAIN}.pem")
        key = os.path.join(directory, f"{settings.SSL_DOMAIN}-key.pem")
        if os.path.isfile(cert) and os.path.isfile(key):
            return cert, key
    return None


def print_summary(https_files):
    print("Starting mkcert Web UI server...")
    print(f"Working directory: {os.getcwd()}")
    print(f"Certificates directory: {settings.certificates_root}")
    print("\nConfiguration Summary:")
    print(f"  - HTTP: http://{settings.HOST}:{settings.PORT}")
    print(f"  - HTTPS: {'Enabled' if settings.ENABLE_HTTPS else 'Disabled'}")
    if settings.ENABLE_HTTPS:
        print(f"  - HTTPS Port: {settings.HTTPS_PORT}")
        print(f"  - Force HTTPS: {'Yes' if settings.FORCE_HTTPS else 'No'}")
        if not https_files:
            print(f"  ! HTTPS enabled but certificates not found: {settings.SSL_DOMAIN}.pem, {settings.SSL_DOMAIN}-key.pem")
            print(f"  ! Generate certificates with: mkcert {settings.SSL_DOMAIN}")
    print(f"  - Authentication: {'Required' if settings.ENABLE_AUTH else 'Disabled'}")
    print(f"  - Rate Limiting: {'Enabled' if settings.RATE_LIMIT_ENABLED else 'Disabled'}")
    print(f"  - Email notifications: {'Enabled' if settings.EMAIL_ENABLED else 'Disabled'}")
    print(f"  - Certificate monitoring: {'Enabled' if settings.MONITORING_ENABLED else 'Disabled'}")
    print(f"  - Theme: {settings.THEME_MODE}")
    print(f"\nAPI Documentation: http://{settings.HOST}:{settings.PORT}/docs")


async def serve(https_files: Tuple[str, str]):
    """Serve one app over HTTP and HTTPS at the same time"""
    app = create_app()
    cert, key = https_files
    log_level = settings.LOG_LEVEL.lower()
    http_server = uvicorn.Server(uvicorn.Config(app, host=settings.HOST, port=settings.PORT, log_level=log_level))
    https_server = uvicorn.Server(uvicorn.Config(
        app,
        host=settings.HOST,
        port=settings.HTTPS_PORT,
        ssl_certfile=cert,
        ssl_keyfile=key,
        log_level=log_level,
        lifespan="off",
    ))
    await asyncio.gather(http_server.serve(), https_server.serve())


def main():
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    https_files = find_ssl_files() if settings.ENABLE_HTTPS else None
    print_summary(https_files)

    if https_files:
        asyncio.run(serve(https_files))
        return

    uvicorn.run(
        "mkcert_web.main:create_app",
        factory=True,
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.RELOAD,
        log_level=settings.LOG_LEVEL.lower()
    )


if __name__ == "__main__":
    main()
