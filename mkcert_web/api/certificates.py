"""
Certificate management routes: mkcert commands, listing, inspection,
archive/restore, downloads and PKCS#12 export.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import FileResponse, Response
from sqlalchemy.orm import Session

from ..database import get_db
from ..exceptions import CommandTimeout, SubprocessFailure
from ..schemas.certificates import ExecuteRequest, PfxRequest
from ..services import CertificateStore
from ..utils.auth import require_auth
from ..utils.rate_limit import limiter, cli_limit, general_limit
from ..utils.runner import CommandRunner
from .deps import audit, get_runner, get_store

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Certificates"], dependencies=[Depends(require_auth)])

COMMANDS = [
    {
        "name": "Install CA",
        "key": "install-ca",
        "description": "Install the local CA certificate",
        "dangerous": False,
    },
    {
        "name": "Uninstall CA",
        "key": "uninstall-ca",
        "description": "Uninstall the local CA certificate",
        "dangerous": True,
    },
    {
        "name": "Generate",
        "key": "generate",
        "description": "Generate certificate for domains",
        "dangerous": False,
        "hasInput": True,
        "inputPlaceholder": "Enter domain names (space-separated)",
    },
    {
        "name": "Get CAROOT",
        "key": "caroot",
        "description": "Get the CA root directory path",
        "dangerous": False,
    },
    {
        "name": "List Certificates",
        "key": "list",
        "description": "List all certificates in the certificates directory",
        "dangerous": False,
    },
]

SIMPLE_COMMANDS = {
    "install-ca": "mkcert -install",
    "uninstall-ca": "mkcert -uninstall",
    "caroot": "mkcert -CAROOT",
}


@router.get("/api/commands")
@limiter.limit(general_limit)
async def list_commands(request: Request):
    return {"success": True, "commands": COMMANDS}


@router.post("/api/execute")
@limiter.limit(cli_limit)
async def execute_command(
    request: Request,
    body: ExecuteRequest,
    store: CertificateStore = Depends(get_store),
    runner: CommandRunner = Depends(get_runner),
    db: Session = Depends(get_db)
):
    """Run one of the predefined mkcert commands"""
    command = body.command
    user_input = body.input.strip() if body.input else ""

    if command == "generate":
        if not user_input:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Domain names are required for certificate generation"
            )
        result = await store.generate(user_input)
        audit(db, request, "generate", "certificate", result["name"],
              detail={"domains": user_input.split(), "folder": result["folder"]})
        return {"success": True, **result}

    if command == "list":
        full_command = "ls -la *.pem"
        result = await runner.run(full_command, cwd=store.root)
        return {"success": True, "output": result.stdout, "command": full_command}

    if command not in SIMPLE_COMMANDS:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid command")

    if command == "install-ca":
        # Avoid the privileged trust-store prompt when the CA files already exist
        try:
            ca_exists = await store.ca_exists()
        except (SubprocessFailure, CommandTimeout) as e:
            logger.warning("Error checking CA status: %s", e)
            ca_exists = False
        if ca_exists:
            return {
                "success": True,
                "output": 'CA is already available. If you need to install it in the system trust store, '
                          'please run "mkcert -install" manually with administrator privileges.',
                "command": "mkcert -install (skipped - CA exists)",
                "warning": "Manual installation may be required for system trust",
            }

    full_command = SIMPLE_COMMANDS[command]
    result = await runner.run(full_command)
    if command in ("install-ca", "uninstall-ca"):
        audit(db, request, command, "rootca")
    return {"success": True, "output": result.stdout or result.stderr, "command": full_command}


@router.get("/api/certificates")
@limiter.limit(general_limit)
async def list_certificates(request: Request, store: CertificateStore = Depends(get_store)):
    certificates = await store.list_certificates()
    return {"success": True, "certificates": certificates, "total": len(certificates)}


@router.get("/api/certificate/{filename}")
@limiter.limit(general_limit)
async def get_certificate(request: Request, filename: str, store: CertificateStore = Depends(get_store)):
    details = await store.certificate_details(filename)
    return {"success": True, **details}


@router.delete("/api/certificate/{filename}")
@limiter.limit(cli_limit)
async def delete_certificate(
    request: Request,
    filename: str,
    store: CertificateStore = Depends(get_store),
    db: Session = Depends(get_db)
):
    removed = store.delete(filename)
    audit(db, request, "delete", "certificate", filename, detail={"removed": removed})
    return {"success": True, "message": "Certificate deleted successfully", "removed": removed}


@router.get("/api/rootca/info")
@limiter.limit(general_limit)
async def root_ca_info(request: Request, store: CertificateStore = Depends(get_store)):
    info = await store.root_ca_info()
    return {"success": True, **info}


@router.post("/certificates/{folder}/{name}/archive")
@limiter.limit(cli_limit)
async def archive_certificate(
    request: Request,
    folder: str,
    name: str,
    store: CertificateStore = Depends(get_store),
    db: Session = Depends(get_db)
):
    moved = store.archive(folder, name)
    audit(db, request, "archive", "certificate", f"{folder}/{name}", detail={"files": moved})
    return {"success": True, "message": f"Certificate {name} archived successfully", "files": moved}


@router.post("/certificates/{folder}/{name}/restore")
@limiter.limit(cli_limit)
async def restore_certificate(
    request: Request,
    folder: str,
    name: str,
    store: CertificateStore = Depends(get_store),
    db: Session = Depends(get_db)
):
    moved = store.restore(folder, name)
    audit(db, request, "restore", "certificate", f"{folder}/{name}", detail={"files": moved})
    return {"success": True, "message": f"Certificate {name} restored successfully", "files": moved}


@router.post("/certificates/{folder}/{name}/pfx")
@limiter.limit(cli_limit)
async def export_pfx(
    request: Request,
    folder: str,
    name: str,
    body: PfxRequest,
    store: CertificateStore = Depends(get_store),
    db: Session = Depends(get_db)
):
    """Export the cert/key pair as a PKCS#12 bundle"""
    data = await store.export_pfx(folder, name, body.password, include_ca=body.includeCA, legacy=body.legacy)
    audit(db, request, "pfx_export", "certificate", f"{folder}/{name}",
          detail={"includeCA": body.includeCA, "legacy": body.legacy})
    return Response(
        content=data,
        media_type="application/x-pkcs12",
        headers={"Content-Disposition": f'attachment; filename="{name}.pfx"'},
    )


@router.get("/download/cert/{folder}/{filename}")
@limiter.limit(general_limit)
async def download_cert(request: Request, folder: str, filename: str, store: CertificateStore = Depends(get_store)):
    return FileResponse(store.file_path(folder, filename), filename=filename, media_type="application/x-pem-file")


@router.get("/download/key/{folder}/{filename}")
@limiter.limit(general_limit)
async def download_key(request: Request, folder: str, filename: str, store: CertificateStore = Depends(get_store)):
    return FileResponse(store.file_path(folder, filename), filename=filename, media_type="application/x-pem-file")


@router.get("/download/bundle/{folder}/{name}")
@limiter.limit(general_limit)
async def download_bundle(request: Request, folder: str, name: str, store: CertificateStore = Depends(get_store)):
    return Response(
        content=store.bundle(folder, name),
        media_type="application/zip",
        headers={"Content-Disposition": f'attachment; filename="{name}.zip"'},
    )


@router.get("/download/rootca")
@limiter.limit(general_limit)
async def download_root_ca(request: Request, store: CertificateStore = Depends(get_store)):
    path = await store.root_ca_path()
    return FileResponse(path, filename="mkcert-rootCA.pem", media_type="application/x-pem-file")
