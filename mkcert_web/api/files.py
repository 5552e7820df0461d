from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile, status
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session
from typing import Optional

from ..database import get_db
from ..services import CertificateStore
from ..utils.auth import require_auth
from ..utils.rate_limit import limiter, api_limit, general_limit
from .deps import audit, get_store

router = APIRouter(tags=["Files"], dependencies=[Depends(require_auth)])


@router.get("/download/{filename}")
@limiter.limit(general_limit)
async def download_file(request: Request, filename: str, store: CertificateStore = Depends(get_store)):
    """Download a root-level certificate file"""
    return FileResponse(store.download_path(filename), filename=filename, media_type="application/x-pem-file")


@router.post("/api/upload")
@limiter.limit(api_limit)
async def upload_file(
    request: Request,
    certificate: Optional[UploadFile] = File(None),
    store: CertificateStore = Depends(get_store),
    db: Session = Depends(get_db)
):
    """Upload a .pem file into the uploaded/ folder"""
    if certificate is None or not certificate.filename:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No file uploaded")

    # one byte past the limit is enough to reject
    data = await certificate.read(store.max_upload_bytes + 1)
    saved = store.save_upload(certificate.filename, data)
    audit(db, request, "upload", "file", saved["filename"], detail={"size": saved["size"]})
    return {"success": True, "message": "File uploaded successfully", **saved}


@router.get("/api/files")
@limiter.limit(general_limit)
async def list_files(request: Request, store: CertificateStore = Depends(get_store)):
    files = store.list_files()
    return {"success": True, "files": files, "total": len(files), "directory": store.root}


@router.get("/api/file/{filename}/content")
@limiter.limit(general_limit)
async def file_content(request: Request, filename: str, store: CertificateStore = Depends(get_store)):
    content = store.read_content(filename)
    return {"success": True, "filename": filename, "content": content, "size": len(content)}
