"""
File-based certificate storage for the console.

Layout under the certificates root::

    <root>/                      interface SSL / legacy certificates
    <root>/YYYY-MM-DD/           certificates generated on that day
    <root>/uploaded/             user uploads
    <root>/<folder>/archive/     archived pairs of that folder

Every filename and folder that reaches this class comes from a client, so it
is cleared by ``FilenameValidator`` and ``PathSanitizer`` before any
filesystem call, and every command goes through ``CommandRunner``.
"""
import asyncio
import io
import logging
import os
import re
import shutil
import tempfile
import zipfile
from datetime import datetime, timezone, date
from typing import Any, Dict, List, Optional, Tuple

from ..exceptions import CertificateNotFound, InvalidCommand, InvalidFilename, InvalidPath, InvalidUpload, SubprocessFailure
from ..security import FilenameValidator, PathSanitizer
from ..utils import certificates as cert_utils
from ..utils.runner import CommandRunner

logger = logging.getLogger(__name__)

DATE_FOLDER = re.compile(r"\d{4}-\d{2}-\d{2}", re.ASCII)
ROOT_FOLDERS = ("interface-ssl", "legacy")
UPLOADED_FOLDER = "uploaded"
ARCHIVE_FOLDER = "archive"
PFX_PASSWORD = re.compile(r"[\w.@%+=!-]*", re.ASCII)
_BASE_NAME = re.compile(r"(-key)?\.pem$")


def certificate_base_name(filename: str) -> str:
    return _BASE_NAME.sub("", filename)


def domain_file_stem(domain: str) -> str:
    """File stem for a domain, with ``*`` spelled out the way mkcert does."""
    return domain.replace("*", "_wildcard")


class CertificateStore:
    """Certificate files on disk plus the mkcert/openssl operations on them"""

    def __init__(
        self,
        root: str,
        runner: CommandRunner,
        path_sanitizer: Optional[PathSanitizer] = None,
        filename_validator: Optional[FilenameValidator] = None,
        max_upload_bytes: int = 10 * 1024 * 1024,
    ):
        self.root = os.path.abspath(root)
        self.runner = runner
        self.paths = path_sanitizer or PathSanitizer()
        self.filenames = filename_validator or FilenameValidator()
        self.max_upload_bytes = max_upload_bytes
        os.makedirs(self.root, exist_ok=True)

    # Path helpers
    def folder_dir(self, folder: str) -> str:
        """Map a folder parameter to a directory under the root"""
        if folder in ROOT_FOLDERS:
            return self.root
        if folder == UPLOADED_FOLDER:
            return os.path.join(self.root, UPLOADED_FOLDER)
        if folder and DATE_FOLDER.fullmatch(folder):
            return self.paths.sanitize(folder, self.root).resolved
        raise InvalidPath("Invalid folder parameter")

    def _resolve(self, filename: str, directory: str) -> str:
        self.filenames.validate(filename)
        return self.paths.sanitize(filename, directory).resolved

    def _resolve_pem(self, filename: str, directory: Optional[str] = None) -> str:
        self.filenames.validate(filename)
        if not filename.endswith(".pem"):
            raise InvalidFilename("Only certificate files (.pem) are allowed")
        return self.paths.sanitize(filename, directory or self.root).resolved

    def _existing_pem(self, filename: str, directory: Optional[str] = None) -> str:
        path = self._resolve_pem(filename, directory)
        if not os.path.isfile(path):
            raise CertificateNotFound("File not found")
        return path

    def _pair_paths(self, directory: str, name: str) -> Tuple[str, str]:
        self.filenames.validate(name)
        return (
            self._resolve(f"{name}.pem", directory),
            self._resolve(f"{name}-key.pem", directory),
        )

    # Listing and inspection
    async def _describe(self, file_info: Dict) -> Dict:
        full_path = file_info["fullPath"]
        stats = os.stat(full_path)
        key_file = cert_utils.is_key_file(file_info["name"])

        if key_file:
            expiry, domains, fingerprint = None, [], None
        else:
            expiry, domains, fingerprint = await asyncio.gather(
                cert_utils.get_certificate_expiry(self.runner, full_path),
                cert_utils.get_certificate_domains(self.runner, full_path),
                cert_utils.get_certificate_fingerprint(self.runner, full_path),
            )

        parts = file_info["relativePath"].split(os.sep)
        folder = parts[0] if len(parts) > 1 else None
        interface_ssl = len(parts) == 1

        return {
            "filename": file_info["name"],
            "path": full_path,
            "relativePath": file_info["relativePath"],
            "size": stats.st_size,
            "modified": datetime.fromtimestamp(stats.st_mtime, timezone.utc),
            "expiry": expiry,
            "domains": domains,
            "fingerprint": fingerprint,
            "type": "key" if key_file else "cert",
            "folder": folder,
            "folderDate": folder if folder and DATE_FOLDER.fullmatch(folder) else None,
            "isArchived": ARCHIVE_FOLDER in parts[:-1],
            "isInterfaceSSL": interface_ssl,
            "canEdit": parts[0] != UPLOADED_FOLDER and not interface_ssl,
        }

    async def list_certificates(self) -> List[Dict[str, Any]]:
        """Scan the root recursively and group cert/key files by base name"""
        files = cert_utils.find_certificate_files(self.root)
        described = await asyncio.gather(*(self._describe(f) for f in files))

        grouped: Dict[Tuple[Optional[str], bool, str], Dict[str, Any]] = {}
        for cert in described:
            base = certificate_base_name(cert["filename"])
            key = (cert["folder"], cert["isArchived"], base)
            group = grouped.setdefault(key, {
                "name": base,
                "cert": None,
                "key": None,
                "domains": [],
                "expiry": None,
                "fingerprint": None,
                "folder": cert["folder"],
                "folderDate": cert["folderDate"],
                "isArchived": cert["isArchived"],
                "isInterfaceSSL": cert["isInterfaceSSL"],
                "canEdit": cert["canEdit"],
            })
            if cert["type"] == "cert":
                group["cert"] = cert
                group["domains"] = cert["domains"]
                group["expiry"] = cert["expiry"]
                group["fingerprint"] = cert["fingerprint"]
            else:
                group["key"] = cert

        return list(grouped.values())

    async def certificate_details(self, filename: str) -> Dict[str, Any]:
        path = self._existing_pem(filename)
        stats = os.stat(path)
        expiry = await cert_utils.get_certificate_expiry(self.runner, path)
        domains = await cert_utils.get_certificate_domains(self.runner, path)
        fingerprint = await cert_utils.get_certificate_fingerprint(self.runner, path)
        return {
            "filename": filename,
            "size": stats.st_size,
            "modified": datetime.fromtimestamp(stats.st_mtime, timezone.utc),
            "expiry": expiry,
            "domains": domains,
            "fingerprint": fingerprint,
            "type": "key" if cert_utils.is_key_file(filename) else "cert",
        }

    def delete(self, filename: str) -> List[str]:
        """Delete a root-level certificate and, best effort, its companion. Returns the removed names."""
        path = self._existing_pem(filename)
        os.remove(path)
        removed = [filename]

        companion = cert_utils.companion_filename(filename)
        if companion:
            companion_path = os.path.join(os.path.dirname(path), companion)
            if os.path.isfile(companion_path):
                try:
                    os.remove(companion_path)
                    removed.append(companion)
                except OSError as e:
                    logger.warning("Could not delete companion file %s: %s", companion_path, e)
        return removed

    # mkcert operations
    async def generate(self, domains: str, today: Optional[date] = None) -> Dict[str, Any]:
        """Run mkcert for ``domains`` inside today's dated folder"""
        names = domains.split()
        if not names:
            raise InvalidPath("Domain names are required for certificate generation")
        # mkcert would read these as flags (-install, -uninstall, -csr, ...)
        options = [name for name in names if name.startswith("-")]
        if options:
            logger.warning("Rejected generate request with option-like domains: %s", options)
            raise InvalidCommand(f"Invalid domain name: {options[0]}")

        day = (today or datetime.now(timezone.utc).date()).isoformat()
        cert_dir = self.folder_dir(day)
        os.makedirs(cert_dir, exist_ok=True)

        stem = domain_file_stem(names[0])
        cert_name = self.filenames.validate(f"{stem}.pem")
        key_name = self.filenames.validate(f"{stem}-key.pem")

        command = f'cd "{day}" && mkcert -cert-file "{cert_name}" -key-file "{key_name}" {" ".join(names)}'
        result = await self.runner.run(command, cwd=self.root)
        logger.info("Generated certificate %s in %s", cert_name, cert_dir)

        return {
            "output": result.stdout or result.stderr,
            "command": command,
            "certificateDir": cert_dir,
            "folder": day,
            "name": stem,
        }

    async def ca_root(self) -> str:
        result = await self.runner.run("mkcert -CAROOT")
        ca_root = result.stdout.strip()
        if not ca_root:
            raise SubprocessFailure("Could not determine CA root directory", stdout=result.stdout, stderr=result.stderr)
        return ca_root

    async def ca_exists(self) -> bool:
        ca_root = await self.ca_root()
        return all(os.path.isfile(os.path.join(ca_root, n)) for n in ("rootCA.pem", "rootCA-key.pem"))

    async def root_ca_path(self) -> str:
        path = os.path.join(await self.ca_root(), "rootCA.pem")
        if not os.path.isfile(path):
            raise CertificateNotFound("Root CA certificate not found")
        return path

    async def root_ca_info(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        path = await self.root_ca_path()
        result = await self.runner.run(f'openssl x509 -in "{path}" -noout -subject -issuer -dates -fingerprint -sha256')
        if not result.stdout:
            raise SubprocessFailure("Could not read certificate information", stderr=result.stderr)

        info = cert_utils.parse_root_ca_info(result.stdout, now)
        info["caRoot"] = os.path.dirname(path)
        info["path"] = path
        return info

    # Archive, download, bundle
    def archive(self, folder: str, name: str) -> List[str]:
        source_dir = self.folder_dir(folder)
        archive_dir = os.path.join(source_dir, ARCHIVE_FOLDER)
        return self._move_pair(source_dir, archive_dir, name)

    def restore(self, folder: str, name: str) -> List[str]:
        target_dir = self.folder_dir(folder)
        archive_dir = os.path.join(target_dir, ARCHIVE_FOLDER)
        return self._move_pair(archive_dir, target_dir, name)

    def _move_pair(self, source_dir: str, target_dir: str, name: str) -> List[str]:
        cert_file, key_file = self._pair_paths(source_dir, name)
        present = [p for p in (cert_file, key_file) if os.path.isfile(p)]
        if not present:
            raise CertificateNotFound(f"Certificate {name} not found")

        os.makedirs(target_dir, exist_ok=True)
        moved = []
        for path in present:
            shutil.move(path, os.path.join(target_dir, os.path.basename(path)))
            moved.append(os.path.basename(path))
        logger.info("Moved %s from %s to %s", moved, source_dir, target_dir)
        return moved

    def file_path(self, folder: str, filename: str) -> str:
        path = self._resolve(filename, self.folder_dir(folder))
        if not os.path.isfile(path):
            raise CertificateNotFound(f"{'Key' if cert_utils.is_key_file(filename) else 'Certificate'} file not found")
        return path

    def bundle(self, folder: str, name: str) -> bytes:
        """ZIP the cert/key pair in memory"""
        cert_file, key_file = self._pair_paths(self.folder_dir(folder), name)
        present = [p for p in (cert_file, key_file) if os.path.isfile(p)]
        if not present:
            raise CertificateNotFound("Certificate files not found")

        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=9) as zf:
            for path in present:
                zf.write(path, arcname=os.path.basename(path))
        return buffer.getvalue()

    async def export_pfx(self, folder: str, name: str, password: str = "", include_ca: bool = False, legacy: bool = False) -> bytes:
        """Bundle the pair into PKCS#12 with openssl and return the file contents"""
        if len(password) > 128 or not PFX_PASSWORD.fullmatch(password):
            raise InvalidFilename("Invalid PFX password: only letters, digits and . @ % + = ! _ - are allowed")

        cert_file, key_file = self._pair_paths(self.folder_dir(folder), name)
        if not (os.path.isfile(cert_file) and os.path.isfile(key_file)):
            raise CertificateNotFound("Certificate and key are both required for PFX export")

        ca_file = await self.root_ca_path() if include_ca else None

        with tempfile.TemporaryDirectory(prefix="mkcert-web-") as tmp:
            out = os.path.join(tmp, f"{name}.pfx")
            command = f'openssl pkcs12 -export -out "{out}" -inkey "{key_file}" -in "{cert_file}"'
            if ca_file:
                command += f' -certfile "{ca_file}"'
            command += f" -passout pass:{password}"
            if legacy:
                command += " -legacy"

            await self.runner.run(command)
            with open(out, "rb") as f:
                return f.read()

    # Root-level files and uploads
    def save_upload(self, filename: str, data: bytes) -> Dict[str, Any]:
        self.filenames.validate(filename)
        if not filename.endswith(".pem"):
            raise InvalidUpload("Only .pem files are allowed")
        if len(data) > self.max_upload_bytes:
            raise InvalidUpload(f"File size too large (max {self.max_upload_bytes // (1024 * 1024)}MB)")

        upload_dir = os.path.join(self.root, UPLOADED_FOLDER)
        os.makedirs(upload_dir, exist_ok=True)
        path = self.paths.sanitize(filename, upload_dir).resolved
        with open(path, "wb") as f:
            f.write(data)
        logger.info("Saved upload %s (%d bytes)", path, len(data))
        return {"filename": filename, "size": len(data), "folder": UPLOADED_FOLDER}

    def list_files(self) -> List[Dict[str, Any]]:
        files = []
        for entry in sorted(os.scandir(self.root), key=lambda e: e.name):
            if entry.is_file() and entry.name.endswith(".pem"):
                stats = entry.stat()
                files.append({
                    "name": entry.name,
                    "path": entry.path,
                    "size": stats.st_size,
                    "modified": datetime.fromtimestamp(stats.st_mtime, timezone.utc),
                    "isFile": True,
                })
        return files

    def download_path(self, filename: str) -> str:
        return self._existing_pem(filename)

    def read_content(self, filename: str) -> str:
        path = self._existing_pem(filename)
        with open(path, "r", encoding="utf-8") as f:
            return f.read()
