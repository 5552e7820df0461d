"""Tests for uploads and root-level file access."""


def upload(client, name, data, field="certificate"):
    return client.post("/api/upload", files={field: (name, data, "application/x-pem-file")})


def test_upload_goes_to_uploaded_folder(client, cert_root):
    response = upload(client, "partner.pem", b"-----BEGIN CERTIFICATE-----\n")
    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["folder"] == "uploaded"
    assert (cert_root / "uploaded" / "partner.pem").is_file()


def test_upload_rejects_non_pem(client):
    response = upload(client, "notes.txt", b"hello")
    assert response.status_code == 400
    assert response.json()["error"] == "Only .pem files are allowed"


def test_upload_rejects_large_files(client, cert_root):
    response = upload(client, "big.pem", b"x" * 2048)
    assert response.status_code == 400
    assert not (cert_root / "uploaded" / "big.pem").exists()


def test_upload_rejects_reserved_names(client):
    assert upload(client, "CON.pem", b"x").status_code == 400


def test_upload_without_file(client):
    response = client.post("/api/upload", data={"other": "value"})
    assert response.status_code == 400
    assert response.json()["error"] == "No file uploaded"


def test_upload_is_audited(client):
    upload(client, "partner.pem", b"abc")
    logs = client.get("/api/audit", params={"action": "upload"}).json()["logs"]
    assert logs[0]["resourceId"] == "partner.pem"
    assert logs[0]["detail"] == '{"size": 3}'


def test_list_files_only_root_level(client, populated):
    data = client.get("/api/files").json()
    assert [f["name"] for f in data["files"]] == ["localhost-key.pem", "localhost.pem"]
    assert data["total"] == 2


def test_file_content(client, populated):
    data = client.get("/api/file/localhost.pem/content").json()
    assert data["content"] == "LOCAL CERT\n"
    assert data["size"] == len("LOCAL CERT\n")


def test_file_content_rejects_non_pem(client, populated):
    (populated / "secret.txt").write_text("secret")
    assert client.get("/api/file/secret.txt/content").status_code == 400


def test_download(client, populated):
    response = client.get("/download/localhost.pem")
    assert response.status_code == 200
    assert response.content == b"LOCAL CERT\n"


def test_download_missing(client, populated):
    response = client.get("/download/nothing.pem")
    assert response.status_code == 404
    assert response.json() == {"success": False, "error": "File not found"}
