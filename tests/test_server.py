import aiofiles.os

ADDRESS = {"folder1": "acct123", "folder2": "2024", "folder3": "invoices", "fileName": "inv-001"}
LOCATION = "/acct123/2024/invoices/inv-001.pdf"


def upload(client, payload, fields=None, content_type="application/pdf"):
    return client.post(
        "/",
        data=ADDRESS if fields is None else fields,
        files={"file": ("upload.pdf", payload, content_type)},
    )


def test_multipart_upload_then_download(client, pdf_bytes):
    """Test the basic POST then GET cycle."""
    response = upload(client, pdf_bytes)
    assert response.status_code == 201
    assert response.json() == {"message": "File stored successfully", "location": LOCATION}

    response = client.get(LOCATION)
    assert response.status_code == 200
    assert response.content == pdf_bytes
    assert response.headers["content-type"] == "application/pdf"


def test_upload_overwrites_existing_file(client, pdf_bytes):
    assert upload(client, pdf_bytes).status_code == 201
    assert upload(client, pdf_bytes + b"second").status_code == 201

    response = client.get(LOCATION)
    assert response.content == pdf_bytes + b"second"


def test_raw_upload_with_query_fields(client, pdf_bytes):
    response = client.post(
        "/",
        params=ADDRESS,
        content=pdf_bytes,
        headers={"Content-Type": "application/pdf"},
    )
    assert response.status_code == 201
    assert response.json()["location"] == LOCATION

    assert client.get(LOCATION).content == pdf_bytes


def test_raw_upload_with_header_fields(client, pdf_bytes):
    response = client.post(
        "/",
        content=pdf_bytes,
        headers={
            "Content-Type": "application/pdf",
            "X-Folder1": "acct123",
            "X-Folder2": "2024",
            "X-Folder3": "invoices",
            "X-File-Name": "inv-001",
        },
    )
    assert response.status_code == 201
    assert response.json()["location"] == LOCATION


def test_raw_upload_with_wrong_content_type(client):
    response = client.post(
        "/",
        params=ADDRESS,
        content=b"hello",
        headers={"Content-Type": "text/plain"},
    )
    assert response.status_code == 400
    assert response.json() == {"message": "Only PDF files are allowed."}


def test_missing_fields(client, pdf_bytes):
    fields = dict(ADDRESS)
    del fields["folder3"]

    response = upload(client, pdf_bytes, fields=fields)
    assert response.status_code == 400
    assert response.json() == {"message": "Missing required fields (file, folder1, folder2, folder3, fileName)."}


def test_missing_file_part(client):
    response = client.post("/", data=ADDRESS)
    assert response.status_code == 400
    assert "Missing required fields" in response.json()["message"]


def test_file_sent_as_text_field(client):
    response = client.post("/", data={**ADDRESS, "file": "not an upload"}, files={"other": ("x", b"x", "application/pdf")})
    assert response.status_code == 400
    assert "Missing required fields" in response.json()["message"]


def test_non_pdf_upload_is_rejected_and_not_stored(client, pdf_bytes):
    response = upload(client, pdf_bytes, content_type="text/plain")
    assert response.status_code == 400
    assert response.json() == {"message": "Only PDF files are allowed."}

    assert client.get(LOCATION).status_code == 404


def test_traversal_segment_is_rejected(client, pdf_bytes):
    response = upload(client, pdf_bytes, fields={**ADDRESS, "folder1": ".."})
    assert response.status_code == 400
    assert response.json() == {"message": "Invalid path segment: folder1."}


def test_file_not_found(client):
    response = client.get("/nothing/stored/here.pdf")
    assert response.status_code == 404
    assert response.text == "File Not Found"
    assert response.headers["content-type"].startswith("text/plain")


def test_overlong_path_is_not_found(client):
    for _ in range(3):
        response = client.get("/" + "x" * 300 + ".pdf")
        assert response.status_code == 404
        assert response.text == "File Not Found"

    assert client.app.state.monitor.stats["total_failures"] == 0


def test_root_path_is_not_a_file(client):
    assert client.get("/").status_code == 404


def test_percent_encoded_path(client, pdf_bytes):
    response = upload(client, pdf_bytes, fields={**ADDRESS, "fileName": "march report"})
    assert response.status_code == 201
    assert response.json()["location"] == "/acct123/2024/invoices/march report.pdf"

    response = client.get("/acct123/2024/invoices/march%20report.pdf")
    assert response.status_code == 200
    assert response.content == pdf_bytes


def test_internal_failure_hides_cause(client, pdf_bytes, monkeypatch):
    async def broken_replace(*args, **kwargs):
        raise OSError("/secret/path: disk full")

    monkeypatch.setattr(aiofiles.os, "replace", broken_replace)

    response = upload(client, pdf_bytes)
    assert response.status_code == 500
    assert response.text == "Internal Server Error"
    assert client.app.state.monitor.stats["total_failures"] == 1


def test_storage_root_created_on_startup(client, settings):
    assert settings.storage_dir.is_dir()


def test_cors_preflight(client):
    response = client.options(
        "/",
        headers={
            "Origin": "http://example.com",
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "Content-Type",
        },
    )
    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "*"
    for method in ("GET", "POST", "OPTIONS"):
        assert method in response.headers["access-control-allow-methods"]
    assert "content-type" in response.headers["access-control-allow-headers"].lower()


def test_cors_header_on_simple_request(client, pdf_bytes):
    upload(client, pdf_bytes)

    response = client.get(LOCATION, headers={"Origin": "http://example.com"})
    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "*"
