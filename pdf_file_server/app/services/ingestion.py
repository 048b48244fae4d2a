"""Normalize upload requests into a single :class:`StoreRequest`.

Two request shapes are accepted on ``POST /``:

* ``multipart/form-data`` with a ``file`` part and the text fields
  ``folder1``, ``folder2``, ``folder3`` and ``fileName``;
* a raw body whose ``Content-Type`` is the declared media type, with the
  address fields in the query string or in ``X-Folder1``, ``X-Folder2``,
  ``X-Folder3`` and ``X-File-Name`` headers.
"""
from typing import Optional

from fastapi import Request
from pydantic import BaseModel
from starlette.datastructures import UploadFile
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.formparsers import MultiPartException

from pdf_file_server.errors import ValidationError
from pdf_file_server.logger_config import setup_logger

logger = setup_logger()

FORM_MEDIA_TYPES = ("multipart/form-data", "application/x-www-form-urlencoded")

ADDRESS_HEADERS = {
    "folder1": "x-folder1",
    "folder2": "x-folder2",
    "folder3": "x-folder3",
    "fileName": "x-file-name",
}


class StoreRequest(BaseModel):
    folder1: Optional[str] = None
    folder2: Optional[str] = None
    folder3: Optional[str] = None
    file_name: Optional[str] = None
    payload: bytes = b""
    media_type: Optional[str] = None


def _media_type(content_type: Optional[str]) -> Optional[str]:
    if not content_type:
        return None
    return content_type.split(";", 1)[0].strip().lower()


def _text_field(value) -> Optional[str]:
    # A file part sent under a text field's name does not count as the field
    return value if isinstance(value, str) else None


async def _from_form(request: Request) -> StoreRequest:
    try:
        form = await request.form()
    except (MultiPartException, StarletteHTTPException) as e:
        logger.info(f"Rejecting malformed form body: {e}")
        raise ValidationError("Malformed form data.") from e

    try:
        upload = form.get("file")
        payload = b""
        media_type = None
        if isinstance(upload, UploadFile):
            payload = await upload.read()
            media_type = upload.content_type
            await upload.close()

        return StoreRequest(
            folder1=_text_field(form.get("folder1")),
            folder2=_text_field(form.get("folder2")),
            folder3=_text_field(form.get("folder3")),
            file_name=_text_field(form.get("fileName")),
            payload=payload,
            media_type=media_type,
        )
    finally:
        await form.close()


async def _from_raw_body(request: Request) -> StoreRequest:
    fields = {}
    for field, header in ADDRESS_HEADERS.items():
        fields[field] = request.query_params.get(field) or request.headers.get(header)

    return StoreRequest(
        folder1=fields["folder1"],
        folder2=fields["folder2"],
        folder3=fields["folder3"],
        file_name=fields["fileName"],
        payload=await request.body(),
        media_type=_media_type(request.headers.get("content-type")),
    )


async def parse_store_request(request: Request) -> StoreRequest:
    """Build a StoreRequest from either a form upload or a raw binary body."""
    content_type = _media_type(request.headers.get("content-type"))

    if content_type in FORM_MEDIA_TYPES:
        store_request = await _from_form(request)
    else:
        store_request = await _from_raw_body(request)

    logger.debug(
        f"Parsed {content_type or 'untyped'} upload: "
        f"{len(store_request.payload)} bytes declared as {store_request.media_type}"
    )
    return store_request
