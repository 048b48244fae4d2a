import errno
import uuid
from pathlib import Path
from typing import Optional, Tuple

import aiofiles
import aiofiles.os

from pdf_file_server import config
from pdf_file_server.errors import InternalFailure, NotFound, ValidationError
from pdf_file_server.logger_config import setup_logger
from pdf_file_server.monitor import Monitor

logger = setup_logger()

MISSING_FIELDS_MESSAGE = "Missing required fields (file, folder1, folder2, folder3, fileName)."
NOT_PDF_MESSAGE = "Only PDF files are allowed."

_FORBIDDEN_SEGMENT_CHARS = ("/", "\\", "\x00")

# In-flight uploads are ".<hex>.tmp" files beside their target
TEMP_SUFFIX = ".tmp"


def is_temp_name(name: str) -> bool:
    return name.startswith(".") and name.endswith(TEMP_SUFFIX)


def is_safe_segment(segment: str) -> bool:
    """Check that a path segment cannot escape its parent directory."""
    if not segment or len(segment) > config.MAX_SEGMENT_LENGTH:
        return False
    if segment in (".", ".."):
        return False
    return not any(char in segment for char in _FORBIDDEN_SEGMENT_CHARS)


def is_pdf_media_type(media_type: Optional[str]) -> bool:
    if not media_type:
        return False
    # Drop parameters such as "; charset=binary"
    return media_type.split(";", 1)[0].strip().lower() == config.PDF_MEDIA_TYPE


class FileStore:
    """Stores PDF files under ``storage_dir/folder1/folder2/folder3/fileName.pdf``.

    The directory hierarchy is the only index: a file's location is derived
    from its four-part address and nothing else is recorded.
    """

    def __init__(self, storage_dir: Path, monitor: Optional[Monitor] = None):
        self.storage_dir = Path(storage_dir).resolve()
        self.monitor = monitor

    async def initialize(self):
        """Create the storage root and clear temp files left by interrupted uploads."""
        logger.info("Initializing file store...")

        try:
            await aiofiles.os.makedirs(self.storage_dir, exist_ok=True)
        except OSError as e:
            logger.error(f"Cannot create storage directory: {e}", exc_info=True)
            raise InternalFailure("Storage directory could not be created") from e
        logger.debug(f"Storage directory created/verified: {self.storage_dir}")

        files_removed = 0
        for file in self.storage_dir.rglob(f".*{TEMP_SUFFIX}"):
            if file.is_file():
                await aiofiles.os.unlink(file)
                files_removed += 1
        logger.info(f"Removed {files_removed} stale temp files")

    def get_file_path(self, folder1: str, folder2: str, folder3: str, file_name: str) -> Tuple[Path, str]:
        """Return the on-disk path and the public location for an address."""
        file_path = self.storage_dir / folder1 / folder2 / folder3 / f"{file_name}.pdf"
        location = f"/{folder1}/{folder2}/{folder3}/{file_name}.pdf"
        return file_path, location

    def resolve_path(self, request_path: str) -> Path:
        """Resolve a request path against the storage root.

        Raises NotFound for anything that does not land strictly inside the root,
        for names no store could have written, and for in-flight temp files.
        """
        if "\x00" in request_path:
            raise NotFound(request_path)

        relative = request_path.lstrip("/\\")
        if any(len(part) > config.MAX_SEGMENT_LENGTH for part in relative.split("/")):
            raise NotFound(request_path)

        resolved = (self.storage_dir / relative).resolve()

        if resolved == self.storage_dir or self.storage_dir not in resolved.parents:
            logger.debug(f"Path {request_path!r} resolves outside the storage root")
            raise NotFound(request_path)
        if is_temp_name(resolved.name):
            raise NotFound(request_path)
        return resolved

    def _record_pass(self):
        if self.monitor is not None:
            self.monitor.pass_()

    def _record_failure(self):
        if self.monitor is not None:
            self.monitor.fail()

    async def retrieve(self, request_path: str) -> bytes:
        """Read the whole file stored at ``request_path``."""
        file_path = self.resolve_path(request_path)

        try:
            async with aiofiles.open(file_path, 'rb') as f:
                content = await f.read()
        except (FileNotFoundError, IsADirectoryError, NotADirectoryError):
            raise NotFound(request_path)
        except OSError as e:
            if e.errno == errno.ENAMETOOLONG:
                raise NotFound(request_path)
            logger.error(f"Error reading {file_path}: {e}", exc_info=True)
            self._record_failure()
            raise InternalFailure(f"Could not read {request_path}") from e

        logger.debug(f"Read {len(content)} bytes from {file_path}")
        self._record_pass()
        return content

    def validate(
        self,
        folder1: Optional[str],
        folder2: Optional[str],
        folder3: Optional[str],
        file_name: Optional[str],
        payload: Optional[bytes],
        media_type: Optional[str],
    ) -> None:
        """Apply the store checks in order: presence, media type, path safety."""
        if not all((folder1, folder2, folder3, file_name, payload)):
            raise ValidationError(MISSING_FIELDS_MESSAGE)

        if not is_pdf_media_type(media_type):
            raise ValidationError(NOT_PDF_MESSAGE)

        for name, segment in (("folder1", folder1), ("folder2", folder2),
                              ("folder3", folder3), ("fileName", file_name)):
            if not is_safe_segment(segment):
                raise ValidationError(f"Invalid path segment: {name}.")

    async def store(
        self,
        folder1: Optional[str],
        folder2: Optional[str],
        folder3: Optional[str],
        file_name: Optional[str],
        payload: Optional[bytes],
        media_type: Optional[str],
    ) -> str:
        """Write ``payload`` to its address and return the location to retrieve it from.

        An existing file at the same address is replaced. The payload is written
        to a uniquely named temp file in the target directory and then renamed
        over the target, so readers see either the old or the new content and
        concurrent writers never share a temp file.
        """
        self.validate(folder1, folder2, folder3, file_name, payload, media_type)

        file_path, location = self.get_file_path(folder1, folder2, folder3, file_name)
        # Same directory as the target keeps the rename on one filesystem
        temp_path = file_path.parent / f".{uuid.uuid4().hex}{TEMP_SUFFIX}"

        logger.info(f"Storing {len(payload)} bytes at {location}")

        try:
            await aiofiles.os.makedirs(file_path.parent, exist_ok=True)

            async with aiofiles.open(temp_path, 'wb') as f:
                await f.write(payload)

            await aiofiles.os.replace(temp_path, file_path)
        except OSError as e:
            logger.error(f"Error storing {location}: {e}", exc_info=True)
            # Clean up temporary file if operation fails
            if await aiofiles.os.path.exists(temp_path):
                await aiofiles.os.unlink(temp_path)
            self._record_failure()
            raise InternalFailure(f"Could not store {location}") from e

        logger.debug(f"Stored {file_path}")
        self._record_pass()
        return location
