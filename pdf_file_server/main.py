from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from pdf_file_server import config
from pdf_file_server.app.services.file_store import FileStore
from pdf_file_server.app.services.ingestion import parse_store_request
from pdf_file_server.config import Settings
from pdf_file_server.errors import InternalFailure, NotFound, ValidationError
from pdf_file_server.logger_config import setup_logger
from pdf_file_server.monitor import Monitor

# Logger setup
logger = setup_logger()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the FastAPI app around a FileStore rooted at ``settings.storage_dir``."""
    settings = settings or Settings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Storage root must exist before the first request is accepted
        app.state.monitor = Monitor(
            settings.monitor_failure_threshold,
            window_seconds=settings.monitor_window_seconds,
        )
        app.state.file_store = FileStore(settings.storage_dir, monitor=app.state.monitor)
        await app.state.file_store.initialize()
        yield

    app = FastAPI(title="PDF File Server", lifespan=lifespan)
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_allow_origins),
        allow_methods=list(settings.cors_allow_methods),
        allow_headers=list(settings.cors_allow_headers),
    )

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        logger.info(f"Rejected {request.method} {request.url.path}: {exc}")
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"message": str(exc)})

    @app.exception_handler(NotFound)
    async def not_found_handler(request: Request, exc: NotFound):
        logger.info(f"File not found: {request.url.path}")
        return PlainTextResponse("File Not Found", status_code=status.HTTP_404_NOT_FOUND)

    @app.exception_handler(InternalFailure)
    async def internal_failure_handler(request: Request, exc: InternalFailure):
        # Cause was logged where it happened and stays server-side
        return PlainTextResponse("Internal Server Error", status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)

    @app.post("/", status_code=status.HTTP_201_CREATED)
    async def upload_file(request: Request):
        """Store an uploaded PDF under folder1/folder2/folder3/fileName.pdf.

        Accepts a multipart form (``file`` plus the four text fields) or a raw
        ``application/pdf`` body with the fields in the query string or headers.
        """
        file_store: FileStore = request.app.state.file_store
        store_request = await parse_store_request(request)

        location = await file_store.store(
            store_request.folder1,
            store_request.folder2,
            store_request.folder3,
            store_request.file_name,
            store_request.payload,
            store_request.media_type,
        )
        return {"message": "File stored successfully", "location": location}

    @app.get("/{file_path:path}")
    async def get_file(file_path: str, request: Request):
        """Serve the stored file at the (already percent-decoded) path."""
        file_store: FileStore = request.app.state.file_store
        logger.info(f"Receiving download request for {file_path}")

        content = await file_store.retrieve(file_path)
        return Response(content=content, media_type=config.PDF_MEDIA_TYPE)

    return app


app = create_app()


def main():
    settings = app.state.settings
    logger.info("Starting PDF File Server...")
    logger.info(f"Storage directory: {settings.storage_dir}")
    logger.info(f"Server running on port {settings.port}")
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
