from contextlib import asynccontextmanager
from pathlib import Path

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response, StreamingResponse

import config
from logger_config import setup_logger
from app.models.entries import DirectoryListing
from app.services.errors import StorageError
from app.services.storage_manager import StorageManager

# Logger setup
logger = setup_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Root and temp dir are read once here and injected; nothing below looks them up again
    app.state.storage_manager = StorageManager(Path(config.STORAGE_ROOT), Path(config.TEMP_DIR))
    await app.state.storage_manager.initialize()
    yield


# Create FastAPI app with lifespan
app = FastAPI(title="File Store", lifespan=lifespan)


def get_storage_manager(request: Request) -> StorageManager:
    return request.app.state.storage_manager


def invalid_path_response() -> JSONResponse:
    return JSONResponse("Invalid path", status_code=400)


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError):
    """Render NotFound / Conflict outcomes as client errors."""
    logger.info(f"{request.method} {request.url.path} -> {exc.status_code} {exc.message}")
    if request.method == "HEAD":
        response = Response(status_code=exc.status_code)
        del response.headers["content-length"]
        return response
    return JSONResponse(exc.message, status_code=exc.status_code)


@app.exception_handler(OSError)
async def io_error_handler(request: Request, exc: OSError):
    logger.error(f"I/O failure on {request.method} {request.url.path}: {str(exc)}", exc_info=exc)
    return JSONResponse("Internal server error", status_code=500)


@app.put("/{path:path}", status_code=201)
async def put_file(path: str, request: Request):
    """Create or overwrite the file at path with the raw request body."""
    storage_manager = get_storage_manager(request)
    logger.info(f"Receiving upload request for path: {path!r}")

    resolved = storage_manager.resolve(path)
    if not resolved:
        return invalid_path_response()

    created = await storage_manager.write(resolved, request.stream())

    logger.info(f"{'Created' if created else 'Overwrote'} file: {resolved}")
    return Response(status_code=201)


@app.get("/{path:path}")
async def get_entry(path: str, request: Request):
    """Stream a file, or list the immediate children of a directory."""
    storage_manager = get_storage_manager(request)
    logger.info(f"Receiving download request for path: {path!r}")

    resolved = storage_manager.resolve(path)
    if not resolved:
        return invalid_path_response()

    entry = await storage_manager.read(resolved)
    if isinstance(entry, DirectoryListing):
        return JSONResponse(entry.model_dump(mode="json", by_alias=True))

    return StreamingResponse(
        entry.iter_chunks(),
        media_type=entry.info.media_type,
        headers={
            "Content-Length": str(entry.info.size),
            "Last-Modified": entry.info.last_modified,
        },
    )


@app.head("/{path:path}")
async def head_file(path: str, request: Request):
    storage_manager = get_storage_manager(request)
    logger.debug(f"Receiving metadata request for path: {path!r}")

    resolved = storage_manager.resolve(path)
    if not resolved:
        return invalid_path_response()

    info = await storage_manager.stat(resolved)
    return Response(
        status_code=200,
        headers={
            "Content-Length": str(info.size),
            "Last-Modified": info.last_modified,
        },
    )


@app.delete("/{path:path}", status_code=204)
async def delete_entry(path: str, request: Request):
    """Delete a file or an empty directory."""
    storage_manager = get_storage_manager(request)
    logger.info(f"Receiving delete request for path: {path!r}")

    resolved = storage_manager.resolve(path)
    if not resolved:
        return invalid_path_response()

    await storage_manager.delete(resolved)

    logger.info(f"Successfully deleted: {resolved}")
    return Response(status_code=204)


def run():
    logger.info("Starting File Store...")
    logger.info(f"Storage root: {Path(config.STORAGE_ROOT).absolute()}")
    logger.info(f"Temporary directory: {Path(config.TEMP_DIR).absolute()}")
    uvicorn.run(app, host=config.HOST, port=config.PORT)


if __name__ == "__main__":
    run()
