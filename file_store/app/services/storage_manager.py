import errno
import mimetypes
import os
import stat
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import formatdate
from pathlib import Path
from typing import AsyncIterable, AsyncIterator, Optional, Union

import aiofiles
import aiofiles.os

import config
from logger_config import setup_logger
from app.models.entries import DirectoryEntry, DirectoryListing, FileEntry
from app.services.errors import ConflictError, NotFoundError
from app.services.path_resolver import PathResolver, ResolvedPath, ResolveResult

logger = setup_logger()


@dataclass(frozen=True)
class FileInfo:
    size: int
    mtime: float
    media_type: str = "application/octet-stream"

    @property
    def modified(self) -> datetime:
        return datetime.fromtimestamp(self.mtime, tz=timezone.utc)

    @property
    def last_modified(self) -> str:
        """Modification time in HTTP date format (RFC 1123)."""
        return formatdate(self.mtime, usegmt=True)


@dataclass(frozen=True)
class FileContent:
    path: ResolvedPath
    info: FileInfo
    chunk_size: int = config.CHUNK_SIZE

    async def iter_chunks(self) -> AsyncIterator[bytes]:
        """Stream the file; the handle is closed on completion, error or cancellation."""
        async with aiofiles.open(self.path.path, 'rb') as file:
            while chunk := await file.read(self.chunk_size):
                yield chunk


class StorageManager:
    def __init__(self, storage_root: Path, temp_dir: Path, chunk_size: int = config.CHUNK_SIZE):
        self.resolver = PathResolver(storage_root)
        self.storage_root = Path(self.resolver.root)
        self.temp_dir = Path(temp_dir).absolute()
        self.chunk_size = chunk_size

    async def initialize(self):
        """Create the storage and temp directories and drop leftover partial uploads."""
        logger.info("Initializing storage manager...")

        self.storage_root.mkdir(exist_ok=True, parents=True)
        self.temp_dir.mkdir(exist_ok=True, parents=True)
        logger.debug(f"Storage directories created/verified: {self.storage_root}, {self.temp_dir}")

        files_removed = 0
        for file in self.temp_dir.glob("*.upload"):
            if file.is_file():
                await aiofiles.os.unlink(file)
                files_removed += 1
        logger.info(f"Cleaned temporary directory, removed {files_removed} files")

    def resolve(self, request_path: str) -> ResolveResult:
        return self.resolver.resolve(request_path)

    def _check_path(self, path: ResolvedPath):
        if not isinstance(path, ResolvedPath):
            raise TypeError(f"Expected a ResolvedPath, got {type(path).__name__}")
        if path.root != self.resolver.root:
            raise ValueError(f"Path {path} was resolved against a different root")

    async def _stat(self, path: Union[ResolvedPath, str]) -> Optional[os.stat_result]:
        try:
            return await aiofiles.os.stat(os.fspath(path))
        except (FileNotFoundError, NotADirectoryError):
            return None

    @staticmethod
    def _file_info(path: ResolvedPath, st: os.stat_result) -> FileInfo:
        media_type, _ = mimetypes.guess_type(path.name)
        return FileInfo(
            size=st.st_size,
            mtime=st.st_mtime,
            media_type=media_type or "application/octet-stream",
        )

    async def write(self, path: ResolvedPath, body: AsyncIterable[bytes]) -> bool:
        """Store the body at path, creating parent directories as needed.

        The body is streamed into a temp file and renamed over the target, so a
        reader never sees a half-written file and concurrent writers never mix
        their bytes (last rename wins).

        Args:
            path: Destination inside the storage root
            body: Async iterable of byte chunks, e.g. request.stream()

        Returns:
            bool: True if the file was created, False if an existing file was replaced
        """
        self._check_path(path)

        existing = await self._stat(path)
        if existing is not None and stat.S_ISDIR(existing.st_mode):
            raise ConflictError("Path is a directory")

        try:
            await aiofiles.os.makedirs(os.path.dirname(path.path), exist_ok=True)
        except (FileExistsError, NotADirectoryError) as e:
            raise ConflictError("Parent path is not a directory") from e

        temp_path = self.temp_dir / f"{uuid.uuid4().hex}.upload"
        content_size = 0
        try:
            async with aiofiles.open(temp_path, 'wb') as f:
                async for chunk in body:
                    content_size += len(chunk)
                    await f.write(chunk)
            await aiofiles.os.replace(temp_path, path.path)
        finally:
            # No awaits here: the task may already be cancelled
            if temp_path.exists():
                logger.debug(f"Removing abandoned upload {temp_path.name} for {path}")
                temp_path.unlink(missing_ok=True)

        logger.debug(f"Wrote {content_size} bytes to {path}")
        return existing is None

    async def read(self, path: ResolvedPath) -> Union[FileContent, DirectoryListing]:
        """Return a streamable file or the listing of a directory."""
        self._check_path(path)

        st = await self._stat(path)
        if st is not None and stat.S_ISREG(st.st_mode):
            return FileContent(path=path, info=self._file_info(path, st), chunk_size=self.chunk_size)
        if st is not None and stat.S_ISDIR(st.st_mode):
            return await self._list_directory(path)
        raise NotFoundError()

    async def _list_directory(self, path: ResolvedPath) -> DirectoryListing:
        try:
            names = await aiofiles.os.listdir(path.path)
        except (FileNotFoundError, NotADirectoryError) as e:
            raise NotFoundError() from e

        listing = DirectoryListing()
        for name in names:
            st = await self._stat(os.path.join(path.path, name))
            if st is None:
                # Removed while listing
                continue
            modified = datetime.fromtimestamp(st.st_mtime, tz=timezone.utc)
            if stat.S_ISREG(st.st_mode):
                listing.files.append(FileEntry(name=name, size=st.st_size, modified=modified))
            elif stat.S_ISDIR(st.st_mode):
                listing.directories.append(DirectoryEntry(name=name, modified=modified))

        logger.debug(f"Listed {path}: {len(listing.files)} files, {len(listing.directories)} directories")
        return listing

    async def stat(self, path: ResolvedPath) -> FileInfo:
        """Metadata of a regular file; directories count as not found."""
        self._check_path(path)

        st = await self._stat(path)
        if st is None or not stat.S_ISREG(st.st_mode):
            raise NotFoundError()
        return self._file_info(path, st)

    async def delete(self, path: ResolvedPath) -> None:
        """Delete a file, or a directory that has no entries. Never recursive."""
        self._check_path(path)

        st = await self._stat(path)
        if st is None:
            raise NotFoundError()

        if stat.S_ISDIR(st.st_mode):
            if path.is_root:
                raise ConflictError("Cannot delete storage root")
            if await aiofiles.os.listdir(path.path):
                raise ConflictError("Directory is not empty")
            try:
                await aiofiles.os.rmdir(path.path)
            except OSError as e:
                if e.errno in (errno.ENOTEMPTY, errno.EEXIST):
                    raise ConflictError("Directory is not empty") from e
                if e.errno == errno.ENOENT:
                    raise NotFoundError() from e
                raise
            logger.debug(f"Removed directory {path}")
            return

        try:
            await aiofiles.os.remove(path.path)
        except FileNotFoundError as e:
            raise NotFoundError() from e
        logger.debug(f"Removed file {path}")
