import os
from dataclasses import dataclass
from typing import Union

from logger_config import setup_logger

logger = setup_logger()


@dataclass(frozen=True)
class ResolvedPath:
    """An absolute path confined to the storage root.

    Only PathResolver.resolve creates these; storage operations refuse anything else.
    """
    path: str
    root: str

    @property
    def is_root(self) -> bool:
        return self.path == self.root

    @property
    def name(self) -> str:
        return os.path.basename(self.path)

    def __fspath__(self) -> str:
        return self.path

    def __str__(self) -> str:
        return self.path


@dataclass(frozen=True)
class InvalidPath:
    """Rejection of a request path that escapes the root or cannot be parsed."""
    request_path: str
    reason: str
    message: str = "Invalid path"

    def __bool__(self) -> bool:
        return False


ResolveResult = Union[ResolvedPath, InvalidPath]


class PathResolver:
    def __init__(self, root: Union[str, os.PathLike]):
        self.root = os.path.normpath(os.path.abspath(os.fspath(root)))
        # "/" already ends with a separator
        self._prefix = self.root if self.root.endswith(os.sep) else self.root + os.sep

    def resolve(self, request_path: str) -> ResolveResult:
        """Map an untrusted request path onto the storage root.

        Args:
            request_path: Raw path from the request, e.g. "docs/a.txt" or "/../etc/passwd"

        Returns:
            ResolvedPath when the canonical path is the root or nested inside it,
            InvalidPath otherwise. Never raises for bad input.
        """
        try:
            if "\x00" in request_path:
                return self._reject(request_path, "contains NUL byte")

            relative_path = request_path.replace("\\", "/").lstrip("/")
            full_path = os.path.normpath(os.path.join(self.root, relative_path))
        except (TypeError, ValueError) as e:
            return self._reject(request_path, f"unparseable: {e}")

        if full_path != self.root and not full_path.startswith(self._prefix):
            return self._reject(request_path, "escapes storage root")

        return ResolvedPath(path=full_path, root=self.root)

    def _reject(self, request_path, reason: str) -> InvalidPath:
        logger.info(f"Rejected path {request_path!r}: {reason}")
        return InvalidPath(request_path=str(request_path), reason=reason)


def resolve(request_path: str, root: Union[str, os.PathLike]) -> ResolveResult:
    """Resolve request_path against root without keeping a resolver around."""
    return PathResolver(root).resolve(request_path)
