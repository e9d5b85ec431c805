import os
import random

import pytest

from app.services.path_resolver import InvalidPath, PathResolver, ResolvedPath, resolve


@pytest.fixture
def root(tmp_path):
    return str(tmp_path / "data")


@pytest.fixture
def resolver(root):
    return PathResolver(root)


def is_confined(path: str, root: str) -> bool:
    return path == root or path.startswith(root + os.sep)


@pytest.mark.parametrize("request_path", ["", "/", "///", "\\", ".", "./", "a/.."])
def test_empty_and_separator_paths_resolve_to_root(resolver, root, request_path):
    resolved = resolver.resolve(request_path)
    assert isinstance(resolved, ResolvedPath)
    assert resolved.path == root
    assert resolved.is_root


@pytest.mark.parametrize("request_path, expected", [
    ("file.txt", "file.txt"),
    ("/file.txt", "file.txt"),
    ("docs/a.txt", os.path.join("docs", "a.txt")),
    ("docs//a.txt", os.path.join("docs", "a.txt")),
    ("docs/./sub/../a.txt", os.path.join("docs", "a.txt")),
    ("docs\\a.txt", os.path.join("docs", "a.txt")),
    ("//etc/passwd", os.path.join("etc", "passwd")),
])
def test_relative_paths_resolve_inside_root(resolver, root, request_path, expected):
    resolved = resolver.resolve(request_path)
    assert isinstance(resolved, ResolvedPath)
    assert resolved.path == os.path.join(root, expected)
    assert not resolved.is_root


@pytest.mark.parametrize("request_path", [
    "..",
    "../",
    "../../etc/passwd",
    "/../etc/passwd",
    "docs/../../etc/passwd",
    "..\\..\\etc\\passwd",
    "docs\\..\\..\\secret",
    "../data2/file.txt",
    "../data-evil",
    "a/b/../../../outside",
])
def test_traversal_is_rejected(resolver, request_path):
    result = resolver.resolve(request_path)
    assert isinstance(result, InvalidPath)
    assert not result
    assert result.message == "Invalid path"
    assert result.request_path == request_path


def test_sibling_prefix_rejected(tmp_path):
    """Root /x/data must not accept /x/data2 even though the string prefix matches."""
    (tmp_path / "data2").mkdir()
    resolver = PathResolver(tmp_path / "data")

    assert isinstance(resolver.resolve("../data2/secret.txt"), InvalidPath)
    assert isinstance(resolver.resolve("../data"), ResolvedPath)


def test_nul_byte_rejected(resolver):
    result = resolver.resolve("bad\x00name.txt")
    assert isinstance(result, InvalidPath)
    assert "NUL" in result.reason


def test_non_string_input_rejected(resolver):
    assert isinstance(resolver.resolve(None), InvalidPath)


def test_no_filesystem_access(tmp_path):
    """Resolution never checks existence or creates anything."""
    resolver = PathResolver(tmp_path / "missing-root")
    resolved = resolver.resolve("a/b/c.txt")

    assert isinstance(resolved, ResolvedPath)
    assert not (tmp_path / "missing-root").exists()


def test_relative_root_is_made_absolute(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    resolver = PathResolver("Storage")

    expected_root = os.path.join(os.getcwd(), "Storage")
    assert resolver.root == expected_root
    assert resolver.resolve("x").path == os.path.join(expected_root, "x")


def test_resolve_helper(root):
    resolved = resolve("a.txt", root)
    assert resolved.path == os.path.join(root, "a.txt")
    assert isinstance(resolve("../a.txt", root), InvalidPath)


def test_resolved_path_is_path_like(resolver, root):
    resolved = resolver.resolve("x/y.txt")
    assert os.fspath(resolved) == os.path.join(root, "x", "y.txt")
    assert resolved.name == "y.txt"


def random_request_path(rng: random.Random) -> str:
    segments = ["..", ".", "", "a", "b", "data", "data2", "..%2f", "~", " ", "\\", "\\..", "x.txt"]
    separators = ["/", "\\", "//"]
    parts = []
    for _ in range(rng.randint(0, 8)):
        parts.append(rng.choice(segments))
        parts.append(rng.choice(separators))
    prefix = rng.choice(["", "/", "\\", "//"])
    return prefix + "".join(parts)


def test_fuzzed_paths_stay_confined(resolver, root):
    """Every accepted path is the root or a strict descendant of it."""
    rng = random.Random(1337)
    accepted = rejected = 0

    for _ in range(2000):
        request_path = random_request_path(rng)
        result = resolver.resolve(request_path)
        if isinstance(result, InvalidPath):
            rejected += 1
            continue
        accepted += 1
        assert is_confined(result.path, root), request_path
        assert os.path.commonpath([root, result.path]) == root

    # Both branches must have been exercised
    assert accepted > 0
    assert rejected > 0
