"""
Tests for file system operations.
"""
import os
import stat

import pytest

from context_rollback.execution.filesystem import (
    copy_file, create_directory, delete_directory, delete_file, list_files_recursive,
    read_text_file, write_text_file, FileSystemError
)


@pytest.mark.asyncio
async def test_create_directory(temp_dir):
    """Test directory creation, including missing parents."""
    nested_dir = temp_dir / "parent" / "child" / "grandchild"
    result = await create_directory(nested_dir)

    assert result is True
    assert nested_dir.is_dir()

    # Creating it again is fine
    assert await create_directory(nested_dir) is True


@pytest.mark.asyncio
async def test_write_and_read_text_file(temp_dir):
    test_file = temp_dir / "sub" / "test.md"

    result = await write_text_file(test_file, "Héllo\r\nworld\n")

    assert result is True
    assert test_file.read_bytes() == "Héllo\r\nworld\n".encode("utf-8")
    assert await read_text_file(test_file) == "Héllo\r\nworld\n"
    # No temporary files left next to the target
    assert [path.name for path in test_file.parent.iterdir()] == ["test.md"]


@pytest.mark.asyncio
async def test_write_preserves_mode(temp_dir):
    test_file = temp_dir / "script.sh"
    test_file.write_text("old")
    os.chmod(test_file, 0o750)

    await write_text_file(test_file, "new")

    assert stat.S_IMODE(test_file.stat().st_mode) == 0o750
    assert test_file.read_text() == "new"


@pytest.mark.asyncio
async def test_read_missing_file(temp_dir):
    with pytest.raises(FileSystemError):
        await read_text_file(temp_dir / "missing.md")


@pytest.mark.asyncio
async def test_read_binary_file(temp_dir):
    binary = temp_dir / "image.bin"
    binary.write_bytes(b"\xff\xfe\x00\x81")

    with pytest.raises(FileSystemError):
        await read_text_file(binary)


@pytest.mark.asyncio
async def test_delete_file(temp_dir):
    test_file = temp_dir / "test.md"
    test_file.write_text("content")

    assert await delete_file(test_file) is True
    assert not test_file.exists()

    with pytest.raises(FileSystemError):
        await delete_file(test_file)

    assert await delete_file(test_file, missing_ok=True) is True


@pytest.mark.asyncio
async def test_delete_directory(temp_dir):
    test_dir = temp_dir / "test_dir"
    (test_dir / "inner").mkdir(parents=True)
    (test_dir / "inner" / "file.md").write_text("content")

    assert await delete_directory(test_dir) is True
    assert not test_dir.exists()

    # Deleting a missing directory is not an error
    assert await delete_directory(test_dir) is True


@pytest.mark.asyncio
async def test_list_files_recursive(temp_dir):
    (temp_dir / "b" / "c").mkdir(parents=True)
    (temp_dir / "a.md").write_text("a")
    (temp_dir / "z.md").write_text("z")
    (temp_dir / "b" / "b.md").write_text("b")
    (temp_dir / "b" / "c" / "c.md").write_text("c")

    files = await list_files_recursive(temp_dir)

    assert [path.relative_to(temp_dir).as_posix() for path in files] == [
        "b/c/c.md", "b/b.md", "a.md", "z.md"
    ]
    assert await list_files_recursive(temp_dir / "missing") == []


@pytest.mark.asyncio
async def test_list_files_recursive_skips_directory_symlinks(temp_dir):
    (temp_dir / "sub").mkdir()
    (temp_dir / "a.md").write_text("a")
    (temp_dir / "sub" / "b.md").write_text("b")
    os.symlink(temp_dir, temp_dir / "sub" / "loop")
    os.symlink(temp_dir / "sub", temp_dir / "alias")

    files = await list_files_recursive(temp_dir)

    assert [path.relative_to(temp_dir).as_posix() for path in files] == ["sub/b.md", "a.md"]


@pytest.mark.asyncio
async def test_copy_file_preserves_bytes(temp_dir):
    source = temp_dir / "image.png"
    source.write_bytes(b"\x89PNG\r\n\x1a\n\xff\xfe")

    await copy_file(source, temp_dir / "copy.png")

    assert (temp_dir / "copy.png").read_bytes() == b"\x89PNG\r\n\x1a\n\xff\xfe"
    with pytest.raises(FileSystemError):
        await copy_file(temp_dir / "missing.png", temp_dir / "other.png")
    assert sorted(path.name for path in temp_dir.iterdir()) == ["copy.png", "image.png"]
