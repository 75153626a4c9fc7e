# context_rollback/execution/filesystem.py
"""
File system helpers used by the snapshot builder and the atomic executor.

All helpers are coroutines so callers can await them uniformly; failures are
raised as FileSystemError with the underlying cause chained.
"""
import os
import shutil
import tempfile
from pathlib import Path
from typing import List, Union

from context_rollback.utils.logging import get_logger

logger = get_logger(__name__)


class FileSystemError(Exception):
    """Exception raised for file system operation errors."""
    pass


async def create_directory(path: Union[str, Path]) -> bool:
    """
    Create a directory, including missing parents.

    Args:
        path: The path where the directory should be created.

    Returns:
        True once the directory exists.
    """
    path_obj = Path(path)
    try:
        path_obj.mkdir(parents=True, exist_ok=True)
        return True
    except OSError as e:
        logger.exception(f"Error creating directory at {path_obj}: {str(e)}")
        raise FileSystemError(f"Failed to create directory: {str(e)}") from e


async def read_text_file(path: Union[str, Path]) -> str:
    """
    Read a file as UTF-8 text.

    Args:
        path: The path of the file to read.

    Returns:
        The content of the file.
    """
    path_obj = Path(path)

    if not path_obj.is_file():
        raise FileSystemError(f"File does not exist: {path_obj}")

    try:
        with open(path_obj, 'r', encoding='utf-8', newline='') as f:
            return f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise FileSystemError(f"Failed to read file {path_obj}: {str(e)}") from e


async def write_text_file(path: Union[str, Path], content: str) -> bool:
    """
    Write UTF-8 text to a file, replacing it in a single rename.

    The content goes to a temporary file in the target directory first and is
    moved over the target with os.replace, so readers never see a half-written
    file.

    Args:
        path: The path of the file to write.
        content: The text to write.

    Returns:
        True if the operation was successful.
    """
    path_obj = Path(path)
    await create_directory(path_obj.parent)

    fd, temp_name = tempfile.mkstemp(prefix=f".{path_obj.name}.", suffix=".tmp", dir=path_obj.parent)
    try:
        with os.fdopen(fd, 'w', encoding='utf-8', newline='') as f:
            f.write(content)
        if path_obj.exists():
            shutil.copymode(path_obj, temp_name)
        os.replace(temp_name, path_obj)
    except OSError as e:
        if os.path.exists(temp_name):
            os.unlink(temp_name)
        raise FileSystemError(f"Failed to write file {path_obj}: {str(e)}") from e

    logger.debug(f"Wrote file at {path_obj}")
    return True


async def copy_file(source: Union[str, Path], destination: Union[str, Path]) -> bool:
    """
    Copy a file byte for byte, replacing the destination in a single rename.

    The content is never decoded, so any file can be backed up and restored.
    Permission bits and timestamps travel with the copy.

    Args:
        source: The file to copy.
        destination: Where the copy ends up; missing parents are created.

    Returns:
        True if the operation was successful.
    """
    source_obj = Path(source)
    dest_obj = Path(destination)
    await create_directory(dest_obj.parent)

    fd, temp_name = tempfile.mkstemp(prefix=f".{dest_obj.name}.", suffix=".tmp", dir=dest_obj.parent)
    os.close(fd)
    try:
        shutil.copy2(source_obj, temp_name)
        os.replace(temp_name, dest_obj)
    except OSError as e:
        if os.path.exists(temp_name):
            os.unlink(temp_name)
        raise FileSystemError(f"Failed to copy {source_obj} to {dest_obj}: {str(e)}") from e

    logger.debug(f"Copied {source_obj} to {dest_obj}")
    return True


async def delete_file(path: Union[str, Path], missing_ok: bool = False) -> bool:
    """
    Delete a file.

    Args:
        path: The path of the file to delete.
        missing_ok: Do not fail if the file is already gone.

    Returns:
        True if the operation was successful.
    """
    path_obj = Path(path)
    try:
        path_obj.unlink()
    except FileNotFoundError as e:
        if missing_ok:
            return True
        raise FileSystemError(f"File does not exist: {path_obj}") from e
    except OSError as e:
        raise FileSystemError(f"Failed to delete file {path_obj}: {str(e)}") from e

    logger.debug(f"Deleted file at {path_obj}")
    return True


async def delete_directory(path: Union[str, Path]) -> bool:
    """Recursively delete a directory if it exists."""
    path_obj = Path(path)
    if not path_obj.exists():
        return True
    try:
        shutil.rmtree(path_obj)
    except OSError as e:
        raise FileSystemError(f"Failed to delete directory {path_obj}: {str(e)}") from e
    return True


async def list_files_recursive(path: Union[str, Path]) -> List[Path]:
    """
    List every file below a directory, depth first.

    At each level sub-directories are walked before the files of that level,
    and entries are visited in name order. A missing directory yields an
    empty list.

    Args:
        path: The directory to walk.

    Returns:
        Paths of all regular files found.
    """
    root = Path(path)
    files: List[Path] = []

    if not root.is_dir():
        return files

    entries = sorted(root.iterdir(), key=lambda entry: entry.name)
    for entry in entries:
        if entry.is_dir() and not entry.is_symlink():
            files.extend(await list_files_recursive(entry))
    for entry in entries:
        if entry.is_file():
            files.append(entry)

    return files
