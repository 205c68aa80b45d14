"""File operations used by `file_operation` steps.

Path resolution rules:
- with a glob pattern, matches are taken relative to `source` and the
  destination is always a directory (each match keeps its base name)
- without a pattern, `source` is the single target; `move` and `copy` nest it
  under `destination` when that is an existing directory

Blocking helpers (tree copy and removal) run via `asyncio.to_thread`; nothing
is rolled back if an operation is interrupted part way.
"""

from __future__ import annotations

import asyncio
import errno
import glob
import logging
import os
import shutil
import stat

import aiofiles.os

logger = logging.getLogger(__name__)


def _matches(source: str, pattern: str | None) -> list[str]:
    """Return absolute paths to operate on (hidden files are not matched by `*`)."""

    if not pattern:
        return [source]
    return [os.path.join(source, m) for m in sorted(glob.glob(pattern, root_dir=source))]


async def _is_dir(path: str) -> bool:
    try:
        st = await aiofiles.os.stat(path)
    except FileNotFoundError:
        return False
    return stat.S_ISDIR(st.st_mode)


async def _copy_any(src: str, dest: str) -> None:
    if await _is_dir(src):
        await asyncio.to_thread(shutil.copytree, src, dest, dirs_exist_ok=True)
    else:
        await asyncio.to_thread(shutil.copy2, src, dest)


async def _remove_any(path: str) -> None:
    st = await aiofiles.os.stat(path)
    if stat.S_ISDIR(st.st_mode):
        await asyncio.to_thread(shutil.rmtree, path)
    else:
        await aiofiles.os.remove(path)


async def move_files(source: str, destination: str, pattern: str | None = None) -> list[str]:
    moved: list[str] = []
    for src_path in _matches(source, pattern):
        if pattern or await _is_dir(destination):
            dest_path = os.path.join(destination, os.path.basename(src_path))
        else:
            dest_path = destination

        await aiofiles.os.makedirs(os.path.dirname(dest_path) or ".", exist_ok=True)
        try:
            await aiofiles.os.rename(src_path, dest_path)
        except OSError as e:
            if e.errno != errno.EXDEV:
                raise
            # Cross-device: copy then delete.
            await _copy_any(src_path, dest_path)
            await _remove_any(src_path)

        logger.debug("Moved path", extra={"source": src_path, "destination": dest_path})
        moved.append(dest_path)
    return moved


async def copy_files(source: str, destination: str, pattern: str | None = None) -> list[str]:
    copied: list[str] = []
    for src_path in _matches(source, pattern):
        if pattern or await _is_dir(destination):
            dest_path = os.path.join(destination, os.path.basename(src_path))
        else:
            dest_path = destination

        await aiofiles.os.makedirs(os.path.dirname(dest_path) or ".", exist_ok=True)
        await _copy_any(src_path, dest_path)
        logger.debug("Copied path", extra={"source": src_path, "destination": dest_path})
        copied.append(dest_path)
    return copied


async def delete_files(source: str, pattern: str | None = None) -> list[str]:
    """Remove matches. A missing target raises `FileNotFoundError`."""

    deleted: list[str] = []
    for path in _matches(source, pattern):
        await _remove_any(path)
        logger.debug("Deleted path", extra={"path": path})
        deleted.append(path)
    return deleted


async def create_directory(path: str) -> None:
    await aiofiles.os.makedirs(path, exist_ok=True)
