# vlink_app/file_system_ops.py
import errno
import logging
import os
import shutil
import uuid
from pathlib import Path

from .exceptions import LinkError

log = logging.getLogger(__name__)
TEMP_SUFFIX_PREFIX = ".vlinktmp_"


def _link_error(action: str, src: Path, dst: Path, e: OSError) -> LinkError:
    if e.errno == errno.EXDEV:
        msg = (f"Cross-device link error: '{src}' -> '{dst}'. "
               "Source and destination must be on the same filesystem.")
    else:
        msg = f"{action} failed for '{src}' -> '{dst}': [{e.errno}] {e.strerror or e}"
    return LinkError(msg, path=str(dst), errno=e.errno)


def create_hard_link(src: Path, dst: Path) -> None:
    """Hard links `src` at `dst`. `dst` must not exist."""
    try:
        os.link(src, dst)
    except OSError as e:
        raise _link_error("Hard link", src, dst, e) from e
    log.debug(f"Linked '{src}' -> '{dst}'")


def replace_with_hard_link(src: Path, dst: Path) -> None:
    """
    Replaces the file at `dst` with a hard link to `src`.

    The link is created under a temporary sibling name first and then moved
    over `dst` with os.replace, so `dst` is left untouched if linking fails.
    """
    temp_path = dst.with_name(f"{dst.stem}{TEMP_SUFFIX_PREFIX}{uuid.uuid4().hex[:8]}{dst.suffix}")
    try:
        os.link(src, temp_path)
    except OSError as e:
        raise _link_error("Hard link", src, temp_path, e) from e
    try:
        os.replace(temp_path, dst)
    except OSError as e:
        try:
            temp_path.unlink()
        except OSError as e_cleanup:
            log.error(f"Could not remove temporary link '{temp_path}': {e_cleanup}")
        raise _link_error("Replace", src, dst, e) from e
    log.debug(f"Replaced '{dst}' with link to '{src}'")


def make_directories(path: Path) -> None:
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise LinkError(f"Could not create directory '{path}': {e}", path=str(path), errno=e.errno) from e


def remove_path(path: Path) -> bool:
    """
    Removes a file, a symlink or a whole directory tree.

    Returns False if nothing exists at `path`.
    """
    if path.is_symlink() or path.is_file():
        path.unlink()
        return True
    if path.is_dir():
        shutil.rmtree(path)
        return True
    return False
