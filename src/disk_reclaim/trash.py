"""Trash (recycle bin) capability: query usage and empty it per drive."""

from __future__ import annotations

import contextlib
import logging
import os
import shutil
import sys
from pathlib import Path
from typing import Protocol, runtime_checkable

from . import rules
from .models import TrashInfo

logger = logging.getLogger(__name__)


@runtime_checkable
class TrashService(Protocol):
    """Interface for the platform trash."""

    def drive_roots(self) -> list[str]:
        """Return the drive roots that have a trash this service manages."""
        ...

    def query(self, root: str | None = None) -> TrashInfo:
        """Return size and item count for one drive root, or for all when None."""
        ...

    def empty(self, root: str | None = None) -> bool:
        """Empty the trash of one drive root, or all when None.

        Returns:
            True if the trash was emptied.

        """
        ...


class XdgTrash:
    """Freedesktop.org home trash (``$XDG_DATA_HOME/Trash``)."""

    def __init__(self, trash_dir: Path | None = None) -> None:
        if trash_dir is None:
            data_home = os.environ.get("XDG_DATA_HOME") or str(Path.home() / ".local" / "share")
            trash_dir = Path(data_home) / "Trash"
        self.trash_dir = trash_dir

    @property
    def files_dir(self) -> Path:
        return self.trash_dir / "files"

    @property
    def info_dir(self) -> Path:
        return self.trash_dir / "info"

    def _drive_root(self) -> str:
        return rules.drive_root_of(str(self.trash_dir))

    def _covers(self, root: str | None) -> bool:
        if root is None:
            return True
        return rules.normalize_root(self._drive_root()).casefold() == rules.normalize_root(root).casefold()

    def drive_roots(self) -> list[str]:
        return [self._drive_root()] if self.files_dir.is_dir() else []

    def query(self, root: str | None = None) -> TrashInfo:
        if not self._covers(root) or not self.files_dir.is_dir():
            return TrashInfo(0, 0)

        size = 0
        items = 0
        for entry in self.files_dir.iterdir():
            items += 1
            size += _tree_size(entry)
        return TrashInfo(size, items)

    def empty(self, root: str | None = None) -> bool:
        if not self._covers(root):
            return False
        if not self.files_dir.is_dir():
            return True

        ok = True
        for directory in (self.files_dir, self.info_dir):
            if not directory.is_dir():
                continue
            for entry in directory.iterdir():
                try:
                    if entry.is_dir() and not entry.is_symlink():
                        shutil.rmtree(entry)
                    else:
                        entry.unlink()
                except OSError as e:
                    logger.error("Unable to remove trash entry %s: %s", entry, e)
                    ok = False

        with contextlib.suppress(FileNotFoundError):
            (self.trash_dir / "directorysizes").unlink()

        if ok:
            logger.info("Emptied trash: %s", self.trash_dir)
        return ok


def _tree_size(path: Path) -> int:
    """Sum apparent sizes below a path without following symlinks."""
    try:
        st = path.lstat()
    except OSError:
        return 0
    if not path.is_dir() or path.is_symlink():
        return st.st_size

    total = 0
    for dirpath, _dirnames, filenames in os.walk(path):
        for name in filenames:
            with contextlib.suppress(OSError):
                total += os.lstat(os.path.join(dirpath, name)).st_size
    return total


class WindowsRecycleBin:
    """Windows Recycle Bin through the shell API."""

    _SHERB_NOCONFIRMATION = 0x00000001
    _SHERB_NOPROGRESSUI = 0x00000002
    _SHERB_NOSOUND = 0x00000004

    def __init__(self) -> None:
        import ctypes
        import ctypes.wintypes as wintypes

        class SHQUERYRBINFO(ctypes.Structure):
            _fields_ = [
                ("cbSize", wintypes.DWORD),
                ("i64Size", ctypes.c_longlong),
                ("i64NumItems", ctypes.c_longlong),
            ]

        self._ctypes = ctypes
        self._info_type = SHQUERYRBINFO
        shell32 = ctypes.WinDLL("shell32", use_last_error=True)

        self._query = shell32.SHQueryRecycleBinW
        self._query.argtypes = [wintypes.LPCWSTR, ctypes.POINTER(SHQUERYRBINFO)]
        self._query.restype = ctypes.c_long  # HRESULT

        self._empty = shell32.SHEmptyRecycleBinW
        self._empty.argtypes = [wintypes.HWND, wintypes.LPCWSTR, wintypes.DWORD]
        self._empty.restype = ctypes.c_long

    def drive_roots(self) -> list[str]:
        roots: list[str] = []
        for letter in "ABCDEFGHIJKLMNOPQRSTUVWXYZ":
            root = f"{letter}:\\"
            if os.path.isdir(root):
                roots.append(root)
        return roots

    def query(self, root: str | None = None) -> TrashInfo:
        info = self._info_type()
        info.cbSize = self._ctypes.sizeof(self._info_type)
        result = self._query(root, self._ctypes.byref(info))
        if result != 0:
            raise OSError(f"SHQueryRecycleBin failed with HRESULT 0x{result & 0xFFFFFFFF:08X}")
        return TrashInfo(int(info.i64Size), int(info.i64NumItems))

    def empty(self, root: str | None = None) -> bool:
        flags = self._SHERB_NOCONFIRMATION | self._SHERB_NOPROGRESSUI | self._SHERB_NOSOUND
        result = self._empty(None, root, flags)
        if result != 0:
            logger.error("SHEmptyRecycleBin failed for %s: HRESULT 0x%08X", root or "all drives", result & 0xFFFFFFFF)
            return False
        return True


def default_trash() -> TrashService:
    """Return the trash implementation for the running platform."""
    if sys.platform == "win32":
        return WindowsRecycleBin()
    return XdgTrash()
