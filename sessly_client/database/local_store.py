"""
File-backed key-value store used as the web-platform fallback.

Mirrors what browser local storage offers: a flat string-to-string map that
survives restarts. Values are kept in a single JSON document that is
rewritten atomically on every change.
"""

import builtins
import json
import os
import tempfile
from pathlib import Path
from typing import Dict, Iterable, Optional

from sessly_client.utils.logger import get_logger
from .exceptions import StorageException, PermissionError

logger = get_logger(__name__)


class LocalStorage:
    """JSON file key-value store."""

    def __init__(self, path: str):
        self.path = Path(path)

    def _read_all(self) -> Dict[str, str]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError as e:
            logger.warning(
                "Local storage file is corrupt; treating as empty",
                operation="local_storage_read",
                context={"path": str(self.path)},
                error=str(e),
            )
            return {}
        except builtins.PermissionError as e:
            raise PermissionError(f"Cannot read {self.path}: {e}") from e
        except OSError as e:
            raise StorageException(f"Cannot read {self.path}: {e}") from e

        if not isinstance(data, dict):
            return {}
        return {str(k): str(v) for k, v in data.items() if v is not None}

    def _write_all(self, data: Dict[str, str]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=str(self.path.parent), suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(data, f, ensure_ascii=False)
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except builtins.PermissionError as e:
            raise PermissionError(f"Cannot write {self.path}: {e}") from e
        except OSError as e:
            raise StorageException(f"Cannot write {self.path}: {e}") from e

    def get_item(self, key: str) -> Optional[str]:
        return self._read_all().get(key)

    def set_item(self, key: str, value: str) -> None:
        data = self._read_all()
        data[key] = value
        self._write_all(data)

    def remove_items(self, keys: Iterable[str]) -> None:
        """Remove keys; missing keys are ignored."""
        data = self._read_all()
        changed = False
        for key in keys:
            if key in data:
                del data[key]
                changed = True
        if changed:
            self._write_all(data)
