"""
Durable key-value stores for the session envelope and base-URL override.

FileStore keeps every key in one JSON file, rewritten atomically on each
set/delete. An unreadable file reads as empty.
"""

import json
import os
import tempfile

from cubeclient import config


class MemoryStore:
    """Process-local store. Used by tests and throwaway clients."""

    def __init__(self, initial=None):
        self._data = dict(initial or {})

    def get(self, key):
        return self._data.get(key)

    def set(self, key, value):
        if value is None:
            self._data.pop(key, None)
        else:
            self._data[key] = value

    def delete(self, key):
        self._data.pop(key, None)


class FileStore:
    """JSON-file backed store (write-then-rename on every mutation)."""

    def __init__(self, path=None):
        self.path = path or config.STATE_PATH

    def _read_all(self):
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError, UnicodeDecodeError):
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data):
        state_dir = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(state_dir, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=state_dir, prefix=".cubeclient_tmp_")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2, sort_keys=True)
            os.replace(tmp_path, self.path)
        except Exception:
            try:
                os.remove(tmp_path)
            except OSError:
                pass
            raise
        # Session tokens live here; owner-only on Unix/Mac.
        try:
            os.chmod(self.path, 0o600)
        except (OSError, NotImplementedError):
            pass

    def get(self, key):
        return self._read_all().get(key)

    def set(self, key, value):
        data = self._read_all()
        if value is None:
            data.pop(key, None)
        else:
            data[key] = value
        self._write_all(data)

    def delete(self, key):
        self.set(key, None)
