"""
JSON artifact stores.

Artifacts are addressed by a relative name such as "events.json" or
"rankings/age_forest_M21.json". Every write serializes the whole document in
memory first and replaces the artifact in a single operation, so a failed
run never leaves a truncated file behind.
"""
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, List, Optional

from config.settings import (
    DATA_DIR,
    STORAGE_CONFIG,
    SUPABASE_SERVICE_ROLE_KEY,
    SUPABASE_URL,
)
from src.base import BaseStore, StorageError

logger = logging.getLogger(__name__)

_MISSING = object()


def dumps(data: Any) -> str:
    return json.dumps(data, ensure_ascii=False, separators=(',', ':'))


class LocalJsonStore(BaseStore):
    """Artifacts as files under a root directory"""

    def __init__(self, root: Optional[Path] = None):
        self.root = Path(root or DATA_DIR)

    def path_for(self, name: str) -> Path:
        return self.root / name

    def read_json(self, name: str, default: Any = None) -> Any:
        path = self.path_for(name)
        if not path.exists():
            return default
        try:
            with open(path, 'r', encoding='utf-8') as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(f"Could not read {path}: {e}") from e

    def write_json(self, name: str, data: Any) -> None:
        path = self.path_for(name)
        payload = dumps(data)
        tmp_name = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                'w', encoding='utf-8', dir=path.parent, suffix='.tmp', delete=False
            ) as tmp:
                tmp_name = tmp.name
                tmp.write(payload)
            os.replace(tmp_name, path)
        except OSError as e:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise StorageError(f"Could not write {path}: {e}") from e
        logger.debug(f"Wrote {path} ({len(payload) // 1024} KB)")

    def exists(self, name: str) -> bool:
        return self.path_for(name).exists()

    def list_names(self, prefix: str) -> List[str]:
        directory = self.path_for(prefix)
        if not directory.is_dir():
            return []
        return sorted(f"{prefix}/{p.name}" for p in directory.glob('*.json'))


class SupabaseJsonStore(BaseStore):
    """Artifacts as objects in a Supabase Storage bucket"""

    def __init__(self, client, bucket: Optional[str] = None):
        self.client = client
        self.bucket = bucket or STORAGE_CONFIG['bucket']
        self._bucket_checked = False

    def _ensure_bucket(self) -> None:
        if self._bucket_checked:
            return
        try:
            self.client.storage.create_bucket(self.bucket, options={'public': False})
            logger.info(f"Created storage bucket {self.bucket}")
        except Exception as e:
            # Already exists
            logger.debug(f"create_bucket({self.bucket}): {e}")
        self._bucket_checked = True

    def read_json(self, name: str, default: Any = None) -> Any:
        try:
            raw = self.client.storage.from_(self.bucket).download(name)
        except Exception as e:
            logger.debug(f"Storage object {self.bucket}/{name} not available: {e}")
            return default
        if not raw:
            return default
        try:
            return json.loads(raw.decode('utf-8') if isinstance(raw, bytes) else raw)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise StorageError(f"Could not decode {self.bucket}/{name}: {e}") from e

    def write_json(self, name: str, data: Any) -> None:
        self._ensure_bucket()
        payload = dumps(data).encode('utf-8')
        try:
            self.client.storage.from_(self.bucket).upload(
                name,
                payload,
                file_options={'content-type': STORAGE_CONFIG['content_type'], 'upsert': 'true'},
            )
        except Exception as e:
            raise StorageError(f"Could not upload {self.bucket}/{name}: {e}") from e
        logger.debug(f"Uploaded {self.bucket}/{name} ({len(payload) // 1024} KB)")

    def exists(self, name: str) -> bool:
        return bool(self.list_names(os.path.dirname(name), include=os.path.basename(name)))

    def list_names(self, prefix: str, include: Optional[str] = None) -> List[str]:
        try:
            entries = self.client.storage.from_(self.bucket).list(prefix)
        except Exception as e:
            logger.warning(f"Could not list {self.bucket}/{prefix}: {e}")
            return []
        names = []
        for entry in entries or []:
            filename = entry.get('name', '')
            if not filename.endswith('.json'):
                continue
            if include and filename != include:
                continue
            names.append(f"{prefix}/{filename}" if prefix else filename)
        return sorted(names)


class FallbackJsonStore(BaseStore):
    """
    Read from the primary store, falling back to a local copy.

    Writes go to both; the local copy is written first so it is never older
    than the primary.
    """

    def __init__(self, primary: BaseStore, fallback: LocalJsonStore):
        self.primary = primary
        self.fallback = fallback

    def read_json(self, name: str, default: Any = None) -> Any:
        data = self.primary.read_json(name, default=_MISSING)
        if data is _MISSING:
            logger.debug(f"{name} not in primary store, reading local copy")
            return self.fallback.read_json(name, default=default)
        return data

    def write_json(self, name: str, data: Any) -> None:
        self.fallback.write_json(name, data)
        self.primary.write_json(name, data)

    def exists(self, name: str) -> bool:
        return self.primary.exists(name) or self.fallback.exists(name)

    def list_names(self, prefix: str) -> List[str]:
        return self.primary.list_names(prefix) or self.fallback.list_names(prefix)


def get_store() -> BaseStore:
    """Store configured from settings: Supabase with local fallback, or local only"""
    local = LocalJsonStore(DATA_DIR)
    if not STORAGE_CONFIG['use_supabase']:
        return local
    if not SUPABASE_URL or not SUPABASE_SERVICE_ROLE_KEY:
        logger.warning("USE_SUPABASE_STORAGE is set but Supabase credentials are missing, using local store")
        return local

    from supabase import create_client

    client = create_client(SUPABASE_URL, SUPABASE_SERVICE_ROLE_KEY)
    return FallbackJsonStore(SupabaseJsonStore(client, STORAGE_CONFIG['bucket']), local)
