"""
Manifest directory store for RedisCluster desired-state objects.

Each object lives in `<dir>/<name>.yaml`. Reads always go to disk, so edits
to a manifest are picked up by the next pass. Finalizer and deletion
bookkeeping rewrite the file in place, keeping every other key the user
wrote.

Deletion follows the platform convention: deletion is requested by setting
metadata.deletionTimestamp; the file is removed once the last finalizer is
released.
"""

from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from operator_redis.exceptions import ManifestError
from operator_redis.types import FINALIZER, RedisCluster

MANIFEST_SUFFIX = ".yaml"


def load_manifest(path: Path) -> RedisCluster:
    """
    Read and validate one manifest file.

    Raises:
        ManifestError: If the file is not valid YAML or not a valid
            RedisCluster.
    """
    return _validate(path, _read_raw(path))


def _read_raw(path: Path) -> dict[str, Any]:
    try:
        raw = yaml.safe_load(path.read_text())
    except yaml.YAMLError as e:
        raise ManifestError(str(path), f"invalid YAML: {e}") from e
    if not isinstance(raw, dict):
        raise ManifestError(str(path), "top level must be a mapping")
    return raw


def _validate(path: Path, raw: dict[str, Any]) -> RedisCluster:
    try:
        return RedisCluster.model_validate(raw)
    except ValidationError as e:
        raise ManifestError(str(path), str(e)) from e


class ManifestStore:
    """
    Desired-state store backed by a directory of YAML manifests.

    Implements DesiredStateStoreProtocol.

    Example:
        store = ManifestStore(Path("manifests"))
        for name in await store.list_names():
            cluster = await store.get(name)
    """

    def __init__(self, directory: Path) -> None:
        self.directory = directory

    def path_for(self, name: str) -> Path:
        return self.directory / f"{name}{MANIFEST_SUFFIX}"

    async def get(self, name: str) -> RedisCluster | None:
        """
        Load the named object.

        Returns:
            The object, or None when its manifest does not exist.

        Raises:
            ManifestError: On an invalid manifest or a name mismatch.
        """
        path = self.path_for(name)
        if not path.exists():
            return None
        cluster = load_manifest(path)
        if cluster.name != name:
            raise ManifestError(
                str(path), f"metadata.name {cluster.name!r} does not match file name"
            )
        return cluster

    async def list_names(self) -> list[str]:
        if not self.directory.is_dir():
            return []
        return sorted(p.stem for p in self.directory.glob(f"*{MANIFEST_SUFFIX}"))

    async def add_finalizer(self, name: str) -> None:
        def _add(metadata: dict[str, Any]) -> None:
            finalizers = metadata.setdefault("finalizers", [])
            if FINALIZER not in finalizers:
                finalizers.append(FINALIZER)

        self._update_metadata(name, _add)

    async def remove_finalizer(self, name: str) -> None:
        """Drop the finalizer; delete the manifest if deletion was requested."""
        path = self.path_for(name)
        if not path.exists():
            return
        raw = _read_raw(path)
        metadata = raw.setdefault("metadata", {})
        finalizers = [f for f in metadata.get("finalizers", []) if f != FINALIZER]
        metadata["finalizers"] = finalizers

        if not finalizers and metadata.get("deletionTimestamp"):
            path.unlink()
            return
        self._write(path, raw)

    async def request_deletion(self, name: str) -> bool:
        """
        Mark the object for deletion.

        Objects without finalizers are removed immediately.

        Returns:
            True if the object existed.
        """
        path = self.path_for(name)
        if not path.exists():
            return False
        raw = _read_raw(path)
        metadata = raw.setdefault("metadata", {})
        if not metadata.get("finalizers"):
            path.unlink()
            return True
        metadata.setdefault("deletionTimestamp", datetime.now(timezone.utc).isoformat())
        self._write(path, raw)
        return True

    def _update_metadata(
        self, name: str, update: Callable[[dict[str, Any]], None]
    ) -> None:
        path = self.path_for(name)
        if not path.exists():
            raise ManifestError(str(path), "manifest does not exist")
        raw = _read_raw(path)
        update(raw.setdefault("metadata", {}))
        self._write(path, raw)

    def _write(self, path: Path, raw: dict[str, Any]) -> None:
        _validate(path, raw)
        tmp = path.with_suffix(".tmp")
        tmp.write_text(yaml.safe_dump(raw, sort_keys=False))
        tmp.replace(path)
