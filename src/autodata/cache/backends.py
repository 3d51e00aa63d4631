"""Key-value persistence backends for the vehicle cache.

Backends store one payload per normalized registration with
last-write-wins semantics. They know nothing about merging; field-level
merge logic lives in ``CacheStore``.

Payload shape:
    {
        "key": "AB12CDE",
        "last_refreshed_at": "2024-01-15T09:30:00+00:00",
        "providers_consulted": ["dvla", "vehicle_specs"],
        "fields": {"identification.make": {"value": "FORD", "source": "dvla"}},
    }

Parquet storage structure:
    data/{KEY}.parquet

Each file holds one row per field (path, JSON-encoded value, source), with
the entry metadata in the Parquet schema metadata. File I/O runs in
``asyncio.to_thread``.
"""

import asyncio
import copy
import json
import logging
import os
from pathlib import Path
from typing import Any, Protocol

import pandas as pd
import pyarrow as pa
import pyarrow.parquet as pq

logger = logging.getLogger(__name__)

_METADATA_KEY = b"autodata"


class CacheBackend(Protocol):
    """Persistence boundary consumed by ``CacheStore``."""

    async def get(self, key: str) -> dict[str, Any] | None: ...

    async def put(self, key: str, payload: dict[str, Any]) -> None: ...

    async def keys(self) -> list[str]: ...


class MemoryBackend:
    """In-process backend; payloads are deep-copied in and out."""

    def __init__(self) -> None:
        self._data: dict[str, dict[str, Any]] = {}

    async def get(self, key: str) -> dict[str, Any] | None:
        payload = self._data.get(key)
        return copy.deepcopy(payload) if payload is not None else None

    async def put(self, key: str, payload: dict[str, Any]) -> None:
        self._data[key] = copy.deepcopy(payload)

    async def keys(self) -> list[str]:
        return sorted(self._data)


class ParquetBackend:
    """One snappy-compressed Parquet file per registration.

    Args:
        base_path: Root directory for cache files. Defaults to 'data/'.
    """

    def __init__(self, base_path: str | Path = "data") -> None:
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _get_file_path(self, key: str) -> Path:
        return self.base_path / f"{key.upper()}.parquet"

    async def put(self, key: str, payload: dict[str, Any]) -> None:
        """Write a payload, replacing any previous file atomically."""
        file_path = self._get_file_path(key)
        fields = payload.get("fields", {})
        paths = sorted(fields)

        def _write() -> None:
            table = pa.table({
                "path": pa.array(paths, type=pa.string()),
                "value": pa.array(
                    [json.dumps(fields[p]["value"]) for p in paths], type=pa.string()
                ),
                "source": pa.array(
                    [fields[p]["source"] for p in paths], type=pa.string()
                ),
            })
            metadata = {
                "key": payload["key"],
                "last_refreshed_at": payload["last_refreshed_at"],
                "providers_consulted": list(payload.get("providers_consulted", [])),
            }
            table = table.replace_schema_metadata({_METADATA_KEY: json.dumps(metadata)})

            tmp_path = file_path.with_suffix(".parquet.tmp")
            pq.write_table(
                table,
                tmp_path,
                compression="snappy",
                use_dictionary=True,
                write_statistics=True,
            )
            os.replace(tmp_path, file_path)

        await asyncio.to_thread(_write)

    async def get(self, key: str) -> dict[str, Any] | None:
        """Read a payload; None if the key was never written.

        A file that cannot be parsed is logged and treated as missing.
        """
        file_path = self._get_file_path(key)

        if not file_path.exists():
            return None

        def _read() -> dict[str, Any] | None:
            try:
                table = pq.read_table(file_path)
                metadata = json.loads(table.schema.metadata[_METADATA_KEY])
                frame: pd.DataFrame = table.to_pandas()
            except Exception as e:
                logger.warning(
                    "Failed to read cache file %s: %s. "
                    "File may be corrupted, returning None.",
                    file_path, e,
                )
                return None

            fields = {
                row.path: {"value": json.loads(row.value), "source": row.source}
                for row in frame.itertuples(index=False)
            }
            return {**metadata, "fields": fields}

        return await asyncio.to_thread(_read)

    async def keys(self) -> list[str]:
        """List all cached registrations."""

        def _list() -> list[str]:
            return sorted(p.stem for p in self.base_path.glob("*.parquet"))

        return await asyncio.to_thread(_list)
