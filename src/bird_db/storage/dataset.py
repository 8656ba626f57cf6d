"""
Dataset store.

Loads the bird record array into memory once at startup. The loaded list is
never mutated afterwards, so request handlers share it without locking.
"""

import json
import logging
from pathlib import Path

import zstandard as zstd

from bird_db.errors import LoadError
from bird_db.records import SEQUENCE, Record, has_value

logger = logging.getLogger(__name__)


class DatasetStore:
    """
    In-memory holder for the bird dataset.

    Call load() before handing the store to the query engine; accessing
    records on an unloaded store is a programming error.
    """

    def __init__(self, path: Path | str):
        """
        Initialize the store.

        Args:
            path: JSON file containing an array of records. A ``.zst`` suffix
                means the file is zstandard-compressed.
        """
        self.path = Path(path)
        self._records: list[Record] | None = None
        self._sequence_ids: list | None = None

    @classmethod
    def from_records(cls, records: list[Record], path: Path | str = "<memory>") -> "DatasetStore":
        """Build an already-loaded store from an in-memory list."""
        store = cls(path)
        store._set_records(_validate_records(records, store.path))
        return store

    def load(self) -> None:
        """
        Read and validate the dataset file.

        Raises:
            LoadError: If the file is missing, unreadable, not JSON, or not an
                array of objects.
        """
        logger.info(f"Loading bird data from {self.path}...")

        if not self.path.exists():
            raise LoadError(f"Data file not found: {self.path.resolve()}")

        try:
            raw = self._read_text()
            data = json.loads(raw)
        except (OSError, UnicodeDecodeError, zstd.ZstdError) as e:
            raise LoadError(f"Could not read {self.path}: {e}") from e
        except json.JSONDecodeError as e:
            raise LoadError(f"Malformed JSON in {self.path}: {e}") from e

        self._set_records(_validate_records(data, self.path))
        logger.info(f"Loaded {len(self.records)} bird records")

    def _read_text(self) -> str:
        data = self.path.read_bytes()
        if self.path.suffix == ".zst":
            # Stream decompression handles frames without a content size header
            decompressor = zstd.ZstdDecompressor()
            with decompressor.stream_reader(data) as reader:
                data = reader.read()
        return data.decode("utf-8")

    def _set_records(self, records: list[Record]) -> None:
        self._records = records
        seen = set()
        ids = []
        for record in records:
            value = record.get(SEQUENCE)
            if not isinstance(value, (str, int, float)) or isinstance(value, bool):
                continue
            if has_value(value) and value not in seen:
                seen.add(value)
                ids.append(value)
        self._sequence_ids = ids

    @property
    def loaded(self) -> bool:
        return self._records is not None

    @property
    def records(self) -> list[Record]:
        """Get the record list (must be loaded first)."""
        if self._records is None:
            raise RuntimeError("Dataset not loaded. Call load() first.")
        return self._records

    @property
    def sequence_ids(self) -> list:
        """Distinct non-empty sequence identifiers, in record order."""
        if self._sequence_ids is None:
            raise RuntimeError("Dataset not loaded. Call load() first.")
        return self._sequence_ids

    def __len__(self) -> int:
        return len(self.records)


def _validate_records(data, path: Path) -> list[Record]:
    if not isinstance(data, list):
        raise LoadError(
            f"Expected a JSON array in {path}, got {type(data).__name__}"
        )
    for index, item in enumerate(data):
        if not isinstance(item, dict):
            raise LoadError(
                f"Record {index} in {path} is {type(item).__name__}, expected an object"
            )
    return data
