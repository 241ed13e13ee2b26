"""
Key-value storage for persisted hook state.

`DB` wraps LevelDB through plyvel. `MemoryDB` keeps the same interface in a
dict, for state that does not need to outlive the process.
"""
import plyvel
import logging
from typing import Optional, Iterator
from contextlib import contextmanager

logger = logging.getLogger(__name__)


class DB:
    def __init__(self, db_path: str, create_if_missing: bool = True,
                 write_buffer_size: int = 64 * 1024 * 1024,  # 64MB
                 max_open_files: int = 1000):
        """
        Open (or create) a LevelDB database.

        Args:
            db_path: Path to database directory
            create_if_missing: Create database if it doesn't exist
            write_buffer_size: Size of write buffer
            max_open_files: Maximum number of open files
        """
        try:
            self._db = plyvel.DB(
                db_path,
                create_if_missing=create_if_missing,
                write_buffer_size=write_buffer_size,
                max_open_files=max_open_files,
            )
            self._closed = False
            logger.info(f"Database opened at {db_path}")
        except plyvel.Error as e:
            logger.error(f"Failed to open database at {db_path}: {e}")
            raise

    @classmethod
    def from_config(cls, config) -> 'DB':
        """Open the database described by a DatabaseConfig."""
        return cls(config.path, write_buffer_size=config.write_buffer_size,
                   max_open_files=config.max_open_files)

    def _check_open(self):
        if self._closed:
            raise RuntimeError("Database is closed")

    def get(self, key: bytes) -> Optional[bytes]:
        """
        Get value by key.

        Returns None if key doesn't exist.
        """
        self._check_open()
        return self._db.get(key)

    def put(self, key: bytes, value: bytes):
        """Put a key-value pair."""
        self._check_open()
        self._db.put(key, value)

    def delete(self, key: bytes):
        """Delete a key."""
        self._check_open()
        self._db.delete(key)

    @contextmanager
    def write_batch(self):
        """
        Context manager for atomic batch writes. Nothing is written if the
        body raises.

        Example:
            with db.write_batch() as batch:
                batch.put(b'key1', b'value1')
                batch.put(b'key2', b'value2')
        """
        self._check_open()
        batch = self._db.write_batch(transaction=True)
        try:
            yield batch
        except Exception as e:
            logger.error(f"Batch write aborted: {e}")
            batch.clear()
            raise
        else:
            batch.write()

    def iterate_prefix(self, prefix: bytes) -> Iterator[tuple[bytes, bytes]]:
        """Yield (key, value) pairs whose key starts with prefix."""
        self._check_open()
        with self._db.iterator(prefix=prefix) as it:
            for key, value in it:
                yield key, value

    def close(self):
        """Close the database."""
        if not self._closed:
            self._db.close()
            self._closed = True
            logger.info("Database closed")

    def is_closed(self) -> bool:
        """Check if database is closed."""
        return self._closed

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class _MemoryBatch:
    def __init__(self):
        self.ops = []

    def put(self, key: bytes, value: bytes):
        self.ops.append((key, value))

    def delete(self, key: bytes):
        self.ops.append((key, None))


class MemoryDB:
    """Dict-backed store with the DB interface."""

    def __init__(self):
        self._data: dict[bytes, bytes] = {}
        self._closed = False

    def _check_open(self):
        if self._closed:
            raise RuntimeError("Database is closed")

    def get(self, key: bytes) -> Optional[bytes]:
        self._check_open()
        return self._data.get(key)

    def put(self, key: bytes, value: bytes):
        self._check_open()
        self._data[key] = value

    def delete(self, key: bytes):
        self._check_open()
        self._data.pop(key, None)

    @contextmanager
    def write_batch(self):
        self._check_open()
        batch = _MemoryBatch()
        yield batch
        for key, value in batch.ops:
            if value is None:
                self._data.pop(key, None)
            else:
                self._data[key] = value

    def iterate_prefix(self, prefix: bytes) -> Iterator[tuple[bytes, bytes]]:
        self._check_open()
        for key in sorted(self._data):
            if key.startswith(prefix):
                yield key, self._data[key]

    def close(self):
        self._closed = True

    def is_closed(self) -> bool:
        return self._closed

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
