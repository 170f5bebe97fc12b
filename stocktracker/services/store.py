# stocktracker/services/store.py
"""
Durable store for the portfolio document.

The document is read once, mutated in-process by the services, and written
back wholesale. There is no patch or merge: the last write wins, which is
fine for the single logical writer (one user) this application serves.

Writes go to a temporary file in the same directory which then replaces
the target, so a crash mid-write never leaves a truncated document.

Usage:
    store = JsonDocumentStore(Path("data/portfolio.json"))

    document = await store.read()
    document.fx_rates["2024-01-15"] = snapshot
    await store.write()
"""

import asyncio
import logging
import os
import tempfile
from pathlib import Path

from pydantic import ValidationError as PydanticValidationError

from stocktracker.models import PortfolioDocument
from stocktracker.services.exceptions import StoreError

logger = logging.getLogger(__name__)


class JsonDocumentStore:
    """
    Portfolio document persisted as a JSON file.

    The loaded document is kept in memory; read() returns the same object
    on every call so mutations made by one service are seen by the others
    and persisted by the next write().
    """

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)
        self._document: PortfolioDocument | None = None
        logger.info(f"JsonDocumentStore initialized (path={self._path})")

    @property
    def path(self) -> Path:
        return self._path

    async def read(self) -> PortfolioDocument:
        """
        Return the current document, loading it from disk on first use.

        A missing file yields an empty document.

        Raises:
            StoreError: If the file exists but cannot be parsed
        """
        if self._document is None:
            self._document = await asyncio.to_thread(self._load)
        return self._document

    async def write(self, document: PortfolioDocument | None = None) -> None:
        """
        Persist the document wholesale.

        Args:
            document: Replacement document. Defaults to the in-memory one.

        Raises:
            StoreError: If nothing has been loaded or the write fails
        """
        if document is not None:
            self._document = document
        if self._document is None:
            raise StoreError("Nothing to write: document was never loaded", path=str(self._path))

        payload = self._document.model_dump_json(by_alias=True, exclude_none=True, indent=2)
        await asyncio.to_thread(self._save, payload)

    def _load(self) -> PortfolioDocument:
        if not self._path.exists():
            logger.info(f"No document at {self._path}, starting empty")
            return PortfolioDocument()

        try:
            raw = self._path.read_text(encoding="utf-8")
        except OSError as e:
            raise StoreError(f"Cannot read {self._path}: {e}", path=str(self._path)) from e

        try:
            document = PortfolioDocument.model_validate_json(raw)
        except PydanticValidationError as e:
            raise StoreError(
                f"Invalid portfolio document at {self._path}: {e.error_count()} error(s)",
                path=str(self._path),
            ) from e

        logger.info(
            f"Loaded {len(document.transactions)} transactions, "
            f"{len(document.fx_rates)} FX snapshots from {self._path}"
        )
        return document

    def _save(self, payload: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self._path.name}.", suffix=".tmp", dir=self._path.parent
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
            os.replace(tmp_name, self._path)
        except OSError as e:
            Path(tmp_name).unlink(missing_ok=True)
            raise StoreError(f"Cannot write {self._path}: {e}", path=str(self._path)) from e

        logger.debug(f"Wrote {len(payload)} bytes to {self._path}")
