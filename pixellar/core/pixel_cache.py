"""
Pixel Cache: local view of the canvas, authoritative rows plus optimistic writes.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Tuple

from pixellar.core.models import Cell, Chain, DEFAULT_RECORD, PaintRecord, PixelRow

logger = logging.getLogger(__name__)


class PixelCache:
    """
    Mapping of grid cell -> PaintRecord for the whole session.

    Cells missing from the map are background. There is at most one record per
    cell; the last write (optimistic or authoritative) wins locally, except that
    a guarded revert or confirm never overrides an authoritative merge that
    arrived after the optimistic write.

    Listeners are called with the changed cell, or with None after a bulk load.
    """

    def __init__(self, width: int, height: int, palette_size: int = 16):
        self.width = width
        self.height = height
        self.palette_size = palette_size
        self._records: Dict[Cell, PaintRecord] = {}
        self._listeners: List[Callable[[Optional[Cell]], None]] = []

    # ========================================================================
    # Reads
    # ========================================================================

    def get(self, cell: Cell) -> Optional[PaintRecord]:
        """Returns the stored record, or None for a background cell."""
        return self._records.get(cell)

    def read(self, cell: Cell) -> PaintRecord:
        """Returns the record for a cell, the default record when unpainted."""
        return self._records.get(cell, DEFAULT_RECORD)

    def items(self) -> Iterator[Tuple[Cell, PaintRecord]]:
        return iter(list(self._records.items()))

    def pending_cells(self) -> List[Cell]:
        """Cells whose current record is still only optimistic."""
        return [cell for cell, record in self._records.items() if not record.confirmed]

    def in_bounds(self, cell: Cell) -> bool:
        x, y = cell
        return 0 <= x < self.width and 0 <= y < self.height

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, cell: Cell) -> bool:
        return cell in self._records

    # ========================================================================
    # Listeners
    # ========================================================================

    def add_listener(self, callback: Callable[[Optional[Cell]], None]) -> None:
        self._listeners.append(callback)

    def remove_listener(self, callback: Callable[[Optional[Cell]], None]) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def _notify(self, cell: Optional[Cell]) -> None:
        for callback in self._listeners:
            callback(cell)

    # ========================================================================
    # Writes
    # ========================================================================

    def load(self, rows: Iterable[PixelRow]) -> int:
        """
        Replaces the whole map with an authoritative snapshot.

        Rows outside the grid or with a color outside the palette are skipped.

        Returns:
            Number of rows loaded
        """
        records: Dict[Cell, PaintRecord] = {}
        skipped = 0
        for row in rows:
            if not self._valid_row(row):
                skipped += 1
                continue
            records[row.cell] = row.to_record()

        self._records = records
        if skipped:
            logger.warning("Skipped %d invalid rows while loading canvas", skipped)
        logger.info("Loaded %d painted cells", len(records))
        self._notify(None)
        return len(records)

    def apply_optimistic(self, cell: Cell, color: int, owner: Optional[str], chain: Chain) -> Optional[PaintRecord]:
        """
        Writes an unconfirmed record and returns exactly what was there before.

        Returns:
            The prior record, or None if the cell was background
        """
        if not self.in_bounds(cell):
            raise ValueError(f"Cell out of bounds: {cell}")
        if not 0 <= color < self.palette_size:
            raise ValueError(f"Color index out of palette: {color}")

        prior = self._records.get(cell)
        self._records[cell] = PaintRecord(color=color, owner=owner, chain=chain, confirmed=False)
        self._notify(cell)
        return prior

    def revert(self, cell: Cell, prior: Optional[PaintRecord], applied: Optional[PaintRecord] = None) -> bool:
        """
        Restores the record returned by ``apply_optimistic``.

        Args:
            cell: Cell to restore
            prior: Record captured by ``apply_optimistic`` (None = background)
            applied: If given, only revert while the cell still holds this
                     exact optimistic record; anything written since (an
                     authoritative merge, a newer attempt) is kept

        Returns:
            True if the cell was restored
        """
        if applied is not None and self._records.get(cell) is not applied:
            logger.debug("Skipping revert of %s, cell changed since the optimistic write", cell)
            return False

        if prior is None:
            self._records.pop(cell, None)
        else:
            self._records[cell] = prior
        self._notify(cell)
        return True

    def confirm(self, cell: Cell, applied: PaintRecord, tx_hash: Optional[str] = None) -> bool:
        """
        Marks the caller's own optimistic record as confirmed.

        Does nothing if the cell no longer holds ``applied``.
        """
        if self._records.get(cell) is not applied:
            return False
        self._records[cell] = applied.confirm(tx_hash)
        self._notify(cell)
        return True

    def merge_authoritative(self, row: PixelRow) -> bool:
        """
        Upserts a confirmed record from the mirrored store.

        Authority always wins over whatever is cached for the cell, optimistic
        or not, newer or not.

        Returns:
            False if the row was rejected as invalid
        """
        if not self._valid_row(row):
            logger.warning("Ignoring invalid authoritative row: %s", row)
            return False
        self._records[row.cell] = row.to_record()
        self._notify(row.cell)
        return True

    def _valid_row(self, row: PixelRow) -> bool:
        return self.in_bounds(row.cell) and 0 <= row.color < self.palette_size
