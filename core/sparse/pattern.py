# core/sparse/pattern.py
from __future__ import annotations
from dataclasses import dataclass
from typing import Sequence

import numpy as np

from core.exceptions import PatternError

INDEX_DTYPE = np.int64


@dataclass(frozen=True, eq=False)
class BlockPattern:
    """
    Block CSR sparsity pattern: which (block_row, block_col) pairs exist.

    The pattern depends *only* on mesh connectivity, never on numeric values.
    Columns inside a row are not required to be sorted.
    The index arrays are made read-only: the pattern is shared by every
    handle and copy of a matrix and never changes after construction.
    """
    nbrows: int
    nbcols: int
    rowp: np.ndarray          # int64, length nbrows + 1
    cols: np.ndarray          # int64, length nnz

    def __post_init__(self):
        self.rowp.flags.writeable = False
        self.cols.flags.writeable = False

    @classmethod
    def from_arrays(cls, nbrows: int, nbcols: int, nnz: int,
                    rowp: Sequence[int], cols: Sequence[int]) -> "BlockPattern":
        """Copy the first nbrows+1 row pointers and nnz columns into owned arrays."""
        rowp_arr = np.array(rowp[:nbrows + 1], dtype=INDEX_DTYPE, copy=True)
        cols_arr = np.array(cols[:nnz], dtype=INDEX_DTYPE, copy=True)
        return cls(int(nbrows), int(nbcols), rowp_arr, cols_arr)

    @property
    def nnz(self) -> int:     # number of non-zero blocks
        return self.cols.size

    def row_range(self, row: int) -> range:
        return range(int(self.rowp[row]), int(self.rowp[row + 1]))

    def degree(self, row: int) -> int:
        return int(self.rowp[row + 1] - self.rowp[row])

    def block_rows(self) -> np.ndarray:
        """Expand the row pointers into one block-row index per stored block."""
        return np.repeat(np.arange(self.nbrows, dtype=INDEX_DTYPE), np.diff(self.rowp))

    def is_row_sorted(self) -> bool:
        """True when every row lists its columns in ascending order."""
        for r in range(self.nbrows):
            seg = self.cols[self.rowp[r]:self.rowp[r + 1]]
            if seg.size > 1 and np.any(np.diff(seg) < 0):
                return False
        return True

    def check(self) -> None:
        """
        Verify the CSR invariants.  Never called implicitly: construction
        trusts its caller, this is for callers who want the guarantee.

        Raises:
            PatternError describing the first violated invariant.
        """
        if self.rowp.size != self.nbrows + 1:
            raise PatternError(f"rowp has {self.rowp.size} entries, expected {self.nbrows + 1}")
        if self.rowp[0] != 0:
            raise PatternError(f"rowp[0] must be 0, got {self.rowp[0]}")
        if self.rowp[-1] != self.nnz:
            raise PatternError(f"rowp[nbrows] = {self.rowp[-1]} does not match nnz = {self.nnz}")
        if np.any(np.diff(self.rowp) < 0):
            raise PatternError("rowp is not monotonically non-decreasing")
        if self.nnz and (self.cols.min() < 0 or self.cols.max() >= self.nbcols):
            raise PatternError(f"column index out of range [0, {self.nbcols})")
