# core/sparse/metadata.py
from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from core.exceptions import PatternError
from core.sparse.pattern import INDEX_DTYPE


def _index_array(values: Sequence[int], length: int, name: str) -> np.ndarray:
    arr = np.array(values, dtype=INDEX_DTYPE, copy=True)
    if arr.ndim != 1 or arr.size != length:
        raise PatternError(f"{name} must have length {length}, got shape {arr.shape}")
    return arr


@dataclass(eq=False)
class SolverMetadata:
    """
    Passive storage filled in by external ordering, coloring and
    factorisation passes so their results can be reused across solves
    against the same pattern.  Nothing here is computed by the matrix.

    Every slot is None until populated; use the has_* properties instead
    of probing for empty arrays.
    """
    nbrows: int
    diag: Optional[np.ndarray] = None         # diag[r] = storage index of block (r, r)
    perm: Optional[np.ndarray] = None         # perm[new] = old
    iperm: Optional[np.ndarray] = None        # iperm[old] = new
    num_colors: Optional[int] = None
    color_count: Optional[np.ndarray] = None  # block rows per color

    @property
    def has_diag(self) -> bool:
        return self.diag is not None

    @property
    def has_perm(self) -> bool:
        return self.perm is not None

    @property
    def has_coloring(self) -> bool:
        return self.num_colors is not None

    def set_diag(self, diag: Sequence[int]) -> None:
        self.diag = _index_array(diag, self.nbrows, "diag")

    def set_permutation(self, perm: Sequence[int], iperm: Optional[Sequence[int]] = None) -> None:
        """
        Store a block-row permutation.  When iperm is omitted it is derived
        from perm (perm must then be a true permutation of range(nbrows)).
        """
        perm_arr = _index_array(perm, self.nbrows, "perm")
        if iperm is None:
            if not np.array_equal(np.sort(perm_arr), np.arange(self.nbrows)):
                raise PatternError("perm is not a permutation of the block rows")
            iperm_arr = np.empty_like(perm_arr)
            iperm_arr[perm_arr] = np.arange(self.nbrows, dtype=INDEX_DTYPE)
        else:
            iperm_arr = _index_array(iperm, self.nbrows, "iperm")
        self.perm = perm_arr
        self.iperm = iperm_arr

    def set_coloring(self, num_colors: int, color_count: Sequence[int]) -> None:
        """
        Record a coloring.  The ordering itself lives in perm; color_count[c]
        is the number of consecutive permuted block rows with color c.
        """
        counts = _index_array(color_count, int(num_colors), "color_count")
        if counts.sum() != self.nbrows:
            raise PatternError(
                f"color_count sums to {counts.sum()}, expected {self.nbrows} block rows")
        self.num_colors = int(num_colors)
        self.color_count = counts

    def clear(self) -> None:
        self.diag = None
        self.perm = None
        self.iperm = None
        self.num_colors = None
        self.color_count = None

    def copy(self) -> "SolverMetadata":
        def _cp(a):
            return None if a is None else a.copy()
        return SolverMetadata(self.nbrows, _cp(self.diag), _cp(self.perm), _cp(self.iperm),
                              self.num_colors, _cp(self.color_count))
