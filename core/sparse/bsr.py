# core/sparse/bsr.py
"""
Block CSR matrix for finite-element assembly.

The matrix is partitioned into dense M x N blocks.  The sparsity pattern
(rowp, cols) is fixed at construction; values are filled by scatter-add
assembly of element matrices, Dirichlet rows are eliminated in place, and the
result is exported as a dense array, a scipy BSR matrix or a MatrixMarket
file.  Optional solver metadata (diag, perm, iperm, coloring) is carried for
external factorisation and coloring passes.
"""
from __future__ import annotations
from typing import Iterable, List, Optional, Sequence, Tuple

import numpy as np
import scipy.sparse as sp

from core.exceptions import BlockIndexError, PatternError
from core.sparse.connectivity import pattern_from_connectivity
from core.sparse.metadata import SolverMetadata
from core.sparse.pattern import BlockPattern, INDEX_DTYPE
from utils.logging_config import get_logger

logger = get_logger(__name__)

# Returned by find_block when (row, col) is not in the pattern; never a valid slot
MAX_INDEX = int(np.iinfo(INDEX_DTYPE).max)


class BSRMat:
    """
    Block compressed sparse row matrix with M x N blocks.

    Handle semantics: copy() and copy.deepcopy give independent matrices,
    alias() and copy.copy give a second handle on the same pattern, values
    and metadata.  Mutations through any handle are seen by all of them.

    Attributes
    ----------
    nbrows, nbcols : int
        Number of block rows / block columns.
    nnz : int
        Number of stored blocks (scalar non-zeros = nnz * M * N).
    rowp, cols : ndarray[int64]
        Block CSR pattern.  cols need not be sorted within a row.
    vals : ndarray, shape (nnz, M, N)
        Block values in pattern order.
    meta : SolverMetadata
        diag / perm / iperm / coloring slots, None until set externally.
    dropped : int
        Running count of scalar contributions discarded by add_values
        because their block is not in the pattern.
    singular_dofs : list[int]
        Constrained dofs left with an all-zero row by zero_rows because
        their block row has no diagonal block.
    """

    def __init__(
        self,
        nbrows: int,
        nbcols: int,
        nnz: int,
        rowp: Sequence[int],
        cols: Sequence[int],
        block_shape: Tuple[int, int] = (1, 1),
        dtype=np.float64,
        strict: bool = False,
    ):
        # The pattern is copied, never aliased, and never validated here
        self._init_handle(
            BlockPattern.from_arrays(nbrows, nbcols, nnz, rowp, cols),
            block_shape,
            np.zeros((int(nnz),) + tuple(int(b) for b in block_shape), dtype=dtype),
            SolverMetadata(int(nbrows)),
            strict,
        )
        logger.debug("BSRMat %dx%d blocks of %dx%d, nnz=%d, dtype=%s",
                     self.nbrows, self.nbcols, self.M, self.N, self.nnz, self.vals.dtype)

    def _init_handle(self, pattern: BlockPattern, block_shape, vals: np.ndarray,
                     meta: SolverMetadata, strict: bool) -> None:
        self.pattern = pattern
        self.M, self.N = (int(b) for b in block_shape)
        self.vals = vals
        self.meta = meta
        self.strict = strict
        self.dropped = 0
        self.singular_dofs: List[int] = []

    # ------------------------------------------------------------------
    # Alternate constructors
    # ------------------------------------------------------------------
    @classmethod
    def from_pattern(cls, pattern: BlockPattern, block_shape=(1, 1), dtype=np.float64,
                     strict: bool = False) -> "BSRMat":
        return cls(pattern.nbrows, pattern.nbcols, pattern.nnz, pattern.rowp, pattern.cols,
                   block_shape=block_shape, dtype=dtype, strict=strict)

    @classmethod
    def from_connectivity(cls, nnodes: int, elements: Iterable[Sequence[int]],
                          block_shape=(1, 1), dtype=np.float64, strict: bool = False) -> "BSRMat":
        """Square matrix whose pattern couples every pair of nodes sharing an element."""
        return cls.from_pattern(pattern_from_connectivity(nnodes, elements),
                                block_shape=block_shape, dtype=dtype, strict=strict)

    # ------------------------------------------------------------------
    # Handles
    # ------------------------------------------------------------------
    def alias(self) -> "BSRMat":
        """Return another handle sharing pattern, values and metadata with this one."""
        other = self.__class__.__new__(self.__class__)
        other._init_handle(self.pattern, (self.M, self.N), self.vals, self.meta, self.strict)
        return other

    def copy(self) -> "BSRMat":
        """Return an independent deep copy (values and metadata included)."""
        other = self.__class__.__new__(self.__class__)
        other._init_handle(self.pattern, (self.M, self.N), self.vals.copy(),
                           self.meta.copy(), self.strict)
        return other

    def __copy__(self) -> "BSRMat":
        return self.alias()

    def __deepcopy__(self, memo) -> "BSRMat":
        return self.copy()

    def shares_storage(self, other: "BSRMat") -> bool:
        return self.vals is other.vals

    # ------------------------------------------------------------------
    # Pattern / shape accessors
    # ------------------------------------------------------------------
    @property
    def nbrows(self) -> int:
        return self.pattern.nbrows

    @property
    def nbcols(self) -> int:
        return self.pattern.nbcols

    @property
    def nnz(self) -> int:
        return self.pattern.nnz

    @property
    def rowp(self) -> np.ndarray:
        return self.pattern.rowp

    @property
    def cols(self) -> np.ndarray:
        return self.pattern.cols

    @property
    def block_shape(self) -> Tuple[int, int]:
        return (self.M, self.N)

    @property
    def shape(self) -> Tuple[int, int]:
        """Scalar shape of the logical matrix."""
        return (self.M * self.nbrows, self.N * self.nbcols)

    @property
    def dtype(self) -> np.dtype:
        return self.vals.dtype

    def __repr__(self):
        return (f"<{self.__class__.__name__}(shape={self.shape}, block_shape={self.block_shape}, "
                f"nnz={self.nnz}, dtype={self.dtype})>")

    # ------------------------------------------------------------------
    # Solver metadata pass-through
    # ------------------------------------------------------------------
    @property
    def diag(self) -> Optional[np.ndarray]:
        return self.meta.diag

    @property
    def perm(self) -> Optional[np.ndarray]:
        return self.meta.perm

    @property
    def iperm(self) -> Optional[np.ndarray]:
        return self.meta.iperm

    @property
    def num_colors(self) -> Optional[int]:
        return self.meta.num_colors

    @property
    def color_count(self) -> Optional[np.ndarray]:
        return self.meta.color_count

    def set_diag(self, diag: Sequence[int]) -> None:
        """
        Record the storage index of each row's diagonal block.

        Raises:
            PatternError if diag has the wrong length or some diag[r] is not
            a block (r, r) inside row r.
        """
        previous = self.meta.diag
        self.meta.set_diag(diag)
        for r, p in enumerate(self.meta.diag):
            if not (self.rowp[r] <= p < self.rowp[r + 1]) or self.cols[p] != r:
                self.meta.diag = previous
                raise PatternError(f"diag[{r}] = {p} is not the diagonal block of row {r}")

    # ------------------------------------------------------------------
    # Values
    # ------------------------------------------------------------------
    def zero(self) -> None:
        """Reset every stored scalar to zero; pattern and metadata untouched."""
        self.vals.fill(0)

    def _check_row(self, row: int) -> None:
        if row < 0 or row >= self.nbrows:
            raise BlockIndexError(f"Block row {row} outside [0, {self.nbrows})")

    def find_block(self, row: int, col: int) -> int:
        """
        Storage index of block (row, col), or MAX_INDEX if it is not stored.

        Linear scan over the row, O(row degree).  Fine for finite-element
        stencils; rows with many blocks should be sorted and looked up with
        find_block_sorted instead.

        Raises:
            BlockIndexError if row is not a valid block row.
        """
        self._check_row(row)
        for jp in range(self.rowp[row], self.rowp[row + 1]):
            if self.cols[jp] == col:
                return int(jp)
        return MAX_INDEX

    def find_block_sorted(self, row: int, col: int) -> int:
        """Binary-search variant of find_block; row columns must be ascending."""
        self._check_row(row)
        start, end = int(self.rowp[row]), int(self.rowp[row + 1])
        jp = start + int(np.searchsorted(self.cols[start:end], col))
        if jp < end and self.cols[jp] == col:
            return jp
        return MAX_INDEX

    def get_block(self, row: int, col: int) -> np.ndarray:
        """
        Writable (M, N) view of block (row, col).

        Raises:
            BlockIndexError if the block is not in the pattern.
        """
        jp = self.find_block(row, col)
        if jp == MAX_INDEX:
            raise BlockIndexError(f"Block ({row}, {col}) is not in the sparsity pattern")
        return self.vals[jp]

    # ------------------------------------------------------------------
    # Assembly
    # ------------------------------------------------------------------
    def add_values(
        self,
        row_dofs: Sequence[int],
        col_dofs: Sequence[int],
        local,
        strict: Optional[bool] = None,
    ) -> int:
        """
        Scatter-add a dense local matrix into the stored blocks.

        local[i, j] is added to the scalar at global (row_dofs[i], col_dofs[j]).
        Contributions whose block is not in the pattern are dropped, which lets
        callers over-provide element matrices; the number dropped is returned
        and accumulated in self.dropped.  With strict=True (per call, or the
        matrix default) a PatternError is raised instead and nothing is added.

        Returns:
            Number of scalar contributions dropped by this call.
        """
        local = np.asarray(local)
        m, n = len(row_dofs), len(col_dofs)
        if local.shape != (m, n):
            raise ValueError(f"Local matrix shape {local.shape} does not match dofs ({m}, {n})")
        strict = self.strict if strict is None else strict

        targets: List[Tuple[int, int, int, int, int]] = []
        dropped = 0
        for ii in range(m):
            block_row, eq_row = divmod(int(row_dofs[ii]), self.M)
            for jj in range(n):
                block_col, eq_col = divmod(int(col_dofs[jj]), self.N)
                jp = self.find_block(block_row, block_col)
                if jp == MAX_INDEX:
                    if strict:
                        raise PatternError(
                            f"Block ({block_row}, {block_col}) for dof pair "
                            f"({row_dofs[ii]}, {col_dofs[jj]}) is not in the sparsity pattern")
                    dropped += 1
                    continue
                targets.append((jp, eq_row, eq_col, ii, jj))

        # Applied after the scan so a strict failure leaves values untouched
        for jp, eq_row, eq_col, ii, jj in targets:
            self.vals[jp, eq_row, eq_col] += local[ii, jj]

        if dropped:
            self.dropped += dropped
            logger.debug("add_values dropped %d of %d contributions outside the pattern",
                         dropped, m * n)
        return dropped

    def reset_dropped(self) -> int:
        """Return the dropped-contribution count and reset it to zero."""
        count, self.dropped = self.dropped, 0
        return count

    # ------------------------------------------------------------------
    # Dirichlet rows
    # ------------------------------------------------------------------
    def zero_rows(self, dofs: Iterable[int]) -> List[int]:
        """
        Zero the scalar rows of the given dofs and put 1 on their diagonal.

        The diagonal block is found by pattern match, not through the diag
        cache.  A row whose block row has no diagonal block is left all zero
        (singular); such dofs are logged, appended to self.singular_dofs and
        returned so the caller can react.  The right-hand side is not touched.

        Returns:
            The dofs whose diagonal block is missing from the pattern.

        Raises:
            BlockIndexError if a dof lies outside the matrix rows, or its
            in-block row has no diagonal entry (tall blocks, M > N).  All dofs
            are checked before any value is modified.
        """
        targets: List[Tuple[int, int, int]] = []
        for dof in dofs:
            block_row, eq_row = divmod(int(dof), self.M)
            self._check_row(block_row)
            if eq_row >= self.N:
                raise BlockIndexError(
                    f"Dof {dof} is row {eq_row} of a {self.M}x{self.N} block, "
                    f"which has no diagonal entry")
            targets.append((int(dof), block_row, eq_row))

        missing: List[int] = []
        for dof, block_row, eq_row in targets:
            found_diag = False
            for jp in range(self.rowp[block_row], self.rowp[block_row + 1]):
                self.vals[jp, eq_row, :] = 0
                if self.cols[jp] == block_row:
                    self.vals[jp, eq_row, eq_row] = 1
                    found_diag = True
            if not found_diag:
                missing.append(dof)

        if missing:
            self.singular_dofs.extend(missing)
            logger.warning("No diagonal block for constrained dofs %s; rows left singular", missing)
        return missing

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------
    def iter_blocks(self):
        """Yield (block_row, block_col, block) for every stored block in pattern order."""
        for i in range(self.nbrows):
            for jp in range(self.rowp[i], self.rowp[i + 1]):
                yield i, int(self.cols[jp]), self.vals[jp]

    def to_dense(self) -> np.ndarray:
        """Return a new dense (M*nbrows, N*nbcols) array owned by the caller."""
        A = np.zeros(self.shape, dtype=self.dtype)
        for i, j, block in self.iter_blocks():
            A[self.M * i:self.M * (i + 1), self.N * j:self.N * (j + 1)] = block
        return A

    def to_scipy(self) -> sp.bsr_matrix:
        """Return an equivalent scipy.sparse.bsr_matrix holding a copy of the values."""
        return sp.bsr_matrix(
            (self.vals.copy(), self.cols.copy(), self.rowp.copy()),
            shape=self.shape,
            blocksize=(self.M, self.N),
        )

    def write_mtx(self, mtx_name: str = "matrix.mtx") -> None:
        """Write every stored scalar to a MatrixMarket coordinate file."""
        from inout.mtx import write_mtx
        write_mtx(self, mtx_name)
