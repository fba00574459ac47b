# inout/mtx.py
"""
MatrixMarket coordinate I/O for block sparse matrices.

File layout written by write_mtx:

    %%MatrixMarket matrix coordinate real general
    <rows> <cols> <nnz * M * N>
    <row> <col> <value>        one line per stored scalar, 1-based indices

Blocks are emitted in pattern order and each block is unrolled row by row,
so explicit zeros inside stored blocks are written too.
"""
from __future__ import annotations
from typing import TYPE_CHECKING, Union
import os

import numpy as np
import scipy.io
import scipy.sparse as sp

from core.exceptions import MatrixIOError
from utils.logging_config import get_logger

if TYPE_CHECKING:
    from core.sparse.bsr import BSRMat

logger = get_logger(__name__)

MTX_BANNER = "%%MatrixMarket"

PathLike = Union[str, "os.PathLike[str]"]


def write_mtx(mat: "BSRMat", mtx_name: PathLike = "matrix.mtx") -> None:
    """
    Write a BSRMat to mtx_name, destroying any previous contents.

    Complex matrices use the 'complex' field with real and imaginary parts.

    Raises:
        MatrixIOError if the file cannot be opened or written.
    """
    is_complex = np.iscomplexobj(mat.vals)
    field = "complex" if is_complex else "real"
    M, N = mat.block_shape

    try:
        with open(mtx_name, "w") as f:
            f.write(f"{MTX_BANNER} matrix coordinate {field} general\n")
            f.write(f"{mat.nbrows * M} {mat.nbcols * N} {mat.nnz * M * N}\n")

            for i, j, block in mat.iter_blocks():      # (i, j) is the block index pair
                for ii in range(M):
                    irow = M * i + ii + 1              # 1-based
                    for jj in range(N):
                        jcol = N * j + jj + 1
                        v = block[ii, jj]
                        if is_complex:
                            f.write(f"{irow} {jcol} {v.real:30.20e} {v.imag:30.20e}\n")
                        else:
                            f.write(f"{irow} {jcol} {float(v):30.20e}\n")
    except OSError as e:
        raise MatrixIOError(f"Cannot write MatrixMarket file '{mtx_name}': {e}") from e

    logger.debug("Wrote %d scalar entries to %s", mat.nnz * M * N, mtx_name)


def read_mtx(mtx_name: PathLike) -> np.ndarray:
    """
    Read a MatrixMarket file into a dense array.  Repeated coordinates are
    summed and symmetric storage is expanded by scipy.io.mmread.

    Raises:
        MatrixIOError if the file is missing or not valid MatrixMarket.
    """
    try:
        A = scipy.io.mmread(str(mtx_name))
    except (OSError, ValueError, IndexError) as e:
        raise MatrixIOError(f"Cannot read MatrixMarket file '{mtx_name}': {e}") from e

    if sp.issparse(A):
        A = A.toarray()
    logger.debug("Read %dx%d matrix from %s", A.shape[0], A.shape[1], mtx_name)
    return np.asarray(A)
