import numpy as np
import pytest
from core.sparse.bsr import BSRMat

@pytest.fixture
def diag_only():
    # 2x2 blocks of size 2x2, only the diagonal blocks are stored
    return BSRMat(2, 2, 2, [0, 1, 2], [0, 1], block_shape=(2, 2))

@pytest.fixture
def tridiag():
    # 3 block rows, tridiagonal block pattern, columns deliberately unsorted in row 1
    rowp = [0, 2, 5, 7]
    cols = [0, 1, 2, 0, 1, 1, 2]
    return BSRMat(3, 3, 7, rowp, cols, block_shape=(2, 2))

@pytest.fixture
def rect():
    # 2 block rows x 3 block cols, 2x3 blocks
    rowp = [0, 2, 3]
    cols = [0, 2, 1]
    mat = BSRMat(2, 3, 3, rowp, cols, block_shape=(2, 3))
    mat.vals[:] = np.arange(18, dtype=float).reshape(3, 2, 3) + 1.0
    return mat

@pytest.fixture
def dummy_logger(caplog):
    caplog.set_level("DEBUG")
    return caplog
