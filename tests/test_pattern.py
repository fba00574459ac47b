import numpy as np
import pytest
from core.exceptions import PatternError
from core.sparse.pattern import BlockPattern

def test_from_arrays_truncates_and_copies():
    rowp = [0, 2, 3, 99]
    cols = [0, 1, 1, 42]
    pat = BlockPattern.from_arrays(2, 2, 3, rowp, cols)
    np.testing.assert_array_equal(pat.rowp, [0, 2, 3])
    np.testing.assert_array_equal(pat.cols, [0, 1, 1])
    assert pat.nnz == 3
    pat.check()

def test_row_helpers():
    pat = BlockPattern.from_arrays(3, 3, 5, [0, 2, 2, 5], [1, 0, 2, 0, 1])
    assert list(pat.row_range(0)) == [0, 1]
    assert list(pat.row_range(1)) == []
    assert pat.degree(2) == 3
    np.testing.assert_array_equal(pat.block_rows(), [0, 0, 2, 2, 2])
    assert not pat.is_row_sorted()

def test_sorted_rows():
    pat = BlockPattern.from_arrays(2, 2, 3, [0, 2, 3], [0, 1, 1])
    assert pat.is_row_sorted()

@pytest.mark.parametrize("nbrows, nbcols, rowp, cols, message", [
    (2, 2, [1, 1, 2], [0, 1], "rowp\\[0\\]"),
    (2, 2, [0, 1, 3], [0, 1], "does not match nnz"),
    (2, 2, [0, 2, 1], [0], "monotonically"),
    (2, 2, [0, 1, 2], [0, 2], "out of range"),
    (2, 2, [0, 1, 2], [-1, 0], "out of range"),
])
def test_check_reports_violations(nbrows, nbcols, rowp, cols, message):
    pat = BlockPattern(nbrows, nbcols, np.asarray(rowp), np.asarray(cols))
    with pytest.raises(PatternError, match=message):
        pat.check()

def test_check_short_rowp():
    pat = BlockPattern(3, 3, np.asarray([0, 1]), np.asarray([0]))
    with pytest.raises(PatternError, match="expected 4"):
        pat.check()
