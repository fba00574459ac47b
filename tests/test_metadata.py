import numpy as np
import pytest
from core.exceptions import PatternError
from core.sparse.metadata import SolverMetadata

def test_slots_start_absent():
    meta = SolverMetadata(4)
    assert not meta.has_diag
    assert not meta.has_perm
    assert not meta.has_coloring
    assert meta.iperm is None and meta.color_count is None

def test_permutation_derives_inverse():
    meta = SolverMetadata(4)
    meta.set_permutation([2, 0, 3, 1])
    np.testing.assert_array_equal(meta.perm[meta.iperm], np.arange(4))
    np.testing.assert_array_equal(meta.iperm, [1, 3, 0, 2])

def test_permutation_explicit_inverse_is_stored():
    meta = SolverMetadata(2)
    meta.set_permutation([1, 0], [1, 0])
    np.testing.assert_array_equal(meta.iperm, [1, 0])

@pytest.mark.parametrize("perm", [[0, 1, 2], [0, 0, 1, 2]])
def test_permutation_rejected(perm):
    meta = SolverMetadata(4)
    with pytest.raises(PatternError):
        meta.set_permutation(perm)
    assert not meta.has_perm

def test_coloring():
    meta = SolverMetadata(5)
    meta.set_permutation([0, 2, 4, 1, 3])
    meta.set_coloring(2, [3, 2])
    assert meta.has_coloring
    assert meta.num_colors == 2
    np.testing.assert_array_equal(meta.color_count, [3, 2])

@pytest.mark.parametrize("num_colors, counts", [(2, [3]), (2, [3, 3])])
def test_coloring_rejected(num_colors, counts):
    meta = SolverMetadata(5)
    with pytest.raises(PatternError):
        meta.set_coloring(num_colors, counts)
    assert not meta.has_coloring

def test_setters_copy_input():
    diag = np.array([0, 1, 2])
    meta = SolverMetadata(3)
    meta.set_diag(diag)
    diag[0] = 9
    assert meta.diag[0] == 0

def test_clear_and_copy():
    meta = SolverMetadata(2)
    meta.set_diag([0, 1])
    meta.set_permutation([1, 0])
    dup = meta.copy()
    meta.clear()
    assert not meta.has_diag and not meta.has_perm
    np.testing.assert_array_equal(dup.diag, [0, 1])
    np.testing.assert_array_equal(dup.perm, [1, 0])
