import numpy as np
import pytest
import yaml

from core.exceptions import ConfigError
from inout.yaml_config import build_matrix, load_assembly_config, validate_config

def _write(tmp_path, data, name="assembly.yml"):
    path = tmp_path / name
    with open(path, "w") as f:
        yaml.dump(data, f)
    return path

@pytest.fixture
def bar_config():
    k = [[1.0, -1.0], [-1.0, 1.0]]
    return {
        "block_shape": [1, 1],
        "connectivity": {"nnodes": 3, "elements": [[0, 1], [1, 2]]},
        "elements": [
            {"dofs": [0, 1], "matrix": k},
            {"dofs": [1, 2], "matrix": k},
        ],
        "bcs": [0],
    }

def test_connectivity_config(tmp_path, bar_config):
    config = load_assembly_config(_write(tmp_path, bar_config))
    assert config.dtype == "float64"
    assert config.strict is False
    assert config.output is None
    mat = build_matrix(config)
    np.testing.assert_allclose(mat.to_dense(), [[1, 0, 0], [-1, 2, -1], [0, -1, 1]])
    assert mat.dropped == 0

def test_explicit_pattern_config(tmp_path):
    data = {
        "block_shape": [2, 2],
        "pattern": {"nbrows": 2, "rowp": [0, 1, 2], "cols": [0, 1]},
        "elements": [{"dofs": [0, 1, 2, 3],
                      "matrix": (2.0 * np.eye(4)).tolist()}],
        "bcs": [0],
        "output": str(tmp_path / "out.mtx"),
    }
    config = load_assembly_config(_write(tmp_path, data))
    mat = build_matrix(config)
    dense = mat.to_dense()
    np.testing.assert_array_equal(dense[0], [1, 0, 0, 0])
    np.testing.assert_array_equal(dense[1], [0, 2, 0, 0])
    assert config.output.endswith("out.mtx")

def test_rectangular_col_dofs(tmp_path):
    data = {
        "block_shape": [1, 2],
        "nbcols": 2,
        "pattern": {"nbrows": 1, "rowp": [0, 1], "cols": [1]},
        "elements": [{"dofs": [0], "col_dofs": [2, 3], "matrix": [[3.0, 4.0]]}],
    }
    mat = build_matrix(load_assembly_config(_write(tmp_path, data)))
    assert mat.shape == (1, 4)
    np.testing.assert_array_equal(mat.to_dense(), [[0, 0, 3, 4]])

def test_strict_config_raises(tmp_path, bar_config):
    from core.exceptions import PatternError
    bar_config["strict"] = True
    bar_config["elements"].append({"dofs": [0, 2], "matrix": [[1, 1], [1, 1]]})
    config = load_assembly_config(_write(tmp_path, bar_config))
    with pytest.raises(PatternError):
        build_matrix(config)

def test_non_strict_counts_drops(tmp_path, bar_config):
    bar_config["elements"].append({"dofs": [0, 2], "matrix": [[1, 1], [1, 1]]})
    mat = build_matrix(load_assembly_config(_write(tmp_path, bar_config)))
    assert mat.dropped == 2

@pytest.mark.parametrize("mutate", [
    lambda d: d.pop("block_shape"),
    lambda d: d.update(block_shape=[0, 1]),
    lambda d: d.update(dtype="int8"),
    lambda d: d.pop("connectivity"),
    lambda d: d.update(pattern={"nbrows": 1, "rowp": [0, 1], "cols": [0]}),
    lambda d: d.update(unknown_key=1),
    lambda d: d.update(bcs=[-1]),
])
def test_schema_errors(tmp_path, bar_config, mutate):
    mutate(bar_config)
    with pytest.raises(ConfigError):
        load_assembly_config(_write(tmp_path, bar_config))

def test_element_matrix_shape_mismatch(tmp_path, bar_config):
    bar_config["elements"][0]["matrix"] = [[1.0, 2.0, 3.0]]
    with pytest.raises(ConfigError, match="Element 0"):
        load_assembly_config(_write(tmp_path, bar_config))

def test_unreadable_file(tmp_path):
    with pytest.raises(ConfigError):
        load_assembly_config(tmp_path / "missing.yml")

def test_validate_config_rejects_non_mapping():
    with pytest.raises(ConfigError):
        validate_config([1, 2, 3])

def test_nbcols_rejected_with_connectivity(tmp_path, bar_config):
    bar_config["nbcols"] = 5
    with pytest.raises(ConfigError, match="nbcols"):
        load_assembly_config(_write(tmp_path, bar_config))

def test_singular_dofs_recorded(tmp_path):
    data = {
        "block_shape": [1, 1],
        "pattern": {"nbrows": 2, "rowp": [0, 1, 2], "cols": [1, 1]},
        "bcs": [0, 1],
    }
    mat = build_matrix(load_assembly_config(_write(tmp_path, data)))
    assert mat.singular_dofs == [0]
