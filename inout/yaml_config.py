# inout/yaml_config.py
"""
Load and validate YAML assembly problems: a block pattern (explicit CSR or
element connectivity), element contributions, Dirichlet dofs and an optional
MatrixMarket output path.
"""
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import numpy as np
import yaml
from cerberus import Validator

from core.exceptions import ConfigError
from core.sparse.bsr import BSRMat
from utils.logging_config import get_logger

logger = get_logger(__name__)

_INDEX_LIST = {'type': 'list', 'schema': {'type': 'integer', 'min': 0}}

ASSEMBLY_SCHEMA: Dict[str, Any] = {
    'block_shape': {
        'type': 'list',
        'required': True,
        'minlength': 2,
        'maxlength': 2,
        'schema': {'type': 'integer', 'min': 1},
    },
    'dtype': {
        'type': 'string',
        'required': False,
        'default': 'float64',
        'allowed': ['float32', 'float64', 'complex64', 'complex128'],
    },
    # Explicit patterns only; a connectivity pattern is always square
    'nbcols': {'type': 'integer', 'required': False, 'min': 0, 'excludes': 'connectivity'},
    'strict': {'type': 'boolean', 'required': False, 'default': False},
    'pattern': {
        'type': 'dict',
        'required': False,
        'excludes': 'connectivity',
        'schema': {
            'nbrows': {'type': 'integer', 'required': True, 'min': 0},
            'rowp': dict(_INDEX_LIST, required=True),
            'cols': dict(_INDEX_LIST, required=True),
        },
    },
    'connectivity': {
        'type': 'dict',
        'required': False,
        'excludes': 'pattern',
        'schema': {
            'nnodes': {'type': 'integer', 'required': True, 'min': 0},
            'elements': {'type': 'list', 'required': True, 'schema': _INDEX_LIST},
        },
    },
    'elements': {
        'type': 'list',
        'required': False,
        'default': [],
        'schema': {
            'type': 'dict',
            'schema': {
                'dofs': dict(_INDEX_LIST, required=True),
                'col_dofs': dict(_INDEX_LIST, required=False),
                'matrix': {
                    'type': 'list',
                    'required': True,
                    'schema': {'type': 'list', 'schema': {'type': 'number'}},
                },
            },
        },
    },
    'bcs': dict(_INDEX_LIST, required=False, default=[]),
    'output': {'type': 'string', 'required': False, 'nullable': True},
}


@dataclass
class ElementContribution:
    dofs: List[int]
    matrix: np.ndarray
    col_dofs: Optional[List[int]] = None

    @property
    def columns(self) -> List[int]:
        return self.dofs if self.col_dofs is None else self.col_dofs


@dataclass
class AssemblyConfig:
    block_shape: List[int]
    dtype: str = 'float64'
    nbcols: Optional[int] = None
    strict: bool = False
    pattern: Optional[Dict[str, Any]] = None
    connectivity: Optional[Dict[str, Any]] = None
    elements: List[ElementContribution] = field(default_factory=list)
    bcs: List[int] = field(default_factory=list)
    output: Optional[str] = None


def validate_config(data: Any) -> Dict[str, Any]:
    """
    Validate raw YAML data against ASSEMBLY_SCHEMA and return the normalized document.

    Raises:
        ConfigError: On schema errors or when neither/both pattern sources are given.
    """
    if not isinstance(data, dict):
        raise ConfigError("Assembly configuration must be a mapping")
    validator = Validator(ASSEMBLY_SCHEMA, allow_unknown=False)
    if not validator.validate(data):
        logger.error("YAML schema validation errors: %s", validator.errors)
        raise ConfigError(f"Assembly schema validation errors: {validator.errors}")
    doc = validator.document
    if ('pattern' in doc) == ('connectivity' in doc):
        raise ConfigError("Exactly one of 'pattern' or 'connectivity' must be given")
    return doc


def load_assembly_config(path: Union[str, Path]) -> AssemblyConfig:
    """
    Load an assembly YAML file, validate its schema, and return an AssemblyConfig.

    Raises:
        ConfigError: If the file cannot be read or fails validation.
    """
    path = Path(path)
    try:
        raw = yaml.safe_load(path.read_text())
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Failed to read assembly YAML '{path}': {e}") from e

    doc = validate_config(raw)

    elements: List[ElementContribution] = []
    for k, entry in enumerate(doc['elements']):
        matrix = np.asarray(entry['matrix'], dtype=doc['dtype'])
        col_dofs = entry.get('col_dofs')
        n_cols = len(entry['dofs'] if col_dofs is None else col_dofs)
        if matrix.shape != (len(entry['dofs']), n_cols):
            raise ConfigError(
                f"Element {k}: matrix shape {matrix.shape} does not match "
                f"{len(entry['dofs'])} x {n_cols} dofs")
        elements.append(ElementContribution(entry['dofs'], matrix, col_dofs))

    return AssemblyConfig(
        block_shape=doc['block_shape'],
        dtype=doc['dtype'],
        nbcols=doc.get('nbcols'),
        strict=doc['strict'],
        pattern=doc.get('pattern'),
        connectivity=doc.get('connectivity'),
        elements=elements,
        bcs=doc['bcs'],
        output=doc.get('output'),
    )


def build_matrix(config: AssemblyConfig) -> BSRMat:
    """
    Construct the matrix described by config, zero it, assemble every
    element contribution and eliminate the Dirichlet dofs.
    Dofs left singular by the elimination are kept in mat.singular_dofs.
    """
    block_shape = tuple(config.block_shape)
    if config.pattern is not None:
        p = config.pattern
        nbrows = p['nbrows']
        nbcols = nbrows if config.nbcols is None else config.nbcols
        mat = BSRMat(nbrows, nbcols, len(p['cols']), p['rowp'], p['cols'],
                     block_shape=block_shape, dtype=config.dtype, strict=config.strict)
    else:
        c = config.connectivity
        mat = BSRMat.from_connectivity(c['nnodes'], c['elements'], block_shape=block_shape,
                                       dtype=config.dtype, strict=config.strict)

    mat.zero()
    for elem in config.elements:
        mat.add_values(elem.dofs, elem.columns, elem.matrix)
    if config.bcs:
        mat.zero_rows(config.bcs)
    return mat
