#!/usr/bin/env python
import argparse
import logging
import sys
from typing import List, Optional

import numpy as np

from core.exceptions import BSRError
from inout.yaml_config import load_assembly_config, build_matrix
from utils.logging_config import setup_logging, get_logger

logger = get_logger(__name__)

def main(argv: Optional[List[str]] = None) -> int:
    """
    Assemble a block sparse matrix from a YAML configuration file.

    Command-line arguments:
      --config: Path to the YAML assembly file.
      --output: MatrixMarket target; overrides 'output' from the config.
      --dense: Print the dense matrix.
      --verbose: Enable DEBUG logging.
      --log-file: Also write log records to this file.
    """
    parser = argparse.ArgumentParser(description="Assemble a block sparse (BSR) matrix.")
    parser.add_argument("--config", required=True, help="Path to the YAML assembly file.")
    parser.add_argument("--output", help="MatrixMarket output path (e.g., matrix.mtx)", default=None)
    parser.add_argument("--dense", action="store_true", help="Print the dense matrix.")
    parser.add_argument("--verbose", action="store_true", help="Enable DEBUG logging.")
    parser.add_argument("--log-file", help="Optional log file.", default=None)
    args = parser.parse_args(argv)

    setup_logging(level=logging.DEBUG if args.verbose else logging.INFO, log_file=args.log_file)
    logger.debug("Verbose logging enabled.")

    try:
        config = load_assembly_config(args.config)
        mat = build_matrix(config)
        output = args.output or config.output
        if output:
            mat.write_mtx(output)
            logger.info("Matrix written to %s", output)
    except BSRError as e:
        logger.error("Assembly failed: %s", e)
        return 1

    logger.info("Assembly completed: shape=%s, blocks=%d, block_shape=%s",
                mat.shape, mat.nnz, mat.block_shape)
    if mat.dropped:
        logger.warning("%d contributions fell outside the sparsity pattern and were dropped.",
                       mat.dropped)
    if mat.singular_dofs:
        logger.warning("Constrained dofs %s have no diagonal block; their rows are singular.",
                       mat.singular_dofs)

    if args.dense:
        with np.printoptions(precision=6, suppress=True, linewidth=120):
            print(mat.to_dense())
    return 0

if __name__ == "__main__":
    sys.exit(main())
