# core/exceptions.py

class BSRError(Exception):
    """Base exception for block sparse matrix errors."""
    pass

class PatternError(BSRError):
    """Raised when a sparsity pattern or its metadata does not fit the matrix."""
    pass

class BlockIndexError(BSRError, IndexError):
    """Raised when a block row, column or dof lies outside the matrix."""
    pass

class MatrixIOError(BSRError):
    """Raised when a MatrixMarket file cannot be written or parsed."""
    pass

class ConfigError(BSRError):
    """Raised when an assembly configuration file is unreadable or invalid."""
    pass
