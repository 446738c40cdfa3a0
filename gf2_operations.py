"""
GF(2) linear algebra helpers shared by the cycle finder, the partial solver
and the matrix solver.

Rows are given as collections of column keys (factor base elements or large
primes). They are mapped to dense column indices, assembled through a SciPy
sparse COO matrix and eliminated as a dense uint8 NumPy matrix.

OPERATIONS:
1. Singleton removal: drop rows that hold a column no other row holds
2. Matrix assembly: sparse COO -> dense uint8, duplicate entries cancel mod 2
3. Null space: Gauss-Jordan elimination on [M | I], tracking row history
"""
from collections import Counter
from collections.abc import Iterable, Sequence

import numpy as np
from scipy.sparse import coo_matrix


# ============================================================================
# PART 1: SINGLETON REMOVAL
# ============================================================================

def remove_singletons(rows: Sequence[Iterable[int]]) -> list[int]:
    """
    Iteratively remove rows holding a column that occurs in no other row.

    Such a row can never be part of a null vector. Removing it may create new
    singletons, so the scan is repeated until nothing changes.

    Args:
        rows: Matrix rows as collections of column keys

    Returns:
        Indices of the surviving rows, in input order
    """
    rows = [tuple(row) for row in rows]
    column_counts = Counter(column for row in rows for column in row)
    alive = list(range(len(rows)))
    changed = True
    while changed:
        changed = False
        survivors = []
        for index in alive:
            row = rows[index]
            if any(column_counts[column] == 1 for column in row):
                for column in row:
                    column_counts[column] -= 1
                changed = True
            else:
                survivors.append(index)
        alive = survivors
    return alive


# ============================================================================
# PART 2: MATRIX ASSEMBLY (SciPy sparse -> dense uint8)
# ============================================================================

def build_column_index(rows: Iterable[Iterable[int]]) -> dict[int, int]:
    """Map every column key occurring in rows to a dense index, in ascending key order."""
    columns = sorted({column for row in rows for column in row})
    return {column: index for index, column in enumerate(columns)}


def build_gf2_matrix(rows: Sequence[Iterable[int]], column_index: dict[int, int]) -> np.ndarray:
    """
    Build a dense GF(2) matrix from sparse rows.

    Args:
        rows: Matrix rows as collections of column keys
        column_index: Column key -> column position

    Returns:
        uint8 matrix of shape (len(rows), len(column_index))
    """
    num_rows, num_columns = len(rows), len(column_index)
    if num_rows == 0 or num_columns == 0:
        return np.zeros((num_rows, num_columns), dtype=np.uint8)

    row_ids: list[int] = []
    column_ids: list[int] = []
    for row_id, row in enumerate(rows):
        for column in row:
            row_ids.append(row_id)
            column_ids.append(column_index[column])
    data = np.ones(len(row_ids), dtype=np.uint8)
    sparse = coo_matrix((data, (row_ids, column_ids)), shape=(num_rows, num_columns))
    # Duplicate entries are summed by toarray(); keep the parity only
    return (sparse.toarray() & 1).astype(np.uint8)


# ============================================================================
# PART 3: NULL SPACE (Gauss-Jordan with row history)
# ============================================================================

def find_null_vectors(matrix: np.ndarray) -> list[np.ndarray]:
    """
    Find a basis of the left null space of a GF(2) matrix.

    The matrix is augmented with an identity block so that every row records
    which original rows were xor-ed into it. Rows that end up without a pivot
    are zero in the matrix part; their history is a null vector.

    Args:
        matrix: uint8 matrix with entries 0/1

    Returns:
        List of index arrays; each lists original rows summing to zero mod 2
    """
    num_rows, num_columns = matrix.shape
    # Contiguous [M | I] block so row xor touches matrix and history in one pass
    work = np.ascontiguousarray(
        np.concatenate((matrix.astype(np.uint8) & 1, np.eye(num_rows, dtype=np.uint8)), axis=1)
    )
    is_pivot = np.zeros(num_rows, dtype=bool)

    for col in range(num_columns):
        column = work[:, col] == 1
        candidates = np.flatnonzero(column & ~is_pivot)
        if candidates.size == 0:
            continue

        pivot = candidates[0]
        is_pivot[pivot] = True

        # XOR: addition mod 2
        targets = np.flatnonzero(column)
        targets = targets[targets != pivot]
        if targets.size:
            work[targets] ^= work[pivot]

    return [np.flatnonzero(work[row, num_columns:]) for row in np.flatnonzero(~is_pivot)]
