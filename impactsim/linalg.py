from __future__ import annotations

import numpy as np
import scipy.linalg

# Relative singular-value cutoff for rank determination. The saddle-point
# systems built by the impacter are rank deficient whenever the active ball
# constraints are redundant (e.g. four coplanar points).
QTZ_RCOND = 1e-10


def solve_qtz(A: np.ndarray, b: np.ndarray, rcond: float = QTZ_RCOND) -> np.ndarray:
    """Minimum-norm least-squares solution of A x = b.

    Uses LAPACK's complete orthogonal factorization (xGELSY: QR with column
    pivoting followed by an RZ reduction), so a singular or redundant
    constraint Jacobian still yields a usable answer.
    """
    A = np.asarray(A, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    x, _, _, _ = scipy.linalg.lstsq(A, b, cond=rcond, lapack_driver="gelsy")
    return np.asarray(x, dtype=np.float64)
