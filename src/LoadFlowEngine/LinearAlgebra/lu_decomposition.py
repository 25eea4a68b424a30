# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
import warnings
import numpy as np
from scipy.linalg import lu_factor, lu_solve, LinAlgWarning
from scipy.sparse import csc_matrix
from scipy.sparse.linalg import splu
from LoadFlowEngine.basic_structures import Vec, CscMat
from LoadFlowEngine.enumerations import LinearSolverType
from LoadFlowEngine.exceptions import SingularMatrixError, LinearSolverError, RectangularJacobianError


class LUDecomposition:
    """
    Factorized matrix able to solve A x = b and A^T x = b
    """

    def solve(self, b: Vec) -> Vec:
        raise NotImplementedError()

    def solve_transposed(self, b: Vec) -> Vec:
        raise NotImplementedError()


class DenseLUDecomposition(LUDecomposition):
    """
    LAPACK getrf / getrs through scipy, for small systems and tests
    """

    def __init__(self, A: CscMat):
        """

        :param A: square sparse matrix
        """
        dense = A.toarray()
        if not np.all(np.isfinite(dense)):
            raise LinearSolverError("The matrix has non finite values")

        with warnings.catch_warnings():
            warnings.simplefilter("ignore", LinAlgWarning)
            self._lu, self._piv = lu_factor(dense, check_finite=False)

        if dense.shape[0] > 0 and np.any(np.diag(self._lu) == 0.0):
            raise SingularMatrixError()

    def solve(self, b: Vec) -> Vec:
        return lu_solve((self._lu, self._piv), b, trans=0, check_finite=False)

    def solve_transposed(self, b: Vec) -> Vec:
        return lu_solve((self._lu, self._piv), b, trans=1, check_finite=False)


class SparseLUDecomposition(LUDecomposition):
    """
    SuperLU through scipy
    """

    def __init__(self, A: CscMat):
        """

        :param A: square sparse matrix
        """
        if not np.all(np.isfinite(A.data)):
            raise LinearSolverError("The matrix has non finite values")
        try:
            self._lu = splu(csc_matrix(A))
        except RuntimeError as e:
            # SuperLU reports "Factor is exactly singular"
            raise SingularMatrixError(str(e))

    def solve(self, b: Vec) -> Vec:
        return self._lu.solve(b)

    def solve_transposed(self, b: Vec) -> Vec:
        return self._lu.solve(b, trans='T')


def lu_decompose(A: CscMat, solver_type: LinearSolverType = LinearSolverType.SPARSE) -> LUDecomposition:
    """
    Factorize a square matrix with the chosen back-end
    :param A: square sparse matrix
    :param solver_type: LinearSolverType
    :return: LUDecomposition
    """
    if A.shape[0] != A.shape[1]:
        raise RectangularJacobianError(A.shape[0], A.shape[1])

    if solver_type == LinearSolverType.DENSE:
        return DenseLUDecomposition(A)

    elif solver_type == LinearSolverType.SPARSE:
        return SparseLUDecomposition(A)

    else:
        raise ValueError(f"Unknown linear solver {solver_type}")
