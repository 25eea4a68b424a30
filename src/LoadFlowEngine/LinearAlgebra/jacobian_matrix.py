# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from typing import List, Tuple, Union
import numpy as np
from scipy.sparse import csc_matrix
from LoadFlowEngine.basic_structures import Vec, CscMat, IntVec
from LoadFlowEngine.enumerations import EquationEventType, EquationTermEventType, LinearSolverType
from LoadFlowEngine.exceptions import RectangularJacobianError
from LoadFlowEngine.Equations.equation import Equation
from LoadFlowEngine.Equations.equation_term import EquationTerm
from LoadFlowEngine.Equations.variable import Variable
from LoadFlowEngine.Equations.equation_system import EquationSystem, EquationSystemListener
from LoadFlowEngine.LinearAlgebra.lu_decomposition import LUDecomposition, lu_decompose


class JacobianMatrix(EquationSystemListener):
    """
    Jacobian of the active equations with respect to the referenced variables.

    The sparsity pattern is rebuilt when the equation system structure changes,
    the values when the state changes. The LU decomposition follows the values.
    """

    def __init__(self, equation_system: EquationSystem, solver_type: LinearSolverType = LinearSolverType.SPARSE):
        """

        :param equation_system: EquationSystem
        :param solver_type: linear algebra back-end
        """
        self.equation_system = equation_system

        self.solver_type = solver_type

        self._entries: List[Tuple[EquationTerm, Variable]] = list()

        self._rows: IntVec = np.zeros(0, dtype=int)

        self._cols: IntVec = np.zeros(0, dtype=int)

        self._matrix: Union[CscMat, None] = None

        self._lu: Union[LUDecomposition, None] = None

        self._structure_valid = False

        equation_system.add_listener(self)

    def on_equation_change(self, equation: Equation, event_type: EquationEventType) -> None:
        self._invalidate_structure()

    def on_equation_term_change(self, term: EquationTerm, event_type: EquationTermEventType) -> None:
        self._invalidate_structure()

    def on_state_update(self) -> None:
        self._invalidate_values()

    def _invalidate_structure(self):
        self._structure_valid = False
        self._matrix = None
        self._lu = None

    def _invalidate_values(self):
        self._matrix = None
        self._lu = None

    def _build_structure(self):
        """
        One entry per (term, variable) pair of the active equations with a column.
        Entries falling in the same cell are summed by the sparse constructor.
        """
        entries = list()
        rows = list()
        cols = list()
        for eq in self.equation_system.sorted_equations_to_solve:
            for term in eq.terms:
                for var in term.variables:
                    if var.column >= 0:
                        entries.append((term, var))
                        rows.append(eq.row)
                        cols.append(var.column)

        self._entries = entries
        self._rows = np.array(rows, dtype=int)
        self._cols = np.array(cols, dtype=int)
        self._structure_valid = True

    @property
    def shape(self) -> Tuple[int, int]:
        return self.equation_system.row_count, self.equation_system.column_count

    @property
    def matrix(self) -> CscMat:
        """
        Get the matrix, building whatever is out of date
        :return: CSC matrix
        """
        if not self._structure_valid:
            self._build_structure()

        if self._matrix is None:
            data = np.array([term.der(var) for term, var in self._entries], dtype=float)
            self._matrix = csc_matrix((data, (self._rows, self._cols)), shape=self.shape)

        return self._matrix

    def decompose(self) -> LUDecomposition:
        """
        LU decomposition of the current matrix
        :return: LUDecomposition
        raises SingularMatrixError / LinearSolverError
        """
        if self._lu is None:
            n_rows, n_cols = self.shape
            if n_rows != n_cols:
                raise RectangularJacobianError(n_rows, n_cols)
            self._lu = lu_decompose(self.matrix, self.solver_type)
        return self._lu

    def solve(self, b: Vec) -> Vec:
        """
        Solve J x = b
        :param b: right hand side
        :return: x
        """
        return self.decompose().solve(b)

    def solve_transposed(self, b: Vec) -> Vec:
        """
        Solve J^T x = b with the same decomposition
        :param b: right hand side
        :return: x
        """
        return self.decompose().solve_transposed(b)

    def cleanup(self):
        """
        Stop listening to the equation system
        """
        self.equation_system.remove_listener(self)
        self._invalidate_structure()
