# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from typing import List, Tuple, TYPE_CHECKING
from LoadFlowEngine.enumerations import EquationType, EquationEventType
from LoadFlowEngine.Equations.equation_term import EquationTerm

if TYPE_CHECKING:
    from LoadFlowEngine.Equations.equation_system import EquationSystem


class Equation:
    """
    Scalar equation of the system, identified by (element number, type).
    The row is only assigned while the equation is active.
    """

    def __init__(self, num: int, tpe: EquationType, equation_system: "EquationSystem"):
        """

        :param num: bus or branch number
        :param tpe: EquationType
        :param equation_system: system that owns the equation
        """
        self.num = num
        self.type = tpe
        self.row = -1
        self.terms: List[EquationTerm] = list()
        self._active = True
        self._equation_system = equation_system

    @property
    def key(self) -> Tuple[int, int]:
        """
        Sorting key: type first, then element number
        """
        return self.type.value, self.num

    @property
    def active(self) -> bool:
        return self._active

    @active.setter
    def active(self, value: bool):
        if value != self._active:
            self._active = value
            self._equation_system.notify_equation_change(
                self, EquationEventType.EQUATION_ACTIVATED if value else EquationEventType.EQUATION_DEACTIVATED)

    def add_term(self, term: EquationTerm) -> "Equation":
        """
        Append a term
        :param term: EquationTerm
        :return: self, to chain calls
        """
        term.equation = self
        self.terms.append(term)
        self._equation_system.notify_term_added(term)
        return self

    def eval(self) -> float:
        """
        Sum of the cached term values
        """
        return sum(term.eval() for term in self.terms)

    def __str__(self):
        return f"Equation(num={self.num}, type={self.type}, row={self.row}, active={self._active})"

    def __repr__(self):
        return str(self)
