# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from typing import List, Union, TYPE_CHECKING
from LoadFlowEngine.basic_structures import Vec
from LoadFlowEngine.enumerations import VariableType
from LoadFlowEngine.exceptions import UnknownVariableError
from LoadFlowEngine.Equations.variable import Variable

if TYPE_CHECKING:
    from LoadFlowEngine.Equations.equation import Equation
    from LoadFlowEngine.Network.bus import LfBus


class EquationTerm:
    """
    Additive part of an equation.
    update(x) caches the value and the derivatives for the given state, eval() and der() read the cache.
    """

    def __init__(self, variables: List[Variable]):
        """

        :param variables: variables the term depends on
        """
        self.variables: List[Variable] = variables

        self.equation: Union["Equation", None] = None

        self._value = 0.0

        self._derivatives = [0.0] * len(variables)

    def update(self, x: Vec) -> None:
        raise NotImplementedError()

    def eval(self) -> float:
        return self._value

    def der(self, variable: Variable) -> float:
        """
        Partial derivative of the term with respect to one of its variables
        :param variable: Variable
        :return: derivative value
        """
        for i, var in enumerate(self.variables):
            if var == variable:
                return self._derivatives[i]

        raise UnknownVariableError(variable)

    def __str__(self):
        return f"{self.__class__.__name__}({', '.join(str(v.type) + str(v.num) for v in self.variables)})"


def state_value(variable: Variable, x: Vec, bus: Union["LfBus", None] = None) -> float:
    """
    Value of a variable in the state vector.
    A variable without column is not solved for, so its value is taken from the bus.
    :param variable: Variable
    :param x: state vector
    :param bus: bus of the variable (only for bus variables)
    :return: value
    """
    if variable.column >= 0:
        return x[variable.column]

    if bus is not None:
        if variable.type == VariableType.BUS_V:
            return bus.v
        elif variable.type == VariableType.BUS_PHI:
            return bus.angle

    return 0.0


class VariableEquationTerm(EquationTerm):
    """
    coefficient * variable
    """

    def __init__(self, variable: Variable, coefficient: float = 1.0, bus: Union["LfBus", None] = None):
        """

        :param variable: Variable
        :param coefficient: constant multiplier
        :param bus: bus of the variable, used when the variable has no column
        """
        EquationTerm.__init__(self, [variable])
        self.coefficient = coefficient
        self.bus = bus
        self._derivatives[0] = coefficient

    def update(self, x: Vec) -> None:
        self._value = self.coefficient * state_value(self.variables[0], x, self.bus)
