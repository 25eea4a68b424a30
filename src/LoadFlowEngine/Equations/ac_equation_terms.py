# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from typing import TYPE_CHECKING
from LoadFlowEngine.basic_structures import Vec
from LoadFlowEngine.enumerations import BranchSide, FlowQuantity, VariableType
from LoadFlowEngine.Equations.equation_term import EquationTerm, state_value
from LoadFlowEngine.Equations.branch_flow_functions import CLOSED_BRANCH_FLOW_FUNCTIONS, open_side_flow
from LoadFlowEngine.Network.bus import LfBus
from LoadFlowEngine.Network.branch import LfBranch

if TYPE_CHECKING:
    from LoadFlowEngine.Equations.equation_system import EquationSystem


class ClosedBranchAcFlowTerm(EquationTerm):
    """
    Flow entering a closed branch at one side, tagged by {side, quantity}
    """

    def __init__(self, branch: LfBranch, side: BranchSide, quantity: FlowQuantity, equation_system: "EquationSystem"):
        """

        :param branch: LfBranch with both sides connected
        :param side: side where the flow is measured
        :param quantity: active or reactive
        :param equation_system: EquationSystem to get the variables from
        """
        self.bus1 = branch.get_bus1()
        self.bus2 = branch.get_bus2()
        v1 = equation_system.create_variable(self.bus1.num, VariableType.BUS_V)
        v2 = equation_system.create_variable(self.bus2.num, VariableType.BUS_V)
        ph1 = equation_system.create_variable(self.bus1.num, VariableType.BUS_PHI)
        ph2 = equation_system.create_variable(self.bus2.num, VariableType.BUS_PHI)
        EquationTerm.__init__(self, [v1, v2, ph1, ph2])

        self.branch = branch
        self.side = side
        self.quantity = quantity
        self._function = CLOSED_BRANCH_FLOW_FUNCTIONS[(side, quantity)]

        y = branch.y  # raises if the branch has no impedance
        if side == BranchSide.ONE:
            g_sh, b_sh = branch.g1, branch.b1
        else:
            g_sh, b_sh = branch.g2, branch.b2
        self._params = (y.real, y.imag, g_sh, b_sh, branch.r1, branch.r2, branch.a1, branch.a2)

    def update(self, x: Vec) -> None:
        v1 = state_value(self.variables[0], x, self.bus1)
        v2 = state_value(self.variables[1], x, self.bus2)
        ph1 = state_value(self.variables[2], x, self.bus1)
        ph2 = state_value(self.variables[3], x, self.bus2)
        self._value, dv1, dv2, dph1, dph2 = self._function(*self._params, v1, v2, ph1, ph2)
        self._derivatives = [dv1, dv2, dph1, dph2]


class OpenBranchAcFlowTerm(EquationTerm):
    """
    Flow entering a branch at its only connected side
    """

    def __init__(self, branch: LfBranch, side: BranchSide, quantity: FlowQuantity, equation_system: "EquationSystem"):
        """

        :param branch: LfBranch with only one side connected
        :param side: the connected side
        :param quantity: active or reactive
        :param equation_system: EquationSystem to get the variables from
        """
        self.bus = branch.get_bus(side)
        EquationTerm.__init__(self, [equation_system.create_variable(self.bus.num, VariableType.BUS_V)])

        self.branch = branch
        self.side = side
        self.quantity = quantity

        y = branch.y
        if side == BranchSide.ONE:
            y_sh = complex(branch.g1, branch.b1)
            y_open = complex(branch.g2, branch.b2)
            self._rho = branch.r1
        else:
            y_sh = complex(branch.g2, branch.b2)
            y_open = complex(branch.g1, branch.b1)
            self._rho = branch.r2

        # series admittance in series with the shunt of the open side
        if abs(y + y_open) > 0.0:
            y_eq = y_sh + y * y_open / (y + y_open)
        else:
            y_eq = y_sh
        self._g_eq = y_eq.real
        self._b_eq = y_eq.imag

    def update(self, x: Vec) -> None:
        v = state_value(self.variables[0], x, self.bus)
        p, dp, q, dq = open_side_flow(self._g_eq, self._b_eq, self._rho, v)
        if self.quantity == FlowQuantity.ACTIVE:
            self._value = p
            self._derivatives[0] = dp
        else:
            self._value = q
            self._derivatives[0] = dq


class BusShuntAcTerm(EquationTerm):
    """
    Power absorbed by the shunt admittance of a bus: P = g v², Q = -b v²
    """

    def __init__(self, bus: LfBus, quantity: FlowQuantity, equation_system: "EquationSystem"):
        """

        :param bus: LfBus
        :param quantity: active or reactive
        :param equation_system: EquationSystem to get the variables from
        """
        EquationTerm.__init__(self, [equation_system.create_variable(bus.num, VariableType.BUS_V)])
        self.bus = bus
        self.quantity = quantity
        self._coefficient = bus.shunt_g if quantity == FlowQuantity.ACTIVE else -bus.shunt_b

    def update(self, x: Vec) -> None:
        v = state_value(self.variables[0], x, self.bus)
        self._value = self._coefficient * v * v
        self._derivatives[0] = 2.0 * self._coefficient * v
