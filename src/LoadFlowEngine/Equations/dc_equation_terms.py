# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from typing import TYPE_CHECKING
from LoadFlowEngine.basic_structures import Vec
from LoadFlowEngine.enumerations import BranchSide, VariableType
from LoadFlowEngine.exceptions import NonImpedantBranchError
from LoadFlowEngine.Equations.equation_term import EquationTerm, state_value
from LoadFlowEngine.Equations.branch_flow_functions import dc_flow
from LoadFlowEngine.Network.branch import LfBranch

if TYPE_CHECKING:
    from LoadFlowEngine.Equations.equation_system import EquationSystem


class ClosedBranchDcFlowTerm(EquationTerm):
    """
    Linearised active power entering a closed branch: P1 = -P2 = r1 r2 (φ1 - φ2 + a1 - a2) / x
    """

    def __init__(self, branch: LfBranch, side: BranchSide, equation_system: "EquationSystem"):
        """

        :param branch: LfBranch with both sides connected
        :param side: side where the flow is measured
        :param equation_system: EquationSystem to get the variables from
        """
        if branch.x == 0.0:
            raise NonImpedantBranchError(branch.idtag, message="Branch without reactance in a DC flow term")

        self.bus1 = branch.get_bus1()
        self.bus2 = branch.get_bus2()
        ph1 = equation_system.create_variable(self.bus1.num, VariableType.BUS_PHI)
        ph2 = equation_system.create_variable(self.bus2.num, VariableType.BUS_PHI)
        EquationTerm.__init__(self, [ph1, ph2])

        self.branch = branch
        self.side = side
        self._bdc = branch.r1 * branch.r2 / branch.x
        self._sign = 1.0 if side == BranchSide.ONE else -1.0

    def update(self, x: Vec) -> None:
        ph1 = state_value(self.variables[0], x, self.bus1)
        ph2 = state_value(self.variables[1], x, self.bus2)
        p, dph1, dph2 = dc_flow(self._bdc, self.branch.a1, self.branch.a2, ph1, ph2)
        self._value = self._sign * p
        self._derivatives = [self._sign * dph1, self._sign * dph2]
