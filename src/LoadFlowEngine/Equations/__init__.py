# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from LoadFlowEngine.Equations.variable import Variable
from LoadFlowEngine.Equations.equation import Equation
from LoadFlowEngine.Equations.equation_term import EquationTerm, VariableEquationTerm
from LoadFlowEngine.Equations.ac_equation_terms import ClosedBranchAcFlowTerm, OpenBranchAcFlowTerm, BusShuntAcTerm
from LoadFlowEngine.Equations.dc_equation_terms import ClosedBranchDcFlowTerm
from LoadFlowEngine.Equations.equation_system import (EquationSystem, EquationSystemListener,
                                                      compute_rows, compute_columns)
from LoadFlowEngine.Equations.ac_equation_system import create_ac_equation_system
from LoadFlowEngine.Equations.dc_equation_system import create_dc_equation_system
