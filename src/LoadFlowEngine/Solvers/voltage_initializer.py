# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

import numpy as np
from LoadFlowEngine.basic_structures import Logger
from LoadFlowEngine.enumerations import VariableType
from LoadFlowEngine.Network.bus import LfBus
from LoadFlowEngine.Network.branch import LfBranch
from LoadFlowEngine.Network.network import LfNetwork


class VoltageInitializer:
    """
    Provides the starting voltage module and angle of every bus
    """

    @property
    def name(self) -> str:
        return self.__class__.__name__

    def prepare(self, network: LfNetwork, logger: Logger = None) -> None:
        """
        Compute whatever is needed before the magnitudes and angles are queried
        :param network: LfNetwork
        :param logger: Logger
        """
        pass

    def get_magnitude(self, bus: LfBus) -> float:
        raise NotImplementedError()

    def get_angle(self, bus: LfBus) -> float:
        raise NotImplementedError()

    def get_non_impedant_flow(self, branch: LfBranch, tpe: VariableType) -> float:
        """
        Starting value of the dummy flow variable of a non impedant branch
        :param branch: LfBranch
        :param tpe: DUMMY_P or DUMMY_Q
        """
        return 0.0


class UniformValueVoltageInitializer(VoltageInitializer):
    """
    Flat start: 1 p.u. and 0 rad everywhere
    """

    def get_magnitude(self, bus: LfBus) -> float:
        return 1.0

    def get_angle(self, bus: LfBus) -> float:
        return 0.0


class PreviousValueVoltageInitializer(VoltageInitializer):
    """
    Warm start from the voltages stored in the buses and the flows of the non impedant branches
    """

    def get_magnitude(self, bus: LfBus) -> float:
        return bus.v

    def get_angle(self, bus: LfBus) -> float:
        return bus.angle

    def get_non_impedant_flow(self, branch: LfBranch, tpe: VariableType) -> float:
        value = branch.p1 if tpe == VariableType.DUMMY_P else branch.q1
        return 0.0 if np.isnan(value) else value
