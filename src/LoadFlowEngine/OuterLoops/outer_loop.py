# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from typing import Any, Dict, Union
from LoadFlowEngine.basic_structures import Logger
from LoadFlowEngine.enumerations import OuterLoopStatus
from LoadFlowEngine.Network.network import LfNetwork
from LoadFlowEngine.Equations.equation_system import EquationSystem
from LoadFlowEngine.Solvers.newton_raphson import NewtonRaphsonResult


class OuterLoopContext:
    """
    State shared between the engine and one outer loop during a solve
    """

    def __init__(self, network: LfNetwork, equation_system: EquationSystem, logger: Logger):
        """

        :param network: LfNetwork being solved
        :param equation_system: its EquationSystem
        :param logger: Logger
        """
        self.network = network

        self.equation_system = equation_system

        self.logger = logger

        # result of the last Newton-Raphson run
        self.last_newton_raphson_result: Union[NewtonRaphsonResult, None] = None

        # number of unstable checks of all the outer loops so far
        self.outer_loop_total_iterations = 0

        # private data of the outer loop
        self.data: Dict[str, Any] = dict()


class OuterLoop:
    """
    Discrete control wrapped around the Newton-Raphson solve.

    check() looks at the last solution. When a correction is needed it changes
    the network or the equation system and returns UNSTABLE, so that the engine
    solves again. An outer loop unable to make progress raises an OuterLoopError.
    """

    name = 'OuterLoop'

    def initialize(self, context: OuterLoopContext) -> None:
        """
        Called once before the first check
        :param context: OuterLoopContext
        """
        pass

    def check(self, context: OuterLoopContext) -> OuterLoopStatus:
        """
        Check the last solution and correct it if needed
        :param context: OuterLoopContext
        :return: OuterLoopStatus.STABLE or OuterLoopStatus.UNSTABLE
        """
        raise NotImplementedError()

    def cleanup(self, context: OuterLoopContext) -> None:
        """
        Called once after the last check
        :param context: OuterLoopContext
        """
        pass

    def __str__(self):
        return self.name
