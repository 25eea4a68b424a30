# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

import time
from typing import Dict, Union
import numpy as np
from LoadFlowEngine.basic_structures import Logger
from LoadFlowEngine.enumerations import SolverStatus, LinearSolverType
from LoadFlowEngine.exceptions import LinearSolverError, SlackError
from LoadFlowEngine.Network.bus import LfBus
from LoadFlowEngine.Network.network import LfNetwork
from LoadFlowEngine.Network.slack_bus_selector import SlackBusSelector
from LoadFlowEngine.Equations.dc_equation_system import create_dc_equation_system
from LoadFlowEngine.LinearAlgebra.jacobian_matrix import JacobianMatrix
from LoadFlowEngine.Solvers.voltage_initializer import VoltageInitializer, UniformValueVoltageInitializer
from LoadFlowEngine.Solvers.stopping_criteria import compute_norm


class DcLoadFlowParameters:
    """
    Settings of the DC load flow
    """

    def __init__(self,
                 slack_bus_selector: Union[SlackBusSelector, None] = None,
                 linear_solver_type: LinearSolverType = LinearSolverType.SPARSE):
        """

        :param slack_bus_selector: SlackBusSelector, None to keep the slack already selected
        :param linear_solver_type: LinearSolverType
        """
        self.slack_bus_selector = slack_bus_selector
        self.linear_solver_type = linear_solver_type


class DcLoadFlowResult:
    """
    Outcome of a DC load flow
    """

    def __init__(self, network: LfNetwork, status: SolverStatus, slack_bus_active_power_mismatch: float,
                 error: float, elapsed: float):
        """

        :param network: solved LfNetwork
        :param status: SolverStatus.CONVERGED or SolverStatus.SOLVER_FAILED
        :param slack_bus_active_power_mismatch: (MW)
        :param error: mismatch norm after the solve (p.u.)
        :param elapsed: seconds
        """
        self.network = network
        self.status = status
        self.slack_bus_active_power_mismatch = slack_bus_active_power_mismatch
        self.error = error
        self.elapsed = elapsed

    @property
    def converged(self) -> bool:
        return self.status == SolverStatus.CONVERGED

    def __str__(self):
        return f"DcLoadFlowResult(status={self.status})"


class DcLoadFlowEngine:
    """
    Linear load flow: voltage modules at 1 p.u., only the angles are computed
    and the flows are p1 = -p2 = (φ1 - φ2 + a1 - a2) / x.
    The system is linear so a single LU solve is enough.
    """

    def __init__(self, network: LfNetwork,
                 parameters: Union[DcLoadFlowParameters, None] = None,
                 logger: Union[Logger, None] = None):
        """

        :param network: LfNetwork
        :param parameters: DcLoadFlowParameters
        :param logger: Logger
        """
        self.network = network
        self.parameters = parameters if parameters is not None else DcLoadFlowParameters()
        self.logger = logger if logger is not None else Logger()

    def run(self) -> DcLoadFlowResult:
        """
        Run the DC load flow
        :return: DcLoadFlowResult
        """
        start = time.time()

        if self.parameters.slack_bus_selector is not None:
            self.network.select_slack_bus(self.parameters.slack_bus_selector)

        es = create_dc_equation_system(self.network, self.logger)
        j = JacobianMatrix(es, self.parameters.linear_solver_type)

        try:
            x = es.create_state_vector(UniformValueVoltageInitializer())
            fx = es.get_mismatch_vector(x)

            try:
                dx = j.solve(fx)
            except LinearSolverError as e:
                self.logger.add_error(f"DC load flow linear solve failed: {e.message}", device=self.network.name)
                return DcLoadFlowResult(network=self.network,
                                        status=SolverStatus.SOLVER_FAILED,
                                        slack_bus_active_power_mismatch=np.nan,
                                        error=compute_norm(fx),
                                        elapsed=time.time() - start)

            x = x - dx
            fx = es.get_mismatch_vector(x)
            es.update_network(x)

            slack = self.network.get_slack_bus()
            slack_mismatch = slack.calculated_p - (slack.generation_target_p - slack.load_target_p)

        finally:
            j.cleanup()

        return DcLoadFlowResult(network=self.network,
                                status=SolverStatus.CONVERGED,
                                slack_bus_active_power_mismatch=slack_mismatch * self.network.sb,
                                error=compute_norm(fx),
                                elapsed=time.time() - start)


class DcValueVoltageInitializer(VoltageInitializer):
    """
    Angles from a DC load flow, voltage modules at 1 p.u.
    The DC load flow runs on a copy of the network.
    """

    def __init__(self, linear_solver_type: LinearSolverType = LinearSolverType.SPARSE):
        """

        :param linear_solver_type: LinearSolverType of the DC solve
        """
        self.linear_solver_type = linear_solver_type
        self.angles: Dict[str, float] = dict()

    def prepare(self, network: LfNetwork, logger: Logger = None) -> None:
        if logger is None:
            logger = Logger()

        self.angles = dict()
        dc_network = network.copy()
        try:
            result = DcLoadFlowEngine(dc_network,
                                      DcLoadFlowParameters(linear_solver_type=self.linear_solver_type),
                                      logger).run()
        except SlackError as e:
            logger.add_warning(f"DC initialization not possible, flat start used: {e.message}",
                               device=network.name)
            return

        if result.converged:
            self.angles = {bus.idtag: bus.angle for bus in dc_network.buses}
        else:
            logger.add_warning("DC initialization failed, flat start used", device=network.name)

    def get_magnitude(self, bus: LfBus) -> float:
        return 1.0

    def get_angle(self, bus: LfBus) -> float:
        return self.angles.get(bus.idtag, 0.0)
