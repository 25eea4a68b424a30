# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from typing import List, Set
import numpy as np
import pandas as pd
from LoadFlowEngine.basic_structures import Vec, ConvergenceReport, Logger
from LoadFlowEngine.enumerations import SolverStatus, OuterLoopStatus
from LoadFlowEngine.Network.network import LfNetwork


class ComponentResult:
    """
    Summary of the solve of one connected component
    """

    def __init__(self,
                 num: int,
                 bus_number: int,
                 branch_number: int,
                 slack_bus_id: str,
                 solver_status: SolverStatus,
                 outer_loop_status: OuterLoopStatus,
                 outer_loop_iterations: int,
                 iterations: int,
                 slack_bus_active_power_mismatch: float,
                 elapsed: float = 0.0,
                 message: str = ''):
        """

        :param num: component number
        :param bus_number: number of buses
        :param branch_number: number of branches
        :param slack_bus_id: idtag of the slack bus ('' if none)
        :param solver_status: SolverStatus
        :param outer_loop_status: OuterLoopStatus
        :param outer_loop_iterations: number of outer loop corrections
        :param iterations: Newton-Raphson iterations
        :param slack_bus_active_power_mismatch: (MW)
        :param elapsed: seconds
        :param message: failure description
        """
        self.num = num
        self.bus_number = bus_number
        self.branch_number = branch_number
        self.slack_bus_id = slack_bus_id
        self.solver_status = solver_status
        self.outer_loop_status = outer_loop_status
        self.outer_loop_iterations = outer_loop_iterations
        self.iterations = iterations
        self.slack_bus_active_power_mismatch = slack_bus_active_power_mismatch
        self.elapsed = elapsed
        self.message = message

    @property
    def converged(self) -> bool:
        return self.solver_status == SolverStatus.CONVERGED and self.outer_loop_status == OuterLoopStatus.STABLE

    def __str__(self):
        return f"Component {self.num}: {self.solver_status}"


class LoadFlowResults:
    """
    Load flow results in engineering units, one entry per bus and branch of the network
    """

    def __init__(self, n: int, m: int, bus_names: List[str], branch_names: List[str]):
        """

        :param n: number of buses
        :param m: number of branches
        :param bus_names: bus idtags
        :param branch_names: branch idtags
        """
        self.n = n
        self.m = m
        self.bus_names = np.array(bus_names, dtype=object)
        self.branch_names = np.array(branch_names, dtype=object)

        # bus
        self.nominal_v: Vec = np.zeros(n, dtype=float)
        self.voltage_module: Vec = np.full(n, np.nan, dtype=float)
        self.voltage_angle: Vec = np.full(n, np.nan, dtype=float)
        self.Pbus: Vec = np.full(n, np.nan, dtype=float)
        self.Qbus: Vec = np.full(n, np.nan, dtype=float)
        self.bus_types = np.array([''] * n, dtype=object)
        self.bus_component = np.full(n, -1, dtype=int)

        # branch
        self.Pf: Vec = np.full(m, np.nan, dtype=float)
        self.Qf: Vec = np.full(m, np.nan, dtype=float)
        self.Pt: Vec = np.full(m, np.nan, dtype=float)
        self.Qt: Vec = np.full(m, np.nan, dtype=float)

        self.components: List[ComponentResult] = list()

        self.convergence_reports: List[ConvergenceReport] = list()

        self.logger = Logger()

        self.elapsed = 0.0

    @property
    def converged(self) -> bool:
        """
        Did every solved component converge?
        """
        solved = [c for c in self.components if c.solver_status != SolverStatus.NO_CALCULATION]
        return len(solved) > 0 and all(c.converged for c in solved)

    @property
    def losses(self) -> Vec:
        """
        Branch losses (MW + j MVAr), nan where a side is open
        """
        return (self.Pf + self.Pt) + 1j * (self.Qf + self.Qt)

    def fill_from_network(self, network: LfNetwork, sb: float, unsolved: Set[str]):
        """
        Read the solved state of the network
        :param network: LfNetwork with the merged state of all the components
        :param sb: base power (MVA)
        :param unsolved: idtags of the buses of the components that were not solved
        """
        for i, bus in enumerate(network.buses):
            self.nominal_v[i] = bus.nominal_v
            self.bus_types[i] = str(bus.mode)
            if bus.idtag in unsolved:
                continue
            self.voltage_module[i] = bus.v
            self.voltage_angle[i] = bus.angle
            self.Pbus[i] = bus.calculated_p * sb
            self.Qbus[i] = bus.calculated_q * sb

        for k, branch in enumerate(network.branches):
            self.Pf[k] = branch.p1 * sb
            self.Qf[k] = branch.q1 * sb
            self.Pt[k] = branch.p2 * sb
            self.Qt[k] = branch.q2 * sb

    def get_bus_df(self) -> pd.DataFrame:
        """
        Get a DataFrame with the buses results
        :return: DataFrame
        """
        return pd.DataFrame(data={'Vm (kV)': self.voltage_module * self.nominal_v,
                                  'Vm (p.u.)': self.voltage_module,
                                  'Va (deg)': np.rad2deg(self.voltage_angle),
                                  'P (MW)': self.Pbus,
                                  'Q (MVAr)': self.Qbus,
                                  'Type': self.bus_types,
                                  'Component': self.bus_component},
                            index=self.bus_names)

    def get_branch_df(self) -> pd.DataFrame:
        """
        Get a DataFrame with the branches results
        :return: DataFrame
        """
        losses = self.losses
        return pd.DataFrame(data={'Pf (MW)': self.Pf,
                                  'Qf (MVAr)': self.Qf,
                                  'Pt (MW)': self.Pt,
                                  'Qt (MVAr)': self.Qt,
                                  'Ploss (MW)': losses.real,
                                  'Qloss (MVAr)': losses.imag},
                            index=self.branch_names)

    def get_components_df(self) -> pd.DataFrame:
        """
        Get a DataFrame with one row per connected component
        :return: DataFrame
        """
        data = {'Buses': [c.bus_number for c in self.components],
                'Branches': [c.branch_number for c in self.components],
                'Slack bus': [c.slack_bus_id for c in self.components],
                'Solver status': [str(c.solver_status) for c in self.components],
                'Outer loop status': [str(c.outer_loop_status) for c in self.components],
                'Outer loop iterations': [c.outer_loop_iterations for c in self.components],
                'Iterations': [c.iterations for c in self.components],
                'Slack mismatch (MW)': [c.slack_bus_active_power_mismatch for c in self.components],
                'Elapsed (s)': [c.elapsed for c in self.components],
                'Message': [c.message for c in self.components]}
        df = pd.DataFrame(data, index=[c.num for c in self.components])
        df.index.name = 'Component'
        return df
