# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

import time
from multiprocessing.pool import ThreadPool
from typing import List, Tuple, Union
import numpy as np
from LoadFlowEngine.basic_structures import Logger, ConvergenceReport
from LoadFlowEngine.enumerations import SolverType, SolverStatus, OuterLoopStatus, SlackBusSelectionMode
from LoadFlowEngine.exceptions import SlackError
from LoadFlowEngine.Network.network import LfNetwork
from LoadFlowEngine.Network.slack_bus_selector import SlackBusSelector, get_slack_bus_selector
from LoadFlowEngine.Solvers.load_flow_observer import AcLoadFlowObserver
from LoadFlowEngine.Simulations.load_flow_options import LoadFlowOptions
from LoadFlowEngine.Simulations.ac_load_flow import AcLoadFlowEngine, AcLoadFlowParameters
from LoadFlowEngine.Simulations.dc_load_flow import DcLoadFlowEngine, DcLoadFlowParameters
from LoadFlowEngine.Simulations.load_flow_results import LoadFlowResults, ComponentResult


class LoadFlowDriver:
    name = 'Load flow'

    """
    Solve every connected component of a network and gather the results
    """

    def __init__(self,
                 network: LfNetwork,
                 options: Union[LoadFlowOptions, None] = None,
                 observer: Union[AcLoadFlowObserver, None] = None,
                 logger: Union[Logger, None] = None):
        """
        LoadFlowDriver class constructor
        :param network: LfNetwork, it receives the solved state
        :param options: LoadFlowOptions
        :param observer: AcLoadFlowObserver shared by the workers (it must be thread safe when n_workers > 1)
        :param logger: Logger
        """
        self.network = network

        self.options: LoadFlowOptions = LoadFlowOptions() if options is None else options

        self.observer = observer

        self.logger = Logger() if logger is None else logger

        self.results = LoadFlowResults(n=network.bus_number,
                                       m=network.branch_number,
                                       bus_names=[bus.idtag for bus in network.buses],
                                       branch_names=[br.idtag for br in network.branches])

    def get_slack_bus_selector(self, component: LfNetwork) -> SlackBusSelector:
        """
        Slack bus selector of a component.
        The name selection only applies to the component holding that bus, the rest use the most meshed bus.
        :param component: LfNetwork
        :return: SlackBusSelector
        """
        if (self.options.slack_bus_selection_mode == SlackBusSelectionMode.NAME
                and component.get_bus_by_id(self.options.slack_bus_id) is None):
            return get_slack_bus_selector(SlackBusSelectionMode.MOST_MESHED)
        return get_slack_bus_selector(self.options.slack_bus_selection_mode, self.options.slack_bus_id)

    def solve_component(self, component: LfNetwork) -> Tuple[LfNetwork, ComponentResult, ConvergenceReport, Logger]:
        """
        Solve one component, this runs in the workers
        :param component: LfNetwork of a single connected component
        :return: the component, its summary, its convergence report and its logger
        """
        logger = Logger()
        report = ConvergenceReport()

        try:
            slack = component.select_slack_bus(self.get_slack_bus_selector(component))
        except SlackError as e:
            logger.add_warning(f"Component not solved: {e.message}", device=component.name)
            report.add(status=SolverStatus.NO_CALCULATION, error=np.nan, elapsed=0.0, iterations=0,
                       norm_history=list())
            summary = ComponentResult(num=component.num,
                                      bus_number=component.bus_number,
                                      branch_number=component.branch_number,
                                      slack_bus_id='',
                                      solver_status=SolverStatus.NO_CALCULATION,
                                      outer_loop_status=OuterLoopStatus.STABLE,
                                      outer_loop_iterations=0,
                                      iterations=0,
                                      slack_bus_active_power_mismatch=np.nan,
                                      message=e.message)
            return component, summary, report, logger

        if self.options.solver_type == SolverType.DC:
            dc_result = DcLoadFlowEngine(component,
                                         DcLoadFlowParameters(linear_solver_type=self.options.linear_solver),
                                         logger).run()
            report.add(status=dc_result.status, error=dc_result.error, elapsed=dc_result.elapsed, iterations=1,
                       norm_history=[dc_result.error])
            summary = ComponentResult(num=component.num,
                                      bus_number=component.bus_number,
                                      branch_number=component.branch_number,
                                      slack_bus_id=slack.idtag,
                                      solver_status=dc_result.status,
                                      outer_loop_status=OuterLoopStatus.STABLE,
                                      outer_loop_iterations=0,
                                      iterations=1,
                                      slack_bus_active_power_mismatch=dc_result.slack_bus_active_power_mismatch,
                                      elapsed=dc_result.elapsed)
        else:
            parameters = AcLoadFlowParameters.from_options(self.options)
            parameters.slack_bus_selector = None  # already selected
            ac_result = AcLoadFlowEngine(component, parameters, self.observer, logger).run()
            report.add(status=ac_result.solver_status, error=ac_result.error, elapsed=ac_result.elapsed,
                       iterations=ac_result.newton_raphson_iterations, norm_history=ac_result.norm_history)
            summary = ComponentResult(num=component.num,
                                      bus_number=component.bus_number,
                                      branch_number=component.branch_number,
                                      slack_bus_id=slack.idtag,
                                      solver_status=ac_result.solver_status,
                                      outer_loop_status=ac_result.outer_loop_status,
                                      outer_loop_iterations=ac_result.outer_loop_iterations,
                                      iterations=ac_result.newton_raphson_iterations,
                                      slack_bus_active_power_mismatch=ac_result.slack_bus_active_power_mismatch,
                                      elapsed=ac_result.elapsed,
                                      message=ac_result.message)

        return component, summary, report, logger

    def run(self) -> LoadFlowResults:
        """
        Run the load flow of every component.
        The workers solve independent copies and this thread merges them one after the other.
        """
        start = time.time()

        for bus in self.network.buses:
            for idtag, reason in bus.discarded_voltage_controls:
                self.logger.add_info(f"Voltage control discarded: {reason}", device=idtag)

        components: List[LfNetwork] = self.network.split_components()
        self.logger.add_info("Connected components", device=self.network.name, value=len(components))

        unsolved = set()
        n_workers = max(1, min(self.options.n_workers, len(components)))

        if n_workers == 1:
            solutions = map(self.solve_component, components)
            self._collect(solutions, unsolved)
        else:
            with ThreadPool(processes=n_workers) as pool:
                self._collect(pool.imap(self.solve_component, components), unsolved)

        # branches without any connected side take no part in any component
        for branch in self.network.branches:
            if branch.is_disabled:
                branch.p1 = branch.q1 = branch.p2 = branch.q2 = np.nan

        self.results.fill_from_network(self.network, self.network.sb, unsolved)
        self.results.elapsed = time.time() - start
        self.results.logger = self.logger

        return self.results

    def _collect(self, solutions, unsolved: set):
        """
        Merge the solved components into the network, in component order
        :param solutions: iterable of the solve_component outputs
        :param unsolved: set filled with the idtags of the buses that were not solved
        """
        for component, summary, report, logger in solutions:
            self.network.set_state_from(component)
            self.logger += logger
            self.results.components.append(summary)
            self.results.convergence_reports.append(report)

            for bus in component.buses:
                self.results.bus_component[self.network.get_bus_by_id(bus.idtag).num] = component.num
                if summary.solver_status == SolverStatus.NO_CALCULATION:
                    unsolved.add(bus.idtag)

            if summary.solver_status not in (SolverStatus.CONVERGED, SolverStatus.NO_CALCULATION):
                self.logger.add_error(f"Component not converged: {summary.solver_status}",
                                      device=component.name,
                                      value=summary.message)
