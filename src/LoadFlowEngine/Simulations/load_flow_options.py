# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

import numpy as np
from LoadFlowEngine.enumerations import (SolverType, BalanceType, VoltageInitMode, SlackBusSelectionMode,
                                         StateVectorScalingMode, LinearSolverType)
from LoadFlowEngine.Simulations.options_template import OptionsTemplate


class LoadFlowOptions(OptionsTemplate):
    """
    Load flow options
    """

    def __init__(self,
                 solver_type: SolverType = SolverType.NR,
                 tolerance: float = 1e-4,
                 max_iter: int = 15,
                 max_outer_loop_iter: int = 20,
                 distributed_slack: bool = True,
                 balance_type: BalanceType = BalanceType.PROPORTIONAL_TO_GENERATION_P_MAX,
                 slack_bus_p_max_mismatch: float = 1.0,
                 reactive_limits: bool = True,
                 max_switch_pq_pv: int = 3,
                 voltage_init_mode: VoltageInitMode = VoltageInitMode.UNIFORM_VALUES,
                 slack_bus_selection_mode: SlackBusSelectionMode = SlackBusSelectionMode.MOST_MESHED,
                 slack_bus_id: str = '',
                 state_vector_scaling_mode: StateVectorScalingMode = StateVectorScalingMode.NONE,
                 line_search_max_iterations: int = 10,
                 line_search_step_fold: float = 4.0 / 3.0,
                 max_voltage_change: float = 0.1,
                 max_angle_change: float = 10.0,
                 min_realistic_voltage: float = 0.5,
                 max_realistic_voltage: float = 1.5,
                 linear_solver: LinearSolverType = LinearSolverType.SPARSE,
                 per_equation_type_criteria: bool = False,
                 max_active_power_mismatch: float = 1e-2,
                 max_reactive_power_mismatch: float = 1e-2,
                 max_voltage_mismatch: float = 1e-4,
                 max_angle_mismatch: float = 1e-5,
                 max_ratio_mismatch: float = 1e-5,
                 max_susceptance_mismatch: float = 1e-4,
                 n_workers: int = 1):
        """
        Load flow options class
        :param solver_type: Newton-Raphson (AC) or linear DC
        :param tolerance: convergence epsilon of a single equation (p.u.)
        :param max_iter: Maximum number of Newton-Raphson iterations
        :param max_outer_loop_iter: Maximum number of outer loop iterations
        :param distributed_slack: Distribute the slack bus active power over the participating generators
        :param balance_type: how the participation factors are computed
        :param slack_bus_p_max_mismatch: slack bus active power accepted without distribution (MW)
        :param reactive_limits: Enforce the generators reactive power limits (PV -> PQ switching)
        :param max_switch_pq_pv: number of PV -> PQ switches after which a bus stays PQ
        :param voltage_init_mode: starting point of the solve
        :param slack_bus_selection_mode: slack bus selection policy, applied to every island
        :param slack_bus_id: bus id used by the NAME selection mode
        :param state_vector_scaling_mode: Newton-Raphson step control
        :param line_search_max_iterations: Maximum number of step folds of the line search
        :param line_search_step_fold: step reduction factor of the line search
        :param max_voltage_change: Maximum voltage module change per iteration (p.u.)
        :param max_angle_change: Maximum angle change per iteration (deg)
        :param min_realistic_voltage: lower bound of the realistic voltage band (p.u.)
        :param max_realistic_voltage: upper bound of the realistic voltage band (p.u.)
        :param linear_solver: linear algebra back-end
        :param per_equation_type_criteria: test every equation with the epsilon of its kind instead of the tolerance
        :param max_active_power_mismatch: (MW)
        :param max_reactive_power_mismatch: (MVAr)
        :param max_voltage_mismatch: (p.u.)
        :param max_angle_mismatch: (rad)
        :param max_ratio_mismatch: (p.u.)
        :param max_susceptance_mismatch: (p.u.)
        :param n_workers: number of threads solving the islands
        """
        OptionsTemplate.__init__(self, name='LoadFlowOptions')

        self.solver_type = solver_type

        self.tolerance = tolerance

        self.max_iter = max_iter

        self.max_outer_loop_iter = max_outer_loop_iter

        self.distributed_slack = distributed_slack

        self.balance_type = balance_type

        self.slack_bus_p_max_mismatch = slack_bus_p_max_mismatch

        self.reactive_limits = reactive_limits

        self.max_switch_pq_pv = max_switch_pq_pv

        self.voltage_init_mode = voltage_init_mode

        self.slack_bus_selection_mode = slack_bus_selection_mode

        self.slack_bus_id = slack_bus_id

        self.state_vector_scaling_mode = state_vector_scaling_mode

        self.line_search_max_iterations = line_search_max_iterations

        self.line_search_step_fold = line_search_step_fold

        self.max_voltage_change = max_voltage_change

        self.max_angle_change = max_angle_change

        self.min_realistic_voltage = min_realistic_voltage

        self.max_realistic_voltage = max_realistic_voltage

        self.linear_solver = linear_solver

        self.per_equation_type_criteria = per_equation_type_criteria

        self.max_active_power_mismatch = max_active_power_mismatch

        self.max_reactive_power_mismatch = max_reactive_power_mismatch

        self.max_voltage_mismatch = max_voltage_mismatch

        self.max_angle_mismatch = max_angle_mismatch

        self.max_ratio_mismatch = max_ratio_mismatch

        self.max_susceptance_mismatch = max_susceptance_mismatch

        self.n_workers = n_workers

        self.register(key="solver_type", tpe=SolverType, definition="Load flow formulation")
        self.register(key="tolerance", tpe=float, units="p.u.", definition="Convergence epsilon per equation")
        self.register(key="max_iter", tpe=int, definition="Maximum Newton-Raphson iterations")
        self.register(key="max_outer_loop_iter", tpe=int, definition="Maximum outer loop iterations")
        self.register(key="distributed_slack", tpe=bool, definition="Distribute the slack bus active power")
        self.register(key="balance_type", tpe=BalanceType, definition="Participation factor of the generators")
        self.register(key="slack_bus_p_max_mismatch", tpe=float, units="MW",
                      definition="Slack bus active power accepted without distribution")
        self.register(key="reactive_limits", tpe=bool, definition="Enforce the reactive power limits")
        self.register(key="max_switch_pq_pv", tpe=int, definition="PV -> PQ switches after which a bus stays PQ")
        self.register(key="voltage_init_mode", tpe=VoltageInitMode, definition="Initial voltages")
        self.register(key="slack_bus_selection_mode", tpe=SlackBusSelectionMode, definition="Slack bus selection")
        self.register(key="slack_bus_id", tpe=str, definition="Slack bus id for the name selection")
        self.register(key="state_vector_scaling_mode", tpe=StateVectorScalingMode, definition="Step control")
        self.register(key="line_search_max_iterations", tpe=int, definition="Maximum line search folds")
        self.register(key="line_search_step_fold", tpe=float, definition="Line search step reduction")
        self.register(key="max_voltage_change", tpe=float, units="p.u.", definition="Maximum voltage change")
        self.register(key="max_angle_change", tpe=float, units="deg", definition="Maximum angle change")
        self.register(key="min_realistic_voltage", tpe=float, units="p.u.", definition="Realistic voltage minimum")
        self.register(key="max_realistic_voltage", tpe=float, units="p.u.", definition="Realistic voltage maximum")
        self.register(key="linear_solver", tpe=LinearSolverType, definition="Linear algebra back-end")
        self.register(key="per_equation_type_criteria", tpe=bool, definition="Per equation kind convergence test")
        self.register(key="max_active_power_mismatch", tpe=float, units="MW")
        self.register(key="max_reactive_power_mismatch", tpe=float, units="MVAr")
        self.register(key="max_voltage_mismatch", tpe=float, units="p.u.")
        self.register(key="max_angle_mismatch", tpe=float, units="rad")
        self.register(key="max_ratio_mismatch", tpe=float, units="p.u.")
        self.register(key="max_susceptance_mismatch", tpe=float, units="p.u.")
        self.register(key="n_workers", tpe=int, definition="Threads solving the islands")

    @property
    def max_angle_change_rad(self) -> float:
        return float(np.deg2rad(self.max_angle_change))
