# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from typing import Dict, List, Tuple
from LoadFlowEngine.enumerations import OuterLoopStatus, ReactiveLimitType, EquationType
from LoadFlowEngine.Network.bus import LfBus
from LoadFlowEngine.Equations.equation_system import EquationSystem
from LoadFlowEngine.OuterLoops.outer_loop import OuterLoop, OuterLoopContext

MAX_SWITCH_PQ_PV = 3

DEFAULT_MAX_REACTIVE_POWER_MISMATCH = 1e-2  # p.u.


def set_voltage_control(bus: LfBus, equation_system: EquationSystem, enabled: bool):
    """
    Switch a bus between PV and PQ, swapping its V and Q equations
    :param bus: LfBus
    :param equation_system: EquationSystem
    :param enabled: PV if True, PQ otherwise
    """
    bus.voltage_control_enabled = enabled
    equation_system.get_equation(bus.num, EquationType.BUS_TARGET_V).active = enabled
    equation_system.get_equation(bus.num, EquationType.BUS_TARGET_Q).active = not enabled


class ReactiveLimitsOuterLoop(OuterLoop):
    """
    Keeps the reactive power of the voltage controlling buses within their capability.

    A PV bus producing (or absorbing) more than its limit is switched PQ with the
    reactive power pinned at the limit. A bus switched in this way goes back to PV when its voltage
    is again on the side of the target that the limit allows, a limited number of times.
    """

    name = 'ReactiveLimits'

    def __init__(self,
                 max_switch_pq_pv: int = MAX_SWITCH_PQ_PV,
                 max_reactive_power_mismatch: float = DEFAULT_MAX_REACTIVE_POWER_MISMATCH):
        """

        :param max_switch_pq_pv: maximum number of PV -> PQ switches of a bus after which it stays PQ
        :param max_reactive_power_mismatch: change of a reactive limit that moves a pinned bus (p.u.)
        """
        self.max_switch_pq_pv = max_switch_pq_pv
        self.max_reactive_power_mismatch = max_reactive_power_mismatch

    def initialize(self, context: OuterLoopContext) -> None:
        # PV -> PQ switch count per bus id
        context.data[self.name] = dict()

    @staticmethod
    def get_bus_q(bus: LfBus) -> float:
        """
        Reactive power produced at the bus by the last solve
        """
        return bus.calculated_q + bus.load_target_q

    def check_pv_bus(self, bus: LfBus, pv_to_pq: List[Tuple[LfBus, float, float, ReactiveLimitType]]) -> bool:
        """
        Look for a limit violation of a PV bus
        :param bus: voltage controlling bus
        :param pv_to_pq: list where the violations are appended
        :return: does the bus remain PV?
        """
        p = bus.get_generation_p()
        min_q = bus.get_min_q(p)
        max_q = bus.get_max_q(p)
        q = self.get_bus_q(bus)

        if q < min_q:
            pv_to_pq.append((bus, q, min_q, ReactiveLimitType.MIN_Q))
            return False
        elif q > max_q:
            pv_to_pq.append((bus, q, max_q, ReactiveLimitType.MAX_Q))
            return False
        return True

    def check_pq_bus(self,
                     bus: LfBus,
                     pq_to_pv: List[LfBus],
                     updated_limits: List[LfBus],
                     can_switch: bool):
        """
        A bus pinned at a limit may go back to PV:
            - at the minimum when its voltage is below the target (it could absorb less)
            - at the maximum when its voltage is above the target (it could produce less)
        Otherwise the pinned value follows the limit, which may depend on the active power.
        :param bus: bus switched PQ by this loop
        :param pq_to_pv: list where the buses to switch back are appended
        :param updated_limits: list where the buses whose limit moved are appended
        :param can_switch: is the bus still allowed to switch?
        """
        p = bus.get_generation_p()
        q = bus.generation_target_q

        if bus.q_limit_type == ReactiveLimitType.MIN_Q:
            min_q = bus.get_min_q(p)
            if bus.v < bus.target_v and can_switch:
                pq_to_pv.append(bus)
            elif abs(min_q - q) > self.max_reactive_power_mismatch:
                bus.generation_target_q = min_q
                updated_limits.append(bus)

        elif bus.q_limit_type == ReactiveLimitType.MAX_Q:
            max_q = bus.get_max_q(p)
            if bus.v > bus.target_v and can_switch:
                pq_to_pv.append(bus)
            elif abs(max_q - q) > self.max_reactive_power_mismatch:
                bus.generation_target_q = max_q
                updated_limits.append(bus)

    def check(self, context: OuterLoopContext) -> OuterLoopStatus:
        es = context.equation_system
        logger = context.logger
        switch_count: Dict[str, int] = context.data[self.name]

        pv_to_pq: List[Tuple[LfBus, float, float, ReactiveLimitType]] = list()
        pq_to_pv: List[LfBus] = list()
        updated_limits: List[LfBus] = list()
        remaining_pv = 0

        for bus in context.network.buses:
            if not bus.voltage_control:
                continue

            if bus.voltage_control_enabled:
                if self.check_pv_bus(bus, pv_to_pq):
                    remaining_pv += 1

            elif bus.q_limit_type is not None:
                self.check_pq_bus(bus, pq_to_pv, updated_limits,
                                  can_switch=switch_count.get(bus.idtag, 0) < self.max_switch_pq_pv)

        status = OuterLoopStatus.STABLE

        if len(pv_to_pq) > 0 and remaining_pv == 0:
            # keep the strongest bus PV: highest nominal voltage, then highest active power target
            strongest = min(pv_to_pq, key=lambda e: (-e[0].nominal_v, -e[0].generation_target_p, e[0].idtag))
            pv_to_pq.remove(strongest)
            remaining_pv += 1
            logger.add_warning("All PV buses should switch PQ, the strongest one stays PV",
                               device=strongest[0].idtag)

        for bus, q, q_limit, limit_type in pv_to_pq:
            bus.generation_target_q = q_limit
            bus.q_limit_type = limit_type
            set_voltage_control(bus, es, False)
            switch_count[bus.idtag] = switch_count.get(bus.idtag, 0) + 1
            logger.add_info(f"Switch bus PV -> PQ, q set to {limit_type}",
                            device=bus.idtag,
                            value=q * context.network.sb,
                            expected_value=q_limit * context.network.sb)
            status = OuterLoopStatus.UNSTABLE

        for bus in pq_to_pv:
            bus.generation_target_q = bus.initial_generation_target_q
            bus.q_limit_type = None
            set_voltage_control(bus, es, True)
            logger.add_info("Switch bus PQ -> PV",
                            device=bus.idtag,
                            value=bus.v,
                            expected_value=bus.target_v)
            status = OuterLoopStatus.UNSTABLE

        if len(updated_limits) > 0:
            logger.add_info(f"{len(updated_limits)} buses pinned at a reactive limit followed the limit change")
            status = OuterLoopStatus.UNSTABLE

        return status
