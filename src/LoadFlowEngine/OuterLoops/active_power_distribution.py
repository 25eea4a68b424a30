# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from typing import List, Tuple
import numpy as np
from LoadFlowEngine.basic_structures import Logger
from LoadFlowEngine.enumerations import BalanceType
from LoadFlowEngine.Network.bus import LfBus
from LoadFlowEngine.Network.generator import LfGenerator
from LoadFlowEngine.Network.network import LfNetwork

# active power residue, 1e-5 p.u. is 1e-3 MW for a 100 MVA base
P_RESIDUE_EPS = 1e-5


class ActivePowerDistributionResult:
    """
    Outcome of a distribution
    """

    def __init__(self, iterations: int, remaining_mismatch: float, moved: bool):
        """

        :param iterations: number of distribution passes
        :param remaining_mismatch: mismatch that could not be distributed (p.u.)
        :param moved: did any set point change with respect to the previous distribution?
                      Nothing to re-solve when False
        """
        self.iterations = iterations
        self.remaining_mismatch = remaining_mismatch
        self.moved = moved


class ActivePowerDistribution:
    """
    Shares an active power mismatch between the participating elements, proportionally to their
    participation factors. Depending on the balance type the elements are:
        - the generators, moved within their active power limits
        - the loads, which are never brought below zero
    """

    def __init__(self, balance_type: BalanceType = BalanceType.PROPORTIONAL_TO_GENERATION_P_MAX):
        """

        :param balance_type: BalanceType
        """
        self.balance_type = balance_type

    @property
    def on_loads(self) -> bool:
        return self.balance_type == BalanceType.PROPORTIONAL_TO_LOAD

    @staticmethod
    def get_participating_generators(network: LfNetwork) -> List[Tuple[LfBus, LfGenerator]]:
        """
        Generators allowed to move
        :param network: LfNetwork
        :return: list of (bus, generator)
        """
        return [(bus, gen) for bus in network.buses for gen in bus.generators if gen.participating]

    @staticmethod
    def get_participating_loads(network: LfNetwork) -> List[LfBus]:
        """
        Buses whose load is allowed to move
        :param network: LfNetwork
        :return: list of LfBus
        """
        return [bus for bus in network.buses if bus.load_participating and bus.load_target_p > 0.0]

    def run(self, network: LfNetwork, mismatch: float, logger: Logger = None) -> ActivePowerDistributionResult:
        """
        Distribute the mismatch.

        :param network: LfNetwork
        :param mismatch: active power to distribute (p.u.), positive means more generation is needed
        :param logger: Logger
        :return: ActivePowerDistributionResult
        """
        if self.on_loads:
            result = self.distribute_on_loads(network, mismatch)
        else:
            result = self.distribute_on_generators(network, mismatch)

        if logger is not None:
            logger.add_info(f"Active power distributed in {result.iterations} iterations",
                            device=network.name,
                            value=(mismatch - result.remaining_mismatch) * network.sb,
                            expected_value=mismatch * network.sb)

        return result

    def distribute_on_generators(self, network: LfNetwork, mismatch: float) -> ActivePowerDistributionResult:
        """
        The generators are first brought back to their initial set points so that the result
        does not depend on the previous distributions, what they had taken is added to the mismatch.
        Every pass normalizes the factors of the generators still participating, moves them and
        removes the ones reaching a limit.

        :param network: LfNetwork
        :param mismatch: active power to distribute (p.u.)
        :return: ActivePowerDistributionResult
        """
        candidates = self.get_participating_generators(network)

        # back to the initial state
        previous_target_p = np.array([gen.target_p for bus, gen in candidates])
        remaining = mismatch
        for bus, gen in candidates:
            remaining += gen.target_p - gen.initial_target_p
            gen.target_p = gen.initial_target_p

        positive_mismatch = remaining > 0
        elements = list()
        for bus, gen in candidates:
            factor = gen.get_participation_factor(self.balance_type, positive_mismatch)
            if factor > 0.0:
                elements.append([bus, gen, factor])

        iteration = 0
        while len(elements) > 0 and abs(remaining) > P_RESIDUE_EPS:

            factors = np.array([e[2] for e in elements])
            total = factors.sum()
            if total <= 0.0:
                break
            factors /= total

            done = 0.0
            kept = list()
            for (bus, gen, factor), normalized in zip(elements, factors):
                target_p = gen.target_p
                min_p = gen.min_p
                max_p = gen.max_p

                # the sign of the generation is kept
                if target_p < 0:
                    max_p = min(max_p, 0.0)
                else:
                    min_p = max(min_p, 0.0)

                new_target_p = target_p + remaining * normalized
                at_limit = False
                if remaining > 0 and new_target_p > max_p:
                    new_target_p = max_p
                    at_limit = True
                elif remaining < 0 and new_target_p < min_p:
                    new_target_p = min_p
                    at_limit = True

                if new_target_p != target_p:
                    gen.target_p = new_target_p
                    done += new_target_p - target_p

                if not at_limit:
                    kept.append([bus, gen, factor])

            remaining -= done
            elements = kept
            iteration += 1

        for bus in network.buses:
            if len(bus.generators):
                bus.update_generation_target_p()

        moved = np.sum(np.abs(np.array([gen.target_p for bus, gen in candidates]) - previous_target_p))

        return ActivePowerDistributionResult(iterations=iteration,
                                             remaining_mismatch=remaining,
                                             moved=bool(moved > P_RESIDUE_EPS * 0.9))

    def distribute_on_loads(self, network: LfNetwork, mismatch: float) -> ActivePowerDistributionResult:
        """
        The loads take the mismatch proportionally to their active power: a missing generation
        lowers them and an excess raises them. A load brought down to zero stays there and
        leaves the distribution.

        :param network: LfNetwork
        :param mismatch: active power to distribute (p.u.)
        :return: ActivePowerDistributionResult
        """
        elements = [[bus, bus.load_target_p] for bus in self.get_participating_loads(network)]

        remaining = mismatch
        moved = 0.0
        iteration = 0
        while len(elements) > 0 and abs(remaining) > P_RESIDUE_EPS:

            factors = np.array([e[1] for e in elements])
            factors /= factors.sum()

            done = 0.0
            kept = list()
            for (bus, factor), normalized in zip(elements, factors):
                target_p = bus.load_target_p
                new_target_p = target_p - remaining * normalized

                at_limit = False
                if remaining > 0 and new_target_p <= 0.0:
                    new_target_p = 0.0
                    at_limit = True

                bus.load_target_p = new_target_p
                done += target_p - new_target_p

                if not at_limit:
                    kept.append([bus, factor])

            remaining -= done
            moved += abs(done)
            elements = kept
            iteration += 1

        return ActivePowerDistributionResult(iterations=iteration,
                                             remaining_mismatch=remaining,
                                             moved=bool(moved > P_RESIDUE_EPS * 0.9))
