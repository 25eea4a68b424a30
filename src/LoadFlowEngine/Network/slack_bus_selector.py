# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from typing import List
from LoadFlowEngine.enumerations import SlackBusSelectionMode
from LoadFlowEngine.exceptions import SlackError
from LoadFlowEngine.Network.bus import LfBus


class SlackBusSelector:
    """
    Slack bus selection policy
    """

    def select(self, buses: List[LfBus]) -> LfBus:
        """
        Pick the slack bus among the buses of one connected component
        :param buses: list of LfBus
        :return: LfBus
        """
        raise NotImplementedError()


class FirstSlackBusSelector(SlackBusSelector):
    """
    The first bus controlling its voltage
    """

    def select(self, buses: List[LfBus]) -> LfBus:
        for bus in buses:
            if bus.voltage_control:
                return bus
        raise SlackError("No bus controlling the voltage that could be the slack")


class MostMeshedSlackBusSelector(SlackBusSelector):
    """
    Among the voltage controlled buses of the highest nominal voltage, the one with more closed branches
    """

    def select(self, buses: List[LfBus]) -> LfBus:
        candidates = [bus for bus in buses if bus.voltage_control]
        if len(candidates) == 0:
            raise SlackError("No bus controlling the voltage that could be the slack")

        max_nominal_v = max(bus.nominal_v for bus in candidates)
        candidates = [bus for bus in candidates if bus.nominal_v == max_nominal_v]

        def closed_branches(bus: LfBus) -> int:
            return sum(1 for br in bus.branches if br.is_closed)

        # max() keeps the first of the ties, so the lowest number wins
        return max(candidates, key=closed_branches)


class NameSlackBusSelector(SlackBusSelector):
    """
    The bus with the given id
    """

    def __init__(self, bus_id: str):
        """

        :param bus_id: idtag of the slack bus
        """
        self.bus_id = bus_id

    def select(self, buses: List[LfBus]) -> LfBus:
        for bus in buses:
            if bus.idtag == self.bus_id:
                return bus
        raise SlackError(f"Slack bus {self.bus_id} not found")


class LargestGeneratorSlackBusSelector(SlackBusSelector):
    """
    The voltage controlled bus with the largest maximum active power
    """

    def select(self, buses: List[LfBus]) -> LfBus:
        candidates = [bus for bus in buses if bus.voltage_control]
        if len(candidates) == 0:
            raise SlackError("No bus controlling the voltage that could be the slack")
        return max(candidates, key=lambda bus: bus.max_p)


def get_slack_bus_selector(mode: SlackBusSelectionMode, bus_id: str = '') -> SlackBusSelector:
    """
    Build the slack bus selector of a selection mode
    :param mode: SlackBusSelectionMode
    :param bus_id: slack bus id, only for SlackBusSelectionMode.NAME
    :return: SlackBusSelector
    """
    if mode == SlackBusSelectionMode.FIRST:
        return FirstSlackBusSelector()
    elif mode == SlackBusSelectionMode.MOST_MESHED:
        return MostMeshedSlackBusSelector()
    elif mode == SlackBusSelectionMode.NAME:
        return NameSlackBusSelector(bus_id)
    elif mode == SlackBusSelectionMode.LARGEST_GENERATOR:
        return LargestGeneratorSlackBusSelector()
    else:
        raise ValueError(f"Unknown slack bus selection mode {mode}")
