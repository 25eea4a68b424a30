# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from typing import List, Dict, Union, TYPE_CHECKING
import numpy as np
import networkx as nx
from LoadFlowEngine.basic_structures import Logger, Vec
from LoadFlowEngine.exceptions import ModelError, SlackError
from LoadFlowEngine.Network.bus import LfBus
from LoadFlowEngine.Network.branch import LfBranch

if TYPE_CHECKING:
    from LoadFlowEngine.Network.slack_bus_selector import SlackBusSelector


class LfNetwork:
    """
    Per unit network: ordered buses and branches plus the base power
    """

    def __init__(self, sb: float = 100.0, num: int = 0, name: str = 'Network'):
        """

        :param sb: base power (MVA)
        :param num: component number
        :param name: name
        """
        self.sb = sb

        self.num = num

        self.name = name

        self.buses: List[LfBus] = list()

        self.branches: List[LfBranch] = list()

        self._bus_by_id: Dict[str, LfBus] = dict()

        self._branch_by_id: Dict[str, LfBranch] = dict()

    @property
    def bus_number(self) -> int:
        return len(self.buses)

    @property
    def branch_number(self) -> int:
        return len(self.branches)

    def add_bus(self, bus: LfBus) -> LfBus:
        """
        Add a bus, its number is its position
        :param bus: LfBus
        :return: the same bus
        """
        if bus.idtag in self._bus_by_id:
            raise ModelError(f"Duplicated bus id {bus.idtag}")
        bus.num = len(self.buses)
        self.buses.append(bus)
        self._bus_by_id[bus.idtag] = bus
        return bus

    def add_branch(self, branch: LfBranch) -> LfBranch:
        """
        Add a branch, its buses must belong to this network
        :param branch: LfBranch
        :return: the same branch
        """
        if branch.idtag in self._branch_by_id:
            raise ModelError(f"Duplicated branch id {branch.idtag}")

        if branch.bus1 is not None and branch.bus1 is branch.bus2:
            raise ModelError(f"Branch {branch.idtag} has both sides at bus {branch.bus1.idtag}")

        for bus in (branch.bus1, branch.bus2):
            if bus is not None:
                if self._bus_by_id.get(bus.idtag, None) is not bus:
                    raise ModelError(f"Branch {branch.idtag} is connected to bus {bus.idtag} "
                                     f"that does not belong to the network")
                bus.branches.append(branch)

        branch.num = len(self.branches)
        self.branches.append(branch)
        self._branch_by_id[branch.idtag] = branch
        return branch

    def get_bus(self, num: int) -> LfBus:
        return self.buses[num]

    def get_bus_by_id(self, idtag: str) -> Union[LfBus, None]:
        return self._bus_by_id.get(idtag, None)

    def get_branch(self, num: int) -> LfBranch:
        return self.branches[num]

    def get_branch_by_id(self, idtag: str) -> Union[LfBranch, None]:
        return self._branch_by_id.get(idtag, None)

    def get_slack_bus(self) -> LfBus:
        """
        Get the slack bus
        :return: LfBus
        """
        for bus in self.buses:
            if bus.slack:
                return bus
        raise SlackError(f"No slack bus selected in network {self.name}")

    def select_slack_bus(self, selector: "SlackBusSelector") -> LfBus:
        """
        Choose the slack bus with the given policy, any previous choice is dropped
        :param selector: SlackBusSelector
        :return: the slack bus
        """
        for bus in self.buses:
            bus.slack = False
        slack = selector.select(self.buses)
        slack.slack = True
        return slack

    def update_state(self, reactive_limits: bool = False):
        """
        Project the per unit state onto the generators (the flows are already in the branches)
        :param reactive_limits: respect the unit reactive limits when dispatching Q
        """
        for bus in self.buses:
            bus.update_state(reactive_limits=reactive_limits)

    def get_v(self) -> Vec:
        return np.array([bus.v for bus in self.buses])

    def get_angles(self) -> Vec:
        return np.array([bus.angle for bus in self.buses])

    def build_graph(self, non_impedant_only: bool = False) -> nx.MultiGraph:
        """
        Graph of the closed branches, nodes are bus numbers and edges are keyed by branch number
        :param non_impedant_only: only consider the branches without impedance
        :return: networkx MultiGraph
        """
        graph = nx.MultiGraph()
        graph.add_nodes_from(range(self.bus_number))
        for branch in self.branches:
            if branch.is_closed and (not non_impedant_only or branch.is_non_impedant):
                graph.add_edge(branch.bus1.num, branch.bus2.num, key=branch.num)
        return graph

    def get_non_impedant_spanning_forest(self, logger: Logger = None) -> List[LfBranch]:
        """
        Spanning forest of the closed non impedant branches.
        The branches left out would close a loop of zero impedance and are ignored.
        :param logger: Logger
        :return: branches of the forest
        """
        graph = self.build_graph(non_impedant_only=True)
        forest = list()
        used = set()
        for u, v, key in nx.minimum_spanning_edges(graph, algorithm='kruskal', keys=True, data=False):
            forest.append(self.branches[key])
            used.add(key)

        if logger is not None:
            for branch in self.branches:
                if branch.is_closed and branch.is_non_impedant and branch.num not in used:
                    logger.add_warning("Non impedant branch closing a loop ignored", device=branch.idtag)

        forest.sort(key=lambda br: br.num)
        return forest

    def get_non_impedant_clusters(self) -> List[List[LfBus]]:
        """
        Groups of buses linked by non impedant branches (only groups with more than one bus)
        :return: list of bus lists
        """
        graph = self.build_graph(non_impedant_only=True)
        clusters = list()
        for nodes in nx.connected_components(graph):
            if len(nodes) > 1:
                clusters.append([self.buses[i] for i in sorted(nodes)])
        clusters.sort(key=lambda c: c[0].num)
        return clusters

    def split_components(self) -> List["LfNetwork"]:
        """
        Split the network in its connected components.
        Each component holds copies of the elements so that it can be solved independently.
        :return: list of LfNetwork, ordered by their first bus
        """
        graph = self.build_graph()
        components = sorted([sorted(nodes) for nodes in nx.connected_components(graph)], key=lambda c: c[0])

        bus_component = np.zeros(self.bus_number, dtype=int)
        for k, nodes in enumerate(components):
            bus_component[nodes] = k

        networks = list()
        copies: List[Dict[int, LfBus]] = list()
        for k, nodes in enumerate(components):
            net = LfNetwork(sb=self.sb, num=k, name=f"{self.name} [{k}]")
            mapping = dict()
            for i in nodes:
                mapping[i] = net.add_bus(self.buses[i].copy())
            networks.append(net)
            copies.append(mapping)

        for branch in self.branches:
            bus1 = branch.get_bus1()
            bus2 = branch.get_bus2()
            if bus1 is None and bus2 is None:
                continue
            k = bus_component[bus1.num] if bus1 is not None else bus_component[bus2.num]
            mapping = copies[k]
            copy1 = mapping[bus1.num] if bus1 is not None else None
            copy2 = mapping[bus2.num] if bus2 is not None else None
            networks[k].add_branch(branch.copy(copy1, copy2))

        return networks

    def copy(self) -> "LfNetwork":
        """
        Copy of the whole network, solving the copy leaves this network untouched
        :return: LfNetwork
        """
        net = LfNetwork(sb=self.sb, num=self.num, name=self.name)
        mapping = {bus.num: net.add_bus(bus.copy()) for bus in self.buses}
        for branch in self.branches:
            copy1 = mapping[branch.bus1.num] if branch.bus1 is not None else None
            copy2 = mapping[branch.bus2.num] if branch.bus2 is not None else None
            net.add_branch(branch.copy(copy1, copy2))
        return net

    def set_state_from(self, component: "LfNetwork"):
        """
        Take the solved state of a component returned by split_components
        :param component: LfNetwork
        """
        for bus in component.buses:
            self._bus_by_id[bus.idtag].set_state_from(bus)
        for branch in component.branches:
            self._branch_by_id[branch.idtag].set_state_from(branch)

    def __str__(self):
        return f"{self.name}: {self.bus_number} buses, {self.branch_number} branches"
