# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from typing import List, Tuple, Union, TYPE_CHECKING
import numpy as np
from LoadFlowEngine.enumerations import BusMode, ReactiveLimitType
from LoadFlowEngine.exceptions import ConflictingVoltageControlError
from LoadFlowEngine.Network.generator import LfGenerator
from LoadFlowEngine.Network.reactive_limits import ReactiveDiagram, MinMaxReactiveLimits

if TYPE_CHECKING:
    from LoadFlowEngine.Network.branch import LfBranch

TARGET_V_EPSILON = 1e-8


class LfBus:
    """
    Bus of the load flow network. Voltages are in p.u. of the nominal voltage,
    powers in p.u. of the network base power and angles in radians.
    """

    def __init__(self,
                 idtag: str,
                 name: str = '',
                 nominal_v: float = 1.0,
                 v: float = 1.0,
                 angle: float = 0.0,
                 load_target_p: float = 0.0,
                 load_target_q: float = 0.0,
                 shunt_g: float = 0.0,
                 shunt_b: float = 0.0,
                 load_participating: bool = True):
        """

        :param idtag: unique identifier
        :param name: name
        :param nominal_v: nominal voltage (kV)
        :param v: initial voltage module (p.u.)
        :param angle: initial voltage angle (rad)
        :param load_target_p: active power demand (p.u.)
        :param load_target_q: reactive power demand (p.u.)
        :param shunt_g: shunt conductance (p.u.)
        :param shunt_b: shunt susceptance (p.u.), positive when capacitive
        :param load_participating: does the load participate in a load proportional slack distribution?
        """
        self.num: int = -1

        self.idtag = idtag

        self.name = name if name != '' else idtag

        self.nominal_v = nominal_v

        self.v = v

        self.angle = angle

        self.load_target_p = load_target_p

        self.load_target_q = load_target_q

        self.shunt_g = shunt_g

        self.shunt_b = shunt_b

        self.load_participating = load_participating

        self.generators: List[LfGenerator] = list()

        self.branches: List["LfBranch"] = list()

        self.generation_target_p = 0.0

        self.initial_generation_target_p = 0.0

        self.generation_target_q = 0.0

        self.initial_generation_target_q = 0.0

        self.min_p = 0.0

        self.max_p = 0.0

        self.voltage_control = False

        self.target_v = np.nan

        self.reactive_diagram = ReactiveDiagram()

        # (generator idtag, reason) of the units whose voltage control was discarded on loading
        self.discarded_voltage_controls: List[Tuple[str, str]] = list()

        self.slack = False

        # runtime state of the voltage control, toggled by the reactive limits outer loop
        self.voltage_control_enabled = False

        self.q_limit_type: Union[ReactiveLimitType, None] = None

        # net injections computed by the last solve
        self.calculated_p = np.nan

        self.calculated_q = np.nan

    def add_generator(self, generator: LfGenerator) -> "LfBus":
        """
        Attach a generating unit and aggregate its set points and limits
        :param generator: LfGenerator
        :return: self
        """
        self.generators.append(generator)

        self.generation_target_p += generator.target_p
        self.initial_generation_target_p = self.generation_target_p
        self.min_p += generator.min_p
        self.max_p += generator.max_p

        if generator.voltage_regulator_on:
            reason = generator.get_voltage_control_discard_reason()
            if reason != '':
                # the unit keeps its reactive set point instead
                generator.voltage_regulator_on = False
                self.discarded_voltage_controls.append((generator.idtag, reason))

        if generator.voltage_regulator_on:
            if self.voltage_control and abs(self.target_v - generator.target_v) > TARGET_V_EPSILON:
                raise ConflictingVoltageControlError(bus_id=self.idtag,
                                                     target_v=self.target_v,
                                                     other_target_v=generator.target_v)
            self.target_v = generator.target_v
            self.voltage_control = True
            self.voltage_control_enabled = True
        else:
            self.generation_target_q += generator.target_q
            self.initial_generation_target_q = self.generation_target_q

        if generator.reactive_limits is not None:
            self.reactive_diagram.add_diagram(generator.reactive_limits)
        else:
            self.reactive_diagram.add_diagram(MinMaxReactiveLimits(min_q=-np.inf, max_q=np.inf))

        return self

    @property
    def mode(self) -> BusMode:
        """
        Current bus type
        """
        if self.slack:
            return BusMode.Slack
        elif self.voltage_control_enabled:
            return BusMode.PV
        else:
            return BusMode.PQ

    def get_generation_p(self) -> float:
        """
        Active power produced at the bus: the calculated one for the slack, the target otherwise
        """
        if self.slack and not np.isnan(self.calculated_p):
            return self.calculated_p + self.load_target_p
        return self.generation_target_p

    def get_generation_q(self) -> float:
        """
        Reactive power produced at the bus: calculated while controlling the voltage, the target otherwise
        """
        if self.voltage_control_enabled and not np.isnan(self.calculated_q):
            return self.calculated_q + self.load_target_q
        return self.generation_target_q

    def get_min_q(self, p: Union[float, None] = None) -> float:
        """
        Minimum reactive power evaluated at the given active power
        :param p: active power (p.u.), the current generation if None
        """
        if p is None:
            p = self.get_generation_p()
        return self.reactive_diagram.get_min_q(p)

    def get_max_q(self, p: Union[float, None] = None) -> float:
        """
        Maximum reactive power evaluated at the given active power
        :param p: active power (p.u.), the current generation if None
        """
        if p is None:
            p = self.get_generation_p()
        return self.reactive_diagram.get_max_q(p)

    def update_generation_target_p(self):
        """
        Aggregate the active power set points of the units after they were moved
        """
        self.generation_target_p = sum(gen.target_p for gen in self.generators)

    def reset_voltage_control(self):
        """
        Restore the voltage control state given by the generators
        """
        self.voltage_control_enabled = self.voltage_control
        self.q_limit_type = None

    def update_state(self, reactive_limits: bool = False):
        """
        Project the solved state onto the generators of the bus
        :param reactive_limits: respect the unit reactive limits when dispatching Q
        """
        if len(self.generators) == 0:
            return

        # active power: what the slack produces above its set point is shared by participation
        delta_p = self.get_generation_p() - self.generation_target_p
        weights = np.array([gen.max_p / gen.droop if gen.participating and gen.droop != 0 else 0.0
                            for gen in self.generators])
        if weights.sum() <= 0.0:
            weights = np.ones(len(self.generators))
        weights /= weights.sum()
        for gen, w in zip(self.generators, weights):
            gen.p = gen.target_p + delta_p * w

        # reactive power
        if self.voltage_control:
            controllers = [gen for gen in self.generators if gen.voltage_regulator_on]
            others = [gen for gen in self.generators if not gen.voltage_regulator_on]
            q_remaining = self.get_generation_q() - sum(gen.target_q for gen in others)
            for gen in others:
                gen.q = gen.target_q
            dispatch_q(controllers, reactive_limits, q_remaining)

        else:
            for gen in self.generators:
                gen.q = gen.target_q

    def copy(self) -> "LfBus":
        """
        Copy of the bus parameters and state, without branches
        :return: LfBus
        """
        bus = LfBus(idtag=self.idtag,
                    name=self.name,
                    nominal_v=self.nominal_v,
                    v=self.v,
                    angle=self.angle,
                    load_target_p=self.load_target_p,
                    load_target_q=self.load_target_q,
                    shunt_g=self.shunt_g,
                    shunt_b=self.shunt_b,
                    load_participating=self.load_participating)

        bus.generators = [gen.copy() for gen in self.generators]
        bus.generation_target_p = self.generation_target_p
        bus.initial_generation_target_p = self.initial_generation_target_p
        bus.generation_target_q = self.generation_target_q
        bus.initial_generation_target_q = self.initial_generation_target_q
        bus.min_p = self.min_p
        bus.max_p = self.max_p
        bus.voltage_control = self.voltage_control
        bus.voltage_control_enabled = self.voltage_control_enabled
        bus.target_v = self.target_v
        bus.reactive_diagram = self.reactive_diagram
        bus.discarded_voltage_controls = list(self.discarded_voltage_controls)
        bus.slack = self.slack
        bus.q_limit_type = self.q_limit_type
        bus.calculated_p = self.calculated_p
        bus.calculated_q = self.calculated_q
        return bus

    def set_state_from(self, other: "LfBus"):
        """
        Take the mutable state of another copy of this bus
        :param other: LfBus with the same idtag
        """
        self.v = other.v
        self.angle = other.angle
        self.generation_target_p = other.generation_target_p
        self.generation_target_q = other.generation_target_q
        self.load_target_p = other.load_target_p
        self.load_target_q = other.load_target_q
        self.voltage_control_enabled = other.voltage_control_enabled
        self.slack = other.slack
        self.q_limit_type = other.q_limit_type
        self.calculated_p = other.calculated_p
        self.calculated_q = other.calculated_q
        for gen, other_gen in zip(self.generators, other.generators):
            gen.target_p = other_gen.target_p
            gen.p = other_gen.p
            gen.q = other_gen.q

    def __str__(self):
        return self.idtag

    def __repr__(self):
        return f"LfBus({self.num}, {self.idtag})"


def dispatch_q(generators: List[LfGenerator], reactive_limits: bool, q: float):
    """
    Dispatch a reactive power equally between generators.
    When a unit hits a limit it is pinned there and the residue goes to the rest,
    so a unit without limits takes whatever the limited ones cannot.
    :param generators: voltage controlling units
    :param reactive_limits: respect the units limits?
    :param q: reactive power to dispatch (p.u.)
    """
    if len(generators) == 0:
        return

    remaining = list(generators)
    q_to_dispatch = q
    while len(remaining) > 0:
        share = q_to_dispatch / len(remaining)
        residue = 0.0
        pinned = list()
        for gen in remaining:
            min_q = gen.get_min_q(gen.target_p)
            max_q = gen.get_max_q(gen.target_p)
            if reactive_limits and share < min_q:
                gen.q = min_q
                residue += share - min_q
                pinned.append(gen)
            elif reactive_limits and share > max_q:
                gen.q = max_q
                residue += share - max_q
                pinned.append(gen)
            else:
                gen.q = share

        if len(pinned) == 0 or len(pinned) == len(remaining):
            # the last units absorb whatever is left
            if len(pinned) == len(remaining) and residue != 0.0:
                for gen in remaining:
                    gen.q += residue / len(remaining)
            break

        remaining = [gen for gen in remaining if gen not in pinned]
        q_to_dispatch = sum(gen.q for gen in remaining) + residue
