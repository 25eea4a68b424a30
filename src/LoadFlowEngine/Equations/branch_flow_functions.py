# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
"""
Closed table of the π model flow functions.

Every function receives the series admittance y = g + jb, the shunt admittance of the side it computes,
the ratios and phase shifts of both sides and the state (v1, v2, ph1, ph2), and returns
(value, d/dv1, d/dv2, d/dph1, d/dph2).

With θ = ph1 + a1 - ph2 - a2:

    P1 = (g + g1) r1² v1² - r1 r2 v1 v2 (g cosθ + b sinθ)
    Q1 = -(b + b1) r1² v1² - r1 r2 v1 v2 (g sinθ - b cosθ)
    P2 = (g + g2) r2² v2² - r1 r2 v1 v2 (g cosθ - b sinθ)
    Q2 = -(b + b2) r2² v2² + r1 r2 v1 v2 (g sinθ + b cosθ)
"""
from typing import Tuple
import numpy as np
import numba as nb
from LoadFlowEngine.enumerations import BranchSide, FlowQuantity


@nb.njit(cache=True)
def closed_p1(g, b, g_sh, b_sh, r1, r2, a1, a2, v1, v2, ph1, ph2) -> Tuple[float, float, float, float, float]:
    """
    Active power entering the branch at side 1
    """
    theta = ph1 + a1 - ph2 - a2
    cos_t = np.cos(theta)
    sin_t = np.sin(theta)
    k = r1 * r2
    a = g * cos_t + b * sin_t
    value = (g + g_sh) * r1 * r1 * v1 * v1 - k * v1 * v2 * a
    dv1 = 2.0 * (g + g_sh) * r1 * r1 * v1 - k * v2 * a
    dv2 = -k * v1 * a
    dph1 = k * v1 * v2 * (g * sin_t - b * cos_t)
    return value, dv1, dv2, dph1, -dph1


@nb.njit(cache=True)
def closed_q1(g, b, g_sh, b_sh, r1, r2, a1, a2, v1, v2, ph1, ph2) -> Tuple[float, float, float, float, float]:
    """
    Reactive power entering the branch at side 1
    """
    theta = ph1 + a1 - ph2 - a2
    cos_t = np.cos(theta)
    sin_t = np.sin(theta)
    k = r1 * r2
    a = g * sin_t - b * cos_t
    value = -(b + b_sh) * r1 * r1 * v1 * v1 - k * v1 * v2 * a
    dv1 = -2.0 * (b + b_sh) * r1 * r1 * v1 - k * v2 * a
    dv2 = -k * v1 * a
    dph1 = -k * v1 * v2 * (g * cos_t + b * sin_t)
    return value, dv1, dv2, dph1, -dph1


@nb.njit(cache=True)
def closed_p2(g, b, g_sh, b_sh, r1, r2, a1, a2, v1, v2, ph1, ph2) -> Tuple[float, float, float, float, float]:
    """
    Active power entering the branch at side 2
    """
    theta = ph1 + a1 - ph2 - a2
    cos_t = np.cos(theta)
    sin_t = np.sin(theta)
    k = r1 * r2
    a = g * cos_t - b * sin_t
    value = (g + g_sh) * r2 * r2 * v2 * v2 - k * v1 * v2 * a
    dv1 = -k * v2 * a
    dv2 = 2.0 * (g + g_sh) * r2 * r2 * v2 - k * v1 * a
    dph1 = k * v1 * v2 * (g * sin_t + b * cos_t)
    return value, dv1, dv2, dph1, -dph1


@nb.njit(cache=True)
def closed_q2(g, b, g_sh, b_sh, r1, r2, a1, a2, v1, v2, ph1, ph2) -> Tuple[float, float, float, float, float]:
    """
    Reactive power entering the branch at side 2
    """
    theta = ph1 + a1 - ph2 - a2
    cos_t = np.cos(theta)
    sin_t = np.sin(theta)
    k = r1 * r2
    a = g * sin_t + b * cos_t
    value = -(b + b_sh) * r2 * r2 * v2 * v2 + k * v1 * v2 * a
    dv1 = k * v2 * a
    dv2 = -2.0 * (b + b_sh) * r2 * r2 * v2 + k * v1 * a
    dph1 = k * v1 * v2 * (g * cos_t - b * sin_t)
    return value, dv1, dv2, dph1, -dph1


@nb.njit(cache=True)
def open_side_flow(g_eq, b_eq, rho, v) -> Tuple[float, float, float, float]:
    """
    Flow entering a branch whose other side is open: the connected side sees
    the equivalent shunt admittance g_eq + j b_eq behind its ratio rho.
    :return: p, dp/dv, q, dq/dv
    """
    k = rho * rho
    p = g_eq * k * v * v
    q = -b_eq * k * v * v
    return p, 2.0 * g_eq * k * v, q, -2.0 * b_eq * k * v


@nb.njit(cache=True)
def dc_flow(bdc, a1, a2, ph1, ph2) -> Tuple[float, float, float]:
    """
    Linearised active power entering at side 1
    :return: p1, dp1/dph1, dp1/dph2
    """
    return bdc * (ph1 - ph2 + a1 - a2), bdc, -bdc


CLOSED_BRANCH_FLOW_FUNCTIONS = {
    (BranchSide.ONE, FlowQuantity.ACTIVE): closed_p1,
    (BranchSide.ONE, FlowQuantity.REACTIVE): closed_q1,
    (BranchSide.TWO, FlowQuantity.ACTIVE): closed_p2,
    (BranchSide.TWO, FlowQuantity.REACTIVE): closed_q2,
}
