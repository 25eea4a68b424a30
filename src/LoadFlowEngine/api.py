# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from typing import Union
from LoadFlowEngine.basic_structures import Logger
from LoadFlowEngine.Network.network import LfNetwork
from LoadFlowEngine.Solvers.load_flow_observer import AcLoadFlowObserver
from LoadFlowEngine.Simulations.load_flow_options import LoadFlowOptions
from LoadFlowEngine.Simulations.ac_load_flow import AcLoadFlowEngine, AcLoadFlowParameters, AcLoadFlowResult
from LoadFlowEngine.Simulations.dc_load_flow import DcLoadFlowEngine, DcLoadFlowParameters, DcLoadFlowResult
from LoadFlowEngine.Simulations.load_flow_driver import LoadFlowDriver
from LoadFlowEngine.Simulations.load_flow_results import LoadFlowResults


def run_ac_load_flow(network: LfNetwork,
                     parameters: Union[AcLoadFlowParameters, None] = None,
                     observer: Union[AcLoadFlowObserver, None] = None,
                     logger: Union[Logger, None] = None) -> AcLoadFlowResult:
    """
    Run the AC load flow of a single connected network
    :param network: LfNetwork
    :param parameters: AcLoadFlowParameters, the ones of the default LoadFlowOptions if None
    :param observer: AcLoadFlowObserver
    :param logger: Logger
    :return: AcLoadFlowResult
    """
    if parameters is None:
        parameters = AcLoadFlowParameters.from_options(LoadFlowOptions())

    return AcLoadFlowEngine(network, parameters, observer, logger).run()


def run_dc_load_flow(network: LfNetwork,
                     parameters: Union[DcLoadFlowParameters, None] = None,
                     logger: Union[Logger, None] = None) -> DcLoadFlowResult:
    """
    Run the DC load flow of a single connected network
    :param network: LfNetwork
    :param parameters: DcLoadFlowParameters
    :param logger: Logger
    :return: DcLoadFlowResult
    """
    return DcLoadFlowEngine(network, parameters, logger).run()


def load_flow(network: LfNetwork,
              options: Union[LoadFlowOptions, None] = None,
              observer: Union[AcLoadFlowObserver, None] = None) -> LoadFlowResults:
    """
    Run the load flow of every connected component of a network
    :param network: LfNetwork
    :param options: LoadFlowOptions
    :param observer: AcLoadFlowObserver
    :return: LoadFlowResults
    """
    driver = LoadFlowDriver(network=network, options=options, observer=observer)

    driver.run()

    return driver.results
