"""Web processing service package."""

from l2a_ondemand.infrastructure.wps.client import WebProcessClient
from l2a_ondemand.infrastructure.wps.parameters import DataInputsFormatter, L2A_PROCESS

__all__ = ["WebProcessClient", "DataInputsFormatter", "L2A_PROCESS"]
