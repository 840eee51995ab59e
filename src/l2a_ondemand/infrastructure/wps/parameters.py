"""Formatting of the DATAINPUTS parameter of Execute requests."""

import time
from typing import Callable, Optional

from l2a_ondemand.domain.exceptions import ProtocolError
from l2a_ondemand.infrastructure.config.loader import TransformerConfig

L2A_PROCESS = "l2a"
TCI_PROCESS = "TCI"

L2A_USER_PRIORITY = 1

# Sent as-is: the service expects the braces already percent-encoded
L2A_DATATAKE_OPTIONS = "%7BfullDatatake:NO,fullSwath:NO%7D"


def _epoch_millis() -> int:
    return int(time.time() * 1000)


class DataInputsFormatter:
    """Builds the process specific DATAINPUTS string from configuration."""

    def __init__(self, config: TransformerConfig, clock: Optional[Callable[[], int]] = None):
        """
        Args:
            config: Transformer configuration
            clock: Source of the millisecond disambiguator (defaults to epoch millis)
        """
        self._config = config
        self._clock = clock or _epoch_millis

    def format(self, process_id: str, tile_id: str) -> str:
        """
        Format the inputs of a process.

        Raises:
            ProtocolError: If the process is unknown or not supported
        """
        if process_id == L2A_PROCESS:
            return self.format_l2a(tile_id)
        if process_id == TCI_PROCESS:
            raise ProtocolError(f"Process '{process_id}' not implemented")
        raise ProtocolError(f"Unknown process: {process_id}")

    def format_l2a(self, tile_id: str) -> str:
        """
        Inputs of the L1C to L2A reprocessing.

        The DW_ID disambiguator keeps two orders of the same tile from
        colliding on the service side.
        """
        pairs = [
            ("versionNumber", self._config.processor_version),
            ("userId", self._config.user_id),
            ("userPriority", L2A_USER_PRIORITY),
            ("resolution", self._config.resolution),
        ]
        product = f"s2pdi://PDI={tile_id}|DW_ID={self._clock()}|DW_OPT={L2A_DATATAKE_OPTIONS}"
        return "".join(f"{key}={value};" for key, value in pairs) + f"InputProducts={product}"
