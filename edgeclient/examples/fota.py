#!/usr/bin/env python3
"""
Protocol translator firmware update (FOTA) example.

Registers a thermostat device carrying the firmware update objects. When a
manifest for the device arrives from the cloud, the firmware image is
downloaded through Edge Core and the device comes back with the new
component version.
"""

import asyncio
import logging
import sys
from typing import Optional, Sequence

from prompt_toolkit.patch_stdout import patch_stdout

from ..fota import DEVICE_ID, FirmwareUpdater, build_fota_device
from ..log import configure_logging
from ..pt import ProtocolTranslator
from .common import (Operator, build_parser, operator_from_args, options_from_args,
                     run_interactive)

logger = logging.getLogger(__name__)

TAG = "EdgePTExample"
DEFAULT_NAME = "simple-pt-example-fota"
INITIAL_VERSION = "0.0.0"


async def fota_steps(edge: ProtocolTranslator, operator: Operator, device_id: str = DEVICE_ID) -> None:
    await operator.hold_progress("Press Enter to connect Edge.")
    await edge.connect()
    logger.info("Connected to Edge")

    await operator.hold_progress("Press Enter to register as protocol translator.")
    response = await edge.register()
    logger.info(f"Registered as protocol translator. Response: {response}")

    await operator.hold_progress("Press Enter to register the example device.")
    response = await edge.device_register(build_fota_device(device_id, 21.5, 23.5, INITIAL_VERSION))
    logger.info(f"Registered an example device. Response: {response}")

    await operator.hold_progress("Press Enter to update example device values.")
    response = await edge.write(build_fota_device(device_id, 19.5, 20.5, INITIAL_VERSION))
    logger.info(f"Updated the resource values. Response: {response}")

    await operator.hold_progress("Press Enter to unregister the example device.")
    response = await edge.device_unregister(device_id)
    logger.info(f"Example device unregistered. Response: {response}")


async def run(args) -> int:
    edge = ProtocolTranslator(args.name, options_from_args(args))
    FirmwareUpdater(edge)
    operator = operator_from_args(args)
    with patch_stdout():
        return await run_interactive(edge, lambda: fota_steps(edge, operator))


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser("Edge Core protocol translator firmware update example.", DEFAULT_NAME)
    args = parser.parse_args(argv)
    configure_logging(TAG, args.debug)
    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        return 1


if __name__ == "__main__":
    sys.exit(main())
