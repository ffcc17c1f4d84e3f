#!/usr/bin/env python3
"""
Gateway resource manager example.

Registers as a gateway resource manager, adds /33001/0/0 and /33001/0/1 to
the gateway and updates their values. Writes from the cloud to /33001/0/1
are logged while the example runs.
"""

import asyncio
import logging
import sys
from typing import Optional, Sequence

from prompt_toolkit.patch_stdout import patch_stdout

from ..grm import DEFAULT_NAME, GatewayResourceManager, build_example_resources
from ..log import configure_logging
from .common import (Operator, build_parser, operator_from_args, options_from_args,
                     run_interactive)

logger = logging.getLogger(__name__)

TAG = "EdgeGRMExample"
RESOURCE_NAME = "example-resource"


async def grm_steps(edge: GatewayResourceManager, operator: Operator) -> None:
    await operator.hold_progress("Press Enter to connect Edge.")
    await edge.connect()
    logger.info("Connected to Edge")

    await operator.hold_progress("Press Enter to register as Gateway Resource Manager.")
    response = await edge.register()
    logger.info(f"Registered as Gateway Resource Manager. Response: {response}")

    await operator.hold_progress("Press Enter to add the example resources.")
    response = await edge.add_resource(build_example_resources(RESOURCE_NAME, 1.0))
    logger.info("Created example resources - /33001/0/0 , /33001/0/1")
    logger.info(f"Added the example resources. Response: {response}")

    await operator.hold_progress("Press Enter to update example resource values.")
    response = await edge.write_resource_value(build_example_resources(RESOURCE_NAME, 2.0))
    logger.info(f"Updated the resource values. Response: {response}")


async def run(args) -> int:
    edge = GatewayResourceManager(args.name, options_from_args(args))
    operator = operator_from_args(args)
    with patch_stdout():
        return await run_interactive(edge, lambda: grm_steps(edge, operator))


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser("Edge Core gateway resource manager example.", DEFAULT_NAME)
    args = parser.parse_args(argv)
    configure_logging(TAG, args.debug)
    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        return 1


if __name__ == "__main__":
    sys.exit(main())
