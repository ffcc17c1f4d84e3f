#!/usr/bin/env python3
"""
Protocol translator certificate and crypto API example.

Registers as a protocol translator, then walks through the certificate
renewal and crypto calls using the ``DLMS`` certificate and key.
"""

import asyncio
import logging
import sys
from typing import Optional, Sequence

from prompt_toolkit.patch_stdout import patch_stdout

from ..log import configure_logging
from ..pt import DEFAULT_NAME, ProtocolTranslator
from .common import (Operator, build_parser, operator_from_args, options_from_args,
                     run_interactive)

logger = logging.getLogger(__name__)

TAG = "EdgePTExample"
CERTIFICATE_NAME = "DLMS"
SIGNED_DATA = "hashdata"


async def crypto_steps(edge: ProtocolTranslator, operator: Operator) -> None:
    await operator.hold_progress("Press Enter to connect Edge.")
    await edge.connect()
    logger.info("Connected to Edge")

    await operator.hold_progress("Press Enter to register as protocol translator.")
    response = await edge.register()
    logger.info(f"Registered as protocol translator. Response: {response}")

    await operator.hold_progress("Press Enter to get certificate from edge.")
    response = await edge.crypto_get_certificate(CERTIFICATE_NAME)
    logger.info(f"Get certificate response: {response}")

    await operator.hold_progress("Press Enter to get public key from edge.")
    response = await edge.crypto_get_public_key(CERTIFICATE_NAME)
    logger.info(f"Get public key response: {response}")
    # Kept for the ECDH step below
    peer_public_key = response.get("key_data") if isinstance(response, dict) else None

    await operator.hold_progress("Press Enter to add certificate to certificate renewal list.")
    response = await edge.certificate_renewal_list_set([CERTIFICATE_NAME])
    logger.info(f"Added certificate to list. Response: {response}")

    await operator.hold_progress("Press Enter to perform certificate renewal. "
                                 f"Note: only works if {CERTIFICATE_NAME} certificate exists in Edge.")
    response = await edge.renew_certificate(CERTIFICATE_NAME)
    logger.info(f"Performed certificate renewal. Response: {response}")

    await operator.hold_progress("Press Enter to generate and retrieve a random buffer from edge.")
    response = await edge.crypto_generate_random(32)
    logger.info(f"Generate random response: {response}")

    await operator.hold_progress("Press Enter to perform asymmetric sign operation on edge.")
    response = await edge.crypto_asymmetric_sign(CERTIFICATE_NAME, SIGNED_DATA)
    logger.info(f"Asymmetric sign response: {response}")
    signature = response.get("signature_data") if isinstance(response, dict) else None

    await operator.hold_progress("Press Enter to perform asymmetric verify operation on edge.")
    response = await edge.crypto_asymmetric_verify(CERTIFICATE_NAME, SIGNED_DATA, signature or "")
    logger.info(f"Asymmetric verify response: {response}")

    await operator.hold_progress("Press Enter to perform ECDH key agreement operation on edge.")
    response = await edge.crypto_ecdh_key_agreement(CERTIFICATE_NAME, peer_public_key or "")
    logger.info(f"ECDH key agreement response: {response}")


async def run(args) -> int:
    edge = ProtocolTranslator(args.name, options_from_args(args))
    operator = operator_from_args(args)
    with patch_stdout():
        return await run_interactive(edge, lambda: crypto_steps(edge, operator))


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser("Edge Core protocol translator crypto API example.", DEFAULT_NAME)
    args = parser.parse_args(argv)
    configure_logging(TAG, args.debug)
    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        return 1


if __name__ == "__main__":
    sys.exit(main())
