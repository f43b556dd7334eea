#!/usr/bin/env python3
"""
Sybil bridge runner
Runs random swap → bridge → swap actions between Solana and Ethereum,
or resumes the redemption of a stuck transfer
"""
import argparse
import asyncio
import sys
from typing import List, Optional

from core.models.action_models import ChainId, SequenceHandle
from core.services.exceptions import ConfigurationError
from core.services.pipeline.factory import build_components
from infrastructure.config.settings import settings
from infrastructure.logging.logger import get_logger, setup_logging

logger = get_logger(__name__)


def parse_handle(text: str) -> SequenceHandle:
    """`CHAIN/EMITTER/SEQUENCE` as printed in stranded-funds reports"""
    try:
        chain, emitter, sequence = text.strip().split("/")
        handle = SequenceHandle(chain=ChainId(int(chain)), emitter_address=emitter.lower(), sequence=int(sequence))
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected CHAIN/EMITTER/SEQUENCE, got {text!r}") from None
    if len(handle.emitter_address) != 64:
        raise argparse.ArgumentTypeError("emitter must be 64 hex characters")
    return handle


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Random Wormhole swap → bridge → swap actions")
    parser.add_argument("--cycles", type=int, default=settings.trading.cycles, help="number of actions to run")
    parser.add_argument("--concurrency", type=int, default=settings.trading.concurrency, help="actions in flight at once")
    parser.add_argument(
        "--attestation-timeout",
        type=float,
        default=None,
        help="seconds to wait for guardian signatures (default from settings)",
    )
    parser.add_argument("--max-amount", type=float, default=None, help="upper bound of the random input amount")
    parser.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING...")
    parser.add_argument(
        "--resume",
        type=parse_handle,
        default=None,
        metavar="CHAIN/EMITTER/SEQUENCE",
        help="redeem a previously submitted transfer instead of running actions",
    )
    return parser


async def run(args: argparse.Namespace) -> int:
    components = await build_components(
        attestation_timeout=args.attestation_timeout,
        max_start_amount=args.max_amount,
    )
    try:
        if args.resume:
            destination = ChainId.ETHEREUM if args.resume.chain == ChainId.SOLANA else ChainId.SOLANA
            logger.info(f"🔁 Resuming transfer {args.resume} → {destination.label}")
            receipt = await components.bridge_client.redeem(args.resume, destination)
            logger.info(f"✅ Resume complete: tx {receipt.tx_id} (already executed: {receipt.already_executed})")
            return 0

        outcomes = await components.generator.run(cycles=args.cycles, concurrency=args.concurrency)
        for outcome in outcomes:
            if outcome.success:
                logger.info(
                    f"   #{outcome.index} ✅ {outcome.source_symbol} → {outcome.dest_symbol}: "
                    f"{outcome.result.amount_in} → {outcome.result.amount_out}"
                )
            else:
                logger.info(
                    f"   #{outcome.index} ❌ {outcome.source_symbol} → {outcome.dest_symbol}: "
                    f"{outcome.error_type} at {getattr(outcome.stage, 'value', outcome.stage)}"
                )
                if outcome.stranded:
                    logger.info(f"      💸 {outcome.stranded.describe()}")
        return 0
    finally:
        await components.close()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(level=args.log_level)

    logger.info(f"🚀 {settings.name} v{settings.version} ({settings.environment})")
    if settings.is_mainnet:
        logger.warning("⚠️ Running against mainnet contracts, funds are real")
    try:
        return asyncio.run(run(args))
    except ConfigurationError as e:
        logger.error(f"❌ Configuration error: {e}")
        return 1
    except KeyboardInterrupt:
        logger.warning("🛑 Interrupted")
        return 1
    except Exception as e:
        logger.error(f"❌ Unhandled error: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
