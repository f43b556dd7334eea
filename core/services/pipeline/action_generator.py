"""
Action Generator - random sybil actions
Picks two assets and an amount, runs the pipeline, reports per action
"""
import asyncio
import random
from typing import List, Optional, Tuple

from core.models.action_models import ActionOutcome
from core.services.assets.registry import AssetRegistry, to_base_units
from core.services.exceptions import ConfigurationError, SybilActionError
from infrastructure.logging.logger import get_logger
from .action_pipeline import ActionPipeline

logger = get_logger(__name__)


class ActionGenerator:
    """Driver for independent random actions"""

    def __init__(
        self,
        pipeline: ActionPipeline,
        registry: AssetRegistry,
        max_start_amount: float = 10.0,
        rng: Optional[random.Random] = None,
    ):
        self.pipeline = pipeline
        self.registry = registry
        self.max_start_amount = max_start_amount
        self.rng = rng or random.Random()

    def next_action(self) -> Tuple[str, str, int]:
        """Two distinct random symbols and a random input amount in base units"""
        source_symbol, dest_symbol = self.registry.pick_two_random(self.rng)
        display_amount = self.rng.random() * self.max_start_amount
        amount = to_base_units(self.registry.get(source_symbol), display_amount)
        return source_symbol, dest_symbol, amount

    async def run_one(self, index: int) -> ActionOutcome:
        """
        Run a single random action

        Action failures are reported in the outcome; ConfigurationError propagates
        """
        source_symbol, dest_symbol, amount = self.next_action()
        logger.info(f"🎲 Action #{index}: {amount} {source_symbol} → {dest_symbol}")

        try:
            result = await self.pipeline.execute(source_symbol, dest_symbol, amount)
        except ConfigurationError:
            raise
        except SybilActionError as e:
            logger.error(f"❌ Action #{index} failed ({type(e).__name__} at {getattr(e.stage, 'value', e.stage)}): {e}")
            return ActionOutcome(
                index=index,
                source_symbol=source_symbol,
                dest_symbol=dest_symbol,
                success=False,
                error=str(e),
                error_type=type(e).__name__,
                stage=e.stage,
                stranded=e.stranded,
            )
        except Exception as e:
            logger.error(f"❌ Action #{index} failed unexpectedly: {e}", exc_info=True)
            return ActionOutcome(
                index=index,
                source_symbol=source_symbol,
                dest_symbol=dest_symbol,
                success=False,
                error=str(e),
                error_type=type(e).__name__,
            )

        logger.info(f"✅ Action #{index} succeeded: {result.amount_in} {source_symbol} → {result.amount_out} {dest_symbol}")
        return ActionOutcome(
            index=index,
            source_symbol=source_symbol,
            dest_symbol=dest_symbol,
            success=True,
            result=result,
        )

    async def run(self, cycles: int = 1, concurrency: int = 1) -> List[ActionOutcome]:
        """
        Run `cycles` independent actions, at most `concurrency` at a time

        Raises:
            ConfigurationError: after cancelling the remaining actions
        """
        if cycles < 1:
            raise ConfigurationError(f"cycles must be at least 1, got {cycles}")
        if concurrency < 1:
            raise ConfigurationError(f"concurrency must be at least 1, got {concurrency}")

        semaphore = asyncio.Semaphore(concurrency)

        async def _bounded(index: int) -> ActionOutcome:
            async with semaphore:
                return await self.run_one(index)

        logger.info(f"🚀 Starting {cycles} action(s), concurrency {concurrency}")
        tasks = [asyncio.create_task(_bounded(i), name=f"action-{i}") for i in range(1, cycles + 1)]

        try:
            outcomes = await asyncio.gather(*tasks)
        except ConfigurationError:
            logger.error("❌ Configuration error, cancelling remaining actions")
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        except asyncio.CancelledError:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        succeeded = sum(1 for o in outcomes if o.success)
        logger.info(f"📊 Run complete: {succeeded}/{len(outcomes)} action(s) succeeded")
        return list(outcomes)
