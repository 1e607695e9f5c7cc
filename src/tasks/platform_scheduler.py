"""
Platform Scheduler

APScheduler jobs:
- Withdrawal confirmation: one-shot job per withdrawal
  (WITHDRAWAL_CONFIRM_DELAY_SECONDS after the request)
- Withdrawal sweep: every 60 sec, confirms withdrawals left pending
  (e.g. one-shot jobs lost on restart)
- Position auto-stop: settles active bots past their max_duration_days
"""
from datetime import datetime, timedelta, UTC
from typing import Optional

from loguru import logger
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

from config.config import (
    POSITION_AUTO_STOP_INTERVAL_SECONDS,
    WITHDRAWAL_CONFIRM_DELAY_SECONDS,
)
from src.core.exceptions import PlatformError
from src.database.crud import get_user_by_id
from src.database.engine import get_session_maker
from src.services.bot_lifecycle_service import BotLifecycleService
from src.services.wallet_service import WalletService


class PlatformScheduler:
    """
    APScheduler for ledger housekeeping.

    Jobs:
    - confirm_withdrawal_<id>: one-shot confirmation
    - withdrawal_sweep: pending withdrawals older than the delay
    - position_auto_stop: expired bot positions
    """

    def __init__(self):
        self.scheduler: Optional[AsyncIOScheduler] = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def start(self):
        if self._running:
            logger.warning("Platform scheduler already running")
            return

        self.scheduler = AsyncIOScheduler()

        self.scheduler.add_job(
            self._job_withdrawal_sweep,
            IntervalTrigger(seconds=60),
            id="withdrawal_sweep",
            name="Confirm pending withdrawals",
            replace_existing=True,
            max_instances=1,
        )

        self.scheduler.add_job(
            self._job_auto_stop,
            IntervalTrigger(seconds=POSITION_AUTO_STOP_INTERVAL_SECONDS),
            id="position_auto_stop",
            name="Auto-stop expired bot positions",
            replace_existing=True,
            max_instances=1,
        )

        self.scheduler.start()
        self._running = True

        logger.info(
            f"Platform scheduler started: withdrawals confirmed after "
            f"{WITHDRAWAL_CONFIRM_DELAY_SECONDS}s, auto-stop every "
            f"{POSITION_AUTO_STOP_INTERVAL_SECONDS}s"
        )

    def stop(self):
        if self.scheduler:
            self.scheduler.shutdown(wait=False)
            self._running = False
            logger.info("Platform scheduler stopped")

    def schedule_withdrawal_confirmation(self, transaction_id: int) -> bool:
        """
        Confirm a withdrawal after the configured delay

        Returns:
            False when the scheduler isn't running (the sweep picks it up later)
        """
        if not self._running:
            logger.debug(f"Scheduler not running, withdrawal {transaction_id} left for the sweep")
            return False

        run_at = datetime.now(UTC) + timedelta(seconds=WITHDRAWAL_CONFIRM_DELAY_SECONDS)
        self.scheduler.add_job(
            self._job_confirm_withdrawal,
            DateTrigger(run_date=run_at),
            args=[transaction_id],
            id=f"confirm_withdrawal_{transaction_id}",
            name=f"Confirm withdrawal {transaction_id}",
            replace_existing=True,
        )
        return True

    async def _job_confirm_withdrawal(self, transaction_id: int) -> bool:
        try:
            async with get_session_maker()() as session:
                transaction = await WalletService(session).confirm_withdrawal(transaction_id)
                if transaction:
                    logger.info(f"Withdrawal {transaction_id} confirmed")
                return transaction is not None
        except Exception as e:
            logger.error(f"Withdrawal confirmation {transaction_id} failed: {e}")
            return False

    async def _job_withdrawal_sweep(self) -> int:
        try:
            async with get_session_maker()() as session:
                stale_ids = await WalletService(session).list_stale_pending_withdrawals(
                    WITHDRAWAL_CONFIRM_DELAY_SECONDS
                )
        except Exception as e:
            logger.error(f"Withdrawal sweep failed: {e}")
            return 0

        confirmed = 0
        for transaction_id in stale_ids:
            if await self._job_confirm_withdrawal(transaction_id):
                confirmed += 1

        if confirmed:
            logger.info(f"Withdrawal sweep: {confirmed} confirmed")
        return confirmed

    async def _job_auto_stop(self) -> int:
        """Stop expired positions, each in its own transaction"""
        try:
            async with get_session_maker()() as session:
                expired = await BotLifecycleService(session).find_expired_positions()
                targets = [(position.id, position.user_id) for position in expired]
        except Exception as e:
            logger.error(f"Auto-stop scan failed: {e}")
            return 0

        stopped = 0
        for position_id, user_id in targets:
            async with get_session_maker()() as session:
                try:
                    user = await get_user_by_id(session, user_id)
                    if user is None:
                        continue
                    result = await BotLifecycleService(session).stop(user, position_id)
                    stopped += 1
                    logger.info(
                        f"Auto-stopped position {position_id} for user {user_id}: profit={result['profit']:.8f}"
                    )
                except PlatformError as e:
                    logger.warning(f"Auto-stop skipped position {position_id}: {e}")
                except Exception as e:
                    logger.error(f"Auto-stop of position {position_id} failed: {e}")

        return stopped


# Shared instance (started in the API lifespan)
platform_scheduler = PlatformScheduler()
