"""
Momentum Scalping System
Pair watchers -> signal queue -> position engine -> paper/live order adapter
Every component runs as a task on one event loop
"""

import asyncio
import logging
import signal as sys_signal
import time
from typing import Dict, List, Optional

from momentum_scalper import config
from momentum_scalper.bybit_client import BybitClient
from momentum_scalper.interfaces import OrderAdapter, PriceFeed
from momentum_scalper.momentum_detector import PairWatcher
from momentum_scalper.paper_adapter import PaperOrderAdapter
from momentum_scalper.position_manager import PositionManager
from momentum_scalper.trade_logger import TradeLogger

logger = logging.getLogger(__name__)


class MomentumScalperSystem:
    def __init__(self, symbols: Optional[List[str]] = None, price_feed: Optional[PriceFeed] = None,
                 order_adapter: Optional[OrderAdapter] = None, trade_logger: Optional[TradeLogger] = None,
                 initial_balance: Optional[float] = None, params: Optional[Dict] = None):
        self.symbols = symbols or list(config.SYMBOLS)
        self.params = {**config.REALTIME_CONFIG, **(params or {})}
        initial_balance = config.ACCOUNT_SIZE if initial_balance is None else initial_balance

        self.price_feed = price_feed or BybitClient()
        self.order_adapter = order_adapter or PaperOrderAdapter(self.price_feed, initial_balance)
        self.trade_logger = trade_logger or TradeLogger()

        balance_provider = getattr(self.order_adapter, 'get_balance', None)
        self.position_manager = PositionManager(
            self.price_feed,
            self.order_adapter,
            initial_balance=initial_balance,
            params=params,
            trade_logger=self.trade_logger,
            balance_provider=balance_provider,
        )

        self.signal_queue = asyncio.Queue(maxsize=self.params['signal_queue_size'])
        self.watchers = [
            PairWatcher(symbol, self.price_feed, self.signal_queue, params=params,
                        interval=self.params['signal_interval_seconds'])
            for symbol in self.symbols
        ]

        # System state
        self.running = False
        self._tasks: List[asyncio.Task] = []
        self._shutdown_event = asyncio.Event()
        self._shutdown_done = False
        self.started_at = None

        # Performance tracking
        self.signals_processed = 0
        self.trades_executed = 0

    async def initialize(self):
        logger.info("🚀 Initializing Momentum Scalping System...")
        connect = getattr(self.price_feed, 'connect', None)
        if connect is not None:
            await connect()
        self.trade_logger.start()
        self._log_startup_summary()
        logger.info("✅ Momentum Scalping System ready!")

    def _log_startup_summary(self):
        risk = config.RISK_PARAMS
        exits = config.EXIT_PARAMS
        logger.info(f"💰 Balance: ${self.position_manager.get_current_balance():,.2f}")
        logger.info(f"👁️ Symbols: {', '.join(self.symbols)}")
        logger.info(f"📍 Max Open Positions: {risk['max_open_positions']}, size {risk['position_size_pct']}% of free")
        logger.info(f"🎯 Take Profit: {exits['target_profit_pct']}%, 🛡️ Stop Loss: {exits['stop_loss_pct']}%, "
                    f"⏱️ Max Hold: {exits['max_hold_duration_seconds']}s")

    async def run(self):
        """Start every task and block until shutdown is requested"""
        logger.info("🔥 Starting momentum scalping...")
        self.running = True
        self.started_at = time.time()

        for watcher in self.watchers:
            self._tasks.append(asyncio.create_task(watcher.run(), name=f"watcher-{watcher.symbol}"))
        self._tasks.append(asyncio.create_task(self._signal_consumer_loop(), name='signal-consumer'))
        self.position_manager.start_monitoring()

        try:
            await self._shutdown_event.wait()
        finally:
            self.running = False

    def request_shutdown(self):
        logger.info("Shutdown requested")
        self._shutdown_event.set()

    async def _signal_consumer_loop(self):
        """Drain the signal queue into the position engine, one signal at a time"""
        while self.running:
            signal = await self.signal_queue.get()
            try:
                self.signals_processed += 1
                if await self.position_manager.open_position(signal.symbol, signal):
                    self.trades_executed += 1
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Signal handling error for {signal.symbol}: {e}")
            finally:
                self.signal_queue.task_done()

    def get_performance_stats(self) -> Dict:
        return {
            'uptime_seconds': time.time() - self.started_at if self.started_at else 0.0,
            'signals_processed': self.signals_processed,
            'trades_executed': self.trades_executed,
            'signals_published': sum(w.signals_published for w in self.watchers),
            'positions': self.position_manager.get_stats(),
            'account': self.position_manager.get_performance_stats(),
            'risk': self.position_manager.get_risk_state(),
        }

    async def shutdown(self):
        """Stop producers, close every position, flush logs, release connections"""
        if self._shutdown_done:
            return
        self._shutdown_done = True
        logger.info("Shutting down momentum scalping system...")
        self.running = False
        self._shutdown_event.set()

        for watcher in self.watchers:
            watcher.stop()
        for task in self._tasks:
            task.cancel()
        if self._tasks:
            try:
                await asyncio.wait_for(asyncio.gather(*self._tasks, return_exceptions=True), timeout=5)
            except asyncio.TimeoutError:
                logger.warning("Some tasks didn't cancel in time")
        self._tasks = []

        try:
            await self.position_manager.close_all_positions()
        except Exception as e:
            logger.error(f"Error closing positions on shutdown: {e}")

        try:
            stats = self.get_performance_stats()
            logger.info(f"Final Performance: {stats}")
        except Exception as e:
            logger.error(f"Failed to collect final stats: {e}")

        try:
            await asyncio.wait_for(self.trade_logger.close(), timeout=5)
        except asyncio.TimeoutError:
            logger.warning("Trade logger flush timeout")

        try:
            await asyncio.wait_for(self.order_adapter.close(), timeout=2)
        except asyncio.TimeoutError:
            logger.warning("Order adapter close timeout")

        close_feed = getattr(self.price_feed, 'close', None)
        if close_feed is not None:
            try:
                await asyncio.wait_for(close_feed(), timeout=2)
            except asyncio.TimeoutError:
                logger.warning("Price feed disconnect timeout")

        logger.info("Momentum scalping system shutdown complete")


async def main():
    """Run until SIGINT / SIGTERM, then shut down gracefully"""
    system = MomentumScalperSystem()

    loop = asyncio.get_running_loop()
    for sig in (sys_signal.SIGTERM, sys_signal.SIGINT):
        try:
            loop.add_signal_handler(sig, system.request_shutdown)
        except NotImplementedError:
            # Windows event loops
            pass

    try:
        await system.initialize()
        await system.run()
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        return 1
    finally:
        await system.shutdown()

    return 0


if __name__ == "__main__":
    exit_code = asyncio.run(main())
    exit(exit_code)
