"""
Position Manager - position lifecycle engine
Opening -> Active -> Closing -> Closed (or back to Active on a failed sell)
Exit rules per tick, first match wins:
  timeout, take_profit, momentum_fade, price_stale, stop_loss
"""

import asyncio
import logging
import time
from collections import deque
from typing import Awaitable, Callable, Dict, List, Optional

from momentum_scalper import config
from momentum_scalper.capital_ledger import CapitalLedger
from momentum_scalper.interfaces import OrderAdapter, PriceFeed
from momentum_scalper.models import MomentumSignal, OrderFailed, OrderResult, Position, PositionStatus, RiskState
from momentum_scalper.momentum_detector import calculate_momentum
from momentum_scalper.risk_manager import RiskManager
from momentum_scalper.trade_logger import TradeLogger

logger = logging.getLogger(__name__)

PARTIAL_FILL_TOLERANCE = 1e-6


class PositionManager:
    """Owns the live position map and reconciles it with the ledger and risk gate"""

    def __init__(self, price_feed: PriceFeed, order_adapter: OrderAdapter,
                 initial_balance: Optional[float] = None, params: Optional[Dict] = None,
                 ledger: Optional[CapitalLedger] = None, risk_manager: Optional[RiskManager] = None,
                 trade_logger: Optional[TradeLogger] = None,
                 balance_provider: Optional[Callable[[], Awaitable[float]]] = None,
                 clock: Callable[[], float] = time.time):
        self.params = {
            **config.RISK_PARAMS,
            **config.EXIT_PARAMS,
            **config.EXECUTION_PARAMS,
            **config.REALTIME_CONFIG,
            **(params or {}),
        }
        if initial_balance is None:
            initial_balance = config.ACCOUNT_SIZE

        self.price_feed = price_feed
        self.order_adapter = order_adapter
        self.ledger = ledger or CapitalLedger(initial_balance)
        self.risk_manager = risk_manager or RiskManager(initial_balance, self.params)
        self.trade_logger = trade_logger
        self.balance_provider = balance_provider
        self.clock = clock

        self.positions: Dict[str, Position] = {}  # symbol -> live position
        self.last_rejection_reason = ''
        self.running = False
        self._monitor_task = None
        self._trade_counter = 0
        self._last_status_log = 0.0
        self._last_balance_sync = 0.0

        # Performance tracking
        self.trades_opened = 0
        self.trades_closed = 0
        self.realized_pnl = 0.0

    # ------------------------------------------------------------------ open

    async def open_position(self, symbol: str, signal: MomentumSignal) -> bool:
        """Open a position on a valid momentum signal"""
        if not signal.is_valid:
            logger.debug(f"Ignoring invalid signal for {symbol}")
            return False

        if symbol in self.positions:
            logger.debug(f"Already have a position in {symbol}")
            return False

        risk_state = self.risk_manager.can_open_position(self.params['max_open_positions'], len(self.positions))
        if not risk_state.can_trade:
            self._reject(symbol, risk_state.reason)
            return False

        position_size = self._calculate_position_size()
        if position_size <= 0:
            self._reject(symbol, f"Insufficient balance: free={self.ledger.free_balance:.2f} "
                                 f"< min position {self.params['min_position_size']}")
            return False

        if not self.ledger.reserve(position_size):
            self._reject(symbol, f"Failed to reserve {position_size:.2f} (free={self.ledger.free_balance:.2f})")
            return False

        now = self.clock()
        position = Position(
            symbol=symbol,
            entry_price=signal.last_price,
            invested_amount=position_size,
            quantity=0.0,
            entry_time=now,
            exit_deadline=now + self.params['max_hold_duration_seconds'],
            take_profit_target=0.0,
            peak_price=signal.last_price,
            last_price_update=now,
            current_price=signal.last_price,
            status=PositionStatus.OPENING,
            trade_id=self._next_trade_id(symbol),
            price_history=deque(maxlen=self.params['history_size']),
        )
        self.positions[symbol] = position

        try:
            result = await self._submit(self.order_adapter.execute_buy(symbol, position_size), 'buy')
        except asyncio.CancelledError:
            self._discard_attempt(position, position_size, 'open cancelled')
            raise

        if not result.success:
            self._discard_attempt(position, position_size, result.reason)
            return False

        fill_price = result.average_price if result.average_price > 0 else signal.last_price
        if fill_price <= 0 and result.filled > 0:
            fill_price = position_size / result.filled
        if fill_price <= 0:
            self._discard_attempt(position, position_size, 'no fill price or quantity')
            return False

        quantity = result.filled if result.filled > 0 else position_size / fill_price
        invested = position_size
        cost = quantity * fill_price
        if cost < position_size * (1 - PARTIAL_FILL_TOLERANCE):
            logger.warning(f"Partial fill for {symbol}: {cost:.2f} of {position_size:.2f}, returning remainder")
            self.ledger.cancel(position_size - cost)
            invested = cost

        now = self.clock()
        position.entry_price = fill_price
        position.invested_amount = invested
        position.quantity = quantity
        position.entry_time = now
        position.exit_deadline = now + self.params['max_hold_duration_seconds']
        position.take_profit_target = fill_price * (1 + self.params['target_profit_pct'] / 100)
        position.peak_price = fill_price
        position.record_price(fill_price, now)
        position.status = PositionStatus.ACTIVE

        self.risk_manager.on_position_opened()
        self.trades_opened += 1
        self._log_trade({
            'event': 'TRADE_OPEN',
            'trade_id': position.trade_id,
            'symbol': symbol,
            'invested': invested,
            'quantity': quantity,
            'entry_price': fill_price,
            'predicted_change_pct': signal.predicted_change_pct,
            'confidence': signal.confidence,
            'balance_before': self.ledger.total_balance,
        })

        logger.info(f"✅ Position opened: {symbol} | invested={invested:.2f}, quantity={quantity:.8f}, "
                    f"entryPrice={fill_price:.8f}, predictedChange={signal.predicted_change_pct:.3f}%, "
                    f"confidence={signal.confidence:.2f}")
        return True

    def _calculate_position_size(self) -> float:
        """Fixed share of free balance, clamped to [min, max]; 0 when below min"""
        size = self.ledger.free_balance * self.params['position_size_pct'] / 100
        if size < self.params['min_position_size']:
            return 0.0
        return min(size, self.params['max_position_size'])

    def _discard_attempt(self, position: Position, reserved: float, reason: str):
        self.ledger.cancel(reserved)
        position.status = PositionStatus.FAILED
        if self.positions.get(position.symbol) is position:
            del self.positions[position.symbol]
        self.last_rejection_reason = f"Buy failed: {reason}"
        logger.error(f"❌ Failed to buy {position.symbol}: {reason}")

    def _reject(self, symbol: str, reason: str):
        self.last_rejection_reason = reason
        logger.warning(f"⚠️ Cannot open position for {symbol}: {reason}")

    def _next_trade_id(self, symbol: str) -> str:
        self._trade_counter += 1
        return f"{symbol}-{int(self.clock() * 1000)}-{self._trade_counter}"

    async def _submit(self, order_call: Awaitable[OrderResult], side: str) -> OrderResult:
        """Await an adapter call with a timeout, folding errors into OrderFailed"""
        timeout = self.params['order_timeout_seconds']
        try:
            return await asyncio.wait_for(order_call, timeout=timeout)
        except asyncio.TimeoutError:
            return OrderFailed(f"{side} timed out after {timeout}s")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            return OrderFailed(f"{side} error: {e}")

    # ------------------------------------------------------------- evaluate

    def evaluate_exit(self, position: Position, now: float, price_fresh: bool = True) -> Optional[str]:
        """Exit reason for a position, or None. Priority order is fixed."""
        p = self.params

        if now - position.entry_time >= p['max_hold_duration_seconds']:
            return 'timeout'

        profit_pct = position.profit_pct()

        if price_fresh:
            if profit_pct >= p['target_profit_pct']:
                return 'take_profit'

            velocity, acceleration = calculate_momentum(position.price_history)
            fading = velocity <= 0 or acceleration < p['fade_acceleration_floor']
            if fading and profit_pct >= p['min_profit_floor_pct']:
                return 'momentum_fade'

        if now - position.last_price_update >= p['stale_feed_seconds']:
            return 'price_stale'

        if price_fresh and profit_pct < -p['stop_loss_pct']:
            return 'stop_loss'

        return None

    async def _evaluate_position(self, position: Position) -> Optional[str]:
        price_fresh = False
        try:
            price = await self.price_feed.get_price(position.symbol)
            if price and price > 0:
                position.record_price(price, self.clock())
                price_fresh = True
            else:
                logger.debug(f"Skipping non-positive price for {position.symbol}: {price}")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"Price fetch failed for {position.symbol}: {e}")

        return self.evaluate_exit(position, self.clock(), price_fresh)

    async def check_all_positions(self) -> List[str]:
        """One evaluation tick over every active position. Returns symbols closed."""
        to_close = []
        for symbol, position in list(self.positions.items()):
            if position.status != PositionStatus.ACTIVE:
                continue
            try:
                reason = position.pending_exit or await self._evaluate_position(position)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Error checking position {symbol}: {e}")
                continue
            if reason:
                to_close.append((symbol, reason))

        closed = []
        for symbol, reason in to_close:
            if await self.close_position(symbol, reason):
                closed.append(symbol)

        self._maybe_log_status()
        return closed

    def _maybe_log_status(self):
        now = self.clock()
        if now - self._last_status_log < self.params['status_log_seconds']:
            return
        self._last_status_log = now
        if not self.positions:
            return
        for position in self.positions.values():
            velocity, _ = calculate_momentum(position.price_history)
            logger.info(f"📊 Position: {position.symbol} | price={position.current_price:.8f}, "
                        f"profit={position.profit_pct():.3f}%, momentum={velocity:.6f}/s, "
                        f"timeHeld={now - position.entry_time:.1f}s, status={position.status.value}")
        ledger = self.ledger.snapshot()
        logger.info(f"📊 STATUS: Active: {len(self.positions)}/{self.params['max_open_positions']}, "
                    f"Balance: {ledger['total_balance']:.2f}, Free: {ledger['free_balance']:.2f}, "
                    f"Locked: {ledger['locked_balance']:.2f}, Peak: {ledger['peak_balance']:.2f}")

    # ---------------------------------------------------------------- close

    async def close_position(self, symbol: str, reason: str, force: bool = False) -> bool:
        """Sell the full quantity. A failed sell puts the position back to Active;
        a partial fill settles the sold share and returns False with the exit still owed."""
        position = self.positions.get(symbol)
        if position is None:
            return False
        if position.status == PositionStatus.OPENING:
            logger.warning(f"Cannot close {symbol} while its buy is in flight")
            return False
        if position.status != PositionStatus.ACTIVE and not force:
            return False

        position.status = PositionStatus.CLOSING
        position.close_attempts += 1

        try:
            result = await self._submit(self.order_adapter.execute_sell(symbol, position.quantity), 'sell')
        except asyncio.CancelledError:
            position.status = PositionStatus.ACTIVE
            raise

        if not result.success:
            logger.error(f"❌ Failed to sell {symbol} ({reason}, attempt {position.close_attempts}): {result.reason}")
            position.status = PositionStatus.ACTIVE
            return False

        exit_price = result.average_price if result.average_price > 0 else position.current_price
        filled = min(result.filled, position.quantity) if result.filled > 0 else position.quantity

        if filled < position.quantity * (1 - PARTIAL_FILL_TOLERANCE):
            self._settle_partial_sell(position, filled, exit_price, reason)
            return False

        proceeds = filled * exit_price
        balance_before = self.ledger.total_balance
        self.ledger.release(position.invested_amount, proceeds)
        self.risk_manager.update_balance(self.ledger.total_balance)

        # Earlier partial sells count toward the same trade
        initial_invested = position.invested_amount + position.realized_cost
        profit = position.realized_profit + proceeds - position.invested_amount
        profit_pct = profit / initial_invested * 100 if initial_invested > 0 else 0.0
        multiplier = exit_price / position.entry_price if position.entry_price > 0 else 0.0
        time_held = self.clock() - position.entry_time

        self.risk_manager.on_position_closed(profit)

        position.status = PositionStatus.CLOSED
        if self.positions.get(symbol) is position:
            del self.positions[symbol]

        self.trades_closed += 1
        self.realized_pnl += profit
        self._log_trade({
            'event': 'TRADE_CLOSE',
            'trade_id': position.trade_id,
            'symbol': symbol,
            'exit_price': exit_price,
            'multiplier': multiplier,
            'profit': profit,
            'profit_pct': profit_pct,
            'reason': reason,
            'balance_before': balance_before,
            'balance_after': self.ledger.total_balance,
        })

        logger.info(f"✅ Position closed: {symbol} | reason={reason}, multiplier={multiplier:.4f}x, "
                    f"profit={profit:.2f} ({profit_pct:.3f}%), timeHeld={time_held:.1f}s")
        return True

    def _settle_partial_sell(self, position: Position, filled: float, exit_price: float, reason: str):
        """Settle the sold share and keep the rest live with its exit still owed"""
        sold_cost = position.invested_amount * filled / position.quantity
        proceeds = filled * exit_price
        profit = proceeds - sold_cost

        self.ledger.release(sold_cost, proceeds)
        self.risk_manager.update_balance(self.ledger.total_balance)

        position.quantity -= filled
        position.invested_amount -= sold_cost
        position.realized_cost += sold_cost
        position.realized_profit += profit
        position.pending_exit = reason
        position.status = PositionStatus.ACTIVE

        self._log_trade({
            'event': 'TRADE_PARTIAL_CLOSE',
            'trade_id': position.trade_id,
            'symbol': position.symbol,
            'exit_price': exit_price,
            'filled': filled,
            'remaining': position.quantity,
            'profit': profit,
            'reason': reason,
            'balance_after': self.ledger.total_balance,
        })
        logger.warning(f"Partial sell for {position.symbol}: {filled:.8f} sold, "
                       f"{position.quantity:.8f} left, profit so far={position.realized_profit:.2f}")

    async def close_all_positions(self):
        """Shutdown path: force every live position through the close path"""
        await self.stop_monitoring()

        retries = max(1, int(self.params['shutdown_sell_retries']))
        delay = self.params['shutdown_retry_delay_seconds']

        for symbol in list(self.positions.keys()):
            position = self.positions.get(symbol)
            if position is None:
                continue
            if position.status == PositionStatus.OPENING:
                logger.warning(f"Skipping {symbol} on shutdown: buy still in flight")
                continue

            for attempt in range(1, retries + 1):
                if await self.close_position(symbol, 'shutdown', force=True):
                    break
                if attempt < retries:
                    await asyncio.sleep(delay)
            else:
                logger.error(f"Position {symbol} still open after {retries} shutdown sell attempts")

        if self.positions:
            logger.error(f"{len(self.positions)} positions left open at shutdown: {list(self.positions)}")

    # ----------------------------------------------------------- monitoring

    def start_monitoring(self):
        if self._monitor_task is not None:
            return
        self.running = True
        self._monitor_task = asyncio.create_task(self._monitoring_loop())

    async def stop_monitoring(self):
        self.running = False
        task, self._monitor_task = self._monitor_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _monitoring_loop(self):
        interval = self.params['check_interval_seconds']
        while self.running:
            try:
                await self.check_all_positions()
                await self._maybe_sync_balance()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Position monitoring error: {e}")
            await asyncio.sleep(interval)

    async def _maybe_sync_balance(self):
        if self.balance_provider is None:
            return
        now = self.clock()
        if now - self._last_balance_sync < self.params['balance_sync_seconds']:
            return
        self._last_balance_sync = now
        try:
            real_cash = await self.balance_provider()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"Balance sync failed: {e}")
            return
        self.sync_balance(real_cash)

    def sync_balance(self, real_cash: float) -> bool:
        """Reconcile the ledger with an external cash balance.

        Open positions are carried at cost, so the ledger total is cash plus
        the invested amount of every live position. Skipped while an order is
        in flight.
        """
        if any(p.status in (PositionStatus.OPENING, PositionStatus.CLOSING) for p in self.positions.values()):
            logger.debug("Balance sync skipped: order in flight")
            return False
        committed = sum(p.invested_amount for p in self.positions.values())
        self.ledger.sync_total_balance(real_cash + committed)
        self.risk_manager.update_balance(self.ledger.total_balance)
        return True

    # -------------------------------------------------------------- queries

    def _log_trade(self, event: Dict):
        if self.trade_logger is not None:
            self.trade_logger.log(event)

    def get_stats(self) -> Dict:
        now = self.clock()
        positions = [
            {
                'id': p.trade_id,
                'symbol': p.symbol,
                'multiplier': round(p.multiplier, 4),
                'age_seconds': round(now - p.entry_time, 1),
                'status': p.status.value,
            }
            for p in self.positions.values()
        ]
        return {
            'active_count': len(self.positions),
            'available_slots': max(0, self.params['max_open_positions'] - len(self.positions)),
            'positions': positions,
        }

    def get_performance_stats(self) -> Dict:
        return {
            'trades_opened': self.trades_opened,
            'trades_closed': self.trades_closed,
            'realized_pnl': self.realized_pnl,
            **self.ledger.snapshot(),
        }

    def get_current_balance(self) -> float:
        return self.ledger.total_balance

    def get_peak_balance(self) -> float:
        return self.ledger.peak_balance

    def get_free_balance(self) -> float:
        return self.ledger.free_balance

    def has_enough_balance_for_trading(self) -> bool:
        return self.ledger.free_balance >= self.params['min_position_size']

    def get_risk_state(self) -> RiskState:
        return self.risk_manager.get_risk_state()

    def resume_trading(self):
        self.risk_manager.resume_trading()
