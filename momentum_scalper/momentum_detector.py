"""
Live Momentum Detection on a short rolling price window
Velocity / acceleration over the last 5 samples, projected 5 seconds forward
Valid signals are published to the engine through an asyncio.Queue
"""

import asyncio
import logging
import time
from collections import deque
from typing import Callable, Dict, Iterable, Optional, Tuple

import numpy as np

from momentum_scalper import config
from momentum_scalper.interfaces import PriceFeed
from momentum_scalper.models import MomentumSignal, PriceSample

logger = logging.getLogger(__name__)


def _window_arrays(samples: Iterable[PriceSample], window: int) -> Tuple[np.ndarray, np.ndarray]:
    recent = list(samples)[-window:]
    prices = np.array([s.price for s in recent], dtype=float)
    times = np.array([s.timestamp for s in recent], dtype=float)
    return prices, times


def _velocity_and_acceleration(prices: np.ndarray, times: np.ndarray) -> Optional[Tuple[float, float]]:
    """Returns None when the window spans no time. Acceleration is 0 when either half does."""
    elapsed = times[-1] - times[0]
    base_price = prices[0]
    if elapsed <= 0 or base_price <= 0:
        return None

    velocity = (prices[-1] - base_price) / base_price / elapsed

    mid = len(prices) // 2
    first_span = times[mid] - times[0]
    second_span = times[-1] - times[mid]
    if first_span <= 0 or second_span <= 0:
        return float(velocity), 0.0

    first_half_velocity = (prices[mid] - prices[0]) / base_price / first_span
    second_half_velocity = (prices[-1] - prices[mid]) / base_price / second_span
    acceleration = (second_half_velocity - first_half_velocity) / second_span

    return float(velocity), float(acceleration)


def calculate_momentum(samples: Iterable[PriceSample], window: int = 5,
                       min_samples: int = 3) -> Tuple[float, float]:
    """Velocity and acceleration over the most recent `window` samples.

    Used for exit evaluation on a position's own history. Returns (0, 0)
    when there is not enough data or time has not advanced.
    """
    prices, times = _window_arrays(samples, window)
    if len(prices) < min_samples:
        return 0.0, 0.0
    result = _velocity_and_acceleration(prices, times)
    if result is None:
        return 0.0, 0.0
    return result


class MomentumDetector:
    """Per-symbol rolling window and entry signal calculation"""

    def __init__(self, symbol: str, params: Optional[Dict] = None):
        self.symbol = symbol
        self.params = {**config.SIGNAL_CONFIG, **(params or {})}
        self.samples = deque(maxlen=self.params['max_samples'])

    def add_sample(self, price: float, timestamp: float):
        self.samples.append(PriceSample(price, timestamp))

    def update(self, price: float, timestamp: float) -> MomentumSignal:
        self.add_sample(price, timestamp)
        return self.calculate_signal()

    def calculate_signal(self) -> MomentumSignal:
        p = self.params
        window = p['min_samples']
        last_timestamp = self.samples[-1].timestamp if self.samples else 0.0

        if len(self.samples) < window:
            return MomentumSignal.invalid(self.symbol, last_timestamp)

        prices, times = _window_arrays(self.samples, window)
        result = _velocity_and_acceleration(prices, times)
        if result is None:
            return MomentumSignal.invalid(self.symbol, last_timestamp)
        velocity, acceleration = result

        step_returns = np.diff(prices) / prices[:-1]
        has_reversal = bool(np.any(step_returns < -p['reversal_drop_pct'] / 100))

        last_price = float(prices[-1])
        t = p['prediction_seconds']
        predicted_price = last_price * (1 + velocity * t + 0.5 * acceleration * t * t)
        predicted_change_pct = (predicted_price - last_price) / last_price * 100

        confidence = 0.0
        if velocity > 0 and not has_reversal:
            confidence = 0.5
            if acceleration >= 0:
                confidence += 0.2
            if velocity > p['strong_velocity']:
                confidence += 0.2
            if len(prices) >= window:
                confidence += 0.1
        confidence = min(max(confidence, 0.0), 1.0)

        is_valid = (
            velocity > 0
            and acceleration >= p['min_acceleration']
            and predicted_change_pct >= p['min_predicted_change_pct']
            and confidence >= p['min_confidence']
            and not has_reversal
        )

        return MomentumSignal(
            symbol=self.symbol,
            velocity=velocity,
            acceleration=acceleration,
            predicted_price=predicted_price,
            predicted_change_pct=predicted_change_pct,
            confidence=confidence,
            has_reversal=has_reversal,
            is_valid=is_valid,
            last_price=last_price,
            timestamp=last_timestamp,
        )


class PairWatcher:
    """Polls one symbol and publishes valid momentum signals to a queue"""

    def __init__(self, symbol: str, price_feed: PriceFeed, signal_queue: asyncio.Queue,
                 params: Optional[Dict] = None, interval: Optional[float] = None,
                 clock: Callable[[], float] = time.time):
        self.symbol = symbol
        self.price_feed = price_feed
        self.signal_queue = signal_queue
        self.detector = MomentumDetector(symbol, params)
        self.interval = interval if interval is not None else config.REALTIME_CONFIG['signal_interval_seconds']
        self.cooldown = self.detector.params['signal_cooldown_seconds']
        self.clock = clock
        self.running = False
        self.last_signal_time = None
        self.signals_published = 0

    async def tick(self) -> Optional[MomentumSignal]:
        """One poll. Returns the signal if one was published."""
        try:
            price = await self.price_feed.get_price(self.symbol)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"Price fetch failed for {self.symbol}: {e}")
            return None

        if not price or price <= 0:
            logger.debug(f"Skipping non-positive price for {self.symbol}: {price}")
            return None

        now = self.clock()
        signal = self.detector.update(price, now)
        if not signal.is_valid:
            return None

        if self.last_signal_time is not None and now - self.last_signal_time < self.cooldown:
            return None

        try:
            self.signal_queue.put_nowait(signal)
        except asyncio.QueueFull:
            logger.warning(f"Signal queue full, dropping signal for {self.symbol}")
            return None

        self.last_signal_time = now
        self.signals_published += 1
        logger.info(f"💎 Momentum detected: {self.symbol} | velocity={signal.velocity:.6f}/s, "
                    f"acceleration={signal.acceleration:.6f}/s², "
                    f"predictedChange={signal.predicted_change_pct:.3f}%, confidence={signal.confidence:.2f}")
        return signal

    async def run(self):
        self.running = True
        logger.info(f"👁️ Watching {self.symbol} every {self.interval}s")
        try:
            while self.running:
                await self.tick()
                await asyncio.sleep(self.interval)
        finally:
            self.running = False
            logger.info(f"👁️ Stopped watching {self.symbol}")

    def stop(self):
        self.running = False
