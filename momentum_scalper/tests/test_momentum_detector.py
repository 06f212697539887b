import asyncio

import pytest

from momentum_scalper.models import PriceSample
from momentum_scalper.momentum_detector import MomentumDetector, PairWatcher, calculate_momentum


def feed_detector(prices, start=0.0, step=1.0):
    detector = MomentumDetector('XUSDT')
    signal = None
    for i, price in enumerate(prices):
        signal = detector.update(price, start + i * step)
    return signal


def test_single_step_drop_is_a_reversal():
    signal = feed_detector([1.00, 1.00, 0.997, 1.00, 1.00])
    assert signal.has_reversal
    assert not signal.is_valid
    assert signal.confidence == 0.0


def test_steady_climb_is_valid():
    signal = feed_detector([1.0, 1.002, 1.004, 1.006, 1.008])
    assert signal.is_valid
    assert signal.velocity == pytest.approx(0.002)
    assert signal.acceleration == pytest.approx(0.0, abs=1e-9)
    assert signal.predicted_change_pct == pytest.approx(1.0, rel=1e-3)
    assert signal.confidence >= 0.7
    assert signal.last_price == pytest.approx(1.008)


def test_slow_climb_does_not_predict_enough():
    signal = feed_detector([1.0, 1.0001, 1.0002, 1.0003, 1.0004])
    assert signal.velocity > 0
    assert not signal.has_reversal
    assert signal.predicted_change_pct < 0.8
    assert not signal.is_valid


def test_too_few_samples_is_invalid():
    signal = feed_detector([1.0, 1.01, 1.02, 1.03])
    assert not signal.is_valid
    assert signal.velocity == 0.0


def test_zero_elapsed_time_is_invalid():
    signal = feed_detector([1.0, 1.01, 1.02, 1.03, 1.04], step=0.0)
    assert not signal.is_valid
    assert signal.velocity == 0.0


def test_window_uses_latest_samples_only():
    # early crash falls out of the 5-sample window
    signal = feed_detector([1.0, 0.9, 1.0, 1.002, 1.004, 1.006, 1.008, 1.010])
    assert not signal.has_reversal
    assert signal.is_valid


def test_calculate_momentum_needs_three_samples():
    samples = [PriceSample(1.0, 0.0), PriceSample(1.01, 1.0)]
    assert calculate_momentum(samples) == (0.0, 0.0)


def test_calculate_momentum_detects_fade():
    samples = [PriceSample(1.0, 0.0), PriceSample(1.004, 2.0), PriceSample(1.006, 4.0), PriceSample(1.005, 6.0)]
    velocity, acceleration = calculate_momentum(samples)
    assert velocity > 0
    assert acceleration < 0


class ScriptedFeed:
    def __init__(self, prices):
        self.prices = list(prices)

    async def get_price(self, symbol):
        price = self.prices.pop(0)
        if isinstance(price, Exception):
            raise price
        return price


class TickClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def run_ticks(watcher, clock, count):
    async def go():
        published = []
        for _ in range(count):
            signal = await watcher.tick()
            if signal is not None:
                published.append(signal)
            clock.now += 1.0
        return published
    return asyncio.run(go())


def test_watcher_publishes_once_within_cooldown():
    queue = asyncio.Queue()
    clock = TickClock()
    feed = ScriptedFeed([1.0, 1.002, 1.004, 1.006, 1.008, 1.010, 1.012])
    watcher = PairWatcher('XUSDT', feed, queue, clock=clock)

    published = run_ticks(watcher, clock, 7)

    assert len(published) == 1
    assert queue.qsize() == 1
    assert queue.get_nowait().symbol == 'XUSDT'
    assert watcher.signals_published == 1


def test_watcher_skips_feed_errors_and_bad_prices():
    queue = asyncio.Queue()
    clock = TickClock()
    feed = ScriptedFeed([ConnectionError('down'), 0.0, -1.0, 1.0])
    watcher = PairWatcher('XUSDT', feed, queue, clock=clock)

    run_ticks(watcher, clock, 4)

    assert len(watcher.detector.samples) == 1
    assert queue.empty()


def test_watcher_drops_signal_when_queue_full():
    queue = asyncio.Queue(maxsize=1)
    queue.put_nowait('occupied')
    clock = TickClock()
    feed = ScriptedFeed([1.0, 1.002, 1.004, 1.006, 1.008])
    watcher = PairWatcher('XUSDT', feed, queue, clock=clock)

    published = run_ticks(watcher, clock, 5)

    assert published == []
    assert watcher.signals_published == 0
    assert watcher.last_signal_time is None
