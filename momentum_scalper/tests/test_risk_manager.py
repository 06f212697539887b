from momentum_scalper.risk_manager import RiskManager


class FakeToday:
    def __init__(self, date='2024-01-01'):
        self.date = date

    def __call__(self):
        return self.date


def test_allows_fresh_account():
    risk = RiskManager(100)
    state = risk.can_open_position(5, 0)
    assert state.can_trade
    assert state.reason is None


def test_three_losses_trip_the_latch():
    risk = RiskManager(100)
    for _ in range(3):
        risk.on_position_closed(-1.0)

    assert risk.get_risk_state().trading_stopped
    state = risk.can_open_position(5, 0)
    assert not state.can_trade
    assert 'Consecutive losses' in state.reason


def test_breakeven_close_counts_as_loss():
    risk = RiskManager(100)
    risk.on_position_closed(0.0)
    assert risk.consecutive_losses == 1


def test_win_resets_loss_streak():
    risk = RiskManager(100)
    risk.on_position_closed(-1.0)
    risk.on_position_closed(-1.0)
    risk.on_position_closed(0.5)
    assert risk.consecutive_losses == 0
    assert risk.can_open_position(5, 0).can_trade


def test_stop_latch_checked_before_position_cap():
    risk = RiskManager(100)
    risk.stop_trading('manual')
    state = risk.can_open_position(5, 5)
    assert state.reason == 'Trading stopped: manual'


def test_position_cap_checked_before_daily_limit():
    risk = RiskManager(100, params={'max_daily_trades': 1})
    risk.on_position_opened()
    state = risk.can_open_position(2, 2)
    assert state.reason == 'Max open positions reached: 2/2'

    state = risk.can_open_position(2, 1)
    assert state.reason == 'Daily trades limit reached: 1/1'


def test_daily_counter_resets_on_new_utc_day():
    today = FakeToday('2024-01-01')
    risk = RiskManager(100, params={'max_daily_trades': 2}, today=today)
    risk.on_position_opened()
    risk.on_position_opened()
    assert not risk.can_open_position(5, 0).can_trade

    today.date = '2024-01-02'
    state = risk.can_open_position(5, 0)
    assert state.can_trade
    assert state.daily_trades_count == 0


def test_drawdown_trips_latch_once():
    risk = RiskManager(100, params={'max_drawdown_pct': 20})
    risk.update_balance(120)
    risk.update_balance(95)
    state = risk.get_risk_state()
    assert state.trading_stopped
    assert state.current_drawdown_pct > 20
    first_reason = risk.stop_reason

    risk.update_balance(80)
    assert risk.stop_reason == first_reason


def test_drawdown_below_limit_keeps_trading():
    risk = RiskManager(100, params={'max_drawdown_pct': 20})
    risk.update_balance(90)
    assert risk.current_drawdown_pct == 10
    assert risk.can_open_position(5, 0).can_trade


def test_resume_clears_latch_and_streak():
    risk = RiskManager(100)
    for _ in range(3):
        risk.on_position_closed(-1.0)
    risk.resume_trading()

    state = risk.can_open_position(5, 0)
    assert state.can_trade
    assert state.consecutive_losses == 0
    assert not state.trading_stopped


def test_reset_daily_metrics():
    risk = RiskManager(100)
    risk.on_position_opened()
    risk.reset_daily_metrics()
    assert risk.daily_trades == 0
