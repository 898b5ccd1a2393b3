"""
Trade Signal Generator

Turns GEX metrics into scored credit spread alerts.

Key patterns:
- Chain fetched through an injected ChainProvider (async boundary)
- generate_from_data() is synchronous and shared with the backtest engine
- Deterministic alert ids (strategy + symbol + expiration + short strike) so
  repeated cycles on an unchanged chain produce the same alerts
- Each strategy builder is isolated: an exception yields no alert, never a
  failed cycle

Strategy rules (per cycle, deduplicated by id, first wins):
- stable regime           -> Iron Condor
- net drift > +0.5        -> Bull Put Spread
- net drift < -0.5        -> Bear Call Spread
- net vanna > +15M        -> Bull Put Spread tagged vanna_crush (not in volatile regime)
- net vanna < -10M        -> Bear Call Spread tagged vanna_crush (not in volatile regime)
- |drift| <= 0.5, stable  -> both spreads
- volatile regime         -> one WATCH warning alert without legs
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Callable, Iterable, Optional

from loguru import logger

from gexsignal.analytics.gex_calculator import GammaExposureCalculator, expected_move
from gexsignal.config.engine_config import SignalSettings
from gexsignal.core.chain_parser import expiration_day, parse_chain
from gexsignal.core.market_time import hours_until_close, session_close, to_market_time
from gexsignal.core.models import GEXMetrics, OptionContract, OptionRight, OptionsChain, Regime
from gexsignal.exceptions import ChainParseError
from gexsignal.signals.models import (
    WARNING_ID_PREFIX,
    AlertStatus,
    GEXContext,
    LegAction,
    QualityAssessment,
    StrategyType,
    TradeAlert,
    TradeLeg,
)
from gexsignal.signals.providers import ChainProvider, fetch_with_aliases
from gexsignal.signals.quality import QualityScorer, weaker
from gexsignal.signals.trading_window import TradingWindow

if TYPE_CHECKING:
    from gexsignal.storage.alert_repository import AlertRepository

VANNA_CRUSH_TAG = "vanna_crush"


@dataclass(frozen=True, slots=True)
class SpreadSide:
    """One vertical: sold contract, bought contract and the net credit."""

    right: OptionRight
    short: OptionContract
    long: OptionContract
    credit: float

    @property
    def probability(self) -> float:
        return round((1 - abs(self.short.delta)) * 100, 1)

    def legs(self) -> tuple[TradeLeg, TradeLeg]:
        return (
            TradeLeg(LegAction.SELL, self.right, self.short.strike, round(self.short.mid, 2), self.short.delta),
            TradeLeg(LegAction.BUY, self.right, self.long.strike, round(self.long.mid, 2), self.long.delta),
        )


def format_strike(strike: float) -> str:
    return str(int(strike)) if float(strike).is_integer() else f"{strike}"


def find_target_expiration(expirations: Iterable[str], current_day: str) -> Optional[str]:
    """
    Expiration to trade: today's if listed, else the earliest on/after today,
    else the earliest overall.

    Args:
        expirations: Expiration keys (suffixes such as ':0' allowed)
        current_day: Trading day as YYYY-MM-DD
    """
    keys = list(expirations)
    if not keys:
        return None

    for key in keys:
        if expiration_day(key) == current_day:
            return key

    ordered = sorted(keys, key=expiration_day)
    upcoming = [key for key in ordered if expiration_day(key) >= current_day]
    return upcoming[0] if upcoming else ordered[0]


class TradeSignalGenerator:
    """
    Generate credit spread alerts from GEX metrics.

    **Live mode:** ``await generate_alerts(symbol)`` checks the trading
    window, fetches the chain, computes metrics, builds alerts and persists
    the non-warning ones.

    **Replay mode:** ``generate_from_data(...)`` builds alerts from
    precomputed metrics and a chain, with the evaluation time supplied by
    the caller. Nothing is persisted.

    Example:
        ```python
        generator = TradeSignalGenerator(provider=my_provider, repository=repo)
        alerts = await generator.generate_alerts("SPX")
        ```
    """

    def __init__(
        self,
        provider: Optional[ChainProvider] = None,
        repository: Optional["AlertRepository"] = None,
        calculator: Optional[GammaExposureCalculator] = None,
        scorer: Optional[QualityScorer] = None,
        settings: Optional[SignalSettings] = None,
        window: Optional[TradingWindow] = None,
    ):
        self.provider = provider
        self.repository = repository
        self.settings = settings or SignalSettings()
        self.calculator = calculator or GammaExposureCalculator(timezone=self.settings.timezone)
        self.scorer = scorer or QualityScorer()
        self.window = window or TradingWindow(
            timezone=self.settings.timezone,
            closing_buffer_minutes=self.settings.closing_buffer_minutes,
        )

    async def generate_alerts(self, symbol: str, now: Optional[datetime] = None) -> list[TradeAlert]:
        """
        Run one live signal cycle for a symbol.

        Returns an empty list outside the trading window, when no chain is
        available, when metrics are unavailable or when no expiration resolves.
        """
        status = self.window.status(now)
        if not status.can_open_new_alerts:
            logger.debug(f"Skipping {symbol} signals: {status.state.value} ({status.message})")
            return []

        if self.provider is None:
            logger.warning("No chain provider configured, cannot generate live alerts")
            return []

        raw = await fetch_with_aliases(self.provider, symbol, self.settings.symbol_aliases)
        try:
            chain = parse_chain(raw, symbol)
        except ChainParseError as e:
            logger.warning(f"Unusable chain for {symbol}: {e}")
            return []

        if chain is None:
            logger.warning(f"No option chain available for {symbol}")
            return []

        metrics = self.calculator.compute_metrics(chain, now)
        if metrics.current_price == 0:
            logger.warning(f"GEX metrics unavailable for {symbol} ({metrics.default_reason})")
            return []

        current_day = to_market_time(now, self.settings.timezone).date().isoformat()
        alerts = self.generate_from_data(symbol, metrics, chain, current_day, now, chain.open_price)

        if self.repository is not None:
            tradeable = [alert for alert in alerts if not alert.is_warning]
            if tradeable:
                inserted = await self.repository.insert_if_absent(tradeable)
                logger.info(f"✓ Persisted {inserted}/{len(tradeable)} new {symbol} alerts")

        return alerts

    async def get_alert_history(self, day: str, symbol: Optional[str] = None) -> list[TradeAlert]:
        """Persisted alerts generated on one trading day (YYYY-MM-DD), newest first."""
        if self.repository is None:
            return []
        return await self.repository.get_alerts_for_day(day, symbol)

    def generate_from_data(
        self,
        symbol: str,
        metrics: GEXMetrics,
        chain: OptionsChain,
        current_day: str,
        now: Optional[datetime] = None,
        open_price: Optional[float] = None,
    ) -> list[TradeAlert]:
        """
        Build alerts from precomputed metrics (shared by live and backtest).

        Args:
            symbol: Underlying symbol
            metrics: GEX metrics for the chain
            chain: Parsed chain the metrics came from
            current_day: Trading day (YYYY-MM-DD) used to pick the expiration
            now: Evaluation time (hours remaining, timestamps)
            open_price: Session open for quality scoring (current price if None)

        Returns:
            Alerts in rule order, deduplicated by id
        """
        if metrics.is_default or metrics.current_price <= 0:
            return []

        expiration = find_target_expiration(chain.expirations, current_day)
        if expiration is None:
            logger.debug(f"No expiration found for {symbol} on {current_day}")
            return []

        price = metrics.current_price
        contracts = chain.for_expiration(expiration)
        move = expected_move(contracts, price, self.calculator.settings.atm_tolerance) or metrics.expected_move

        context = GEXContext(
            regime=metrics.regime,
            total_gex=metrics.total_gex,
            gamma_flip=metrics.gamma_flip,
            call_wall=metrics.call_wall,
            put_wall=metrics.put_wall,
            net_drift=metrics.net_drift,
            net_vanna=metrics.net_vanna,
            expected_move=move,
            current_price=price,
        )
        generated_at = to_market_time(now, self.settings.timezone)
        hours = hours_until_close(generated_at, self.settings.timezone)
        session_open = open_price if open_price and open_price > 0 else price

        cycle = _Cycle(self, symbol, expiration, contracts, context, generated_at, hours, session_open)
        settings = self.settings
        drift = context.net_drift

        if context.regime == Regime.STABLE:
            cycle.add(self._guarded(cycle.iron_condor))
        if drift > settings.drift_threshold:
            cycle.add(self._guarded(cycle.bull_put))
        if drift < -settings.drift_threshold:
            cycle.add(self._guarded(cycle.bear_call))
        if context.net_vanna > settings.vanna_bullish_threshold and context.regime != Regime.VOLATILE:
            cycle.add(self._guarded(cycle.bull_put, (VANNA_CRUSH_TAG,)))
        if context.net_vanna < settings.vanna_bearish_threshold and context.regime != Regime.VOLATILE:
            cycle.add(self._guarded(cycle.bear_call, (VANNA_CRUSH_TAG,)))
        if abs(drift) <= settings.drift_threshold and context.regime == Regime.STABLE:
            cycle.add(self._guarded(cycle.bull_put))
            cycle.add(self._guarded(cycle.bear_call))
        if context.regime == Regime.VOLATILE:
            cycle.add(cycle.volatility_warning())

        alerts = list(cycle.alerts.values())
        logger.debug(
            f"{symbol} {expiration}: {len(alerts)} alerts "
            f"(regime={context.regime.value}, drift={drift:+.2f}, EM={move:.2f})"
        )
        return alerts

    def _guarded(self, builder: Callable[..., Optional[TradeAlert]], *args) -> Optional[TradeAlert]:
        try:
            return builder(*args)
        except Exception as e:
            logger.error(f"Strategy builder {builder.__name__} failed: {e}")
            return None

    def select_short_leg(
        self,
        contracts: Iterable[OptionContract],
        right: OptionRight,
        price: float,
        wall: float,
    ) -> Optional[OptionContract]:
        """
        Lowest-|delta| OTM contract within the wall buffer and delta band.

        PUT: strike < price and strike >= put_wall - buffer
        CALL: strike > price and strike <= call_wall + buffer
        """
        settings = self.settings
        candidates = []
        for contract in contracts:
            if contract.type != right:
                continue
            if right == OptionRight.PUT:
                in_zone = contract.strike < price and contract.strike >= wall - settings.wall_buffer
            else:
                in_zone = contract.strike > price and contract.strike <= wall + settings.wall_buffer
            if in_zone and settings.min_short_delta <= abs(contract.delta) <= settings.max_short_delta:
                candidates.append(contract)

        if not candidates:
            return None
        candidates.sort(key=lambda c: abs(c.delta))
        return candidates[0]

    def build_side(
        self,
        contracts: list[OptionContract],
        right: OptionRight,
        price: float,
        wall: float,
    ) -> Optional[SpreadSide]:
        """Short leg plus the long leg one spread width further OTM, if the credit clears the minimum."""
        settings = self.settings
        short = self.select_short_leg(contracts, right, price, wall)
        if short is None:
            return None

        long_strike = short.strike - settings.spread_width if right == OptionRight.PUT else short.strike + settings.spread_width
        long = next(
            (
                c for c in contracts
                if c.type == right and abs(c.strike - long_strike) < settings.strike_tolerance
            ),
            None,
        )
        if long is None:
            return None

        credit = short.mid - long.mid
        if credit <= settings.min_credit:
            return None

        return SpreadSide(right=right, short=short, long=long, credit=credit)


class _Cycle:
    """Per-cycle builder state: one expiration, one context, collected alerts."""

    def __init__(
        self,
        generator: TradeSignalGenerator,
        symbol: str,
        expiration: str,
        contracts: list[OptionContract],
        context: GEXContext,
        generated_at: datetime,
        hours_remaining: float,
        open_price: float,
    ):
        self.generator = generator
        self.symbol = symbol
        self.expiration = expiration
        self.contracts = contracts
        self.context = context
        self.generated_at = generated_at
        self.hours_remaining = hours_remaining
        self.open_price = open_price
        self.alerts: dict[str, TradeAlert] = {}

        settings = generator.settings
        validity = generated_at + timedelta(hours=settings.alert_validity_hours)
        close = session_close(generated_at.date(), settings.timezone)
        self.valid_until = max(min(validity, close), generated_at)

    def add(self, alert: Optional[TradeAlert]) -> None:
        if alert is None:
            return
        if alert.id in self.alerts:
            logger.debug(f"Duplicate alert {alert.id} skipped")
            return
        self.alerts[alert.id] = alert

    def _side(self, right: OptionRight) -> Optional[SpreadSide]:
        wall = self.context.put_wall if right == OptionRight.PUT else self.context.call_wall
        return self.generator.build_side(self.contracts, right, self.context.current_price, wall)

    def _score(self, side: SpreadSide) -> QualityAssessment:
        wall = self.context.put_wall if side.right == OptionRight.PUT else self.context.call_wall
        return self.generator.scorer.score(
            self.context,
            short_strike=side.short.strike,
            right=side.right,
            open_price=self.open_price,
            wall=wall,
            hours_remaining=self.hours_remaining,
        )

    def _inside_move(self, side: SpreadSide) -> bool:
        move = self.context.expected_move
        if move <= 0:
            return False
        price = self.context.current_price
        if side.right == OptionRight.PUT:
            return side.short.strike >= price - move
        return side.short.strike <= price + move

    def _alert(
        self,
        strategy: StrategyType,
        alert_id: str,
        sides: list[SpreadSide],
        quality: QualityAssessment,
        rationale: str,
        tags: tuple[str, ...],
    ) -> TradeAlert:
        width = self.generator.settings.spread_width
        credit = round(sum(side.credit for side in sides), 2)
        max_loss = round(width - credit, 2)
        legs = tuple(leg for side in sides for leg in side.legs())
        status = AlertStatus.WATCH if any(self._inside_move(side) for side in sides) else AlertStatus.ACTIVE
        risk_reward = f"1:{max_loss / credit:.1f}" if credit > 0 else "N/A"

        return TradeAlert(
            id=alert_id,
            strategy=strategy,
            underlying=self.symbol,
            expiration=self.expiration,
            legs=legs,
            net_credit=credit,
            max_loss=max_loss,
            max_profit=credit,
            probability=min(side.probability for side in sides),
            risk_reward=risk_reward,
            rationale=rationale,
            status=status,
            gex_context=self.context,
            generated_at=self.generated_at,
            valid_until=self.valid_until,
            quality=quality,
            tags=tags,
        )

    def bull_put(self, tags: tuple[str, ...] = ()) -> Optional[TradeAlert]:
        side = self._side(OptionRight.PUT)
        if side is None:
            return None

        ctx = self.context
        if VANNA_CRUSH_TAG in tags:
            reason = f"Vanna {ctx.net_vanna / 1e6:+.1f}M: IV crush pushes dealers to buy"
        else:
            reason = f"Drift {ctx.net_drift:+.2f} with {ctx.regime.value} regime"
        rationale = (
            f"{reason}. Short {format_strike(side.short.strike)}P above put wall "
            f"{format_strike(ctx.put_wall)}, flip {ctx.gamma_flip:.2f}"
        )
        alert_id = f"{StrategyType.BULL_PUT_SPREAD.code}-{self.symbol}-{self.expiration}-{format_strike(side.short.strike)}"
        return self._alert(StrategyType.BULL_PUT_SPREAD, alert_id, [side], self._score(side), rationale, tags)

    def bear_call(self, tags: tuple[str, ...] = ()) -> Optional[TradeAlert]:
        side = self._side(OptionRight.CALL)
        if side is None:
            return None

        ctx = self.context
        if VANNA_CRUSH_TAG in tags:
            reason = f"Vanna {ctx.net_vanna / 1e6:+.1f}M: IV expansion pushes dealers to sell"
        else:
            reason = f"Drift {ctx.net_drift:+.2f} with {ctx.regime.value} regime"
        rationale = (
            f"{reason}. Short {format_strike(side.short.strike)}C below call wall "
            f"{format_strike(ctx.call_wall)}, flip {ctx.gamma_flip:.2f}"
        )
        alert_id = f"{StrategyType.BEAR_CALL_SPREAD.code}-{self.symbol}-{self.expiration}-{format_strike(side.short.strike)}"
        return self._alert(StrategyType.BEAR_CALL_SPREAD, alert_id, [side], self._score(side), rationale, tags)

    def iron_condor(self) -> Optional[TradeAlert]:
        put_side = self._side(OptionRight.PUT)
        call_side = self._side(OptionRight.CALL)
        if put_side is None or call_side is None:
            return None

        ctx = self.context
        quality = weaker(self._score(put_side), self._score(call_side))
        rationale = (
            f"Positive GEX {ctx.total_gex / 1e9:.2f}B pins price between walls "
            f"{format_strike(ctx.put_wall)}/{format_strike(ctx.call_wall)}"
        )
        alert_id = (
            f"{StrategyType.IRON_CONDOR.code}-{self.symbol}-{self.expiration}-"
            f"{format_strike(put_side.short.strike)}-{format_strike(call_side.short.strike)}"
        )
        return self._alert(StrategyType.IRON_CONDOR, alert_id, [put_side, call_side], quality, rationale, ())

    def volatility_warning(self) -> TradeAlert:
        ctx = self.context
        distance_pct = abs(ctx.current_price - ctx.gamma_flip) / ctx.current_price * 100
        if ctx.total_gex < 0:
            rationale = f"Negative GEX {ctx.total_gex / 1e9:.2f}B: dealer hedging amplifies moves"
        else:
            rationale = f"Price {distance_pct:.2f}% from gamma flip {ctx.gamma_flip:.2f}: regime can turn"

        return TradeAlert(
            id=f"{WARNING_ID_PREFIX}{self.symbol}-{self.expiration}",
            strategy=StrategyType.REGIME_WARNING,
            underlying=self.symbol,
            expiration=self.expiration,
            legs=(),
            net_credit=0.0,
            max_loss=0.0,
            max_profit=0.0,
            probability=0.0,
            risk_reward="N/A",
            rationale=rationale,
            status=AlertStatus.WATCH,
            gex_context=ctx,
            generated_at=self.generated_at,
            valid_until=self.valid_until,
        )
