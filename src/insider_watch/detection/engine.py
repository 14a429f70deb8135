"""
Rule-based suspicion scoring for individual trades.

Each trade is checked against a fixed table of rules. Every rule that fires
adds a non-negative delta to the score and a reason line naming the delta.
The summed score is capped at 100 and compared against the configured
minimum to decide whether the trade is suspicious:

1. Large trade value (scaled, capped at 30)
2. Entry at an extreme low price (+25)
3. Entry at an extreme high price (+15, only when rule 2 did not fire)
4. Trade placed shortly before market resolution (scaled, capped at 35)
5. Large bet on a low-probability outcome (+20)
6. Unusually large share count (+15)
"""

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from ..config import DetectionCriteria
from ..models import Market, Trade, TradeAnalysis

logger = logging.getLogger(__name__)

MAX_SCORE = 100.0
HIGH_SUSPICION_SCORE = 80.0

LOW_PROBABILITY_PRICE = 0.2
LOW_PROBABILITY_MIN_VALUE = 5000.0
LARGE_POSITION_SHARES = 50000.0


@dataclass(frozen=True)
class RuleContext:
    """Numeric view of a (trade, market) pair shared by all rules."""
    trade: Trade
    market: Market
    criteria: DetectionCriteria
    price: float
    size: float
    value: float
    hours_until_end: Optional[float]


@dataclass(frozen=True)
class ScoringRule:
    """One entry of the rule table.

    ``delta`` returns the score contribution, or None when the rule does not
    apply. A rule listed in ``unless`` that already fired suppresses this one.
    """
    rule_id: str
    delta: Callable[[RuleContext], Optional[float]]
    describe: Callable[[RuleContext, float], str]
    unless: tuple[str, ...] = ()


def _amount(value: float) -> str:
    """Thousands separators, up to three decimals, no trailing zeros."""
    return f"{value:,.3f}".rstrip("0").rstrip(".")


def _large_trade(ctx: RuleContext) -> Optional[float]:
    threshold = ctx.criteria.large_trade_threshold
    if threshold <= 0:
        return 30.0
    if ctx.value >= threshold:
        return min(30.0, (ctx.value / threshold) * 15)
    return None


def _extreme_low_price(ctx: RuleContext) -> Optional[float]:
    if ctx.price <= ctx.criteria.extreme_price_threshold:
        return 25.0
    return None


def _extreme_high_price(ctx: RuleContext) -> Optional[float]:
    if ctx.price >= 1 - ctx.criteria.extreme_price_threshold:
        return 15.0
    return None


def _close_to_resolution(ctx: RuleContext) -> Optional[float]:
    hours = ctx.hours_until_end
    window = ctx.criteria.close_to_end_hours
    # Trades placed after the deadline are stale, not early
    if hours is None or hours <= 0 or hours > window:
        return None
    return min(35.0, 35 * (1 - hours / window))


def _low_probability_bet(ctx: RuleContext) -> Optional[float]:
    if ctx.price < LOW_PROBABILITY_PRICE and ctx.value > LOW_PROBABILITY_MIN_VALUE:
        return 20.0
    return None


def _large_position(ctx: RuleContext) -> Optional[float]:
    if ctx.size > LARGE_POSITION_SHARES:
        return 15.0
    return None


DEFAULT_RULES: tuple[ScoringRule, ...] = (
    ScoringRule(
        "large_trade",
        _large_trade,
        lambda ctx, d: f"Large trade value: ${_amount(ctx.value)} (Score: +{d:.1f})",
    ),
    ScoringRule(
        "extreme_low_price",
        _extreme_low_price,
        lambda ctx, d: f"Bought at extreme low price: {ctx.price * 100:.1f}% (Score: +{d:.0f})",
    ),
    ScoringRule(
        "extreme_high_price",
        _extreme_high_price,
        lambda ctx, d: f"Bought at extreme high price: {ctx.price * 100:.1f}% (Score: +{d:.0f})",
        unless=("extreme_low_price",),
    ),
    ScoringRule(
        "close_to_resolution",
        _close_to_resolution,
        lambda ctx, d: f"Trade made {ctx.hours_until_end:.1f} hours before market end (Score: +{d:.1f})",
    ),
    ScoringRule(
        "low_probability_bet",
        _low_probability_bet,
        lambda ctx, d: f"Large bet on low-probability outcome (<20%) (Score: +{d:.0f})",
    ),
    ScoringRule(
        "large_position",
        _large_position,
        lambda ctx, d: f"Unusually large position size: {ctx.size:,.0f} shares (Score: +{d:.0f})",
    ),
)

RULES_BY_ID = {rule.rule_id: rule for rule in DEFAULT_RULES}


def build_context(trade: Trade, market: Market, criteria: DetectionCriteria) -> RuleContext:
    hours_until_end = None
    if market.end_date is not None:
        hours_until_end = (market.end_date - trade.timestamp).total_seconds() / 3600

    return RuleContext(
        trade=trade,
        market=market,
        criteria=criteria,
        price=float(trade.price),
        size=float(trade.size),
        value=float(trade.value),
        hours_until_end=hours_until_end,
    )


def score_trade(
    trade: Trade,
    market: Market,
    criteria: DetectionCriteria,
    rules: Iterable[ScoringRule] = DEFAULT_RULES,
) -> TradeAnalysis:
    """Score one trade against the rule table."""
    ctx = build_context(trade, market, criteria)

    score = 0.0
    reasons: list[str] = []
    fired: list[str] = []

    for rule in rules:
        if any(rule_id in fired for rule_id in rule.unless):
            continue
        delta = rule.delta(ctx)
        if delta is None:
            continue
        score += delta
        fired.append(rule.rule_id)
        reasons.append(rule.describe(ctx, delta))

    score = min(MAX_SCORE, score)

    return TradeAnalysis(
        trade=trade,
        market=market,
        suspicion_score=score,
        suspicion_reasons=tuple(reasons),
        is_suspicious=score >= criteria.min_suspicion_score,
        rule_ids=tuple(fired),
    )


def analyze_batch(
    pairs: Iterable[tuple[Trade, Market]],
    criteria: DetectionCriteria,
    rules: Iterable[ScoringRule] = DEFAULT_RULES,
) -> list[TradeAnalysis]:
    """Score every pair and return only suspicious ones, highest score first.

    Equal scores keep their input order.
    """
    rules = tuple(rules)
    analyses = [score_trade(trade, market, criteria, rules) for trade, market in pairs]
    suspicious = [a for a in analyses if a.is_suspicious]
    suspicious.sort(key=lambda a: a.suspicion_score, reverse=True)

    logger.debug(f"Scored {len(analyses)} trades, {len(suspicious)} suspicious")
    return suspicious


def analyze_trades_for_market(
    trades: Iterable[Trade],
    market: Market,
    criteria: DetectionCriteria,
    rules: Iterable[ScoringRule] = DEFAULT_RULES,
) -> list[TradeAnalysis]:
    """Batch analysis for trades that all belong to one market."""
    return analyze_batch(((trade, market) for trade in trades), criteria, rules)


def realized_profit(price, size, outcome: str, winning_outcome: str) -> float:
    """Realized P&L once a market resolves, assuming a payout of 1 per winning share."""
    cost = price * size
    if outcome == winning_outcome:
        return float(size - cost)
    return float(-cost)


def calculate_profit(trade: Trade, winning_outcome: str) -> float:
    return realized_profit(trade.price, trade.size, trade.outcome, winning_outcome)


class InsiderDetectionEngine:
    """
    Scores trades against a fixed set of detection criteria.

    The criteria are immutable. ``with_criteria`` builds a new engine rather
    than changing this one, so an engine shared between callers always scores
    with the thresholds it was created with.
    """

    def __init__(
        self,
        criteria: Optional[DetectionCriteria] = None,
        rules: Iterable[ScoringRule] = DEFAULT_RULES,
    ):
        self.criteria = criteria or DetectionCriteria()
        self.rules = tuple(rules)

    def with_criteria(self, **overrides) -> "InsiderDetectionEngine":
        return InsiderDetectionEngine(self.criteria.with_overrides(**overrides), self.rules)

    def analyze_trade(self, trade: Trade, market: Market) -> TradeAnalysis:
        return score_trade(trade, market, self.criteria, self.rules)

    def analyze_batch(self, pairs: Iterable[tuple[Trade, Market]]) -> list[TradeAnalysis]:
        return analyze_batch(pairs, self.criteria, self.rules)

    def analyze_trades_for_market(self, trades: Iterable[Trade], market: Market) -> list[TradeAnalysis]:
        return analyze_trades_for_market(trades, market, self.criteria, self.rules)

    def calculate_profit(self, trade: Trade, winning_outcome: str) -> float:
        return calculate_profit(trade, winning_outcome)
