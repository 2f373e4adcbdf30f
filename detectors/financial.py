"""Financial sentinel — portfolio and deal-pipeline detectors.

Detects:
- Portfolio loss: day P&L at or below -100 (urgent) or -500 (critical)
- Stale deals: non-terminal deals not analysed for more than 7 days

Both detectors sign their signals as "financial-sentinel" but run as
separate detectors, so a malformed broker payload never suppresses deal
alerts and vice versa.

No LLM involved. Same context always produces the same signals (apart from
generated ids).
"""

import logging
import math

from pydantic import ValidationError

from detectors.base import BaseDetector
from schemas.context import AnticipationContext, Deal, DealStatus, PortfolioSnapshot
from schemas.signal import SIGNAL_REPERTOIRE, LifeDomain, Severity, Signal, SignalType

logger = logging.getLogger(__name__)

FINANCIAL_SOURCE = "financial-sentinel"

CRITICAL_LOSS_THRESHOLD = -500.0  # day P&L at or below this is critical
URGENT_LOSS_THRESHOLD = -100.0    # day P&L at or below this is urgent
STALE_DEAL_DAYS = 7               # whole days without analysis before alerting

_SECONDS_PER_DAY = 24 * 60 * 60


class PortfolioDetector(BaseDetector):
    """Emit at most one portfolio_alert from the broker snapshot in mcpData."""

    name = "portfolio-sentinel"
    source = FINANCIAL_SOURCE
    repertoire = SIGNAL_REPERTOIRE[FINANCIAL_SOURCE]

    def detect(self, context: AnticipationContext) -> list[Signal]:
        snapshot = self._read_snapshot(context)
        if snapshot is None:
            return []

        pnl = snapshot.day_pnl
        if pnl <= CRITICAL_LOSS_THRESHOLD:
            severity = Severity.CRITICAL
            title = f"Critical Portfolio Loss: ${abs(pnl):.2f}"
            action = "Review positions immediately and consider risk management actions"
        elif pnl <= URGENT_LOSS_THRESHOLD:
            severity = Severity.URGENT
            title = f"Portfolio Loss: ${abs(pnl):.2f}"
            action = "Review underperforming positions and check risk management limits"
        else:
            return []

        detail = f"Day P&L is ${pnl:.2f} with {snapshot.active_positions} active positions."
        if snapshot.equity is not None:
            detail += f" Equity: ${snapshot.equity:.2f}"

        return [self.new_signal(
            type=SignalType.PORTFOLIO_ALERT,
            severity=severity,
            domain=LifeDomain.FINANCE,
            title=title,
            context=detail,
            suggested_action=action,
            created_at=context.now,
        )]

    # ── Private ───────────────────────────────────────────────────────────────

    def _read_snapshot(self, context: AnticipationContext) -> PortfolioSnapshot | None:
        raw = context.mcp_data.get("alpaca")
        if not isinstance(raw, dict):
            return None
        try:
            return PortfolioSnapshot.model_validate(raw)
        except ValidationError as exc:
            logger.warning("Ignoring malformed portfolio snapshot: %s", exc)
            return None


class DealPipelineDetector(BaseDetector):
    """Emit a deal_update for every open deal whose analysis has gone stale.

    Attributes:
        stale_after_days: Alert once the whole-day age exceeds this.
        alert_never_analyzed: Whether a deal with no last_analysis_at counts
            as infinitely stale (True) or is ignored (False).
    """

    name = "deal-pipeline-sentinel"
    source = FINANCIAL_SOURCE
    repertoire = SIGNAL_REPERTOIRE[FINANCIAL_SOURCE]

    def __init__(
        self,
        stale_after_days: int = STALE_DEAL_DAYS,
        alert_never_analyzed: bool = True,
    ) -> None:
        self.stale_after_days = stale_after_days
        self.alert_never_analyzed = alert_never_analyzed

    def detect(self, context: AnticipationContext) -> list[Signal]:
        signals: list[Signal] = []
        for deal in context.deals:
            signal = self._check_deal(deal, context)
            if signal is not None:
                signals.append(signal)
        return signals

    # ── Private ───────────────────────────────────────────────────────────────

    def _check_deal(self, deal: Deal, context: AnticipationContext) -> Signal | None:
        if deal.status.is_terminal:
            return None

        age_days = self._age_days(deal, context)
        if age_days is None or age_days <= self.stale_after_days:
            return None

        age_text = (
            "with no recorded analysis"
            if math.isinf(age_days)
            else f"for {int(age_days)} days without fresh analysis"
        )

        match deal.status:
            case DealStatus.UNDER_CONTRACT:
                return self.new_signal(
                    type=SignalType.DEAL_UPDATE,
                    severity=Severity.URGENT,
                    domain=LifeDomain.BUSINESS_RE,
                    title=f"Under-Contract Deal Needs Analysis: {deal.address}",
                    context=(
                        f"Deal under contract {age_text}. "
                        "Due diligence period may be ending."
                    ),
                    suggested_action=(
                        "Update analysis and review all contingencies and deadlines"
                    ),
                    related_entity_ids=[deal.id],
                    created_at=context.now,
                )
            case DealStatus.PROSPECT | DealStatus.ANALYZING | DealStatus.OFFER:
                return self.new_signal(
                    type=SignalType.DEAL_UPDATE,
                    severity=Severity.ATTENTION,
                    domain=LifeDomain.BUSINESS_RE,
                    title=f"Stale Deal: {deal.address}",
                    context=(
                        f"Deal has been in {deal.status.value} status {age_text}. "
                        f"Strategy: {deal.strategy.value}"
                    ),
                    suggested_action="Run fresh comps and update deal analysis",
                    related_entity_ids=[deal.id],
                    created_at=context.now,
                )
            case DealStatus.CLOSED | DealStatus.DEAD:
                return None

    def _age_days(self, deal: Deal, context: AnticipationContext) -> float | None:
        """Whole days since the last analysis; inf if never analysed (or None to skip)."""
        if deal.last_analysis_at is None:
            return math.inf if self.alert_never_analyzed else None
        elapsed = (context.now - deal.last_analysis_at).total_seconds()
        return math.floor(elapsed / _SECONDS_PER_DAY)
