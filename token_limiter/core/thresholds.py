"""
Threshold crossing notifications.

Fires the configured callback once per threshold per identity until the
ledger is reset.
"""

from datetime import datetime
from typing import List

from .evaluator import QuotaConfig, percent_used
from .window import window_usage
from token_limiter.log import get_logger
from token_limiter.storage.models import Ledger

logger = get_logger(__name__)


def crossed_thresholds(ledger: Ledger, config: QuotaConfig, now: datetime) -> List[float]:
    """Thresholds reached by the primary window that have not fired yet.

    Returned in ascending order.
    """
    primary = config.primary
    usage = window_usage(ledger.events, primary.window, now)
    percent = percent_used(usage.tokens, primary.tokens)
    return [
        threshold for threshold in config.thresholds
        if percent >= threshold and threshold not in ledger.fired_thresholds
    ]


def apply_thresholds(
    identity: str,
    ledger: Ledger,
    config: QuotaConfig,
    now: datetime
) -> Ledger:
    """Mark newly crossed thresholds as fired and notify the callback.

    A failing callback is logged and does not stop the remaining
    notifications; the returned ledger records every crossed threshold
    either way.

    Args:
        identity: Identity the ledger belongs to
        ledger: Ledger including the event just recorded
        config: Limiter configuration
        now: Recording instant

    Returns:
        Ledger with the crossed thresholds added to ``fired_thresholds``
    """
    crossed = crossed_thresholds(ledger, config, now)
    if not crossed:
        return ledger

    for threshold in crossed:
        logger.info("Identity %s reached %s%% of its token limit", identity, threshold)
        if config.on_threshold is None:
            continue
        try:
            config.on_threshold(identity, threshold)
        except Exception:
            logger.exception(
                "Threshold callback failed for %s at %s%%", identity, threshold
            )

    return ledger.with_fired(crossed)
