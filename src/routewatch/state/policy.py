"""Ordering policy for incoming position reports.

Late reports are still applied (the latest received position wins); this
module only decides whether one counts as out of order.
"""

from __future__ import annotations

from datetime import datetime


def is_out_of_order(previous: datetime | None, incoming: datetime | None) -> bool:
    """Return ``True`` when *incoming* is strictly older than *previous*.

    Reports without a timestamp are never considered out of order.
    """
    if previous is None or incoming is None:
        return False
    return incoming < previous
