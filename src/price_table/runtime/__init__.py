"""price_table.runtime — Telemetry, scheduler, cycle orchestration, and queries.

Only the leaf modules are re-exported here; import ``service`` and
``payload`` from their modules.
"""

from price_table.runtime.scheduler import Scheduler, SchedulerState, next_tick_delay
from price_table.runtime.telemetry import Telemetry, aggregate_feed_state

__all__ = [
    "Scheduler",
    "SchedulerState",
    "Telemetry",
    "aggregate_feed_state",
    "next_tick_delay",
]
