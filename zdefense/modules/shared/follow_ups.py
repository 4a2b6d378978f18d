"""
Best-effort follow-up effects.

Some operations are a primary mutation that must succeed plus side effects
that may fail without aborting it (recording a new level after an XP gain,
granting prestige cosmetics). Each side effect is a `FollowUp`; the service
builds the list after its primary mutation and hands it to
`run_follow_ups()`, which runs every one inside its own SAVEPOINT on the
caller's session:

- success: the savepoint is released and the effect commits with the outer
  transaction
- failure: only that savepoint is rolled back, the failure is logged at
  WARNING, and the remaining follow-ups still run

Cancellation is never treated as a follow-up failure; it propagates and
rolls back the whole unit of work.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, List, Optional

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

FollowUpAction = Callable[["AsyncSession"], Awaitable[Any]]


@dataclass(frozen=True)
class FollowUp:
    """A named best-effort effect bound to the current unit of work."""

    name: str
    action: FollowUpAction
    context: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class FollowUpOutcome:
    name: str
    succeeded: bool
    result: Any = None
    error: Optional[Exception] = None


async def run_follow_ups(
    session: AsyncSession,
    follow_ups: List[FollowUp],
    logger: Logger,
) -> List[FollowUpOutcome]:
    """
    Run follow-ups in order, each isolated in a savepoint.

    Returns one outcome per follow-up, in the same order.
    """
    outcomes: List[FollowUpOutcome] = []

    for follow_up in follow_ups:
        try:
            async with session.begin_nested():
                result = await follow_up.action(session)
        except Exception as exc:
            logger.warning(
                f"Follow-up '{follow_up.name}' failed; primary change kept",
                extra={
                    "follow_up": follow_up.name,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                    **follow_up.context,
                },
                exc_info=True,
            )
            outcomes.append(
                FollowUpOutcome(name=follow_up.name, succeeded=False, error=exc)
            )
            continue

        outcomes.append(
            FollowUpOutcome(name=follow_up.name, succeeded=True, result=result)
        )

    return outcomes
