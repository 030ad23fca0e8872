"""Gatekeeper — runs the fixed stage order for one request.

Invariants:
    - Order is fixed: sanitize → validate → rate-limit → authorize; first failure ends the run
    - A request rejected by validation never touches the rate-limit store
    - Exactly one ErrorRecord per failed run; the rate-limit decision (if reached)
      travels with it so headers can be set on any response
    - The limiter is injected and owned by the caller (app.state), never a module global

Design Decisions:
    - Imperative shell around pure stages (core/pipeline.py): only this class touches
      the limiter, the clock and the event logger
    - Clock injected as a callable returning epoch milliseconds: tests control windows
      without sleeping
"""

import time
from collections.abc import Callable

from medgate.core.domain_types import ErrorKind, PipelineStage
from medgate.core.errors import ErrorRecord
from medgate.core.pipeline import (
    PipelineResult,
    RequestState,
    RouteGuard,
    authorize_state,
    sanitize_state,
    validate_state,
)
from medgate.core.rate_limit import FixedWindowRateLimiter, RateLimitPolicy
from medgate.core.sanitize import DEFAULT_MAX_DEPTH, contains_unsafe_markup
from medgate.infrastructure.observability import EventLogger


def epoch_ms() -> float:
    return time.time() * 1000


class Gatekeeper:
    """Composes the pipeline stages around a shared rate limiter."""

    def __init__(
        self,
        limiter: FixedWindowRateLimiter,
        default_policy: RateLimitPolicy,
        events: EventLogger | None = None,
        *,
        rate_limit_enabled: bool = True,
        max_depth: int = DEFAULT_MAX_DEPTH,
        clock: Callable[[], float] = epoch_ms,
    ):
        self.limiter = limiter
        self.default_policy = default_policy
        self.events = events or EventLogger()
        self.rate_limit_enabled = rate_limit_enabled
        self.max_depth = max_depth
        self.clock = clock

    def run(self, state: RequestState, guard: RouteGuard) -> PipelineResult:
        """Gate one request. Returns the validated state or the single error record."""
        raw = state
        state = sanitize_state(state, self.max_depth)
        if contains_unsafe_markup([raw.body, raw.query, raw.params]):
            self.events.unsafe_input(state)
        self.events.stage_passed(PipelineStage.SANITIZE, state)

        outcome = validate_state(state, guard)
        if isinstance(outcome, ErrorRecord):
            return self._fail(PipelineStage.VALIDATE, state, outcome)
        state = outcome
        self.events.stage_passed(PipelineStage.VALIDATE, state)

        decision = None
        if self.rate_limit_enabled:
            policy = guard.rate_limit or self.default_policy
            decision = self.limiter.check(
                f"{guard.bucket}:{state.client_key}", policy, self.clock(),
            )
            if not decision.allow:
                record = ErrorRecord.of(
                    ErrorKind.RATE_LIMITED,
                    "Rate limit exceeded",
                    retry_after_seconds=decision.retry_after_seconds,
                )
                return self._fail(PipelineStage.RATE_LIMIT, state, record, decision)
            self.events.stage_passed(PipelineStage.RATE_LIMIT, state)

        outcome = authorize_state(state, guard)
        if isinstance(outcome, ErrorRecord):
            return self._fail(PipelineStage.AUTHORIZE, state, outcome, decision)
        self.events.stage_passed(PipelineStage.AUTHORIZE, outcome)
        return PipelineResult(state=outcome, decision=decision)

    def _fail(self, stage, state, record, decision=None) -> PipelineResult:
        self.events.stage_failed(stage, state, record)
        return PipelineResult(state=state, error=record, decision=decision)
