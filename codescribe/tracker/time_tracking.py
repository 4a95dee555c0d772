"""Per-ticket time tracking driven by the inferred phase.

The default store lives in process memory and is lost when the process
exits. JsonTimeStore keeps the records in a JSON file instead.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Optional, Protocol

from codescribe.tracker.models import Phase, TimeSession, TimeTrackingState
from codescribe.utils.storage import write_json_atomic

logger = logging.getLogger(__name__)

# Sessions shorter than this are not logged back to the tracker
MIN_LOGGED_MINUTES = 5

ACTIVE_PHASES = (Phase.STARTED, Phase.DEVELOPMENT, Phase.CHANGES_REQUESTED)


class TimeStore(Protocol):
    """Keyed storage for TimeTrackingState records."""

    def get(self, ticket_id: str) -> TimeTrackingState:
        ...

    def put(self, ticket_id: str, state: TimeTrackingState) -> None:
        ...


class InMemoryTimeStore:
    def __init__(self):
        self._states: dict[str, TimeTrackingState] = {}

    def get(self, ticket_id: str) -> TimeTrackingState:
        return self._states.setdefault(ticket_id, TimeTrackingState())

    def put(self, ticket_id: str, state: TimeTrackingState) -> None:
        self._states[ticket_id] = state


class JsonTimeStore:
    """TimeStore backed by one JSON file holding every ticket's record."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def _load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable time store {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring time store {self.path}: expected an object keyed by ticket")
            return {}
        return data

    def get(self, ticket_id: str) -> TimeTrackingState:
        data = self._load().get(ticket_id)
        if not data:
            return TimeTrackingState()
        try:
            return TimeTrackingState.from_dict(data)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"Discarding malformed time record for {ticket_id}: {e}")
            return TimeTrackingState()

    def put(self, ticket_id: str, state: TimeTrackingState) -> None:
        data = self._load()
        data[ticket_id] = state.to_dict()
        write_json_atomic(self.path, data)


def efficiency_category(efficiency: float) -> str:
    if efficiency > 1.2:
        return "high"
    if efficiency < 0.8:
        return "low"
    return "normal"


def format_minutes(minutes: float) -> str:
    total = int(round(minutes))
    hours, mins = divmod(total, 60)
    if hours:
        return f"{hours}h {mins}m"
    return f"{mins}m"


class TimeTracker:
    """Applies phase events to a ticket's TimeTrackingState.

    Attributes:
        store: Where records are kept between updates
        track_efficiency: Compute estimate/actual efficiency on completion
    """

    def __init__(
        self,
        store: Optional[TimeStore] = None,
        track_efficiency: bool = False,
        now: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store or InMemoryTimeStore()
        self.track_efficiency = track_efficiency
        self._now = now or (lambda: datetime.now(timezone.utc))

    def update(self, ticket_id: str, phase: Phase, estimate_hours: Optional[float] = None) -> dict[str, Any]:
        """Advance the ticket's time record for the given phase.

        Returns:
            Dict with action (started, continuing, paused, completed, none),
            session and total minutes, and should_log for sessions worth
            reporting to the tracker.
        """
        state = self.store.get(ticket_id)
        now = self._now()
        result: dict[str, Any] = {"action": "none", "phase": phase.value, "should_log": False}

        if phase in ACTIVE_PHASES:
            if state.start_time is None:
                state.start_time = now
                result["action"] = "started"
            else:
                result["action"] = "continuing"
                result["session_minutes"] = round(_minutes_between(state.start_time, now), 1)
        elif phase in (Phase.IN_REVIEW, Phase.COMPLETED) and state.start_time is not None:
            session = self._close_session(state, now)
            result["action"] = "paused" if phase == Phase.IN_REVIEW else "completed"
            result["session_minutes"] = round(session.minutes, 1)
            result["should_log"] = session.minutes >= MIN_LOGGED_MINUTES

            if phase == Phase.COMPLETED and self.track_efficiency and estimate_hours and state.total_time > 0:
                efficiency = (estimate_hours * 60) / state.total_time
                result["efficiency"] = round(efficiency, 2)
                result["efficiency_category"] = efficiency_category(efficiency)

        self.store.put(ticket_id, state)
        result["total_minutes"] = round(state.total_time, 1)
        result["sessions"] = len(state.sessions)
        logger.debug(f"Time tracking for {ticket_id}: {result['action']}")
        return result

    @staticmethod
    def _close_session(state: TimeTrackingState, now: datetime) -> TimeSession:
        session = TimeSession(start=state.start_time, end=now, minutes=_minutes_between(state.start_time, now))
        state.sessions.append(session)
        state.total_time += session.minutes
        state.start_time = None
        return session


def _minutes_between(start: datetime, end: datetime) -> float:
    return max((end - start).total_seconds() / 60.0, 0.0)
