"""
Selection Store.

Per-step, in-memory ordered set of selected ids with bounds enforcement.

The maximum is enforced on every toggle. The minimum is only checked when
the user tries to advance: an under-filled selection is a valid transient
state.
"""

import logging
from enum import Enum
from typing import Callable, Iterable

from .catalog import ITEM_NAMES, SelectionLimits, get_limits
from .state import OnboardingStep
from .validation import ValidationResult, validate_step_selection

logger = logging.getLogger(__name__)


class ToggleResult(Enum):
    ADDED = "added"
    REMOVED = "removed"
    REJECTED_MAX = "rejected_max"


MaxReachedListener = Callable[[str, SelectionLimits], None]


class SelectionStore:
    """
    Ordered selection for one onboarding step.

    Created empty on mount. Hydrated only from server-confirmed selections.
    """

    def __init__(self, step: OnboardingStep, limits: SelectionLimits | None = None):
        self.step = step
        self.limits = limits or get_limits(step)
        self._selected: dict[str, None] = {}  # insertion-ordered set
        self._max_listeners: list[MaxReachedListener] = []

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    @property
    def ids(self) -> list[str]:
        return list(self._selected)

    @property
    def count(self) -> int:
        return len(self._selected)

    @property
    def is_full(self) -> bool:
        return self.count >= self.limits.max

    @property
    def meets_minimum(self) -> bool:
        return self.count >= self.limits.min

    def is_selected(self, item_id: str) -> bool:
        return item_id in self._selected

    def __contains__(self, item_id: str) -> bool:
        return item_id in self._selected

    def __len__(self) -> int:
        return self.count

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def toggle(self, item_id: str) -> ToggleResult:
        """
        Select or deselect `item_id`.

        Deselecting is always allowed. Selecting at the max is rejected
        without mutation and signals max-reached listeners.
        """
        if item_id in self._selected:
            del self._selected[item_id]
            return ToggleResult.REMOVED

        if self.count >= self.limits.max:
            logger.debug(f"{self.step.value}: max {self.limits.max} reached, rejected {item_id}")
            self._emit_max_reached(item_id)
            return ToggleResult.REJECTED_MAX

        self._selected[item_id] = None
        return ToggleResult.ADDED

    def hydrate(self, ids: Iterable[str]) -> None:
        """
        Replace the selection with server-confirmed ids.

        Duplicates collapse, order is kept, anything past the max is dropped.
        """
        self._selected = {}
        for item_id in ids:
            if item_id in self._selected:
                continue
            if self.count >= self.limits.max:
                logger.warning(f"{self.step.value}: hydration exceeded max {self.limits.max}, truncating")
                break
            self._selected[item_id] = None

    def clear(self) -> None:
        self._selected = {}

    # -------------------------------------------------------------------------
    # Validation & signals
    # -------------------------------------------------------------------------

    def validate(self) -> ValidationResult:
        """Full check, run at advance time."""
        return validate_step_selection(self.step, self.ids)

    def on_max_reached(self, listener: MaxReachedListener) -> Callable[[], None]:
        """Subscribe to max-reached signals. Returns an unsubscribe function."""
        self._max_listeners.append(listener)

        def unsubscribe():
            if listener in self._max_listeners:
                self._max_listeners.remove(listener)

        return unsubscribe

    def max_reached_message(self) -> str:
        return f"Maximum {self.limits.max} {ITEM_NAMES[self.step]} allowed"

    def _emit_max_reached(self, item_id: str) -> None:
        for listener in list(self._max_listeners):
            listener(item_id, self.limits)
