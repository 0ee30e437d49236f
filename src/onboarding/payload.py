"""
Onboarding Payload Definition.

The wire contract between the pipeline and the onboarding save endpoint,
and the typed results the persistence layer hands back.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .catalog import to_subcategory_rows
from .errors import FailureKind, OnboardingError
from .state import OnboardingStep, Profile


class SaveStatus(Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


@dataclass
class SaveRequest:
    """
    One submission to the save endpoint.

    `selections` are the ids chosen on the step's page. COMPLETE carries none.
    """
    step: OnboardingStep
    selections: list[str] = field(default_factory=list)
    mark_complete: bool = False
    status: SaveStatus = SaveStatus.PENDING

    def to_body(self) -> dict[str, Any]:
        """
        Build the JSON body:
            {step, interests?, subcategories?, dealbreakers?, mark_complete?}
        """
        body: dict[str, Any] = {"step": self.step.value}
        if self.step == OnboardingStep.INTERESTS:
            body["interests"] = list(self.selections)
        elif self.step == OnboardingStep.SUBCATEGORIES:
            body["subcategories"] = to_subcategory_rows(self.selections)
        elif self.step == OnboardingStep.DEAL_BREAKERS:
            body["dealbreakers"] = list(self.selections)
        if self.mark_complete:
            body["mark_complete"] = True
        return body


@dataclass
class SaveResult:
    """Outcome of a save. Failures are values, never raised."""
    request: SaveRequest
    profile: Profile | None = None
    error: OnboardingError | None = None
    failure: FailureKind | None = None
    skipped: bool = False  # completion already confirmed, no request sent

    @property
    def ok(self) -> bool:
        return self.request.status == SaveStatus.SUCCESS

    @classmethod
    def success(cls, request: SaveRequest, profile: Profile | None, skipped: bool = False) -> "SaveResult":
        request.status = SaveStatus.SUCCESS
        return cls(request=request, profile=profile, skipped=skipped)

    @classmethod
    def failed(
        cls,
        request: SaveRequest,
        failure: FailureKind,
        error: OnboardingError | None = None,
    ) -> "SaveResult":
        request.status = SaveStatus.FAILED
        return cls(request=request, error=error, failure=failure)


@dataclass(frozen=True)
class SavedSelections:
    """
    Server-side selections used to pre-fill pages on back-navigation.

    Each list is only populated when the matching profile count is > 0.
    """
    interests: tuple[str, ...] = ()
    subcategories: tuple[str, ...] = ()
    dealbreakers: tuple[str, ...] = ()

    def for_step(self, step: OnboardingStep) -> tuple[str, ...]:
        return {
            OnboardingStep.INTERESTS: self.interests,
            OnboardingStep.SUBCATEGORIES: self.subcategories,
            OnboardingStep.DEAL_BREAKERS: self.dealbreakers,
        }.get(step, ())

    @classmethod
    def from_dict(cls, data: dict) -> "SavedSelections":
        """Parse the selections response. Subcategories may be ids or rows."""
        subcategories = []
        for sub in data.get("subcategories") or []:
            if isinstance(sub, dict):
                sub_id = sub.get("subcategory_id") or sub.get("id")
                if sub_id:
                    subcategories.append(sub_id)
            elif sub:
                subcategories.append(sub)
        return cls(
            interests=tuple(data.get("interests") or ()),
            subcategories=tuple(subcategories),
            dealbreakers=tuple(data.get("dealbreakers") or ()),
        )
