"""
Onboarding Validation.

Pure checks shared by the client pipeline (before submission) and the
save endpoint (on receipt). Results are returned, never raised.
"""

from dataclasses import dataclass, field

from .catalog import ITEM_NAMES, SelectionLimits, get_limits, valid_ids_for
from .state import OnboardingStep, Profile


@dataclass
class ValidationResult:
    valid: bool = True
    errors: list[str] = field(default_factory=list)

    @classmethod
    def merge(cls, *results: "ValidationResult") -> "ValidationResult":
        errors = [e for r in results for e in r.errors]
        return cls(valid=not errors, errors=errors)


def validate_selection_count(
    selections: list[str],
    limits: SelectionLimits,
    item_name: str = "items",
) -> ValidationResult:
    """Check a selection against min/max bounds."""
    errors = []
    count = len(selections)

    if count < limits.min:
        errors.append(f"Please select at least {limits.min} {item_name}")
    if count > limits.max:
        errors.append(f"Maximum {limits.max} {item_name} allowed")

    return ValidationResult(valid=not errors, errors=errors)


def validate_selection_ids(selections: list[str], item_name: str = "items") -> ValidationResult:
    """Every id must be a non-blank string."""
    invalid = [s for s in selections if not isinstance(s, str) or not s.strip()]
    if invalid:
        return ValidationResult(valid=False, errors=[f"Invalid {item_name} IDs found"])
    return ValidationResult()


def validate_known_ids(
    selections: list[str],
    valid_ids: set[str],
    item_name: str = "items",
) -> ValidationResult:
    """Every id must exist in the catalog."""
    unknown = [s for s in selections if s not in valid_ids]
    if unknown:
        return ValidationResult(
            valid=False,
            errors=[f"Invalid {item_name} IDs: {', '.join(unknown)}"],
        )
    return ValidationResult()


def validate_step_selection(step: OnboardingStep, selections: list[str]) -> ValidationResult:
    """Full check of one step's selection: bounds, shape and catalog membership."""
    item_name = ITEM_NAMES[step]
    shape = validate_selection_ids(selections, item_name)
    if not shape.valid:
        return shape
    return ValidationResult.merge(
        validate_selection_count(selections, get_limits(step), item_name),
        validate_known_ids(selections, valid_ids_for(step), item_name),
    )


def validate_prerequisites(step: OnboardingStep, profile: Profile) -> ValidationResult:
    """
    Check that the steps before `step` have saved selections.

    No interests = no subcategories = no deal-breakers = no complete.
    """
    errors = []
    if step != OnboardingStep.INTERESTS and profile.interests_count <= 0:
        errors.append("Interests are required")
    if step in (OnboardingStep.DEAL_BREAKERS, OnboardingStep.COMPLETE) and profile.subcategories_count <= 0:
        errors.append("Subcategories are required")
    if step == OnboardingStep.COMPLETE and profile.dealbreakers_count <= 0:
        errors.append("Deal-breakers are required")
    return ValidationResult(valid=not errors, errors=errors)
