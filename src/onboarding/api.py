"""
Onboarding API Endpoints.

Server side of the onboarding flow: profile read, saved selections, step
saves and the completion mark. Mounted under /api by the web app.

The save endpoint is the authority on progression: it validates against the
catalog, enforces prerequisites and never moves the stored step backwards.
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from sayso.db.client import get_authenticated_client, get_service_client
from sayso.web.auth import AuthenticatedUser, get_current_user

from .catalog import (
    DEALBREAKER_OPTIONS,
    INTEREST_OPTIONS,
    ITEM_NAMES,
    STEP_LIMITS,
    get_subcategory_options,
    group_subcategories,
    to_subcategory_rows,
)
from .state import (
    AccountRole,
    OnboardingStep,
    Profile,
    get_next_step,
    later_step,
)
from .validation import validate_prerequisites, validate_step_selection

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/onboarding", tags=["onboarding"])

PROFILE_COLUMNS = (
    "user_id, account_role, onboarding_step, onboarding_complete, "
    "interests_count, subcategories_count, dealbreakers_count"
)


# =============================================================================
# Request/Response Models
# =============================================================================


class SaveStepRequest(BaseModel):
    """One onboarding step. Only the list matching `step` is read."""
    step: str
    interests: list[str] | None = None
    subcategories: list[str | dict] | None = None  # ids, or legacy {subcategory_id, interest_id} rows
    dealbreakers: list[str] | None = None
    mark_complete: bool = False


class SelectionsResponse(BaseModel):
    """Saved selections. A list is only filled when its count is > 0."""
    interests: list[str] = Field(default_factory=list)
    subcategories: list[dict] = Field(default_factory=list)
    dealbreakers: list[str] = Field(default_factory=list)
    interests_count: int = 0
    subcategories_count: int = 0
    dealbreakers_count: int = 0


# =============================================================================
# Storage Helpers
# =============================================================================


def load_profile(user: AuthenticatedUser) -> Profile:
    """Read the caller's profile row. 404 when it doesn't exist yet."""
    client = get_service_client()

    try:
        result = client.table("profiles").select(PROFILE_COLUMNS).eq("user_id", user.id).limit(1).execute()
    except Exception as e:
        logger.error(f"Failed to load profile for {user.id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to load profile")

    if not result.data:
        raise HTTPException(status_code=404, detail="Profile not found")

    row = dict(result.data[0])
    row["email_verified"] = user.email_verified
    return Profile.from_row(row, user_id=user.id)


def _subcategory_ids(items: list[str | dict]) -> list[str]:
    ids = []
    for item in items:
        if isinstance(item, dict):
            item = item.get("subcategory_id") or item.get("id") or ""
        ids.append(item.strip() if isinstance(item, str) else item)
    return ids


def _selections_for(step: OnboardingStep, request: SaveStepRequest) -> list[str] | None:
    match step:
        case OnboardingStep.INTERESTS:
            return request.interests
        case OnboardingStep.SUBCATEGORIES:
            return _subcategory_ids(request.subcategories) if request.subcategories is not None else None
        case OnboardingStep.DEAL_BREAKERS:
            return request.dealbreakers
        case _:
            return None


def replace_selections(user_id: str, step: OnboardingStep, selections: list[str]) -> None:
    """Replace the stored rows for `step`. The RPCs also refresh the profile counts."""
    client = get_service_client()

    match step:
        case OnboardingStep.INTERESTS:
            rpc, params = "replace_user_interests", {"p_interest_ids": selections}
        case OnboardingStep.SUBCATEGORIES:
            rpc, params = "replace_user_subcategories", {"p_subcategory_data": to_subcategory_rows(selections)}
        case OnboardingStep.DEAL_BREAKERS:
            rpc, params = "replace_user_dealbreakers", {"p_dealbreaker_ids": selections}
        case _:
            raise ValueError(f"{step.value} has no selections")

    try:
        client.rpc(rpc, {"p_user_id": user_id, **params}).execute()
    except Exception as e:
        logger.error(f"{rpc} failed for {user_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to save {ITEM_NAMES[step]}")


def update_profile(user_id: str, changes: dict[str, Any]) -> None:
    client = get_service_client()

    try:
        client.table("profiles").update(changes).eq("user_id", user_id).execute()
    except Exception as e:
        logger.error(f"Failed to update profile for {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to update profile")


def save_step(user: AuthenticatedUser, request: SaveStepRequest) -> Profile:
    """Apply one save. Returns the profile as stored afterwards."""
    try:
        step = OnboardingStep(request.step)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown step: {request.step}")

    profile = load_profile(user)

    if profile.account_role == AccountRole.BUSINESS_OWNER:
        raise HTTPException(status_code=403, detail="Business accounts do not use personal onboarding")

    if profile.is_fully_complete:
        logger.info(f"Onboarding already complete for {user.id}, nothing to save")
        return profile

    if step != OnboardingStep.COMPLETE:
        selections = _selections_for(step, request)
        if selections is None:
            raise HTTPException(status_code=400, detail=f"{ITEM_NAMES[step].capitalize()} are required")

        validation = validate_step_selection(step, selections)
        if not validation.valid:
            raise HTTPException(status_code=400, detail={"error": "; ".join(validation.errors), "errors": validation.errors})

        prerequisites = validate_prerequisites(step, profile)
        if not prerequisites.valid:
            raise HTTPException(status_code=400, detail={"error": "; ".join(prerequisites.errors), "errors": prerequisites.errors})

        replace_selections(user.id, step, selections)

        # Re-saving an earlier step (back-navigation) keeps the later stored step
        next_step = later_step(profile.onboarding_step, get_next_step(step))
        if next_step != profile.onboarding_step:
            update_profile(user.id, {"onboarding_step": next_step.value})
        profile = load_profile(user)
        logger.info(f"Saved {step.value} for {user.id}, step now {profile.onboarding_step.value}")

    if step == OnboardingStep.COMPLETE or request.mark_complete:
        profile = mark_complete(user, profile)

    return profile


def mark_complete(user: AuthenticatedUser, profile: Profile) -> Profile:
    """Set onboarding_complete. Only valid once every step has saved selections."""
    if profile.is_fully_complete:
        return profile

    prerequisites = validate_prerequisites(OnboardingStep.COMPLETE, profile)
    if profile.onboarding_step != OnboardingStep.COMPLETE or not prerequisites.valid:
        errors = prerequisites.errors or ["Finish the previous steps first"]
        raise HTTPException(
            status_code=400,
            detail={
                "error": "Onboarding cannot be completed yet",
                "errors": errors,
                "current_step": profile.onboarding_step.value,
            },
        )

    update_profile(user.id, {"onboarding_step": OnboardingStep.COMPLETE.value, "onboarding_complete": True})
    logger.info(f"Onboarding complete for {user.id}")
    return load_profile(user)


# =============================================================================
# Endpoints
# =============================================================================


@router.get("/profile")
async def get_profile(user: AuthenticatedUser = Depends(get_current_user)) -> dict:
    """Current onboarding progress, as read by the route guard."""
    return load_profile(user).to_dict()


@router.get("/selections", response_model=SelectionsResponse)
async def get_selections(user: AuthenticatedUser = Depends(get_current_user)) -> SelectionsResponse:
    """Saved selections for pre-filling pages on back-navigation."""
    profile = load_profile(user)
    # Row reads run as the user, under row level security
    client = get_authenticated_client(user.access_token)
    response = SelectionsResponse(
        interests_count=profile.interests_count,
        subcategories_count=profile.subcategories_count,
        dealbreakers_count=profile.dealbreakers_count,
    )

    try:
        if profile.interests_count > 0:
            rows = client.table("user_interests").select("interest_id").eq("user_id", user.id).execute()
            response.interests = [r["interest_id"] for r in rows.data or []]
        if profile.subcategories_count > 0:
            rows = client.table("user_subcategories").select("subcategory_id, interest_id").eq("user_id", user.id).execute()
            response.subcategories = list(rows.data or [])
        if profile.dealbreakers_count > 0:
            rows = client.table("user_dealbreakers").select("dealbreaker_id").eq("user_id", user.id).execute()
            response.dealbreakers = [r["dealbreaker_id"] for r in rows.data or []]
    except Exception as e:
        logger.error(f"Failed to load selections for {user.id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch onboarding data")

    return response


@router.get("/options")
async def get_options(interests: str | None = None) -> dict:
    """
    Catalog for the onboarding pages.

    `interests` is a comma-separated filter for the subcategory list.
    """
    interest_ids = [i for i in (interests or "").split(",") if i] or [i["id"] for i in INTEREST_OPTIONS]
    return {
        "interests": INTEREST_OPTIONS,
        "subcategories": get_subcategory_options(interest_ids),
        "subcategory_groups": group_subcategories(interest_ids),
        "dealbreakers": DEALBREAKER_OPTIONS,
        "limits": {step.value: {"min": limits.min, "max": limits.max} for step, limits in STEP_LIMITS.items()},
    }


@router.post("/save")
async def save(request: SaveStepRequest, user: AuthenticatedUser = Depends(get_current_user)) -> dict:
    """Save one step's selections and advance the stored step."""
    profile = save_step(user, request)
    return {"success": True, **profile.to_dict()}


@router.post("/complete")
async def complete(user: AuthenticatedUser = Depends(get_current_user)) -> dict:
    """Mark onboarding complete. Safe to call again once complete."""
    profile = save_step(user, SaveStepRequest(step=OnboardingStep.COMPLETE.value, mark_complete=True))
    return {"success": True, **profile.to_dict()}
