"""
Onboarding Catalog.

Interests, subcategories and deal-breakers offered during onboarding,
plus the per-step selection limits.
"""

from dataclasses import dataclass

from .state import OnboardingStep


@dataclass(frozen=True)
class SelectionLimits:
    """Inclusive bounds on how many ids a step accepts."""
    min: int
    max: int


INTEREST_OPTIONS = [
    {"id": "food-drink", "label": "Food & Drink", "icon": "restaurant"},
    {"id": "beauty-wellness", "label": "Beauty & Wellness", "icon": "cut"},
    {"id": "professional-services", "label": "Professional Services", "icon": "home"},
    {"id": "outdoors-adventure", "label": "Outdoors & Adventure", "icon": "bicycle"},
    {"id": "experiences-entertainment", "label": "Entertainment & Experiences", "icon": "musical-notes"},
    {"id": "arts-culture", "label": "Arts & Culture", "icon": "color-palette"},
    {"id": "family-pets", "label": "Family & Pets", "icon": "heart"},
    {"id": "shopping-lifestyle", "label": "Shopping & Lifestyle", "icon": "bag"},
]

SUBCATEGORY_OPTIONS = [
    # Food & Drink
    {"id": "restaurants", "label": "Restaurants", "interest_id": "food-drink"},
    {"id": "cafes", "label": "Cafés & Coffee", "interest_id": "food-drink"},
    {"id": "bars", "label": "Bars & Pubs", "interest_id": "food-drink"},
    {"id": "fast-food", "label": "Fast Food", "interest_id": "food-drink"},
    {"id": "fine-dining", "label": "Fine Dining", "interest_id": "food-drink"},
    # Beauty & Wellness
    {"id": "gyms", "label": "Gyms & Fitness", "interest_id": "beauty-wellness"},
    {"id": "spas", "label": "Spas", "interest_id": "beauty-wellness"},
    {"id": "salons", "label": "Hair Salons", "interest_id": "beauty-wellness"},
    {"id": "wellness", "label": "Wellness Centers", "interest_id": "beauty-wellness"},
    {"id": "nail-salons", "label": "Nail Salons", "interest_id": "beauty-wellness"},
    # Professional Services
    {"id": "education-learning", "label": "Education & Learning", "interest_id": "professional-services"},
    {"id": "transport-travel", "label": "Transport & Travel", "interest_id": "professional-services"},
    {"id": "finance-insurance", "label": "Finance & Insurance", "interest_id": "professional-services"},
    {"id": "plumbers", "label": "Plumbers", "interest_id": "professional-services"},
    {"id": "electricians", "label": "Electricians", "interest_id": "professional-services"},
    {"id": "legal-services", "label": "Legal Services", "interest_id": "professional-services"},
    # Outdoors & Adventure
    {"id": "hiking", "label": "Hiking", "interest_id": "outdoors-adventure"},
    {"id": "cycling", "label": "Cycling", "interest_id": "outdoors-adventure"},
    {"id": "water-sports", "label": "Water Sports", "interest_id": "outdoors-adventure"},
    {"id": "camping", "label": "Camping", "interest_id": "outdoors-adventure"},
    # Entertainment & Experiences
    {"id": "events-festivals", "label": "Events & Festivals", "interest_id": "experiences-entertainment"},
    {"id": "sports-recreation", "label": "Sports & Recreation", "interest_id": "experiences-entertainment"},
    {"id": "nightlife", "label": "Nightlife", "interest_id": "experiences-entertainment"},
    {"id": "comedy-clubs", "label": "Comedy Clubs", "interest_id": "experiences-entertainment"},
    {"id": "cinemas", "label": "Cinemas", "interest_id": "experiences-entertainment"},
    # Arts & Culture
    {"id": "museums", "label": "Museums", "interest_id": "arts-culture"},
    {"id": "galleries", "label": "Art Galleries", "interest_id": "arts-culture"},
    {"id": "theaters", "label": "Theaters", "interest_id": "arts-culture"},
    {"id": "concerts", "label": "Concerts", "interest_id": "arts-culture"},
    # Family & Pets
    {"id": "family-activities", "label": "Family Activities", "interest_id": "family-pets"},
    {"id": "pet-services", "label": "Pet Services", "interest_id": "family-pets"},
    {"id": "childcare", "label": "Childcare", "interest_id": "family-pets"},
    {"id": "veterinarians", "label": "Veterinarians", "interest_id": "family-pets"},
    # Shopping & Lifestyle
    {"id": "fashion", "label": "Fashion & Clothing", "interest_id": "shopping-lifestyle"},
    {"id": "electronics", "label": "Electronics", "interest_id": "shopping-lifestyle"},
    {"id": "home-decor", "label": "Home Decor", "interest_id": "shopping-lifestyle"},
    {"id": "books", "label": "Books & Media", "interest_id": "shopping-lifestyle"},
]

DEALBREAKER_OPTIONS = [
    {"id": "trustworthiness", "label": "Trustworthiness", "description": "Reliable and honest service"},
    {"id": "punctuality", "label": "Punctuality", "description": "On-time and respects your schedule"},
    {"id": "friendliness", "label": "Friendliness", "description": "Welcoming and helpful staff"},
    {"id": "value-for-money", "label": "Value for Money", "description": "Fair pricing and good quality"},
]

VALID_INTEREST_IDS = {i["id"] for i in INTEREST_OPTIONS}
VALID_SUBCATEGORY_IDS = {s["id"] for s in SUBCATEGORY_OPTIONS}
VALID_DEALBREAKER_IDS = {d["id"] for d in DEALBREAKER_OPTIONS}

SUBCATEGORY_INTERESTS: dict[str, str] = {s["id"]: s["interest_id"] for s in SUBCATEGORY_OPTIONS}

STEP_LIMITS: dict[OnboardingStep, SelectionLimits] = {
    OnboardingStep.INTERESTS: SelectionLimits(min=3, max=6),
    OnboardingStep.SUBCATEGORIES: SelectionLimits(min=1, max=10),
    OnboardingStep.DEAL_BREAKERS: SelectionLimits(min=1, max=3),
}

ITEM_NAMES: dict[OnboardingStep, str] = {
    OnboardingStep.INTERESTS: "interests",
    OnboardingStep.SUBCATEGORIES: "subcategories",
    OnboardingStep.DEAL_BREAKERS: "deal-breakers",
}


def get_limits(step: OnboardingStep) -> SelectionLimits:
    """Selection limits for a selection step. COMPLETE has none."""
    if step not in STEP_LIMITS:
        raise ValueError(f"Step {step.value} takes no selections")
    return STEP_LIMITS[step]


def valid_ids_for(step: OnboardingStep) -> set[str]:
    return {
        OnboardingStep.INTERESTS: VALID_INTEREST_IDS,
        OnboardingStep.SUBCATEGORIES: VALID_SUBCATEGORY_IDS,
        OnboardingStep.DEAL_BREAKERS: VALID_DEALBREAKER_IDS,
    }.get(step, set())


def get_subcategory_options(interest_ids: list[str]) -> list[dict]:
    """Subcategories belonging to the selected interests, in catalog order."""
    if not interest_ids:
        return []
    selected = set(interest_ids)
    return [s for s in SUBCATEGORY_OPTIONS if s["interest_id"] in selected]


def group_subcategories(interest_ids: list[str]) -> dict[str, dict]:
    """
    Group available subcategories under their interest title.

    Returns:
        {interest_id: {"title": str, "items": [subcategory, ...]}}
    """
    titles = {i["id"]: i["label"] for i in INTEREST_OPTIONS}
    grouped: dict[str, dict] = {}
    for sub in get_subcategory_options(interest_ids):
        group = grouped.setdefault(
            sub["interest_id"],
            {"title": titles.get(sub["interest_id"], sub["interest_id"]), "items": []},
        )
        group["items"].append(sub)
    return grouped


def to_subcategory_rows(subcategory_ids: list[str]) -> list[dict]:
    """
    Map subcategory ids to the {subcategory_id, interest_id} rows the save
    endpoint stores. Unknown ids are dropped.
    """
    rows = []
    for sub_id in subcategory_ids:
        interest_id = SUBCATEGORY_INTERESTS.get(sub_id)
        if interest_id:
            rows.append({"subcategory_id": sub_id, "interest_id": interest_id})
    return rows
