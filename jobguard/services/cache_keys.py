"""Cache key builders and entity-level invalidation for job-board data.

Mutations elsewhere (profile edit, offer posted, application moved) call the
matching ``invalidate_*`` helper so the next read refetches.
"""

from __future__ import annotations

from jobguard.services.cache import TTLCache


def user_profile(user_id: str) -> str:
    return f"user_{user_id}"


def candidate_profile(user_id: str) -> str:
    return f"candidate_{user_id}"


def company_profile(company_id: str) -> str:
    return f"company_{company_id}"


def offers_list(filters: str | None = None) -> str:
    return f"offers_list_{filters or 'all'}"


def offer_detail(offer_id: str) -> str:
    return f"offer_{offer_id}"


def applications_list(user_id: str) -> str:
    return f"applications_{user_id}"


def application_detail(application_id: str) -> str:
    return f"application_{application_id}"


def candidates_list(company_id: str, filters: str | None = None) -> str:
    return f"candidates_{company_id}_{filters or 'all'}"


def homepage_offers() -> str:
    return "homepage_offers"


def notification_settings(user_id: str) -> str:
    return f"notifications_{user_id}"


def invalidate_user_cache(cache: TTLCache, user_id: str) -> None:
    """Drop everything cached about one user after a profile change."""

    cache.invalidate_cache(user_profile(user_id))
    cache.invalidate_cache(candidate_profile(user_id))
    cache.invalidate_cache(applications_list(user_id))
    cache.invalidate_cache(notification_settings(user_id))


def invalidate_company_cache(cache: TTLCache, company_id: str) -> None:
    """Drop a company's profile, its candidate lists and every offers list."""

    cache.invalidate_cache(company_profile(company_id))
    cache.invalidate_cache_pattern(f"candidates_{company_id}_")
    # Offer lists embed company data
    cache.invalidate_cache_pattern("offers_list")


def invalidate_offers_cache(cache: TTLCache) -> None:
    """Drop every offers list, offer detail and the homepage selection."""

    cache.invalidate_cache_pattern("offers_list")
    cache.invalidate_cache_pattern("offer_")
    cache.invalidate_cache(homepage_offers())


def invalidate_applications_cache(cache: TTLCache, user_id: str | None = None) -> None:
    """Drop application details, and one user's application list if given."""

    if user_id:
        cache.invalidate_cache(applications_list(user_id))
    cache.invalidate_cache_pattern("application_")
