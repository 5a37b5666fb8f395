# calculator/services/yclients.py

"""
YClients booking platform client: service catalog, subscription
("abonement") types, and creating new subscription types.

Every call is a single bounded attempt. Failures raise YclientsError; the
caller decides what a failure means (sale confirmation aborts).
"""

from __future__ import annotations

import json
import logging
from decimal import Decimal
from typing import Any, Dict, List

import requests
from django.conf import settings

from calculator.constants import SUBSCRIPTION_PERIOD_DAYS

logger = logging.getLogger(__name__)

# Days
PERIOD_UNIT_DAYS = 1

SUBSCRIPTION_TYPES_PAGE_LIMIT = 250
SUBSCRIPTION_TYPES_MAX_PAGES = 50


class YclientsError(Exception):
    """Custom exception for YClients errors"""
    pass


def _yclients_base_url() -> str:
    return getattr(settings, "YCLIENTS_BASE_URL", "https://yclients.com/api/v1").rstrip("/")


def _chain_id() -> str:
    chain_id = str(getattr(settings, "YCLIENTS_CHAIN_ID", "") or "")
    if not chain_id:
        raise YclientsError("YCLIENTS_CHAIN_ID is not configured")
    return chain_id


def _timeout() -> int:
    return int(getattr(settings, "YCLIENTS_TIMEOUT", 30))


def _yclients_auth_headers() -> Dict[str, str]:
    """Get authorization headers for YClients API"""
    token = getattr(settings, "YCLIENTS_TOKEN", "")
    auth_cookie = getattr(settings, "YCLIENTS_AUTH_COOKIE", "")
    headers = {
        "Authorization": f"Bearer {token}",
        "Accept": "application/json",
        "Content-Type": "application/json",
    }
    if auth_cookie:
        headers["Cookie"] = f"auth={auth_cookie}"
    return headers


def _request(method: str, url: str, **kwargs) -> Dict[str, Any]:
    try:
        response = requests.request(
            method,
            url,
            headers=_yclients_auth_headers(),
            timeout=_timeout(),
            **kwargs,
        )
    except requests.exceptions.Timeout as e:
        logger.error(f"YClients {method} {url} timed out")
        raise YclientsError("YClients request timed out") from e
    except requests.exceptions.RequestException as e:
        logger.error(f"YClients {method} {url} failed: {e}")
        raise YclientsError(f"YClients request failed: {e}") from e

    if response.status_code >= 400:
        logger.error(f"YClients {method} {url} -> {response.status_code}: {response.text[:500]}")
        raise YclientsError(f"YClients API error: {response.status_code} {response.text[:200]}")

    try:
        return response.json() if response.content else {}
    except ValueError as e:
        raise YclientsError("YClients returned a non-JSON response") from e


# =============================================================================
# CATALOG
# =============================================================================

def get_services() -> List[Dict[str, Any]]:
    """
    Composite services of the configured category.

    Returns raw dicts: {'id', 'title', 'price_min', 'category_id', ...}
    """
    url = f"{_yclients_base_url()}/chain/{_chain_id()}/services/composites"
    params = {}
    category_id = getattr(settings, "YCLIENTS_CATEGORY_ID", "")
    if category_id:
        params["category_id"] = category_id

    data = _request("GET", url, params=params)
    services = data.get("data") or []
    logger.info(f"YClients returned {len(services)} services")
    return services


def get_subscription_types() -> List[Dict[str, Any]]:
    """All non-archived subscription types, paging until a short page."""
    url = f"{_yclients_base_url()}/chain/{_chain_id()}/loyalty/abonement_types"
    result: List[Dict[str, Any]] = []

    for page in range(1, SUBSCRIPTION_TYPES_MAX_PAGES + 1):
        params = {
            "page": page,
            "limit": SUBSCRIPTION_TYPES_PAGE_LIMIT,
            "include[0]": "balance_container",
            "include[1]": "abonements_count",
            "include[2]": "attached_salon_ids",
            "is_archived": 0,
            "filter[category_id]": 0,
        }
        data = _request("GET", url, params=params)
        batch = data.get("data") or []
        result.extend(batch)

        if len(batch) < SUBSCRIPTION_TYPES_PAGE_LIMIT:
            break
    else:
        logger.warning("Reached maximum page limit for subscription types sync")

    logger.info(f"YClients returned {len(result)} subscription types")
    return result


# =============================================================================
# SUBSCRIPTION TYPE CREATION
# =============================================================================

def build_subscription_type_payload(
    title: str,
    cost: Decimal,
    composition: Dict[int, int],
    allow_freeze: bool,
    freeze_limit: int,
) -> Dict[str, Any]:
    category_id = getattr(settings, "YCLIENTS_CATEGORY_ID", "")
    branch_ids = getattr(settings, "YCLIENTS_BRANCH_IDS", [])

    service_links = [
        {
            "service_id": service_id,
            "service_category_id": int(category_id) if category_id else None,
            "is_unlimited": False,
            "count": count,
        }
        for service_id, count in sorted(composition.items())
    ]

    return {
        "title": title,
        "salon_group_id": int(_chain_id()),
        "cost": float(cost),
        "salon_ids": [int(branch_id) for branch_id in branch_ids],
        "period": SUBSCRIPTION_PERIOD_DAYS,
        "period_unit_id": PERIOD_UNIT_DAYS,
        "allow_freeze": allow_freeze,
        "freeze_limit": freeze_limit,
        "freeze_limit_unit_id": PERIOD_UNIT_DAYS,
        "is_booking_when_frozen_allowed": False,
        "service_price_correction": True,
        "expiration_type_id": 2,
        "is_allow_empty_code": True,
        "is_united_balance": False,
        "is_united_balance_unlimited": False,
        "united_balance_services_count": 0,
        "balance_edit_type_id": 2,
        "is_online_sale_enabled": False,
        "is_archived": False,
        "availability": [],
        "category_id": None,
        "autoactivation_period": 0,
        "service_links": service_links,
    }


def create_subscription_type(
    title: str,
    cost: Decimal,
    composition: Dict[int, int],
    allow_freeze: bool,
    freeze_limit: int,
) -> Dict[str, Any]:
    """
    Create a subscription type and return the platform's record:
    {'id', 'title', 'cost', 'allow_freeze', 'freeze_limit', 'balance_container'}
    """
    url = f"{_yclients_base_url()}/chain/{_chain_id()}/loyalty/abonement_types"
    payload = build_subscription_type_payload(title, cost, composition, allow_freeze, freeze_limit)

    logger.info(f"Creating YClients subscription type: {json.dumps(payload, ensure_ascii=False)}")
    data = _request("POST", url, json=payload)

    record = data.get("data")
    if not isinstance(record, dict) or record.get("id") is None:
        raise YclientsError(f"Unexpected create response: {data}")

    logger.info(f"YClients subscription type created: id={record.get('id')} title={record.get('title')}")
    return record
