#!/usr/bin/env python3
import json
import logging
from dataclasses import dataclass
from numbers import Number

import requests

from quota_errors import QuotaApiError, ResponseParseError

logger = logging.getLogger(__name__)

MANAGEMENT_ENDPOINT = "https://management.azure.com"
QUOTA_API_VERSION = "2021-03-15-preview"
REQUEST_TIMEOUT = 60


@dataclass
class UsageRecord:
    """Current consumption of one resource type"""
    name: str
    current_value: float


@dataclass
class QuotaRecord:
    """Limit for one resource type"""
    name: str
    limit_value: float


def build_url(subscription_id, provider, region, resource):
    """Build the Microsoft.Quota URL for 'usages' or 'quotas' under a provider/region"""
    return (
        f"{MANAGEMENT_ENDPOINT}/subscriptions/{subscription_id}/providers/{provider}"
        f"/locations/{region}/providers/Microsoft.Quota/{resource}?api-version={QUOTA_API_VERSION}"
    )


def get_json(url, headers, timeout=REQUEST_TIMEOUT):
    """GET a management API URL and return the decoded body; anything but 200 is fatal"""
    try:
        response = requests.get(url, headers=headers, timeout=timeout)
    except requests.exceptions.Timeout:
        raise QuotaApiError(url, message=f"timed out after {timeout}s")
    except requests.exceptions.RequestException as e:
        raise QuotaApiError(url, message=str(e))

    if response.status_code != 200:
        raise QuotaApiError(url, response.status_code, _error_message(response))

    try:
        return response.json()
    except (json.JSONDecodeError, ValueError) as e:
        raise ResponseParseError(url, f"body is not valid JSON ({e})")


def _error_message(response):
    """Pull the ARM error message out of a failed response, if there is one"""
    try:
        body = response.json()
    except ValueError:
        return response.reason or ""
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        return body["error"].get("message", "")
    return response.reason or ""


def _lookup(element, path, url, idx):
    """Walk a dotted path through nested dicts, failing with the missing path"""
    value = element
    for key in path.split("."):
        if not isinstance(value, dict) or key not in value:
            raise ResponseParseError(url, f"value[{idx}] is missing '{path}'")
        value = value[key]
    return value


def _number(element, path, url, idx):
    value = _lookup(element, path, url, idx)
    if isinstance(value, bool) or not isinstance(value, Number):
        raise ResponseParseError(url, f"value[{idx}].{path} is not a number: {value!r}")
    return value


def _name(element, url, idx):
    value = _lookup(element, "properties.name.localizedValue", url, idx)
    if not isinstance(value, str):
        raise ResponseParseError(url, f"value[{idx}].properties.name.localizedValue is not a string: {value!r}")
    return value


def _elements(data, url):
    if not isinstance(data, dict) or not isinstance(data.get("value"), list):
        raise ResponseParseError(url, "top-level 'value' array not found")
    return data["value"]


def parse_usages(data, url=""):
    """Turn a usages response body into UsageRecords"""
    records = []
    for idx, element in enumerate(_elements(data, url)):
        name = _name(element, url, idx)
        value = _number(element, "properties.usages.value", url, idx)
        records.append(UsageRecord(name, value))
    return records


def parse_quotas(data, url=""):
    """Turn a quotas response body into QuotaRecords"""
    records = []
    for idx, element in enumerate(_elements(data, url)):
        name = _name(element, url, idx)
        value = _number(element, "properties.limit.value", url, idx)
        records.append(QuotaRecord(name, value))
    return records


def fetch_usages(subscription_id, provider, region, headers, timeout=REQUEST_TIMEOUT):
    """Fetch current usage for every resource type of a provider in a region"""
    url = build_url(subscription_id, provider, region, "usages")
    logger.debug(f"GET {url}")
    return parse_usages(get_json(url, headers, timeout), url)


def fetch_quotas(subscription_id, provider, region, headers, timeout=REQUEST_TIMEOUT):
    """Fetch quota limits for every resource type of a provider in a region"""
    url = build_url(subscription_id, provider, region, "quotas")
    logger.debug(f"GET {url}")
    return parse_quotas(get_json(url, headers, timeout), url)
