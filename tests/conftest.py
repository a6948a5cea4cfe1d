import pytest
from unittest.mock import Mock

SUBSCRIPTION = "00000000-1111-2222-3333-444444444444"


def usage_body(*items):
    """Usages response body from (name, value) pairs"""
    return {"value": [
        {"properties": {"name": {"value": name.replace(" ", ""), "localizedValue": name},
                        "usages": {"value": value}}}
        for name, value in items
    ]}


def quota_body(*items):
    """Quotas response body from (name, limit) pairs"""
    return {"value": [
        {"properties": {"name": {"value": name.replace(" ", ""), "localizedValue": name},
                        "limit": {"limitObjectType": "LimitValue", "value": value}}}
        for name, value in items
    ]}


def make_response(status_code=200, body=None, reason="OK"):
    response = Mock()
    response.status_code = status_code
    response.reason = reason
    if isinstance(body, Exception):
        response.json.side_effect = body
    else:
        response.json.return_value = body
    return response


@pytest.fixture
def credential():
    cred = Mock()
    cred.get_token.return_value = Mock(token="test-token")
    return cred
