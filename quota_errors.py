"""Exceptions raised by the quota usage report"""


class QuotaReportError(Exception):
    """Base class for every fatal report error"""


class ConfigurationError(QuotaReportError):
    """Invalid command line or environment input"""


class AuthenticationError(QuotaReportError):
    """Bearer token could not be acquired for a subscription"""

    def __init__(self, subscription_id, message):
        self.subscription_id = subscription_id
        super().__init__(f"Failed to authenticate for subscription {subscription_id}: {message}")


class QuotaApiError(QuotaReportError):
    """Management API call failed (non-200 status or transport error)"""

    def __init__(self, url, status_code=None, message=""):
        self.url = url
        self.status_code = status_code
        if status_code is None:
            text = f"Request to {url} failed: {message}"
        else:
            text = f"HTTP {status_code} from {url}"
            if message:
                text = f"{text}: {message}"
        super().__init__(text)


class ResponseParseError(QuotaReportError):
    """Response body is not the expected JSON shape"""

    def __init__(self, url, message):
        self.url = url
        super().__init__(f"Unexpected response from {url}: {message}")
