import logging
import math
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 80


@dataclass
class ReconciledEntry:
    """A usage record joined to its quota"""
    name: str
    usage_value: float
    quota_value: float
    percentage: float
    nearing_limit: bool
    zero_quota: bool = False


@dataclass
class Reconciliation:
    """Everything the reporter needs for one provider/region pair"""
    entries: list = field(default_factory=list)
    unmatched: list = field(default_factory=list)
    # (usage name, ReconciledEntry or None) in usage order
    rows: list = field(default_factory=list)
    total_usage_elements: int = 0
    total_quota_elements: int = 0

    @property
    def nearing_limit_count(self):
        return sum(1 for entry in self.entries if entry.nearing_limit)

    @property
    def count_mismatch(self):
        return self.total_usage_elements != self.total_quota_elements


def usage_percentage(usage_value, quota_value):
    """Percentage of quota consumed.

    Zero usage is 0% whatever the quota. Positive usage against a zero quota
    has no finite percentage and is reported as infinity; callers flag it.
    """
    if usage_value <= 0:
        return 0
    if quota_value == 0:
        return math.inf
    return usage_value / quota_value * 100


def find_quota(name, quotas):
    """First quota whose localized name equals name, or None"""
    for quota in quotas:
        if quota.name == name:
            return quota
    return None


def reconcile(usages, quotas, threshold=DEFAULT_THRESHOLD):
    """Join usages to quotas by name and classify each against the threshold"""
    result = Reconciliation(total_usage_elements=len(usages), total_quota_elements=len(quotas))

    for usage in usages:
        quota = find_quota(usage.name, quotas)
        if quota is None:
            result.unmatched.append(usage.name)
            result.rows.append((usage.name, None))
            continue

        percentage = usage_percentage(usage.current_value, quota.limit_value)
        entry = ReconciledEntry(
            name=usage.name,
            usage_value=usage.current_value,
            quota_value=quota.limit_value,
            percentage=percentage,
            nearing_limit=percentage > threshold,
            zero_quota=usage.current_value > 0 and quota.limit_value == 0,
        )
        result.entries.append(entry)
        result.rows.append((usage.name, entry))

    return result


def format_number(value):
    """Render 100.0 as '100' and 2.4000000000000004 as '2.4'.

    A fractional value that would round to a whole number keeps its full
    precision, so 80.004 never reads as exactly 80.
    """
    if isinstance(value, float):
        if math.isinf(value):
            return "inf"
        text = f"{value:.2f}".rstrip("0").rstrip(".")
        if "." not in text and not value.is_integer():
            text = f"{value:.6g}"
            if "." not in text:
                text = repr(value)
        return text
    return str(value)


def report(provider, region, result):
    """Log the warnings and summary line for one provider/region pair"""
    scope = f"[Provider: {provider} Region: {region}]"

    if result.count_mismatch:
        logger.warning(
            f"{scope} Usage count {result.total_usage_elements} does not match "
            f"quota count {result.total_quota_elements}"
        )

    for name, entry in result.rows:
        if entry is None:
            logger.warning(f"Quota not found for usage '{name}'")
            continue

        usage = format_number(entry.usage_value)
        quota = format_number(entry.quota_value)
        if entry.zero_quota:
            logger.warning(f"Quota for '{entry.name}' is 0 while usage is {usage}")
        if entry.nearing_limit:
            logger.warning(
                f"NEARING OR ABOVE LIMIT: '{entry.name}' Usage: {usage}, Quota: {quota}, "
                f"Percentage: {format_number(entry.percentage)}%"
            )
        else:
            logger.debug(f"'{entry.name}' Usage: {usage}, Quota: {quota}, Percentage: {format_number(entry.percentage)}%")

    logger.info(f"{scope} {result.nearing_limit_count} out of {result.total_usage_elements} are nearing limit")
