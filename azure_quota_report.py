#!/usr/bin/env python3
from azure.identity import DefaultAzureCredential
from azure.core.exceptions import AzureError
from dataclasses import dataclass
import argparse
import logging
import math
import os
import re
import sys

import quota_api
from quota_errors import AuthenticationError, ConfigurationError, QuotaReportError
from quota_reconcile import DEFAULT_THRESHOLD, Reconciliation, reconcile, report

logger = logging.getLogger(__name__)

DEFAULT_REGIONS = ["eastus", "centralus", "eastus2"]
DEFAULT_PROVIDERS = ["Microsoft.Storage", "Microsoft.Network", "Microsoft.Compute"]
SUBSCRIPTIONS_ENV = "AZURE_SUBSCRIPTION_IDS"
MANAGEMENT_SCOPE = f"{quota_api.MANAGEMENT_ENDPOINT}/.default"
LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_USAGE = 2
EXIT_INTERRUPTED = 130


@dataclass
class PairReport:
    """Reconciliation result for one subscription/provider/region"""
    subscription_id: str
    provider: str
    region: str
    result: Reconciliation


def get_auth_headers(credential, subscription_id):
    """Acquire a management bearer token and build request headers"""
    try:
        token = credential.get_token(MANAGEMENT_SCOPE)
    except AzureError as e:
        raise AuthenticationError(subscription_id, str(e))
    return {
        "Authorization": f"Bearer {token.token}",
        "Content-Type": "application/json"
    }


def validate_subscription_id(subscription_id):
    """Validate subscription ID format (GUID)"""
    guid_pattern = re.compile(r'^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$', re.IGNORECASE)
    return bool(guid_pattern.match(subscription_id))


def check_pair(subscription_id, provider, region, headers, threshold, timeout=quota_api.REQUEST_TIMEOUT):
    """Fetch, reconcile and report one provider/region pair"""
    usages = quota_api.fetch_usages(subscription_id, provider, region, headers, timeout)
    quotas = quota_api.fetch_quotas(subscription_id, provider, region, headers, timeout)
    result = reconcile(usages, quotas, threshold)
    report(provider, region, result)
    return PairReport(subscription_id, provider, region, result)


def run(subscriptions, credential, threshold=DEFAULT_THRESHOLD, regions=None, providers=None,
        timeout=quota_api.REQUEST_TIMEOUT):
    """Check every subscription x provider x region in order; fatal errors propagate"""
    regions = regions or DEFAULT_REGIONS
    providers = providers or DEFAULT_PROVIDERS

    invalid = [s for s in subscriptions if not validate_subscription_id(s)]
    if invalid:
        raise ConfigurationError(f"Not a valid subscription ID: {', '.join(invalid)}")

    reports = []
    for idx, subscription in enumerate(subscriptions, 1):
        logger.info(f"[{idx}/{len(subscriptions)}] Processing subscription: {subscription}")
        headers = get_auth_headers(credential, subscription)

        for provider in providers:
            for region in regions:
                reports.append(check_pair(subscription, provider, region, headers, threshold, timeout))

    nearing = sum(r.result.nearing_limit_count for r in reports)
    logger.info(
        f"Processed {len(reports)} provider/region pair(s) across {len(subscriptions)} "
        f"subscription(s); {nearing} resource(s) nearing limit"
    )
    return reports


def split_values(values):
    """Flatten ['a,b', 'c'] into ['a', 'b', 'c']"""
    result = []
    for value in values or []:
        result.extend(v.strip() for v in value.split(',') if v.strip())
    return result


def non_negative_number(text):
    try:
        value = float(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a number: {text!r}")
    if not math.isfinite(value):
        raise argparse.ArgumentTypeError(f"must be a finite number: {text}")
    if value < 0:
        raise argparse.ArgumentTypeError(f"must not be negative: {text}")
    return int(value) if value.is_integer() else value


def build_parser():
    parser = argparse.ArgumentParser(
        prog="azure-quota-report",
        description="Report Azure resource usage against quota limits per provider and region",
    )
    parser.add_argument("subscriptions", nargs="*", metavar="SUBSCRIPTION_ID",
                        help=f"subscription ID(s), comma-separated allowed (default: ${SUBSCRIPTIONS_ENV})")
    parser.add_argument("--threshold", type=non_negative_number, default=DEFAULT_THRESHOLD,
                        help="report resources using more than this percentage of quota (default: %(default)s)")
    parser.add_argument("--regions", action="append",
                        help=f"region to check, repeatable or comma-separated (default: {','.join(DEFAULT_REGIONS)})")
    parser.add_argument("--providers", action="append",
                        help=f"resource provider to check, repeatable or comma-separated (default: {','.join(DEFAULT_PROVIDERS)})")
    parser.add_argument("--timeout", type=float, default=quota_api.REQUEST_TIMEOUT,
                        help="HTTP request timeout in seconds (default: %(default)s)")
    parser.add_argument("--log-level", default="INFO", type=str.upper,
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        help="logging level (default: %(default)s)")
    return parser


def parse_args(argv=None, environ=None):
    """Parse the command line, falling back to the environment for subscription IDs"""
    environ = os.environ if environ is None else environ
    args = build_parser().parse_args(argv)

    args.subscriptions = split_values(args.subscriptions) or split_values([environ.get(SUBSCRIPTIONS_ENV, "")])
    args.regions = DEFAULT_REGIONS if args.regions is None else split_values(args.regions)
    args.providers = DEFAULT_PROVIDERS if args.providers is None else split_values(args.providers)

    if not args.subscriptions:
        raise ConfigurationError(f"No subscription ID provided (pass one or set {SUBSCRIPTIONS_ENV})")
    if not args.regions:
        raise ConfigurationError("No regions provided")
    if not args.providers:
        raise ConfigurationError("No providers provided")
    return args


def configure_logging(level):
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger("azure").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def main(argv=None):
    """Main execution function"""
    try:
        args = parse_args(argv)
    except ConfigurationError as e:
        configure_logging(logging.INFO)
        logger.error(f"Error: {e}")
        return EXIT_USAGE

    configure_logging(args.log_level)
    logger.info(f"Checking quota usage above {args.threshold}% for {len(args.subscriptions)} subscription(s)")

    try:
        run(args.subscriptions, DefaultAzureCredential(), args.threshold, args.regions, args.providers, args.timeout)
    except ConfigurationError as e:
        logger.error(f"Error: {e}")
        return EXIT_USAGE
    except QuotaReportError as e:
        logger.error(f"Error: {e}")
        return EXIT_FATAL
    except KeyboardInterrupt:
        logger.error("Operation cancelled by user")
        return EXIT_INTERRUPTED
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
