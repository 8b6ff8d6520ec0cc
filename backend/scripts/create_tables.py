#!/usr/bin/env python3
"""Create the DynamoDB tables used by the webhook pipeline.

Tables that already exist are left untouched, so the script is safe to
re-run after adding a table.

Usage:
    python scripts/create_tables.py --env dev
    python scripts/create_tables.py --prefix storefront-local --endpoint-url http://localhost:8000
"""

import argparse
import os
import sys

import boto3

from storefront.services.tables import TABLE_DEFINITIONS, create_tables


def main() -> int:
    """Run the provisioning script."""
    parser = argparse.ArgumentParser(description="Create webhook pipeline DynamoDB tables")
    parser.add_argument(
        "--env",
        choices=["dev", "staging", "prod"],
        default="dev",
        help="Target environment (default: dev)",
    )
    parser.add_argument(
        "--prefix",
        default=None,
        help="Table name prefix (default: DYNAMODB_TABLE_PREFIX or storefront-<env>)",
    )
    parser.add_argument(
        "--region",
        default=os.environ.get("AWS_DEFAULT_REGION", "eu-west-1"),
        help="AWS region (default: eu-west-1 or AWS_DEFAULT_REGION env var)",
    )
    parser.add_argument(
        "--endpoint-url",
        default=None,
        help="DynamoDB endpoint, e.g. for DynamoDB Local",
    )

    args = parser.parse_args()
    prefix = args.prefix or os.environ.get("DYNAMODB_TABLE_PREFIX", f"storefront-{args.env}")

    client = boto3.client("dynamodb", region_name=args.region, endpoint_url=args.endpoint_url)

    print(f"\nCreating tables with prefix {prefix} (region: {args.region})\n")
    try:
        created = create_tables(client, prefix)
    except Exception as e:
        print(f"  Failed to create tables: {e}")
        return 1

    for suffix in TABLE_DEFINITIONS:
        name = f"{prefix}-{suffix}"
        print(f"  {'created' if name in created else 'exists '}  {name}")

    print(f"\nDone: {len(created)} created, {len(TABLE_DEFINITIONS) - len(created)} already present")
    return 0


if __name__ == "__main__":
    sys.exit(main())
