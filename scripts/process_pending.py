#!/usr/bin/env python3
"""
Script: process_pending.py
Description: Run one SMS recovery batch from an operator shell.

Uses the same recovery job as POST /sms-requests/process-pending, with
the operator identity taken from the command line instead of an API key.

Usage:
    python scripts/process_pending.py --operator ops-oncall
"""

import argparse
import asyncio
import json
import sys

from sms_dispatch.delivery.executor import get_executor
from sms_dispatch.errors import SmsDispatchError
from sms_dispatch.handlers.recovery import process_pending_requests
from sms_dispatch.storage.dynamodb import get_store
from sms_dispatch.utils.metrics import get_metrics_client


def main():
    parser = argparse.ArgumentParser(description="Deliver SMS requests stuck in pending")
    parser.add_argument('--operator', required=True, help='Operator identity running the batch')
    args = parser.parse_args()

    try:
        response = asyncio.run(
            process_pending_requests(args.operator, get_store(), get_executor(), get_metrics_client())
        )
    except SmsDispatchError as e:
        print(f"Error ({e.code}): {e.message}")
        sys.exit(1)

    print(json.dumps(response.model_dump(), indent=2))


if __name__ == '__main__':
    main()
