#!/usr/bin/env python3
"""Quick verification script for an exporter config file.

Checks that:
1. The config file parses and validates
2. Every connection URL yields identity labels
3. Every query maps onto a metric descriptor

Usage: check_config.py [config.yml]
"""
import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sql_exporter import config  # noqa: E402
from sql_exporter.exceptions import ConfigurationError  # noqa: E402
from sql_exporter.exporter import Exporter  # noqa: E402


def check(path):
    """Load the config and print what would be scheduled."""
    cfg = config.read(path)
    print(f"✓ Config parsed: {len(cfg.jobs)} jobs")

    exporter = Exporter(cfg)
    for job in exporter.jobs:
        print(f"\nJob '{job.name}' every {job.interval.total_seconds()}s (keepalive={job.keepalive})")
        for conn in job.connections:
            print(f"  ✓ {conn.safe_url}")
            print(f"    driver={conn.driver} host={conn.host} database={conn.database} user={conn.user}")
        for query in job.queries:
            desc = query.descriptor
            print(f"  ✓ {desc.name} ({query.metric_type}) labels={list(desc.label_names)}")

    return True


if __name__ == "__main__":
    path = sys.argv[1] if len(sys.argv) > 1 else os.getenv("CONFIG", "config.yml")
    print(f"=== Checking {path} ===\n")

    try:
        check(path)
    except ConfigurationError as e:
        print(f"✗ Invalid config: {e}")
        sys.exit(1)

    print("\n" + "=" * 40)
    print("✓ Config verified")
