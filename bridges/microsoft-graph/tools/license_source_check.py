#!/usr/bin/env python3
"""
License source classifier for a single Microsoft 365 user.

For every directly assigned SKU, shows per service plan whether it is
enabled through the direct assignment, through one or more licensing
groups, or both, flags critical services without a redundant source, and
offers to remove direct assignments that groups already cover.

Usage:
    python3 license_source_check.py <user-principal-name>
    python3 license_source_check.py <upn> --json       # Classification only, no prompts
    python3 license_source_check.py <upn> --log-dir /var/log/licenses

Sources:
    Direct          Only the direct assignment grants the plan
    Group           A group grants the plan (no active direct grant)
    DirectAndGroup  Direct assignment and at least one group
    ExtraDirect     Groups disable the plan, the direct grant turns it on
    None            Not enabled / not attributable
"""

import sys
import json
import argparse

import requests

sys.path.insert(0, __file__.rsplit("/", 1)[0])
from graph_client import GraphClient
from license_advisor import LicenseAdvisor
from license_audit_log import RunLog, SkipLog
from license_render import ConsoleRenderer, RunLogRenderer, render_classifications
from license_sources import (
    classify_user,
    fetch_user,
    load_tenant_catalog,
    referenced_catalog,
    resolve_group_disabled_plans,
)

TOOL_NAME = "license_source_check"


def load_user(client: GraphClient, user_principal_name: str):
    """Fetch the user or terminate the run."""
    try:
        return fetch_user(client, user_principal_name)
    except requests.HTTPError as e:
        status = getattr(e.response, "status_code", None)
        if status == 404:
            print(f"ERROR: User '{user_principal_name}' not found.", file=sys.stderr)
        else:
            print(f"ERROR: Could not read user '{user_principal_name}': {e}", file=sys.stderr)
        sys.exit(1)
    except requests.RequestException as e:
        print(f"ERROR: Could not read user '{user_principal_name}': {e}", file=sys.stderr)
        sys.exit(1)


def load_catalog(client: GraphClient):
    try:
        return load_tenant_catalog(client)
    except requests.RequestException as e:
        print(f"ERROR: Could not read the tenant SKU catalog: {e}", file=sys.stderr)
        sys.exit(1)


def run(client, user_principal_name: str, log_dir: str = None, json_output: bool = False, ask_fn=None):
    """Classify one user's licenses and, unless json_output, advise on removals."""
    user = load_user(client, user_principal_name)
    catalog = load_catalog(client)
    table, failed = resolve_group_disabled_plans(client, user, catalog)
    catalog = referenced_catalog(catalog, user, table)
    classifications = classify_user(user, table, catalog)

    if json_output:
        print(json.dumps({
            "user": user.user_principal_name,
            "id": user.id,
            "groups": table.as_dict(),
            "failed_groups": failed,
            "licenses": [c.to_dict() for c in classifications],
        }, indent=2))
        return []

    print(f"License sources for {user.display_name or user.user_principal_name} "
          f"({user.user_principal_name}):")

    if failed:
        print(f"  WARNING: {len(failed)} group(s) could not be read; their SKUs are "
              f"treated as not group-assigned: {', '.join(failed)}", file=sys.stderr)

    if not classifications:
        print("  No directly assigned licenses.")
        return []

    run_log = RunLog(TOOL_NAME, log_dir)
    run_log.write("RUN", user.user_principal_name, user.id)
    render_classifications(user, classifications, [ConsoleRenderer(), RunLogRenderer(run_log)])

    advisor_kwargs = {"ask_fn": ask_fn} if ask_fn else {}
    advisor = LicenseAdvisor(client, user, run_log, SkipLog(log_dir), **advisor_kwargs)
    outcomes = advisor.review(classifications, table.enabled_plans(catalog))

    removed = sum(1 for o in outcomes if o.removed)
    print(f"\n  Reviewed {len(outcomes)} SKU(s), removed {removed}. Log: {run_log.path}")
    return outcomes


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Classify a user's M365 license sources (direct / group / both)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python3 license_source_check.py jdoe@example.com
  python3 license_source_check.py jdoe@example.com --json
""")
    parser.add_argument("user", help="User principal name")
    parser.add_argument("--log-dir", type=str,
        help="Directory for run logs and the skip file (default: LICENSE_AUDIT_LOG_DIR or ./logs)")
    parser.add_argument("--json", dest="json_output", action="store_true",
        help="Print the classification as JSON; no prompts, no removal")
    args = parser.parse_args(argv)

    client = GraphClient()
    run(client, args.user, log_dir=args.log_dir, json_output=args.json_output)


if __name__ == "__main__":
    main()
