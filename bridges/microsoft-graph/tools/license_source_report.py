#!/usr/bin/env python3
"""
Bulk license source report: direct vs. group assignment per SKU.

For one user or every user in the tenant, reports for each assigned SKU
whether it is assigned directly, from a group, or both, and which groups.
No removal happens in this mode.

Usage:
    python3 license_source_report.py                 # Prompts for a UPN or 'all'
    python3 license_source_report.py <upn>
    python3 license_source_report.py all

    AssignedFromGroup = Never   the SKU has no assignment-source entries
                                (legacy direct-only assignment)
"""

import sys
import argparse

import requests

sys.path.insert(0, __file__.rsplit("/", 1)[0])
from graph_client import GraphClient
from license_audit_log import RunLog
from license_model import SkuCatalog, User
from license_sources import load_tenant_catalog

TOOL_NAME = "license_source_report"
REPORT_FIELDS = ["User", "SKU", "AssignedDirectly", "AssignedFromGroup", "Groups"]


class GroupNameResolver:
    """Group object ID -> display name, raw ID when the lookup fails."""

    def __init__(self, client):
        self.client = client
        self._names = {}

    def __call__(self, group_id: str) -> str:
        if group_id not in self._names:
            try:
                group = self.client.get_group(group_id, select="id,displayName")
                self._names[group_id] = group.get("displayName") or group_id
            except requests.RequestException as e:
                print(f"  WARNING: Could not resolve group {group_id}: {e}", file=sys.stderr)
                self._names[group_id] = group_id
        return self._names[group_id]


def sku_source_rows(user: User, resolve_name, catalog: SkuCatalog = None) -> list:
    """One row per license assignment, classified at SKU granularity."""
    rows = []
    for lic in user.licenses:
        if not lic.assigned_by:
            directly, from_group, names = "Yes", "Never", []
        else:
            group_ids = lic.group_ids(user.id)
            directly = "Yes" if user.id in lic.assigned_by else "No"
            from_group = "Yes" if group_ids else "No"
            names = []
            for gid in group_ids:
                name = resolve_name(gid)
                if name not in names:
                    names.append(name)

        sku = lic.sku_part_number or (catalog.part_number(lic.sku_id) if catalog else lic.sku_id)
        rows.append({
            "User": user.user_principal_name,
            "SKU": sku,
            "AssignedDirectly": directly,
            "AssignedFromGroup": from_group,
            "Groups": ", ".join(names),
        })
    return rows


def load_users(client: GraphClient, target: str) -> list:
    if target.lower() == "all":
        try:
            return client.list_users()
        except requests.RequestException as e:
            print(f"ERROR: Could not list users: {e}", file=sys.stderr)
            sys.exit(1)
    try:
        return [client.get_user(target)]
    except requests.HTTPError as e:
        status = getattr(e.response, "status_code", None)
        if status == 404:
            print(f"ERROR: User '{target}' not found.", file=sys.stderr)
        else:
            print(f"ERROR: Could not read user '{target}': {e}", file=sys.stderr)
        sys.exit(1)
    except requests.RequestException as e:
        print(f"ERROR: Could not read user '{target}': {e}", file=sys.stderr)
        sys.exit(1)


def run(client, target: str, log_dir: str = None) -> list:
    raw_users = load_users(client, target)
    try:
        catalog = load_tenant_catalog(client)
    except requests.RequestException as e:
        print(f"  WARNING: SKU catalog unavailable, showing SKU ids: {e}", file=sys.stderr)
        catalog = None

    resolve_name = GroupNameResolver(client)
    run_log = RunLog(TOOL_NAME, log_dir)
    run_log.write(*REPORT_FIELDS)

    print(f"  {'User':40s}  {'SKU':30s}  {'Direct':6s}  {'Group':6s}  Groups")
    print(f"  {'─' * 40}  {'─' * 30}  {'─' * 6}  {'─' * 6}  {'─' * 30}")

    all_rows = []
    total = len(raw_users)
    for i, raw in enumerate(raw_users, 1):
        user = User.from_graph(raw)
        for row in sku_source_rows(user, resolve_name, catalog):
            print(f"  {row['User']:40s}  {row['SKU']:30s}  {row['AssignedDirectly']:6s}  "
                  f"{row['AssignedFromGroup']:6s}  {row['Groups']}")
            run_log.write(*(row[f] for f in REPORT_FIELDS))
            all_rows.append(row)
        pct = i * 100 / total
        print(f"  Processed {i}/{total} users ({pct:.0f}%)", file=sys.stderr)

    print(f"\n  {len(all_rows)} license assignment(s) for {total} user(s). Log: {run_log.path}")
    return all_rows


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Report direct vs. group license assignment per SKU",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("target", nargs="?",
        help="User principal name, or 'all' for every user (prompted if omitted)")
    parser.add_argument("--log-dir", type=str,
        help="Directory for run logs (default: LICENSE_AUDIT_LOG_DIR or ./logs)")
    args = parser.parse_args(argv)

    target = args.target
    if not target:
        try:
            target = input("User principal name (or 'all'): ").strip()
        except EOFError:
            target = ""
    if not target:
        print("ERROR: No user given.", file=sys.stderr)
        sys.exit(1)

    client = GraphClient()
    run(client, target, log_dir=args.log_dir)


if __name__ == "__main__":
    main()
