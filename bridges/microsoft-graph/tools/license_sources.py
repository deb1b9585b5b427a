"""
License source resolution and per-plan classification.

Pipeline for one user:

    fetch_user                     users/{upn} + licenseDetails
    load_tenant_catalog            subscribedSkus
    resolve_group_disabled_plans   groups/{id} for every assigning group
    referenced_catalog             catalog limited to SKUs in play
    classify_user                  per directly assigned SKU, per plan

Precedence for a plan on a SKU (later rules overwrite earlier ones):

    1. some assigning group leaves the plan enabled    -> Group
    2. groups assign the SKU but all disable the plan,
       SKU directly assigned and plan status active     -> ExtraDirect
    3. no group assigns the SKU, directly assigned,
       plan status active                               -> Direct
    4. directly assigned, a group enables it, active    -> DirectAndGroup

Anything else stays None (off / not attributable).
"""

import sys

import requests

from license_model import (
    Group,
    GroupPlanTable,
    PlanSource,
    ServiceClassification,
    SkuCatalog,
    SkuClassification,
    User,
)
from license_reference import is_active


# ── Fetching ───────────────────────────────────────────────────────────

def fetch_user(client, user_principal_name: str) -> User:
    """Load a user and their per-plan provisioning status.

    Raises requests.HTTPError when the user does not exist.
    """
    raw = client.get_user(user_principal_name)
    details = client.get_user_licenses(raw["id"])
    return User.from_graph(raw, details)


def load_tenant_catalog(client) -> SkuCatalog:
    return SkuCatalog.from_subscribed_skus(client.list_subscribed_skus())


# ── Group Disabled-Plan Resolver ───────────────────────────────────────

def resolve_group_disabled_plans(client, user: User, catalog: SkuCatalog) -> tuple:
    """Build the group -> SKU -> disabled plan table for ``user``.

    Returns (GroupPlanTable, failed_group_ids). A group that cannot be read
    is reported and skipped, so its SKUs count as "no group assigns it".
    """
    table = GroupPlanTable()
    failed = []
    seen_names = {}

    for object_id in sorted(user.assigning_object_ids):
        if object_id == user.id:
            continue
        try:
            group = Group.from_graph(client.get_group(object_id))
        except requests.RequestException as e:
            print(f"WARNING: Could not read group {object_id}: {e}", file=sys.stderr)
            failed.append(object_id)
            continue

        name = group.display_name
        if seen_names.get(name, group.id) != group.id:
            name = f"{name} ({group.id})"
        seen_names[name] = group.id

        for sku_id, disabled_ids in group.assigned_licenses.items():
            for pid in sorted(disabled_ids):
                if catalog.plan_name(pid) == pid:
                    print(
                        f"WARNING: Group {name} disables unknown service plan {pid} on SKU {sku_id}",
                        file=sys.stderr,
                    )
            table.add(name, sku_id, {catalog.plan_name(pid) for pid in disabled_ids})

    return table, failed


# ── SKU Catalog Loader ─────────────────────────────────────────────────

def referenced_catalog(catalog: SkuCatalog, user: User, table: GroupPlanTable) -> SkuCatalog:
    """Limit the tenant catalog to SKUs the user or a contributing group references."""
    sku_ids = [lic.sku_id for lic in user.licenses]
    sku_ids += sorted(sku for sku in table.sku_ids() if sku not in sku_ids)
    return catalog.restrict(sku_ids)


# ── Service Source Classifier ──────────────────────────────────────────

def classify_plan(
    sku_id: str,
    plan: str,
    status: str | None,
    direct: bool,
    groups_assigning: list,
) -> ServiceClassification:
    """Classify one plan. ``groups_assigning`` is [(group name, disabled plans)]."""
    enabling = tuple(name for name, disabled in groups_assigning if plan not in disabled)
    disabling = tuple(name for name, disabled in groups_assigning if plan in disabled)
    active = is_active(status)

    result = ServiceClassification(
        sku_id=sku_id,
        plan=plan,
        status=status,
        enabling_groups=enabling,
        disabling_groups=disabling,
    )

    if enabling:
        result.source = PlanSource.GROUP
        result.enabled = True
    elif disabling:
        result.enabled = False
        if direct and active:
            result.source = PlanSource.EXTRA_DIRECT
    elif direct and active:
        result.source = PlanSource.DIRECT
        result.enabled = True

    if direct and enabling and active:
        result.source = PlanSource.DIRECT_AND_GROUP

    return result


def classify_license(lic, user_id: str, table: GroupPlanTable, catalog: SkuCatalog) -> SkuClassification:
    """Classify every plan of one of the user's license assignments."""
    direct = lic.is_direct(user_id)
    groups_assigning = table.assigning(lic.sku_id)

    plan_names = list(lic.plan_statuses)
    plan_names += [p for p in catalog.plans(lic.sku_id) if p not in lic.plan_statuses]

    return SkuClassification(
        sku_id=lic.sku_id,
        sku_part_number=lic.sku_part_number or catalog.part_number(lic.sku_id),
        direct=direct,
        plans=[
            classify_plan(lic.sku_id, plan, lic.status(plan), direct, groups_assigning)
            for plan in plan_names
        ],
    )


def classify_user(user: User, table: GroupPlanTable, catalog: SkuCatalog) -> list:
    """Classify the user's directly assigned SKUs."""
    return [
        classify_license(lic, user.id, table, catalog)
        for lic in user.direct_licenses()
    ]
