"""
License Source Data Model

Typed views over the Microsoft Graph payloads the license source tools
consume, plus the derived per-plan classification records.

  User / LicenseAssignment  - users/{id} (assignedLicenses,
                              licenseAssignmentStates) + licenseDetails
  Group                     - groups/{id} (assignedLicenses.disabledPlans)
  SkuCatalog                - subscribedSkus (servicePlans)
  GroupPlanTable            - group name -> SKU id -> disabled plan names
  ServiceClassification     - per (SKU, plan) licensing source
  SkuClassification         - all plan classifications for one SKU

Everything here is rebuilt on every run; nothing is cached on disk.
"""

from dataclasses import dataclass, field
from enum import Enum

from license_reference import friendly_name


class PlanSource(str, Enum):
    """Where a service plan's enablement comes from."""

    DIRECT = "Direct"
    GROUP = "Group"
    DIRECT_AND_GROUP = "DirectAndGroup"
    EXTRA_DIRECT = "ExtraDirect"
    NONE = "None"


# ── Users ──────────────────────────────────────────────────────────────

@dataclass
class LicenseAssignment:
    """One SKU on a user and the object IDs assigning it.

    An empty ``assigned_by`` is a legacy direct-only assignment. The user's
    own object ID means direct, any other ID is a licensing group.
    """

    sku_id: str
    sku_part_number: str = ""
    assigned_by: frozenset = frozenset()
    plan_statuses: dict = field(default_factory=dict)

    def is_direct(self, user_id: str) -> bool:
        return not self.assigned_by or user_id in self.assigned_by

    def group_ids(self, user_id: str) -> list:
        return sorted(oid for oid in self.assigned_by if oid != user_id)

    def status(self, plan_name: str) -> str | None:
        return self.plan_statuses.get(plan_name)

    @property
    def display_name(self) -> str:
        return friendly_name(self.sku_part_number or self.sku_id)


@dataclass
class User:
    id: str
    user_principal_name: str
    display_name: str = ""
    mail: str = ""
    licenses: list = field(default_factory=list)

    @property
    def assigning_object_ids(self) -> set:
        """Union of every object ID (groups or self) assigning a license."""
        ids = set()
        for lic in self.licenses:
            ids.update(lic.assigned_by)
        return ids

    def direct_licenses(self) -> list:
        return [lic for lic in self.licenses if lic.is_direct(self.id)]

    def direct_sku_ids(self) -> set:
        return {lic.sku_id for lic in self.direct_licenses()}

    def license(self, sku_id: str) -> LicenseAssignment | None:
        return next((lic for lic in self.licenses if lic.sku_id == sku_id), None)

    @classmethod
    def from_graph(cls, user: dict, license_details: list = None) -> "User":
        """Build a User from a users/{id} payload and its licenseDetails.

        licenseAssignmentStates carries one entry per (SKU, source);
        assignedByGroup is null for the direct assignment.
        """
        user_id = user.get("id", "")

        assigned_by = {}
        for state in user.get("licenseAssignmentStates") or []:
            sku_id = state.get("skuId")
            if not sku_id:
                continue
            assigned_by.setdefault(sku_id, set()).add(state.get("assignedByGroup") or user_id)

        details = {d.get("skuId"): d for d in license_details or []}

        sku_order = [lic.get("skuId") for lic in user.get("assignedLicenses") or []]
        sku_order += [sku for sku in assigned_by if sku not in sku_order]

        licenses = []
        for sku_id in sku_order:
            if not sku_id:
                continue
            detail = details.get(sku_id, {})
            statuses = {
                p.get("servicePlanName", "?"): p.get("provisioningStatus", "")
                for p in detail.get("servicePlans", [])
            }
            licenses.append(LicenseAssignment(
                sku_id=sku_id,
                sku_part_number=detail.get("skuPartNumber", ""),
                assigned_by=frozenset(assigned_by.get(sku_id, ())),
                plan_statuses=statuses,
            ))

        return cls(
            id=user_id,
            user_principal_name=user.get("userPrincipalName", ""),
            display_name=user.get("displayName") or "",
            mail=user.get("mail") or "",
            licenses=licenses,
        )


# ── Groups ─────────────────────────────────────────────────────────────

@dataclass
class Group:
    id: str
    display_name: str
    # SKU id -> frozenset of disabled servicePlanId GUIDs
    assigned_licenses: dict = field(default_factory=dict)

    @classmethod
    def from_graph(cls, group: dict) -> "Group":
        assigned = {
            lic.get("skuId"): frozenset(lic.get("disabledPlans") or [])
            for lic in group.get("assignedLicenses") or []
            if lic.get("skuId")
        }
        return cls(
            id=group.get("id", ""),
            display_name=group.get("displayName") or group.get("id", ""),
            assigned_licenses=assigned,
        )


# ── SKU Catalog ────────────────────────────────────────────────────────

class SkuCatalog:
    """SKU id -> ordered service plan names, from subscribedSkus."""

    def __init__(self):
        self._plans = {}
        self._part_numbers = {}
        self._plan_names = {}

    def add(self, sku_id: str, part_number: str, plans: list):
        """Register a SKU. ``plans`` is a list of (servicePlanId, servicePlanName)."""
        names = []
        for plan_id, plan_name in plans:
            if plan_id:
                self._plan_names[plan_id] = plan_name
            if plan_name not in names:
                names.append(plan_name)
        self._plans[sku_id] = tuple(names)
        self._part_numbers[sku_id] = part_number

    @classmethod
    def from_subscribed_skus(cls, skus: list) -> "SkuCatalog":
        catalog = cls()
        for s in skus:
            catalog.add(
                s.get("skuId", ""),
                s.get("skuPartNumber", ""),
                [(p.get("servicePlanId", ""), p.get("servicePlanName", "?"))
                 for p in s.get("servicePlans", [])],
            )
        return catalog

    def restrict(self, sku_ids) -> "SkuCatalog":
        """Copy limited to ``sku_ids``; the plan id index is kept whole."""
        subset = SkuCatalog()
        subset._plan_names = dict(self._plan_names)
        for sku_id in sku_ids:
            if sku_id in self._plans:
                subset._plans[sku_id] = self._plans[sku_id]
                subset._part_numbers[sku_id] = self._part_numbers[sku_id]
        return subset

    def plans(self, sku_id: str) -> tuple:
        return self._plans.get(sku_id, ())

    def part_number(self, sku_id: str) -> str:
        return self._part_numbers.get(sku_id) or sku_id

    def plan_name(self, plan_id: str) -> str:
        return self._plan_names.get(plan_id, plan_id)

    def sku_ids(self) -> list:
        return list(self._plans)

    def __contains__(self, sku_id) -> bool:
        return sku_id in self._plans

    def __len__(self) -> int:
        return len(self._plans)


# ── Group Disabled-Plan Table ──────────────────────────────────────────

class GroupPlanTable:
    """Nested mapping: group name -> SKU id -> frozenset of disabled plan names.

    A group with an entry for a SKU assigns that SKU; an empty set means it
    assigns the SKU with every plan enabled.
    """

    def __init__(self):
        self._table = {}

    def add(self, group_name: str, sku_id: str, disabled_plans=()):
        self._table.setdefault(group_name, {})[sku_id] = frozenset(disabled_plans)

    def groups(self) -> list:
        return list(self._table)

    def disabled(self, group_name: str, sku_id: str) -> frozenset | None:
        return self._table.get(group_name, {}).get(sku_id)

    def assigning(self, sku_id: str) -> list:
        """(group name, disabled plans) for every group assigning ``sku_id``."""
        return [
            (name, skus[sku_id])
            for name, skus in self._table.items()
            if sku_id in skus
        ]

    def sku_ids(self) -> set:
        return {sku for skus in self._table.values() for sku in skus}

    def enabled_plans(self, catalog: SkuCatalog) -> set:
        """Every plan name some group enables for the user, across all SKUs."""
        enabled = set()
        for skus in self._table.values():
            for sku_id, disabled in skus.items():
                enabled.update(p for p in catalog.plans(sku_id) if p not in disabled)
        return enabled

    def as_dict(self) -> dict:
        return {
            name: {sku: sorted(disabled) for sku, disabled in skus.items()}
            for name, skus in self._table.items()
        }

    def __len__(self) -> int:
        return len(self._table)


# ── Classification Records ─────────────────────────────────────────────

@dataclass
class ServiceClassification:
    sku_id: str
    plan: str
    status: str | None = None
    enabled: bool = False
    source: PlanSource = PlanSource.NONE
    enabling_groups: tuple = ()
    disabling_groups: tuple = ()

    def to_dict(self) -> dict:
        return {
            "plan": self.plan,
            "status": self.status,
            "enabled": self.enabled,
            "source": self.source.value,
            "enabling_groups": list(self.enabling_groups),
            "disabling_groups": list(self.disabling_groups),
        }


@dataclass
class SkuClassification:
    sku_id: str
    sku_part_number: str
    direct: bool
    plans: list = field(default_factory=list)

    def with_source(self, *sources) -> list:
        return [p for p in self.plans if p.source in sources]

    def has_source(self, source: PlanSource) -> bool:
        return any(p.source == source for p in self.plans)

    @property
    def display_name(self) -> str:
        return friendly_name(self.sku_part_number)

    def to_dict(self) -> dict:
        return {
            "sku_id": self.sku_id,
            "sku": self.sku_part_number,
            "name": self.display_name,
            "direct": self.direct,
            "plans": [p.to_dict() for p in self.plans],
        }
