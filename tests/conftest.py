"""Shared fixtures: Graph payload builders and an in-memory Graph client.

No network calls; every test runs against FakeGraphClient.
"""

import sys
from pathlib import Path

import pytest
import requests

# Tool modules are flat scripts, importable by bare name.
TOOLS_DIR = Path(__file__).resolve().parent.parent / "bridges" / "microsoft-graph" / "tools"
sys.path.insert(0, str(TOOLS_DIR))


# ── Catalog data ─────────────────────────────────────────────────────

E3 = "6fd2c87f-b296-42f0-b197-1e91e994b900"
SPE_E3 = "05e9a617-0261-4cee-bb44-138d3ef5d965"
POWER_BI = "f8a1db68-be16-40ed-86d5-cb42ce701560"

PLAN_IDS = {
    "EXCHANGE_S_ENTERPRISE": "efb87545-963c-4e0d-99df-69c6916d9eb0",
    "SHAREPOINTENTERPRISE": "5dbe027f-2339-4123-9542-606e4d348a72",
    "TEAMS1": "57ff2da0-773e-42df-b2af-ffb7a2317929",
    "YAMMER_ENTERPRISE": "7547a3fe-08ee-4ccb-b430-5077c5041653",
    "SWAY": "a23b959c-7ce8-4e57-9140-b90eb88a9e97",
    "BI_AZURE_P2": "70d33638-9c74-4d01-bfd3-562de28bd4ba",
}

E3_PLANS = ["EXCHANGE_S_ENTERPRISE", "SHAREPOINTENTERPRISE", "TEAMS1", "YAMMER_ENTERPRISE", "SWAY"]

SKUS = {
    E3: ("ENTERPRISEPACK", E3_PLANS),
    SPE_E3: ("SPE_E3", ["EXCHANGE_S_ENTERPRISE", "TEAMS1"]),
    POWER_BI: ("POWER_BI_PRO", ["BI_AZURE_P2"]),
}

USER_ID = "11111111-aaaa-4bbb-8ccc-000000000001"
UPN = "jdoe@example.com"


def sku_payload(sku_id: str) -> dict:
    part, plans = SKUS[sku_id]
    return {
        "skuId": sku_id,
        "skuPartNumber": part,
        "servicePlans": [
            {"servicePlanId": PLAN_IDS[p], "servicePlanName": p} for p in plans
        ],
    }


def user_payload(user_id=USER_ID, upn=UPN, states=(), legacy_skus=(), display_name="Jane Doe") -> dict:
    """``states`` is a list of (sku_id, group_id or None for direct)."""
    sku_ids = []
    for sku_id, _ in states:
        if sku_id not in sku_ids:
            sku_ids.append(sku_id)
    sku_ids += [s for s in legacy_skus if s not in sku_ids]
    return {
        "id": user_id,
        "userPrincipalName": upn,
        "displayName": display_name,
        "mail": upn,
        "assignedLicenses": [{"skuId": s, "disabledPlans": []} for s in sku_ids],
        "licenseAssignmentStates": [
            {"skuId": s, "assignedByGroup": g, "state": "Active", "disabledPlans": []}
            for s, g in states
        ],
    }


def license_details(sku_id: str, statuses: dict = None) -> dict:
    part, plans = SKUS[sku_id]
    statuses = statuses or {}
    return {
        "skuId": sku_id,
        "skuPartNumber": part,
        "servicePlans": [
            {
                "servicePlanId": PLAN_IDS[p],
                "servicePlanName": p,
                "provisioningStatus": statuses.get(p, "Success"),
            }
            for p in plans
        ],
    }


def group_payload(group_id: str, name: str, licenses: dict) -> dict:
    """``licenses`` maps SKU id -> list of disabled plan names."""
    return {
        "id": group_id,
        "displayName": name,
        "assignedLicenses": [
            {"skuId": s, "disabledPlans": [PLAN_IDS[p] for p in disabled]}
            for s, disabled in licenses.items()
        ],
    }


def http_error(status: int) -> requests.HTTPError:
    resp = requests.Response()
    resp.status_code = status
    return requests.HTTPError(f"{status} Client Error", response=resp)


# ── Fake client ──────────────────────────────────────────────────────

class FakeGraphClient:
    """Implements the GraphClient methods the license tools call."""

    def __init__(self, users=(), details=None, groups=(), skus=None,
                 failing_groups=(), remove_result=None, remove_exception=None):
        self.users = list(users)
        self.details = details or {}
        self.groups = {g["id"]: g for g in groups}
        self.skus = [sku_payload(s) for s in (skus or SKUS)]
        self.failing_groups = set(failing_groups)
        self.remove_result = remove_result or {"ok": True}
        self.remove_exception = remove_exception
        self.removed = []
        self.group_lookups = []

    def get_user(self, user_id, select=None):
        for u in self.users:
            if user_id in (u["id"], u["userPrincipalName"]):
                return u
        raise http_error(404)

    def list_users(self, select=None, filter_expr=None, top=100):
        return list(self.users)

    def get_user_licenses(self, user_id):
        return list(self.details.get(user_id, []))

    def get_group(self, group_id, select=None):
        self.group_lookups.append(group_id)
        if group_id in self.failing_groups or group_id not in self.groups:
            raise http_error(404)
        return self.groups[group_id]

    def list_subscribed_skus(self):
        return list(self.skus)

    def remove_license(self, user_id, sku_id):
        if self.remove_exception:
            raise self.remove_exception
        if self.remove_result.get("ok"):
            self.removed.append((user_id, sku_id))
        return self.remove_result


class ScriptedAnswers:
    """Stands in for the interactive prompt; records every question."""

    def __init__(self, answers):
        self.answers = list(answers)
        self.questions = []

    def __call__(self, question):
        self.questions.append(question)
        return self.answers.pop(0) if self.answers else False


# ── Scenario fixtures ────────────────────────────────────────────────

def scenario_client(groups: dict, statuses: dict = None, **kwargs) -> FakeGraphClient:
    """E3 assigned directly plus via each group in ``groups``.

    ``groups`` maps group id -> (display name, disabled E3 plan names).
    """
    states = [(E3, None)] + [(E3, gid) for gid in groups]
    return FakeGraphClient(
        users=[user_payload(states=states)],
        details={USER_ID: [license_details(E3, statuses)]},
        groups=[
            group_payload(gid, name, {E3: disabled})
            for gid, (name, disabled) in groups.items()
        ],
        **kwargs,
    )


@pytest.fixture
def scenario_a():
    return scenario_client({"g-marketing": ("Marketing", [])})


@pytest.fixture
def scenario_b():
    return scenario_client({"g-sales": ("Sales", ["EXCHANGE_S_ENTERPRISE"])})


@pytest.fixture
def scenario_c():
    return scenario_client({
        "g-hr": ("HR", []),
        "g-sales": ("Sales", ["EXCHANGE_S_ENTERPRISE"]),
    })


@pytest.fixture
def log_dir(tmp_path):
    return str(tmp_path / "logs")
