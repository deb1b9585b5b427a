"""
Microsoft 365 License Reference Module

Fixed reference data shared by the license source tools: the protected
(critical) service plan list, the provisioning statuses that count as
"actually turned on" for a user, and friendly product names for common
SKU part numbers.

Service plan identifiers are matched exactly and case-sensitively, the way
Graph returns them in servicePlanName.
"""


# ── Critical Service Plans ─────────────────────────────────────────────
# Core mail, collaboration and meeting plans. Losing the last source of one
# of these is treated as operationally unacceptable.

CRITICAL_SERVICES = frozenset({
    # Exchange Online mailboxes
    "EXCHANGE_S_ENTERPRISE",
    "EXCHANGE_S_STANDARD",
    "EXCHANGE_S_DESKLESS",
    # SharePoint / OneDrive
    "SHAREPOINTENTERPRISE",
    "SHAREPOINTSTANDARD",
    "SHAREPOINTDESKLESS",
    "SHAREPOINTWAC",
    # Teams and meetings
    "TEAMS1",
    "MCOSTANDARD",
    "MCOMEETADV",
    "MCOEV",
    # Microsoft 365 Apps
    "OFFICESUBSCRIPTION",
})

# ── Provisioning Status ────────────────────────────────────────────────

ACTIVE_STATUSES = frozenset({
    "Success",
    "PendingInput",
    "PendingActivation",
    "PendingProvisioning",
})


# ── Friendly SKU Names ─────────────────────────────────────────────────

SKU_FRIENDLY_NAMES = {
    "ENTERPRISEPACK": "Office 365 E3",
    "ENTERPRISEPREMIUM": "Office 365 E5",
    "STANDARDPACK": "Office 365 E1",
    "SPE_E3": "Microsoft 365 E3",
    "SPE_E5": "Microsoft 365 E5",
    "SPE_F1": "Microsoft 365 F3",
    "EXCHANGESTANDARD": "Exchange Online (Plan 1)",
    "EXCHANGEENTERPRISE": "Exchange Online (Plan 2)",
    "O365_BUSINESS_ESSENTIALS": "Microsoft 365 Business Basic",
    "O365_BUSINESS_PREMIUM": "Microsoft 365 Business Standard",
    "SMB_BUSINESS_PREMIUM": "Microsoft 365 Business Premium",
    "POWER_BI_STANDARD": "Power BI (Free)",
    "POWER_BI_PRO": "Power BI Pro",
    "PROJECTPREMIUM": "Project Plan 5",
    "PROJECTPROFESSIONAL": "Project Plan 3",
    "VISIOCLIENT": "Visio Plan 2",
    "EMS_E3": "Enterprise Mobility + Security E3",
    "EMS_E5": "Enterprise Mobility + Security E5",
    "STREAM": "Microsoft Stream",
    "FLOW_FREE": "Power Automate (Free)",
    "TEAMS_EXPLORATORY": "Microsoft Teams Exploratory",
    "AAD_PREMIUM": "Azure AD Premium P1",
    "AAD_PREMIUM_P2": "Azure AD Premium P2",
    "INTUNE_A": "Microsoft Intune Plan 1",
    "ATP_ENTERPRISE": "Microsoft Defender for Office 365 (Plan 1)",
    "THREAT_INTELLIGENCE": "Microsoft Defender for Office 365 (Plan 2)",
    "RIGHTSMANAGEMENT": "Azure Information Protection Plan 1",
    "MCOSTANDARD": "Skype for Business Online (Plan 2)",
}


def friendly_name(sku_part_number: str) -> str:
    return SKU_FRIENDLY_NAMES.get(sku_part_number, sku_part_number)


def is_critical(plan_name: str) -> bool:
    """Exact, case-sensitive membership in the protected list."""
    return plan_name in CRITICAL_SERVICES


def is_active(status: str | None) -> bool:
    return status in ACTIVE_STATUSES
