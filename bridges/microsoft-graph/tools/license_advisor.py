"""
Redundancy and removal advisor for directly assigned licenses.

For each directly assigned SKU the advisor collects the plans the direct
grant actually contributes (Direct, ExtraDirect, and DirectAndGroup plans
that some group disables), splits them into critical and non-critical,
and checks each against every plan a group enables anywhere on the user.

  critical and not group-enabled  -> blocks removal (recommend keep)
  everything else                 -> removal is safe

A SKU whose plans are all DirectAndGroup with nothing contested is fully
redundant and gets a single prompt without the breakdown.

Removal always goes through RemovalPrompt:

    PROPOSED --yes--> CONFIRMED                       (remove)
    PROPOSED --no---> DECLINED                        (keep)
    PROPOSED --keep recommended--> OVERRIDE_PROPOSED
    OVERRIDE_PROPOSED --yes--> OVERRIDE_CONFIRMED     (remove)
    OVERRIDE_PROPOSED --no---> OVERRIDE_DECLINED      (keep)
"""

import sys
from dataclasses import dataclass, field
from enum import Enum

import requests

from license_audit_log import RunLog, SkipLog
from license_model import PlanSource, SkuClassification, User
from license_reference import is_critical

AFFIRMATIVE_ANSWERS = ("y", "j")


# ── Prompts ────────────────────────────────────────────────────────────

def is_affirmative(answer: str | None) -> bool:
    return (answer or "").strip().lower() in AFFIRMATIVE_ANSWERS


def ask(question: str, input_fn=input) -> bool:
    """Yes/no prompt; anything but y/j (including EOF) is no."""
    try:
        answer = input_fn(f"{question} [y/N] ")
    except EOFError:
        answer = ""
    return is_affirmative(answer)


class PromptState(str, Enum):
    PROPOSED = "Proposed"
    CONFIRMED = "Confirmed"
    DECLINED = "Declined"
    OVERRIDE_PROPOSED = "OverrideProposed"
    OVERRIDE_CONFIRMED = "OverrideConfirmed"
    OVERRIDE_DECLINED = "OverrideDeclined"


TERMINAL_STATES = frozenset({
    PromptState.CONFIRMED,
    PromptState.DECLINED,
    PromptState.OVERRIDE_CONFIRMED,
    PromptState.OVERRIDE_DECLINED,
})
REMOVING_STATES = frozenset({PromptState.CONFIRMED, PromptState.OVERRIDE_CONFIRMED})


class RemovalPrompt:
    """Removal confirmation for one SKU as an explicit state machine."""

    def __init__(self, sku_label: str, recommend_removal: bool, ask_fn=ask):
        self.sku_label = sku_label
        self.recommend_removal = recommend_removal
        self.ask_fn = ask_fn
        self.state = PromptState.PROPOSED
        self.history = [self.state]

    def step(self) -> PromptState:
        if self.state == PromptState.PROPOSED:
            if not self.recommend_removal:
                nxt = PromptState.OVERRIDE_PROPOSED
            elif self.ask_fn(f"Remove direct assignment of {self.sku_label}? (recommended)"):
                nxt = PromptState.CONFIRMED
            else:
                nxt = PromptState.DECLINED
        elif self.state == PromptState.OVERRIDE_PROPOSED:
            if self.ask_fn(
                f"Removal of {self.sku_label} is NOT recommended. Override and remove anyway?"
            ):
                nxt = PromptState.OVERRIDE_CONFIRMED
            else:
                nxt = PromptState.OVERRIDE_DECLINED
        else:
            raise ValueError(f"Prompt already finished in state {self.state.value}")

        self.state = nxt
        self.history.append(nxt)
        return nxt

    def run(self) -> PromptState:
        while self.state not in TERMINAL_STATES:
            self.step()
        return self.state

    @property
    def removes(self) -> bool:
        return self.state in REMOVING_STATES


# ── Advice ─────────────────────────────────────────────────────────────

@dataclass
class SkuAdvice:
    sku: SkuClassification
    fully_redundant: bool = False
    extra_direct: list = field(default_factory=list)
    critical_blocking: list = field(default_factory=list)
    critical_redundant: list = field(default_factory=list)
    non_critical: list = field(default_factory=list)
    non_critical_redundant: list = field(default_factory=list)

    @property
    def recommend_removal(self) -> bool:
        return not self.critical_blocking

    @property
    def label(self) -> str:
        return f"{self.sku.display_name} [{self.sku.sku_part_number}]"


def _contributes(plan) -> bool:
    if plan.source in (PlanSource.DIRECT, PlanSource.EXTRA_DIRECT):
        return True
    return plan.source == PlanSource.DIRECT_AND_GROUP and bool(plan.disabling_groups)


def advise_sku(sku: SkuClassification, group_enabled: set) -> SkuAdvice | None:
    """Build removal advice for a directly assigned SKU, or None if it has none."""
    if not sku.direct:
        return None

    candidates = [p for p in sku.plans if _contributes(p)]
    if not candidates:
        if sku.has_source(PlanSource.DIRECT_AND_GROUP):
            return SkuAdvice(sku=sku, fully_redundant=True)
        return None

    advice = SkuAdvice(sku=sku, extra_direct=[p.plan for p in candidates])
    for p in candidates:
        redundant = p.plan in group_enabled
        if is_critical(p.plan):
            (advice.critical_redundant if redundant else advice.critical_blocking).append(p.plan)
        else:
            (advice.non_critical_redundant if redundant else advice.non_critical).append(p.plan)
    return advice


@dataclass
class AdvisorOutcome:
    sku_id: str
    sku_part_number: str
    state: PromptState
    removed: bool


# ── Advisor ────────────────────────────────────────────────────────────

class LicenseAdvisor:
    """Walks a user's classified SKUs, prompts, removes, and logs."""

    def __init__(self, client, user: User, run_log: RunLog, skip_log: SkipLog, ask_fn=ask):
        self.client = client
        self.user = user
        self.run_log = run_log
        self.skip_log = skip_log
        self.ask_fn = ask_fn

    def review(self, classifications: list, group_enabled: set) -> list:
        outcomes = []
        for sku in classifications:
            advice = advise_sku(sku, group_enabled)
            if advice is None:
                continue
            outcomes.append(self.review_sku(advice))
        return outcomes

    def review_sku(self, advice: SkuAdvice) -> AdvisorOutcome:
        self._print_advice(advice)

        prompt = RemovalPrompt(advice.label, advice.recommend_removal, self.ask_fn)
        state = prompt.run()
        self.run_log.write(
            "DECISION",
            self.user.user_principal_name,
            advice.sku.sku_part_number,
            "remove" if advice.recommend_removal else "keep",
            state.value,
        )

        removed = self.remove(advice) if prompt.removes else False
        if not removed:
            self.skip_log.record(
                self.user.user_principal_name,
                advice.sku.sku_part_number,
                advice.extra_direct,
                advice.critical_blocking,
                advice.critical_redundant,
                advice.non_critical,
                advice.non_critical_redundant,
            )
            print(f"  Kept {advice.label}.")

        return AdvisorOutcome(
            sku_id=advice.sku.sku_id,
            sku_part_number=advice.sku.sku_part_number,
            state=state,
            removed=removed,
        )

    def remove(self, advice: SkuAdvice) -> bool:
        """Remove the direct assignment; failures are logged, never retried."""
        try:
            result = self.client.remove_license(self.user.id, advice.sku.sku_id)
        except requests.RequestException as e:
            result = {"error": type(e).__name__, "body": str(e)}

        if result.get("ok"):
            print(f"  Removed direct assignment of {advice.label} from {self.user.user_principal_name}")
            self.run_log.write(
                "REMOVED", self.user.user_principal_name, advice.sku.sku_part_number,
            )
            return True

        message = f"{result.get('error')} {result.get('body', '')}".strip()
        print(f"ERROR: Could not remove {advice.label}: {message}", file=sys.stderr)
        self.run_log.write(
            "REMOVE-FAILED", self.user.user_principal_name, advice.sku.sku_part_number, message,
        )
        return False

    def _print_advice(self, advice: SkuAdvice):
        print(f"\n  {advice.label}")
        if advice.fully_redundant:
            print("    Every service is also supplied by a group; the direct grant is redundant.")
            return

        rows = [
            ("Critical, no other source", advice.critical_blocking),
            ("Critical, group-redundant", advice.critical_redundant),
            ("Not critical", advice.non_critical),
            ("Not critical, group-redundant", advice.non_critical_redundant),
        ]
        for title, plans in rows:
            if plans:
                print(f"    {title + ':':32s}  {', '.join(plans)}")

        if advice.recommend_removal:
            print("    Recommendation: safe to remove")
        else:
            print("    Recommendation: do NOT remove")
