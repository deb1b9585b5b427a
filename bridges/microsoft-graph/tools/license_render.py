"""
Renderers for per-plan classification rows.

The classifier only hands rows to a renderer; the console renderer prints
fixed-width columns, the run-log renderer writes ';'-separated records.
"""

import sys
from abc import ABC, abstractmethod

from license_audit_log import RunLog
from license_model import PlanSource, ServiceClassification, SkuClassification, User

SOURCE_MARKERS = {
    PlanSource.DIRECT: "✓",
    PlanSource.GROUP: "✓",
    PlanSource.DIRECT_AND_GROUP: "✓",
    PlanSource.EXTRA_DIRECT: "⚠",
    PlanSource.NONE: "✗",
}


class ClassificationRenderer(ABC):
    """Interface: one header per SKU, one row per service plan."""

    @abstractmethod
    def emit_header(self, user: User, sku: SkuClassification):
        ...

    @abstractmethod
    def emit_row(self, row: ServiceClassification):
        ...


class ConsoleRenderer(ClassificationRenderer):

    def __init__(self, stream=None):
        self.stream = stream or sys.stdout

    def emit_header(self, user: User, sku: SkuClassification):
        assigned = "direct" if sku.direct else "group only"
        print(f"\n  {sku.display_name} [{sku.sku_part_number}] ({assigned})", file=self.stream)
        print(f"    {'Service plan':36s}  {'Status':20s}  {'Source':15s}  Groups", file=self.stream)
        print(f"    {'─' * 36}  {'─' * 20}  {'─' * 15}  {'─' * 30}", file=self.stream)

    def emit_row(self, row: ServiceClassification):
        marker = SOURCE_MARKERS[row.source]
        groups = ", ".join(row.enabling_groups)
        if row.disabling_groups:
            off = ", ".join(row.disabling_groups)
            groups = f"{groups}  (disabled by {off})" if groups else f"(disabled by {off})"
        print(
            f"  {marker} {row.plan:36s}  {row.status or '-':20s}  {row.source.value:15s}  {groups}",
            file=self.stream,
        )


class RunLogRenderer(ClassificationRenderer):

    def __init__(self, run_log: RunLog):
        self.run_log = run_log
        self._user = ""
        self._sku = ""

    def emit_header(self, user: User, sku: SkuClassification):
        self._user = user.user_principal_name
        self._sku = sku.sku_part_number
        self.run_log.write("SKU", self._user, self._sku, "Direct" if sku.direct else "Group")

    def emit_row(self, row: ServiceClassification):
        self.run_log.write(
            "PLAN",
            self._user,
            self._sku,
            row.plan,
            row.status,
            row.source.value,
            "enabled" if row.enabled else "disabled",
            ",".join(row.enabling_groups),
            ",".join(row.disabling_groups),
        )


def render_classifications(user: User, classifications: list, renderers: list):
    for sku in classifications:
        for renderer in renderers:
            renderer.emit_header(user, sku)
        for row in sku.plans:
            for renderer in renderers:
                renderer.emit_row(row)
