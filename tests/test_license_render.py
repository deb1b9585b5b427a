"""Tests for the renderer interface and the console renderer."""

import io

import pytest

from conftest import E3, user_payload
from license_model import PlanSource, ServiceClassification, SkuClassification, User
from license_render import ClassificationRenderer, ConsoleRenderer, render_classifications


def sample():
    user = User.from_graph(user_payload(states=[(E3, None)]))
    sku = SkuClassification(
        sku_id=E3,
        sku_part_number="ENTERPRISEPACK",
        direct=True,
        plans=[
            ServiceClassification(E3, "EXCHANGE_S_ENTERPRISE", "Success", False,
                                  PlanSource.EXTRA_DIRECT, (), ("Sales",)),
            ServiceClassification(E3, "TEAMS1", "Success", True,
                                  PlanSource.DIRECT_AND_GROUP, ("Sales",), ()),
        ],
    )
    return user, sku


class Recorder(ClassificationRenderer):
    def __init__(self):
        self.events = []

    def emit_header(self, user, sku):
        self.events.append(("header", sku.sku_part_number))

    def emit_row(self, row):
        self.events.append(("row", row.plan))


class TestInterface:
    def test_interface_cannot_be_instantiated(self):
        with pytest.raises(TypeError):
            ClassificationRenderer()

    def test_incomplete_renderer_is_rejected(self):
        class HeaderOnly(ClassificationRenderer):
            def emit_header(self, user, sku):
                pass

        with pytest.raises(TypeError):
            HeaderOnly()

    def test_rows_follow_their_header(self):
        user, sku = sample()
        recorder = Recorder()
        render_classifications(user, [sku], [recorder])
        assert recorder.events == [
            ("header", "ENTERPRISEPACK"),
            ("row", "EXCHANGE_S_ENTERPRISE"),
            ("row", "TEAMS1"),
        ]


def test_console_marks_extra_direct():
    user, sku = sample()
    stream = io.StringIO()
    render_classifications(user, [sku], [ConsoleRenderer(stream)])
    lines = stream.getvalue().splitlines()
    exo = next(line for line in lines if "EXCHANGE_S_ENTERPRISE" in line)
    assert exo.lstrip().startswith("⚠")
    assert "(disabled by Sales)" in exo
    assert "[ENTERPRISEPACK] (direct)" in stream.getvalue()
