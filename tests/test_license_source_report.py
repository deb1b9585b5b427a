"""Tests for the bulk SKU-level source report."""

import pytest

from conftest import (
    E3,
    POWER_BI,
    SPE_E3,
    FakeGraphClient,
    group_payload,
    http_error,
    user_payload,
)
import license_source_report
from license_model import SkuCatalog, User
from license_source_report import GroupNameResolver, run, sku_source_rows


def rows_for(payload, client):
    catalog = SkuCatalog.from_subscribed_skus(client.list_subscribed_skus())
    return sku_source_rows(User.from_graph(payload), GroupNameResolver(client), catalog)


class TestSkuSourceRows:
    def test_no_assigning_ids_is_direct_never_group(self):
        client = FakeGraphClient()
        [row] = rows_for(user_payload(legacy_skus=[POWER_BI]), client)
        assert row["AssignedDirectly"] == "Yes"
        assert row["AssignedFromGroup"] == "Never"
        assert row["Groups"] == ""
        assert row["SKU"] == "POWER_BI_PRO"

    def test_group_only_assignment(self):
        client = FakeGraphClient(groups=[group_payload("g-sales", "Sales", {E3: []})])
        [row] = rows_for(user_payload(states=[(E3, "g-sales")]), client)
        assert row["AssignedDirectly"] == "No"
        assert row["AssignedFromGroup"] == "Yes"
        assert row["Groups"] == "Sales"

    def test_direct_only_with_assignment_state(self):
        [row] = rows_for(user_payload(states=[(E3, None)]), FakeGraphClient())
        assert (row["AssignedDirectly"], row["AssignedFromGroup"]) == ("Yes", "No")

    def test_mixed_assignment_lists_every_group(self):
        client = FakeGraphClient(groups=[
            group_payload("g-hr", "HR", {E3: []}),
            group_payload("g-sales", "Sales", {E3: []}),
        ])
        [row] = rows_for(user_payload(states=[(E3, None), (E3, "g-sales"), (E3, "g-hr")]), client)
        assert (row["AssignedDirectly"], row["AssignedFromGroup"]) == ("Yes", "Yes")
        assert row["Groups"] == "HR, Sales"

    def test_unresolvable_group_falls_back_to_object_id(self, capsys):
        [row] = rows_for(user_payload(states=[(E3, "g-deleted")]), FakeGraphClient())
        assert row["Groups"] == "g-deleted"
        assert "Could not resolve group g-deleted" in capsys.readouterr().err

    def test_group_names_are_looked_up_once(self):
        client = FakeGraphClient(groups=[group_payload("g-hr", "HR", {E3: [], SPE_E3: []})])
        rows_for(user_payload(states=[(E3, "g-hr"), (SPE_E3, "g-hr")]), client)
        assert client.group_lookups == ["g-hr"]


class TestRun:
    def test_all_users_with_progress(self, log_dir, capsys):
        client = FakeGraphClient(
            users=[
                user_payload(states=[(E3, None)]),
                user_payload(user_id="u-2", upn="asmith@example.com", legacy_skus=[POWER_BI]),
            ],
        )
        rows = run(client, "ALL", log_dir=log_dir)
        captured = capsys.readouterr()
        assert [r["User"] for r in rows] == ["jdoe@example.com", "asmith@example.com"]
        assert "Processed 1/2 users (50%)" in captured.err
        assert "Processed 2/2 users (100%)" in captured.err

    def test_single_user_writes_run_log(self, log_dir, tmp_path):
        client = FakeGraphClient(users=[user_payload(states=[(E3, None)])])
        run(client, "jdoe@example.com", log_dir=log_dir)
        [log] = list((tmp_path / "logs").glob("license_source_report_*.log"))
        lines = log.read_text(encoding="utf-8").splitlines()
        assert lines[0].endswith(";User;SKU;AssignedDirectly;AssignedFromGroup;Groups")
        assert lines[1].endswith(";jdoe@example.com;ENTERPRISEPACK;Yes;No;")

    def test_unknown_user_exits(self, log_dir, capsys):
        with pytest.raises(SystemExit) as exc:
            run(FakeGraphClient(), "nobody@example.com", log_dir=log_dir)
        assert exc.value.code == 1
        assert "not found" in capsys.readouterr().err

    def test_failed_user_listing_exits(self, monkeypatch, log_dir, capsys):
        client = FakeGraphClient()

        def list_users(*args, **kwargs):
            raise http_error(503)

        monkeypatch.setattr(client, "list_users", list_users)
        with pytest.raises(SystemExit) as exc:
            run(client, "all", log_dir=log_dir)
        assert exc.value.code == 1
        assert "ERROR: Could not list users: 503" in capsys.readouterr().err


class TestMain:
    def test_prompts_for_target(self, monkeypatch, log_dir):
        seen = {}
        monkeypatch.setattr("builtins.input", lambda prompt: "all")
        monkeypatch.setattr(license_source_report, "GraphClient", lambda: FakeGraphClient())
        monkeypatch.setattr(
            license_source_report, "run",
            lambda client, target, log_dir=None: seen.update(target=target, log_dir=log_dir),
        )
        license_source_report.main(["--log-dir", log_dir])
        assert seen == {"target": "all", "log_dir": log_dir}

    def test_empty_target_exits(self, monkeypatch):
        monkeypatch.setattr("builtins.input", lambda prompt: "  ")
        with pytest.raises(SystemExit):
            license_source_report.main([])
