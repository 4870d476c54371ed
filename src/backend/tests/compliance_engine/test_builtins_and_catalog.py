import json

import pytest

from common.compliance_engine.builtins import builtin_profiles, builtin_rules
from common.compliance_engine.catalog import build_catalog, main
from common.compliance_engine.registry import registry


def test_builtin_rules_use_registered_kinds_and_stable_ids():
    rules = builtin_rules()

    assert len(rules) == 29
    assert all(r.id.startswith("builtin-") and r.is_builtin and r.is_global for r in rules)
    assert all(registry.get(r.condition_type) is not None for r in rules)
    assert "builtin-firewall-attached" in {r.id for r in rules}


def test_builtin_rules_are_fresh_copies():
    first = builtin_rules()
    first[0].is_active = False

    assert builtin_rules()[0].is_active is True


def test_account_rules_have_no_resource_types():
    by_id = {r.id: r for r in builtin_rules()}

    assert by_id["builtin-tfa-users"].resource_types == []
    assert by_id["builtin-login-allowed-ips"].resource_types == []


def test_profiles_reference_registered_kinds():
    profiles = {p.slug: p for p in builtin_profiles()}

    assert set(profiles) == {"cis-l1", "cis-l2", "soc2", "pci-dss", "minimal-dev", "all-rules"}
    for profile in profiles.values():
        assert profile.id == f"profile-{profile.slug}"
        assert all(registry.get(kind) is not None for kind in profile.rule_condition_types)
    assert set(profiles["all-rules"].rule_condition_types) == set(registry.ids())


def test_catalog_lists_every_kind_sorted():
    entries = build_catalog()

    names = [e.condition_type for e in entries]
    assert names == sorted(registry.ids())
    acl = next(e for e in entries if e.condition_type == "lke_control_plane_acl")
    assert (acl.scope, acl.live, acl.resource_types) == ("resource", True, ["lke_cluster"])
    tfa = next(e for e in entries if e.condition_type == "tfa_users")
    assert tfa.scope == "account"
    assert "exclude_user_types" in tfa.config_schema["properties"]


def test_catalog_cli_json(capsys):
    main(["--format", "json"])

    payload = json.loads(capsys.readouterr().out)
    assert len(payload) == len(list(registry.ids()))
    assert payload[0]["title"]


@pytest.mark.parametrize("show, count", [("rules", 29), ("profiles", 6)])
def test_catalog_cli_lists_builtins(capsys, show, count):
    main(["--format", "json", "--show", show])

    payload = json.loads(capsys.readouterr().out)
    assert len(payload) == count
    assert all(row["id"].startswith("builtin-" if show == "rules" else "profile-") for row in payload)
