"""Tests for desired-state loading, recorded state files and drift detection."""

import dataclasses

import pytest

import linodeploy.redact as redact_module
from linodeploy.state import (
    DEFAULT_GROUP,
    DEFAULT_SWAP_SIZE,
    DesiredState,
    InstanceState,
    fingerprint,
    load_desired_state,
    load_state,
    save_state,
)

BASE = {
    "image": "Ubuntu 16.04 LTS",
    "kernel": "Latest 64 bit",
    "region": "Dallas, TX, USA",
    "size": 2048,
    "ssh_key": "ssh-ed25519 AAAA user@example.com",
    "root_password": "correct-horse-battery",
}


# ── DesiredState.from_dict ────────────────────────────────────────


def test_from_dict_defaults():
    desired = DesiredState.from_dict(BASE)

    assert desired.name == ""
    assert desired.group == DEFAULT_GROUP
    assert desired.swap_size == DEFAULT_SWAP_SIZE
    assert desired.private_networking is False
    assert desired.manage_private_ip_automatically is True
    assert desired.helper_distro is True
    assert desired.disk_expansion is False


def test_from_dict_missing_required_field():
    d = dict(BASE)
    del d["kernel"]

    with pytest.raises(ValueError, match="kernel"):
        DesiredState.from_dict(d)


def test_from_dict_missing_ssh_key():
    d = dict(BASE)
    del d["ssh_key"]

    with pytest.raises(ValueError, match="ssh_key"):
        DesiredState.from_dict(d)


def test_from_dict_unknown_field():
    with pytest.raises(ValueError, match="Unknown field.*flavor"):
        DesiredState.from_dict({**BASE, "flavor": "large"})


def test_from_dict_negative_swap():
    with pytest.raises(ValueError, match="swap_size"):
        DesiredState.from_dict({**BASE, "swap_size": -1})


def test_from_dict_reads_ssh_key_file(tmp_path):
    key_file = tmp_path / "id_ed25519.pub"
    key_file.write_text("ssh-ed25519 BBBB user@laptop\n")
    d = dict(BASE)
    del d["ssh_key"]

    desired = DesiredState.from_dict({**d, "ssh_key_file": str(key_file)})

    assert desired.ssh_key == "ssh-ed25519 BBBB user@laptop"


def test_load_desired_state_registers_root_password(tmp_path, monkeypatch):
    monkeypatch.setattr(redact_module, "_registered", set())
    monkeypatch.setattr(redact_module, "_patterns", None)
    config = tmp_path / "instance.yaml"
    config.write_text(
        "image: Ubuntu 16.04 LTS\n"
        "kernel: Latest 64 bit\n"
        "region: Dallas, TX, USA\n"
        "size: 2048\n"
        "ssh_key: ssh-ed25519 AAAA user@example.com\n"
        "root_password: correct-horse-battery\n"
        "private_networking: true\n"
    )

    desired = load_desired_state(config)

    assert desired.private_networking is True
    assert "correct-horse-battery" in redact_module._registered
    assert redact_module.redact_secrets("pw=correct-horse-battery") == "pw=***"


def test_load_desired_state_rejects_non_mapping(tmp_path):
    config = tmp_path / "instance.yaml"
    config.write_text("- just\n- a list\n")

    with pytest.raises(ValueError, match="mapping"):
        load_desired_state(config)


# ── fingerprints and drift ────────────────────────────────────────


def test_fingerprint_is_stable_and_opaque():
    fp = fingerprint("correct-horse-battery")

    assert fp == fingerprint("correct-horse-battery")
    assert fp != fingerprint("correct-horse-battery!")
    assert "correct-horse-battery" not in fp
    assert len(fp) == 44


def test_drift_none_after_set_from_desired():
    desired = DesiredState.from_dict(BASE)
    state = InstanceState(id=1)
    state.set_from_desired(desired, *[f.name for f in dataclasses.fields(DesiredState)])

    assert state.drift(desired) == []
    assert state.root_password == fingerprint(BASE["root_password"])


def test_drift_reports_changed_fields():
    desired = DesiredState.from_dict(BASE)
    state = InstanceState(id=1)
    state.set_from_desired(desired, *[f.name for f in dataclasses.fields(DesiredState)])

    changed = dataclasses.replace(desired, name="web-2", root_password="another-password")

    assert state.drift(changed) == ["root_password", "name"]


# ── state files ───────────────────────────────────────────────────


def test_save_and_load_state(tmp_path):
    path = tmp_path / "state.json"
    state = InstanceState(id=8098, name="web-1", size=2048, connection={"type": "ssh", "host": "203.0.113.10"})

    save_state(path, state)

    assert load_state(path) == state


def test_load_state_missing_file(tmp_path):
    assert load_state(tmp_path / "absent.json") is None


def test_load_state_ignores_unknown_keys(tmp_path):
    path = tmp_path / "state.json"
    path.write_text('{"id": 8098, "legacy": true}')

    assert load_state(path).id == 8098
