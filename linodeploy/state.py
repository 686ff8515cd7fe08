"""Desired and recorded instance state: dataclasses, YAML config and JSON state files."""

import base64
import dataclasses
import hashlib
import json
import os
from dataclasses import dataclass, field

import yaml

from linodeploy.redact import register_secret

DEFAULT_GROUP = "Linode"
DEFAULT_SWAP_SIZE = 512

REQUIRED_FIELDS = ("image", "kernel", "region", "size", "root_password")

# Fields that cannot change once the instance exists
IMMUTABLE_FIELDS = ("image", "region", "ssh_key", "root_password")


def fingerprint(value: str) -> str:
    """One-way fingerprint of a credential, used for drift detection only."""
    digest = hashlib.sha3_256(value.encode()).digest()
    return base64.b64encode(digest).decode()


@dataclass
class DesiredState:
    """Target configuration of an instance, as declared by the user."""

    image: str
    kernel: str
    region: str
    size: int
    ssh_key: str
    root_password: str
    name: str = ""
    group: str = DEFAULT_GROUP
    private_networking: bool = False
    manage_private_ip_automatically: bool = True
    helper_distro: bool = True
    disk_expansion: bool = False
    swap_size: int = DEFAULT_SWAP_SIZE

    @classmethod
    def from_dict(cls, d: dict) -> "DesiredState":
        d = dict(d)
        key_file = d.pop("ssh_key_file", None)
        if key_file and "ssh_key" not in d:
            with open(os.path.expanduser(key_file)) as f:
                d["ssh_key"] = f.read().strip()
        if "ssh_key" not in d:
            raise ValueError("Missing required field 'ssh_key' (or 'ssh_key_file')")

        missing = [k for k in REQUIRED_FIELDS if k not in d]
        if missing:
            raise ValueError(f"Missing required field(s): {', '.join(missing)}")

        known = {f.name for f in dataclasses.fields(cls)}
        unknown = sorted(set(d) - known)
        if unknown:
            raise ValueError(f"Unknown field(s): {', '.join(unknown)}")

        swap_size = int(d.get("swap_size", DEFAULT_SWAP_SIZE))
        if swap_size < 0:
            raise ValueError(f"swap_size must be >= 0, got {swap_size}")

        return cls(
            image=str(d["image"]),
            kernel=str(d["kernel"]),
            region=str(d["region"]),
            size=int(d["size"]),
            ssh_key=str(d["ssh_key"]),
            root_password=str(d["root_password"]),
            name=str(d.get("name") or ""),
            group=str(d.get("group", DEFAULT_GROUP)),
            private_networking=bool(d.get("private_networking", False)),
            manage_private_ip_automatically=bool(d.get("manage_private_ip_automatically", True)),
            helper_distro=bool(d.get("helper_distro", True)),
            disk_expansion=bool(d.get("disk_expansion", False)),
            swap_size=swap_size,
        )


def load_desired_state(path) -> DesiredState:
    """Load an instance.yaml file and register its root password as a secret."""
    with open(path) as f:
        d = yaml.safe_load(f) or {}
    if not isinstance(d, dict):
        raise ValueError(f"{path}: expected a mapping at the top level")
    desired = DesiredState.from_dict(d)
    register_secret(desired.root_password)
    return desired


@dataclass
class InstanceState:
    """The desired-state representation as recorded between runs.

    Credentials are kept only as fingerprints. Computed fields are filled by
    read-back.
    """

    id: int | None = None
    image: str = ""
    kernel: str = ""
    name: str = ""
    group: str = DEFAULT_GROUP
    region: str = ""
    size: int = 0
    private_networking: bool = False
    manage_private_ip_automatically: bool = True
    helper_distro: bool = True
    disk_expansion: bool = False
    swap_size: int = DEFAULT_SWAP_SIZE
    ssh_key: str = ""
    root_password: str = ""
    # computed
    status: int | None = None
    plan_storage: int | None = None
    plan_storage_utilized: int | None = None
    ip_address: str = ""
    private_ip_address: str = ""
    connection: dict = field(default_factory=dict)

    @classmethod
    def from_dict(cls, d: dict) -> "InstanceState":
        known = {f.name for f in dataclasses.fields(cls)}
        return cls(**{k: v for k, v in d.items() if k in known})

    def to_dict(self) -> dict:
        return dataclasses.asdict(self)

    def set_from_desired(self, desired: DesiredState, *names):
        """Copy the named attributes from *desired*, fingerprinting credentials."""
        for name in names:
            value = getattr(desired, name)
            if name in ("ssh_key", "root_password"):
                value = fingerprint(value)
            setattr(self, name, value)

    def drift(self, desired: DesiredState) -> list[str]:
        """Names of declared attributes whose recorded value differs from *desired*."""
        changed = []
        for f in dataclasses.fields(DesiredState):
            wanted = getattr(desired, f.name)
            if f.name in ("ssh_key", "root_password"):
                wanted = fingerprint(wanted)
            if getattr(self, f.name) != wanted:
                changed.append(f.name)
        return changed


def load_state(path) -> InstanceState | None:
    """Load a recorded state file, or None when it does not exist."""
    if not os.path.exists(path):
        return None
    with open(path) as f:
        return InstanceState.from_dict(json.load(f))


def save_state(path, state: InstanceState):
    with open(path, "w") as f:
        json.dump(state.to_dict(), f, indent=2, sort_keys=True)
        f.write("\n")
