"""Typed views of the records returned by the Linode API."""

import enum
from dataclasses import dataclass, field


class InstanceStatus(enum.IntEnum):
    BEING_CREATED = -1
    BRAND_NEW = 0
    RUNNING = 1
    POWERED_OFF = 2


def _flag(value) -> bool:
    """API booleans arrive as 0/1, true/false or "true"/"false"."""
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes")
    return bool(value)


@dataclass
class Instance:
    """A Linode as returned by linode.list. Never cached across operations."""

    id: int
    label: str
    display_group: str
    region_id: int
    plan_id: int
    status: int
    total_hd: int

    @classmethod
    def from_api(cls, d: dict) -> "Instance":
        return cls(
            id=int(d["LINODEID"]),
            label=str(d.get("LABEL", "")),
            display_group=str(d.get("LPM_DISPLAYGROUP", "")),
            region_id=int(d["DATACENTERID"]),
            plan_id=int(d["PLANID"]),
            status=int(d.get("STATUS", InstanceStatus.BEING_CREATED)),
            total_hd=int(d.get("TOTALHD", 0)),
        )


@dataclass
class Disk:
    id: int
    label: str
    type: str
    size: int

    @property
    def is_swap(self) -> bool:
        return self.type.lower() == "swap"

    @classmethod
    def from_api(cls, d: dict) -> "Disk":
        return cls(
            id=int(d["DISKID"]),
            label=str(d.get("LABEL", "")),
            type=str(d.get("TYPE", "")),
            size=int(d.get("SIZE", 0)),
        )


@dataclass
class BootConfig:
    """A configuration profile: kernel, device list and helper flags."""

    id: int
    linode_id: int
    kernel_id: int
    label: str = ""
    helper_distro: bool = True
    helper_network: bool = True
    disk_ids: list[int] = field(default_factory=list)
    root_device_num: int = 1

    @classmethod
    def from_api(cls, d: dict) -> "BootConfig":
        disk_list = str(d.get("DiskList", ""))
        return cls(
            id=int(d["ConfigID"]),
            linode_id=int(d["LinodeID"]),
            kernel_id=int(d["KernelID"]),
            label=str(d.get("Label", "")),
            helper_distro=_flag(d.get("helper_distro", True)),
            helper_network=_flag(d.get("helper_network", True)),
            disk_ids=[int(x) for x in disk_list.split(",") if x.strip()],
            root_device_num=int(d.get("RootDeviceNum", 1)),
        )


@dataclass
class Job:
    id: int
    label: str = ""
    host_message: str = ""
    finished_at: str | None = None

    @property
    def done(self) -> bool:
        return bool(self.finished_at)

    @classmethod
    def from_api(cls, d: dict) -> "Job":
        return cls(
            id=int(d["JOBID"]),
            label=str(d.get("LABEL", "")),
            host_message=str(d.get("HOST_MESSAGE", "")),
            finished_at=d.get("HOST_FINISH_DT") or None,
        )


@dataclass
class IPAddress:
    id: int
    address: str
    is_public: bool

    @classmethod
    def from_api(cls, d: dict) -> "IPAddress":
        return cls(
            id=int(d["IPADDRESSID"]),
            address=str(d["IPADDRESS"]),
            is_public=_flag(d.get("ISPUBLIC", 0)),
        )


# ── Catalog records ───────────────────────────────────────────────


@dataclass(frozen=True)
class Kernel:
    id: int
    label: str

    @classmethod
    def from_api(cls, d: dict) -> "Kernel":
        return cls(id=int(d["KERNELID"]), label=str(d["LABEL"]))


@dataclass(frozen=True)
class Region:
    id: int
    location: str
    abbr: str = ""

    @classmethod
    def from_api(cls, d: dict) -> "Region":
        return cls(id=int(d["DATACENTERID"]), location=str(d["LOCATION"]), abbr=str(d.get("ABBR", "")))


@dataclass(frozen=True)
class Plan:
    id: int
    label: str
    ram: int
    disk_gb: int

    @property
    def storage_mb(self) -> int:
        """Plan storage allowance in MB."""
        return self.disk_gb * 1024

    @classmethod
    def from_api(cls, d: dict) -> "Plan":
        return cls(
            id=int(d["PLANID"]),
            label=str(d.get("LABEL", "")),
            ram=int(d["RAM"]),
            disk_gb=int(d["DISK"]),
        )


@dataclass(frozen=True)
class Distribution:
    id: int
    label: str

    @classmethod
    def from_api(cls, d: dict) -> "Distribution":
        return cls(id=int(d["DISTRIBUTIONID"]), label=str(d["LABEL"]))


@dataclass(frozen=True)
class PrivateImage:
    id: int
    label: str

    @classmethod
    def from_api(cls, d: dict) -> "PrivateImage":
        return cls(id=int(d["IMAGEID"]), label=str(d["LABEL"]))


@dataclass
class VMConnectionInfo:
    """Connection hints published for downstream tooling after a read-back."""

    host: str
    username: str = "root"
    ssh_port: int = 22
    type: str = "ssh"

    @property
    def address(self) -> str:
        """SSH address string (user@host)."""
        return f"{self.username}@{self.host}" if self.username else self.host

    def as_dict(self) -> dict:
        return {"type": self.type, "host": self.host}
