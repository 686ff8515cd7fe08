"""Shared pytest fixtures: the CLI runner and an in-memory stand-in for LinodeAPI."""

import asyncio
import os
import subprocess
import sys

import pytest

from linodeploy.errors import RemoteError
from linodeploy.provisioning.catalog import ReferenceCatalog
from linodeploy.provisioning.types import (
    BootConfig,
    Disk,
    Distribution,
    Instance,
    IPAddress,
    Job,
    Kernel,
    Plan,
    PrivateImage,
    Region,
)
from linodeploy.state import DesiredState

PROJECT_ROOT = os.path.normpath(os.path.join(os.path.dirname(__file__), ".."))


KERNELS = [
    Kernel(id=138, label="Latest 64 bit (4.19.86-x86_64-linode130)"),
    Kernel(id=137, label="Latest 32 bit (4.19.86-x86-linode130)"),
    Kernel(id=210, label="GRUB 2"),
]
REGIONS = [
    Region(id=2, location="Dallas, TX, USA", abbr="dallas"),
    Region(id=7, location="London, England, UK", abbr="london"),
]
PLANS = [
    Plan(id=1, label="Linode 1024", ram=1024, disk_gb=20),
    Plan(id=2, label="Linode 2048", ram=2048, disk_gb=40),
    Plan(id=3, label="Linode 4096", ram=4096, disk_gb=80),
]
DISTRIBUTIONS = [
    Distribution(id=146, label="Ubuntu 16.04 LTS"),
    Distribution(id=140, label="Debian 8"),
]
PRIVATE_IMAGES = [
    PrivateImage(id=402716, label="golden-web"),
    PrivateImage(id=402717, label="Debian 8"),
]


class FakeLinodeAPI:
    """Records every call in ``calls`` as ``(method, args)``.

    Jobs created by mutating calls finish immediately unless
    ``pending_polls`` is set, in which case that many polls report an extra
    pending job. ``fail_on`` maps a method name to the error it raises.
    """

    def __init__(self, total_hd=40960):
        self.calls = []
        self.kernels = list(KERNELS)
        self.regions = list(REGIONS)
        self.plans = list(PLANS)
        self.distributions = list(DISTRIBUTIONS)
        self.private_images = list(PRIVATE_IMAGES)
        self.linodes = {}
        self.disks = {}
        self.configs = {}
        self.ips = {}
        self.jobs = {}
        self.pending_polls = 0
        self.fail_on = {}
        self._next_id = 1000
        self._total_hd = total_hd

    def _id(self):
        self._next_id += 1
        return self._next_id

    def _record(self, method, *args):
        self.calls.append((method, args))
        if method in self.fail_on:
            raise self.fail_on[method]

    def _job(self, linode_id, label):
        job = Job(id=self._id(), label=label, finished_at="2017-01-01 00:00:00")
        self.jobs.setdefault(linode_id, []).append(job)

    def called(self, method):
        return [args for name, args in self.calls if name == method]

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        pass

    # ── seeding helpers ───────────────────────────────────────────

    def add_linode(self, linode_id=5000, label="web-1", group="Linode", region_id=2, plan_id=2, total_hd=40960):
        self.linodes[linode_id] = Instance(
            id=linode_id, label=label, display_group=group, region_id=region_id,
            plan_id=plan_id, status=1, total_hd=total_hd,
        )
        self.disks.setdefault(linode_id, [])
        self.ips.setdefault(linode_id, [IPAddress(id=self._id(), address="203.0.113.10", is_public=True)])
        return linode_id

    def add_disk(self, linode_id, size, disk_type="ext4", label="Root(5000)__Base(146)"):
        disk = Disk(id=self._id(), label=label, type=disk_type, size=size)
        self.disks.setdefault(linode_id, []).append(disk)
        return disk

    def add_config(self, linode_id, kernel_id=138, helper_distro=True, helper_network=True):
        config = BootConfig(
            id=self._id(), linode_id=linode_id, kernel_id=kernel_id,
            helper_distro=helper_distro, helper_network=helper_network,
            disk_ids=[d.id for d in self.disks.get(linode_id, [])],
        )
        self.configs.setdefault(linode_id, []).append(config)
        return config

    # ── catalog ───────────────────────────────────────────────────

    async def list_kernels(self):
        self._record("list_kernels")
        await asyncio.sleep(0)
        return list(self.kernels)

    async def list_regions(self):
        self._record("list_regions")
        await asyncio.sleep(0)
        return list(self.regions)

    async def list_plans(self):
        self._record("list_plans")
        await asyncio.sleep(0)
        return list(self.plans)

    async def list_distributions(self):
        self._record("list_distributions")
        return list(self.distributions)

    async def list_private_images(self):
        self._record("list_private_images")
        return list(self.private_images)

    # ── instances ─────────────────────────────────────────────────

    async def create_linode(self, region_id, plan_id, payment_term=1):
        self._record("create_linode", region_id, plan_id)
        linode_id = self._id()
        self.linodes[linode_id] = Instance(
            id=linode_id, label=f"linode{linode_id}", display_group="", region_id=region_id,
            plan_id=plan_id, status=0, total_hd=self._total_hd,
        )
        self.ips[linode_id] = [IPAddress(id=self._id(), address="203.0.113.10", is_public=True)]
        self._job(linode_id, "linode.create")
        return linode_id

    async def list_linodes(self, linode_id):
        self._record("list_linodes", linode_id)
        return [self.linodes[linode_id]] if linode_id in self.linodes else []

    async def update_linode(self, linode_id, label=None, display_group=None):
        self._record("update_linode", linode_id, label, display_group)
        linode = self.linodes[linode_id]
        if label is not None:
            linode.label = label
        if display_group is not None:
            linode.display_group = display_group

    async def resize_linode(self, linode_id, plan_id):
        self._record("resize_linode", linode_id, plan_id)
        self.linodes[linode_id].plan_id = plan_id
        self.linodes[linode_id].status = 2
        self._job(linode_id, "linode.resize")

    async def boot_linode(self, linode_id, config_id=None):
        self._record("boot_linode", linode_id, config_id)
        self.linodes[linode_id].status = 1
        self._job(linode_id, "linode.boot")

    async def reboot_linode(self, linode_id, config_id=None):
        self._record("reboot_linode", linode_id, config_id)
        self._job(linode_id, "linode.reboot")

    async def delete_linode(self, linode_id, skip_checks=True):
        self._record("delete_linode", linode_id, skip_checks)
        if linode_id not in self.linodes:
            raise RemoteError("linode.delete", "Object not found", [5])
        del self.linodes[linode_id]

    # ── disks ─────────────────────────────────────────────────────

    async def create_disk(self, linode_id, label, disk_type, size):
        self._record("create_disk", linode_id, label, disk_type, size)
        return self.add_disk(linode_id, size, disk_type, label).id

    async def create_disk_from_distribution(self, linode_id, distribution_id, label, size, ssh_key, root_password):
        self._record("create_disk_from_distribution", linode_id, distribution_id, label, size)
        self._job(linode_id, "linode.disk.createfromdistribution")
        return self.add_disk(linode_id, size, "ext4", label).id

    async def create_disk_from_image(self, linode_id, image_id, label, size, ssh_key, root_password):
        self._record("create_disk_from_image", linode_id, image_id, label, size)
        self._job(linode_id, "linode.disk.createfromimage")
        return self.add_disk(linode_id, size, "ext4", label).id

    async def list_disks(self, linode_id):
        self._record("list_disks", linode_id)
        return list(self.disks.get(linode_id, []))

    async def resize_disk(self, linode_id, disk_id, size):
        self._record("resize_disk", linode_id, disk_id, size)
        for disk in self.disks[linode_id]:
            if disk.id == disk_id:
                disk.size = size
        self._job(linode_id, "linode.disk.resize")

    # ── boot configurations ───────────────────────────────────────

    async def create_config(self, linode_id, kernel_id, label, disk_ids, root_device_num=1,
                            helper_distro=True, helper_network=True):
        self._record("create_config", linode_id, kernel_id, label, list(disk_ids), root_device_num)
        config = BootConfig(
            id=self._id(), linode_id=linode_id, kernel_id=kernel_id, label=label,
            helper_distro=helper_distro, helper_network=helper_network,
            disk_ids=list(disk_ids), root_device_num=root_device_num,
        )
        self.configs.setdefault(linode_id, []).append(config)
        return config.id

    async def list_configs(self, linode_id):
        self._record("list_configs", linode_id)
        return list(self.configs.get(linode_id, []))

    async def update_config(self, config, **changes):
        self._record("update_config", config.id, dict(changes))
        for stored in self.configs[config.linode_id]:
            if stored.id == config.id:
                stored.kernel_id = changes.get("kernel_id", stored.kernel_id)
                stored.helper_distro = changes.get("helper_distro", stored.helper_distro)
                stored.helper_network = changes.get("helper_network", stored.helper_network)

    # ── networking and jobs ───────────────────────────────────────

    async def add_private_ip(self, linode_id):
        self._record("add_private_ip", linode_id)
        self.ips[linode_id].append(IPAddress(id=self._id(), address="192.168.130.14", is_public=False))
        return "192.168.130.14"

    async def list_ips(self, linode_id):
        self._record("list_ips", linode_id)
        return list(self.ips.get(linode_id, []))

    async def list_jobs(self, linode_id):
        self._record("list_jobs", linode_id)
        jobs = list(self.jobs.get(linode_id, []))
        if self.pending_polls > 0:
            self.pending_polls -= 1
            jobs.append(Job(id=1, label="linode.boot", host_message="", finished_at=None))
        return jobs


# ── Fixtures ────────────────────────────────────────────────────────


@pytest.fixture
def fake_api():
    """A fresh FakeLinodeAPI with the default catalogs."""
    return FakeLinodeAPI()


@pytest.fixture
def catalog(fake_api):
    return ReferenceCatalog(fake_api)


@pytest.fixture
def desired():
    """Desired state matching the seeded catalogs."""
    return DesiredState(
        image="Ubuntu 16.04 LTS",
        kernel="Latest 64 bit",
        region="Dallas, TX, USA",
        size=2048,
        ssh_key="ssh-ed25519 AAAAC3NzaC1lZDI1NTE5AAAAID37 user@example.com",
        root_password="correct-horse-battery",
        name="web-1",
        group="web",
    )


@pytest.fixture(scope="session")
def project_root():
    """Absolute path to the project root directory."""
    return PROJECT_ROOT


@pytest.fixture(scope="session")
def run_cli(project_root):
    """Return a callable that invokes the linodeploy CLI as a subprocess.

    LINODE_API_KEY is removed from the child environment unless passed in *env*.
    """

    def _run(*args, env=None):
        child_env = {k: v for k, v in os.environ.items() if k != "LINODE_API_KEY"}
        child_env.update(env or {})
        result = subprocess.run(
            [sys.executable, "-m", "linodeploy.linodeploy", *args],
            capture_output=True,
            text=True,
            cwd=project_root,
            env=child_env,
        )
        return result.returncode, result.stdout, result.stderr

    return _run
