"""Linode API client: thin async wrapper over the api_action endpoint."""

import logging

import httpx

from linodeploy.errors import RemoteError
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

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.linode.com/"
DEFAULT_PAYMENT_TERM = 1


def _param(value):
    """Encode a parameter value the way the api_action endpoint expects."""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _records(cls):
    """Parser for a DATA list of records."""
    return lambda data: [cls.from_api(d) for d in data or []]


def _id(key):
    """Parser for the id a create action returns."""
    return lambda data: int(data[key])


class LinodeAPI:
    """Authenticated client for the Linode api_action endpoint.

    Every call POSTs ``api_key``, ``api_action`` and the action parameters as
    form fields. The response envelope is ``{"ERRORARRAY": [...], "DATA": ...}``;
    a non-empty ERRORARRAY is raised as :class:`RemoteError`.

    Use as an async context manager, or call :meth:`close` when done.
    """

    def __init__(self, api_key, api_url=DEFAULT_API_URL, timeout=60, transport=None):
        self.api_key = api_key
        self.api_url = api_url
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.close()

    async def close(self):
        await self._client.aclose()

    async def request(self, action, **params):
        """Call *action* and return the DATA member of the response."""
        form = {"api_key": self.api_key, "api_action": action}
        form.update({k: _param(v) for k, v in params.items() if v is not None})
        logger.debug(f"api_action={action} {sorted(params)}")

        try:
            resp = await self._client.post(self.api_url, data=form)
            resp.raise_for_status()
            body = resp.json()
        except httpx.HTTPStatusError as e:
            raise RemoteError(action, f"HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise RemoteError(action, f"request failed: {e}") from e
        except ValueError as e:
            raise RemoteError(action, "response is not valid JSON") from e

        if not isinstance(body, dict):
            raise RemoteError(action, f"unexpected response envelope: {type(body).__name__}")
        errors = body.get("ERRORARRAY") or []
        if errors:
            codes = [err.get("ERRORCODE") for err in errors]
            message = "; ".join(str(err.get("ERRORMESSAGE", "unknown error")) for err in errors)
            raise RemoteError(action, message, codes)
        return body.get("DATA")

    async def _call(self, action, parse, **params):
        """Call *action* and build the result from DATA with *parse*.

        A DATA payload of the wrong shape is a RemoteError like any other
        failed call.
        """
        data = await self.request(action, **params)
        try:
            return parse(data)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise RemoteError(action, f"unexpected response payload: {e!r}") from e

    # ── Catalog ───────────────────────────────────────────────────

    async def list_kernels(self):
        return await self._call("avail.kernels", _records(Kernel))

    async def list_regions(self):
        return await self._call("avail.datacenters", _records(Region))

    async def list_plans(self):
        return await self._call("avail.linodeplans", _records(Plan))

    async def list_distributions(self):
        return await self._call("avail.distributions", _records(Distribution))

    async def list_private_images(self):
        return await self._call("image.list", _records(PrivateImage))

    # ── Instances ─────────────────────────────────────────────────

    async def create_linode(self, region_id, plan_id, payment_term=DEFAULT_PAYMENT_TERM):
        """Allocate a Linode and return its id."""
        return await self._call(
            "linode.create", _id("LinodeID"), DatacenterID=region_id, PlanID=plan_id, PaymentTerm=payment_term
        )

    async def list_linodes(self, linode_id):
        return await self._call("linode.list", _records(Instance), LinodeID=linode_id)

    async def update_linode(self, linode_id, label=None, display_group=None):
        await self.request("linode.update", LinodeID=linode_id, Label=label, lpm_displayGroup=display_group)

    async def resize_linode(self, linode_id, plan_id):
        await self.request("linode.resize", LinodeID=linode_id, PlanID=plan_id)

    async def boot_linode(self, linode_id, config_id=None):
        await self.request("linode.boot", LinodeID=linode_id, ConfigID=config_id)

    async def reboot_linode(self, linode_id, config_id=None):
        await self.request("linode.reboot", LinodeID=linode_id, ConfigID=config_id)

    async def delete_linode(self, linode_id, skip_checks=True):
        await self.request("linode.delete", LinodeID=linode_id, skipChecks=skip_checks)

    # ── Disks ─────────────────────────────────────────────────────

    async def create_disk(self, linode_id, label, disk_type, size):
        return await self._call(
            "linode.disk.create", _id("DiskID"), LinodeID=linode_id, Label=label, Type=disk_type, Size=size
        )

    async def create_disk_from_distribution(self, linode_id, distribution_id, label, size, ssh_key, root_password):
        return await self._call(
            "linode.disk.createfromdistribution",
            _id("DiskID"),
            LinodeID=linode_id,
            DistributionID=distribution_id,
            Label=label,
            Size=size,
            rootSSHKey=ssh_key,
            rootPass=root_password,
        )

    async def create_disk_from_image(self, linode_id, image_id, label, size, ssh_key, root_password):
        return await self._call(
            "linode.disk.createfromimage",
            _id("DISKID"),
            LinodeID=linode_id,
            ImageID=image_id,
            Label=label,
            size=size,
            rootSSHKey=ssh_key,
            rootPass=root_password,
        )

    async def list_disks(self, linode_id):
        return await self._call("linode.disk.list", _records(Disk), LinodeID=linode_id)

    async def resize_disk(self, linode_id, disk_id, size):
        await self.request("linode.disk.resize", LinodeID=linode_id, DiskID=disk_id, size=size)

    # ── Boot configurations ───────────────────────────────────────

    async def create_config(self, linode_id, kernel_id, label, disk_ids, root_device_num=1,
                            helper_distro=True, helper_network=True):
        return await self._call(
            "linode.config.create",
            _id("ConfigID"),
            LinodeID=linode_id,
            KernelID=kernel_id,
            Label=label,
            DiskList=",".join(str(d) for d in disk_ids),
            RootDeviceNum=root_device_num,
            helper_distro=helper_distro,
            helper_network=helper_network,
        )

    async def list_configs(self, linode_id):
        return await self._call("linode.config.list", _records(BootConfig), LinodeID=linode_id)

    async def update_config(self, config, **changes):
        """Patch *config* in place; fields not in *changes* keep their values."""
        await self.request(
            "linode.config.update",
            LinodeID=config.linode_id,
            ConfigID=config.id,
            KernelID=changes.pop("kernel_id", config.kernel_id),
            **changes,
        )

    # ── Networking and jobs ───────────────────────────────────────

    async def add_private_ip(self, linode_id):
        return await self._call("linode.ip.addprivate", lambda data: str(data["IPAddress"]), LinodeID=linode_id)

    async def list_ips(self, linode_id):
        return await self._call("linode.ip.list", _records(IPAddress), LinodeID=linode_id)

    async def list_jobs(self, linode_id):
        return await self._call("linode.job.list", _records(Job), LinodeID=linode_id)
