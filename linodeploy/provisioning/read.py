"""Read-back: project observed remote state into the recorded state."""

import dataclasses
import logging

from linodeploy.errors import NotFoundError
from linodeploy.provisioning.image import image_from_disks
from linodeploy.provisioning.types import VMConnectionInfo
from linodeploy.state import InstanceState

logger = logging.getLogger(__name__)


async def fetch_instance(api, linode_id):
    """Return the single Instance for *linode_id*, or None when it is gone."""
    linodes = await api.list_linodes(linode_id)
    if len(linodes) != 1:
        return None
    return linodes[0]


async def get_ips(api, linode_id):
    """Return (public, private) addresses; either may be empty."""
    public, private = "", ""
    for ip in await api.list_ips(linode_id):
        if ip.is_public:
            public = ip.address
        else:
            private = ip.address
    return public, private


def connection_info(state):
    """SSH connection hints for downstream tooling, or None without a public address."""
    if not state.ip_address:
        return None
    return VMConnectionInfo(host=state.ip_address)


async def read_instance(api, catalog, linode_id, prior=None):
    """Refresh the recorded state of *linode_id* from the remote API.

    Returns None when the instance no longer exists. Attributes the remote
    side does not expose (credential fingerprints, disk_expansion) and, when
    the instance does not have exactly one boot configuration, the kernel and
    helper flags are carried over from *prior*.
    """
    instance = await fetch_instance(api, linode_id)
    if instance is None:
        logger.warning(f"Linode {linode_id} not found.")
        return None

    state = dataclasses.replace(prior) if prior is not None else InstanceState()
    state.id = instance.id
    state.name = instance.label
    state.group = instance.display_group
    state.status = instance.status
    state.region = await catalog.region_name(instance.region_id)
    state.size = await catalog.plan_ram(instance.plan_id)
    state.plan_storage = await catalog.plan_storage(instance.plan_id)

    public, private = await get_ips(api, instance.id)
    state.ip_address = public
    state.private_ip_address = private
    state.private_networking = bool(private)

    disks = await api.list_disks(instance.id)
    state.plan_storage_utilized = sum(disk.size for disk in disks)
    state.swap_size = next((disk.size for disk in disks if disk.is_swap), 0)
    if not state.image:
        try:
            state.image = image_from_disks(disks)
        except NotFoundError:
            logger.warning(f"Could not determine the image of linode {instance.id} from its disk labels.")

    configs = await api.list_configs(instance.id)
    if len(configs) == 1:
        config = configs[0]
        state.helper_distro = config.helper_distro
        state.manage_private_ip_automatically = config.helper_network
        state.kernel = await catalog.kernel_name(config.kernel_id)
    else:
        logger.warning(f"Linode {instance.id} has {len(configs)} configs; kernel and helpers not refreshed.")

    conn = connection_info(state)
    state.connection = conn.as_dict() if conn else {}
    return state


def log_connection_info(state):
    conn = connection_info(state)
    if conn is None:
        logger.warning("Warning: no public address found for the instance.")
        return
    logger.info(f"Host:     {conn.host}")
    if state.private_ip_address:
        logger.info(f"Private:  {state.private_ip_address}")
    logger.info(f"Connect:  ssh {conn.address}")
