"""Create path: allocate, partition, deploy, configure and boot a new instance."""

import logging

from linodeploy.errors import InvariantViolationError, LinodeployError
from linodeploy.provisioning.image import deploy_image
from linodeploy.provisioning.jobs import JOB_TIMEOUT, wait_for_jobs
from linodeploy.provisioning.read import fetch_instance, log_connection_info, read_instance
from linodeploy.provisioning.result import ApplyResult
from linodeploy.state import InstanceState

logger = logging.getLogger(__name__)

ROOT_DEVICE_NUM = 1
SWAP_LABEL = "swap"


def boot_disk_list(root_disk, swap_disk=None):
    """Device order for the boot configuration: root first, then swap."""
    if swap_disk is None:
        return [root_disk]
    return [root_disk, swap_disk]


def classify_disks(disks):
    """Split disks into (root_id, swap_id); swap_id is None without a swap disk.

    A managed instance has exactly one root disk and at most one swap disk.
    """
    roots = [disk.id for disk in disks if not disk.is_swap]
    swaps = [disk.id for disk in disks if disk.is_swap]
    if len(roots) != 1 or len(swaps) > 1:
        raise InvariantViolationError(
            f"Expected one root disk and at most one swap disk, found {len(roots)} root and {len(swaps)} swap"
        )
    return roots[0], (swaps[0] if swaps else None)


async def create_instance(api, catalog, desired, timeout=JOB_TIMEOUT, result=None):
    """Bring a new instance from nonexistent to running per *desired*.

    Steps run strictly in order; the first failure stops the run. Nothing is
    rolled back: the returned ApplyResult keeps the instance id and every
    attribute committed before the failure so the caller can inspect, retry
    or delete the instance.

    Pass *result* to keep hold of the partial state when the run is
    interrupted by something other than a LinodeployError (cancellation,
    KeyboardInterrupt): the exception propagates after the failing step is
    recorded on *result*.
    """
    if result is None:
        result = ApplyResult(state=InstanceState())
    step = "resolve region and plan"
    try:
        region_id = await catalog.region_id(desired.region)
        plan_id = await catalog.plan_id(desired.size)

        step = "create linode"
        logger.info(f"Creating linode in {desired.region} with {desired.size} MB RAM (plan {plan_id})...")
        linode_id = await api.create_linode(region_id, plan_id)
        result.commit(desired, "region", "size", id=linode_id)
        logger.info(f"Linode created (id={linode_id}).")

        if desired.swap_size > 0:
            step = "create swap disk"
            await api.create_disk(linode_id, SWAP_LABEL, "swap", desired.swap_size)
        result.commit(desired, "swap_size")

        step = "fetch linode"
        instance = await fetch_instance(api, linode_id)
        if instance is None:
            raise InvariantViolationError(f"Linode {linode_id} was not returned by linode.list after creation")

        step = "update label and group"
        # An empty name keeps the label the remote side assigned
        identity = ("name", "group") if desired.name else ("group",)
        relabel = bool(desired.name) and desired.name != instance.label
        if relabel or desired.group != instance.display_group:
            await api.update_linode(linode_id, label=desired.name or None, display_group=desired.group)
        result.commit(desired, *identity)

        step = "deploy image"
        disk_size = instance.total_hd - desired.swap_size
        await deploy_image(
            api, linode_id, desired.image, disk_size, desired.ssh_key, desired.root_password, timeout=timeout
        )
        result.commit(desired, "ssh_key", "root_password")

        if desired.private_networking:
            step = "add private address"
            private_ip = await api.add_private_ip(linode_id)
            logger.info(f"Private address allocated: {private_ip}")
            result.commit(desired, "private_networking", private_ip_address=private_ip)
        else:
            result.commit(desired, "private_networking")

        step = "list disks"
        root_disk, swap_disk = classify_disks(await api.list_disks(linode_id))

        step = "resolve kernel"
        kernel_id = await catalog.kernel_id(desired.kernel)

        step = "create boot configuration"
        if desired.swap_size > 0 and swap_disk is None:
            raise InvariantViolationError(f"Linode {linode_id} has no swap disk although swap_size={desired.swap_size}")
        disk_ids = boot_disk_list(root_disk, swap_disk if desired.swap_size > 0 else None)
        config_id = await api.create_config(
            linode_id,
            kernel_id,
            desired.image,
            disk_ids,
            root_device_num=ROOT_DEVICE_NUM,
            helper_distro=desired.helper_distro,
            helper_network=desired.manage_private_ip_automatically,
        )
        result.commit(desired, "image", "kernel", "helper_distro", "manage_private_ip_automatically", "disk_expansion")

        step = "boot"
        logger.info(f"Booting linode {linode_id} with config {config_id}...")
        await api.boot_linode(linode_id, config_id)

        step = "wait for boot"
        await wait_for_jobs(api, linode_id, timeout=timeout)

        step = "read back"
        state = await read_instance(api, catalog, linode_id, prior=result.state)
        if state is None:
            raise InvariantViolationError(f"Linode {linode_id} disappeared after boot")
        result.state = state
    except LinodeployError as e:
        return result.fail(step, e)
    except BaseException as e:
        result.fail(step, e)
        raise

    logger.info(f"Linode {linode_id} is running.")
    log_connection_info(result.state)
    return result
