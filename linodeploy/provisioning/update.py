"""Update path: apply only the attributes that drifted from the desired state."""

import dataclasses
import logging

from linodeploy.errors import (
    ConstraintError,
    InvariantViolationError,
    LinodeployError,
    NotFoundError,
    UnsupportedOperationError,
)
from linodeploy.provisioning.create import classify_disks
from linodeploy.provisioning.jobs import JOB_TIMEOUT, resize_timeout, wait_for_jobs
from linodeploy.provisioning.read import fetch_instance, read_instance
from linodeploy.provisioning.result import ApplyResult
from linodeploy.state import IMMUTABLE_FIELDS

logger = logging.getLogger(__name__)


def check_supported(desired, observed):
    """Reject transitions that cannot be applied, before any remote call."""
    changed = [name for name in observed.drift(desired) if name in IMMUTABLE_FIELDS]
    if changed:
        raise UnsupportedOperationError(
            f"Can't change {', '.join(changed)} of linode {observed.id}; delete and recreate it instead"
        )
    if observed.private_networking and not desired.private_networking:
        raise UnsupportedOperationError(f"Can't deactivate private networking for linode {observed.id}")


def check_resize(current_disk_size, new_plan_storage, linode_id):
    """Disks must fit into the target plan; the remote API would not stop a shrink."""
    if current_disk_size > new_plan_storage:
        raise ConstraintError(
            f"Cannot resize linode {linode_id} because current disks ({current_disk_size} MB) "
            f"are bigger than the new plan storage ({new_plan_storage} MB)"
        )


def expanded_disk_size(disks, new_plan_storage):
    """Pick the largest disk and the size that absorbs the new plan's free space.

    Returns ``(disk, new_size)``; the other disks keep their sizes.
    """
    if not disks:
        raise InvariantViolationError("Cannot expand disks of a linode without disks")
    biggest = max(disks, key=lambda disk: disk.size)
    current_total = sum(disk.size for disk in disks)
    return biggest, new_plan_storage - (current_total - biggest.size)


async def resize_instance(api, catalog, instance, size, disk_expansion, timeout=JOB_TIMEOUT):
    """Move *instance* to the plan with *size* MB RAM, optionally growing its largest disk."""
    plan_id = await catalog.plan_id(size)
    new_plan_storage = await catalog.plan_storage(plan_id)

    disks = await api.list_disks(instance.id)
    classify_disks(disks)
    current_disk_size = sum(disk.size for disk in disks)
    check_resize(current_disk_size, new_plan_storage, instance.id)

    wait = resize_timeout(instance.total_hd)
    logger.info(f"Resizing linode {instance.id} to plan {plan_id} ({size} MB RAM), waiting up to {wait // 60} min...")
    await api.resize_linode(instance.id, plan_id)
    await wait_for_jobs(api, instance.id, timeout=wait)

    if disk_expansion:
        disk, new_size = expanded_disk_size(disks, new_plan_storage)
        if new_size > disk.size:
            logger.info(f"Expanding disk {disk.id} from {disk.size} MB to {new_size} MB...")
            await api.resize_disk(instance.id, disk.id, new_size)
            await wait_for_jobs(api, instance.id, timeout=wait)

    logger.info(f"Booting linode {instance.id} on the new plan...")
    await api.boot_linode(instance.id)
    await wait_for_jobs(api, instance.id, timeout=timeout)


async def update_config(api, catalog, linode_id, desired, kernel_changed):
    """Patch helper flags (and the kernel when it changed) of the single boot config."""
    configs = await api.list_configs(linode_id)
    if len(configs) != 1:
        raise InvariantViolationError(
            f"Linode {linode_id} has an incorrect number of configs {len(configs)}, only 1 can be managed"
        )
    config = configs[0]

    changes = {}
    if config.helper_distro != desired.helper_distro:
        changes["helper_distro"] = desired.helper_distro
    if config.helper_network != desired.manage_private_ip_automatically:
        changes["helper_network"] = desired.manage_private_ip_automatically
    if kernel_changed:
        changes["kernel_id"] = await catalog.kernel_id(desired.kernel)

    if changes:
        logger.info(f"Updating config {config.id} of linode {linode_id}: {', '.join(sorted(changes))}")
        await api.update_config(config, **changes)


async def reconcile_instance(api, catalog, desired, observed, timeout=JOB_TIMEOUT):
    """Apply the drift between *desired* and the freshly read *observed* state.

    Steps run in a fixed order: identity, size, boot configuration, private
    networking. Each successful step is committed into the returned
    ApplyResult right away; a later failure leaves earlier changes recorded
    as applied. Transitions that cannot be performed fail before any remote
    call.
    """
    result = ApplyResult(state=dataclasses.replace(observed))
    linode_id = observed.id
    drift = observed.drift(desired)
    if not desired.name and "name" in drift:
        # An empty name leaves the current label alone
        drift.remove("name")
    step = "check supported"
    try:
        check_supported(desired, observed)
        if not drift:
            logger.info(f"Linode {linode_id} is up to date.")
            return result

        step = "fetch linode"
        instance = await fetch_instance(api, linode_id)
        if instance is None:
            raise NotFoundError(f"Linode {linode_id} no longer exists")

        if "name" in drift or "group" in drift:
            step = "update label and group"
            await api.update_linode(linode_id, label=desired.name or None, display_group=desired.group)
            result.commit(desired, *(("name", "group") if desired.name else ("group",)))

        if "size" in drift:
            step = "resize"
            await resize_instance(api, catalog, instance, desired.size, desired.disk_expansion, timeout=timeout)
            result.commit(desired, "size")
        if "disk_expansion" in drift:
            result.commit(desired, "disk_expansion")

        config_fields = ("helper_distro", "manage_private_ip_automatically", "kernel")
        if any(name in drift for name in config_fields):
            step = "update boot configuration"
            await update_config(api, catalog, linode_id, desired, "kernel" in drift)
            result.commit(desired, *config_fields)

        if desired.private_networking and not observed.private_networking:
            step = "add private address"
            private_ip = await api.add_private_ip(linode_id)
            logger.info(f"Private address allocated: {private_ip}")
            result.commit(desired, "private_networking", private_ip_address=private_ip)
            if desired.manage_private_ip_automatically:
                step = "reboot for private networking"
                await api.reboot_linode(linode_id)
                await wait_for_jobs(api, linode_id, timeout=timeout)

        if "swap_size" in drift:
            logger.warning(f"swap_size of linode {linode_id} cannot be changed in place; keeping {observed.swap_size} MB")

        step = "read back"
        state = await read_instance(api, catalog, linode_id, prior=result.state)
        if state is None:
            raise NotFoundError(f"Linode {linode_id} disappeared during update")
        result.state = state
    except LinodeployError as e:
        return result.fail(step, e)

    return result
