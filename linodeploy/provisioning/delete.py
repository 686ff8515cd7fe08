"""Delete path: a single remote call, disks and configs are removed remotely."""

import logging

logger = logging.getLogger(__name__)


async def delete_instance(api, linode_id):
    """Delete *linode_id* together with its disks and configurations."""
    logger.info(f"Deleting linode {linode_id}...")
    await api.delete_linode(linode_id, skip_checks=True)
    logger.info("Linode deleted.")
    return True
