"""Image deployer: resolve an image name and create the root disk from it."""

import enum
import logging
import re

from linodeploy.errors import ConstraintError, NotFoundError
from linodeploy.provisioning.jobs import JOB_TIMEOUT, wait_for_jobs

logger = logging.getLogger(__name__)

MAX_DISK_LABEL = 50

# Root disks are labelled Root(<linode id>)__Base(<image id>); the remote API
# keeps no other record of which image a disk came from.
_BASE_ID = re.compile(r"Base\(([0-9]+)\)")
_LEGACY_SUFFIX = " Disk"


class ImageSource(enum.Enum):
    DISTRIBUTION = "distribution"
    PRIVATE = "private"


def root_disk_label(linode_id, image_id):
    label = f"Root({linode_id})__Base({image_id})"
    if len(label) > MAX_DISK_LABEL:
        raise ConstraintError(f"Disk label '{label}' exceeds {MAX_DISK_LABEL} characters")
    return label


async def find_image(api, image_name):
    """Resolve *image_name* to ``(ImageSource, id)``.

    Prebuilt distributions are checked first by exact label, then private
    images by exact label or by id given as a string. The two id spaces are
    disjoint, so the source travels with the id.
    """
    for dist in await api.list_distributions():
        if dist.label == image_name:
            return ImageSource.DISTRIBUTION, dist.id

    for image in await api.list_private_images():
        if image.label == image_name or str(image.id) == image_name:
            return ImageSource.PRIVATE, image.id

    raise NotFoundError(f"Failed to find image {image_name}")


async def deploy_image(api, linode_id, image_name, disk_size, ssh_key, root_password, timeout=JOB_TIMEOUT):
    """Create the root disk of *linode_id* from *image_name* and wait for it.

    Returns the new disk id.
    """
    source, image_id = await find_image(api, image_name)
    label = root_disk_label(linode_id, image_id)
    logger.info(f"Deploying {source.value} image '{image_name}' (id={image_id}) as {disk_size} MB disk {label}...")

    if source is ImageSource.DISTRIBUTION:
        disk_id = await api.create_disk_from_distribution(linode_id, image_id, label, disk_size, ssh_key, root_password)
    else:
        disk_id = await api.create_disk_from_image(linode_id, image_id, label, disk_size, ssh_key, root_password)

    await wait_for_jobs(api, linode_id, timeout=timeout)
    logger.info(f"Image deployed (disk id={disk_id}).")
    return disk_id


def image_from_disks(disks):
    """Recover the image an instance was built from out of its disk labels.

    Returns the image id as a string for Base(<id>) labels, or the image name
    for legacy "<image> Disk" labels.
    """
    for disk in disks:
        match = _BASE_ID.search(disk.label)
        if match:
            return match.group(1)
        if disk.label.endswith(_LEGACY_SUFFIX):
            return disk.label[: -len(_LEGACY_SUFFIX)]
    raise NotFoundError("Unable to find the image based on the disk names")
