"""Instance lifecycle: API client, catalog, job waiter, create/read/update/delete."""

from linodeploy.provisioning.api import DEFAULT_API_URL, LinodeAPI
from linodeploy.provisioning.catalog import ReferenceCatalog
from linodeploy.provisioning.create import create_instance
from linodeploy.provisioning.delete import delete_instance
from linodeploy.provisioning.image import deploy_image, find_image
from linodeploy.provisioning.jobs import JOB_TIMEOUT, resize_timeout, wait_for_jobs
from linodeploy.provisioning.read import read_instance
from linodeploy.provisioning.result import ApplyResult
from linodeploy.provisioning.types import VMConnectionInfo
from linodeploy.provisioning.update import reconcile_instance

__all__ = [
    "DEFAULT_API_URL",
    "LinodeAPI",
    "ReferenceCatalog",
    "wait_for_jobs",
    "resize_timeout",
    "JOB_TIMEOUT",
    "find_image",
    "deploy_image",
    "create_instance",
    "reconcile_instance",
    "read_instance",
    "delete_instance",
    "ApplyResult",
    "VMConnectionInfo",
]
