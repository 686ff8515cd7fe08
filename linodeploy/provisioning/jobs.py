"""Job waiter: poll an instance's job queue until every job has finished."""

import asyncio
import logging

from linodeploy.errors import JobTimeoutError

logger = logging.getLogger(__name__)

JOB_TIMEOUT = 300  # seconds, for ordinary provisioning and boot operations
POLL_INTERVAL = 1.0
RESIZE_MINUTES_PER_GB = 3


def resize_timeout(total_hd):
    """Wait budget in seconds for a resize of an instance with *total_hd* MB.

    Resizes take 1-3 minutes per gigabyte; the upper rate is used. Instances
    under one gigabyte still get the budget of one.
    """
    gigabytes = max(total_hd // 1024, 1)
    return gigabytes * RESIZE_MINUTES_PER_GB * 60


async def wait_for_jobs(api, linode_id, timeout=JOB_TIMEOUT, interval=POLL_INTERVAL):
    """Block until all jobs for *linode_id* report a finish timestamp.

    Returns as soon as every listed job is done, without sleeping when that
    already holds on the first poll. Raises JobTimeoutError once *timeout*
    seconds have elapsed; the remote jobs are not affected. Errors from
    listing jobs propagate unchanged. Cancelling the awaiting task stops the
    poll at its sleep.
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout

    while True:
        jobs = await api.list_jobs(linode_id)
        pending = [job for job in jobs if not job.done]
        if not pending:
            return

        for job in pending:
            logger.debug(f"Linode {linode_id} job {job.id} pending: {job.label} {job.host_message}".rstrip())

        remaining = deadline - loop.time()
        if remaining <= 0:
            raise JobTimeoutError(linode_id, timeout)
        await asyncio.sleep(min(interval, remaining))
