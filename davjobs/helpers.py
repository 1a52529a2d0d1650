"""
Higher level operations composed of jobs.
"""

import logging
from typing import Callable
from typing import Optional

from davjobs.context import ServerContext
from davjobs.jobs import PropfindJob

log = logging.getLogger("davjobs.networkjob.propfind")

PRIVATE_LINK_TIMEOUT = 10

PRIVATE_LINK_PROPERTIES = [
    ## numeric file id for fallback private link generation
    "http://owncloud.org/ns:fileid",
    "http://owncloud.org/ns:privatelink",
]


def fetch_private_link_url(
    context: ServerContext,
    remote_path: str,
    callback: Callable[[str], None],
) -> PropfindJob:
    """
    Look up the private link of a file and hand it to callback.

    callback is only called when the server reported a non-empty
    private link.  Errors of the lookup are not reported to callback,
    they stay on the returned job.  Must be called from within the
    running event loop.
    """
    job = PropfindJob(
        context, remote_path, PRIVATE_LINK_PROPERTIES, timeout=PRIVATE_LINK_TIMEOUT
    )

    def _on_result(job: PropfindJob) -> None:
        if job.exception() is not None:
            log.info(f"no private link for {remote_path}: {job.exception()}")
            return
        private_link_url = job.result().get("privatelink", "")
        if private_link_url:
            callback(private_link_url)

    job.add_done_callback(_on_result)
    job.start()
    return job


async def get_private_link_url(context: ServerContext, remote_path: str) -> Optional[str]:
    """
    Awaitable form of fetch_private_link_url.  Returns None when the
    server has no private link for the file, raises the job's error if
    the lookup failed.
    """
    result = await PropfindJob(
        context, remote_path, PRIVATE_LINK_PROPERTIES, timeout=PRIVATE_LINK_TIMEOUT
    ).run()
    return result.get("privatelink") or None
