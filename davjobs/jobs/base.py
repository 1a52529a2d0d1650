#!/usr/bin/env python
"""
Lifecycle shared by every protocol job.

A job is created by a caller, bound to a ServerContext, and started.
It builds a DAVRequest, hands it to the transport of the context and
suspends until the response arrives.  It then decodes the response and
resolves its outcome future - exactly once - with a typed value or a
typed error:

    job = PropfindJob(context, "Documents", ["getetag"])
    props = await job.run()

or, callback style:

    job.add_done_callback(lambda job: print(job.result()))
    job.start()

States: CREATED -> SENT -> (COMPLETED | TIMED_OUT | CANCELLED).  A job
may go back from SENT to CREATED when it decides to send a modified
request (see CheckServerJob), its caller only ever sees the final
outcome.
"""

import asyncio
import enum
import logging
from typing import Any, Callable, List, Mapping, Optional, Union

from davjobs.context import ServerContext
from davjobs.lib import error
from davjobs.lib.url import URL
from davjobs.protocol.types import DAVMethod, DAVRequest, DAVResponse, Priority


class JobState(enum.Enum):
    CREATED = "created"
    SENT = "sent"
    COMPLETED = "completed"
    TIMED_OUT = "timed out"
    CANCELLED = "cancelled"


## Returned by finished() to have the job send a new request instead of
## delivering an outcome
RESTART = object()


class NetworkJob:
    """
    Base class of all jobs.

    Subclasses implement build_request() and finished().  finished()
    either returns the outcome value, raises a DAVError (which becomes
    the outcome), or returns RESTART.

    Attributes:
        context: The ServerContext the job talks to
        path: Path relative to the DAV root (or the account URL, for
            jobs that say so)
        timeout: Seconds until the job gives up, None for no timeout
        ignore_credential_failure: Treat 401/403 as an ordinary response
            instead of reporting a credential failure to the context
        state: Current JobState
        request: The last request sent
        response: The response being processed
    """

    log_name = "davjobs.networkjob"

    def __init__(
        self,
        context: ServerContext,
        path: str = "",
        timeout: Optional[float] = None,
        ignore_credential_failure: bool = False,
        log: Optional[logging.Logger] = None,
    ) -> None:
        self.context = context
        self.path = path
        self.timeout = timeout
        self.ignore_credential_failure = ignore_credential_failure
        self.log = log or logging.getLogger(self.log_name)
        self.state = JobState.CREATED
        self.request: Optional[DAVRequest] = None
        self.response: Optional[DAVResponse] = None
        self._future: Optional[asyncio.Future] = None
        self._task: Optional[asyncio.Task] = None
        self._timer: Optional[asyncio.TimerHandle] = None
        self._callbacks: List[Callable[["NetworkJob"], None]] = []

    def __repr__(self) -> str:
        target = self.request.url if self.request is not None else self.path
        return f"<{self.__class__.__name__} {target} {self.state.value}>"

    ## ==================== to be implemented by subclasses ====================

    def build_request(self) -> DAVRequest:
        raise NotImplementedError()

    def finished(self, response: DAVResponse) -> Any:
        raise NotImplementedError()

    def transport_failed(self, exc: error.TransportError) -> Any:
        """Called instead of finished() when no response was received"""
        self.log.warning(f"{self.request.verb} of {self.request.url} failed: {exc.reason}")
        raise exc

    def timed_out(self) -> None:
        """Called when the timer expired, before the outcome is set"""
        self.log.warning(f"TIMEOUT {self}")

    ## ==================== helpers for subclasses ====================

    def make_dav_url(self, path: Optional[str] = None) -> URL:
        return self.context.make_dav_url(self.path if path is None else path)

    def make_account_url(self, path: Optional[str] = None) -> URL:
        return self.context.make_account_url(self.path if path is None else path)

    def make_request(
        self,
        method: DAVMethod,
        url: Union[URL, str],
        headers: Optional[Mapping[str, str]] = None,
        body: Optional[bytes] = None,
        **flags: Any,
    ) -> DAVRequest:
        return DAVRequest(
            method=method, url=str(url), headers=dict(headers or {}), body=body, **flags
        )

    def reply_status_string(self) -> str:
        if self.response is None:
            return "(no reply)"
        return f"{self.response.status} {self.response.reason}"

    def error_string(self) -> str:
        if self.response is None:
            return "no reply"
        return f"Server replied \"{self.response.status} {self.response.reason}\" to \"{self.request.verb} {self.request.url}\""

    def http_error(self, error_class: Optional[type] = None) -> error.DAVError:
        """
        A typed error describing the current response.  The class
        defaults to the one registered for the verb of the request.
        """
        if error_class is None:
            error_class = error.exception_by_method[self.request.verb.lower()]
        return error_class(
            url=self.request.url, reason=self.error_string(), status=self.response.status
        )

    ## ==================== lifecycle ====================

    @property
    def future(self) -> Optional[asyncio.Future]:
        return self._future

    def done(self) -> bool:
        return self._future is not None and self._future.done()

    def result(self) -> Any:
        """The outcome of a finished job; raises the typed error, if any"""
        if self._future is None:
            raise asyncio.InvalidStateError("job was never started")
        return self._future.result()

    def exception(self) -> Optional[BaseException]:
        if self._future is None:
            raise asyncio.InvalidStateError("job was never started")
        return self._future.exception()

    def add_done_callback(self, fn: Callable[["NetworkJob"], None]) -> None:
        """fn(job) is called once, after the outcome has been set"""
        self._callbacks.append(fn)

    def start(self) -> asyncio.Future:
        """
        Send the request.  Must be called from within the running event
        loop; returns immediately with the outcome future.
        """
        if self._future is not None:
            raise RuntimeError(f"{self} was already started")
        loop = asyncio.get_running_loop()
        self._future = loop.create_future()
        self._future.add_done_callback(self._on_done)
        self.context.keep_alive(self)
        if self.timeout is not None:
            self._timer = loop.call_later(self.timeout, self._on_timed_out)
        self._task = loop.create_task(self._run())
        return self._future

    async def run(self) -> Any:
        """Start the job (unless already started) and wait for its outcome"""
        future = self._future if self._future is not None else self.start()
        return await future

    def __await__(self):
        return self.run().__await__()

    def abort(self) -> None:
        """
        Give up on the job.  The outcome becomes JobAbortedError, a
        response arriving later is ignored.
        """
        if self._future is None or self._future.done():
            return
        self.state = JobState.CANCELLED
        self._future.set_exception(error.JobAbortedError(url=self._url_for_errors()))

    def _url_for_errors(self) -> Optional[str]:
        return self.request.url if self.request is not None else None

    async def _run(self) -> None:
        while True:
            try:
                self.request = self.build_request()
            except Exception as e:
                self.state = JobState.COMPLETED
                self._future.set_exception(e)
                return
            self.state = JobState.SENT
            try:
                response = await self.context.transport.execute(self.request)
            except error.TransportError as e:
                if self._is_abandoned():
                    return
                self.response = None
                self._resolve(self.transport_failed, e)
                return
            except Exception as e:
                if self._is_abandoned():
                    return
                self.response = None
                self._resolve(
                    self.transport_failed,
                    error.TransportError(url=self.request.url, reason=str(e)),
                )
                return
            if self._is_abandoned():
                return
            self.response = response
            if self._resolve(self._handle_response, response):
                self.state = JobState.CREATED
                self.log.debug(f"restarting {self}")
                continue
            return

    def _is_abandoned(self) -> bool:
        if self._future.done():
            self.log.debug(f"ignoring reply for {self}, job is already {self.state.value}")
            return True
        return False

    def _handle_response(self, response: DAVResponse) -> Any:
        if response.status in (401, 403) and not self.ignore_credential_failure:
            self.context.credentials_failed(self, response)
            raise self.http_error(error.AuthorizationError)
        return self.finished(response)

    def _resolve(self, handler: Callable[..., Any], *args: Any) -> bool:
        """
        Run handler and turn whatever it returns or raises into the
        outcome.  Returns True if the job wants to restart instead.
        """
        try:
            outcome = handler(*args)
        except Exception as e:
            self.state = JobState.COMPLETED
            self._future.set_exception(e)
            return False
        if outcome is RESTART:
            return True
        error.assert_(not self._future.done())
        self.state = JobState.COMPLETED
        self._future.set_result(outcome)
        return False

    def _on_timed_out(self) -> None:
        if self._future.done():
            return
        self.state = JobState.TIMED_OUT
        self.timed_out()
        if not self._future.done():
            self._future.set_exception(error.JobTimeoutError(url=self._url_for_errors()))

    def _on_done(self, future: asyncio.Future) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self.context.release(self)
        for fn in self._callbacks:
            fn(self)


class SimpleNetworkJob(NetworkJob):
    """
    Sends an arbitrary request and resolves with the raw DAVResponse,
    whatever its status.
    """

    log_name = "davjobs.networkjob.simple"

    def __init__(
        self,
        context: ServerContext,
        verb: Union[DAVMethod, str],
        url: Union[URL, str],
        headers: Optional[Mapping[str, str]] = None,
        body: Optional[bytes] = None,
        send_credentials: bool = True,
        reuse_auth: bool = True,
        follow_redirects: bool = False,
        priority: Priority = Priority.NORMAL,
        **kwargs: Any,
    ) -> None:
        super().__init__(context, **kwargs)
        self.verb = DAVMethod(verb) if isinstance(verb, str) else verb
        self.url = url
        self.headers = dict(headers or {})
        self.body = body
        self.flags = dict(
            send_credentials=send_credentials,
            reuse_auth=reuse_auth,
            follow_redirects=follow_redirects,
            priority=priority,
        )

    def build_request(self) -> DAVRequest:
        return self.make_request(self.verb, self.url, self.headers, self.body, **self.flags)

    def finished(self, response: DAVResponse) -> DAVResponse:
        return response
