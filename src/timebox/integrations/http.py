"""httpx clients whose timeouts never outlive the current Budget."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..budget import Budget
from ..scope import BudgetStack, default_stack

logger = logging.getLogger(__name__)


def capped_timeout(timeout: Any, budget: Budget) -> httpx.Timeout:
    """
    Cap every phase of `timeout` at the Budget's remaining seconds.

    `timeout` is anything httpx.Timeout accepts. Phases without a limit get
    the remaining time; shorter explicit limits are kept.
    """
    remaining = max(0.0, budget.seconds_remaining)
    base = httpx.Timeout(timeout)

    def _cap(value: float | None) -> float:
        return remaining if value is None else min(value, remaining)

    return httpx.Timeout(
        connect=_cap(base.connect),
        read=_cap(base.read),
        write=_cap(base.write),
        pool=_cap(base.pool),
    )


def _request_timeout(kwargs: dict[str, Any], client: Any, budget: Budget) -> httpx.Timeout:
    timeout = kwargs.get("timeout", httpx.USE_CLIENT_DEFAULT)
    if timeout is httpx.USE_CLIENT_DEFAULT:
        timeout = client.timeout
    return capped_timeout(timeout, budget)


class TimeboxClient:
    """
    Wraps an httpx.Client so requests respect the current Budget.

    Before each request made inside a Budget, the `http` checkpoint runs (so
    no request is sent once the Budget is exceeded) and the request's
    connect/read/write/pool timeouts are capped at the remaining time.
    Outside a Budget, or when the Budget filters the checkpoint out, requests
    go through untouched.
    """

    def __init__(
        self,
        client: httpx.Client | None = None,
        *,
        stack: BudgetStack | None = None,
        checkpoint_name: str = "http",
        **client_kwargs: Any,
    ) -> None:
        self._client = client if client is not None else httpx.Client(**client_kwargs)
        self._stack = stack if stack is not None else default_stack
        self.checkpoint_name = checkpoint_name

    @property
    def client(self) -> httpx.Client:
        return self._client

    def request(self, method: str, url: Any, **kwargs: Any) -> httpx.Response:
        budget = self._stack.current()
        if budget is not None and budget.selected(self.checkpoint_name):
            budget.checkpoint(self.checkpoint_name)
            kwargs["timeout"] = _request_timeout(kwargs, self._client, budget)
            logger.debug("%s %s with timeout %r", method, url, kwargs["timeout"])
        return self._client.request(method, url, **kwargs)

    def get(self, url: Any, **kwargs: Any) -> httpx.Response:
        return self.request("GET", url, **kwargs)

    def head(self, url: Any, **kwargs: Any) -> httpx.Response:
        return self.request("HEAD", url, **kwargs)

    def options(self, url: Any, **kwargs: Any) -> httpx.Response:
        return self.request("OPTIONS", url, **kwargs)

    def post(self, url: Any, **kwargs: Any) -> httpx.Response:
        return self.request("POST", url, **kwargs)

    def put(self, url: Any, **kwargs: Any) -> httpx.Response:
        return self.request("PUT", url, **kwargs)

    def patch(self, url: Any, **kwargs: Any) -> httpx.Response:
        return self.request("PATCH", url, **kwargs)

    def delete(self, url: Any, **kwargs: Any) -> httpx.Response:
        return self.request("DELETE", url, **kwargs)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> TimeboxClient:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


class AsyncTimeboxClient:
    """The httpx.AsyncClient counterpart of TimeboxClient."""

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        stack: BudgetStack | None = None,
        checkpoint_name: str = "http",
        **client_kwargs: Any,
    ) -> None:
        self._client = (
            client if client is not None else httpx.AsyncClient(**client_kwargs)
        )
        self._stack = stack if stack is not None else default_stack
        self.checkpoint_name = checkpoint_name

    @property
    def client(self) -> httpx.AsyncClient:
        return self._client

    async def request(self, method: str, url: Any, **kwargs: Any) -> httpx.Response:
        budget = self._stack.current()
        if budget is not None and budget.selected(self.checkpoint_name):
            budget.checkpoint(self.checkpoint_name)
            kwargs["timeout"] = _request_timeout(kwargs, self._client, budget)
            logger.debug("%s %s with timeout %r", method, url, kwargs["timeout"])
        return await self._client.request(method, url, **kwargs)

    async def get(self, url: Any, **kwargs: Any) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def head(self, url: Any, **kwargs: Any) -> httpx.Response:
        return await self.request("HEAD", url, **kwargs)

    async def options(self, url: Any, **kwargs: Any) -> httpx.Response:
        return await self.request("OPTIONS", url, **kwargs)

    async def post(self, url: Any, **kwargs: Any) -> httpx.Response:
        return await self.request("POST", url, **kwargs)

    async def put(self, url: Any, **kwargs: Any) -> httpx.Response:
        return await self.request("PUT", url, **kwargs)

    async def patch(self, url: Any, **kwargs: Any) -> httpx.Response:
        return await self.request("PATCH", url, **kwargs)

    async def delete(self, url: Any, **kwargs: Any) -> httpx.Response:
        return await self.request("DELETE", url, **kwargs)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> AsyncTimeboxClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
