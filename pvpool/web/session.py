import asyncio
import aiohttp
from typing import Any, Dict, Mapping, Optional, Union
from marshmallow import Schema, ValidationError
from yarl import URL

from pvpool.types.base import JSON

from .error import AgentProtocolError, AgentUnreachable

HEADERS = {
    "Accept": "application/json",
    "Content-Type": "application/json; charset=utf-8",
}

"""Default timeout in seconds"""
TIMEOUT: float = 2.0


class SessionManager:
    """Wraps an aiohttp session and maps transport failures to agent errors.

    The underlying session is created on first use so the manager can be
    built outside of a running event loop.
    """

    def __init__(
        self,
        headers: Optional[Mapping] = None,
        timeout: float = TIMEOUT,
    ) -> None:
        self.headers = dict(**HEADERS)
        self.headers.update(headers or {})
        self.timeout = timeout
        self._session: Optional[aiohttp.ClientSession] = None

    @property
    def session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(headers=self.headers)
        return self._session

    @property
    def client_timeout(self) -> aiohttp.ClientTimeout:
        return aiohttp.ClientTimeout(total=self.timeout)

    async def get(
        self,
        url: Union[str, URL],
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Mapping] = None,
        schema: Optional[Schema] = None,
        many: bool = False,
    ) -> Any:
        """Run a wrapped session HTTP GET request.
        Args:
            url: The url to get from.
            params: query string parameters
            headers: A dict adding to and overriding the session headers.
            schema: An instance of a `marshmallow.Schema` that represents the object
                to build.
            many: Whether to treat the output as a list of the passed schema.
        Returns:
            A JSON dictionary or a constructed object if a schema is passed.
        Raises:
            AgentUnreachable: If the connection fails or times out.
            AgentProtocolError: If the response status is not 200 or the body
                cannot be decoded or validated.
        """
        # Guard against common gotcha, passing schema class instead of instance.
        if isinstance(schema, type):
            raise ValueError("Passed Schema should be an instance not a class.")

        try:
            async with self.session.get(
                str(url),
                params=params or {},
                headers=headers or {},
                timeout=self.client_timeout,
            ) as res:
                if res.status != 200:
                    raise AgentProtocolError(
                        f"GET {url} returned unexpected statusCode={res.status}"
                    )
                try:
                    data = await res.json(content_type=None)
                except ValueError as ex:
                    raise AgentProtocolError(f"GET {url} returned a malformed body") from ex
        except (aiohttp.ClientConnectionError, asyncio.TimeoutError) as ex:
            raise AgentUnreachable(f"GET {url} failed: {ex!r}") from ex
        except aiohttp.ClientError as ex:
            raise AgentProtocolError(f"GET {url} failed: {ex!r}") from ex

        if schema is None:
            return data
        try:
            return schema.load(data, many=many)
        except ValidationError as ex:
            raise AgentProtocolError(f"GET {url} returned an invalid body: {ex.messages}") from ex

    async def put(
        self,
        url: Union[str, URL],
        data: Optional[JSON] = None,
        headers: Optional[Mapping] = None,
        raise_errors: bool = True,
    ) -> int:
        """Run a wrapped session HTTP PUT request and return the response status.

        The response body is not read. With `raise_errors` disabled any HTTP
        response is accepted and only transport failures or unparseable responses
        raise.
        """
        try:
            async with self.session.put(
                str(url),
                json=data,
                headers=headers or {},
                timeout=self.client_timeout,
            ) as res:
                if raise_errors and res.status >= 400:
                    raise AgentProtocolError(
                        f"PUT {url} returned unexpected statusCode={res.status}"
                    )
                return res.status
        except (aiohttp.ClientConnectionError, asyncio.TimeoutError) as ex:
            raise AgentUnreachable(f"PUT {url} failed: {ex!r}") from ex
        except aiohttp.ClientError as ex:
            raise AgentProtocolError(f"PUT {url} failed: {ex!r}") from ex

    def __repr__(self) -> str:
        return f"SessionManager<timeout={self.timeout}>"

    async def close(self) -> None:
        """Close the underlying session
        """
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()
