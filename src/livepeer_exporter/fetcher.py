"""HTTP/GraphQL fetcher decoding JSON responses into payload models."""

import gzip
import json
import logging
from typing import Any, Dict, Optional

import httpx
from pydantic import TypeAdapter, ValidationError

from .errors import FetchError
from .schemas import AccountLookup, GraphQLEnvelope

logger = logging.getLogger(__name__)

LIVEPEER_SUBGRAPH_URL = "https://api.thegraph.com/subgraphs/name/livepeer/arbitrum-one"

DEFAULT_TIMEOUT = httpx.Timeout(10.0, connect=4.0)

GZIP_MAGIC = b"\x1f\x8b"


class Fetcher:
    """Fetches one URL and decodes the JSON body into ``model``.

    ``model`` is anything pydantic can validate against: a payload model or
    a container type such as ``List[LegacyRewardTransaction]``. Every failure
    is raised as a ``FetchError``.
    """

    def __init__(
        self,
        url: str,
        model: Any,
        headers: Optional[Dict[str, str]] = None,
        timeout: httpx.Timeout = DEFAULT_TIMEOUT,
        accept_gzip: bool = False,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.url = url
        self.model = model
        self.adapter = TypeAdapter(model)
        self.headers = dict(headers or {})
        self.timeout = timeout
        self.accept_gzip = accept_gzip
        self.client = client

    async def fetch(self) -> Any:
        """GET the URL and decode the body."""
        response = await self._send("GET")
        return self._decode(self._load_json(response))

    async def fetch_with_body(self, body: str) -> Any:
        """POST a raw JSON ``body`` and decode the response."""
        response = await self._send(
            "POST", content=body, headers={"Content-Type": "application/json"}
        )
        return self._decode(self._load_json(response))

    async def fetch_graphql(self, query: str) -> Any:
        """POST a GraphQL ``query`` and decode its ``data`` member."""
        response = await self._send("POST", json={"query": query})
        try:
            envelope = GraphQLEnvelope.model_validate(self._load_json(response))
        except ValidationError as e:
            raise FetchError(
                FetchError.DECODE, self.url, f"malformed GraphQL envelope: {e}"
            ) from e

        if envelope.data is None:
            errors = envelope.errors or []
            messages = "; ".join(err.message for err in errors) or "no data"
            raise FetchError(FetchError.DECODE, self.url, f"GraphQL error: {messages}")
        if envelope.errors:
            # Partial results are still usable.
            logger.warning(
                f"GraphQL response from {self.url} carried "
                f"{len(envelope.errors)} error(s): {envelope.errors[0].message}"
            )
        return self._decode(envelope.data)

    async def _send(self, method: str, **kwargs: Any) -> httpx.Response:
        headers = {**self.headers, **kwargs.pop("headers", {})}
        if self.accept_gzip:
            headers["Accept-Encoding"] = "gzip"

        try:
            if self.client is not None:
                response = await self.client.request(
                    method, self.url, headers=headers, timeout=self.timeout, **kwargs
                )
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.request(
                        method, self.url, headers=headers, **kwargs
                    )
        except httpx.HTTPError as e:
            raise FetchError(
                FetchError.TRANSPORT, self.url, f"error fetching data: {e!r}"
            ) from e

        if response.status_code != 200:
            raise FetchError(
                FetchError.STATUS,
                self.url,
                f"received non-200 status code: {response.status_code}",
            )
        return response

    def _load_json(self, response: httpx.Response) -> Any:
        content = response.content
        # httpx undoes Content-Encoding; some servers gzip without announcing it.
        if self.accept_gzip and content[:2] == GZIP_MAGIC:
            try:
                content = gzip.decompress(content)
            except (OSError, EOFError) as e:
                raise FetchError(
                    FetchError.DECODE, self.url, f"error decompressing body: {e}"
                ) from e

        try:
            return json.loads(content)
        except ValueError as e:
            raise FetchError(
                FetchError.DECODE, self.url, f"error decoding response body: {e}"
            ) from e

    def _decode(self, data: Any) -> Any:
        try:
            return self.adapter.validate_python(data)
        except ValidationError as e:
            raise FetchError(
                FetchError.DECODE,
                self.url,
                f"response does not match {getattr(self.model, '__name__', self.model)}: "
                f"{e.error_count()} error(s)",
            ) from e


async def _lookup_typename(
    entity: str,
    address: str,
    url: str,
    client: Optional[httpx.AsyncClient],
) -> Optional[str]:
    query = f'{{ {entity}(id: "{address}") {{ __typename }} }}'
    lookup = await Fetcher(url, AccountLookup, client=client).fetch_graphql(query)
    ref = getattr(lookup, entity)
    return ref.typename if ref is not None else None


async def is_orchestrator(
    address: str,
    url: str = LIVEPEER_SUBGRAPH_URL,
    client: Optional[httpx.AsyncClient] = None,
) -> bool:
    """Check that ``address`` is registered as a transcoder."""
    return await _lookup_typename("transcoder", address, url, client) == "Transcoder"


async def is_delegator(
    address: str,
    url: str = LIVEPEER_SUBGRAPH_URL,
    client: Optional[httpx.AsyncClient] = None,
) -> bool:
    """Check that ``address`` has a delegator record."""
    return await _lookup_typename("delegator", address, url, client) == "Delegator"
