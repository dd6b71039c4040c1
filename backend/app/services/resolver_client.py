"""
Client for the upstream media resolver
Turns a source URL into an acquisition plan
"""
import httpx
from pydantic import ValidationError
from typing import Dict, Iterable, Optional, Union
from urllib.parse import urlsplit, urlunsplit
import logging

from app.core.config import settings
from app.core.exceptions import TransportError, UpstreamError
from app.models.resolver import AcquisitionPlan, ResolverResponse, ResponseVariant

logger = logging.getLogger(__name__)

UNSUPPORTED_RESPONSE = "Unsupported response from resolver"


class ResolverClient:
    """Issues one resolver request per job and interprets the answer"""

    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str = settings.RESOLVER_API_URL,
        public_hosts: Iterable[str] = settings.RESOLVER_PUBLIC_HOSTS,
        preferences: Optional[Dict[str, Union[str, bool]]] = None,
        default_filename: str = settings.DEFAULT_FILENAME
    ):
        self._client = client
        self._endpoint = base_url if base_url.endswith("/") else f"{base_url}/"
        self._internal_host = urlsplit(self._endpoint).netloc
        self._public_hosts = frozenset(public_hosts)
        self._preferences = dict(preferences or settings.RESOLVER_PREFERENCES)
        self._default_filename = default_filename

    @property
    def endpoint(self) -> str:
        return self._endpoint

    def build_request(self, source_url: str) -> Dict[str, Union[str, bool]]:
        return {"url": source_url, **self._preferences}

    async def resolve(self, source_url: str) -> AcquisitionPlan:
        """
        Ask the resolver how to fetch source_url
        Raises UpstreamError or TransportError
        """
        logger.info(f"Resolving {source_url} via {self._endpoint}")
        try:
            response = await self._client.post(
                self._endpoint,
                json=self.build_request(source_url),
                headers={
                    "Content-Type": "application/json",
                    "Accept": "application/json"
                }
            )
        except httpx.HTTPError as e:
            raise TransportError(str(e) or e.__class__.__name__) from e

        plan = self.interpret(self._parse_body(response))
        logger.info(f"Resolver answered {plan.variant.value} for {source_url}, filename: {plan.filename}")
        return plan

    def _parse_body(self, response: httpx.Response) -> ResolverResponse:
        # Error answers come with a 4xx status but still carry a JSON body
        try:
            body = response.json()
        except ValueError:
            body = None

        if not isinstance(body, dict) or "status" not in body:
            if response.is_error:
                raise TransportError(f"Resolver request failed with status code {response.status_code}")
            raise UpstreamError(UNSUPPORTED_RESPONSE)

        try:
            return ResolverResponse.model_validate(body)
        except ValidationError as e:
            logger.error(f"Malformed resolver response: {e}")
            raise UpstreamError(UNSUPPORTED_RESPONSE) from e

    def interpret(self, data: ResolverResponse) -> AcquisitionPlan:
        """Map a resolver response onto exactly one acquisition plan"""
        if data.status == "error":
            code = data.error.code if data.error and data.error.code else "Unknown error"
            logger.error(f"Resolver error: {code}")
            raise UpstreamError(code)

        if data.status == ResponseVariant.REDIRECT.value and data.url:
            return AcquisitionPlan(
                variant=ResponseVariant.REDIRECT,
                url=data.url,
                filename=data.filename or self._default_filename
            )

        if data.status == ResponseVariant.TUNNEL.value and data.url:
            return AcquisitionPlan(
                variant=ResponseVariant.TUNNEL,
                url=self.rewrite_tunnel_url(data.url),
                filename=data.filename or self._default_filename
            )

        if data.status == ResponseVariant.PICKER.value and data.picker:
            first = data.picker[0]
            return AcquisitionPlan(
                variant=ResponseVariant.PICKER,
                url=first.url,
                filename=first.filename or self._default_filename
            )

        logger.error(f"Unsupported resolver response: {data.status}")
        raise UpstreamError(UNSUPPORTED_RESPONSE)

    def rewrite_tunnel_url(self, url: str) -> str:
        """
        Point a relay URL at the resolver's internal address.
        The resolver advertises its relay under the host:port outside callers
        use, which is not reachable from inside the service network.
        """
        parts = urlsplit(url)
        if parts.netloc not in self._public_hosts:
            return url
        rewritten = urlunsplit(parts._replace(netloc=self._internal_host))
        logger.info(f"Adjusted tunnel URL: {url} -> {rewritten}")
        return rewritten
