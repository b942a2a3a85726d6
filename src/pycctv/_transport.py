"""HTTP transport for device description documents."""

from __future__ import annotations

import logging

import aiohttp

from pycctv._constants import USER_AGENT
from pycctv.exceptions import CctvTransportError

_logger = logging.getLogger(__name__)


class DescriptionTransport:
    """Fetches description documents over a shared ``aiohttp`` session."""

    def __init__(
        self,
        http_session: aiohttp.ClientSession,
        *,
        timeout: float = 10.0,
    ) -> None:
        self._http = http_session
        self._timeout = aiohttp.ClientTimeout(total=timeout)

    async def fetch_description(self, location: str) -> str:
        """GET *location* and return the document text.

        Raises
        ------
        CctvTransportError
            Network failure, timeout, or a non-200 response.
        """
        headers: dict[str, str] = {
            "accept": "text/xml, application/xml",
            "user-agent": USER_AGENT,
        }

        _logger.debug("GET %s", location)

        try:
            async with self._http.get(location, headers=headers, timeout=self._timeout) as resp:
                text = await resp.text()
                if resp.status != 200:
                    raise CctvTransportError(
                        f"HTTP {resp.status} from {location}: {text[:200]}",
                        status_code=resp.status,
                        location=location,
                    )
        except CctvTransportError:
            raise
        except TimeoutError as exc:
            raise CctvTransportError(
                f"Timed out fetching {location}",
                location=location,
            ) from exc
        except aiohttp.ClientError as exc:
            raise CctvTransportError(
                f"Request to {location} failed: {exc}",
                location=location,
            ) from exc

        return text
