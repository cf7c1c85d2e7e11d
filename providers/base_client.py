import httpx
from typing import Any, Dict, Optional

from core.interfaces.calendar_provider import CalendarProviderClient, CalendarProviderError
from utils.logger import logger


class RestCalendarClient(CalendarProviderClient):
    """Shared bearer-token request handling for REST calendar APIs"""

    def __init__(
        self,
        access_token: str,
        base_url: str,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.access_token = access_token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport
        self.headers = {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
        }

    async def _request(self, method: str, url: str, **kwargs) -> Dict[str, Any]:
        """Send a request and return the decoded JSON body"""
        if not url.startswith("http"):
            url = f"{self.base_url}{url}"

        async with httpx.AsyncClient(transport=self.transport, timeout=self.timeout) as client:
            try:
                response = await client.request(method, url, headers=self.headers, **kwargs)
                response.raise_for_status()
                return response.json() if response.content else {}
            except httpx.HTTPStatusError as e:
                status = e.response.status_code
                logger.error(f"{self.provider} API HTTP Error: {status} for {method} {url}")
                logger.debug(f"Error text: {e.response.text[:500]}")
                raise CalendarProviderError(self.provider, f"HTTP {status} from {self.provider} API", status)
            except httpx.HTTPError as e:
                logger.error(f"{self.provider} API Exception: {type(e).__name__}: {str(e)}")
                raise CalendarProviderError(self.provider, f"{type(e).__name__}: {str(e)}")
            except ValueError as e:
                logger.error(f"{self.provider} API returned a non-JSON body for {method} {url}: {e}")
                raise CalendarProviderError(self.provider, f"Invalid JSON from {self.provider} API")

    def _created_id(self, data: Dict[str, Any]) -> str:
        """Id of a newly created remote event"""
        event_id = data.get("id") if isinstance(data, dict) else None
        if not event_id:
            logger.error(f"{self.provider} API create reply carried no event id")
            raise CalendarProviderError(self.provider, f"{self.provider} API returned no event id")
        return event_id
