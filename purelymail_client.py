import httpx

DEFAULT_BASE_URL = "https://purelymail.com"


class PurelymailError(Exception):
    """The PurelyMail API answered with ``{"type": "error", ...}``."""

    def __init__(self, code: str, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(f"{code}: {message}" if code else message)


class PurelymailClient:
    """PurelyMail REST client. Every endpoint is a JSON POST under /api/v0."""

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        return {
            "Purelymail-Api-Token": self.api_key,
            "Content-Type": "application/json",
        }

    async def call(self, endpoint: str, body: dict | None = None) -> dict:
        """POST to an API endpoint and unwrap the ``result`` payload."""
        async with httpx.AsyncClient(transport=self._transport) as client:
            r = await client.post(
                f"{self.base_url}/api/v0/{endpoint}",
                json=body or {},
                headers=self._headers(),
            )
            r.raise_for_status()
            payload = r.json()

        if payload.get("type") == "error":
            raise PurelymailError(
                payload.get("code", ""), payload.get("message", "unknown error")
            )
        return payload.get("result", {})
