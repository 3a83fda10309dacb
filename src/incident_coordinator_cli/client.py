"""Incident Coordinator API client for making HTTP requests."""

import httpx
from typing import Optional, List, Dict, Any


TRANSITIONS = {
    "acknowledge": "acknowledge",
    "investigate": "investigate",
    "mitigate": "mitigate",
    "resolve": "resolve",
    "close": "close",
}


class CoordinatorClientError(Exception):
    """Base exception for coordinator client errors."""
    pass


class ConnectionError(CoordinatorClientError):
    """Raised when connection to the coordinator fails."""
    pass


class AuthenticationError(CoordinatorClientError):
    """Raised when authentication fails."""
    pass


class NotFoundError(CoordinatorClientError):
    """Raised when an incident is not found."""
    pass


class InvalidRequestError(CoordinatorClientError):
    """Raised when the coordinator rejects the request as invalid."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.details = details or {}


class InvalidTransitionError(InvalidRequestError):
    """Raised when the incident's current state does not allow the operation."""

    @property
    def current_state(self) -> Optional[str]:
        return self.details.get("current_state")


class CoordinatorClient:
    """Client for interacting with the Incident Coordinator API."""

    def __init__(self, base_url: str, api_key: Optional[str] = None, timeout: float = 30.0):
        """
        Initialize the coordinator client.

        Args:
            base_url: Base URL of the coordinator service
            api_key: Optional API key for authentication
            timeout: Request timeout in seconds
        """
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        """Async context manager entry."""
        self._get_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    def _get_client(self) -> httpx.AsyncClient:
        """Get the HTTP client, creating it if necessary."""
        if self._client is None:
            headers = {}
            if self.api_key:
                headers["Authorization"] = f"Bearer {self.api_key}"

            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=headers,
                timeout=self.timeout
            )
        return self._client

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        """
        Send a request and return the decoded JSON body.

        Raises:
            ConnectionError: If the coordinator cannot be reached
            CoordinatorClientError: For transport errors, and see _raise_for_status
        """
        try:
            response = await self._get_client().request(method, path, **kwargs)
        except httpx.ConnectError as e:
            raise ConnectionError(f"Failed to connect to coordinator at {self.base_url}: {e}")
        except httpx.TimeoutException:
            raise ConnectionError(f"Request timed out after {self.timeout} seconds")
        except httpx.HTTPError as e:
            raise CoordinatorClientError(f"HTTP error: {e}")

        self._raise_for_status(response)
        return response.json()

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        """
        Translate an error response from the coordinator into a client exception.

        Raises:
            AuthenticationError: On 401/403
            NotFoundError: On 404
            InvalidTransitionError: On 400 carrying the incident's current state
            InvalidRequestError: On any other 400 (field validation errors)
            CoordinatorClientError: On any other error status
        """
        status_code = response.status_code
        if status_code < 400:
            return
        if status_code in (401, 403):
            raise AuthenticationError("Authentication failed. Check your API key.")

        try:
            body = response.json()
        except ValueError:
            body = {}

        if status_code == 404:
            raise NotFoundError(body.get("detail", "Incident not found"))

        if status_code == 400:
            detail = body.get("detail", body)
            if isinstance(detail, dict) and "current_state" in detail:
                raise InvalidTransitionError(detail.get("message", "Invalid transition"), detail)
            if isinstance(detail, dict):
                fields = "; ".join(f"{field}: {msg}" for field, msg in detail.items())
                raise InvalidRequestError(f"Invalid request: {fields}", detail)
            raise InvalidRequestError(f"Invalid request: {detail}")

        if status_code == 503:
            raise CoordinatorClientError(
                f"Coordinator storage unavailable, try again: {body.get('detail', '')}"
            )
        raise CoordinatorClientError(f"API error: {body.get('detail', 'Unknown error')}")

    async def report_incident(
        self,
        title: str,
        severity: str,
        reported_by: str,
        affected_systems_count: int = 1,
        description: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Report a new incident.

        Returns:
            The created incident
        """
        payload = {
            "title": title,
            "severity": severity.upper(),
            "reported_by": reported_by,
            "affected_systems_count": affected_systems_count,
        }
        if description:
            payload["description"] = description

        return await self._request("POST", "/api/v1/incidents", json=payload)

    async def get_incident(self, incident_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/api/v1/incidents/{incident_id}")

    async def get_audit_history(self, incident_id: str) -> List[Dict[str, Any]]:
        """Get the incident's audit entries, newest first."""
        data = await self._request("GET", f"/api/v1/incidents/{incident_id}/audit")
        return data["entries"]

    async def transition(self, incident_id: str, action: str, responder: str) -> Dict[str, Any]:
        """
        Move an incident through its lifecycle.

        Args:
            incident_id: Incident ID
            action: One of acknowledge, investigate, mitigate, resolve, close
            responder: Who performs the action

        Returns:
            The updated incident
        """
        if action not in TRANSITIONS:
            raise ValueError(f"Unknown action: {action}")

        return await self._request(
            "PUT",
            f"/api/v1/incidents/{incident_id}/{TRANSITIONS[action]}",
            json={"responder": responder},
        )

    async def add_comment(self, incident_id: str, author: str, content: str) -> Dict[str, Any]:
        return await self._request(
            "POST",
            f"/api/v1/incidents/{incident_id}/comments",
            json={"author": author, "content": content},
        )

    async def close(self):
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
