"""PowerDNS backend using the authoritative server's HTTP API."""

import re

import httpx

from txthook._logging import get_logger
from txthook.backends.base import RecordBackend
from txthook.exceptions import BackendError, BackendUnreachableError

logger = get_logger(__name__)

_QUOTED = re.compile(r'"((?:[^"\\]|\\.)*)"')


def unquote_txt(content: str) -> str:
    """Turn PowerDNS TXT content (one or more quoted strings) into its value."""
    strings = _QUOTED.findall(content)
    if not strings:
        return content
    return "".join(strings)


class PowerDnsBackend(RecordBackend):
    """Record backend for PowerDNS authoritative server.

    PowerDNS applies rrset changes as soon as the API accepts them, so
    add() and remove() are effective immediately. commit() optionally
    sends NOTIFY for the zones touched so secondaries pick up the change.

    Args:
        api_url: Base URL of the PowerDNS API (e.g., "http://localhost:8081").
        api_key: API key for X-API-Key authentication header.
        server_id: PowerDNS server ID (default: "localhost").
        ttl: TTL of created records.
        notify: Send NOTIFY for touched zones on commit().
        timeout: HTTP request timeout in seconds (default: 30).
    """

    def __init__(
        self,
        api_url: str,
        api_key: str,
        server_id: str = "localhost",
        ttl: int = 60,
        notify: bool = False,
        timeout: int = 30,
    ):
        self.api_url = api_url.rstrip("/")
        self.api_key = api_key
        self.server_id = server_id
        self.ttl = ttl
        self.notify = notify
        self.timeout = timeout
        self._touched_zones: list[str] = []

    @property
    def _headers(self) -> dict[str, str]:
        return {"X-API-Key": self.api_key}

    def _zone_url(self, zone: str) -> str:
        return f"{self.api_url}/api/v1/servers/{self.server_id}/zones/{zone}"

    def check(self) -> None:
        try:
            response = httpx.get(
                f"{self.api_url}/api/v1/servers/{self.server_id}",
                headers=self._headers,
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            raise BackendUnreachableError(f"PowerDNS API unreachable: {e}") from e
        if response.status_code != 200:
            raise BackendUnreachableError(
                f"PowerDNS API returned {response.status_code} for server {self.server_id}"
            )

    def _find_zone(self, name: str) -> str:
        """Find the zone containing the given name.

        Iterates through name parts from most specific to least, testing
        each candidate zone URL.

        Args:
            name: The full record name.

        Returns:
            The zone name (with trailing dot).

        Raises:
            BackendError: If no matching zone is found.
        """
        parts = name.rstrip(".").split(".")
        for i in range(len(parts)):
            candidate = ".".join(parts[i:]) + "."

            logger.debug(
                "Trying zone candidate",
                extra={"record_name": name, "candidate": candidate},
            )

            try:
                response = httpx.get(self._zone_url(candidate), headers=self._headers, timeout=self.timeout)
            except httpx.HTTPError as e:
                raise BackendError(f"PowerDNS API request failed: {e}") from e

            if response.status_code == 200:
                logger.debug("Zone found", extra={"record_name": name, "zone": candidate})
                return candidate

        raise BackendError(f"No zone found for record: {name}")

    def _handle_response(self, response: httpx.Response, zone: str) -> None:
        """Handle PowerDNS API response status codes.

        Args:
            response: The httpx Response object.
            zone: The zone name (for error messages).

        Raises:
            BackendError: For API errors with descriptive messages.
        """
        if response.status_code in (200, 204):
            logger.debug(
                "PowerDNS API request successful",
                extra={"zone": zone, "status_code": response.status_code},
            )
            return

        try:
            error_data = response.json()
            detail = error_data.get("error", response.text)
        except Exception:
            detail = response.text or "Unknown error"

        status_messages = {
            400: f"Bad Request: {detail}",
            404: f"Zone not found: {detail}",
            422: f"Unprocessable Entity: {detail}",
            500: f"Server Error: {detail}",
        }

        message = status_messages.get(
            response.status_code,
            f"Unexpected error ({response.status_code}): {detail}",
        )
        logger.error(
            "PowerDNS API error",
            extra={"zone": zone, "status_code": response.status_code, "detail": detail},
        )
        raise BackendError(message)

    def _get_values(self, zone: str, name: str) -> list[str]:
        """Fetch the TXT values of one rrset from a zone."""
        try:
            response = httpx.get(self._zone_url(zone), headers=self._headers, timeout=self.timeout)
        except httpx.HTTPError as e:
            raise BackendError(f"PowerDNS API request failed: {e}") from e
        self._handle_response(response, zone)

        fqdn = f"{name.rstrip('.')}.".lower()
        for rrset in response.json().get("rrsets", []):
            if rrset.get("name", "").lower() == fqdn and rrset.get("type") == "TXT":
                return [unquote_txt(record["content"]) for record in rrset.get("records", [])]
        return []

    def _patch_rrset(self, zone: str, name: str, values: list[str]) -> None:
        """Set the TXT rrset at a name to exactly `values`.

        PowerDNS replaces whole rrsets, so the full value list is sent.
        An empty list deletes the rrset.

        Args:
            zone: Zone holding the name.
            name: The record name.
            values: TXT values the rrset should hold afterwards.

        Raises:
            BackendError: If the API rejects the change.
        """
        rrset: dict = {"name": f"{name.rstrip('.')}.", "type": "TXT"}
        if values:
            rrset["changetype"] = "REPLACE"
            rrset["ttl"] = self.ttl
            rrset["records"] = [{"content": f'"{value}"', "disabled": False} for value in values]
        else:
            rrset["changetype"] = "DELETE"

        try:
            response = httpx.patch(
                self._zone_url(zone),
                headers={**self._headers, "Content-Type": "application/json"},
                json={"rrsets": [rrset]},
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            raise BackendError(f"PowerDNS API request failed: {e}") from e
        self._handle_response(response, zone)

        if zone not in self._touched_zones:
            self._touched_zones.append(zone)

    def add(self, name: str, value: str) -> None:
        zone = self._find_zone(name)
        values = self._get_values(zone, name)
        if value in values:
            logger.debug("TXT value already present", extra={"record_name": name})
            return
        self._patch_rrset(zone, name, [*values, value])
        logger.info("TXT record created", extra={"record_name": name, "zone": zone})

    def remove(self, name: str, value: str) -> None:
        zone = self._find_zone(name)
        values = self._get_values(zone, name)
        if value not in values:
            logger.debug("TXT value not present", extra={"record_name": name})
            return
        self._patch_rrset(zone, name, [v for v in values if v != value])
        logger.info("TXT record deleted", extra={"record_name": name, "zone": zone})

    def commit(self) -> None:
        """Send NOTIFY for touched zones when enabled."""
        zones, self._touched_zones = self._touched_zones, []
        if not self.notify:
            return
        for zone in zones:
            try:
                response = httpx.put(f"{self._zone_url(zone)}/notify", headers=self._headers, timeout=self.timeout)
            except httpx.HTTPError as e:
                raise BackendError(f"PowerDNS API request failed: {e}") from e
            self._handle_response(response, zone)
            logger.info("NOTIFY queued", extra={"zone": zone})

    def read(self, name: str) -> list[str]:
        return self._get_values(self._find_zone(name), name)
