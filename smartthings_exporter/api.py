"""
SmartThings API client.

Resolves the per-installation endpoint URI once and fetches the flattened
sensor list from the exporter SmartApp on every scrape.
"""
from typing import Any, Dict, List, Optional
import logging
import requests

from smartthings_exporter.errors import SmartThingsAPIError, SmartThingsAuthError
from smartthings_exporter.models import Attribute, Sensor
from smartthings_exporter.oauth_token import OAuthToken

logger = logging.getLogger(__name__)

ENDPOINTS_URL = "https://graph.api.smartthings.com/api/smartapps/endpoints"
SENSORS_PATH = "/sensors"


class SmartThingsClient:
    """
    HTTP client authenticated with an OAuth2 token.
    No retries: every failure surfaces to the caller.
    """

    def __init__(
        self,
        token: OAuthToken,
        session: Optional[requests.Session] = None,
        timeout: Optional[float] = None
    ):
        """
        Initialize SmartThings API client.

        Args:
            token: OAuth token used for every request
            session: Optional pre-built requests session
            timeout: Request timeout in seconds (None waits indefinitely)
        """
        self.token = token
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "Authorization": token.authorization_header(),
            "Accept": "application/json",
        })

    def _get_json(self, url: str) -> Any:
        """
        Issue a GET request and decode the JSON body.

        Raises:
            SmartThingsAuthError: If the token is rejected
            SmartThingsAPIError: On transport errors, non-2xx status or malformed JSON
        """
        logger.debug(f"GET {url}")
        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            raise SmartThingsAPIError(f"Request to {url} failed: {e}")

        if response.status_code in (401, 403):
            raise SmartThingsAuthError(
                f"SmartThings rejected the OAuth token ({response.status_code}) for {url}"
            )
        try:
            response.raise_for_status()
        except requests.HTTPError as e:
            raise SmartThingsAPIError(f"Request to {url} failed: {e}")

        try:
            return response.json()
        except ValueError as e:
            raise SmartThingsAPIError(f"Malformed JSON from {url}: {e}")

    def get_endpoints_uri(self) -> str:
        """Discover the base URI of the installed SmartApp."""
        endpoints = self._get_json(ENDPOINTS_URL)
        if not isinstance(endpoints, list) or not endpoints:
            raise SmartThingsAPIError("No SmartApp endpoints returned; is the SmartApp installed?")

        first = endpoints[0]
        uri = first.get("uri") if isinstance(first, dict) else None
        if not uri:
            raise SmartThingsAPIError(f"SmartApp endpoint entry has no uri: {first!r}")

        logger.info(f"Resolved SmartThings endpoint URI: {uri}")
        return uri

    def get_sensors(self, endpoint: str) -> List[Sensor]:
        """Fetch and flatten the sensor list from the SmartApp endpoint."""
        payload = self._get_json(endpoint.rstrip("/") + SENSORS_PATH)
        sensors = parse_sensors(payload)
        logger.debug(f"Fetched {len(sensors)} sensors from {endpoint}")
        return sensors


def parse_sensors(payload: Dict[str, Any]) -> List[Sensor]:
    """
    Flatten a sensors document into Sensor records.

    The document has the shape::

        {"descriptions": {attribute: description},
         "sensors": {id: {"name", "displayName", "attributes": {attribute: value}}}}

    One malformed record fails the whole decode.
    """
    if not isinstance(payload, dict):
        raise SmartThingsAPIError(f"Expected a JSON object, got {type(payload).__name__}")

    descriptions = _object_or_empty(payload.get("descriptions"))
    sensors_info = _object_or_empty(payload.get("sensors"))
    if not isinstance(descriptions, dict) or not isinstance(sensors_info, dict):
        raise SmartThingsAPIError("'descriptions' and 'sensors' must be JSON objects")

    sensors = []
    for sensor_id, info in sensors_info.items():
        if not isinstance(info, dict):
            raise SmartThingsAPIError(f"Sensor {sensor_id} is not a JSON object")

        raw_attributes = _object_or_empty(info.get("attributes"))
        if not isinstance(raw_attributes, dict):
            raise SmartThingsAPIError(f"Attributes of sensor {sensor_id} must be a JSON object")

        attributes = []
        for name, value in raw_attributes.items():
            attributes.append(Attribute(
                name=name,
                description=str(descriptions.get(name) or ""),
                value=_reading(sensor_id, name, value),
            ))

        sensors.append(Sensor(
            id=str(sensor_id),
            name=str(info.get("name") or ""),
            display_name=str(info.get("displayName") or ""),
            attributes=attributes,
        ))

    return sensors


def _object_or_empty(value: Any) -> Any:
    # JSON null decodes to an empty mapping
    return {} if value is None else value


def _reading(sensor_id: str, name: str, value: Any) -> float:
    """Convert one attribute value to a float; a null reading counts as 0."""
    if value is None:
        return 0.0
    # bool is an int subclass but not a reading
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise SmartThingsAPIError(f"Attribute {name} of sensor {sensor_id} is not numeric: {value!r}")
    try:
        return float(value)
    except OverflowError:
        raise SmartThingsAPIError(f"Attribute {name} of sensor {sensor_id} is out of float range")
