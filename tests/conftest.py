"""Shared fixtures for the SmartThings exporter tests."""
from unittest.mock import MagicMock
import pytest

from smartthings_exporter.api import SmartThingsClient
from smartthings_exporter.oauth_token import OAuthToken

ENDPOINT = "https://graph.api.smartthings.com/api/smartapps/installations/abc123"


def make_response(payload=None, status_code=200, json_error=None):
    """Build a fake requests response."""
    response = MagicMock()
    response.status_code = status_code
    if json_error is not None:
        response.json.side_effect = json_error
    else:
        response.json.return_value = payload
    return response


def make_session(*responses):
    """Build a fake requests session returning the given responses in order."""
    session = MagicMock()
    session.headers = {}
    session.get.side_effect = list(responses)
    return session


@pytest.fixture
def sensors_payload():
    """Three sensors, four distinct attribute names, six readings."""
    return {
        "descriptions": {
            "temperature": "Temperature in degrees",
            "humidity": "Relative humidity in percent",
            "battery": "Battery level in percent",
            "illuminance": "Illuminance in lux",
        },
        "sensors": {
            "a1": {
                "name": "Multipurpose Sensor",
                "displayName": "Front Door",
                "attributes": {"temperature": 21.5, "battery": 87},
            },
            "b2": {
                "name": "Motion Sensor",
                "displayName": "Hallway",
                "attributes": {"temperature": 19.0, "illuminance": 120, "battery": 55},
            },
            "c3": {
                "name": "Humidity Sensor",
                "displayName": "Bathroom",
                "attributes": {"humidity": 64.2},
            },
        },
    }


@pytest.fixture
def token():
    return OAuthToken(access_token="secret-access", refresh_token="secret-refresh")


@pytest.fixture
def client_factory(token):
    """Create a SmartThingsClient whose session replays the given responses."""
    def factory(*responses):
        return SmartThingsClient(token, session=make_session(*responses))
    return factory
