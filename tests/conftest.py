from datetime import date

import pytest

from growth_tracker.errors import RemoteUnavailable
from growth_tracker.models import Gender, Metric
from growth_tracker.remote import Err, Ok
from growth_tracker.storage import LocalStorageService, MemoryStore
from growth_tracker.who_reference import WHOReference

SD_KEYS = ["SD3neg", "SD2neg", "SD1neg", "SD0", "SD1", "SD2", "SD3"]


def rows(table):
    return [dict(Month=month, **dict(zip(SD_KEYS, values))) for month, values in table]


# Example height-for-age table: median 75.7 at 12 months with a 2.9 cm SD step.
EXAMPLE_BOYS_HEIGHT = [
    (0, [44.2, 46.1, 48.0, 49.9, 51.8, 53.7, 55.6]),
    (12, [67.0, 69.9, 72.8, 75.7, 78.6, 81.5, 84.4]),
    (24, [78.7, 81.7, 84.8, 87.8, 90.9, 93.9, 97.0]),
]

EXAMPLE_BOYS_WEIGHT = [
    (0, [2.1, 2.5, 2.9, 3.3, 3.9, 4.4, 5.0]),
    (12, [6.9, 7.7, 8.6, 9.6, 10.8, 12.0, 13.3]),
    (24, [8.6, 9.7, 10.8, 12.2, 13.6, 15.3, 17.1]),
]

TODAY = date(2025, 1, 1)


class FixedClock:
    def __init__(self, value="2025-01-01T00:00:00+00:00"):
        self.value = value

    def __call__(self):
        return self.value


@pytest.fixture
def example_reference():
    return WHOReference.from_rows({
        (Metric.HEIGHT, Gender.MALE): rows(EXAMPLE_BOYS_HEIGHT),
        (Metric.WEIGHT, Gender.MALE): rows(EXAMPLE_BOYS_WEIGHT),
    })


@pytest.fixture
def local(example_reference):
    return LocalStorageService(MemoryStore(), clock=FixedClock(), reference=example_reference)


class FakeRemote:
    """Remote stand-in: every call fails unless a response is registered."""

    def __init__(self):
        self.responses = {}
        self.calls = []

    def respond(self, name, value=None, status_code=None):
        if status_code is None:
            self.responses[name] = Ok(value)
        else:
            self.responses[name] = Err(RemoteUnavailable(f"HTTP {status_code}", status_code=status_code))

    def _call(self, name, *args):
        self.calls.append((name, args))
        response = self.responses.get(name)
        if callable(response):
            return response(*args)
        return response or Err(RemoteUnavailable("connection refused"))

    def get_children(self):
        return self._call("get_children")

    def get_growth_records(self, child_id):
        return self._call("get_growth_records", child_id)

    def get_growth_stats(self, child_id):
        return self._call("get_growth_stats", child_id)

    def get_growth_chart(self, child_id):
        return self._call("get_growth_chart", child_id)

    def add_growth_record(self, child_id, payload):
        return self._call("add_growth_record", child_id, payload)

    def add_child(self, payload):
        return self._call("add_child", payload)

    def validate_nik(self, nik):
        return self._call("validate_nik", nik)

    def get_parents(self, query=None, limit=20):
        return self._call("get_parents", query, limit)

    def health(self):
        return self._call("health")


@pytest.fixture
def fake_remote():
    return FakeRemote()


class FlaskResponse:
    def __init__(self, response):
        self._response = response
        self.status_code = response.status_code

    def json(self):
        body = self._response.get_json(silent=True)
        if body is None:
            raise ValueError("response is not JSON")
        return body


class FlaskSession:
    """Routes RemoteClient requests into a Flask test client."""

    base_url = "http://testserver/api"

    def __init__(self, client):
        self.client = client

    def request(self, method, url, json=None, params=None, headers=None, timeout=None):
        path = url[len("http://testserver"):]
        response = self.client.open(path, method=method, json=json, query_string=params)
        return FlaskResponse(response)
