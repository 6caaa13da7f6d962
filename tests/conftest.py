"""
Pytest configuration and fixtures.
"""

import pytest
import os
import sys
import tempfile

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from transports.base_transport import BaseTransport, TransportError


class FakeTransport(BaseTransport):
    """In-memory transport; tests drive it by calling ``emit`` directly."""

    def __init__(self, product_info=None):
        super().__init__()
        self.product_info = product_info
        self.fetch_error = None
        self.log_on_error = None
        self.log_on_calls = []
        self.log_off_calls = 0
        self.fetch_calls = []
        self.fetch_timeouts = []

    def log_on(self, details):
        self.log_on_calls.append(details)
        if self.log_on_error is not None:
            raise self.log_on_error

    def log_off(self):
        self.log_off_calls += 1

    def get_product_info(self, app_id, timeout=None):
        self.fetch_calls.append(app_id)
        self.fetch_timeouts.append(timeout)
        if self.fetch_error is not None:
            raise self.fetch_error
        if self.product_info is None:
            raise TransportError("no product info")
        return self.product_info


class ManualTimer:
    """Stand-in for threading.Timer that only fires when told to."""

    def __init__(self, interval, function, args=None, kwargs=None):
        self.interval = interval
        self.function = function
        self.args = args or ()
        self.kwargs = kwargs or {}
        self.daemon = False
        self.started = False
        self.cancelled = False
        self.fired = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        self.fired = True
        if not self.cancelled:
            self.function(*self.args, **self.kwargs)


class ManualTimerFactory:
    """Records every timer created so tests can fire them."""

    def __init__(self):
        self.timers = []

    def __call__(self, interval, function, args=None, kwargs=None):
        timer = ManualTimer(interval, function, args, kwargs)
        self.timers.append(timer)
        return timer

    def pending(self, event=None):
        return [
            t for t in self.timers
            if t.started and not t.cancelled and not t.fired
            and (event is None or t.args[0] == event)
        ]


@pytest.fixture
def temp_state_file():
    """Path to a state file that does not exist yet."""
    directory = tempfile.mkdtemp()
    path = os.path.join(directory, 'state.json')
    yield path
    for name in os.listdir(directory):
        os.unlink(os.path.join(directory, name))
    os.rmdir(directory)


@pytest.fixture
def product_info():
    """PICS product info for Dota 2 at changenumber 101."""
    return {
        'changenumber': 101,
        'missingToken': False,
        'appinfo': {
            'appid': '570',
            'common': {'name': 'Dota 2', 'type': 'Game'},
            'depots': {
                '373301': {'name': 'Dota 2 Win64', 'maxsize': '35000000000'},
                '373302': {'name': 'Dota 2 Linux'},
                'branches': {
                    'public': {'buildid': '16892451', 'timeupdated': '1736937000'},
                    'beta': {'buildid': '16892500'},
                },
                'baselanguages': 'english',
                'maxsize': '1',
                'workshopdepot': '570',
            },
        },
    }


@pytest.fixture
def fake_transport(product_info):
    return FakeTransport(product_info)


@pytest.fixture
def timer_factory():
    return ManualTimerFactory()
