"""Shared test fixtures and fakes for pagewatch tests."""

import asyncio
import sys
from collections import defaultdict
from pathlib import Path
from typing import Any, Callable, Dict, List

import pytest
from unittest.mock import AsyncMock

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent.parent))


class FakeEmitter:
    """Minimal stand-in for Playwright's event emitter interface."""

    def __init__(self):
        self.handlers: Dict[str, List[Callable]] = defaultdict(list)

    def on(self, event: str, handler: Callable) -> None:
        self.handlers[event].append(handler)

    def remove_listener(self, event: str, handler: Callable) -> None:
        self.handlers[event].remove(handler)

    def listener_count(self, event: str = None) -> int:
        if event is not None:
            return len(self.handlers[event])
        return sum(len(handlers) for handlers in self.handlers.values())

    def emit(self, event: str, payload: Any = None) -> List[Any]:
        return [handler(payload) for handler in list(self.handlers[event])]

    async def emit_async(self, event: str, payload: Any = None) -> None:
        results = self.emit(event, payload)
        await asyncio.gather(*[r for r in results if asyncio.iscoroutine(r)])


class FakeFrame:
    def __init__(self, name: str = "frame"):
        self.name = name

    def __repr__(self) -> str:
        return f"FakeFrame({self.name})"


class FakeCDPSession(FakeEmitter):
    def __init__(self):
        super().__init__()
        self.send = AsyncMock()
        self.detach = AsyncMock()


class FakePage(FakeEmitter):
    def __init__(self, context: "FakeContext" = None, name: str = "page"):
        super().__init__()
        self.name = name
        self.context = context
        self.main_frame = FakeFrame(f"{name}-main")

    def navigate(self, frame: FakeFrame = None) -> None:
        self.emit("framenavigated", frame or self.main_frame)

    def close(self) -> None:
        self.emit("close", self)

    def __repr__(self) -> str:
        return f"FakePage({self.name})"


class FakeContext(FakeEmitter):
    def __init__(self):
        super().__init__()
        self.pages: List[FakePage] = []
        self.sessions: Dict[FakePage, FakeCDPSession] = {}
        self.cdp_error: Exception = None

    def new_page(self, name: str = "page") -> FakePage:
        page = FakePage(self, name)
        self.pages.append(page)
        return page

    async def new_cdp_session(self, page: FakePage) -> FakeCDPSession:
        if self.cdp_error:
            raise self.cdp_error
        session = FakeCDPSession()
        self.sessions[page] = session
        return session


class FakeRequest:
    def __init__(self, url: str, frame: FakeFrame, navigation: bool = False):
        self.url = url
        self.frame = frame
        self._navigation = navigation

    def is_navigation_request(self) -> bool:
        return self._navigation

    def __repr__(self) -> str:
        return f"FakeRequest({self.url})"


class Item:
    """Plain collected object compared by value, to exercise identity dedup."""

    def __init__(self, value: str):
        self.value = value

    def __eq__(self, other):
        return isinstance(other, Item) and other.value == self.value

    def __hash__(self):
        return hash(self.value)

    def __repr__(self) -> str:
        return f"Item({self.value})"


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Point the global config manager at an empty location for each test."""
    from pagewatch.collector import config as config_module

    monkeypatch.delenv(config_module.ENV_VAR, raising=False)
    monkeypatch.setattr(
        config_module,
        "_config_manager",
        config_module.CollectorConfigManager(tmp_path / "collector.yaml"),
    )


@pytest.fixture
def context():
    """Fake browser context without pages."""
    return FakeContext()


@pytest.fixture
def page(context):
    """Fake page opened in the fake context."""
    return context.new_page("main")


@pytest.fixture
def make_item():
    """Factory for value-compared items."""
    return Item


@pytest.fixture
def make_request():
    """Factory for fake Playwright requests."""
    return FakeRequest


@pytest.fixture
def make_frame():
    """Factory for fake frames."""
    return FakeFrame


@pytest.fixture
def issue_event():
    """Factory for ``Audits.issueAdded`` event payloads."""
    def build(code: str = "CookieIssue", **details) -> Dict[str, Any]:
        return {"issue": {"code": code, "details": details}}
    return build


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
