from contextlib import asynccontextmanager
from types import SimpleNamespace

import pytest

from core.sync.errors import AuthenticationFailed, OriginPageError
from core.sync.models import MarkResult
from tests.fakes import run
from worker import alexa_engine
from worker.alexa_engine import AlexaListView, clean_item_names, is_signin_url, is_verification_url


class FakePage:
    def __init__(self, evaluate_result=None, ready=True):
        self.evaluate_result = evaluate_result
        self.ready = ready
        self.evaluated = []
        self.waits = []

    async def wait_for_selector(self, selector, timeout=None):
        if not self.ready:
            raise alexa_engine.PlaywrightTimeoutError("not rendered")

    async def evaluate(self, script, arg=None):
        self.evaluated.append(arg)
        return self.evaluate_result

    async def wait_for_timeout(self, ms):
        self.waits.append(ms)


class FakeContext:
    async def cookies(self):
        return [{"name": "session-id", "value": "x"}]


def test_signin_urls_are_detected():
    assert is_signin_url("https://www.amazon.com/ap/signin?openid=1")
    assert is_signin_url("https://www.amazon.com/ap/mfa?arb=1")
    assert not is_signin_url("https://www.amazon.com/alexaquantum/sp/alexaShoppingList")
    assert not is_signin_url(None)


def test_verification_urls_are_detected():
    assert is_verification_url("https://www.amazon.com/ap/mfa?arb=1")
    assert is_verification_url("https://www.amazon.com/ap/cvf/request")
    assert not is_verification_url("https://www.amazon.com/ap/signin")


def test_clean_item_names_trims_and_drops_noise():
    raw = ["  Milk ", "", "   ", None, "x" * 101, "Eggs"]
    assert clean_item_names(raw) == ["Milk", "Eggs"]


def test_read_items_returns_cleaned_names():
    page = FakePage(evaluate_result=[" Milk", "Eggs ", ""])
    view = AlexaListView(page, FakeContext())

    assert run(view.read_items()) == ["Milk", "Eggs"]


def test_read_items_on_empty_list_returns_nothing():
    view = AlexaListView(FakePage(ready=False), FakeContext())

    assert run(view.read_items()) == []


@pytest.mark.parametrize(
    "status,expected",
    [
        ("marked", MarkResult.MARKED),
        ("already_done", MarkResult.ALREADY_DONE),
        ("not_found", MarkResult.NOT_FOUND),
        ("failed", MarkResult.FAILED),
        ("weird", MarkResult.FAILED),
    ],
)
def test_mark_done_maps_page_status(status, expected):
    page = FakePage(evaluate_result={"status": status})
    view = AlexaListView(page, FakeContext())

    assert run(view.mark_done("Milk")) is expected
    assert page.evaluated[0]["name"] == "Milk"


def test_mark_done_waits_only_after_a_click():
    page = FakePage(evaluate_result={"status": "already_done"})
    run(AlexaListView(page, FakeContext()).mark_done("Milk"))
    assert page.waits == []

    page = FakePage(evaluate_result={"status": "marked"})
    run(AlexaListView(page, FakeContext()).mark_done("Milk"))
    assert page.waits == [alexa_engine.CLICK_SETTLE_MS]


def test_login_without_credentials_fails_before_launching_browser():
    with pytest.raises(AuthenticationFailed):
        run(alexa_engine.login("", "pw"))


class FakeSigninPage:
    url = alexa_engine.SIGNIN_URL

    async def goto(self, url, wait_until=None, timeout=None):
        pass

    async def wait_for_timeout(self, ms):
        pass

    async def wait_for_selector(self, selector, timeout=None):
        raise alexa_engine.PlaywrightTimeoutError("no such field")


class FakeBrowser:
    def __init__(self, page):
        self.page = page
        self.closed = False

    async def new_context(self, **kwargs):
        return SimpleNamespace(new_page=self._new_page)

    async def _new_page(self):
        return self.page

    async def close(self):
        self.closed = True


def test_login_page_without_email_field_is_not_an_auth_failure(monkeypatch):
    browser = FakeBrowser(FakeSigninPage())

    async def _launch(headless=True):
        return browser

    @asynccontextmanager
    async def _playwright():
        yield SimpleNamespace(chromium=SimpleNamespace(launch=_launch))

    monkeypatch.setattr(alexa_engine, "async_playwright", _playwright)

    with pytest.raises(OriginPageError) as excinfo:
        run(alexa_engine.login("me@example.com", "pw"))

    assert not isinstance(excinfo.value, AuthenticationFailed)
    assert "email input" in str(excinfo.value)
    assert browser.closed


@pytest.fixture
def opened(monkeypatch):
    state = {"cookies": None, "headless": None}
    page = FakePage(evaluate_result=[" Milk", "Eggs"])

    @asynccontextmanager
    async def _open(cookies, headless=True):
        state["cookies"] = cookies
        state["headless"] = headless
        yield AlexaListView(page, FakeContext())

    monkeypatch.setattr(alexa_engine, "open_shopping_list", _open)
    state["page"] = page
    return state


def test_load_list_reads_items_with_given_cookies(opened):
    cookies = [{"name": "session-id", "value": "abc"}]

    assert run(alexa_engine.load_list(cookies, headless=False)) == ["Milk", "Eggs"]
    assert opened["cookies"] == cookies
    assert opened["headless"] is False


def test_mark_done_ticks_one_item(opened):
    opened["page"].evaluate_result = {"status": "marked"}

    assert run(alexa_engine.mark_done([], "Milk")) is MarkResult.MARKED
    assert opened["page"].evaluated[-1]["name"] == "Milk"
