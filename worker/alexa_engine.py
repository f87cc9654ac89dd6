"""
Playwright glue for the Alexa shopping list on amazon.com.

Everything DOM-specific lives here; the sync core only sees item names,
cookie lists and MarkResult values.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, List, Optional

from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from core.sync.errors import AuthenticationFailed, OriginPageError, SessionExpired, VerificationRequired
from core.sync.models import MarkResult

log = logging.getLogger("alexa_engine")

SHOPPING_LIST_URL = "https://www.amazon.com/alexaquantum/sp/alexaShoppingList"
SIGNIN_URL = (
    "https://www.amazon.com/ap/signin?openid.pape.max_auth_age=0"
    "&openid.return_to=https%3A%2F%2Fwww.amazon.com%2F%3Fref_%3Dnav_signin"
    "&openid.identity=http%3A%2F%2Fspecs.openid.net%2Fauth%2F2.0%2Fidentifier_select"
    "&openid.assoc_handle=usflex&openid.mode=checkid_setup"
    "&openid.claimed_id=http%3A%2F%2Fspecs.openid.net%2Fauth%2F2.0%2Fidentifier_select"
    "&openid.ns=http%3A%2F%2Fspecs.openid.net%2Fauth%2F2.0"
)
USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

PAGE_TIMEOUT_MS = 60000
LIST_RENDER_TIMEOUT_MS = 10000
SETTLE_MS = 2000
CLICK_SETTLE_MS = 500
MAX_ITEM_LENGTH = 100

LIST_READY_SELECTOR = ".item-body, .shopping-list-container, [data-item-name]"
ITEM_SELECTORS = [
    ".item-body .item-title",
    "[data-item-name]",
    ".shopping-list-item .item-name",
    ".a-list-item span[class*='item']",
]
EMAIL_SELECTORS = ["#ap_email", "#ap_email_login", "input[type='email']", "input[name='email']"]
CONTINUE_SELECTORS = ["#continue", "input#continue", "input[type='submit']", "#ap_email_login_continue_id"]
PASSWORD_SELECTORS = ["#ap_password", "input[type='password']", "input[name='password']"]
SUBMIT_SELECTORS = ["#signInSubmit", "input#signInSubmit", "input[type='submit']", "#auth-signin-button"]
OTP_SELECTORS = ["#auth-mfa-otpcode", "input[name='otpCode']"]
OTP_SUBMIT_SELECTORS = ["#auth-signin-button", "input[type='submit']"]
REMEMBER_DEVICE_SELECTOR = "#auth-mfa-remember-device"
LOGIN_ERROR_SELECTOR = ".a-alert-error, .auth-error-message"

_EXTRACT_ITEMS_JS = """
(selectors) => {
    for (const selector of selectors) {
        const elements = document.querySelectorAll(selector);
        if (elements.length > 0) {
            return Array.from(elements).map(el =>
                (el.dataset && el.dataset.itemName) || (el.textContent || '').trim()
            );
        }
    }
    return [];
}
"""

# Finds the row whose text matches (case-insensitive, exact) and ticks its checkbox.
_MARK_DONE_JS = """
({name, selectors}) => {
    const target = name.trim().toLowerCase();
    for (const selector of selectors) {
        for (const element of document.querySelectorAll(selector)) {
            const text = ((element.dataset && element.dataset.itemName) || element.textContent || '').trim();
            if (text.toLowerCase() !== target) continue;

            const row = element.closest("div.a-row, li, [role='listitem'], .shopping-list-item, .item-row, [data-item-id], .item-body")
                || element.parentElement;
            if (!row) return {status: 'failed', error: 'no row for item'};

            let checkbox = row.querySelector(".custom-control-input, input[type='checkbox']");
            if (!checkbox && row.previousElementSibling) {
                checkbox = row.previousElementSibling.querySelector(".custom-control-input, input[type='checkbox']");
            }
            if (!checkbox && row.parentElement) {
                checkbox = row.parentElement.querySelector(".custom-control-input, input[type='checkbox']");
            }
            if (!checkbox) return {status: 'failed', error: 'no checkbox for item'};
            if (checkbox.checked) return {status: 'already_done'};

            const label = (checkbox.id && document.querySelector(`label[for="${checkbox.id}"]`))
                || (checkbox.parentElement && checkbox.parentElement.querySelector('.custom-control-label'));
            (label || checkbox).click();
            if (!checkbox.checked) return {status: 'failed', error: 'checkbox did not toggle'};
            return {status: 'marked'};
        }
    }
    return {status: 'not_found'};
}
"""

_MARK_STATUS = {
    "marked": MarkResult.MARKED,
    "already_done": MarkResult.ALREADY_DONE,
    "not_found": MarkResult.NOT_FOUND,
    "failed": MarkResult.FAILED,
}


def is_signin_url(url: str) -> bool:
    # every sign-in, MFA and captcha page lives under /ap/
    return "/ap/" in (url or "")


def is_verification_url(url: str) -> bool:
    url = url or ""
    return "ap/mfa" in url or "ap/cvf" in url


def clean_item_names(raw: List[str]) -> List[str]:
    """Trim scraped text and drop blanks and obvious non-items."""
    names: List[str] = []
    for text in raw or []:
        text = (text or "").strip()
        if not text or len(text) > MAX_ITEM_LENGTH:
            continue
        names.append(text)
    return names


class AlexaListView:
    """A loaded shopping list page. One view serves a whole batch of marks."""

    def __init__(self, page, context):
        self._page = page
        self._context = context

    async def read_items(self) -> List[str]:
        try:
            await self._page.wait_for_selector(LIST_READY_SELECTOR, timeout=LIST_RENDER_TIMEOUT_MS)
        except PlaywrightTimeoutError:
            log.info("[engine] No items found on shopping list")
            return []
        raw = await self._page.evaluate(_EXTRACT_ITEMS_JS, ITEM_SELECTORS)
        names = clean_item_names(raw)
        log.info("[engine] Found %d item(s) on shopping list", len(names))
        return names

    async def mark_done(self, name: str) -> MarkResult:
        outcome = await self._page.evaluate(
            _MARK_DONE_JS,
            {"name": name, "selectors": ITEM_SELECTORS + [".item-name", "h3"]},
        )
        status = (outcome or {}).get("status", "failed")
        result = _MARK_STATUS.get(status, MarkResult.FAILED)
        if result is MarkResult.MARKED:
            await self._page.wait_for_timeout(CLICK_SETTLE_MS)
        elif result is MarkResult.FAILED:
            log.warning("[engine] Could not tick %r: %s", name, (outcome or {}).get("error"))
        return result

    async def cookies(self) -> List[Dict]:
        return await self._context.cookies()


@asynccontextmanager
async def open_shopping_list(cookies: List[Dict], headless: bool = True) -> AsyncIterator[AlexaListView]:
    """
    Open the shopping list with the stored cookies.
    Raises SessionExpired when Amazon bounces us to its sign-in page.
    """
    async with async_playwright() as p:
        browser = await p.chromium.launch(headless=headless)
        try:
            context = await browser.new_context(
                user_agent=USER_AGENT,
                extra_http_headers={"Accept-Language": "en-US,en;q=0.9"},
            )
            if cookies:
                await context.add_cookies(cookies)
            page = await context.new_page()

            log.info("[engine] Loading shopping list...")
            await page.goto(SHOPPING_LIST_URL, wait_until="networkidle", timeout=PAGE_TIMEOUT_MS)
            await page.wait_for_timeout(SETTLE_MS)

            if is_signin_url(page.url):
                raise SessionExpired("Amazon session expired - please reconnect your Amazon account")

            yield AlexaListView(page, context)
        finally:
            await browser.close()


async def load_list(cookies: List[Dict], headless: bool = True) -> List[str]:
    async with open_shopping_list(cookies, headless=headless) as view:
        return await view.read_items()


async def mark_done(cookies: List[Dict], name: str, headless: bool = True) -> MarkResult:
    async with open_shopping_list(cookies, headless=headless) as view:
        return await view.mark_done(name)


async def _fill_first(page, selectors: List[str], value: str, timeout_ms: int) -> bool:
    for selector in selectors:
        try:
            await page.wait_for_selector(selector, timeout=timeout_ms)
            await page.type(selector, value, delay=50)
            return True
        except PlaywrightTimeoutError:
            continue
    return False


async def _click_first(page, selectors: List[str]) -> bool:
    for selector in selectors:
        locator = page.locator(selector)
        if await locator.count() == 0:
            continue
        try:
            await locator.first.click(timeout=3000)
            return True
        except PlaywrightTimeoutError:
            continue
    return False


async def _settle(page, timeout_ms: int) -> None:
    try:
        await page.wait_for_load_state("networkidle", timeout=timeout_ms)
    except PlaywrightTimeoutError:
        pass


async def login(
    email: str,
    password: str,
    verification_code: Optional[str] = None,
    headless: bool = True,
) -> List[Dict]:
    """
    Sign in to Amazon and return the cookie set of the shopping list page.
    Raises VerificationRequired when a one-time code is needed but not given.
    """
    if not email or not password:
        raise AuthenticationFailed("Amazon credentials are not configured")

    async with async_playwright() as p:
        browser = await p.chromium.launch(headless=headless)
        try:
            context = await browser.new_context(user_agent=USER_AGENT)
            page = await context.new_page()

            log.info("[engine] Navigating to Amazon sign-in")
            await page.goto(SIGNIN_URL, wait_until="networkidle", timeout=PAGE_TIMEOUT_MS)
            await page.wait_for_timeout(SETTLE_MS)

            if not await _fill_first(page, EMAIL_SELECTORS, email, 3000):
                raise OriginPageError("Could not find email input field")
            if await _click_first(page, CONTINUE_SELECTORS):
                await _settle(page, 10000)

            if not await _fill_first(page, PASSWORD_SELECTORS, password, 5000):
                raise OriginPageError("Could not find password input field")
            if not await _click_first(page, SUBMIT_SELECTORS):
                raise OriginPageError("Could not find submit button")
            await _settle(page, 30000)

            url = page.url
            if "/ap/signin" in url or "auth-error" in url:
                error_el = await page.query_selector(LOGIN_ERROR_SELECTOR)
                if error_el:
                    text = (await error_el.inner_text()).strip()
                    raise AuthenticationFailed(f"Amazon login failed: {text}")
                raise AuthenticationFailed("Amazon login failed - check credentials")

            if is_verification_url(url):
                log.info("[engine] Verification step detected")
                remember = await page.query_selector(REMEMBER_DEVICE_SELECTOR)
                if remember and not await remember.is_checked():
                    await remember.check()

                if not verification_code:
                    raise VerificationRequired("Two-factor authentication code required")

                if not await _fill_first(page, OTP_SELECTORS, verification_code, 3000):
                    raise OriginPageError("Could not find verification code field")
                if not await _click_first(page, OTP_SUBMIT_SELECTORS):
                    raise OriginPageError("Could not find verification submit button")
                await _settle(page, 30000)

                if is_verification_url(page.url):
                    raise AuthenticationFailed("Verification code incorrect or expired")

            await page.goto(SHOPPING_LIST_URL, wait_until="networkidle", timeout=PAGE_TIMEOUT_MS)
            if is_signin_url(page.url):
                raise AuthenticationFailed("Amazon did not accept the login")

            cookies = await context.cookies()
            log.info("[engine] Login successful, extracted %d cookies", len(cookies))
            return cookies
        finally:
            await browser.close()


__all__ = [
    "SHOPPING_LIST_URL",
    "AlexaListView",
    "clean_item_names",
    "is_signin_url",
    "is_verification_url",
    "open_shopping_list",
    "load_list",
    "mark_done",
    "login",
]
