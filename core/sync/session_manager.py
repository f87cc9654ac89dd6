"""
Owns the origin cookie set for one account across short-lived executions.

States: UNAUTHENTICATED -> AUTHENTICATING -> AUTHENTICATED -> (EXPIRED | AUTHENTICATED)

Every successful interaction with the origin hands its current cookies to
refresh(), which overwrites the stored copy. As long as the account is synced
regularly the session keeps sliding forward and no new login is needed.
"""
from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional

from core.sync.errors import VerificationRequired
from core.sync.models import SourceSession, utcnow_iso

log = logging.getLogger("sync.session")

Login = Callable[..., Awaitable[List[Dict]]]
CodeSource = Callable[[], Awaitable[Optional[str]]]

class SessionState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    EXPIRED = "expired"


class SessionManager:
    def __init__(
        self,
        account_id,
        login: Login,
        load: Callable[[str], Optional[SourceSession]],
        save: Callable[[str, SourceSession], None],
        delete: Callable[[str], None],
        verification_wait_seconds: float = 300,
        login_lock: Optional[asyncio.Lock] = None,
    ):
        self.account_id = str(account_id)
        self._login = login
        self._load = load
        self._save = save
        self._delete = delete
        self.verification_wait_seconds = verification_wait_seconds
        # across processes the sync_locks row keeps logins apart; callers that
        # share one account between managers in a process pass a common lock
        self._login_lock = login_lock or asyncio.Lock()
        self.state = SessionState.UNAUTHENTICATED
        self._session: Optional[SourceSession] = None

    def current(self) -> Optional[SourceSession]:
        """Return the stored session, if any."""
        if self._session is None:
            self._session = self._load(self.account_id)
        if self._session is None or not self._session.cookies:
            self._session = None
            if self.state is not SessionState.EXPIRED:
                self.state = SessionState.UNAUTHENTICATED
            return None
        self.state = SessionState.AUTHENTICATED
        return self._session

    async def authenticate(
        self,
        email: str,
        password: str,
        verification_code: Optional[str] = None,
        code_source: Optional[CodeSource] = None,
    ) -> SourceSession:
        """
        Log in from scratch and persist the resulting cookies.
        Raises VerificationRequired when the origin wants a code and none
        arrives within verification_wait_seconds.
        """
        async with self._login_lock:
            self.state = SessionState.AUTHENTICATING
            try:
                try:
                    cookies = await self._login(email, password, verification_code=verification_code)
                except VerificationRequired:
                    if verification_code or code_source is None:
                        raise
                    code = await self._wait_for_code(code_source)
                    if not code:
                        raise
                    cookies = await self._login(email, password, verification_code=code)
            except Exception:
                self.state = SessionState.UNAUTHENTICATED
                raise

            session = SourceSession(cookies=list(cookies), renewed_at=utcnow_iso())
            self._save(self.account_id, session)
            self._session = session
            self.state = SessionState.AUTHENTICATED
            log.info("Login successful, cookies saved", extra={"account_id": self.account_id, "cookies": len(session.cookies)})
            return session

    async def ensure(
        self,
        email: str,
        password: str,
        verification_code: Optional[str] = None,
        code_source: Optional[CodeSource] = None,
    ) -> SourceSession:
        session = self.current()
        if session is not None:
            return session
        return await self.authenticate(email, password, verification_code, code_source)

    def refresh(self, cookies: List[Dict]) -> Optional[SourceSession]:
        """Replace the stored cookie set after a successful origin interaction."""
        if not cookies:
            log.warning("Origin returned no cookies; keeping stored session", extra={"account_id": self.account_id})
            return self._session
        session = SourceSession(cookies=list(cookies), renewed_at=utcnow_iso())
        self._save(self.account_id, session)
        self._session = session
        self.state = SessionState.AUTHENTICATED
        return session

    def invalidate(self) -> None:
        """The origin rejected the cookies: forget them."""
        self._delete(self.account_id)
        self._session = None
        self.state = SessionState.EXPIRED
        log.warning("Origin session expired; stored cookies removed", extra={"account_id": self.account_id})

    async def _wait_for_code(self, code_source: CodeSource) -> Optional[str]:
        log.info(
            "Verification required, waiting for code",
            extra={"account_id": self.account_id, "seconds": self.verification_wait_seconds},
        )
        try:
            return await asyncio.wait_for(code_source(), timeout=self.verification_wait_seconds)
        except asyncio.TimeoutError:
            log.warning("Timed out waiting for verification code", extra={"account_id": self.account_id})
            return None


__all__ = [
    "SessionState",
    "SessionManager",
]
