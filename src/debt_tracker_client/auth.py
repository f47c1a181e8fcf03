"""Token lifecycle manager: the single authority over the access/refresh token pair.

State machine:
    UNAUTHENTICATED -> AUTHENTICATED -> REFRESHING -> {AUTHENTICATED | UNAUTHENTICATED}

At most one refresh is in flight at any time. Every requester (the proactive
timer, any number of reactive callers from the executor, a manual refresh)
attaches to the same `Future` and observes its single outcome. A session
generation counter is bumped whenever a session starts or ends, so a refresh
that completes after logout can never bring tokens back.

Usage example:
    from debt_tracker_client.auth import TokenLifecycleManager
    from debt_tracker_client.infrastructure.credentials import InMemoryCredentialStore

    auth = TokenLifecycleManager(executor=executor, credential_store=InMemoryCredentialStore())
    executor.bind_token_provider(auth)
    auth.login("user@example.com", "secret")
    ...
    auth.logout()
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import Future
from enum import StrEnum
from typing import override

from .endpoints import AuthEndpoints
from .exceptions import ApiError, AuthError, CredentialStoreError, NotAuthenticatedError
from .executor import RequestExecutor
from .failures import AuthFailureKind, classify_auth_failure
from .infrastructure.credentials import AUTH_TOKEN_KEY, REFRESH_TOKEN_KEY
from .infrastructure.scheduling import PeriodicTask
from .infrastructure.validation import parse_session_valid, parse_token_payload
from .observability import LoggerEventRecorder, get_logger
from .protocols import CredentialStore, EventRecorder, TokenProvider
from .types import AuthState, RequestDescriptor, TokenPair

logger = get_logger("debt_tracker_client.auth")

type AuthStateListener = Callable[[AuthState], None]


class RefreshOutcome(StrEnum):
    """Result shared by every requester attached to one refresh."""

    REFRESHED = "refreshed"
    REJECTED = "rejected"  # terminal failure; the session has ended
    UNAVAILABLE = "unavailable"  # retryable failure after the executor's retries
    SUPERSEDED = "superseded"  # the session ended while the refresh was in flight


class TokenLifecycleManager(TokenProvider):
    """Owns the token pair, the proactive refresh timer and the auth-state stream."""

    def __init__(
        self,
        *,
        executor: RequestExecutor,
        credential_store: CredentialStore,
        refresh_interval_seconds: float = 50 * 60,
        refresh_wait_timeout_seconds: float = 120.0,
        recorder: EventRecorder | None = None,
    ) -> None:
        self._executor = executor
        self._store = credential_store
        self._recorder = recorder or LoggerEventRecorder()
        self._refresh_wait_timeout = refresh_wait_timeout_seconds
        self._lock = threading.Lock()
        self._tokens: TokenPair | None = None
        self._state = AuthState.UNAUTHENTICATED
        self._generation = 0
        self._inflight: Future[RefreshOutcome] | None = None
        self._listeners: list[AuthStateListener] = []
        self._timer = PeriodicTask(
            refresh_interval_seconds,
            self._proactive_refresh,
            name="token-refresh",
        )

    # =========================================================================
    # Read side
    # =========================================================================

    @property
    def state(self) -> AuthState:
        with self._lock:
            return self._state

    @property
    def token_pair(self) -> TokenPair | None:
        with self._lock:
            return self._tokens

    @property
    def is_authenticated(self) -> bool:
        return self.token_pair is not None

    @property
    def refresh_timer_running(self) -> bool:
        return self._timer.is_running

    @override
    def current_access_token(self) -> str | None:
        with self._lock:
            return self._tokens.access_token if self._tokens is not None else None

    def subscribe(self, listener: AuthStateListener) -> Callable[[], None]:
        """Register an auth-state listener and return its unsubscribe callable."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    # =========================================================================
    # Session start
    # =========================================================================

    def restore(self) -> AuthState:
        """Load the durable token mirror at start-up."""
        try:
            access = self._store.get(AUTH_TOKEN_KEY)
            refresh = self._store.get(REFRESH_TOKEN_KEY)
        except CredentialStoreError:
            logger.exception("Failed to load stored credentials")
            return self.state
        if not access:
            logger.debug("No stored session to restore")
            return self.state
        self._start_session(TokenPair(access_token=access, refresh_token=refresh), persist=False)
        logger.info("Restored stored session")
        return self.state

    def login(self, email: str, password: str) -> TokenPair:
        """Exchange credentials for a token pair and start a session.

        Raises:
            AuthError: With the authentication-specific kind of the failure.
        """
        logger.info("Attempting login for: %s", email)
        descriptor = RequestDescriptor(
            method="POST",
            path=AuthEndpoints.LOGIN,
            body={"email": email, "password": password},
            use_auth=False,
        )
        try:
            envelope = self._executor.execute(descriptor)
        except ApiError as exc:
            kind = classify_auth_failure(exc.failure)
            logger.warning("Login failed for %s: %s", email, kind.value)
            raise AuthError(kind, exc.failure.message, failure=exc.failure) from exc

        parsed = parse_token_payload(envelope.body)
        if parsed is None:
            message = envelope.message or "Login response did not include an access token"
            raise AuthError(AuthFailureKind.UNKNOWN, message)
        access, refresh = parsed
        pair = self.establish_session(access, refresh)
        logger.info("Login successful for: %s", email)
        self._recorder.record(logging.INFO, "auth.login", {"email": email})
        return pair

    def establish_session(self, access_token: str, refresh_token: str | None = None) -> TokenPair:
        """Adopt an externally obtained token pair as the current session."""
        pair = TokenPair(access_token=access_token, refresh_token=refresh_token)
        self._start_session(pair, persist=True)
        return pair

    def _start_session(self, pair: TokenPair, *, persist: bool) -> None:
        with self._lock:
            self._generation += 1
            self._inflight = None
            if persist:
                self._persist(pair)
            self._tokens = pair
            changed = self._set_state_locked(AuthState.AUTHENTICATED)
        self._timer.restart()
        if changed:
            self._notify(AuthState.AUTHENTICATED)

    def validate_session(self) -> AuthState:
        """Ask the backend whether the held session is still valid.

        An invalid session is refreshed when possible and ended otherwise.
        Connectivity-type failures keep the session.
        """
        if self.token_pair is None:
            return self.state
        descriptor = RequestDescriptor(method="GET", path=AuthEndpoints.CHECK, timeout_seconds=10)
        try:
            envelope = self._executor.execute(descriptor)
        except ApiError as exc:
            if exc.failure.is_retryable:
                logger.warning("Session validation unavailable: %s", exc.failure)
                return self.state
            logger.error("Session validation error: %s", exc.failure)
            valid = False
        else:
            valid = parse_session_valid(envelope.body)

        if valid:
            logger.debug("Session validated successfully")
            return self.state
        logger.warning("Session validation failed")
        if not self.refresh():
            self.logout()
        return self.state

    # =========================================================================
    # Refresh
    # =========================================================================

    def refresh(self) -> bool:
        """Refresh proactively; a retryable failure keeps the current session.

        Returns:
            True when a new token pair is in place.
        """
        with self._lock:
            tokens = self._tokens
            if tokens is None:
                return False
            if not tokens.refresh_token and self._inflight is None:
                logger.debug("No refresh token held; skipping refresh")
                return False
            future, generation, leader = self._join_refresh_locked()
        outcome = self._await_refresh(future, generation, leader)
        if outcome is RefreshOutcome.UNAVAILABLE:
            logger.warning("Token refresh unavailable; keeping current session")
        return outcome is RefreshOutcome.REFRESHED

    @override
    def refresh_after_rejection(self, rejected_token: str | None) -> str | None:
        """Obtain a usable token after the backend rejected `rejected_token`.

        Returns the held token without a network call when it already differs
        from the rejected one. Any outcome other than a successful refresh ends
        the session.
        """
        with self._lock:
            tokens = self._tokens
            if tokens is None:
                return None
            if rejected_token is not None and tokens.access_token != rejected_token:
                return tokens.access_token
            if not tokens.refresh_token and self._inflight is None:
                generation = self._generation
                future, leader = None, False
            else:
                future, generation, leader = self._join_refresh_locked()

        if future is None:
            self._end_session(generation, reason="no refresh token")
            return None
        outcome = self._await_refresh(future, generation, leader)
        if outcome is RefreshOutcome.REFRESHED:
            return self.current_access_token()
        if outcome is RefreshOutcome.UNAVAILABLE:
            self._end_session(generation, reason="refresh unavailable")
        return None

    def _join_refresh_locked(self) -> tuple[Future[RefreshOutcome], int, bool]:
        """Attach to the in-flight refresh, creating it if needed. Caller holds the lock."""
        if self._inflight is not None:
            return self._inflight, self._generation, False
        future: Future[RefreshOutcome] = Future()
        self._inflight = future
        self._set_state_locked(AuthState.REFRESHING)
        return future, self._generation, True

    def _await_refresh(
        self,
        future: Future[RefreshOutcome],
        generation: int,
        leader: bool,
    ) -> RefreshOutcome:
        if leader:
            self._notify(AuthState.REFRESHING)
            self._run_refresh(future, generation)
        try:
            return future.result(timeout=self._refresh_wait_timeout)
        except TimeoutError:
            logger.warning("Timed out waiting for token refresh")
            return RefreshOutcome.UNAVAILABLE

    def _run_refresh(self, future: Future[RefreshOutcome], generation: int) -> None:
        outcome = RefreshOutcome.UNAVAILABLE
        try:
            outcome = self._exchange_refresh_token(generation)
        finally:
            with self._lock:
                if self._inflight is future:
                    self._inflight = None
            future.set_result(outcome)
        if outcome is RefreshOutcome.REFRESHED:
            self._restart_timer(generation)

    def _exchange_refresh_token(self, generation: int) -> RefreshOutcome:
        with self._lock:
            tokens = self._tokens if generation == self._generation else None
        if tokens is None:
            return RefreshOutcome.SUPERSEDED
        if not tokens.refresh_token:
            return self._reject(generation, "no refresh token")

        logger.debug("Refreshing auth token")
        descriptor = RequestDescriptor(
            method="POST",
            path=AuthEndpoints.REFRESH,
            body={"refresh_token": tokens.refresh_token},
            use_auth=False,
        )
        try:
            envelope = self._executor.execute(descriptor)
        except ApiError as exc:
            if exc.failure.is_retryable:
                return self._mark_unavailable(generation, str(exc.failure))
            return self._reject(generation, str(exc.failure))

        parsed = parse_token_payload(envelope.body)
        if parsed is None:
            return self._reject(generation, "malformed refresh response")
        access, refresh = parsed
        pair = TokenPair(access_token=access, refresh_token=refresh or tokens.refresh_token)
        with self._lock:
            if generation != self._generation:
                logger.info("Discarding refresh result for an ended session")
                return RefreshOutcome.SUPERSEDED
            self._persist(pair)
            self._tokens = pair
            changed = self._set_state_locked(AuthState.AUTHENTICATED)
        if changed:
            self._notify(AuthState.AUTHENTICATED)
        logger.debug("Token refreshed successfully")
        self._recorder.record(logging.INFO, "auth.token.refreshed", {})
        return RefreshOutcome.REFRESHED

    def _restart_timer(self, generation: int) -> None:
        # Callers publish the refresh result first.
        with self._lock:
            if generation == self._generation:
                self._timer.restart()

    def _mark_unavailable(self, generation: int, reason: str) -> RefreshOutcome:
        with self._lock:
            if generation != self._generation:
                return RefreshOutcome.SUPERSEDED
            changed = self._set_state_locked(AuthState.AUTHENTICATED)
        if changed:
            self._notify(AuthState.AUTHENTICATED)
        self._recorder.record(
            logging.WARNING, "auth.token.refresh_unavailable", {"reason": reason}
        )
        return RefreshOutcome.UNAVAILABLE

    def _reject(self, generation: int, reason: str) -> RefreshOutcome:
        if not self._end_session(generation, reason=f"refresh rejected: {reason}"):
            return RefreshOutcome.SUPERSEDED
        return RefreshOutcome.REJECTED

    def _proactive_refresh(self) -> None:
        if self.refresh():
            logger.info("Proactive token refresh succeeded")

    # =========================================================================
    # Session end
    # =========================================================================

    def logout(self) -> None:
        """End the session locally, then tell the backend on a best-effort basis."""
        with self._lock:
            tokens = self._tokens
        self._end_session(None, reason="logout")
        if tokens is None:
            return
        descriptor = RequestDescriptor(
            method="POST",
            path=AuthEndpoints.LOGOUT,
            body={},
            use_auth=False,
            headers={"Authorization": f"Bearer {tokens.access_token}"},
        )
        try:
            self._executor.execute(descriptor)
        except ApiError as exc:
            logger.warning("Logout API call failed: %s", exc.failure)

    def _end_session(self, generation: int | None, *, reason: str) -> bool:
        """Clear tokens, cancel the timer and notify; False if the session already changed."""
        with self._lock:
            if generation is not None and generation != self._generation:
                return False
            had_tokens = self._tokens is not None
            self._generation += 1
            self._tokens = None
            self._inflight = None
            self._clear_store()
            changed = self._set_state_locked(AuthState.UNAUTHENTICATED)
        self._timer.cancel(timeout=0)
        if changed:
            self._notify(AuthState.UNAUTHENTICATED)
        if had_tokens:
            logger.info("Session ended (%s)", reason)
            self._recorder.record(logging.INFO, "auth.session.ended", {"reason": reason})
        return True

    def ensure_authenticated(self) -> TokenPair:
        """Return the held token pair.

        Raises:
            NotAuthenticatedError: If no session is held.
        """
        tokens = self.token_pair
        if tokens is None:
            raise NotAuthenticatedError()
        return tokens

    def close(self) -> None:
        self._timer.cancel()

    # =========================================================================
    # Helpers (the caller holds the lock where noted)
    # =========================================================================

    def _set_state_locked(self, state: AuthState) -> bool:
        if self._state is state:
            return False
        self._state = state
        return True

    def _persist(self, pair: TokenPair) -> None:
        try:
            self._store.set(AUTH_TOKEN_KEY, pair.access_token)
            if pair.refresh_token:
                self._store.set(REFRESH_TOKEN_KEY, pair.refresh_token)
            else:
                self._store.delete(REFRESH_TOKEN_KEY)
        except (CredentialStoreError, OSError):
            logger.exception("Failed to persist tokens; keeping them in memory only")

    def _clear_store(self) -> None:
        try:
            self._store.delete(AUTH_TOKEN_KEY)
            self._store.delete(REFRESH_TOKEN_KEY)
        except (CredentialStoreError, OSError):
            logger.exception("Failed to clear stored tokens")

    def _notify(self, state: AuthState) -> None:
        with self._lock:
            listeners = list(self._listeners)
        logger.debug("Auth state updated: %s", state)
        for listener in listeners:
            try:
                listener(state)
            except Exception:
                logger.exception("Auth state listener failed")
