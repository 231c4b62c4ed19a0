"""Tests for the credential store: refresh coordination and the login flow."""

import asyncio
import datetime
import gc
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from codex_oauth import (
    AccountMismatchError,
    AuthErrorKind,
    CallbackResult,
    CredentialStore,
    NotAuthenticatedError,
    PortInUseError,
    RefreshFailedError,
    TokenFailure,
    TokenSuccess,
)
from codex_oauth.models import utcnow
from fakes import FakeExchanger, ListenerFactory, MemoryStorage, make_credential, make_jwt, token_success


def _store(storage, exchanger, listener_factory=None, **kwargs) -> CredentialStore:
    return CredentialStore(
        load=storage.load,
        save=storage.save,
        clear=storage.clear,
        exchanger=exchanger,
        listener_factory=listener_factory or ListenerFactory(),
        **kwargs,
    )


class TestAuthState:
    def test_loads_lazily_once(self, exchanger):
        storage = MemoryStorage(make_credential())
        store = _store(storage, exchanger)
        assert storage.load_calls == 0

        state = store.get_auth_state()
        store.get_auth_state()

        assert storage.load_calls == 1
        assert state.is_authenticated
        assert state.account_id == "acct_abc123"
        assert state.error is None

    def test_not_authenticated(self, storage, exchanger):
        state = _store(storage, exchanger).get_auth_state()
        assert not state.is_authenticated
        assert state.credentials is None
        assert not state.requires_reauthentication


class TestGetValidAccessToken:
    @pytest.mark.asyncio
    async def test_fresh_token_returned_without_refresh(self, exchanger):
        credential = make_credential(expires_in=3600)
        store = _store(MemoryStorage(credential), exchanger)

        assert await store.get_valid_access_token() == credential.access_token
        assert exchanger.refresh_calls == []

    @pytest.mark.asyncio
    async def test_not_authenticated(self, storage, exchanger):
        with pytest.raises(NotAuthenticatedError):
            await _store(storage, exchanger).get_valid_access_token()

    @pytest.mark.asyncio
    async def test_token_within_margin_is_refreshed(self):
        exchanger = FakeExchanger(refresh_result=token_success(sub="new"))
        storage = MemoryStorage(make_credential(expires_in=30))
        store = _store(storage, exchanger, refresh_margin=60)

        token = await store.get_valid_access_token()

        assert exchanger.refresh_calls == ["refresh-old"]
        assert token == exchanger.refresh_result.access
        assert store.get_auth_state().credentials.refresh_token == "refresh-new"
        assert store.get_auth_state().credentials.last_refresh is not None

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_refresh(self):
        exchanger = FakeExchanger(refresh_result=token_success(sub="new"))
        exchanger.gate = asyncio.Event()
        store = _store(MemoryStorage(make_credential(expires_in=-10)), exchanger)

        first = asyncio.ensure_future(store.get_valid_access_token())
        second = asyncio.ensure_future(store.get_valid_access_token())
        await asyncio.sleep(0.01)
        assert store.refresh_in_progress

        exchanger.gate.set()
        tokens = await asyncio.gather(first, second)

        assert len(exchanger.refresh_calls) == 1
        assert tokens[0] == tokens[1] == exchanger.refresh_result.access
        assert not store.refresh_in_progress

    @pytest.mark.asyncio
    async def test_saved_before_callers_resume(self):
        exchanger = FakeExchanger(refresh_result=token_success(sub="new"))
        storage = MemoryStorage(make_credential(expires_in=-10))
        store = _store(storage, exchanger)

        token = await store.get_valid_access_token()

        assert len(storage.saved) == 1
        assert storage.saved[0].access_token == token

    @pytest.mark.asyncio
    async def test_failure_reaches_every_waiter(self):
        exchanger = FakeExchanger(refresh_result=TokenFailure())
        exchanger.gate = asyncio.Event()
        stale = make_credential(expires_in=-10)
        store = _store(MemoryStorage(stale), exchanger)

        waiters = [asyncio.ensure_future(store.get_valid_access_token()) for _ in range(3)]
        await asyncio.sleep(0.01)
        exchanger.gate.set()
        results = await asyncio.gather(*waiters, return_exceptions=True)

        assert len(exchanger.refresh_calls) == 1
        assert all(isinstance(r, RefreshFailedError) for r in results)

        state = store.get_auth_state()
        assert state.is_authenticated
        assert state.credentials == stale
        assert state.error_kind == AuthErrorKind.REFRESH_FAILED
        assert state.error
        assert state.requires_reauthentication

    @pytest.mark.asyncio
    async def test_failure_with_no_waiters_left_is_retrieved(self):
        exchanger = FakeExchanger(refresh_result=TokenFailure())
        exchanger.gate = asyncio.Event()
        store = _store(MemoryStorage(make_credential(expires_in=-10)), exchanger)
        unhandled = []
        loop = asyncio.get_running_loop()
        loop.set_exception_handler(lambda _loop, context: unhandled.append(context))
        try:
            waiter = asyncio.ensure_future(store.get_valid_access_token())
            await asyncio.sleep(0.01)
            refresh_task = store._refresh_task
            waiter.cancel()
            with pytest.raises(asyncio.CancelledError):
                await waiter

            exchanger.gate.set()
            await asyncio.wait([refresh_task])
            assert not refresh_task.cancelled()
            del refresh_task
            gc.collect()
        finally:
            loop.set_exception_handler(None)

        assert unhandled == []
        assert store.get_auth_state().error_kind == AuthErrorKind.REFRESH_FAILED

    @pytest.mark.asyncio
    async def test_retry_after_failure(self):
        exchanger = FakeExchanger(refresh_result=TokenFailure())
        store = _store(MemoryStorage(make_credential(expires_in=-10)), exchanger)

        with pytest.raises(RefreshFailedError):
            await store.get_valid_access_token()
        assert not store.refresh_in_progress

        exchanger.refresh_result = token_success(sub="retry")
        token = await store.get_valid_access_token()

        assert token == exchanger.refresh_result.access
        assert len(exchanger.refresh_calls) == 2
        assert store.get_auth_state().error is None

    @pytest.mark.asyncio
    async def test_network_error_is_not_reauthentication(self):
        exchanger = FakeExchanger(refresh_result=httpx.ConnectError("offline"))
        store = _store(MemoryStorage(make_credential(expires_in=-10)), exchanger)

        with pytest.raises(httpx.RequestError):
            await store.get_valid_access_token()

        state = store.get_auth_state()
        assert state.error_kind == AuthErrorKind.NETWORK_ERROR
        assert not state.requires_reauthentication
        assert not store.refresh_in_progress

    @pytest.mark.asyncio
    async def test_account_change_is_rejected(self):
        exchanger = FakeExchanger(refresh_result=token_success(account_id="acct_other"))
        stale = make_credential(expires_in=-10)
        storage = MemoryStorage(stale)
        store = _store(storage, exchanger)

        with pytest.raises(AccountMismatchError) as exc_info:
            await store.get_valid_access_token()

        assert exc_info.value.expected == "acct_abc123"
        assert exc_info.value.actual == "acct_other"
        assert storage.saved == []
        assert store.get_auth_state().credentials == stale
        assert store.get_auth_state().error_kind == AuthErrorKind.ACCOUNT_MISMATCH

    @pytest.mark.asyncio
    async def test_refreshed_token_without_claim_keeps_account(self):
        result = TokenSuccess(
            access=make_jwt(None, sub="new"),
            refresh="refresh-new",
            expires=utcnow() + datetime.timedelta(minutes=15),
        )
        store = _store(MemoryStorage(make_credential(expires_in=-10)), FakeExchanger(refresh_result=result))

        assert await store.get_valid_access_token() == result.access
        assert store.get_auth_state().account_id == "acct_abc123"

    @pytest.mark.asyncio
    async def test_save_failure_keeps_old_credential(self):
        stale = make_credential(expires_in=-10)
        storage = MemoryStorage(stale)
        storage.fail_save = True
        store = _store(storage, FakeExchanger())

        with pytest.raises(OSError):
            await store.get_valid_access_token()

        assert store.get_auth_state().credentials == stale
        assert store.get_auth_state().error_kind == AuthErrorKind.REFRESH_FAILED

    @pytest.mark.asyncio
    async def test_refresh_now_ignores_expiry(self, exchanger):
        store = _store(MemoryStorage(make_credential(expires_in=3600)), exchanger)
        credential = await store.refresh_now()
        assert len(exchanger.refresh_calls) == 1
        assert credential.access_token == exchanger.refresh_result.access


class TestStartOAuthFlow:
    @pytest.mark.asyncio
    async def test_login_scenario(self, storage, listener_factory):
        tok1 = make_jwt("acct_abc123", sub="tok1")
        exchanger = FakeExchanger(exchange_result=TokenSuccess(
            access=tok1,
            refresh="ref1",
            expires=utcnow() + datetime.timedelta(minutes=15),
        ))
        store = _store(storage, exchanger, listener_factory)
        urls = []

        credential = await store.start_oauth_flow(urls.append)

        assert len(urls) == 1
        params = parse_qs(urlparse(urls[0]).query)
        listener = listener_factory.listeners[0]
        assert params["state"] == [listener.expected_state]
        assert "code_challenge" in params

        code, verifier = exchanger.exchange_calls[0]
        assert code == "abc123"
        assert verifier not in urls[0]

        state = store.get_auth_state()
        assert state.is_authenticated
        assert state.credentials.access_token == tok1
        assert state.credentials.refresh_token == "ref1"
        assert state.account_id == "acct_abc123"
        assert credential == state.credentials
        assert storage.saved == [credential]
        assert listener.closed
        assert not store.login_in_progress

    @pytest.mark.asyncio
    async def test_port_in_use(self, storage, exchanger):
        store = _store(storage, exchanger, ListenerFactory(error=PortInUseError()))
        urls = []

        assert await store.start_oauth_flow(urls.append) is None
        assert urls == []
        assert store.get_auth_state().error_kind == AuthErrorKind.PORT_IN_USE

    @pytest.mark.asyncio
    @pytest.mark.parametrize("failure", [
        AuthErrorKind.TIMEOUT,
        AuthErrorKind.STATE_MISMATCH,
        AuthErrorKind.MISSING_CODE,
        AuthErrorKind.CANCELLED,
    ])
    async def test_listener_failures(self, storage, exchanger, failure):
        factory = ListenerFactory(result=None, failure=failure)
        store = _store(storage, exchanger, factory)

        assert await store.start_oauth_flow(lambda url: None) is None

        state = store.get_auth_state()
        assert not state.is_authenticated
        assert state.error_kind == failure
        assert exchanger.exchange_calls == []
        assert factory.listeners[0].closed

    @pytest.mark.asyncio
    async def test_exchange_failure(self, storage, listener_factory):
        store = _store(storage, FakeExchanger(exchange_result=TokenFailure()), listener_factory)

        assert await store.start_oauth_flow(lambda url: None) is None
        assert store.get_auth_state().error_kind == AuthErrorKind.EXCHANGE_FAILED
        assert storage.saved == []

    @pytest.mark.asyncio
    async def test_token_without_account_id(self, storage, listener_factory):
        result = TokenSuccess(access="tok1", refresh="ref1", expires=utcnow() + datetime.timedelta(minutes=15))
        store = _store(storage, FakeExchanger(exchange_result=result), listener_factory)

        assert await store.start_oauth_flow(lambda url: None) is None

        state = store.get_auth_state()
        assert not state.is_authenticated
        assert state.error_kind == AuthErrorKind.NO_ACCOUNT_ID
        assert storage.saved == []

    @pytest.mark.asyncio
    async def test_network_error(self, storage, listener_factory):
        store = _store(storage, FakeExchanger(exchange_result=httpx.ConnectError("offline")), listener_factory)

        assert await store.start_oauth_flow(lambda url: None) is None
        assert store.get_auth_state().error_kind == AuthErrorKind.NETWORK_ERROR
        assert listener_factory.listeners[0].closed

    @pytest.mark.asyncio
    async def test_save_failure(self, listener_factory, exchanger):
        storage = MemoryStorage()
        storage.fail_save = True
        store = _store(storage, exchanger, listener_factory)

        assert await store.start_oauth_flow(lambda url: None) is None
        assert not store.get_auth_state().is_authenticated
        assert store.get_auth_state().error

    @pytest.mark.asyncio
    async def test_success_clears_previous_error(self, storage, exchanger):
        store = _store(storage, exchanger, ListenerFactory(result=None, failure=AuthErrorKind.TIMEOUT))
        await store.start_oauth_flow(lambda url: None)
        assert store.get_auth_state().error

        store.listener_factory = ListenerFactory()
        assert await store.start_oauth_flow(lambda url: None) is not None
        assert store.get_auth_state().error is None

    @pytest.mark.asyncio
    async def test_new_login_closes_previous_session(self, storage, exchanger):
        started = []
        release = asyncio.Event()

        class BlockingListener:
            failure = AuthErrorKind.CANCELLED

            def __init__(self):
                self.closed = False

            async def wait_for_code(self, timeout):
                await release.wait()
                return None

            async def close(self):
                self.closed = True
                release.set()

        async def factory(expected_state):
            listener = BlockingListener() if not started else await ListenerFactory()(expected_state)
            started.append(listener)
            return listener

        store = _store(storage, exchanger, factory)
        first = asyncio.ensure_future(store.start_oauth_flow(lambda url: None))
        await asyncio.sleep(0.01)
        assert store.login_in_progress

        second = await store.start_oauth_flow(lambda url: None)

        assert started[0].closed
        assert await first is None
        assert second is not None
        assert store.get_auth_state().is_authenticated
        assert store.get_auth_state().error is None


class TestLogout:
    @pytest.mark.asyncio
    async def test_logout_clears_credential(self, exchanger):
        storage = MemoryStorage(make_credential())
        store = _store(storage, exchanger)
        assert store.get_auth_state().is_authenticated

        await store.logout()

        assert not store.get_auth_state().is_authenticated
        assert storage.cleared
        with pytest.raises(NotAuthenticatedError):
            await store.get_valid_access_token()

    @pytest.mark.asyncio
    async def test_scenario_code_exchange_then_fresh_token(self, storage, exchanger, listener_factory):
        store = _store(storage, exchanger, listener_factory)
        credential = await store.start_oauth_flow(lambda url: None)

        assert await store.get_valid_access_token() == credential.access_token
        assert exchanger.refresh_calls == []

    @pytest.mark.asyncio
    async def test_callback_result_code_is_exchanged(self, storage, exchanger):
        store = _store(storage, exchanger, ListenerFactory(result=CallbackResult(code="xyz")))
        await store.start_oauth_flow(lambda url: None)
        assert exchanger.exchange_calls[0][0] == "xyz"
