"""Unit tests for the claim rate limiter."""

import asyncio
import threading

import pytest
from fastapi.responses import JSONResponse

from app.core.errors import DuplicateClaimError, LedgerAppError, RateLimitExceededError
from app.core.rate_limit import RateLimiter, format_wait, nonce_key
from app.utils.expiring_store import ExpiringKeyStore
from tests.fakes import ADDRESS, OTHER_ADDRESS

IP = "203.0.113.7"
OTHER_IP = "203.0.113.8"


class RecordingHandler:
    """Protected handler returning a fixed status and counting calls."""

    def __init__(self, status_code: int = 200) -> None:
        self.status_code = status_code
        self.calls = 0

    async def __call__(self) -> JSONResponse:
        self.calls += 1
        return JSONResponse(status_code=self.status_code, content={"message": "done"})


@pytest.fixture
def store(clock) -> ExpiringKeyStore:
    return ExpiringKeyStore(clock=clock)


@pytest.fixture
def limiter(store, fake_ledger) -> RateLimiter:
    return RateLimiter(store, fake_ledger, ttl_seconds=60)


@pytest.mark.parametrize(
    ("seconds", "expected"),
    [(0, "0s"), (0.4, "0s"), (41.6, "42s"), (90, "1m30s"), (3600, "1h0m0s"), (3725.2, "1h2m5s")],
)
def test_format_wait(seconds: float, expected: str) -> None:
    assert format_wait(seconds) == expected


class TestDisabledLimiter:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("ttl", [0, -5])
    async def test_forwards_without_touching_store(self, store, fake_ledger, ttl) -> None:
        limiter = RateLimiter(store, fake_ledger, ttl_seconds=ttl)
        handler = RecordingHandler()

        for _ in range(3):
            response = await limiter.check(ADDRESS, IP, handler)
            assert response.status_code == 200

        assert handler.calls == 3
        assert store.stats()["entries"] == 0
        assert fake_ledger.nonce_calls == []


class TestReservation:
    def test_reserves_both_keys(self, limiter, store) -> None:
        limiter.reserve(ADDRESS, IP)

        assert store.get(ADDRESS) is True
        assert store.get(IP) is True

    def test_second_claim_for_same_address_is_rejected(self, limiter) -> None:
        limiter.reserve(ADDRESS, IP)

        with pytest.raises(RateLimitExceededError) as exc_info:
            limiter.reserve(ADDRESS, OTHER_IP)

        assert exc_info.value.status_code == 429
        assert exc_info.value.message == (
            "You have exceeded the rate limit. Please wait 1m0s before you try again"
        )

    def test_second_claim_from_same_ip_is_rejected(self, limiter, store) -> None:
        limiter.reserve(ADDRESS, IP)

        with pytest.raises(RateLimitExceededError):
            limiter.reserve(OTHER_ADDRESS, IP)

        # A rejected claim writes nothing
        assert store.get(OTHER_ADDRESS) is None

    def test_wait_time_counts_down(self, limiter, clock) -> None:
        limiter.reserve(ADDRESS, IP)
        clock.advance(17.6)

        with pytest.raises(RateLimitExceededError) as exc_info:
            limiter.reserve(ADDRESS, IP)

        assert "Please wait 42s before" in exc_info.value.message
        assert exc_info.value.details["retry_after"] == 42

    def test_admits_again_after_ttl(self, limiter, clock) -> None:
        limiter.reserve(ADDRESS, IP)
        clock.advance(60)

        reservation = limiter.reserve(ADDRESS, IP)

        assert reservation.address == ADDRESS

    def test_concurrent_reservations_admit_exactly_one(self, store, fake_ledger) -> None:
        limiter = RateLimiter(store, fake_ledger, ttl_seconds=60)
        barrier = threading.Barrier(20)
        admitted: list[int] = []
        rejected: list[int] = []

        def _claim(idx: int) -> None:
            barrier.wait()
            try:
                limiter.reserve(ADDRESS, f"198.51.100.{idx}")
            except RateLimitExceededError:
                rejected.append(idx)
            else:
                admitted.append(idx)

        threads = [threading.Thread(target=_claim, args=(i,)) for i in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(admitted) == 1
        assert len(rejected) == 19


class TestCheck:
    @pytest.mark.asyncio
    async def test_success_commits_nonce_and_keeps_reservation(
        self, limiter, store, fake_ledger
    ) -> None:
        fake_ledger.nonce = 3
        handler = RecordingHandler(200)

        response = await limiter.check(ADDRESS, IP, handler)

        assert response.status_code == 200
        assert handler.calls == 1
        assert store.get(nonce_key(ADDRESS)) == 3
        assert store.get_with_ttl(nonce_key(ADDRESS))[1] is None
        assert store.get(ADDRESS) is True
        assert store.get(IP) is True

    @pytest.mark.asyncio
    async def test_handler_failure_rolls_back_reservation(self, limiter, store) -> None:
        handler = RecordingHandler(500)

        response = await limiter.check(ADDRESS, IP, handler)

        assert response.status_code == 500
        assert store.get(ADDRESS) is None
        assert store.get(IP) is None
        assert store.get(nonce_key(ADDRESS)) is None

    @pytest.mark.asyncio
    async def test_handler_failure_does_not_touch_existing_nonce(
        self, limiter, store, fake_ledger
    ) -> None:
        store.put(nonce_key(ADDRESS), 1)
        fake_ledger.nonce = 2

        await limiter.check(ADDRESS, IP, RecordingHandler(502))

        assert store.get(nonce_key(ADDRESS)) == 1

    @pytest.mark.asyncio
    async def test_handler_exception_rolls_back_and_propagates(self, limiter, store) -> None:
        async def _boom():
            raise RuntimeError("handler crashed")

        with pytest.raises(RuntimeError):
            await limiter.check(ADDRESS, IP, _boom)

        assert store.get(ADDRESS) is None
        assert store.get(IP) is None

    @pytest.mark.asyncio
    async def test_matching_nonce_is_flagged_as_duplicate(
        self, limiter, store, fake_ledger
    ) -> None:
        store.put(nonce_key(ADDRESS), 5)
        fake_ledger.nonce = 5
        handler = RecordingHandler()

        with pytest.raises(DuplicateClaimError) as exc_info:
            await limiter.check(ADDRESS, IP, handler)

        assert exc_info.value.status_code == 429
        assert exc_info.value.message == "Please do not make repeated requests."
        assert handler.calls == 0
        assert store.get(ADDRESS) is None
        assert store.get(IP) is None

    @pytest.mark.asyncio
    async def test_advanced_nonce_proceeds_to_handler(self, limiter, store, fake_ledger) -> None:
        store.put(nonce_key(ADDRESS), 5)
        fake_ledger.nonce = 6
        handler = RecordingHandler()

        response = await limiter.check(ADDRESS, IP, handler)

        assert response.status_code == 200
        assert handler.calls == 1
        assert store.get(nonce_key(ADDRESS)) == 6

    @pytest.mark.asyncio
    async def test_ledger_failure_fails_closed_and_releases(
        self, limiter, store, fake_ledger
    ) -> None:
        fake_ledger.fail_nonce = True
        handler = RecordingHandler()

        with pytest.raises(LedgerAppError) as exc_info:
            await limiter.check(ADDRESS, IP, handler)

        assert exc_info.value.status_code == 503
        assert handler.calls == 0
        assert store.get(ADDRESS) is None
        assert store.get(IP) is None

    @pytest.mark.asyncio
    async def test_rate_limited_claim_never_reaches_ledger(self, limiter, fake_ledger) -> None:
        await limiter.check(ADDRESS, IP, RecordingHandler())
        fake_ledger.nonce_calls.clear()

        with pytest.raises(RateLimitExceededError):
            await limiter.check(ADDRESS, IP, RecordingHandler())

        assert fake_ledger.nonce_calls == []

    @pytest.mark.asyncio
    async def test_parallel_claims_admit_exactly_one(self, limiter) -> None:
        handler = RecordingHandler()

        results = await asyncio.gather(
            *(limiter.check(ADDRESS, f"198.51.100.{i}", handler) for i in range(10)),
            return_exceptions=True,
        )

        admitted = [r for r in results if not isinstance(r, Exception)]
        limited = [r for r in results if isinstance(r, RateLimitExceededError)]
        assert len(admitted) == 1
        assert len(limited) == 9
        assert handler.calls == 1
