#!/usr/bin/env python3
"""
Smoke test for a TokenSpectrum backend wired to a live network.

Runs the full lifecycle against whatever wallet and contracts the backend is
configured with, so it spends testnet gas. Failures name the step and show
the HTTP status/body preview.

Flow (default):
1. Health check
2. Network check (expected chain, wallet connected, contracts configured)
3. Mint a new NFT
4. Decrypt its hidden test value (must be 1-100)
5. Claim TEST for it
6. Decrypt the TEST balance (must have grown by the test value)
7. Claim again (must be rejected, balance unchanged)

Usage:
    ./scripts/smoke-test.py http://localhost:8000
    ./scripts/smoke-test.py http://localhost:8000 --health-only
    ./scripts/smoke-test.py http://localhost:8000 --read-only
"""

import argparse
import json
import random
import sys
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

SkipCheck = Callable[["SmokeContext"], str | None]


class ApiError(RuntimeError):
    def __init__(self, status_code: int, body: str):
        super().__init__(f"API error {status_code}: {body}")
        self.status_code = status_code
        self.body = body


DEFAULT_TIMEOUT_SECONDS = 30.0
# Mint and claim wait for inclusion on a public testnet
TRANSACTION_TIMEOUT_SECONDS = 240.0
DECRYPT_TIMEOUT_SECONDS = 120.0
DEFAULT_RETRIES = 2
DEFAULT_RETRY_BACKOFF_SECONDS = 0.5
MAX_ERROR_BODY_CHARS = 10_000
BODY_PREVIEW_BYTES = 200
MAX_BACKOFF_SECONDS = 4.0
TEST_VALUE_RANGE = range(1, 101)


def log(msg: str) -> None:
    """Print timestamped log message."""
    print(f"[{datetime.now().strftime('%H:%M:%S')}] {msg}", flush=True)


def _preview_bytes(value: bytes, limit: int = BODY_PREVIEW_BYTES) -> bytes:
    return value[:limit]


def _decode_limited(value: bytes, max_chars: int = MAX_ERROR_BODY_CHARS) -> str:
    decoded = value.decode("utf-8", errors="replace")
    if len(decoded) <= max_chars:
        return decoded
    return decoded[:max_chars] + "…"


def _is_retryable_status(status_code: int) -> bool:
    return status_code in {408, 425, 429, 502, 504, 522, 524}


@dataclass
class HttpClient:
    base_url: str
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    retries: int = DEFAULT_RETRIES
    retry_backoff_seconds: float = DEFAULT_RETRY_BACKOFF_SECONDS

    def request(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        body: bytes | None = None,
        timeout_seconds: float | None = None,
        retry: bool = True,
    ) -> tuple[int, bytes]:
        effective_timeout = self.timeout_seconds if timeout_seconds is None else timeout_seconds
        max_attempts = max(1, self.retries + 1) if retry else 1

        for attempt in range(1, max_attempts + 1):
            try:
                request = Request(url, data=body, headers=headers or {}, method=method)
                try:
                    with urlopen(request, timeout=effective_timeout) as response:
                        return response.getcode(), response.read()
                except HTTPError as e:
                    error_body = e.read() if e.fp else b""
                    if attempt < max_attempts and _is_retryable_status(e.code):
                        self._sleep_backoff(attempt)
                        continue
                    return e.code, error_body
            except (URLError, TimeoutError) as e:
                if attempt < max_attempts:
                    self._sleep_backoff(attempt)
                    continue
                raise RuntimeError(f"Network error after {attempt} attempts: {e}") from e

        raise RuntimeError(f"No response from {method} {url}")

    def api_json(
        self,
        method: str,
        path: str,
        *,
        data: dict[str, Any] | None = None,
        timeout_seconds: float | None = None,
        retry: bool = True,
    ) -> dict[str, Any]:
        url = f"{self.base_url}/api/v1{path}"
        body_bytes = json.dumps(data).encode() if data is not None else None
        status, body = self.request(
            method,
            url,
            headers={"Content-Type": "application/json"},
            body=body_bytes,
            timeout_seconds=timeout_seconds,
            retry=retry,
        )
        if status < 200 or status >= 300:
            raise ApiError(status, _decode_limited(body))
        try:
            return json.loads(body.decode())
        except json.JSONDecodeError as e:
            raise RuntimeError(
                f"Invalid JSON response from {method} {path}: preview={_preview_bytes(body)!r}"
            ) from e

    def _sleep_backoff(self, attempt: int) -> None:
        base = self.retry_backoff_seconds * (2 ** (attempt - 1))
        jitter = random.random() * self.retry_backoff_seconds
        time.sleep(min(MAX_BACKOFF_SECONDS, base + jitter))


def wait_for_health(client: HttpClient, max_attempts: int = 30, delay: float = 2.0) -> bool:
    """Wait for /health to return healthy status."""
    url = f"{client.base_url}/health"

    for attempt in range(1, max_attempts + 1):
        try:
            status, body = client.request("GET", url, timeout_seconds=10.0)
            if status == 200 and json.loads(body.decode()).get("status") == "healthy":
                log(f"Health check passed (attempt {attempt})")
                return True
        except (json.JSONDecodeError, RuntimeError):
            pass

        if attempt < max_attempts:
            time.sleep(delay)

    return False


@dataclass
class SmokeContext:
    client: HttpClient
    max_health_attempts: int

    token_id: int | None = None
    test_value: int | None = None
    starting_balance: int | None = None
    balance_after_claim: int | None = None

    def require_token_id(self) -> int:
        if self.token_id is None:
            raise RuntimeError("Missing token_id (step ordering bug)")
        return self.token_id

    def require_test_value(self) -> int:
        if self.test_value is None:
            raise RuntimeError("Missing test_value (step ordering bug)")
        return self.test_value

    def require_balance_after_claim(self) -> int:
        if self.balance_after_claim is None:
            raise RuntimeError("Missing balance_after_claim (step ordering bug)")
        return self.balance_after_claim


@dataclass(frozen=True)
class Step:
    name: str
    run: Callable[[SmokeContext], None]
    # Return `None` to run the step; return a string to skip with that reason.
    skip_reason: SkipCheck | None = None


@dataclass(frozen=True)
class StepResult:
    name: str
    status: str  # passed|skipped|failed
    seconds: float
    detail: str | None = None


def _print_summary(results: list[StepResult], total_seconds: float) -> None:
    log("Summary:")
    for result in results:
        suffix = f" - {result.detail}" if result.detail else ""
        log(f"  {result.status.upper():7} {result.name} ({result.seconds:.2f}s){suffix}")
    log(f"Total: {total_seconds:.2f}s")


def run_steps(ctx: SmokeContext, steps: list[Step]) -> bool:
    results: list[StepResult] = []
    overall_start = time.time()

    for step in steps:
        reason = step.skip_reason(ctx) if step.skip_reason else None
        if reason:
            log(f"SKIP: {step.name}: {reason}")
            results.append(StepResult(step.name, "skipped", 0.0, reason))
            continue

        log(f"STEP: {step.name}")
        start = time.time()
        try:
            step.run(ctx)
        except Exception as e:
            elapsed = time.time() - start
            results.append(StepResult(step.name, "failed", elapsed, str(e)))
            _print_summary(results, time.time() - overall_start)
            return False

        elapsed = time.time() - start
        results.append(StepResult(step.name, "passed", elapsed))
        log(f"OK: {step.name} ({elapsed:.2f}s)")

    _print_summary(results, time.time() - overall_start)
    return True


def decrypt_balance(ctx: SmokeContext) -> int:
    result = ctx.client.api_json(
        "POST", "/balance/decrypt", timeout_seconds=DECRYPT_TIMEOUT_SECONDS, retry=False
    )
    value = result["portfolio"]["balance"]["decrypted_balance"]
    if not isinstance(value, int):
        raise RuntimeError(f"Balance decryption returned no value: {result['status']}")
    return value


def step_health(ctx: SmokeContext) -> None:
    log(f"Checking health: {ctx.client.base_url}/health")
    if not wait_for_health(ctx.client, max_attempts=ctx.max_health_attempts):
        raise RuntimeError("Health check failed")


def step_network(ctx: SmokeContext) -> None:
    status = ctx.client.api_json("GET", "/network")
    log(
        f"Network: chain_id={status['chain_id']} expected={status['expected_chain_id']} "
        f"account={status['account']} relayer={status['relayer_url']}"
    )
    if status.get("message"):
        raise RuntimeError(status["message"])
    if status.get("wrong_network") or not status.get("contracts_configured"):
        raise RuntimeError("Backend is not ready for transactions")


def step_starting_balance(ctx: SmokeContext) -> None:
    ctx.starting_balance = decrypt_balance(ctx)
    log(f"Starting TEST balance: {ctx.starting_balance}")


def step_mint(ctx: SmokeContext) -> None:
    before = {row["token_id"] for row in ctx.client.api_json("GET", "/portfolio")["nfts"]}

    result = ctx.client.api_json(
        "POST", "/assets/mint", timeout_seconds=TRANSACTION_TIMEOUT_SECONDS, retry=False
    )
    log(f"Mint status: {result['status']}")
    minted = sorted({row["token_id"] for row in result["portfolio"]["nfts"]} - before)
    if not minted:
        raise RuntimeError("Mint succeeded but no new token appeared in the portfolio")
    ctx.token_id = minted[-1]
    log(f"Minted tokenId {ctx.token_id}")


def step_decrypt_attribute(ctx: SmokeContext) -> None:
    token_id = ctx.require_token_id()
    result = ctx.client.api_json(
        "POST",
        "/assets/decrypt",
        data={"token_ids": [token_id]},
        timeout_seconds=DECRYPT_TIMEOUT_SECONDS,
        retry=False,
    )
    row = next(row for row in result["portfolio"]["nfts"] if row["token_id"] == token_id)
    value = row["decrypted_test"]
    if value not in TEST_VALUE_RANGE:
        raise RuntimeError(f"Decrypted test value out of range: {value!r}")
    ctx.test_value = value
    log(f"Hidden test value for tokenId {token_id}: {value}")


def step_claim(ctx: SmokeContext) -> None:
    token_id = ctx.require_token_id()
    result = ctx.client.api_json(
        "POST",
        f"/assets/{token_id}/claim",
        timeout_seconds=TRANSACTION_TIMEOUT_SECONDS,
        retry=False,
    )
    log(f"Claim status: {result['status']}")
    row = next(row for row in result["portfolio"]["nfts"] if row["token_id"] == token_id)
    if not row["claimed"]:
        raise RuntimeError(f"tokenId {token_id} not marked claimed after claim")


def step_balance_after_claim(ctx: SmokeContext) -> None:
    balance = decrypt_balance(ctx)
    expected = (ctx.starting_balance or 0) + ctx.require_test_value()
    if balance != expected:
        raise RuntimeError(f"Expected TEST balance {expected}, got {balance}")
    ctx.balance_after_claim = balance
    log(f"TEST balance after claim: {balance}")


def step_double_claim(ctx: SmokeContext) -> None:
    token_id = ctx.require_token_id()
    try:
        ctx.client.api_json(
            "POST",
            f"/assets/{token_id}/claim",
            timeout_seconds=TRANSACTION_TIMEOUT_SECONDS,
            retry=False,
        )
    except ApiError as e:
        if e.status_code != 409:
            raise
        log(f"Second claim rejected as expected: {e.body[:120]}")
    else:
        raise RuntimeError(f"Second claim of tokenId {token_id} was accepted")

    balance = decrypt_balance(ctx)
    if balance != ctx.require_balance_after_claim():
        raise RuntimeError(f"Balance changed after rejected claim: {balance}")


def skip_read_only(_: SmokeContext) -> str | None:
    return "disabled via --read-only"


def main() -> int:
    parser = argparse.ArgumentParser(description="TokenSpectrum smoke test")
    parser.add_argument("base_url", help="Base URL (e.g., http://localhost:8000)")
    parser.add_argument(
        "--health-only",
        action="store_true",
        help="Only run health check, skip full flow",
    )
    parser.add_argument(
        "--read-only",
        action="store_true",
        help="Skip steps that send transactions",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_TIMEOUT_SECONDS,
        help=f"HTTP timeout seconds for reads (default: {DEFAULT_TIMEOUT_SECONDS:g})",
    )
    parser.add_argument(
        "--retries",
        type=int,
        default=DEFAULT_RETRIES,
        help=f"Retries for transient read failures (default: {DEFAULT_RETRIES})",
    )
    parser.add_argument(
        "--max-health-attempts",
        type=int,
        default=30,
        help="Max health check attempts (default: 30)",
    )
    args = parser.parse_args()

    try:
        base_url = args.base_url.rstrip("/")
        client = HttpClient(base_url=base_url, timeout_seconds=args.timeout, retries=args.retries)
        ctx = SmokeContext(client=client, max_health_attempts=args.max_health_attempts)

        steps: list[Step] = [Step("health", step_health)]
        if args.health_only:
            log("Health-only mode: skipping full flow")
        else:
            write_skip = skip_read_only if args.read_only else None
            steps.extend(
                [
                    Step("network", step_network),
                    Step("starting balance", step_starting_balance),
                    Step("mint", step_mint, skip_reason=write_skip),
                    Step("decrypt test value", step_decrypt_attribute, skip_reason=write_skip),
                    Step("claim", step_claim, skip_reason=write_skip),
                    Step("balance after claim", step_balance_after_claim, skip_reason=write_skip),
                    Step("double claim rejected", step_double_claim, skip_reason=write_skip),
                ]
            )

        ok = run_steps(ctx, steps)
        return 0 if ok else 1
    except Exception as e:
        log(f"ERROR: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
