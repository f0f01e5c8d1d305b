#!/usr/bin/env python3
"""
Test Suite for the oracle call layer

Tests:
1. call_with_retry backoff, exhaustion and abort passthrough
2. prompt_json_with_retry parse/validate retries and ClassificationFailed
3. OracleLines: fresh clone per attempt, unopened lines, destroyed sessions
4. Abort signal racing an in-flight prompt

Usage:
    python test_oracle_retry.py
    pytest test_oracle_retry.py
"""

import asyncio
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from test_support import FakeOracle, FakeSession, Hang, make_settings


def test_call_with_retry():
    """Test 1: Retries with backoff, re-raises the last error, never retries aborts."""
    print("\n[TEST 1] call_with_retry")
    print("-" * 50)

    from src.clients.oracle import OperationAborted
    from src.utils.oracle_retry import call_with_retry

    async def scenario():
        calls = []

        async def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise ValueError(f"failure {len(calls)}")
            return "ok"

        result = await call_with_retry(flaky, max_attempts=3, initial_delay=0, max_delay=0)
        assert result == "ok", f"Expected 'ok', got {result!r}"
        assert len(calls) == 3, f"Expected 3 attempts, got {len(calls)}"
        print("  ✓ Succeeds on the third attempt")

        calls.clear()

        async def always_fails():
            calls.append(1)
            raise ValueError(f"failure {len(calls)}")

        try:
            await call_with_retry(always_fails, max_attempts=2, initial_delay=0, max_delay=0)
            raise AssertionError("Expected ValueError")
        except ValueError as e:
            assert str(e) == "failure 2", f"Expected the last error, got {e}"
        assert len(calls) == 2
        print("  ✓ Re-raises the last error after exhausting attempts")

        calls.clear()

        async def aborted():
            calls.append(1)
            raise OperationAborted("stopped")

        try:
            await call_with_retry(aborted, max_attempts=5, initial_delay=0, max_delay=0)
            raise AssertionError("Expected OperationAborted")
        except OperationAborted:
            pass
        assert len(calls) == 1, "Aborted calls must not be retried"
        print("  ✓ OperationAborted is never retried")

    asyncio.run(scenario())
    print("  ✓ TEST 1 PASSED!")


def test_retry_policy_from_settings():
    """Test 2: Millisecond settings become second-based delays."""
    print("\n[TEST 2] RetryPolicy.from_settings")
    print("-" * 50)

    from src.utils.oracle_retry import RetryPolicy

    settings = make_settings(
        RETRY_MAX_ATTEMPTS=4,
        RETRY_INITIAL_DELAY_MS=250,
        RETRY_MAX_DELAY_MS=1000,
        RETRY_BACKOFF_MULTIPLIER=3.0,
    )
    policy = RetryPolicy.from_settings(settings)
    assert policy.max_attempts == 4
    assert policy.initial_delay == 0.25
    assert policy.max_delay == 1.0
    assert policy.backoff_multiplier == 3.0
    print("  ✓ Policy mirrors settings")

    try:
        make_settings(RETRY_INITIAL_DELAY_MS=500, RETRY_MAX_DELAY_MS=100).validate_settings()
        raise AssertionError("Expected ValueError for initial delay > max delay")
    except ValueError:
        pass
    print("  ✓ validate_settings rejects inconsistent delays")
    print("  ✓ TEST 2 PASSED!")


def test_prompt_json_with_retry():
    """Test 3: Malformed JSON and failed validation are retried, then reported."""
    print("\n[TEST 3] prompt_json_with_retry")
    print("-" * 50)

    from src.clients.oracle import ClassificationFailed
    from src.utils.oracle_retry import RetryPolicy, parse_json_response, prompt_json_with_retry

    policy = RetryPolicy(max_attempts=3, initial_delay=0, max_delay=0)

    async def scenario():
        replies = iter(["not json", '{"action": "bogus"}', '{"action": "noOperation"}'])

        async def prompt():
            return next(replies)

        def validate(parsed):
            if parsed.get("action") != "noOperation":
                raise ValueError("unexpected action")
            return parsed["action"]

        result = await prompt_json_with_retry(prompt, validate=validate, policy=policy)
        assert result == "noOperation", f"Expected noOperation, got {result!r}"
        print("  ✓ Parse and validation failures are retried")

        async def garbage():
            return "<html>"

        try:
            await prompt_json_with_retry(garbage, policy=policy, operation_name="Garbage")
            raise AssertionError("Expected ClassificationFailed")
        except ClassificationFailed as e:
            assert e.operation == "Garbage"
            assert isinstance(e.last_error, ValueError)
        print("  ✓ Exhaustion raises ClassificationFailed with the last error")

    asyncio.run(scenario())

    try:
        parse_json_response("x" * 300)
        raise AssertionError("Expected ValueError")
    except ValueError as e:
        assert "x" * 100 in str(e) and "x" * 101 not in str(e), "Error should keep a 100 char preview"
    print("  ✓ Parse errors keep a bounded preview of the bad output")
    print("  ✓ TEST 3 PASSED!")


def test_oracle_lines():
    """Test 4: Every attempt runs on a fresh clone which is destroyed afterwards."""
    print("\n[TEST 4] OracleLines")
    print("-" * 50)

    from src.clients.oracle import (
        ClassificationFailed,
        EngineNotInitialized,
        OracleLine,
        SessionConfig,
        SessionDestroyedError,
    )
    from src.clients.oracle_lines import OracleLines
    from src.utils.oracle_retry import RetryPolicy

    async def scenario():
        oracle = FakeOracle()
        oracle.script(OracleLine.SUBJECT_TITLE, "oops", {"title": "Budget"})
        lines = OracleLines(oracle, RetryPolicy(max_attempts=3, initial_delay=0, max_delay=0))

        try:
            await lines.prompt_json(OracleLine.SUBJECT_TITLE, "hi", {})
            raise AssertionError("Expected EngineNotInitialized")
        except EngineNotInitialized:
            pass
        print("  ✓ Prompting an unopened line raises EngineNotInitialized")

        config = SessionConfig(line=OracleLine.SUBJECT_TITLE, system_prompt="titles")
        await lines.open(config)
        await lines.open(config)
        assert len(oracle.configs) == 1, "open() must be idempotent"
        assert lines.is_open(OracleLine.SUBJECT_TITLE)

        result = await lines.prompt_json(OracleLine.SUBJECT_TITLE, "budget talk", {"type": "object"})
        assert result == {"title": "Budget"}
        assert len(oracle.clones) == 2, f"Expected one clone per attempt, got {len(oracle.clones)}"
        assert all(clone.destroyed for clone in oracle.clones), "Clones must be destroyed after use"
        print("  ✓ One destroyed clone per attempt")

        oracle.default(OracleLine.SUBJECT_TITLE, "never json")
        try:
            await lines.prompt_json(OracleLine.SUBJECT_TITLE, "x", {})
            raise AssertionError("Expected ClassificationFailed")
        except ClassificationFailed:
            pass
        print("  ✓ Persistent garbage raises ClassificationFailed")

        lines.destroy()
        assert not lines.is_open(OracleLine.SUBJECT_TITLE)

        session = FakeSession(oracle, config)
        session.destroy()
        try:
            await session.prompt_constrained("x", {})
            raise AssertionError("Expected SessionDestroyedError")
        except SessionDestroyedError:
            pass
        print("  ✓ Destroyed sessions refuse prompts")

    asyncio.run(scenario())
    print("  ✓ TEST 4 PASSED!")


def test_abort_signal():
    """Test 5: Firing the abort signal resolves in-flight prompts as OperationAborted."""
    print("\n[TEST 5] Abort signal")
    print("-" * 50)

    from src.clients.oracle import AbortSignal, OperationAborted, OracleLine, SessionConfig
    from src.clients.oracle_lines import OracleLines
    from src.utils.oracle_retry import RetryPolicy

    async def scenario():
        signal = AbortSignal()
        oracle = FakeOracle()
        oracle.default(OracleLine.RUNNING, Hang())
        lines = OracleLines(oracle, RetryPolicy(max_attempts=3, initial_delay=0, max_delay=0), signal=signal)
        await lines.open(SessionConfig(line=OracleLine.RUNNING, system_prompt="classify"))

        task = asyncio.create_task(lines.prompt_json(OracleLine.RUNNING, "hello", {}))
        await asyncio.sleep(0.01)
        signal.abort("recording stopped")

        try:
            await asyncio.wait_for(task, timeout=1.0)
            raise AssertionError("Expected OperationAborted")
        except OperationAborted:
            pass
        assert len(oracle.prompts) == 1, "Aborted prompt must not be retried"
        print("  ✓ In-flight prompt aborted without retry")

        try:
            await lines.prompt_json(OracleLine.RUNNING, "again", {})
            raise AssertionError("Expected OperationAborted")
        except OperationAborted:
            pass
        assert len(oracle.prompts) == 1, "Prompts after abort must not reach the oracle"
        print("  ✓ Prompts after abort fail immediately")

    asyncio.run(scenario())
    print("  ✓ TEST 5 PASSED!")


def main():
    """Run all tests."""
    print("=" * 60)
    print("ORACLE CALL LAYER - TEST SUITE")
    print("=" * 60)

    tests = [
        test_call_with_retry,
        test_retry_policy_from_settings,
        test_prompt_json_with_retry,
        test_oracle_lines,
        test_abort_signal,
    ]
    results = []
    for test in tests:
        try:
            test()
            results.append(True)
        except Exception as e:
            print(f"  ✗ {test.__name__} FAILED: {e}")
            results.append(False)

    print("\n" + "=" * 60)
    print(f"RESULTS: {sum(results)}/{len(results)} tests passed")
    print("=" * 60)
    return 0 if all(results) else 1


if __name__ == "__main__":
    sys.exit(main())
