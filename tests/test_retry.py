from unittest import TestCase
from unittest.mock import patch

from mixsource.retry import retry_with_backoff


class RetryTests(TestCase):
    def setUp(self) -> None:
        patcher = patch("mixsource.retry.time.sleep")
        self.sleep = patcher.start()
        self.addCleanup(patcher.stop)

    def test_succeeds_after_transient_failures(self) -> None:
        calls = []

        @retry_with_backoff(max_attempts=3)
        def flaky() -> str:
            calls.append(1)
            if len(calls) < 3:
                raise ConnectionError("reset")
            return "ok"

        self.assertEqual(flaky(), "ok")
        self.assertEqual(len(calls), 3)
        self.assertEqual(self.sleep.call_count, 2)

    def test_reraises_last_error(self) -> None:
        calls = []

        @retry_with_backoff(max_attempts=2)
        def broken() -> None:
            calls.append(1)
            raise TimeoutError(f"attempt {len(calls)}")

        with self.assertLogs("mixsource.retry", level="WARNING"):
            with self.assertRaises(TimeoutError) as ctx:
                broken()
        self.assertEqual(str(ctx.exception), "attempt 2")
        self.assertEqual(len(calls), 2)

    def test_other_exceptions_are_not_retried(self) -> None:
        calls = []

        @retry_with_backoff(max_attempts=5, exceptions=(ConnectionError,))
        def wrong_input() -> None:
            calls.append(1)
            raise KeyError("id")

        with self.assertRaises(KeyError):
            wrong_input()
        self.assertEqual(len(calls), 1)
        self.sleep.assert_not_called()

    def test_delay_is_capped(self) -> None:
        @retry_with_backoff(max_attempts=4, base_delay=5.0, max_delay=6.0)
        def broken() -> None:
            raise ConnectionError("down")

        with self.assertRaises(ConnectionError):
            broken()
        for call in self.sleep.call_args_list:
            self.assertLessEqual(call.args[0], 6.0 * 1.5)

    def test_rejects_zero_attempts(self) -> None:
        with self.assertRaises(ValueError):
            retry_with_backoff(max_attempts=0)
