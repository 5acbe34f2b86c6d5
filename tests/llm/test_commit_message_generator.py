"""Tests for commit message generator."""

import unittest
from unittest.mock import Mock, patch

import pytest

from zcommit.diff.diff_bundler import DiffBundle
from zcommit.llm.cerebras_client import Completion, ErrorKind, LLMError
from zcommit.llm.commit_message_generator import (
    SYSTEM_PROMPT,
    CommitMessageGenerator,
    build_user_prompt,
    generate_commit_messages,
)


BUNDLE = DiffBundle(stat="src/app.py | 2 +-", diff="diff --git a/src/app.py b/src/app.py\n+print('hi')")
ANSWER = "1. feat: greet the user\n2. fix: print greeting\n3. chore: add hello output"


def make_generator(*outcomes):
    client = Mock()
    client.complete.side_effect = list(outcomes)
    sleeps = []
    generator = CommitMessageGenerator(client, sleep=sleeps.append)
    return generator, client, sleeps


class TestCommitMessageGenerator(unittest.TestCase):
    """Tests for CommitMessageGenerator."""

    def test_success_first_try(self):
        generator, client, sleeps = make_generator(Completion(ANSWER))
        messages = generator.generate_messages(BUNDLE, "abc123 feat: init")
        self.assertEqual(messages, ["feat: greet the user", "fix: print greeting", "chore: add hello output"])
        self.assertEqual(sleeps, [])
        system_prompt, user_prompt = client.complete.call_args[0]
        self.assertEqual(system_prompt, SYSTEM_PROMPT)
        self.assertIn("abc123 feat: init", user_prompt)

    def test_rate_limited_twice_then_success(self):
        generator, client, sleeps = make_generator(
            LLMError("slow down", ErrorKind.RATE_LIMITED, status=429),
            LLMError("slow down", ErrorKind.RATE_LIMITED, status=429),
            Completion(ANSWER),
        )
        messages = generator.generate_messages(BUNDLE)
        self.assertEqual(len(messages), 3)
        self.assertEqual(sleeps, [1.0, 3.0])
        self.assertEqual(client.complete.call_count, 3)

    def test_unauthorized_not_retried(self):
        generator, client, sleeps = make_generator(
            LLMError("bad key", ErrorKind.UNAUTHORIZED, status=401),
            Completion(ANSWER),
        )
        with self.assertRaises(LLMError) as ctx:
            generator.generate_messages(BUNDLE)
        self.assertEqual(ctx.exception.kind, ErrorKind.UNAUTHORIZED)
        self.assertEqual(sleeps, [])
        self.assertEqual(client.complete.call_count, 1)

    def test_invalid_request_not_retried(self):
        generator, client, sleeps = make_generator(LLMError("too big", ErrorKind.INVALID_REQUEST, status=413))
        with self.assertRaises(LLMError):
            generator.generate_messages(BUNDLE)
        self.assertEqual(sleeps, [])

    def test_retry_after_is_capped(self):
        generator, _, sleeps = make_generator(
            LLMError("slow down", ErrorKind.RATE_LIMITED, retry_after=30.0),
            LLMError("slow down", ErrorKind.RATE_LIMITED, retry_after=2.0),
            Completion(ANSWER),
        )
        generator.generate_messages(BUNDLE)
        self.assertEqual(sleeps, [10.0, 2.0])

    def test_exhausted_retries_raise_last_error(self):
        last = LLMError("still down", ErrorKind.NETWORK)
        generator, client, sleeps = make_generator(
            LLMError("down", ErrorKind.NETWORK),
            LLMError("down", ErrorKind.UNKNOWN, status=503),
            last,
        )
        with self.assertRaises(LLMError) as ctx:
            generator.generate_messages(BUNDLE)
        self.assertIs(ctx.exception, last)
        self.assertEqual(client.complete.call_count, 3)
        self.assertEqual(sleeps, [1.0, 3.0])

    def test_unparseable_answer(self):
        generator, _, sleeps = make_generator(Completion("I am not sure what to say."))
        with self.assertRaises(LLMError) as ctx:
            generator.generate_messages(BUNDLE)
        self.assertEqual(ctx.exception.kind, ErrorKind.PARSE)
        self.assertEqual(sleeps, [])

    def test_reasoning_fills_missing_candidates(self):
        completion = Completion(
            content="feat: greet the user",
            reasoning="Candidates:\n1. fix: print greeting\n2. chore: add hello output",
        )
        generator, _, _ = make_generator(completion)
        self.assertEqual(
            generator.generate_messages(BUNDLE),
            ["feat: greet the user", "fix: print greeting", "chore: add hello output"],
        )

    def test_fewer_than_three_returned_as_is(self):
        generator, _, _ = make_generator(Completion("1. feat: greet the user"))
        self.assertEqual(generator.generate_messages(BUNDLE), ["feat: greet the user"])

    def test_empty_bundle_rejected_before_request(self):
        generator, client, _ = make_generator(Completion(ANSWER))
        with self.assertRaises(ValueError):
            generator.generate_messages(DiffBundle(stat="", diff="  "))
        client.complete.assert_not_called()


def test_build_user_prompt_sections():
    prompt = build_user_prompt(BUNDLE, "")
    assert "--- Diff Stats ---\nsrc/app.py | 2 +-" in prompt
    assert "--- Diff Details ---" in prompt
    assert "Recent Commits" not in prompt
    assert prompt.endswith("Generate 3 commit messages for these changes:")


@pytest.mark.parametrize(
    "kind,retryable",
    [
        (ErrorKind.UNAUTHORIZED, False),
        (ErrorKind.INVALID_REQUEST, False),
        (ErrorKind.PARSE, False),
        (ErrorKind.RATE_LIMITED, True),
        (ErrorKind.NETWORK, True),
        (ErrorKind.UNKNOWN, True),
    ],
)
def test_error_retryability(kind, retryable):
    assert LLMError("x", kind).retryable is retryable


def test_generate_commit_messages_builds_client():
    with patch("zcommit.llm.commit_message_generator.CerebrasClient") as mock_client_cls:
        mock_client_cls.return_value.complete.return_value = Completion(ANSWER)
        messages = generate_commit_messages("csk-key", BUNDLE, model="llama3.1-8b")
    mock_client_cls.assert_called_once_with(api_key="csk-key", model="llama3.1-8b")
    assert messages[0] == "feat: greet the user"


if __name__ == "__main__":
    unittest.main()
