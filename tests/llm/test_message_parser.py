"""Tests for extracting commit message candidates from model output."""

import unittest

from zcommit.llm.commit_message_generator import (
    clean_line,
    extract_from_reasoning,
    is_candidate,
    parse_messages,
)


class TestCleanLine(unittest.TestCase):
    def test_enumeration_markers(self):
        for line in ("1. feat: add x", "2) feat: add x", "3- feat: add x", "- feat: add x", "* feat: add x", "• feat: add x"):
            self.assertEqual(clean_line(line), "feat: add x", line)

    def test_quotes_and_bold(self):
        self.assertEqual(clean_line('1. "fix: handle empty diff"'), "fix: handle empty diff")
        self.assertEqual(clean_line("`chore: bump deps`"), "chore: bump deps")
        self.assertEqual(clean_line("**1. docs: update readme**"), "docs: update readme")

    def test_inner_double_asterisks_kept(self):
        self.assertEqual(clean_line("1. feat: accept **kwargs in client"), "feat: accept **kwargs in client")
        self.assertEqual(clean_line("- **fix: forward **options**"), "fix: forward **options")
        self.assertEqual(clean_line('2. "**refactor: split parser**"'), "refactor: split parser")

    def test_whitespace_collapsed(self):
        self.assertEqual(clean_line("  feat:   add    x  "), "feat: add x")


class TestIsCandidate(unittest.TestCase):
    def test_length_bounds(self):
        self.assertFalse(is_candidate("a:b"))
        self.assertTrue(is_candidate("a: b"))
        self.assertTrue(is_candidate("feat: " + "x" * 193))
        self.assertFalse(is_candidate("feat: " + "x" * 194))

    def test_requires_subject_shape(self):
        self.assertFalse(is_candidate("Here are three options:"))
        self.assertFalse(is_candidate("no colon at all"))
        self.assertTrue(is_candidate("no colon at all", require_colon=False))


class TestParseMessages(unittest.TestCase):
    def test_numbered_list(self):
        raw = "1. feat: a\n2. fix: b\n3. chore: c"
        self.assertEqual(parse_messages(raw), ["feat: a", "fix: b", "chore: c"])

    def test_preamble_and_blank_lines_ignored(self):
        raw = (
            "Here are three commit messages:\n"
            "\n"
            "1. feat(cli): add config command\n"
            "\n"
            "2. fix(git): detect merge in progress\n"
            "3. refactor: split diff bundler\n"
        )
        self.assertEqual(
            parse_messages(raw),
            [
                "feat(cli): add config command",
                "fix(git): detect merge in progress",
                "refactor: split diff bundler",
            ],
        )

    def test_at_most_three(self):
        raw = "\n".join(f"{i}. feat: change number {i}" for i in range(1, 6))
        messages = parse_messages(raw)
        self.assertEqual(len(messages), 3)
        self.assertEqual(messages[0], "feat: change number 1")

    def test_duplicates_removed(self):
        raw = "1. feat: add x\n2. feat: add x\n3. fix: y z"
        self.assertEqual(parse_messages(raw), ["feat: add x", "fix: y z"])

    def test_nothing_usable(self):
        self.assertEqual(parse_messages("Sorry, I cannot help with that."), [])
        self.assertEqual(parse_messages(""), [])


class TestExtractFromReasoning(unittest.TestCase):
    REASONING = (
        "The diff adds a parser and fixes signal handling.\n"
        "Options:\n"
        "1. feat: add response parser\n"
        '2) "fix(cli): restore terminal on ctrl-c"\n'
        "maybe also mention tests\n"
        "3. test: cover selector wrap-around\n"
        "4. chore: tidy imports\n"
    )

    def test_fills_from_numbered_lines(self):
        self.assertEqual(
            extract_from_reasoning(self.REASONING, []),
            [
                "feat: add response parser",
                "fix(cli): restore terminal on ctrl-c",
                "test: cover selector wrap-around",
            ],
        )

    def test_tops_up_existing_without_duplicates(self):
        messages = extract_from_reasoning(self.REASONING, ["feat: add response parser"])
        self.assertEqual(
            messages,
            [
                "feat: add response parser",
                "fix(cli): restore terminal on ctrl-c",
                "test: cover selector wrap-around",
            ],
        )

    def test_ignores_non_conventional_lines(self):
        self.assertEqual(extract_from_reasoning("1. Update the code\n2. something else", []), [])


if __name__ == "__main__":
    unittest.main()
