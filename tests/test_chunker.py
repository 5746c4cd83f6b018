"""Tests for plancomment.chunker splitting and boundary repair."""
from __future__ import annotations

import random

import pytest

from plancomment.chunker import (
    CONTINUED_CLOSE,
    CONTINUED_OPEN,
    MAX_COMMENT_SIZE,
    Cut,
    cut_document,
    decoration_reserve,
    label_fragments,
    open_fence_line,
    repair_boundary,
    reopen_prefix,
    split_comment,
)
from plancomment.changes import ChangeBucket
from plancomment.report import ReportOptions, render_bucket

FENCE = "```"


def is_balanced(fragment: str) -> bool:
    return (
        fragment.count(FENCE) % 2 == 0
        and fragment.count("<details") == fragment.count("</details>")
    )


def strip_decoration(fragments: list[str]) -> list[str]:
    total = len(fragments)
    stripped = []
    for index, fragment in enumerate(fragments, start=1):
        header = f"**Part {index}/{total}**\n\n"
        assert fragment.startswith(header)
        fragment = fragment[len(header):]
        if index > 1:
            assert fragment.startswith(CONTINUED_OPEN)
            assert fragment.endswith(CONTINUED_CLOSE)
            fragment = fragment[len(CONTINUED_OPEN):-len(CONTINUED_CLOSE)]
        stripped.append(fragment)
    return stripped


def random_document(rng: random.Random, target: int) -> str:
    """Well-nested markdown: plain lines, <details> sections, diff fences, long lines."""
    lines: list[str] = []
    depth = 0
    in_fence = False
    while sum(len(ln) + 1 for ln in lines) < target:
        roll = rng.random()
        if in_fence:
            if roll < 0.1:
                lines.append(FENCE)
                in_fence = False
            else:
                op = rng.choice("+-!")
                lines.append(f"{op} module.m{rng.randint(0, 99)}.aws_instance.n{rng.randint(0, 9999)}")
        elif roll < 0.08 and depth < 2:
            lines.append(rng.choice(["<details>", "<details open>"]))
            lines.append("<summary>")
            lines.append("<b>Terraform Plan: 1 to be created.</b>")
            lines.append("</summary>")
            depth += 1
        elif roll < 0.14 and depth:
            lines.append("</details>")
            depth -= 1
        elif roll < 0.22:
            lines.append(f"{FENCE}diff")
            in_fence = True
        elif roll < 0.25:
            lines.append("x" * rng.randint(200, 900))
        elif roll < 0.30:
            lines.append("")
        else:
            lines.append("#### " + "word " * rng.randint(0, 12))
    if in_fence:
        lines.append(FENCE)
    lines.extend(["</details>"] * depth)
    return "\n".join(lines) + rng.choice(["", "\n"])


class TestRepairBoundary:
    def test_balanced_chunk_unchanged(self):
        chunk = "<details>\n<summary>s</summary>\n```diff\n+ a\n```\n</details>"
        assert repair_boundary(chunk) == chunk

    def test_closes_open_fence(self):
        assert repair_boundary("```diff\n+ a") == "```diff\n+ a\n```"

    def test_closes_open_details(self):
        assert repair_boundary("<details open>\nbody") == "<details open>\nbody\n</details>"

    def test_closes_fence_before_details(self):
        assert repair_boundary("<details>\n```diff\n+ a") == "<details>\n```diff\n+ a\n```\n</details>"

    def test_closes_every_unclosed_details(self):
        repaired = repair_boundary("<details>\n<details>\nx")
        assert repaired.endswith("x\n</details>\n</details>")

    def test_extra_closing_tags_left_alone(self):
        assert repair_boundary("x\n</details>") == "x\n</details>"


class TestReopenPrefix:
    def test_nothing_open(self):
        assert reopen_prefix("```diff\n+ a\n```\n") == ""

    def test_reopens_details_then_fence(self):
        assert reopen_prefix("<details>\n<summary>s</summary>\n```diff\n+ a") == "<details>\n```diff\n"

    def test_keeps_expanded_state_of_each_section(self):
        chunk = "<details open>\n<summary>a</summary>\n<details>\n<summary>b</summary>\nbody"
        assert reopen_prefix(chunk) == "<details open>\n<details>\n"

    def test_closed_sections_are_not_reopened(self):
        chunk = "<details>\nx\n</details>\n<details open>\ny"
        assert reopen_prefix(chunk) == "<details open>\n"

    def test_fence_line_cut_at_newline_keeps_info_string(self):
        assert open_fence_line("text\n```diff", line_complete=True) == "```diff"
        assert open_fence_line("```diff\n```") is None

    def test_fence_line_cut_mid_line_reopens_bare_fence(self):
        assert open_fence_line("text\n```diff") == "```"
        assert open_fence_line("```" + "x" * 500) == "```"

    def test_fence_inside_a_line_reopens_bare_fence(self):
        assert open_fence_line("header with ```inline fence\nmore") == "```"

    def test_only_first_info_word_is_carried(self):
        assert open_fence_line("```hcl title=main.tf\n+ a") == "```hcl"
        assert open_fence_line("```" + "y" * 100 + "\n+ a") == "```"


class TestSplitComment:
    def test_short_body_returned_unchanged(self):
        body = "<details>\n```diff\n+ a"
        assert split_comment(body, 100) == [body]

    def test_body_exactly_at_limit_is_single_fragment(self):
        body = "a\n" * 50
        assert len(body) == 100
        assert split_comment(body, 100) == [body]

    def test_default_limit(self):
        body = "line\n" * (MAX_COMMENT_SIZE // 5)
        assert split_comment(body) == [body]
        assert len(split_comment(body + "more")) == 2

    def test_plain_lines_round_trip_through_decoration(self):
        body = "\n".join(f"+ aws_instance.server_{i:04d}" for i in range(400))
        fragments = split_comment(body, 1000)
        assert len(fragments) > 1
        assert all(len(f) <= 1000 for f in fragments)
        assert "\n".join(strip_decoration(fragments)) == body

    def test_parts_are_numbered_and_continuations_wrapped(self):
        body = "\n".join("y" * 50 for _ in range(100))
        fragments = split_comment(body, 500)
        total = len(fragments)
        assert fragments[0].startswith(f"**Part 1/{total}**\n\n")
        assert CONTINUED_OPEN not in fragments[0]
        for index, fragment in enumerate(fragments[1:], start=2):
            assert fragment.startswith(f"**Part {index}/{total}**\n\n{CONTINUED_OPEN}")
            assert fragment.endswith(CONTINUED_CLOSE)

    def test_cut_inside_diff_fence_is_closed_and_reopened(self):
        body = (
            "<details>\n<summary>\n<b>Terraform Plan</b>\n</summary>\n```diff\n"
            + "\n".join(f"+ aws_instance.n{i}" for i in range(200))
            + "\n```\n</details>\n"
        )
        fragments = split_comment(body, 1000)
        assert len(fragments) > 1
        assert fragments[0].endswith("\n```\n</details>")
        assert fragments[1].startswith(
            f"**Part 2/{len(fragments)}**\n\n{CONTINUED_OPEN}<details>\n```diff\n"
        )
        assert all(is_balanced(f) for f in fragments)

    def test_hard_split_after_unclosed_fence(self):
        for body in ("```" + "x" * 3000, "```" + "x" * 1500):
            fragments = split_comment(body, 1000)
            assert len(fragments) > 1
            assert all(len(f) <= 1000 for f in fragments)
            assert all(is_balanced(f) for f in fragments)
            for fragment in fragments[1:]:
                assert f"{CONTINUED_OPEN}```\nx" in fragment

            cuts = cut_document(body, 1000 - decoration_reserve(len(body)))
            assert all(cut.prefix in ("", "```\n") for cut in cuts)
            assert "".join(cut.text for cut in cuts) == body

    def test_long_header_line_with_fence(self):
        header = "## Plan for `prod` ```" + "h" * 2500
        plan = "<details>\n<summary>s</summary>\n```diff\n" + "\n".join(
            f"+ aws_instance.n{i}" for i in range(100)
        ) + "\n```\n</details>\n"
        body = header + "\n" + plan
        fragments = split_comment(body, 1000)
        assert all(len(f) <= 1000 for f in fragments)
        assert all(is_balanced(f) for f in fragments)

    def test_split_section_keeps_its_expanded_state(self):
        bucket = ChangeBucket(created=[f"aws_instance.n{i}" for i in range(200)])
        for expanded, tag in ((False, "<details>"), (True, "<details open>")):
            body = render_bucket(bucket, ReportOptions(expand_comment=expanded))
            second = split_comment(body, 1000)[1]
            assert second.split(CONTINUED_OPEN, 1)[1].startswith(f"{tag}\n```diff\n")

    def test_no_newline_forces_hard_split(self):
        body = "z" * 2500
        fragments = split_comment(body, 700)
        assert all(len(f) <= 700 for f in fragments)
        assert "".join(strip_decoration(fragments)) == body

    def test_limit_too_small_raises(self):
        with pytest.raises(ValueError):
            split_comment("x" * 500, 60)


class TestCutDocument:
    def test_newlines_consumed_only_at_cuts(self):
        cuts = cut_document("aaaa\nbbbb\ncccc", 6)
        assert cuts == [
            Cut(text="aaaa", consumed_newline=True),
            Cut(text="bbbb", consumed_newline=True),
            Cut(text="cccc"),
        ]

    def test_leading_newline_is_not_an_empty_cut(self):
        cuts = cut_document("\n" + "q" * 10, 4)
        assert all(cut.text for cut in cuts)
        assert "".join(c.text + ("\n" if c.consumed_newline else "") for c in cuts) == "\n" + "q" * 10


@pytest.mark.parametrize("seed", range(40))
def test_split_properties_on_generated_documents(seed):
    rng = random.Random(seed)
    limit = rng.randint(300, 2500)
    body = random_document(rng, rng.randint(limit + 1, limit * 8))
    if len(body) <= limit:
        body += "\n" + "w" * limit

    fragments = split_comment(body, limit)

    assert len(fragments) > 1
    assert all(len(fragment) <= limit for fragment in fragments)
    assert all(is_balanced(fragment) for fragment in fragments)

    cuts = cut_document(body, limit - decoration_reserve(len(body)))
    rebuilt = "".join(cut.text + ("\n" if cut.consumed_newline else "") for cut in cuts)
    assert rebuilt == body
    assert label_fragments([cut.fragment for cut in cuts]) == fragments
