"""Split a comment body into fragments that fit GitHub's comment size limit.

GitHub rejects comment bodies over 65,536 characters; we cut well below that.
Cuts land on newlines when possible. Markup left open at a cut (a ``` fence
or a <details> section) is closed at the end of the fragment and re-opened
at the start of the next one.

Fence and tag handling counts delimiters; it does not parse markdown. Fences
or tags that appear inside other text (e.g. a literal "```" in a resource
address) are counted too.
"""

from __future__ import annotations

from dataclasses import dataclass

from plancomment.markdown import DETAILS_CLOSE, DETAILS_OPEN, FENCE

MAX_COMMENT_SIZE = 60000  # GitHub limit is 65,536; leave room for metadata.
GITHUB_COMMENT_LIMIT = 65536

CONTINUED_OPEN = "<details>\n<summary><b>Continued...</b></summary>\n\n"
CONTINUED_CLOSE = "\n</details>"
DETAILS_COLLAPSED = "<details>"
DETAILS_EXPANDED = "<details open>"
MAX_TAG_LENGTH = 64
MAX_INFO_STRING = 32

# Smallest limit that leaves a usable window after decoration and markup repairs.
MIN_COMMENT_SIZE = 1000


@dataclass(frozen=True)
class Cut:
    """One slice of the original document plus the markup around it."""
    text: str
    prefix: str = ""
    consumed_newline: bool = False

    @property
    def fragment(self) -> str:
        """Undecorated fragment: re-opened markup, the slice, then repairs."""
        return repair_boundary(self.prefix + self.text)


def open_fence_line(chunk: str, *, line_complete: bool = False) -> str | None:
    """Fence to re-open for the fence left unterminated in chunk, if any.

    Only the delimiter and its info string are carried over. A bare fence is
    used when the opener is not at the start of a line or its line was cut
    before it ended.
    """
    if chunk.count(FENCE) % 2 == 0:
        return None
    start = chunk.rfind(FENCE)
    if start > 0 and chunk[start - 1] != "\n":
        return FENCE
    end = chunk.find("\n", start)
    if end == -1:
        if not line_complete:
            return FENCE
        end = len(chunk)
    words = chunk[start + len(FENCE):end].split()
    info = words[0] if words else ""
    if len(info) > MAX_INFO_STRING or FENCE[0] in info:
        return FENCE
    return FENCE + info


def unclosed_details(chunk: str) -> int:
    """Number of <details> sections opened but not closed in chunk."""
    return max(0, chunk.count(DETAILS_OPEN) - chunk.count(DETAILS_CLOSE))


def unclosed_details_tags(chunk: str) -> list[str]:
    """Opening tags for the unclosed <details> sections, outermost first.

    Closing tags are matched against the most recent openers.
    """
    stack: list[str] = []
    pos = 0
    while True:
        opener = chunk.find(DETAILS_OPEN, pos)
        closer = chunk.find(DETAILS_CLOSE, pos)
        if opener == -1 and closer == -1:
            break
        if opener != -1 and (closer == -1 or opener < closer):
            tag_end = chunk.find(">", opener, opener + MAX_TAG_LENGTH)
            tag = chunk[opener:tag_end + 1] if tag_end != -1 else ""
            stack.append(DETAILS_EXPANDED if " open" in tag else DETAILS_COLLAPSED)
            pos = opener + len(DETAILS_OPEN)
        else:
            if stack:
                stack.pop()
            pos = closer + len(DETAILS_CLOSE)
    count = unclosed_details(chunk)
    return stack[len(stack) - count:] if count else []


def repair_boundary(chunk: str) -> str:
    """Close an unterminated fence, then any dangling <details> sections."""
    if chunk.count(FENCE) % 2:
        chunk += "\n" + FENCE
    chunk += ("\n" + DETAILS_CLOSE) * unclosed_details(chunk)
    return chunk


def reopen_prefix(chunk: str, *, line_complete: bool = False) -> str:
    """Markup to put in front of the next fragment so chunk's open state carries over."""
    prefix = "".join(f"{tag}\n" for tag in unclosed_details_tags(chunk))
    fence_line = open_fence_line(chunk, line_complete=line_complete)
    if fence_line is not None:
        prefix += fence_line + "\n"
    return prefix


def _take(remaining: str, window: int) -> tuple[str, bool]:
    if len(remaining) <= window:
        return remaining, False
    # Newline at index 0 would give an empty slice; skip it.
    newline = remaining.rfind("\n", 1, window + 1)
    if newline == -1:
        return remaining[:window], False
    return remaining[:newline], True


def cut_document(body: str, budget: int) -> list[Cut]:
    """Cut body into slices whose repaired fragments are each <= budget.

    Raises:
        ValueError: budget cannot hold even one character plus its markup.
    """
    cuts: list[Cut] = []
    prefix = ""
    remaining = body
    while remaining:
        window = budget - len(prefix)
        while True:
            if window < 1:
                raise ValueError(f"comment limit too small to hold a fragment (budget {budget})")
            text, newline = _take(remaining, window)
            cut = Cut(text=text, prefix=prefix, consumed_newline=newline)
            overflow = len(cut.fragment) - budget
            if overflow <= 0:
                break
            window = min(window, len(text)) - overflow
        cuts.append(cut)
        remaining = remaining[len(text) + (1 if newline else 0):]
        prefix = reopen_prefix(prefix + text, line_complete=newline)
    return cuts


def part_header(index: int, total: int) -> str:
    """Part header."""
    return f"**Part {index}/{total}**\n\n"


def decoration_reserve(body_length: int) -> int:
    """Characters reserved per fragment for the part header and continuation wrapper."""
    # Fragments are never empty, so the part count is at most body_length.
    largest = 10 ** len(str(max(body_length, 1))) - 1
    return len(part_header(largest, largest)) + len(CONTINUED_OPEN) + len(CONTINUED_CLOSE)


def label_fragments(fragments: list[str]) -> list[str]:
    """Prefix every fragment with its part number; wrap all but the first."""
    if len(fragments) <= 1:
        return list(fragments)
    total = len(fragments)
    labelled = [part_header(1, total) + fragments[0]]
    for index, fragment in enumerate(fragments[1:], start=2):
        labelled.append(part_header(index, total) + CONTINUED_OPEN + fragment + CONTINUED_CLOSE)
    return labelled


def split_comment(body: str, limit: int = MAX_COMMENT_SIZE) -> list[str]:
    """Split body into comment fragments of at most limit characters.

    A body that already fits is returned unchanged as the only fragment.

    Raises:
        ValueError: limit is too small to hold any fragment.
    """
    if len(body) <= limit:
        return [body]
    budget = limit - decoration_reserve(len(body))
    cuts = cut_document(body, budget)
    return label_fragments([cut.fragment for cut in cuts])
