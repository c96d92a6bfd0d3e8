from __future__ import annotations

import re
from dataclasses import dataclass, field
# The regex parser is a CPython internal (re._parser since 3.11, sre_parse
# before).  Its tree shape is what the line/multi-line classification walks,
# hence requires-python >= 3.11 in pyproject.toml.
from re import _constants as sre_c
from re import _parser as sre_parse

NEWLINE = ord("\n")

_REPEAT_OPS = (sre_c.MAX_REPEAT, sre_c.MIN_REPEAT, sre_c.POSSESSIVE_REPEAT)
_ASSERT_OPS = (sre_c.ASSERT, sre_c.ASSERT_NOT)
# \s, \D and \W also match a newline.
_NEWLINE_CATEGORIES = (
    sre_c.CATEGORY_SPACE,
    sre_c.CATEGORY_NOT_DIGIT,
    sre_c.CATEGORY_NOT_WORD,
)


@dataclass(frozen=True, slots=True)
class Match:
    text: bytes
    # One (start, end) per group, group 0 first.  (-1, -1) = did not participate.
    spans: tuple[tuple[int, int], ...]
    group_names: dict[str, int] = field(default_factory=dict)

    @property
    def start(self) -> int:
        return self.spans[0][0]

    @property
    def end(self) -> int:
        return self.spans[0][1]

    def group(self, ref: int | str = 0) -> bytes | None:
        """Return the bytes captured by *ref*, or None if it did not match.

        Unknown group numbers and names are reported as None as well.
        """
        if isinstance(ref, str):
            if ref not in self.group_names:
                return None
            ref = self.group_names[ref]
        if not 0 <= ref < len(self.spans):
            return None
        start, end = self.spans[ref]
        if start < 0:
            return None
        return self.text[start:end]

    @classmethod
    def from_re(cls, m: re.Match[bytes], text: bytes) -> Match:
        spans = tuple(m.span(i) for i in range(m.re.groups + 1))
        return cls(text=text, spans=spans, group_names=dict(m.re.groupindex))


class Pattern:
    def __init__(self, source: str | bytes, flags: int = 0) -> None:
        raw = source.encode() if isinstance(source, str) else source
        # Raises re.error on malformed patterns.
        self.regex: re.Pattern[bytes] = re.compile(raw, flags)
        self.source = source
        parsed = sre_parse.parse(raw, flags)
        self.spans_lines: bool = _spans_lines(parsed, parsed.state.flags)
        # Also counts \s, \D, \W and negated classes, which can match a
        # newline but leave the pattern in line mode.
        self.may_span_lines: bool = self.spans_lines or _spans_lines(
            parsed, parsed.state.flags, implicit=True
        )

    def __repr__(self) -> str:
        mode = "multi-line" if self.spans_lines else "line"
        return f"Pattern({self.source!r}, {mode})"

    def find(
        self, data: bytes | bytearray, allow_partial: bool = False
    ) -> tuple[Match | None, int]:
        """Look for the next match in *data*.

        Returns ``(match, consumed)`` where *consumed* is the number of bytes
        at the head of *data* the caller must drop.  Bytes may be consumed
        even when no match is found (dismissed lines in line mode).
        """
        if not data:
            return None, 0
        if self.spans_lines:
            return self._find_span(data)
        return self._find_line(data, allow_partial)

    def _find_span(self, data: bytes | bytearray) -> tuple[Match | None, int]:
        m = self.regex.search(data)
        if m is not None and m.end() == 0:
            # An empty match at the head would consume nothing.
            m = self.regex.search(data, 1)
        if m is None:
            return None, 0
        text = bytes(data[: m.end()])
        return Match.from_re(m, text), m.end()

    def _find_line(
        self, data: bytes | bytearray, allow_partial: bool
    ) -> tuple[Match | None, int]:
        pos = 0
        size = len(data)
        while pos < size:
            nl = data.find(b"\n", pos)
            if nl < 0:
                if not allow_partial:
                    break
                line_end = next_pos = size
            else:
                line_end, next_pos = nl, nl + 1
                if line_end > pos and data[line_end - 1] == ord("\r"):
                    line_end -= 1
            line = bytes(data[pos:line_end])
            m = self.regex.search(line)
            if m is not None:
                return Match.from_re(m, line), next_pos
            pos = next_pos
        return None, pos


def _spans_lines(
    items: sre_parse.SubPattern | list, flags: int, implicit: bool = False
) -> bool:
    for op, av in items:
        if op is sre_c.LITERAL:
            if av == NEWLINE:
                return True
        elif op is sre_c.NOT_LITERAL:
            if implicit and av != NEWLINE:
                return True
        elif op is sre_c.ANY:
            if flags & sre_c.SRE_FLAG_DOTALL:
                return True
        elif op is sre_c.IN:
            if _class_has_newline(av, implicit):
                return True
        elif op is sre_c.SUBPATTERN:
            _group, add_flags, del_flags, sub = av
            if _spans_lines(sub, (flags | add_flags) & ~del_flags, implicit):
                return True
        elif op in _REPEAT_OPS:
            if _spans_lines(av[2], flags, implicit):
                return True
        elif op in _ASSERT_OPS:
            if _spans_lines(av[1], flags, implicit):
                return True
        elif op is sre_c.ATOMIC_GROUP:
            if _spans_lines(av, flags, implicit):
                return True
        elif op is sre_c.BRANCH:
            if any(_spans_lines(branch, flags, implicit) for branch in av[1]):
                return True
        elif op is sre_c.GROUPREF_EXISTS:
            _cond, yes, no = av
            if _spans_lines(yes, flags, implicit) or (
                no is not None and _spans_lines(no, flags, implicit)
            ):
                return True
    return False


def _class_has_newline(members: list, implicit: bool = False) -> bool:
    """Whether a character class names a newline.

    Negated classes and categories only reach a newline implicitly; they
    count when *implicit* is set.
    """
    if members and members[0][0] is sre_c.NEGATE:
        if not implicit:
            return False
        # [^...] matches a newline unless it excludes one.
        return not _members_cover_newline(members[1:], implicit=True)
    return _members_cover_newline(members, implicit)


def _members_cover_newline(members: list, implicit: bool) -> bool:
    for op, av in members:
        if op is sre_c.LITERAL and av == NEWLINE:
            return True
        if op is sre_c.RANGE and av[0] <= NEWLINE <= av[1]:
            return True
        if implicit and op is sre_c.CATEGORY and av in _NEWLINE_CATEGORIES:
            return True
    return False
