"""Unit tests for template scanning and slot descriptors."""

from __future__ import annotations

import pytest

from dollarsign.parsing import (
    CLOSE_ESCAPE,
    OPEN_ESCAPE,
    ExpressionDescriptor,
    ExpressionSlot,
    Literal,
    parse_descriptor,
    scan,
    unescape,
)
from dollarsign.parsing.scanner import find_slot_end, has_slots


@pytest.mark.feature("scanning")
class TestScanStandardMode:
    """Tests for {expr} slots."""

    def test_plain_text_is_single_literal(self) -> None:
        """Text without braces is one literal segment."""
        assert scan("hello world") == [Literal("hello world")]

    def test_empty_template(self) -> None:
        assert scan("") == []

    def test_slots_in_encounter_order(self) -> None:
        """Literals and slots alternate in source order."""
        segments = scan("Hi {name}, you are {age}.")
        assert [type(s) for s in segments] == [Literal, ExpressionSlot, Literal, ExpressionSlot, Literal]
        assert segments[1].expression == "name"
        assert segments[3].expression == "age"
        assert segments[4] == Literal(".")

    def test_slot_offsets_cover_inner_text(self) -> None:
        template = "a{xyz}b"
        slot = scan(template)[1]
        assert template[slot.start:slot.end] == "xyz"

    def test_double_braces_become_markers(self) -> None:
        """{{ and }} are escapes, never slots."""
        segments = scan("{{x}}")
        assert segments == [Literal(f"{OPEN_ESCAPE}x{CLOSE_ESCAPE}")]
        assert unescape(segments[0].text) == "{x}"

    def test_quadruple_braces(self) -> None:
        segments = scan("{{{{x}}}}")
        assert unescape("".join(s.text for s in segments)) == "{{x}}"

    def test_unmatched_open_brace_is_literal(self) -> None:
        """An opener with no closer stays literal text."""
        assert unescape("".join(s.text for s in scan("{abc"))) == "{abc"

    def test_nested_braces_inside_slot(self) -> None:
        """Brace depth is tracked so inner braces do not close the slot."""
        segments = scan('{$"{a}"}')
        assert len(segments) == 1
        assert segments[0].expression == '$"{a}"'

    def test_braces_in_string_literal_ignored(self) -> None:
        segments = scan('{name == "}" ? 1 : 2}')
        assert segments[0].expression == 'name == "}" ? 1 : 2'

    def test_dollar_slot_is_verbatim(self) -> None:
        """${...} is inert text in standard mode."""
        segments = scan("cost ${price}")
        assert not any(isinstance(s, ExpressionSlot) for s in segments)
        assert "".join(s.text for s in segments) == "cost ${price}"


@pytest.mark.feature("scanning")
class TestScanDollarMode:
    """Tests for ${expr} slots."""

    def test_dollar_slot_evaluated(self) -> None:
        segments = scan("Hello ${name}", dollar_mode=True)
        assert segments[1].expression == "name"

    def test_plain_braces_verbatim(self) -> None:
        """A bare {expr} is left alone in dollar mode."""
        segments = scan("{name} and ${name}", dollar_mode=True)
        assert segments[0] == Literal("{name} and ")
        assert isinstance(segments[1], ExpressionSlot)

    def test_has_slots(self) -> None:
        assert has_slots("{x}")
        assert not has_slots("{x}", dollar_mode=True)
        assert has_slots("${x}", dollar_mode=True)


class TestFindSlotEnd:
    """Tests for the quote-aware closing-brace search."""

    def test_simple(self) -> None:
        assert find_slot_end("{ab}", 1) == 3

    def test_unclosed(self) -> None:
        assert find_slot_end("{ab", 1) is None

    def test_escaped_quote(self) -> None:
        text = r'{"a\"}"}'
        assert find_slot_end(text, 1) == len(text) - 1


@pytest.mark.feature("scanning")
class TestParseDescriptor:
    """Tests for alignment and format extraction."""

    def test_expression_only(self) -> None:
        assert parse_descriptor(" name ") == ExpressionDescriptor("name")

    def test_format(self) -> None:
        assert parse_descriptor("price:C2") == ExpressionDescriptor("price", None, "C2")

    def test_alignment_and_format(self) -> None:
        assert parse_descriptor("value,10:F2") == ExpressionDescriptor("value", 10, "F2")

    def test_negative_alignment(self) -> None:
        assert parse_descriptor("name,-8") == ExpressionDescriptor("name", -8)

    def test_date_format_keeps_colons(self) -> None:
        """Everything after the first format colon is the specifier."""
        assert parse_descriptor("date:HH:mm:ss").format_specifier == "HH:mm:ss"

    def test_ternary_colon_not_format(self) -> None:
        descriptor = parse_descriptor('age >= 18 ? "adult" : "minor"')
        assert descriptor.format_specifier is None
        assert descriptor.raw_text == 'age >= 18 ? "adult" : "minor"'

    def test_nested_ternary(self) -> None:
        descriptor = parse_descriptor('score>=90?"A":score>=80?"B":"C"')
        assert descriptor.format_specifier is None

    def test_ternary_with_format(self) -> None:
        descriptor = parse_descriptor("flag ? a : b:F1")
        assert descriptor.raw_text == "flag ? a : b"
        assert descriptor.format_specifier == "F1"

    def test_coalesce_is_not_ternary(self) -> None:
        descriptor = parse_descriptor("name ?? other:G")
        assert descriptor.raw_text == "name ?? other"
        assert descriptor.format_specifier == "G"

    def test_null_conditional_is_not_ternary(self) -> None:
        descriptor = parse_descriptor("user?.Name:G")
        assert descriptor.raw_text == "user?.Name"
        assert descriptor.format_specifier == "G"

    def test_nested_commas_ignored(self) -> None:
        descriptor = parse_descriptor("Math.Max(a, b),5")
        assert descriptor.raw_text == "Math.Max(a, b)"
        assert descriptor.alignment == 5

    def test_non_numeric_alignment_is_expression(self) -> None:
        """A comma not followed by an integer stays part of the expression."""
        assert parse_descriptor("a,b").raw_text == "a,b"
        assert parse_descriptor("a,b").alignment is None

    def test_empty_format_is_none(self) -> None:
        assert parse_descriptor("x: ").format_specifier is None
