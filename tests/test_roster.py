"""
Tests for the roster and session codes.
"""

import random

from splitbills.engine import (
    SESSION_CODE_ALPHABET,
    RosterManager,
    generate_session_code,
    is_valid_session_code,
)


class TestRosterManager:
    """Ordered, case-sensitive set of names."""

    def test_add_keeps_insertion_order(self):
        roster = RosterManager()
        roster.add("Ben")
        roster.add("Ana")
        assert roster.names == ["Ben", "Ana"]

    def test_adding_twice_is_a_no_op(self):
        roster = RosterManager(["Ana"])
        assert roster.add("Ana") is False
        assert roster.names == ["Ana"]

    def test_names_are_case_sensitive(self):
        roster = RosterManager(["Ana"])
        assert roster.add("ana") is True
        assert "ana" in roster
        assert len(roster) == 2

    def test_remove(self):
        roster = RosterManager(["Ana", "Ben"])
        assert roster.remove("Ana") is True
        assert roster.names == ["Ben"]
        assert "Ana" not in roster

    def test_remove_absent_name_notifies_nobody(self):
        calls = []
        roster = RosterManager(["Ana"])
        roster.subscribe(calls.append)

        assert roster.remove("Zoe") is False
        assert calls == []

    def test_listeners_hear_removals(self):
        calls = []
        roster = RosterManager(["Ana", "Ben"])
        roster.subscribe(calls.append)

        roster.remove("Ben")

        assert calls == ["Ben"]

    def test_clear_is_silent(self):
        calls = []
        roster = RosterManager(["Ana", "Ben"])
        roster.subscribe(calls.append)

        roster.clear()

        assert roster.names == []
        assert calls == []

    def test_names_is_a_copy(self):
        roster = RosterManager(["Ana"])
        roster.names.append("Zoe")
        assert roster.names == ["Ana"]


class TestSessionCode:
    """Four-symbol codes without look-alike characters."""

    def test_alphabet(self):
        assert len(SESSION_CODE_ALPHABET) == 32
        assert len(set(SESSION_CODE_ALPHABET)) == 32
        for ambiguous in "0O1I":
            assert ambiguous not in SESSION_CODE_ALPHABET

    def test_code_shape(self):
        for _ in range(50):
            code = generate_session_code()
            assert len(code) == 4
            assert is_valid_session_code(code)

    def test_seeded_rng_is_reproducible(self):
        first = generate_session_code(random.Random(7))
        second = generate_session_code(random.Random(7))
        assert first == second

    def test_invalid_codes(self):
        assert not is_valid_session_code("AB1C")
        assert not is_valid_session_code("ABCDE")
        assert not is_valid_session_code("abcd")
