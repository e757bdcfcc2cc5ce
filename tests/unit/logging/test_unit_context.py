# tests/unit/logging/test_unit_context.py — v2
"""Tests for logging/context.py — contextual logging variables."""

from __future__ import annotations

from ojlink.logging.context import (
    clear_context,
    get_context,
    set_component_context,
    set_subject_context,
    subject_context,
)


class TestLogContext:
    def setup_method(self):
        clear_context()

    def teardown_method(self):
        clear_context()

    def test_initial_state(self):
        ctx = get_context()
        assert ctx.subject_id is None
        assert ctx.run_id is None
        assert ctx.component is None

    def test_set_subject_context(self):
        run_id = set_subject_context("12345678900", "run1")
        ctx = get_context()
        assert run_id == "run1"
        assert ctx.subject_id == "12345678900"
        assert ctx.run_id == "run1"

    def test_generated_run_id(self):
        run_id = set_subject_context("1")
        assert run_id
        assert get_context().run_id == run_id

    def test_set_component_context(self):
        set_component_context("cache_store", "classify")
        ctx = get_context()
        assert ctx.component == "cache_store"
        assert ctx.step == "classify"

    def test_as_dict_filters_none(self):
        set_subject_context("1", "run1")
        assert get_context().as_dict() == {"subject_id": "1", "run_id": "run1"}

    def test_scoped_context_restores(self):
        set_subject_context("outer", "run0")
        with subject_context("inner") as run_id:
            set_component_context("facade", "load")
            assert get_context().subject_id == "inner"
            assert get_context().run_id == run_id
        ctx = get_context()
        assert ctx.subject_id == "outer"
        assert ctx.run_id == "run0"
        assert ctx.component is None

    def test_clear(self):
        set_subject_context("1", "r")
        set_component_context("x")
        clear_context()
        assert get_context().as_dict() == {}
