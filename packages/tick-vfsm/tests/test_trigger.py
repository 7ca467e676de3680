"""Tests for Trigger evaluation, reset and binding."""
from __future__ import annotations

import pytest

from tick_vfsm import CallbackRegistry, Trigger, TriggerKind


def test_default_is_half_second_timer():
    trigger = Trigger.default()
    assert trigger.kind is TriggerKind.TIMER
    assert trigger.duration == 0.5
    assert trigger.check_function_name is None


def test_ids_are_unique():
    assert Trigger().id != Trigger().id


def test_triggers_compare_by_identity():
    a = Trigger.timer(1.0)
    b = Trigger.timer(1.0)
    assert a != b
    assert len({a, b}) == 2


def test_negative_duration_rejected():
    with pytest.raises(ValueError):
        Trigger.timer(-1.0)


class TestTimer:
    def test_fires_when_elapsed_reaches_duration(self):
        trigger = Trigger.timer(1.0)

        assert trigger.evaluate(0.4) is False
        assert trigger.evaluate(0.4) is False
        assert trigger.evaluate(0.4) is True
        assert trigger.fired is True

    def test_fires_exactly_once_until_reset(self):
        trigger = Trigger.timer(0.5)

        assert trigger.evaluate(1.0) is True
        assert trigger.evaluate(1.0) is False
        assert trigger.evaluate(1.0) is False

    def test_fires_on_exact_duration(self):
        trigger = Trigger.timer(0.5)
        assert trigger.evaluate(0.5) is True

    def test_zero_duration_fires_immediately(self):
        trigger = Trigger.timer(0.0)
        assert trigger.evaluate(0.0) is True

    def test_reset_clears_elapsed_and_fired(self):
        trigger = Trigger.timer(1.0)
        trigger.evaluate(2.0)

        trigger.reset()

        assert trigger.elapsed == 0.0
        assert trigger.fired is False
        assert trigger.evaluate(0.5) is False
        assert trigger.evaluate(0.5) is True

    def test_restore_progress(self):
        trigger = Trigger.timer(1.0)
        trigger.restore_progress(0.75, False)

        assert trigger.elapsed == 0.75
        assert trigger.evaluate(0.25) is True


class TestCondition:
    def test_unbound_condition_is_inert(self):
        trigger = Trigger.condition("ready")

        assert trigger.is_bound is False
        assert trigger.evaluate(1.0) is False

    def test_bound_condition_polls_predicate(self):
        flag = {"ready": False}
        registry = CallbackRegistry()
        registry.register_condition("ready", lambda: flag["ready"])
        trigger = Trigger.condition("ready")

        assert trigger.bind(registry) is True
        assert trigger.evaluate(0.1) is False
        flag["ready"] = True
        assert trigger.evaluate(0.25) is True

    def test_condition_latches_until_reset(self):
        registry = CallbackRegistry()
        registry.register_condition("always", lambda: True)
        trigger = Trigger.condition("always")
        trigger.bind(registry)

        assert trigger.evaluate(0.25) is True
        assert trigger.evaluate(0.1) is False
        trigger.reset()
        assert trigger.evaluate(0.25) is True

    def test_failed_binding_leaves_trigger_inert(self):
        trigger = Trigger.condition("missing")

        assert trigger.bind(CallbackRegistry()) is False
        assert trigger.evaluate(0.1) is False

    def test_rebinding_replaces_predicate(self):
        first = CallbackRegistry()
        first.register_condition("ready", lambda: False)
        second = CallbackRegistry()
        second.register_condition("ready", lambda: True)
        trigger = Trigger.condition("ready")

        trigger.bind(first)
        assert trigger.evaluate(0.1) is False
        trigger.bind(second)
        assert trigger.evaluate(0.25) is True

    def test_unbind(self):
        registry = CallbackRegistry()
        registry.register_condition("ready", lambda: True)
        trigger = Trigger.condition("ready")
        trigger.bind(registry)

        trigger.unbind()

        assert trigger.is_bound is False
        assert trigger.evaluate(0.1) is False

    def test_timer_ignores_binding(self):
        trigger = Trigger.timer(1.0)
        assert trigger.bind(CallbackRegistry()) is False
        assert trigger.evaluate(1.0) is True
