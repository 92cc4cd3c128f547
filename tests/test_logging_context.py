"""Tests for logging context propagation."""

import threading

import pytest

from duty_notifier.logging.context import (
    clear_log_context,
    get_log_context,
    log_context,
    pop_log_context,
    push_log_context,
)


@pytest.fixture(autouse=True)
def clean_context():
    """Clear logging context before and after each test."""
    clear_log_context()
    yield
    clear_log_context()


def test_empty_context():
    assert get_log_context() == {}


def test_push_and_pop():
    token = push_log_context(run_id="abc123", person_key="Q1")
    assert get_log_context() == {"run_id": "abc123", "person_key": "Q1"}
    pop_log_context(token)
    assert get_log_context() == {}


def test_nested_push_shadows_and_restores():
    outer = push_log_context(run_id="abc123", assignment_id="INV-1")
    inner = push_log_context(assignment_id="INV-2")

    assert get_log_context() == {"run_id": "abc123", "assignment_id": "INV-2"}

    pop_log_context(inner)
    assert get_log_context().get("assignment_id") == "INV-1"
    pop_log_context(outer)


def test_returned_context_is_a_copy():
    with log_context(run_id="abc123"):
        snapshot = get_log_context()
        snapshot["run_id"] = "changed"
        assert get_log_context().get("run_id") == "abc123"


def test_context_manager_restores_on_exception():
    with pytest.raises(RuntimeError):
        with log_context(run_id="abc123"):
            raise RuntimeError("boom")

    assert get_log_context() == {}


def test_threads_do_not_see_each_others_context():
    seen = {}
    ready = threading.Barrier(2)

    def worker(name):
        with log_context(person_key=name):
            ready.wait()
            seen[name] = get_log_context().get("person_key")

    threads = [threading.Thread(target=worker, args=(key,)) for key in ("Q1", "Q2")]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=5)

    assert seen == {"Q1": "Q1", "Q2": "Q2"}
