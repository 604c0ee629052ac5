import pytest

from stores import Arrays, CapacityError, DataStack, EngArray, Memory, Variables
from values import ZERO, number, text


def test_variables_get_creates_number_zero():
    variables = Variables()
    assert variables.get_optional("x") is None
    assert variables.get("x") == ZERO
    assert variables.has("x")


def test_variables_capacity_is_fatal():
    variables = Variables(capacity=2)
    variables.set("a", number(1))
    variables.set("b", number(2))
    variables.set("a", number(3))
    with pytest.raises(CapacityError, match="too many variables"):
        variables.set("c", number(4))
    with pytest.raises(CapacityError):
        variables.get("d")


def test_variables_snapshot_renders_values():
    variables = Variables()
    variables.set("n", number(2.5))
    variables.set("s", text("hi"))
    assert variables.snapshot() == {"n": "NUM:2.5", "s": "STR:'hi'"}


def test_stack_is_lifo_and_silent_at_the_edges():
    stack = DataStack(capacity=2)
    stack.push(42)
    stack.push(13)
    stack.push(99)
    assert len(stack) == 2
    assert stack.pop() == 13
    assert stack.pop() == 42
    assert stack.pop() == 0.0


def test_memory_ignores_out_of_range_addresses():
    memory = Memory(size=4)
    memory.store(3, 7.5)
    memory.store(4, 1.0)
    memory.store(-1, 1.0)
    assert memory.load(3) == 7.5
    assert memory.load(4) == 0.0
    assert memory.load(-1) == 0.0


def test_array_append_get_and_gaps():
    array = EngArray("nums", capacity=4)
    array.append(number(1))
    array.append(text("two"))
    assert array.size == 2
    assert array.get(1) == text("two")
    assert array.get(5) == ZERO
    array.set(3, number(9))
    assert array.size == 4
    assert array.get(2) == ZERO
    array.append(number(10))
    assert array.size == 4
    array.set(-1, number(1))
    array.set(4, number(1))
    assert array.items() == [number(1), text("two"), ZERO, number(9)]


def test_arrays_capacity_is_fatal():
    arrays = Arrays(capacity=1)
    first = arrays.get("a")
    assert arrays.get("a") is first
    assert arrays.find("b") is None
    with pytest.raises(CapacityError, match="too many arrays"):
        arrays.get("b")
