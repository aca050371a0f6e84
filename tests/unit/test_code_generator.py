from __future__ import annotations

import pytest

from agent_import.db.memory import InMemoryStore
from agent_import.models.entities import NewAgent, Project
from agent_import.services.code_generator import (
    CodeGenerationError,
    LockingSequenceAllocator,
    ScanSequenceAllocator,
    build_allocator,
    derive_prefix,
    format_code,
    generate_agent_code,
)


def _store_agent(store: InMemoryStore, code: str, n: int = 0) -> None:
    store.create(
        NewAgent(
            agent_code=code,
            first_name="A",
            last_name="B",
            email=f"a{n}@example.com",
            phone_number=f"0917{n:07d}",
            channel_id="CH1",
            designation_id="D1",
            project_id="P001",
            user_id="U001",
        )
    )


@pytest.mark.parametrize("name,prefix", [
    ("Metro Sales", "MS"),
    ("Alpha", "AL"),
    ("  metro   sales  east ", "MS"),
    ("X", "X"),
])
def test_derive_prefix(name, prefix):
    assert derive_prefix(name) == prefix


def test_derive_prefix_blank_name():
    with pytest.raises(CodeGenerationError):
        derive_prefix("   ")


def test_format_code_pads_to_five_digits():
    assert format_code("MS", 1) == "MS00001"
    assert format_code("MS", 123456) == "MS123456"


@pytest.mark.parametrize("allocator_cls", [ScanSequenceAllocator, LockingSequenceAllocator])
def test_sequential_codes(allocator_cls):
    store = InMemoryStore()
    project = Project(id="P001", name="Metro Sales")
    allocator = allocator_cls(store)
    first = generate_agent_code(project, allocator, store)
    _store_agent(store, first, 1)
    second = generate_agent_code(project, allocator, store)
    assert (first, second) == ("MS00001", "MS00002")


def test_sequence_continues_after_highest_stored():
    store = InMemoryStore()
    _store_agent(store, "AL00007", 1)
    _store_agent(store, "ALX00099", 2)  # different prefix shape, ignored
    code = generate_agent_code(Project(id="P", name="Alpha"), ScanSequenceAllocator(store), store)
    assert code == "AL00008"


def test_supplied_code_is_upper_cased():
    store = InMemoryStore()
    project = Project(id="P001", name="Metro Sales")
    assert generate_agent_code(project, ScanSequenceAllocator(store), store, " ms-custom ") == "MS-CUSTOM"


def test_scan_allocator_hands_out_same_number_until_stored():
    # The read-then-compute hazard: nothing is reserved between two calls.
    store = InMemoryStore()
    allocator = ScanSequenceAllocator(store)
    assert allocator.allocate("MS") == allocator.allocate("MS") == 1


def test_locking_allocator_remembers_unstored_numbers():
    store = InMemoryStore()
    allocator = LockingSequenceAllocator(store)
    assert [allocator.allocate("MS") for _ in range(3)] == [1, 2, 3]
    assert allocator.allocate("AL") == 1


def test_locking_allocator_sees_codes_stored_elsewhere():
    store = InMemoryStore()
    allocator = LockingSequenceAllocator(store)
    assert allocator.allocate("MS") == 1
    _store_agent(store, "MS00010", 1)
    assert allocator.allocate("MS") == 11


class _FixedAllocator:
    def __init__(self, *values: int) -> None:
        self.values = list(values)
        self.calls = 0

    def allocate(self, prefix: str, at_least: int = 0) -> int:
        self.calls += 1
        return self.values.pop(0) if len(self.values) > 1 else self.values[0]


def test_taken_code_is_skipped():
    store = InMemoryStore()
    _store_agent(store, "MS00001", 1)
    allocator = _FixedAllocator(1, 2)
    code = generate_agent_code(Project(id="P001", name="Metro Sales"), allocator, store)
    assert code == "MS00002"
    assert allocator.calls == 2


def test_gives_up_after_max_attempts():
    store = InMemoryStore()
    _store_agent(store, "MS00001", 1)
    allocator = _FixedAllocator(1)
    with pytest.raises(CodeGenerationError):
        generate_agent_code(Project(id="P001", name="Metro Sales"), allocator, store)
    assert allocator.calls == 5


def test_build_allocator():
    store = InMemoryStore()
    assert isinstance(build_allocator("lock", store), LockingSequenceAllocator)
    assert isinstance(build_allocator("scan", store), ScanSequenceAllocator)
    with pytest.raises(ValueError):
        build_allocator("counter", store)


class DetachedCounter:
    """Counter that only knows the numbers it handed out, like a database
    counter that cannot see rows not yet committed by another connection."""

    def __init__(self) -> None:
        self.last: dict[str, int] = {}
        self.calls: list[int] = []

    def allocate(self, prefix: str, at_least: int = 0) -> int:
        self.calls.append(at_least)
        value = max(self.last.get(prefix, 0) + 1, at_least)
        self.last[prefix] = value
        return value


def test_counter_behind_stored_codes_catches_up_in_one_step():
    store = InMemoryStore()
    for n in range(1, 7):
        _store_agent(store, f"MS{n:05d}", n)
    counter = DetachedCounter()
    code = generate_agent_code(Project(id="P001", name="Metro Sales"), counter, store)
    assert code == "MS00007"
    assert counter.calls == [0, 7]
    assert counter.last["MS"] == 7


def test_allocators_respect_at_least():
    store = InMemoryStore()
    assert ScanSequenceAllocator(store).allocate("MS", at_least=40) == 40
    locking = LockingSequenceAllocator(store)
    assert locking.allocate("MS", at_least=40) == 40
    assert locking.allocate("MS") == 41
