from __future__ import annotations

import pytest

from agent_import.services.resolver import (
    Outcome,
    ProjectNotFoundError,
    ReferenceResolver,
    resolve_project,
)


@pytest.fixture()
def resolver(store):
    return ReferenceResolver(store.channel_lookup, store.designation_lookup, store)


def test_resolve_project(store):
    assert resolve_project(store, "P001").name == "Metro Sales"
    with pytest.raises(ProjectNotFoundError, match="P404"):
        resolve_project(store, "P404")


@pytest.mark.parametrize("text", ["Direct Sales", "DS"])
def test_channel_by_name_or_code(resolver, text):
    res = resolver.resolve_channel(text)
    assert res.found
    assert res.value.id == "CH1"


def test_channel_match_is_exact_text(resolver):
    assert resolver.resolve_channel("direct sales").outcome is Outcome.NOT_FOUND


def test_designation_must_belong_to_channel(store, resolver):
    direct = store.channels["CH1"]
    broker = store.channels["CH2"]
    assert resolver.resolve_designation("Sales Manager", direct).value.id == "D1"
    assert resolver.resolve_designation("SM", broker).outcome is Outcome.NOT_IN_CHANNEL
    assert resolver.resolve_designation("CEO", broker).outcome is Outcome.NOT_FOUND


def test_same_designation_name_in_two_channels(store, resolver):
    store.add_designation("Sales Manager", "BSM", channel_id="CH2", designation_id="D9")
    res = resolver.resolve_designation("Sales Manager", store.channels["CH2"])
    assert res.value.id == "D9"


def test_ambiguous_designation_within_channel(store, resolver):
    store.add_designation("Sales Manager", "SM2", channel_id="CH1")
    res = resolver.resolve_designation("Sales Manager", store.channels["CH1"])
    assert res.outcome is Outcome.AMBIGUOUS
    assert res.value is None


def test_reporting_manager_not_found(resolver):
    assert resolver.resolve_reporting_manager("MS00001").outcome is Outcome.NOT_FOUND
