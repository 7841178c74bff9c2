"""Shared fixtures for flowchart tests."""

import pytest

from flowchart_backend import FlowchartEditor
from tests.fixtures import SCENARIO_A, FakeClock


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def editor(clock):
    return FlowchartEditor(clock=clock)


@pytest.fixture
def scenario_a_editor(editor):
    editor.load_text(SCENARIO_A)
    return editor
