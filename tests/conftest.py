"""Pytest configuration and shared fixtures."""
import pytest

from statetree import create_factory, reset_config, types


def set_to(self, to):
    self.to = to


def move(self, dx, dy):
    self.x = self.x + dx
    self.y = self.y + dy


def rename(self, text):
    self.label = {'text': text}


@pytest.fixture(autouse=True)
def reset_framework_config():
    """Restore framework configuration around each test."""
    reset_config()
    yield
    reset_config()


@pytest.fixture
def greeting_factory():
    """{to: 'world', set_to(to)}."""
    return create_factory({'to': 'world', 'set_to': set_to})


@pytest.fixture
def computed_factory():
    """Box with a computed area."""
    return create_factory({
        'width': 100,
        'height': 200,
        'area': property(lambda self: self.width * self.height),
    })


@pytest.fixture
def box_factory():
    return create_factory({'width': 0, 'height': 0})


@pytest.fixture
def color_factory():
    return create_factory({'color': '#FFFFFF'})


@pytest.fixture
def point_factory():
    return create_factory({'x': 0, 'y': 0, 'move': move}, name='Point')


@pytest.fixture
def label_factory():
    return create_factory({'text': ''}, name='Label')


@pytest.fixture
def shape_factory(point_factory, label_factory):
    """Nested model: required Point, optional Label, frozen tags."""
    return create_factory({
        'name': 'shape',
        'origin': point_factory,
        'label': types.maybe(label_factory),
        'tags': ['new'],
        'rename': rename,
    }, name='Shape')
