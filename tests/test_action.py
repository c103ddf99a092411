"""Tests for the action engine."""
import pytest

from statetree import (
    ActionRecord,
    ResolutionError,
    UnknownActionError,
    ValidationError,
    apply_action,
    apply_actions,
    create_factory,
    on_action,
    on_patch,
    on_snapshot,
    record_actions,
    types,
)


def test_greeting_scenario(greeting_factory):
    """Test that one action call emits one patch, one snapshot and one action record."""
    doc = greeting_factory.create()
    patches = []
    snapshots = []
    actions = []
    on_patch(doc, patches.append)
    on_snapshot(doc, snapshots.append)
    on_action(doc, actions.append)

    doc.set_to('universe')

    assert patches == [{'op': 'replace', 'path': '/to', 'value': 'universe'}]
    assert snapshots == [{'to': 'universe'}]
    assert actions == [{'name': 'set_to', 'path': '', 'args': ['universe']}]


def test_field_writes_emit_no_actions(greeting_factory):
    doc = greeting_factory.create()
    actions = []
    on_action(doc, actions.append)
    doc.to = 'mars'
    assert actions == []


def test_action_returns_value():
    def double(self):
        self.count = self.count * 2
        return self.count

    factory = create_factory({'count': 2, 'double': double})
    assert factory.create().double() == 4


def test_nested_actions_recorded_once():
    """Test that actions called from inside another action are not recorded."""
    def increment(self):
        self.count = self.count + 1

    def increment_twice(self):
        self.increment()
        self.increment()

    factory = create_factory({'count': 0, 'increment': increment, 'increment_twice': increment_twice})
    node = factory.create()
    actions = []
    patches = []
    on_action(node, actions.append)
    on_patch(node, patches.append)
    node.increment_twice()
    assert actions == [{'name': 'increment_twice', 'path': '', 'args': []}]
    assert len(patches) == 2

    node.increment()
    assert actions[-1] == {'name': 'increment', 'path': '', 'args': []}


def test_recording_resumes_after_failed_action():
    """Test that a failing action does not suppress recording of later calls."""
    def fail(self):
        raise RuntimeError('boom')

    def touch(self):
        self.count = 1

    factory = create_factory({'count': 0, 'fail': fail, 'touch': touch})
    node = factory.create()
    actions = []
    on_action(node, actions.append)
    with pytest.raises(RuntimeError):
        node.fail()
    node.touch()
    assert [record['name'] for record in actions] == ['fail', 'touch']


def test_action_on_another_tree_is_recorded(greeting_factory):
    """Test that an action reaching into an unrelated tree is recorded on that tree."""
    other = greeting_factory.create()

    def sync(self, to):
        self.to = to
        other.set_to(to)

    driver_factory = create_factory({'to': 'world', 'sync': sync}, name='Driver')
    driver = driver_factory.create()
    replica = greeting_factory.create()

    with record_actions(driver) as driver_recorder, record_actions(other) as other_recorder:
        driver.sync('mars')

    assert driver_recorder.actions == [{'name': 'sync', 'path': '', 'args': ['mars']}]
    assert other_recorder.actions == [{'name': 'set_to', 'path': '', 'args': ['mars']}]
    other_recorder.replay(replica)
    assert replica.to_json() == other.to_json() == {'to': 'mars'}


def test_listener_driving_replica_is_recorded(greeting_factory):
    """Test that a listener driving a replica from inside an action body is recorded."""
    doc = greeting_factory.create()
    replica = greeting_factory.create()
    on_patch(doc, lambda patch: apply_action(replica, {'name': 'set_to', 'args': [patch['value']]}))
    replica_actions = []
    on_action(replica, replica_actions.append)

    doc.set_to('venus')

    assert replica.to == 'venus'
    assert replica_actions == [{'name': 'set_to', 'path': '', 'args': ['venus']}]


def test_child_action_path(shape_factory):
    """Test that ancestors see child actions with a relative path."""
    shape = shape_factory.create()
    actions = []
    on_action(shape, actions.append)
    shape.origin.move(1, 2)
    assert actions == [{'name': 'move', 'path': '/origin', 'args': [1, 2]}]


def test_node_arguments_are_serialized(label_factory):
    """Test that node arguments are recorded as snapshots."""
    def attach(self, label):
        self.label = label

    factory = create_factory({'label': types.maybe(label_factory), 'attach': attach})
    node = factory.create()
    actions = []
    on_action(node, actions.append)
    label = label_factory.create({'text': 'x'})
    node.attach(label)
    assert node.label is label
    assert actions == [{'name': 'attach', 'path': '', 'args': [{'text': 'x'}]}]


class TestApplyAction:
    """Tests for apply_action() / apply_actions()."""

    def test_apply_action(self, greeting_factory):
        doc = greeting_factory.create()
        apply_action(doc, {'name': 'set_to', 'path': '', 'args': ['mars']})
        assert doc.to == 'mars'

    def test_apply_action_on_child(self, shape_factory):
        shape = shape_factory.create()
        apply_action(shape, ActionRecord('move', '/origin', (3, 4)))
        assert shape.origin.to_json() == {'x': 3, 'y': 4}

    def test_unknown_action(self, greeting_factory):
        doc = greeting_factory.create()
        with pytest.raises(UnknownActionError) as exc_info:
            apply_action(doc, {'name': 'launch', 'path': '', 'args': []})
        assert exc_info.value.name == 'launch'
        assert exc_info.value.path == ''

    def test_field_name_is_not_an_action(self, greeting_factory):
        with pytest.raises(UnknownActionError):
            apply_action(greeting_factory.create(), {'name': 'to', 'args': []})

    def test_unresolvable_path(self, shape_factory):
        with pytest.raises(ResolutionError):
            apply_action(shape_factory.create(), {'name': 'move', 'path': '/label', 'args': [1, 1]})

    def test_apply_actions_in_order(self, greeting_factory):
        doc = greeting_factory.create()
        apply_actions(doc, [
            {'name': 'set_to', 'args': ['mars']},
            {'name': 'set_to', 'args': ['universe']},
        ])
        assert doc.to == 'universe'

    def test_apply_actions_aborts_without_rollback(self, greeting_factory):
        doc = greeting_factory.create()
        with pytest.raises(UnknownActionError):
            apply_actions(doc, [
                {'name': 'set_to', 'args': ['mars']},
                {'name': 'launch', 'args': []},
                {'name': 'set_to', 'args': ['venus']},
            ])
        assert doc.to == 'mars'

    def test_applied_action_is_recorded(self, greeting_factory):
        """Test that applying a record re-emits the same record."""
        doc = greeting_factory.create()
        actions = []
        on_action(doc, actions.append)
        record = {'name': 'set_to', 'path': '', 'args': ['mars']}
        apply_action(doc, record)
        assert actions == [record]


class TestActionRecordPayload:
    """Tests for ActionRecord.to_dict() / ActionRecord.from_dict()."""

    def test_round_trip(self):
        data = {'name': 'move', 'path': '/origin', 'args': [1, 2]}
        assert ActionRecord.from_dict(data).to_dict() == data

    def test_defaults(self):
        record = ActionRecord.from_dict({'name': 'reset'})
        assert record.path == ''
        assert record.args == ()

    @pytest.mark.parametrize('payload', [
        'set_to',
        {'path': ''},
        {'name': '', 'args': []},
        {'name': 'set_to', 'path': None},
        {'name': 'set_to', 'args': 'mars'},
    ])
    def test_malformed(self, payload):
        with pytest.raises(ValidationError):
            ActionRecord.from_dict(payload)


def test_action_replay(shape_factory):
    """Test that recorded actions replayed on the pre-state reproduce the post-state."""
    shape = shape_factory.create()
    before = shape.to_json()
    with record_actions(shape) as recorder:
        shape.origin.move(1, 1)
        shape.rename('first')
        shape.origin.move(2, 0)
        shape.rename('second')

    replica = shape_factory.create(before)
    recorder.replay(replica)
    assert replica.to_json() == shape.to_json()
    assert len(recorder.actions) == 4
