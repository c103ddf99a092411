"""Tests for the patch engine."""
import pytest

from statetree import (
    Patch,
    PatchOp,
    ResolutionError,
    ValidationError,
    apply_patch,
    apply_patches,
    create_factory,
    on_patch,
    record_patches,
)


def test_apply_patches_last_write_wins(greeting_factory):
    """Test that patches apply strictly in order."""
    doc = greeting_factory.create()
    apply_patches(doc, [
        {'op': 'replace', 'path': '/to', 'value': 'mars'},
        {'op': 'replace', 'path': '/to', 'value': 'universe'},
    ])
    assert doc.to_json() == {'to': 'universe'}


def test_apply_patch_nested_path(shape_factory):
    shape = shape_factory.create()
    apply_patch(shape, {'op': 'replace', 'path': '/origin/x', 'value': 3})
    assert shape.origin.x == 3


def test_path_without_leading_slash(shape_factory):
    shape = shape_factory.create()
    apply_patch(shape, {'op': 'replace', 'path': 'origin/y', 'value': 4})
    assert shape.origin.y == 4


def test_add_behaves_like_replace(box_factory):
    box = box_factory.create()
    apply_patch(box, {'op': 'add', 'path': '/width', 'value': 2})
    assert box.width == 2


def test_replace_with_model_snapshot(shape_factory):
    """Test that a patch value for a model field becomes a child node."""
    shape = shape_factory.create()
    apply_patch(shape, Patch(PatchOp.REPLACE, '/label', {'text': 'hello'}))
    assert shape.label.text == 'hello'


def test_root_path_applies_snapshot(box_factory):
    box = box_factory.create()
    apply_patch(box, {'op': 'replace', 'path': '', 'value': {'width': 8}})
    assert box.to_json() == {'width': 8, 'height': 0}


class TestRemove:
    """Tests for the remove op."""

    def test_remove_optional_field(self, shape_factory):
        shape = shape_factory.create({'label': {'text': 'x'}})
        patches = []
        on_patch(shape, patches.append)
        apply_patch(shape, {'op': 'remove', 'path': '/label'})
        assert shape.label is None
        assert patches == [{'op': 'remove', 'path': '/label'}]

    def test_remove_required_field_fails(self, shape_factory):
        shape = shape_factory.create()
        with pytest.raises(ValidationError):
            apply_patch(shape, {'op': 'remove', 'path': '/origin'})
        assert shape.origin is not None

    def test_remove_root_fails(self, box_factory):
        with pytest.raises(ResolutionError):
            apply_patch(box_factory.create(), {'op': 'remove', 'path': ''})


class TestResolution:
    """Tests for unresolvable patch paths."""

    def test_unknown_field(self, box_factory):
        with pytest.raises(ResolutionError) as exc_info:
            apply_patch(box_factory.create(), {'op': 'replace', 'path': '/depth', 'value': 1})
        assert exc_info.value.path == '/depth'

    def test_through_primitive(self, box_factory):
        with pytest.raises(ResolutionError):
            apply_patch(box_factory.create(), {'op': 'replace', 'path': '/width/x', 'value': 1})

    def test_through_empty_optional(self, shape_factory):
        with pytest.raises(ResolutionError):
            apply_patch(shape_factory.create(), {'op': 'replace', 'path': '/label/text', 'value': 'a'})


class TestPatchPayload:
    """Tests for Patch.to_dict() / Patch.from_dict()."""

    def test_from_dict(self):
        patch = Patch.from_dict({'op': 'replace', 'path': '/to', 'value': 'mars'})
        assert patch == Patch(PatchOp.REPLACE, '/to', 'mars')

    def test_to_dict_omits_remove_value(self):
        assert Patch(PatchOp.REMOVE, '/label').to_dict() == {'op': 'remove', 'path': '/label'}

    @pytest.mark.parametrize('payload', [
        ['replace', '/to'],
        {'op': 'move', 'path': '/to', 'value': 1},
        {'op': 'replace', 'path': 3, 'value': 1},
        {'op': 'replace', 'path': '/to'},
    ])
    def test_malformed(self, payload):
        with pytest.raises(ValidationError):
            Patch.from_dict(payload)


def test_apply_patches_aborts_without_rollback(greeting_factory):
    """Test that a failing record stops the batch and keeps earlier records."""
    doc = greeting_factory.create()
    with pytest.raises(ResolutionError):
        apply_patches(doc, [
            {'op': 'replace', 'path': '/to', 'value': 'mars'},
            {'op': 'replace', 'path': '/from', 'value': 'earth'},
            {'op': 'replace', 'path': '/to', 'value': 'venus'},
        ])
    assert doc.to == 'mars'


def test_escaped_segments():
    """Test that '/' and '~' in field names round-trip through paths."""
    factory = create_factory({'a/b': 0, 'c~d': 0})
    node = factory.create()
    patches = []
    on_patch(node, patches.append)
    setattr(node, 'a/b', 1)
    setattr(node, 'c~d', 2)
    assert [patch['path'] for patch in patches] == ['/a~1b', '/c~0d']

    replica = factory.create()
    apply_patches(replica, patches)
    assert replica.to_json() == {'a/b': 1, 'c~d': 2}


class TestRecorder:
    """Tests for PatchRecorder."""

    def test_replay_reproduces_post_state(self, shape_factory):
        """Test that recorded patches replayed on the pre-state reproduce the post-state."""
        shape = shape_factory.create()
        before = shape.to_json()
        with record_patches(shape) as recorder:
            shape.name = 'moved'
            shape.origin.move(2, 3)
            shape.rename('labelled')
            shape.tags = ['x', 'y']
            shape.label.text = 'relabelled'
        assert not recorder.recording

        replica = shape_factory.create(before)
        recorder.replay(replica)
        assert replica.to_json() == shape.to_json()

    def test_stop_ends_recording(self, box_factory):
        box = box_factory.create()
        recorder = record_patches(box)
        box.width = 1
        recorder.stop()
        box.width = 2
        assert recorder.patches == [{'op': 'replace', 'path': '/width', 'value': 1}]
