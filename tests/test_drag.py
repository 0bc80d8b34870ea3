import itertools

import pytest

from scancore.annotate.drag import DragTransformer
from scancore.annotate.selection import SelectableItem, SelectionKind
from scancore.settings import EditorSettings
from tests.utils_scene import ar_measurement, document, frame, offsite_measurement, perspective_frame, text


def _item(kind, item_id):
    return SelectableItem(kind, item_id)


def test_offsite_endpoint_drag_recomputes_distance():
    doc = document(
        measurements=[
            ar_measurement((0.1, 0.5), (0.5, 0.5), 2.0),
            offsite_measurement((0.2, 0.2), (0.3, 0.2), 0.5),
        ]
    )
    assert DragTransformer().apply(doc, _item(SelectionKind.MEASUREMENT_ENDPOINT_B, "M-1"), (0.05, 0.0))
    moved = doc.measurement("M-1")
    assert moved.pointB.x == pytest.approx(0.35)
    assert moved.distanceMeters == pytest.approx(0.75)


def test_ar_endpoint_drag_keeps_distance():
    doc = document(measurements=[ar_measurement((0.1, 0.5), (0.5, 0.5), 2.0)])
    DragTransformer().apply(doc, _item(SelectionKind.MEASUREMENT_ENDPOINT_A, "AR-1"), (-0.05, 0.1))
    measurement = doc.measurement("AR-1")
    assert measurement.pointA.as_tuple() == pytest.approx((0.05, 0.6))
    assert measurement.distanceMeters == 2.0
    assert measurement.isFromAR


def test_endpoint_is_clamped_to_image():
    doc = document(measurements=[offsite_measurement((0.1, 0.1), (0.5, 0.5), 1.0)])
    DragTransformer().apply(doc, _item(SelectionKind.MEASUREMENT_ENDPOINT_A, "M-1"), (-0.5, -0.5))
    assert doc.measurement("M-1").pointA.as_tuple() == (0.0, 0.0)


def test_body_move_preserves_shape():
    doc = document(measurements=[offsite_measurement((0.8, 0.2), (0.9, 0.3), 1.0)])
    DragTransformer().apply(doc, _item(SelectionKind.MEASUREMENT, "M-1"), (0.5, -0.1))
    m = doc.measurement("M-1")
    assert (m.pointB.x - m.pointA.x, m.pointB.y - m.pointA.y) == pytest.approx((0.1, 0.1))
    assert m.pointB.x == pytest.approx(1.0)
    assert m.pointA.y == pytest.approx(0.1)
    assert m.distanceMeters == 1.0


@pytest.mark.parametrize("dx, dy", list(itertools.product([-1.5, -0.3, 0.0, 0.07, 0.4, 2.0], repeat=2)))
def test_frame_stays_inside_image(dx, dy):
    settings = EditorSettings()
    doc = document(frames=[frame("F1", 0.7, 0.1, size=0.25)])
    drag = DragTransformer(settings)
    for kind in (SelectionKind.FRAME, SelectionKind.FRAME_RESIZE_HANDLE, SelectionKind.FRAME):
        assert drag.apply(doc, _item(kind, "F1"), (dx, dy))
        f = doc.frame("F1")
        for start, size in ((f.topLeft.x, f.width), (f.topLeft.y, f.height)):
            assert start >= 0.0
            assert start + size <= 1.0 + 1e-9
            assert settings.min_frame_size - 1e-9 <= size <= settings.max_frame_size + 1e-9


def test_resize_pulls_frame_back_when_no_room_remains():
    doc = document(frames=[frame("F1", 0.99, 0.5, size=0.01)])
    DragTransformer().apply(doc, _item(SelectionKind.FRAME_RESIZE_HANDLE, "F1"), (0.0, 0.0))
    f = doc.frame("F1")
    assert f.width == pytest.approx(0.03)
    assert f.topLeft.x == pytest.approx(0.97)
    assert f.height == pytest.approx(0.03)
    assert f.topLeft.y == pytest.approx(0.5)


def test_resize_grows_up_to_remaining_room():
    doc = document(frames=[frame("F1", 0.5, 0.5, size=0.2)])
    DragTransformer().apply(doc, _item(SelectionKind.FRAME_RESIZE_HANDLE, "F1"), (0.6, 0.1))
    f = doc.frame("F1")
    assert f.width == pytest.approx(0.5)
    assert f.height == pytest.approx(0.3)


def test_perspective_frame_moves_rigidly_with_shared_clamp():
    doc = document(perspectiveFrames=[perspective_frame("P1", [[0.1, 0.5], [0.3, 0.5], [0.3, 0.7], [0.1, 0.7]])])
    DragTransformer().apply(doc, _item(SelectionKind.PERSPECTIVE_FRAME, "P1"), (-0.5, 0.1))
    pf = doc.perspective_frame("P1")
    assert [c[0] for c in pf.corners2D] == pytest.approx([0.0, 0.2, 0.2, 0.0])
    assert [c[1] for c in pf.corners2D] == pytest.approx([0.6, 0.6, 0.8, 0.8])
    assert pf.center2D.as_tuple() == pytest.approx((0.1, 0.7))


def test_perspective_frame_already_outside_is_not_pushed_further():
    corners = [[-0.1, 0.5], [0.2, 0.5], [0.2, 0.7], [-0.1, 0.7]]
    doc = document(perspectiveFrames=[perspective_frame("P1", corners)])
    item = _item(SelectionKind.PERSPECTIVE_FRAME, "P1")
    transformer = DragTransformer()

    transformer.apply(doc, item, (0.0, 0.0))
    assert [c[0] for c in doc.perspective_frame("P1").corners2D] == pytest.approx([-0.1, 0.2, 0.2, -0.1])

    transformer.apply(doc, item, (-0.05, 0.0))
    assert [c[0] for c in doc.perspective_frame("P1").corners2D] == pytest.approx([-0.1, 0.2, 0.2, -0.1])

    transformer.apply(doc, item, (0.05, 0.0))
    assert [c[0] for c in doc.perspective_frame("P1").corners2D] == pytest.approx([-0.05, 0.25, 0.25, -0.05])


def test_text_move_is_clamped():
    doc = document(textAnnotations=[text("T1", 0.9, 0.5)])
    DragTransformer().apply(doc, _item(SelectionKind.TEXT_ANNOTATION, "T1"), (0.3, -0.2))
    assert doc.text_annotation("T1").position.as_tuple() == pytest.approx((1.0, 0.3))


@pytest.mark.parametrize("kind", list(SelectionKind))
def test_unknown_ids_leave_document_untouched(kind):
    doc = document(measurements=[offsite_measurement((0.1, 0.1), (0.5, 0.5), 1.0)])
    before = doc.snapshot()
    assert not DragTransformer().apply(doc, _item(kind, "missing"), (0.1, 0.1))
    assert doc == before
