"""Tests for the annotation store."""

from annotator.models import Annotation, Entity, EntityType
from annotator.store import AnnotationStore

PERSON = Entity(name="PERSON", id="1", color="#ff0000")
FIGURE = Entity(name="FIGURE", id="2", entity_type=EntityType.AREA)


def _ann(id_, page, entity=PERSON):
    return Annotation(id=id_, page_number=page, entity=entity, bbox=(0, 0, 10, 10))


def test_seeded_annotations_are_kept_in_order():
    seed = [_ann("a", 2), _ann("b", 1), _ann("c", 2)]
    store = AnnotationStore(seed)

    assert store.annotations == tuple(seed)
    assert [a.id for a in store.for_page(2)] == ["a", "c"]
    assert store.for_page(3) == []
    assert store.version == 0


def test_add_appends_and_bumps_versions():
    store = AnnotationStore()
    store.add(_ann("a", 1))
    store.add(_ann("b", 3))

    assert [a.id for a in store] == ["a", "b"]
    assert store.version == 2
    assert store.page_version(1) == 1
    assert store.page_version(3) == 1
    assert store.page_version(2) == 0
    assert "b" in store
    assert store.get("b").page_number == 3


def test_remove_drops_every_entry_with_the_id():
    store = AnnotationStore([_ann("dup", 1), _ann("x", 2)])
    store.add(_ann("dup", 3))

    assert store.remove("dup") is True
    assert [a.id for a in store] == ["x"]
    assert store.page_version(1) == 1
    assert store.page_version(3) == 2
    assert store.page_version(2) == 0


def test_remove_unknown_id_is_a_noop():
    store = AnnotationStore([_ann("a", 1)])
    seen = []
    store.subscribe(seen.append)

    assert store.remove("nope") is False
    assert len(store) == 1
    assert store.version == 0
    assert seen == []


def test_subscribers_receive_full_snapshots():
    store = AnnotationStore([_ann("a", 1)])
    seen = []
    unsubscribe = store.subscribe(seen.append)

    store.add(_ann("b", 2, FIGURE))
    store.remove("a")
    unsubscribe()
    store.add(_ann("c", 1))

    assert [[a.id for a in snap] for snap in seen] == [["a", "b"], ["b"]]


def test_annotation_dict_round_trip_keeps_entity():
    ann = Annotation(
        id="n1",
        page_number=4,
        entity=FIGURE,
        bbox=(1.0, 2.0, 3.0, 4.0),
        text="Figure 1",
        word_indices=(5, 6),
    )
    d = ann.to_dict()
    assert d["page"] == 4
    assert d["entity"]["entityType"] == "AREA"
    assert Annotation.from_dict(d) == ann


def test_annotation_from_dict_accepts_bare_label():
    ann = Annotation.from_dict({"id": "x", "page": 1, "label": "ORG"})
    assert ann.label == "ORG"
    assert ann.entity.entity_type is EntityType.NER
