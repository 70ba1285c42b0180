from __future__ import annotations

import pytest
from pypdf.annotations import Link

from pdf_linkmerge.changes import ChangeSet
from pdf_linkmerge.document import MergedDocument
from pdf_linkmerge.links import LinkResolver
from pdf_linkmerge.model import AddAnnotation, MergeError, RemoveAnnotation


URL_INDEX = {"http://x/index.html": 0, "http://x/b.html": 3}


def _uris(document: MergedDocument) -> list[tuple[int, str]]:
    return [(link.page_index, link.uri) for link in document.link_annotations()]


def test_apply_replaces_external_links(merged: MergedDocument):
    changes = ChangeSet(LinkResolver(merged, URL_INDEX, "http://x").collect())
    assert changes.pending == 6

    assert changes.apply(merged) == (3, 3)
    assert changes.pending == 0
    assert _uris(merged) == [
        (2, "https://elsewhere.org/page.html"),
        (5, "http://x/missing.html"),
    ]
    # one annotation per rewritten link, no duplicates
    assert len(merged.annotation_handles(0)) == 1
    assert len(merged.annotation_handles(1)) == 1
    assert len(merged.annotation_handles(3)) == 1


def test_apply_twice_is_a_no_op(merged: MergedDocument):
    changes = ChangeSet(LinkResolver(merged, URL_INDEX, "http://x").collect())
    changes.apply(merged)
    before = [len(merged.annotation_handles(i)) for i in range(merged.page_count)]

    assert changes.apply(merged) == (0, 0)
    assert [len(merged.annotation_handles(i)) for i in range(merged.page_count)] == before


def test_same_record_queued_twice_is_applied_once(merged: MergedDocument):
    handle = merged.annotation_handles(0)[0]
    add = AddAnnotation(page_index=0, annotation=Link(rect=(0, 0, 5, 5), target_page_index=4), target_page=4)
    remove = RemoveAnnotation(page_index=0, handle=handle)
    changes = ChangeSet([remove, add, remove, add])

    assert changes.apply(merged) == (1, 1)
    assert len(merged.annotation_handles(0)) == 1


def test_removals_happen_before_additions(merged: MergedDocument):
    handle = merged.annotation_handles(1)[0]
    add = AddAnnotation(page_index=1, annotation=Link(rect=(0, 0, 5, 5), target_page_index=0), target_page=0)
    remove = RemoveAnnotation(page_index=1, handle=handle)
    # queued in the "wrong" order on purpose
    ChangeSet([add, remove]).apply(merged)

    remaining = [h.get_object() for h in merged.annotation_handles(1)]
    assert len(remaining) == 1
    assert "/Dest" in remaining[0]


def test_apply_refuses_missing_target_page(merged: MergedDocument):
    add = AddAnnotation(page_index=0, annotation=Link(rect=(0, 0, 5, 5), target_page_index=99), target_page=99)
    changes = ChangeSet([add])
    with pytest.raises(MergeError, match="does not exist"):
        changes.apply(merged)
    assert not add.applied
    assert len(merged.annotation_handles(0)) == 1
