from __future__ import annotations

from io import BytesIO
from typing import Iterable, Sequence

import pytest
from pypdf import PdfReader, PdfWriter
from pypdf.annotations import Link
from pypdf.generic import ArrayObject, DictionaryObject, FloatObject, NameObject, NullObject

from pdf_linkmerge.document import MergedDocument, open_source


def make_pdf(
    widths: Sequence[int],
    *,
    links: Iterable[tuple[int, str]] = (),
    dests: Iterable[tuple[str, int, str, Sequence[float | None]]] = (),
    named: Iterable[tuple[str, int]] = (),
) -> bytes:
    """Build a small PDF in memory.

    Pages get the given widths so they can be told apart after merging.
    ``links`` are (page, uri) URI link annotations, ``dests`` go into a
    catalog /Dests dictionary (the way browsers print anchors), ``named``
    go into the /Names tree via pypdf.
    """

    writer = PdfWriter()
    for width in widths:
        writer.add_blank_page(width=width, height=792)

    for i, (page_index, uri) in enumerate(links):
        y = 50 + 40 * i
        writer.add_annotation(page_number=page_index, annotation=Link(rect=(50, y, 200, y + 20), url=uri))

    table = DictionaryObject()
    for name, page_index, fit_type, args in dests:
        arr = ArrayObject([writer.pages[page_index].indirect_reference, NameObject(fit_type)])
        arr.extend(NullObject() if a is None else FloatObject(a) for a in args)
        table[NameObject("/" + name)] = arr
    if table:
        writer.root_object[NameObject("/Dests")] = table

    for name, page_index in named:
        writer.add_named_destination(name, page_index)

    buf = BytesIO()
    writer.write(buf)
    return buf.getvalue()


def read_pdf(data: bytes) -> PdfReader:
    return PdfReader(BytesIO(data))


def page_widths(reader: PdfReader) -> list[int]:
    return [round(float(page.mediabox.width)) for page in reader.pages]


def annotations(reader: PdfReader, page_index: int) -> list[DictionaryObject]:
    page = reader.pages[page_index]
    if "/Annots" not in page:
        return []
    return [a.get_object() for a in page["/Annots"]]


def uri_of(annot: DictionaryObject) -> str | None:
    if "/A" not in annot or "/URI" not in annot["/A"]:
        return None
    return str(annot["/A"]["/URI"])


def dest_page(reader: PdfReader, annot: DictionaryObject) -> int:
    ref = annot["/Dest"][0]
    by_id = {page.indirect_reference.idnum: i for i, page in enumerate(reader.pages)}
    return by_id[ref.idnum]


@pytest.fixture
def doc_a() -> bytes:
    # a.html: links to b.html (whole page), b.html#sec2 (anchor) and an external site
    return make_pdf(
        [101, 102, 103],
        links=[
            (0, "http://x/b.html#sec2"),
            (1, "http://x/b.html"),
            (2, "https://elsewhere.org/page.html"),
        ],
    )


@pytest.fixture
def doc_b() -> bytes:
    return make_pdf(
        [201, 202, 203],
        links=[(0, "http://x/"), (2, "http://x/missing.html")],
        dests=[("sec2", 1, "/Fit", ())],
    )


@pytest.fixture
def merged(doc_a: bytes, doc_b: bytes) -> Iterable[MergedDocument]:
    with MergedDocument() as document:
        document.append(open_source(doc_a))
        document.append(open_source(doc_b))
        yield document
