from __future__ import annotations

from datetime import datetime
from typing import Sequence

from .changes import ChangeSet
from .document import DocumentSource, MergedDocument, open_source
from .links import LinkResolver, build_url_index
from .model import Diagnostic, MergeConfigError, MergeResult, SourceBinding
from .pdf import APP_NAME, build_metadata, serialize


MIN_DOCUMENTS = 2


def check_inputs(document_count: int, url_count: int) -> None:
    if document_count < MIN_DOCUMENTS:
        raise MergeConfigError(f"At least {MIN_DOCUMENTS} PDF files are required, got {document_count}.")
    if url_count and url_count != document_count:
        raise MergeConfigError(f"Each PDF must have a URL: got {url_count} URLs for {document_count} PDFs.")


def merge_pdfs(
    sources: Sequence[DocumentSource],
    urls: Sequence[str] = (),
    base_url: str = "",
    *,
    creator: str = APP_NAME,
    now: datetime | None = None,
) -> MergeResult:
    """Merge ``sources`` in order into one PDF.

    When ``urls`` is given (one per source), links starting with ``base_url``
    that point at one of those URLs, or at a named destination via
    ``#anchor``, are rewritten into links to the matching merged page.
    Links that cannot be resolved are kept as they are and reported in
    ``MergeResult.diagnostics``.
    """

    sources = list(sources)
    urls = [str(u) for u in urls]
    check_inputs(len(sources), len(urls))

    # Parse everything up front so a bad input fails before any merging.
    readers = [open_source(source) for source in sources]

    bindings: tuple[SourceBinding, ...] = ()
    diagnostics: list[Diagnostic] = []
    rewritten = 0

    with MergedDocument() as document:
        spans = [document.append(reader) for reader in readers]

        if urls:
            bindings = tuple(
                SourceBinding(url=url, first_page=first, page_count=count)
                for url, (first, count) in zip(urls, spans)
            )
            resolver = LinkResolver(document, build_url_index(bindings), base_url)
            changes = ChangeSet(resolver.collect())
            _removed, rewritten = changes.apply(document)
            diagnostics = resolver.diagnostics

        metadata = build_metadata(creator=creator, now=now)
        data = serialize(document, metadata)
        page_count = document.page_count

    return MergeResult(
        data=data,
        page_count=page_count,
        bindings=bindings,
        diagnostics=tuple(diagnostics),
        rewritten=rewritten,
        metadata=metadata,
    )
