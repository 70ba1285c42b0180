from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Iterable, Mapping
from urllib.parse import unquote

from pypdf.annotations import Link
from pypdf.errors import PyPdfError
from pypdf.generic import Destination, Fit, NullObject

from .document import AppendedSource, MergedDocument
from .model import AddAnnotation, Diagnostic, LinkAnnotation, PendingChange, RemoveAnnotation, SourceBinding


# Pages published at a directory root ("http://host/docs/") are served as index.html.
DEFAULT_PAGE = "index.html"


@dataclass(frozen=True)
class ResolvedTarget:
    page_index: int
    fit: Fit | None = None


def build_url_index(bindings: Iterable[SourceBinding]) -> Mapping[str, int]:
    """Map each declared source URL to the merged page its document starts on.

    Later bindings win when the same URL is declared twice.
    """

    index: dict[str, int] = {}
    for binding in bindings:
        index[binding.url] = binding.first_page
    return MappingProxyType(index)


def split_fragment(uri: str) -> tuple[str, str | None]:
    base, sep, fragment = uri.rpartition("#")
    if not sep:
        return uri, None
    return base, fragment or None


def effective_url(url: str) -> str:
    if url.rsplit("/", 1)[-1] == "":
        return url + DEFAULT_PAGE
    return url


def _value(obj: Any) -> Any:
    if obj is None or isinstance(obj, NullObject):
        return None
    return obj


_FIT_BUILDERS: dict[str, Callable[[Destination], Fit]] = {
    "/XYZ": lambda d: Fit.xyz(left=_value(d.left), top=_value(d.top), zoom=_value(d.zoom)),
    "/Fit": lambda d: Fit.fit(),
    "/FitH": lambda d: Fit.fit_horizontally(top=_value(d.top)),
    "/FitV": lambda d: Fit.fit_vertically(left=_value(d.left)),
    "/FitR": lambda d: Fit.fit_rectangle(
        left=_value(d.left), bottom=_value(d.bottom), right=_value(d.right), top=_value(d.top)
    ),
    "/FitB": lambda d: Fit.fit_box(),
    "/FitBH": lambda d: Fit.fit_box_horizontally(top=_value(d.top)),
    "/FitBV": lambda d: Fit.fit_box_vertically(left=_value(d.left)),
}


def fit_for_destination(dest: Destination) -> Fit:
    fit_type = str(dest.typ)
    try:
        builder = _FIT_BUILDERS[fit_type]
    except KeyError:
        raise ValueError(f"unsupported fit type {fit_type}") from None
    return builder(dest)


def build_link(link: LinkAnnotation, target: ResolvedTarget) -> Link:
    kwargs: dict[str, Any] = {
        "rect": link.rect,
        "border": link.border,
        "target_page_index": target.page_index,
    }
    if target.fit is not None:
        kwargs["fit"] = target.fit
    return Link(**kwargs)


class LinkResolver:
    """Turns external links into internal ones for a fully appended document.

    Nothing is mutated here: ``collect`` only returns the pending changes and
    records a diagnostic for every link it could not resolve.
    """

    def __init__(self, document: MergedDocument, url_index: Mapping[str, int], base_url: str) -> None:
        self.document = document
        self.url_index = url_index
        self.base_url = base_url
        self.diagnostics: list[Diagnostic] = []

    def matches(self, uri: str) -> bool:
        # An empty prefix would match every URI; treat it as "rewrite nothing".
        return bool(self.base_url) and uri.startswith(self.base_url)

    def collect(self) -> list[PendingChange]:
        changes: list[PendingChange] = []
        for link in self.document.link_annotations():
            if not self.matches(link.uri):
                continue
            target = self.resolve(link)
            if target is None:
                continue
            changes.append(RemoveAnnotation(page_index=link.page_index, handle=link.handle))
            changes.append(
                AddAnnotation(
                    page_index=link.page_index,
                    annotation=build_link(link, target),
                    target_page=target.page_index,
                )
            )
        return changes

    def resolve(self, link: LinkAnnotation) -> ResolvedTarget | None:
        if link.rect is None:
            self._report("link", link, "annotation has no /Rect")
            return None

        base, fragment = split_fragment(link.uri)
        if fragment is not None:
            return self._resolve_anchor(link, base, fragment)
        return self._resolve_page(link, base)

    def _resolve_anchor(self, link: LinkAnnotation, base: str, fragment: str) -> ResolvedTarget | None:
        found = self._lookup_destination(base, fragment)
        if found is None:
            self._report("anchor", link, f"no named destination /{fragment}")
            return None

        dest, source = found
        try:
            if source is not None:
                page_index = source.destination_page(dest)
            else:
                page_index = self.document.destination_page(dest)
            fit = fit_for_destination(dest)
        except (PyPdfError, KeyError, TypeError, ValueError) as exc:
            self._report("destination", link, str(exc))
            return None

        if page_index is None or not 0 <= page_index < self.document.page_count:
            self._report("destination", link, f"/{fragment} does not point at a merged page")
            return None
        return ResolvedTarget(page_index=page_index, fit=fit)

    def _lookup_destination(
        self, base: str, fragment: str
    ) -> tuple[Destination, AppendedSource | None] | None:
        """Find ``fragment`` in the document ``base`` names, else in the merged table."""

        names = [fragment]
        decoded = unquote(fragment)
        if decoded != fragment:
            names.append(decoded)
        # Dests dictionaries key by PDF name ("/sec"), name trees by plain string.
        keys = [key for name in names for key in ("/" + name, name)]

        first_page = self.url_index.get(effective_url(base))
        source = self.document.source_at(first_page) if first_page is not None else None
        if source is not None:
            for key in keys:
                if key in source.named_destinations:
                    return source.named_destinations[key], source

        dests = self.document.named_destinations
        for key in keys:
            if key in dests:
                return dests[key], None
        return None

    def _resolve_page(self, link: LinkAnnotation, url: str) -> ResolvedTarget | None:
        key = effective_url(url)
        page_index = self.url_index.get(key)
        if page_index is None:
            self._report("link", link, f"{key} is not one of the merged documents")
            return None
        return ResolvedTarget(page_index=page_index)

    def _report(self, kind: str, link: LinkAnnotation, detail: str) -> None:
        self.diagnostics.append(
            Diagnostic(
                kind=kind,
                page_index=link.page_index,
                uri=link.uri,
                detail=detail,
                annotation=link.describe(),
            )
        )
