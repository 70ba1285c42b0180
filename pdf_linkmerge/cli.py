from __future__ import annotations

import argparse
import glob
import sys
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

from .merge import merge_pdfs
from .model import MergeConfigError, MergeInputError
from .pdf import APP_NAME


def _version() -> str:
    try:
        return version(APP_NAME)
    except PackageNotFoundError:
        return "unknown"


def expand_entries(entries: list[str], *, cwd: Path) -> list[Path]:
    """Resolve files and glob patterns to absolute .pdf paths, in entry order."""

    found: list[Path] = []
    seen: set[Path] = set()
    for entry in entries:
        literal = cwd / entry
        if literal.is_file():
            candidates = [literal]
        else:
            candidates = [cwd / m for m in sorted(glob.glob(entry, root_dir=cwd, recursive=True))]

        for path in candidates:
            path = path.resolve()
            if path in seen or not path.is_file():
                continue
            if path.suffix.lower() != ".pdf" or "node_modules" in path.parts:
                continue
            seen.add(path)
            found.append(path)
    return found


def read_urls_file(path: Path) -> list[str]:
    raw_lines = path.read_text(encoding="utf-8").splitlines()
    return [ln.strip() for ln in raw_lines if ln.strip() and not ln.strip().startswith("#")]


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog=APP_NAME,
        description=(
            "Merge PDF files into one, optionally rewriting links between the "
            "original web pages into links inside the merged PDF."
        ),
        epilog=(
            "examples:\n"
            f"  {APP_NAME} 1.pdf 2.pdf\n"
            f"  {APP_NAME} 'pdfs/*.pdf' -o merged-pdf.pdf\n"
            f"  {APP_NAME} 1.pdf 2.pdf -u http://localhost:16762/1.html http://localhost:16762/2.html "
            "-b http://localhost:16762"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    p.add_argument("entry", nargs="+", help="PDF files or glob patterns, merged in the given order")
    p.add_argument("-o", "--output", default="merged-pdf.pdf", help="Output file")
    urls = p.add_mutually_exclusive_group()
    urls.add_argument(
        "-u",
        "--urls",
        nargs="+",
        default=[],
        metavar="URL",
        help="The source URL of each PDF, in the same order. Used to rewrite internal PDF links",
    )
    urls.add_argument(
        "--urls-file",
        default=None,
        help="Text file with one source URL per line (blank lines and # comments ignored)",
    )
    p.add_argument(
        "-b",
        "--base-url",
        "--base_url",
        dest="base_url",
        default="",
        help="Only PDF links that begin with this base URL will be rewritten",
    )
    p.add_argument("-v", "--version", action="version", version=f"%(prog)s {_version()}")
    return p


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    cwd = Path.cwd()
    urls: list[str] = list(args.urls)
    if args.urls_file:
        urls_path = Path(args.urls_file)
        if not urls_path.exists():
            print(f"URLs file not found: {urls_path}", file=sys.stderr)
            return 2
        try:
            urls = read_urls_file(urls_path)
        except (OSError, UnicodeDecodeError) as e:
            print(f"Cannot read URLs file {urls_path}: {e}", file=sys.stderr)
            return 2
        if not urls:
            print("URLs file is empty.", file=sys.stderr)
            return 2

    pdfs = expand_entries(list(args.entry), cwd=cwd)
    if not pdfs:
        print(f"No PDFs found matching: {' '.join(args.entry)}", file=sys.stderr)
        return 2

    try:
        result = merge_pdfs(pdfs, urls, args.base_url)
    except (MergeConfigError, MergeInputError) as e:
        print(str(e), file=sys.stderr)
        return 1

    for diagnostic in result.diagnostics:
        print(diagnostic.message(), file=sys.stderr)

    output = str(args.output)
    if not output.endswith(".pdf"):
        output += ".pdf"
    out_path = cwd / output
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_bytes(result.data)

    print(f"Merged {len(pdfs)} PDFs ({result.page_count} pages, {result.rewritten} links rewritten)")
    print(f"Saved to {out_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
