#!/usr/bin/env python3

"""
Feed parsed wiki pages to link handlers from a pool of worker threads.

Input files are JSON Lines with one parsed page per line, e.g.:

    {"title": "New York City", "links": [{"label": "NYC", "target": "New York City"}]}
    {"title": "NYC", "redirect": "New York City"}

Pages carrying a ``redirect`` are reported with ``Handler.redirect``. All
other pages are reported with ``Handler.raw_article`` followed by one
``Handler.link_detected`` per link. Links with a missing or empty label use the
target title, without section anchor, as label, as in ``[[Target]]`` or
``[[Target#Section|]]``.

Every input file is processed by one task of a ``ThreadPoolExecutor``. Each
task asks every handler factory for its own thread handler and closes those
handlers once the file has been read completely. A task that fails leaves
its handlers unclosed, so their partial state is never merged.

Files can be local, compressed or on S3 (``s3://``). An S3 location not
naming a JSON Lines file is treated as a prefix and expanded.
"""

import json
import logging
import re
from collections import Counter
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Dict, Iterator, List, Optional, Sequence

import smart_open

from impresso_cookbook import yield_s3_objects

log = logging.getLogger(__name__)

Page = Dict[str, Any]

JSONL_SUFFIXES = (".jsonl", ".jsonl.bz2", ".jsonl.gz")


class Handler:
    """Receiver of corpus events. All callbacks default to no-ops."""

    def raw_article(self, title: str, text: str = "") -> None:
        pass

    def link_detected(self, title: str, label: str, target: str) -> None:
        pass

    def redirect(self, source: str, target: str) -> None:
        pass

    def close(self) -> None:
        pass


def normalize_title(title: str) -> str:
    """Normalize a page title the way the wiki does for links.

    Underscores become spaces, surrounding and repeated whitespace is
    collapsed and the first character is upper-cased.
    """
    title = " ".join(title.replace("_", " ").split())
    if not title:
        return title
    return title[0].upper() + title[1:]


def link_target(raw_target: str) -> str:
    """Page title of a link destination, without its section anchor."""
    return normalize_title(raw_target.split("#", 1)[0])


def expand_s3_prefix(s3_path: str) -> List[str]:
    """Expand an S3 prefix into all matching JSON Lines objects."""
    match = re.match(r"s3://([^/]+)/(.+)", s3_path)
    if not match:
        raise ValueError(f"Invalid S3 path format: {s3_path}")

    bucket, prefix = match.groups()
    files = [
        f"s3://{bucket}/{obj_key}"
        for obj_key in yield_s3_objects(bucket, prefix)
        if obj_key.endswith(JSONL_SUFFIXES)
    ]
    log.info("Found %d matching files for prefix %s", len(files), s3_path)
    return files


def expand_inputs(infiles: Sequence[str]) -> List[str]:
    expanded: List[str] = []
    for input_path in infiles:
        if input_path.startswith("s3://") and not input_path.endswith(JSONL_SUFFIXES):
            log.info("Expanding S3 prefix: %s", input_path)
            expanded.extend(expand_s3_prefix(input_path))
        else:
            expanded.append(input_path)
    return expanded


def next_page(infile: str, s3_client: Optional[Any] = None) -> Iterator[Page]:
    """Yield parsed pages from one JSON Lines file.

    :raises json.JSONDecodeError: On a malformed line, after logging its position.
    :raises RuntimeError: If the file cannot be read.
    """
    transport_params = (
        {"client": s3_client} if s3_client is not None and infile.startswith("s3://") else {}
    )
    try:
        log.info("Processing file: %s", infile)
        with smart_open.open(
            infile, mode="r", encoding="utf-8", transport_params=transport_params
        ) as reader:
            line_count = 0
            for line in reader:
                line_count += 1
                if line := line.strip():
                    try:
                        yield json.loads(line)
                    except json.JSONDecodeError as e:
                        log.error(
                            "JSON decode error in file %s at line %d: %s",
                            infile,
                            line_count,
                            e,
                        )
                        raise
        log.info("Successfully processed %d lines from %s", line_count, infile)
    except OSError as e:
        log.error("Failed to read file %s: %s", infile, e)
        raise RuntimeError(f"Cannot process file {infile}: {e}") from e


def dispatch_page(page: Page, handlers: Sequence[Handler]) -> Counter:
    """Report one page to all handlers and return what was seen."""
    seen: Counter = Counter()
    title = normalize_title(page.get("title") or "")
    if not title:
        log.debug("Skipping page without title: %s", page)
        seen["pages_skipped"] += 1
        return seen

    redirect = page.get("redirect")
    if redirect:
        target = link_target(redirect)
        if target:
            for handler in handlers:
                handler.redirect(title, target)
            seen["redirects"] += 1
        return seen

    text = page.get("text") or ""
    for handler in handlers:
        handler.raw_article(title, text)
    seen["articles"] += 1

    for link in page.get("links") or ():
        raw_target = link.get("target") or ""
        target = link_target(raw_target)
        if not target:
            continue
        label = link.get("label") or target
        for handler in handlers:
            handler.link_detected(title, label, target)
        seen["links"] += 1
    return seen


def process_file(
    infile: str, factories: Sequence[Any], s3_client: Optional[Any] = None
) -> Counter:
    """Read one file with fresh thread handlers and close them when done."""
    handlers = [factory.make_thread_handler() for factory in factories]
    seen: Counter = Counter()
    for page in next_page(infile, s3_client):
        seen.update(dispatch_page(page, handlers))
    for handler in handlers:
        handler.close()
    log.debug("Finished %s: %s", infile, dict(seen))
    return seen


def process_files(
    infiles: Sequence[str],
    factories: Sequence[Any],
    workers: int = 1,
    s3_client: Optional[Any] = None,
) -> Counter:
    """Process all input files on ``workers`` threads.

    Returns once every file has been handled and every handler closed. The
    first failure is raised after the remaining files have finished.

    :param Sequence[str] infiles: Input files or S3 prefixes.
    :param Sequence[Any] factories: Objects providing ``make_thread_handler()``.
    :param int workers: Number of worker threads.
    :return: Counter of pages, articles, redirects and links seen.
    """
    if workers < 1:
        raise ValueError(f"At least one worker needed, got {workers}")

    files = expand_inputs(infiles)
    log.info("Processing %d input files with %d workers", len(files), workers)

    totals: Counter = Counter()
    failure: Optional[BaseException] = None
    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = {
            executor.submit(process_file, infile, factories, s3_client): infile
            for infile in files
        }
        for future in as_completed(futures):
            try:
                totals.update(future.result())
            except Exception as e:
                log.error("Worker failed on %s: %s", futures[future], e)
                if failure is None:
                    failure = e
    if failure is not None:
        raise failure
    return totals
