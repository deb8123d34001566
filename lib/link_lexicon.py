#!/usr/bin/env python3

"""
Build a lexicon of what wiki articles are commonly called.

The anchor texts of all internal links of a wiki dump are normalized and, for
every normalized label, the link targets are counted. The result tells which
articles a phrase most often refers to.

Counting is done by one ``LinkHandler`` per worker thread. A handler only
touches its own tables while the corpus is read; when it is closed it hands
them over to the shared ``LinkLexicon``, which merges them under a single
lock. After all workers are done the lexicon resolves redirects, applies the
support and article filters and writes one line per label.

Output Format:
Tab-separated text, sorted by label, one label per line:

    <label>\\t<total support>\\t<target>:<count>\\t<target>:<count>...

Only targets with ``count * prominence_factor >= max count`` are listed,
while the total support covers all targets after redirect resolution.

Example usage:
    $ python link_lexicon.py -o links.tsv.bz2 --workers 8 pages-*.jsonl.bz2
"""

__version__ = "2026.10.19"

import logging
import os
import threading
import time
from collections import Counter
from typing import Any, Dict, List, Mapping, Optional, Set, TextIO

import smart_open

from impresso_cookbook import get_s3_client, setup_logging

from counter_table import CounterTable
from label_normalizer import LabelNormalizer
from link_events import Handler, process_files
from link_filters import (
    MINIMAL_SUPPORT,
    PROMINENCE_FACTOR,
    filter_label,
    format_label_line,
    prominent_targets,
)
from redirect_collector import RedirectCollector

log = logging.getLogger(__name__)

LabelFrequencies = Dict[str, CounterTable]


class LinkHandler(Handler):
    """Link counter confined to a single worker thread.

    :param LinkLexicon lexicon: Shared lexicon receiving the counts on close.
    :param LabelNormalizer normalizer: Normalizer owned by this handler.

    :attr LabelFrequencies links: Normalized label -> target counts.
    :attr Set[str] articles: Titles of the articles seen by this worker.
    """

    def __init__(self, lexicon: "LinkLexicon", normalizer: LabelNormalizer) -> None:
        self.lexicon = lexicon
        self.normalizer = normalizer
        self.links: Optional[LabelFrequencies] = {}
        self.articles: Optional[Set[str]] = set()
        self.stats: Counter = Counter()

    def _check_open(self) -> None:
        if self.links is None:
            raise RuntimeError("LinkHandler used after close()")

    def article_seen(self, title: str) -> None:
        self._check_open()
        self.articles.add(title)

    def raw_article(self, title: str, text: str = "") -> None:
        self.article_seen(title)

    def add_link(self, label: str, target: str) -> None:
        """Count one link to ``target`` under the normalized ``label``."""
        self._check_open()
        normalized = self.normalizer.normalize(label)
        if not normalized:
            self.stats["links_discarded"] += 1
            return
        seen = self.links.get(normalized)
        if seen is None:
            seen = self.links[normalized] = CounterTable()
        seen.count(target)
        self.stats["links"] += 1

    def link_detected(self, title: str, label: str, target: str) -> None:
        self.add_link(label, target)

    def close(self) -> None:
        """Hand the local counts over to the lexicon. The handler is unusable afterwards."""
        self._check_open()
        links, articles = self.links, self.articles
        self.links = None
        self.articles = None
        self.lexicon.merge(links, articles, self.stats)


class LinkLexicon:
    """Shared aggregate of link label counts and emitter of the lexicon.

    :param str outfile: Output file, local or S3.
    :param RedirectCollector redirects: Source of the redirect closure,
        queried once when the output is written.
    :param int minimal_support: Targets linked fewer times under a label are dropped.
    :param int prominence_factor: A target is listed if its count times this
        factor reaches the largest count of the label.
    :param Optional[Any] s3_client: Client for S3 output.

    :attr LabelFrequencies links: Normalized label -> target counts of all workers.
    :attr Set[str] articles: Titles of all articles that exist.
    :attr Counter stats: Counts of links, articles and written labels.
    """

    def __init__(
        self,
        outfile: str,
        redirects: RedirectCollector,
        minimal_support: int = MINIMAL_SUPPORT,
        prominence_factor: int = PROMINENCE_FACTOR,
        s3_client: Optional[Any] = None,
    ) -> None:
        if minimal_support < 1:
            raise ValueError(f"minimal_support must be positive, got {minimal_support}")
        if prominence_factor < 1:
            raise ValueError(
                f"prominence_factor must be positive, got {prominence_factor}"
            )
        self.outfile: str = outfile
        self.redirects: RedirectCollector = redirects
        self.minimal_support: int = minimal_support
        self.prominence_factor: int = prominence_factor
        self.s3_client: Optional[Any] = s3_client

        self.links: LabelFrequencies = {}
        self.articles: Set[str] = set()
        self.stats: Counter = Counter()
        self._lock = threading.Lock()

    def make_thread_handler(self) -> LinkHandler:
        """Make a handler for a single worker thread."""
        return LinkHandler(self, LabelNormalizer())

    def merge(
        self,
        links: LabelFrequencies,
        articles: Set[str],
        stats: Optional[Mapping[str, int]] = None,
    ) -> None:
        """Merge the tables of a finished worker. Merges are serialized.

        Tables of labels unknown to the lexicon are taken over as they are,
        the others are added to the existing table.
        """
        with self._lock:
            for label, counter in links.items():
                existing = self.links.get(label)
                if existing is None:
                    self.links[label] = counter
                else:
                    existing.merge(counter)
            self.articles.update(articles)
            if stats:
                self.stats.update(stats)
            log.debug(
                "Merged %d labels and %d articles, lexicon has %d labels",
                len(links),
                len(articles),
                len(self.links),
            )

    def write_lexicon(self, writer: TextIO, redirects: Mapping[str, str]) -> int:
        """Filter every label and write the surviving ones in sorted order.

        The target tables are consumed: they hold the filtered counts afterwards.

        :return: Number of labels written.
        """
        written = 0
        for label in sorted(self.links):
            counter = self.links[label]
            support = filter_label(
                counter, redirects, self.articles, self.minimal_support
            )
            if support is None:
                self.stats["labels_skipped"] += 1
                continue
            targets = prominent_targets(counter, support.max, self.prominence_factor)
            writer.write(format_label_line(label, support, targets))
            written += 1
        self.stats["labels_written"] += written
        return written

    def close(self) -> None:
        """Write the lexicon to the output file. Call once, after all workers closed."""
        log.info("Closing %s output.", type(self).__name__)
        self.stats["labels"] = len(self.links)
        self.stats["articles"] = len(self.articles)
        redirects = self.redirects.transitive_closure()

        transport_params = (
            {"client": self.s3_client}
            if self.s3_client is not None and self.outfile.startswith("s3://")
            else {}
        )
        with smart_open.open(
            self.outfile, mode="w", encoding="utf-8", transport_params=transport_params
        ) as writer:
            self.write_lexicon(writer, redirects)
        self.log_statistics()

    def log_statistics(self) -> None:
        for key in sorted(self.stats):
            log.info("STATS-%s\t%d", key.upper().replace("_", "-"), self.stats[key])


def build_lexicon(
    infiles: List[str],
    outfile: str,
    workers: int = 1,
    minimal_support: int = MINIMAL_SUPPORT,
    prominence_factor: int = PROMINENCE_FACTOR,
    git_describe: str = "",
) -> LinkLexicon:
    """Read all input files and write the link lexicon to ``outfile``."""
    start_time = time.time()
    log.info("Building link lexicon, version %s", git_describe or __version__)
    uses_s3 = any(path.startswith("s3://") for path in [*infiles, outfile])
    s3_client = get_s3_client() if uses_s3 else None

    redirects = RedirectCollector()
    lexicon = LinkLexicon(
        outfile,
        redirects,
        minimal_support=minimal_support,
        prominence_factor=prominence_factor,
        s3_client=s3_client,
    )
    seen = process_files(infiles, [redirects, lexicon], workers, s3_client)
    log.info(
        "Read %d articles, %d redirects and %d links",
        seen["articles"],
        seen["redirects"],
        seen["links"],
    )
    lexicon.close()
    log.info("Link lexicon finished in %.2f seconds.", time.time() - start_time)
    return lexicon


def main():
    import argparse

    DESCRIPTION = "Count which articles the texts of wiki links refer to."

    parser = argparse.ArgumentParser(description=DESCRIPTION)
    parser.add_argument(
        "-l",
        "--log-file",
        dest="log_file",
        help="Write log to FILE",
        metavar="FILE",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: %(default)s)",
    )
    parser.add_argument(
        "--minimal-support",
        metavar="n",
        default=MINIMAL_SUPPORT,
        type=int,
        help=(
            "Minimal number of links with the same label to report a target"
            " (default %(default)s)"
        ),
    )
    parser.add_argument(
        "--prominence-factor",
        metavar="F",
        default=PROMINENCE_FACTOR,
        type=int,
        help=(
            "List a target only if its count times F reaches the top count of the"
            " label (default %(default)s)"
        ),
    )
    parser.add_argument(
        "--workers",
        metavar="N",
        default=os.cpu_count() or 1,
        type=int,
        help="Number of worker threads (default %(default)s)",
    )
    parser.add_argument(
        "--git-describe",
        type=str,
        default="",
        help=(
            "output of git describe command to log as version string instead of"
            " the script version"
        ),
    )
    parser.add_argument(
        "-o",
        "--outfile",
        metavar="FILE",
        default="/dev/stdout",
        help="write lexicon to FILE (default: %(default)s)",
    )
    parser.add_argument(
        "infile",
        metavar="INPUT",
        nargs="+",
        type=str,
        help=(
            "Input files with parsed pages in JSON Lines format or S3 prefix "
            "(s3://BUCKET/PREFIX) to expand to matching files"
        ),
    )

    arguments = parser.parse_args()

    setup_logging(arguments.log_level, arguments.log_file, logger=log)

    log.info("%s", arguments)

    build_lexicon(
        infiles=arguments.infile,
        outfile=arguments.outfile,
        workers=arguments.workers,
        minimal_support=arguments.minimal_support,
        prominence_factor=arguments.prominence_factor,
        git_describe=arguments.git_describe,
    )


if __name__ == "__main__":
    main()
