#!/usr/bin/env python3

"""
Collect redirect pages and resolve them into a transitive closure.

Every worker reports redirect pages (``source -> target``) to the same
collector. Once the corpus has been read, ``transitive_closure`` maps every
alias directly to the page at the end of its redirect chain, so that a
single lookup is enough to canonicalize a link target.
"""

import logging
import threading
from typing import Dict, List, Optional

from link_events import Handler

log = logging.getLogger(__name__)


class RedirectCollector(Handler):
    """Thread-safe accumulator of redirect pairs.

    :attr Dict[str, str] redirects: Raw redirect pairs, alias -> target.
    """

    def __init__(self) -> None:
        self.redirects: Dict[str, str] = {}
        self._lock = threading.Lock()
        self._closure: Optional[Dict[str, str]] = None

    def add(self, source: str, target: str) -> None:
        """Record that page ``source`` redirects to ``target``."""
        if not source or not target:
            return
        with self._lock:
            previous = self.redirects.get(source)
            if previous is not None and previous != target:
                log.warning(
                    "Redirect %r already points to %r, keeping %r",
                    source,
                    previous,
                    target,
                )
            self.redirects[source] = target
            self._closure = None

    redirect = add

    def make_thread_handler(self) -> "RedirectCollector":
        """The collector is shared by all workers, access is locked."""
        return self

    def transitive_closure(self) -> Dict[str, str]:
        """Map every alias to the final target of its redirect chain.

        Chains are followed until a page that is not itself a redirect. All
        pages of a redirect cycle, and the chains leading into it, resolve to
        the smallest title of the cycle, which is itself not an alias. No
        target of the closure is an alias again.
        """
        with self._lock:
            if self._closure is not None:
                return self._closure

            resolved: Dict[str, str] = {}
            cycles = 0
            for alias in self.redirects:
                if alias in resolved:
                    continue
                path: List[str] = []
                position: Dict[str, int] = {}
                current = alias
                while (
                    current in self.redirects
                    and current not in position
                    and current not in resolved
                ):
                    position[current] = len(path)
                    path.append(current)
                    current = self.redirects[current]

                if current in resolved:
                    final = resolved[current]
                elif current in position:
                    final = min(path[position[current] :])
                    cycles += 1
                else:
                    final = current
                for node in path:
                    resolved[node] = final

            closure = {
                alias: target for alias, target in resolved.items() if alias != target
            }

            if cycles:
                log.warning("Broke %d redirect cycles", cycles)
            log.info(
                "Resolved %d redirects into %d aliases", len(self.redirects), len(closure)
            )
            self._closure = closure
            return closure
