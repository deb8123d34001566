"""Tests for link_events module."""

from __future__ import annotations

import bz2
import json
import threading
from pathlib import Path
from typing import Any

import pytest

from link_events import (
    Handler,
    dispatch_page,
    expand_inputs,
    link_target,
    normalize_title,
    process_files,
)


class Recorder(Handler):
    def __init__(self) -> None:
        self.events: list[tuple[Any, ...]] = []
        self.closed = False

    def raw_article(self, title: str, text: str = "") -> None:
        self.events.append(("article", title))

    def link_detected(self, title: str, label: str, target: str) -> None:
        self.events.append(("link", title, label, target))

    def redirect(self, source: str, target: str) -> None:
        self.events.append(("redirect", source, target))

    def close(self) -> None:
        self.closed = True


class RecorderFactory:
    def __init__(self) -> None:
        self.handlers: list[Recorder] = []
        self._lock = threading.Lock()

    def make_thread_handler(self) -> Recorder:
        handler = Recorder()
        with self._lock:
            self.handlers.append(handler)
        return handler


def write_jsonl(path: Path, pages: list[dict[str, Any]]) -> str:
    path.write_text("".join(json.dumps(page) + "\n" for page in pages), encoding="utf-8")
    return str(path)


class TestTitles:
    def test_normalize_title(self) -> None:
        assert normalize_title("new_york  city ") == "New york city"
        assert normalize_title("") == ""
        assert normalize_title("éclair") == "Éclair"

    def test_link_target_drops_anchor(self) -> None:
        assert link_target("New_York_City#History") == "New York City"
        assert link_target("#Local section") == ""


class TestDispatchPage:
    def test_article_with_links(self) -> None:
        recorder = Recorder()
        page = {
            "title": "Apple",
            "links": [
                {"label": "the Big Apple", "target": "New_York_City"},
                {"target": "Fruit#Types"},
                {"label": "nowhere", "target": ""},
            ],
        }
        seen = dispatch_page(page, [recorder])
        assert recorder.events == [
            ("article", "Apple"),
            ("link", "Apple", "the Big Apple", "New York City"),
            ("link", "Apple", "Fruit", "Fruit"),
        ]
        assert seen["articles"] == 1
        assert seen["links"] == 2

    def test_empty_label_falls_back_to_target_title(self) -> None:
        recorder = Recorder()
        page = {
            "title": "Apple",
            "links": [
                {"label": "", "target": "New_York_City#History"},
                {"label": None, "target": "big_apple"},
            ],
        }
        dispatch_page(page, [recorder])
        assert recorder.events[1:] == [
            ("link", "Apple", "New York City", "New York City"),
            ("link", "Apple", "Big apple", "Big apple"),
        ]

    def test_redirect_page_is_not_an_article(self) -> None:
        recorder = Recorder()
        seen = dispatch_page({"title": "NYC", "redirect": "New York City"}, [recorder])
        assert recorder.events == [("redirect", "NYC", "New York City")]
        assert seen["redirects"] == 1
        assert seen["articles"] == 0

    def test_page_without_title_skipped(self) -> None:
        recorder = Recorder()
        seen = dispatch_page({"links": [{"target": "A"}]}, [recorder])
        assert recorder.events == []
        assert seen["pages_skipped"] == 1


class TestProcessFiles:
    def test_one_closed_handler_per_file(self, tmp_path: Path) -> None:
        first = write_jsonl(tmp_path / "a.jsonl", [{"title": "A"}, {"title": "B"}])
        second = tmp_path / "b.jsonl.bz2"
        second.write_bytes(bz2.compress(b'{"title": "C", "links": [{"target": "A"}]}\n'))
        factory = RecorderFactory()

        seen = process_files([first, str(second)], [factory], workers=2)

        assert seen["articles"] == 3
        assert seen["links"] == 1
        assert len(factory.handlers) == 2
        assert all(handler.closed for handler in factory.handlers)

    def test_failed_file_is_not_closed(self, tmp_path: Path) -> None:
        good = write_jsonl(tmp_path / "good.jsonl", [{"title": "A"}])
        bad = tmp_path / "bad.jsonl"
        bad.write_text('{"title": "B"}\n{not json\n', encoding="utf-8")
        factory = RecorderFactory()

        with pytest.raises(json.JSONDecodeError):
            process_files([good, str(bad)], [factory], workers=2)

        closed = [handler for handler in factory.handlers if handler.closed]
        assert len(factory.handlers) == 2
        assert len(closed) == 1
        assert closed[0].events == [("article", "A")]

    def test_missing_file_raises_runtime_error(self, tmp_path: Path) -> None:
        with pytest.raises(RuntimeError, match="Cannot process file"):
            process_files([str(tmp_path / "missing.jsonl")], [RecorderFactory()])

    def test_rejects_zero_workers(self) -> None:
        with pytest.raises(ValueError):
            process_files([], [RecorderFactory()], workers=0)


class TestExpandInputs:
    def test_local_paths_unchanged(self) -> None:
        assert expand_inputs(["a.jsonl", "b.jsonl.bz2"]) == ["a.jsonl", "b.jsonl.bz2"]

    def test_s3_file_not_expanded(self) -> None:
        assert expand_inputs(["s3://bucket/x.jsonl.bz2"]) == ["s3://bucket/x.jsonl.bz2"]
