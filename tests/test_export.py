"""Tests for entity export."""

import csv
import io

import pytest

from note_render.export import CSV_COLUMNS, entities_to_csv, entities_to_dict, entity_rows
from note_render.pipeline import ContentProcessor
from note_render.profile_cache import ProfileCache, StaticProfileService

NOTE = "Hello #nostr https://example.com/cat.jpg https://youtu.be/abc123 nostr:naddr1xyz"


@pytest.fixture
def processed():
    processor = ContentProcessor(ProfileCache(StaticProfileService()))
    return processor.process_content(NOTE)


class TestExport:
    def test_rows(self, processed):
        kinds = [row["kind"] for row in entity_rows(processed)]
        assert kinds == [
            "media:image",
            "media:video",
            "link",
            "link",
            "hashtag",
            "quote:addr",
        ]

    def test_thumbnail_in_detail(self, processed):
        video = [row for row in entity_rows(processed) if row["kind"] == "media:video"][0]
        assert video["detail"] == "https://img.youtube.com/vi/abc123/maxresdefault.jpg"

    def test_csv(self, processed):
        result = entities_to_csv(processed)
        reader = csv.DictReader(io.StringIO(result))
        assert reader.fieldnames == CSV_COLUMNS
        rows = list(reader)
        assert rows[0]["value"] == "https://example.com/cat.jpg"
        assert rows[-1]["value"] == "nostr:naddr1xyz"

    def test_csv_to_output(self, processed):
        out = io.StringIO()
        result = entities_to_csv(processed, out)
        assert out.getvalue() == result

    def test_dict(self, processed):
        data = entities_to_dict(processed)
        assert data["hashtags"] == ["nostr"]
        assert data["media"][0] == {
            "type": "image",
            "url": "https://example.com/cat.jpg",
            "thumbnail": None,
        }
        assert data["links"][0]["domain"] == "example.com"
        assert data["quoted_references"][0]["type"] == "addr"
        assert "html" not in data

    def test_dict_preview(self, processed):
        assert entities_to_dict(processed)["preview"] == NOTE

    def test_dict_preview_of_empty_note(self):
        processor = ContentProcessor(ProfileCache(StaticProfileService()))
        assert entities_to_dict(processor.process_content(""))["preview"] == "[Empty note]"
