"""Tests for cache key derivation."""

import pytest

from tunestream.modules.streaming.normalizer import (
    normalize,
    song_key,
    stream_key,
)


@pytest.mark.unit
class TestNormalize:
    """Tests for normalize()."""

    def test_trim_and_lowercase(self):
        """Surrounding whitespace and case never change the key.

        ЧТО ПРОВЕРЯЕМ:
            " Shape of You " and "shape of you" share one key
        """
        assert normalize(" Shape of You ") == normalize("shape of you")
        assert normalize(" Shape of You ") == "song:shape of you"

    def test_idempotent(self):
        """Normalizing a key again returns the same key."""
        once = normalize("  Bohemian Rhapsody\t")
        assert normalize(once) == once
        assert normalize(normalize(once)) == once

    def test_idempotent_for_stream_namespace(self):
        once = stream_key("Bohemian Rhapsody")
        assert normalize(once, "stream") == once

    def test_inner_whitespace_preserved(self):
        assert normalize("a  b") == "song:a  b"

    def test_namespaces_are_disjoint(self):
        assert song_key("Hello") == "song:hello"
        assert stream_key("Hello") == "stream:hello"
        assert song_key("Hello") != stream_key("Hello")

    def test_unknown_namespace_rejected(self):
        with pytest.raises(ValueError):
            normalize("hello", "album")

    def test_unicode_lowercased(self):
        assert normalize("  Ärzte ") == "song:ärzte"

    def test_other_namespace_prefix_is_query_text(self):
        """Only the target namespace prefix is treated as already normalized.

        ЧТО ПРОВЕРЯЕМ:
            "Stream: Foo" and "foo" are different searches with different keys
        """
        assert song_key("Stream: Foo") == "song:stream: foo"
        assert song_key("Stream: Foo") != song_key("foo")
        assert stream_key("song:foo") == "stream:song:foo"
