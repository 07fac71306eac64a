"""Tests for segment building, artifact cleanup and caption rendering."""

from audiotext.asr.captions import format_timestamp, to_srt, to_vtt
from audiotext.asr.postprocess import (
    WORDS_PER_SEGMENT,
    clean_transcript,
    group_words,
    segments_from_engine,
    single_segment,
)


def _words(n, step=0.5, last="word"):
    out = [{"word": f"w{i}", "start": i * step, "end": i * step + step} for i in range(n - 1)]
    out.append({"word": last, "start": (n - 1) * step, "end": n * step})
    return out


# ---------------- grouping ----------------
def test_breaks_after_fifteen_words():
    segments = group_words(_words(20), confidence=0.95)
    assert len(segments) == 2
    assert len(segments[0].text.split()) == WORDS_PER_SEGMENT
    assert segments[0].start == 0.0 and segments[0].end == 7.5
    assert segments[1].start == 7.5


def test_breaks_after_sentence_end():
    words = [
        {"word": "Hi", "start": 0.0, "end": 0.2},
        {"word": "there!", "start": 0.2, "end": 0.5},
        {"word": "Bye", "start": 0.6, "end": 0.9},
    ]
    segments = group_words(words, confidence=0.95)
    assert [s.text for s in segments] == ["Hi there!", "Bye"]
    assert all(s.confidence == 0.95 for s in segments)


def test_word_probabilities_drive_confidence():
    words = [
        {"word": "a", "start": 0, "end": 1, "probability": 0.5},
        {"word": "b.", "start": 1, "end": 2, "probability": 1.0},
    ]
    assert group_words(words, confidence=0.95)[0].confidence == 0.75


def test_segments_are_monotonic_and_clamped_to_duration():
    words = [
        {"word": "late", "start": 3.0, "end": 4.0},
        {"word": "start.", "start": 4.0, "end": 12.0},
        {"word": "out", "start": 1.0, "end": 2.0},  # out of order timestamps from the engine
    ]
    segments = group_words(words, confidence=0.9, duration=10.0)
    starts = [s.start for s in segments]
    assert starts == sorted(starts)
    assert all(s.end <= 10.0 and s.start <= s.end for s in segments)


def test_single_segment_spans_duration():
    [seg] = single_segment("hello", confidence=0.95, duration=3.5)
    assert (seg.start, seg.end, seg.text) == (0.0, 3.5, "hello")
    assert single_segment("   ", confidence=0.95, duration=1.0) == []


def test_engine_segments_sorted_and_empty_dropped():
    raw = [
        {"start": 5.0, "end": 6.0, "text": "second"},
        {"start": 0.0, "end": 1.0, "text": "first"},
        {"start": 2.0, "end": 3.0, "text": "  "},
    ]
    segments = segments_from_engine(raw, confidence=0.75)
    assert [s.text for s in segments] == ["first", "second"]


# ---------------- cleanup ----------------
def test_cleanup_drops_sentences_repeated_more_than_three_times():
    text = "The meeting starts now. " + "Please hold the line. " * 4 + "We covered the budget."
    result = clean_transcript(text)
    assert result.text == "The meeting starts now. We covered the budget"
    assert "please hold the line" in result.removed


def test_cleanup_keeps_sentence_repeated_exactly_three_times():
    text = "Please hold the line. " * 3
    assert clean_transcript(text).text.count("Please hold the line") == 3


def test_cleanup_drops_short_sentences_and_artifacts():
    text = "Okay. The quarterly numbers look good. Thanks for watching!"
    assert clean_transcript(text).text == "The quarterly numbers look good"


def test_cleanup_of_pure_noise_is_empty():
    assert clean_transcript("Thank you for watching. Thank you for watching.").text == ""


# ---------------- captions ----------------
def test_timestamp_formats():
    assert format_timestamp(3661.5) == "01:01:01.500"
    assert format_timestamp(3661.5, srt=True) == "01:01:01,500"
    assert format_timestamp(0.0019) == "00:00:00.001"


def test_vtt_and_srt_render_cues_in_time_order():
    segments = [
        {"start": 2.0, "end": 3.0, "text": "Second"},
        {"start": 0.0, "end": 1.25, "text": "First"},
        {"start": 4.0, "end": 5.0, "text": ""},
    ]
    assert to_vtt(segments) == (
        "WEBVTT\n\n"
        "1\n00:00:00.000 --> 00:00:01.250\nFirst\n\n"
        "2\n00:00:02.000 --> 00:00:03.000\nSecond\n\n"
    )
    assert to_srt(segments) == (
        "1\n00:00:00,000 --> 00:00:01,250\nFirst\n\n"
        "2\n00:00:02,000 --> 00:00:03,000\nSecond\n\n"
    )
