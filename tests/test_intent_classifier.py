from app.services.action_models import ActionKind
from app.services.intent_classifier import KEYWORD_TABLES, classify


def test_classify_task_request() -> None:
    kind = classify("tolong buatkan tugas Laporan Keuangan dengan deadline besok jam 14", None)

    assert kind == ActionKind.create_task


def test_classify_schedule_request() -> None:
    assert classify("jadwalkan rapat tim besok jam 10 selama 2 jam", None) == (
        ActionKind.create_schedule
    )


def test_classify_habit_request() -> None:
    assert classify("buat kebiasaan olahraga pagi setiap hari", None) == ActionKind.create_habit


def test_classify_note_request_ignores_punctuation() -> None:
    assert classify("catat: nomor rekening kantor", None) == ActionKind.create_note


def test_classify_returns_none_for_small_talk() -> None:
    assert classify("apa kabar?", None) is None
    assert classify("apa kabar?", "Kabar baik, terima kasih!") is None


def test_classify_prefers_task_over_schedule() -> None:
    assert classify("jadwalkan tugas presentasi besok", None) == ActionKind.create_task


def test_classify_matches_multi_word_phrase_with_words_apart() -> None:
    assert classify("buat dulu sebuah tugas ringkasan", None) == ActionKind.create_task


def test_classify_matches_whole_words_only() -> None:
    assert classify("presentasi produk besok", None) == ActionKind.create_schedule


def test_classify_falls_back_to_assistant_reply() -> None:
    assert classify("oke", "Baik, saya akan menjadwalkan pertemuan itu") == (
        ActionKind.create_schedule
    )
    assert classify("oke siap", "Saya akan membuat tugas tersebut") == ActionKind.create_task
    assert classify("boleh", "Saya simpan sebagai catatan ya") == ActionKind.create_note


def test_every_keyword_is_recognised_with_filler() -> None:
    priority = [kind for kind, _keywords in KEYWORD_TABLES]
    for expected_kind, keywords in KEYWORD_TABLES:
        for keyword in keywords:
            kind = classify(f"halo, {keyword} ya", None)

            assert kind is not None
            # Phrases shared between tables belong to the earlier table.
            assert priority.index(kind) <= priority.index(expected_kind)
