from __future__ import annotations

from app.services.action_models import ActionKind
from app.services.text_matching import (
    ExtractionRule,
    contains_keyword,
    first_match,
    keyword_rule,
    normalize_message,
)

TASK_KEYWORDS = (
    "buat tugas",
    "tambahkan tugas",
    "jadwalkan tugas",
    "ingatkan saya",
    "bikin task",
    "catat tugas",
    "tolong buat tugas",
    "bisakah kamu membuat tugas",
    "saya perlu mengerjakan",
    "tambah pr",
    "tambahkan pr",
    "ada pr",
    "ada tugas",
    "deadline",
    "mengerjakan pr",
    "mengerjakan tugas",
    "tambahkan to-do",
    "tambah to-do",
    "to do",
    "todo",
    "bikin tugas",
    "buatkan tugas",
    "tambah tugas",
    "tugas baru",
    "assignment",
    "pekerjaan rumah",
    "pr",
    "task",
    "tolong ingatkan",
    "reminder",
    "jangan lupa",
)

SCHEDULE_KEYWORDS = (
    "jadwalkan",
    "buat jadwal",
    "tambahkan jadwal",
    "buat event",
    "tambahkan event",
    "bisakah kamu menjadwalkan",
    "tolong jadwalkan",
    "buat janji",
    "tambahkan janji",
    "jadwalkan meeting",
    "jadwal kegiatan",
    "buat acara",
    "tambahkan acara",
    "rapat",
    "ada rapat",
    "akan ada",
    "akan diadakan",
    "jadwal",
    "janji temu",
    "event",
    "acara",
    "meeting",
    "pertemuan",
    "agenda",
    "schedule",
    "bikin jadwal",
    "buatkan jadwal",
    "tambah jadwal",
    "jadwal baru",
    "appointment",
    "kelas",
    "kuliah",
    "ujian",
    "seminar",
    "workshop",
    "webinar",
    "presentasi",
)

HABIT_KEYWORDS = (
    "buat kebiasaan",
    "tambahkan kebiasaan",
    "catat kebiasaan",
    "track kebiasaan",
    "bisakah kamu membuat kebiasaan",
    "tolong buat kebiasaan",
    "saya ingin memulai kebiasaan",
    "ingin membiasakan diri",
    "kebiasaan baru",
    "kebiasaan baik",
    "habit baru",
    "rutin",
    "habit",
    "kebiasaan",
    "rutinitas",
    "bikin kebiasaan",
    "buatkan kebiasaan",
    "tambah kebiasaan",
    "tracking kebiasaan",
    "membiasakan",
    "biasakan",
    "daily habit",
    "weekly habit",
    "monthly habit",
    "kebiasaan harian",
    "kebiasaan mingguan",
    "kebiasaan bulanan",
    "mulai kebiasaan",
    "memulai kebiasaan",
    "membiasakan diri",
    "habit tracker",
    "kebiasaan sehat",
    "healthy habit",
    "kebiasaan produktif",
)

NOTE_KEYWORDS = (
    "buat catatan",
    "catat",
    "tulis catatan",
    "tolong catat",
    "ingat ini",
    "tolong ingat",
    "simpan catatan",
    "catat ini",
    "bisakah kamu mencatat",
    "catat poin",
    "simpan poin",
    "buat note",
    "tolong buat note",
    "note",
    "catatan",
    "memo",
    "bikin catatan",
    "buatkan catatan",
    "tambah catatan",
    "catatan baru",
    "catat poin-poin",
    "catat informasi",
    "simpan informasi",
)

# Priority order: the first kind whose table matches wins.
KEYWORD_TABLES: tuple[tuple[ActionKind, tuple[str, ...]], ...] = (
    (ActionKind.create_task, TASK_KEYWORDS),
    (ActionKind.create_schedule, SCHEDULE_KEYWORDS),
    (ActionKind.create_habit, HABIT_KEYWORDS),
    (ActionKind.create_note, NOTE_KEYWORDS),
)

REPLY_FALLBACK_RULES: list[ExtractionRule[ActionKind]] = [
    keyword_rule(
        r"^(?=.*\btugas\b)(?=.*\b(?:akan membuat|saya akan|akan saya)\b)",
        ActionKind.create_task,
    ),
    keyword_rule(r"\b(?:jadwal\w*|menjadwalkan|event)\b", ActionKind.create_schedule),
    keyword_rule(r"\b(?:kebiasaan|habit)\b", ActionKind.create_habit),
    keyword_rule(r"\b(?:catatan|note)\b", ActionKind.create_note),
]


def classify(user_message: str | None, assistant_reply: str | None = None) -> ActionKind | None:
    """Pick the action kind for one chat turn, or ``None`` when nothing applies.

    The user message is checked against each keyword table in priority order;
    the assistant reply is only consulted when the message matched nothing.
    """
    if user_message:
        normalized = normalize_message(user_message)
        for kind, keywords in KEYWORD_TABLES:
            if contains_keyword(keywords, normalized):
                return kind

    if assistant_reply:
        return first_match(REPLY_FALLBACK_RULES, normalize_message(assistant_reply))
    return None
