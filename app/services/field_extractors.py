from __future__ import annotations

from collections.abc import Iterable, Sequence
import re

from app.services.action_models import (
    DEFAULT_HABIT_COLOR,
    DEFAULT_HABIT_ICON,
    ActionKind,
    HabitFrequency,
    ScheduleType,
    TaskPriority,
)
from app.services.text_matching import (
    ExtractionRule,
    clean_optional_text,
    first_match,
    first_source_match,
    format_title,
    group_rule,
    keyword_rule,
)

_FALLBACK_TITLE_TOKEN_COUNT = 6
_LONG_TEXT_THRESHOLD = 50

DEFAULT_TITLES: dict[ActionKind, str] = {
    ActionKind.create_task: "Tugas Baru",
    ActionKind.create_schedule: "Acara Baru",
    ActionKind.create_habit: "Kebiasaan Baru",
    ActionKind.create_note: "Catatan Baru",
}

_TEMPORAL_STOP = (
    r"\b(?:besok|lusa|hari ini|minggu depan|pekan depan|bulan depan|tomorrow|today|"
    r"next week|next month)\b|\b(?:jam|pukul|at)\s+\d"
)
_TASK_STOP_PATTERN = re.compile(
    r"dengan\s+deadline|\bdeadline\b|pada\s+tanggal|sebelum\s+tanggal|"
    r"\b(?:untuk|di|pada|dalam)\s+(?:mata\s*kuliah|mk|kategori|pelajaran|course|subject|category)\b|"
    r"\b(?:kategori|pelajaran|mata\s*kuliah|mk|category)\b|dengan\s+prioritas|\bprioritas\b|"
    rf"{_TEMPORAL_STOP}|[.,!?;\n]",
    re.IGNORECASE,
)
_SCHEDULE_STOP_PATTERN = re.compile(
    r"\b(?:besok|lusa|hari ini|minggu depan|pekan depan|bulan depan|jam|pukul|selama|durasi|"
    r"di|pada|tanggal|sampai|hingga|dari|mulai|untuk|dengan|tomorrow|today|at|for|on)\b|"
    r"\b(?:dalam|in)\s+\d|"
    r"[.,!?;\n]",
    re.IGNORECASE,
)
_HABIT_STOP_PATTERN = re.compile(
    r"\b(?:setiap|tiap|harian|mingguan|bulanan|daily|weekly|monthly|every|untuk|agar|supaya|"
    r"selama|mulai)\b|[.?,\n]",
    re.IGNORECASE,
)
_NOTE_STOP_PATTERN = re.compile(r"[.\n]")
_CATEGORY_STOP_PATTERN = re.compile(
    rf"dengan\s+deadline|\bdeadline\b|dengan\s+prioritas|{_TEMPORAL_STOP}",
    re.IGNORECASE,
)
_LOCATION_STOP_PATTERN = re.compile(
    r"\b(?:besok|lusa|hari ini|minggu depan|bulan depan|jam|pukul|selama|durasi|pada|tanggal|"
    r"sampai|hingga|untuk|dengan|mulai|tomorrow|today|at|for|on)\b",
    re.IGNORECASE,
)
_STRUCTURAL_SPLIT_PATTERN = re.compile(
    r"dengan\s+deadline|pada\s+tanggal|sebelum\s+tanggal|untuk\s+kategori|untuk\s+pelajaran|"
    r"untuk\s+mata\s+kuliah|\bkategori\b|\bpelajaran\b|mata\s+kuliah|\bmk\b|dengan\s+prioritas|"
    r"\bprioritas\b",
    re.IGNORECASE,
)
_GENERIC_LEAD_IN_PATTERN = re.compile(
    r"(?:\b(?:tolong|mohon|bisa|bisakah|please|can you)\s+)?"
    r"\b(?:buatkan|buat|bikin|tambahkan|tambah|catatkan|catat|jadwalkan|ingatkan saya|ingatkan|"
    r"create|add|schedule|make)\b"
    r"(?:\s+(?:sebuah|satu|a|an|the)\b)?"
    r"(?:\s+(?:tugas|task|pr|assignment|jadwal|acara|event|kebiasaan|habit|catatan|note)\b)?"
    r"(?:\s+baru)?",
    re.IGNORECASE,
)
_QUOTED_VALUE = r"[\"“'‘]([^\"”'’\n]+)[\"”'’]"
_QUOTED_ONLY_PATTERN = re.compile(rf"{_QUOTED_VALUE}[\s:,\-]*")


def _cut_at(value: str | None, stop_pattern: re.Pattern[str]) -> str | None:
    if not value:
        return None
    match = stop_pattern.search(value)
    if match:
        value = value[: match.start()]
    return clean_optional_text(value.strip(" :-"))


def _title_builder(stop_pattern: re.Pattern[str]):
    def build(match: re.Match[str]) -> str | None:
        cleaned = _cut_at(match.group("value"), stop_pattern)
        return format_title(cleaned) if cleaned else None

    return build


def _lead_in_rules(
    phrases: Sequence[str],
    stop_pattern: re.Pattern[str],
) -> list[ExtractionRule[str]]:
    return [
        ExtractionRule(
            pattern=re.compile(
                rf"\b{re.escape(phrase)}(?:\s+baru)?\b\s*[:\-]?\s*(?P<value>\S.*)",
                re.IGNORECASE | re.DOTALL,
            ),
            build=_title_builder(stop_pattern),
        )
        for phrase in phrases
    ]


def _quoted_title(match: re.Match[str]) -> str | None:
    cleaned = clean_optional_text(match.group(1))
    return format_title(cleaned) if cleaned else None


def _quoted_rules(stop_pattern: re.Pattern[str]) -> list[ExtractionRule[str]]:
    return [
        ExtractionRule(pattern=re.compile(_QUOTED_VALUE), build=_quoted_title),
        ExtractionRule(
            pattern=re.compile(r"=\s*(?P<value>[^,.!?;\n]+)"),
            build=_title_builder(stop_pattern),
        ),
    ]


TASK_TITLE_RULES: list[ExtractionRule[str]] = [
    *_lead_in_rules(
        (
            "buat tugas",
            "buatkan tugas",
            "tambahkan tugas",
            "jadwalkan tugas",
            "ingatkan saya untuk",
            "ingatkan saya",
            "bikin task",
            "catat tugas",
            "ada tugas",
            "aku ada tugas",
            "aku punya tugas",
            "buat task",
            "tambah task",
            "bikin pr",
            "aku ada pr",
            "ada deadline",
            "aku ada deadline",
            "tugas",
            "deadline",
            "pr",
            "assignment",
            "task",
        ),
        _TASK_STOP_PATTERN,
    ),
    *_quoted_rules(_TASK_STOP_PATTERN),
]

SCHEDULE_TITLE_RULES: list[ExtractionRule[str]] = [
    ExtractionRule(pattern=re.compile(_QUOTED_VALUE), build=_quoted_title),
    ExtractionRule(
        pattern=re.compile(
            r"\b(?:jadwalkan|buatkan|buat|bikin|tambahkan|tambah|schedule)\s+"
            r"(?:(?:jadwal|acara|event|janji)\s+)?(?P<value>[a-z0-9].*)",
            re.IGNORECASE | re.DOTALL,
        ),
        build=_title_builder(_SCHEDULE_STOP_PATTERN),
    ),
    ExtractionRule(
        pattern=re.compile(
            r"\b(?P<value>(?:rapat|meeting|pertemuan|kelas|kuliah|ujian|seminar|workshop|webinar|"
            r"presentasi|janji temu|acara|event)\b.*)",
            re.IGNORECASE | re.DOTALL,
        ),
        build=_title_builder(_SCHEDULE_STOP_PATTERN),
    ),
    ExtractionRule(
        pattern=re.compile(
            r"(?P<value>[A-Za-z0-9][^,.!?\n]*?)\s+(?:pada|tanggal)\b",
            re.IGNORECASE,
        ),
        build=_title_builder(_SCHEDULE_STOP_PATTERN),
    ),
]

HABIT_TITLE_RULES: list[ExtractionRule[str]] = [
    *_lead_in_rules(
        (
            "buat kebiasaan",
            "buatkan kebiasaan",
            "bikin kebiasaan",
            "tambahkan kebiasaan",
            "tambah kebiasaan",
            "catat kebiasaan",
            "track kebiasaan",
            "mulai kebiasaan",
            "memulai kebiasaan",
            "membiasakan diri",
            "biasakan",
            "habit",
            "kebiasaan",
            "rutinitas",
            "rutin",
        ),
        _HABIT_STOP_PATTERN,
    ),
    *_quoted_rules(_HABIT_STOP_PATTERN),
]

_NOTE_LEAD_IN_RULES = _lead_in_rules(
    (
        "buat catatan",
        "buatkan catatan",
        "bikin catatan",
        "tulis catatan",
        "simpan catatan",
        "tambah catatan",
        "tolong catat",
        "catat ini",
        "catat",
        "buat note",
        "note",
        "catatan",
        "memo",
    ),
    _NOTE_STOP_PATTERN,
)

NOTE_TITLE_RULES: list[ExtractionRule[str]] = [
    *_NOTE_LEAD_IN_RULES,
    *_quoted_rules(_NOTE_STOP_PATTERN),
]

TITLE_RULES: dict[ActionKind, list[ExtractionRule[str]]] = {
    ActionKind.create_task: TASK_TITLE_RULES,
    ActionKind.create_schedule: SCHEDULE_TITLE_RULES,
    ActionKind.create_habit: HABIT_TITLE_RULES,
    ActionKind.create_note: NOTE_TITLE_RULES,
}

CATEGORY_RULES: list[ExtractionRule[str]] = [
    ExtractionRule(
        pattern=re.compile(
            r"\b(?:untuk|di|pada|dalam|for|in)\s+(?:mata\s*kuliah|mk|course|subject|kategori|category|"
            r"pelajaran)\s+['\"]?(?P<value>[a-zA-Z][^,.!?'\"\n]*)",
            re.IGNORECASE,
        ),
        build=lambda match: _cut_at(match.group("value"), _CATEGORY_STOP_PATTERN),
    ),
    ExtractionRule(
        pattern=re.compile(
            r"\b(?:mata\s*kuliah|mk|course|subject|kategori|category|pelajaran)\s*"
            r"(?:adalah|yaitu|is|:)?\s*['\"]?(?P<value>[a-zA-Z][^,.!?'\"\n]*)",
            re.IGNORECASE,
        ),
        build=lambda match: _cut_at(match.group("value"), _CATEGORY_STOP_PATTERN),
    ),
]

DESCRIPTION_RULES: list[ExtractionRule[str]] = [
    group_rule(r"\b(?:deskripsi|description)(?:nya)?\s*(?:adalah|yaitu|is|:)?\s+([^\n]+)"),
    group_rule(r"\bdetail(?:nya|s)?\s*(?:adalah|yaitu|is|:)?\s+([^\n]+)"),
    group_rule(r"\bketerangan(?:nya)?\s*(?:adalah|yaitu|:)?\s+([^\n]+)"),
    group_rule(r"\bnote\s*:\s*([^\n]+)"),
]

PRIORITY_RULES: list[ExtractionRule[TaskPriority]] = [
    keyword_rule(r"\b(?:tidak|gak|nggak|ga|not)\s+(?:penting|urgent|mendesak)\b", TaskPriority.low),
    keyword_rule(
        r"\b(?:penting|urgent|mendesak|segera|high|tinggi|krusial|critical|asap)\b",
        TaskPriority.high,
    ),
    keyword_rule(r"\b(?:sedang|medium|normal)\b", TaskPriority.medium),
    keyword_rule(r"\b(?:rendah|low|santai|relaxed)\b", TaskPriority.low),
]

LOCATION_RULES: list[ExtractionRule[str]] = [
    ExtractionRule(
        pattern=re.compile(
            r"\b(?:bertempat di|berlokasi di|lokasi(?:nya)?|tempat(?:nya)?|venue|location|di|at(?!\s+\d))\s*"
            r"(?::|adalah|yaitu|is)?\s+['\"]?(?P<value>[A-Za-z0-9][^,.!?'\"\n]*)",
            re.IGNORECASE,
        ),
        build=lambda match: _cut_at(match.group("value"), _LOCATION_STOP_PATTERN),
    ),
]

SCHEDULE_TYPE_RULES: list[ExtractionRule[ScheduleType]] = [
    keyword_rule(r"\b(?:meeting|rapat|pertemuan)\b", ScheduleType.meeting),
    keyword_rule(r"\b(?:deadline|tenggat(?: waktu)?)\b", ScheduleType.deadline),
    keyword_rule(r"\b(?:kuliah|kelas|class|lecture)\b", ScheduleType.class_),
    keyword_rule(r"\b(?:exam|ujian|tes|test|quiz|kuis)\b", ScheduleType.exam),
    keyword_rule(r"\b(?:tugas|task|assignment|project|proyek)\b", ScheduleType.task),
]

HABIT_FREQUENCY_RULES: list[ExtractionRule[HabitFrequency]] = [
    keyword_rule(
        r"\b(?:setiap (?:2|dua) hari|tiap (?:2|dua) hari|every (?:2 days|other day)|selang sehari)\b",
        HabitFrequency.every_other_day,
    ),
    keyword_rule(r"\b(?:hari kerja|weekdays?|senin sampai jumat)\b", HabitFrequency.weekdays),
    keyword_rule(r"\b(?:weekends?|akhir pekan|sabtu minggu)\b", HabitFrequency.weekends),
    keyword_rule(r"\b(?:setiap hari|tiap hari|harian|daily|every day)\b", HabitFrequency.daily),
    keyword_rule(
        r"\b(?:setiap minggu|tiap minggu|mingguan|weekly|every week)\b",
        HabitFrequency.weekly,
    ),
    keyword_rule(
        r"\b(?:setiap bulan|tiap bulan|bulanan|monthly|every month)\b",
        HabitFrequency.monthly,
    ),
]

HABIT_THEME_RULES: list[ExtractionRule[tuple[str, str]]] = [
    keyword_rule(r"\b(?:olahraga|fitness|gym|latihan|workout|exercise)\b", ("🏋️", "#ef4444")),
    keyword_rule(r"\b(?:baca|membaca|reading|buku|book)\b", ("📚", "#f59e0b")),
    keyword_rule(r"\b(?:air|minum|hydrate|hydration)\b", ("💧", "#3b82f6")),
    keyword_rule(r"\b(?:tidur|sleep|istirahat|rest)\b", ("😴", "#8b5cf6")),
    keyword_rule(r"\b(?:makan|makanan|nutrisi|nutrition|food|eat)\b", ("🍎", "#ef4444")),
    keyword_rule(r"\b(?:medita\w*|mindfulness)\b", ("🧘", "#8b5cf6")),
    keyword_rule(r"\b(?:belajar|study|pelajaran|learn)\b", ("📝", "#f59e0b")),
    keyword_rule(r"\b(?:jalan|walk|walking|jogging)\b", ("🚶", "#10b981")),
]

HABIT_PURPOSE_RULES: list[ExtractionRule[str]] = [
    group_rule(r"\b(?:untuk|agar|supaya)\s+([^.?!\n]+)(?:[.?!]|$)"),
    group_rule(r"\bdengan tujuan\s+([^.?!\n]+)(?:[.?!]|$)"),
]

SCHEDULE_COLORS: dict[ScheduleType, str] = {
    ScheduleType.meeting: "#EF4444",
    ScheduleType.task: "#F59E0B",
}
DEFAULT_SCHEDULE_COLOR = "#3B82F6"

# Reply-only patterns. Assistant replies are more structured than user input,
# so a hit here overrides the value found by the generic tables.
TASK_REPLY_TITLE_RULES: list[ExtractionRule[str]] = [
    group_rule(
        rf"(?:akan|telah|sudah)\s+(?:membuat|membuatkan|menambahkan|mencatat)\s+tugas\s+{_QUOTED_VALUE}",
    ),
    group_rule(rf"tugas\s+{_QUOTED_VALUE}\s+(?:telah|berhasil|sudah)\s+(?:dibuat|ditambahkan)"),
    group_rule(
        rf"(?:will|have|i'll|i've)\s+(?:create|add|created|added)\s+(?:a\s+|the\s+)?task\s+{_QUOTED_VALUE}",
    ),
]
TASK_REPLY_DEADLINE_RULES: list[ExtractionRule[str]] = [
    group_rule(r"dengan\s+deadline\s+(?:tanggal|pada)\s+([^.!,\n]+)"),
    group_rule(r"with\s+(?:a\s+)?deadline\s+(?:on|at)\s+([^.!,\n]+)"),
]
TASK_REPLY_CATEGORY_RULES: list[ExtractionRule[str]] = [
    group_rule(r"(?:untuk|pada|dalam)\s+(?:mata kuliah|mk|kategori|pelajaran)\s+([^.!,\n]+)"),
]
TASK_REPLY_PRIORITY_RULES: list[ExtractionRule[TaskPriority]] = [
    keyword_rule(r"dengan prioritas tinggi|prioritas\s*:\s*tinggi|with high priority", TaskPriority.high),
    keyword_rule(r"dengan prioritas rendah|prioritas\s*:\s*rendah|with low priority", TaskPriority.low),
]
SCHEDULE_REPLY_TITLE_RULES: list[ExtractionRule[str]] = [
    group_rule(
        r"(?:saya akan|akan saya|i will|i'll)\s+(?:jadwalkan|menjadwalkan|buat|buatkan|tambahkan|schedule)\s+"
        rf"(?:(?:jadwal|acara|event|meeting|rapat)\s+)?{_QUOTED_VALUE}",
    ),
]
HABIT_REPLY_NAME_RULES: list[ExtractionRule[str]] = [
    group_rule(
        r"(?:saya akan|akan saya|i will|i'll)\s+(?:buat|buatkan|tambahkan|catat|create|add)\s+"
        rf"(?:(?:kebiasaan|habit)\s+)?{_QUOTED_VALUE}",
    ),
]
NOTE_REPLY_TITLE_RULES: list[ExtractionRule[str]] = [
    group_rule(
        r"(?:saya akan|akan saya|i will|i'll)\s+(?:catat|mencatat|simpan|menyimpan|buat|buatkan|save)\s+"
        rf"(?:(?:catatan|note)\s+)?{_QUOTED_VALUE}",
    ),
]


def extract_title(text: str | None, kind: ActionKind) -> str | None:
    return first_match(TITLE_RULES[kind], text)


def fallback_title(message: str, kind: ActionKind) -> str:
    """Title built from the first six tokens of the raw message.

    Generic lead-in verbs ("tolong buatkan tugas", "jadwalkan") are dropped
    first; the kind's default title is used when nothing is left.
    """
    stripped = _GENERIC_LEAD_IN_PATTERN.sub(" ", message, count=1)
    tokens = [token for token in stripped.split() if token.strip(".,!?;:")]
    if not tokens:
        return DEFAULT_TITLES[kind]
    return format_title(" ".join(tokens[:_FALLBACK_TITLE_TOKEN_COUNT]).strip(" .,!?;:"))


def extract_category(text: str | None) -> str | None:
    return first_match(CATEGORY_RULES, text)


def extract_description(text: str | None, *, allow_structural_split: bool = True) -> str | None:
    if not text:
        return None
    explicit = first_match(DESCRIPTION_RULES, text)
    if explicit:
        return explicit
    if not allow_structural_split or len(text) <= _LONG_TEXT_THRESHOLD:
        return None
    cleaned = text.strip()
    lead_in = _GENERIC_LEAD_IN_PATTERN.match(cleaned)
    if lead_in:
        cleaned = cleaned[lead_in.end():].strip()
    parts = _STRUCTURAL_SPLIT_PATTERN.split(cleaned, maxsplit=1)
    if len(parts) < 2:
        return None
    candidate = parts[0].strip()
    # A bare quoted title is not a description.
    if _QUOTED_ONLY_PATTERN.fullmatch(candidate):
        return None
    return clean_optional_text(candidate)


def extract_priority(text: str | None) -> TaskPriority | None:
    return first_match(PRIORITY_RULES, text)


def extract_location(text: str | None) -> str | None:
    return first_match(LOCATION_RULES, text)


def extract_schedule_type(text: str | None) -> ScheduleType | None:
    return first_match(SCHEDULE_TYPE_RULES, text)


def extract_habit_frequency(text: str | None) -> HabitFrequency | None:
    return first_match(HABIT_FREQUENCY_RULES, text)


def extract_habit_purpose(text: str | None) -> str | None:
    return first_match(HABIT_PURPOSE_RULES, text)


def habit_theme_for(sources: Iterable[str | None]) -> tuple[str, str]:
    return first_source_match(HABIT_THEME_RULES, sources) or (DEFAULT_HABIT_ICON, DEFAULT_HABIT_COLOR)


def schedule_color(schedule_type: ScheduleType) -> str:
    return SCHEDULE_COLORS.get(schedule_type, DEFAULT_SCHEDULE_COLOR)


def extract_note_body(message: str) -> tuple[str, str] | None:
    """Split a note request into ``(title, content)``.

    The first line after the lead-in (up to its first period) is the title;
    remaining lines are the content, or the whole remainder for one-liners.
    """
    for rule in _NOTE_LEAD_IN_RULES:
        match = rule.pattern.search(message)
        if not match:
            continue
        remainder = match.group("value").strip()
        lines = remainder.split("\n")
        title = _cut_at(lines[0], _NOTE_STOP_PATTERN)
        if not title:
            continue
        content = "\n".join(lines[1:]).strip() if len(lines) > 1 else remainder
        return format_title(title), content or remainder
    return None
