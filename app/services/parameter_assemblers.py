from __future__ import annotations

from datetime import datetime, time, timedelta

from app.services.action_models import (
    ENTITY_BY_ACTION_KIND,
    ActionIntent,
    ActionKind,
    ContextHints,
    HabitFrequency,
    HabitParameters,
    NoteParameters,
    ParameterSet,
    ScheduleParameters,
    ScheduleType,
    TaskParameters,
    TaskPriority,
)
from app.services.field_extractors import (
    CATEGORY_RULES,
    HABIT_FREQUENCY_RULES,
    HABIT_PURPOSE_RULES,
    HABIT_REPLY_NAME_RULES,
    HABIT_TITLE_RULES,
    LOCATION_RULES,
    NOTE_REPLY_TITLE_RULES,
    NOTE_TITLE_RULES,
    PRIORITY_RULES,
    SCHEDULE_REPLY_TITLE_RULES,
    SCHEDULE_TITLE_RULES,
    SCHEDULE_TYPE_RULES,
    TASK_REPLY_CATEGORY_RULES,
    TASK_REPLY_DEADLINE_RULES,
    TASK_REPLY_PRIORITY_RULES,
    TASK_REPLY_TITLE_RULES,
    TASK_TITLE_RULES,
    extract_description,
    extract_note_body,
    fallback_title,
    habit_theme_for,
)
from app.services.intent_classifier import classify
from app.services.temporal_resolver import (
    at_clock_time,
    extract_duration,
    extract_end_clock_time,
    resolve,
    resolve_instant,
)
from app.services.text_matching import (
    ExtractionRule,
    capitalize_first,
    contains_keyword,
    first_match,
    first_source_match,
    format_title,
    normalize_message,
)

DEFAULT_SCHEDULE_START = time(hour=9, minute=0)
DEFAULT_SCHEDULE_LENGTH = timedelta(hours=1)
_SHORT_MESSAGE_LENGTH = 30

HABIT_FREQUENCY_LABELS: dict[HabitFrequency, str] = {
    HabitFrequency.daily: "harian",
    HabitFrequency.weekly: "mingguan",
    HabitFrequency.monthly: "bulanan",
    HabitFrequency.every_other_day: "dua hari sekali",
    HabitFrequency.weekdays: "hari kerja",
    HabitFrequency.weekends: "akhir pekan",
}


def build_intent(
    user_message: str,
    assistant_reply: str | None,
    reference: datetime,
    hints: ContextHints | None = None,
) -> ActionIntent | None:
    kind = classify(user_message, assistant_reply)
    if kind is None:
        return None
    return ActionIntent(
        kind=kind,
        target_entity=ENTITY_BY_ACTION_KIND[kind],
        parameters=assemble_parameters(kind, user_message, assistant_reply, reference, hints),
        source_message=user_message,
        source_reply=assistant_reply,
    )


def assemble_parameters(
    kind: ActionKind,
    user_message: str,
    assistant_reply: str | None,
    reference: datetime,
    hints: ContextHints | None = None,
) -> ParameterSet:
    if kind == ActionKind.create_task:
        return assemble_task_parameters(user_message, assistant_reply, reference, hints)
    if kind == ActionKind.create_schedule:
        return assemble_schedule_parameters(user_message, assistant_reply, reference)
    if kind == ActionKind.create_habit:
        return assemble_habit_parameters(user_message, assistant_reply)
    return assemble_note_parameters(user_message, assistant_reply)


def assemble_task_parameters(
    user_message: str,
    assistant_reply: str | None,
    reference: datetime,
    hints: ContextHints | None = None,
) -> TaskParameters:
    sources = (user_message, assistant_reply)
    title = first_source_match(TASK_TITLE_RULES, sources)
    due_date = _first_instant(sources, reference)
    category = first_source_match(CATEGORY_RULES, sources)
    priority = first_source_match(PRIORITY_RULES, sources)

    if assistant_reply:
        title = _reply_title(TASK_REPLY_TITLE_RULES, assistant_reply) or title
        deadline_phrase = first_match(TASK_REPLY_DEADLINE_RULES, assistant_reply)
        if deadline_phrase:
            due_date = resolve_instant(deadline_phrase, reference) or due_date
        category = first_match(TASK_REPLY_CATEGORY_RULES, assistant_reply) or category
        priority = first_match(TASK_REPLY_PRIORITY_RULES, assistant_reply) or priority

    if category is None and hints is not None:
        category = _category_from_hints(user_message, hints)

    return TaskParameters(
        title=title or fallback_title(user_message, ActionKind.create_task),
        description=_description(user_message, assistant_reply),
        due_date=due_date,
        priority=priority or TaskPriority.medium,
        category=category,
    )


def assemble_schedule_parameters(
    user_message: str,
    assistant_reply: str | None,
    reference: datetime,
) -> ScheduleParameters:
    sources = (user_message, assistant_reply)
    title = first_source_match(SCHEDULE_TITLE_RULES, sources)
    if assistant_reply:
        title = _reply_title(SCHEDULE_REPLY_TITLE_RULES, assistant_reply) or title
    title = title or fallback_title(user_message, ActionKind.create_schedule)
    schedule_type = first_source_match(SCHEDULE_TYPE_RULES, sources) or ScheduleType.event

    start_time = _schedule_start(sources, reference)
    end_time = _schedule_end(sources, start_time) if start_time else None

    description = _description(user_message, assistant_reply, allow_structural_split=False)
    if description is None:
        if len(user_message.strip()) > _SHORT_MESSAGE_LENGTH:
            description = user_message.strip()
        else:
            description = f"{capitalize_first(schedule_type.value)}: {title}"

    return ScheduleParameters(
        title=title,
        description=description,
        start_time=start_time,
        end_time=end_time,
        type=schedule_type,
        location=first_source_match(LOCATION_RULES, sources),
    )


def assemble_habit_parameters(user_message: str, assistant_reply: str | None) -> HabitParameters:
    sources = (user_message, assistant_reply)
    name = first_source_match(HABIT_TITLE_RULES, sources)
    if assistant_reply:
        name = _reply_title(HABIT_REPLY_NAME_RULES, assistant_reply) or name
    name = name or fallback_title(user_message, ActionKind.create_habit)
    frequency = first_source_match(HABIT_FREQUENCY_RULES, sources) or HabitFrequency.daily
    icon, color = habit_theme_for(sources)

    description = first_source_match(HABIT_PURPOSE_RULES, sources)
    description = description or _description(
        user_message,
        assistant_reply,
        allow_structural_split=False,
    )
    if description is None:
        description = f"Kebiasaan {HABIT_FREQUENCY_LABELS[frequency]}: {name}"

    return HabitParameters(
        name=name,
        description=description,
        frequency=frequency,
        icon=icon,
        color=color,
    )


def assemble_note_parameters(user_message: str, assistant_reply: str | None) -> NoteParameters:
    body = extract_note_body(user_message)
    if body:
        title, content = body
    else:
        title = first_source_match(NOTE_TITLE_RULES, (user_message, assistant_reply))
        content = user_message.strip()

    if assistant_reply:
        title = _reply_title(NOTE_REPLY_TITLE_RULES, assistant_reply) or title

    return NoteParameters(
        title=title or fallback_title(user_message, ActionKind.create_note),
        content=content or user_message.strip(),
    )


def _first_instant(sources: tuple[str | None, ...], reference: datetime) -> datetime | None:
    for source in sources:
        instant = resolve_instant(source, reference)
        if instant is not None:
            return instant
    return None


def _schedule_start(sources: tuple[str | None, ...], reference: datetime) -> datetime | None:
    clock_only = None
    for source in sources:
        resolution = resolve(source, reference)
        if resolution.instant is not None:
            # Only a day keyword without a clock falls back to the default start.
            if resolution.day_offset_days is not None and not resolution.has_clock_time:
                return at_clock_time(resolution.instant, DEFAULT_SCHEDULE_START)
            return resolution.instant
        if clock_only is None and resolution.clock_time is not None:
            clock_only = resolution.clock_time
    # A bare clock time with no day reference means today.
    if clock_only is not None:
        return at_clock_time(reference, clock_only)
    return None


def _schedule_end(sources: tuple[str | None, ...], start_time: datetime) -> datetime:
    for source in sources:
        if not source:
            continue
        end_clock = extract_end_clock_time(source)
        if end_clock is not None:
            end_time = at_clock_time(start_time, end_clock)
            if end_time <= start_time:
                return start_time + DEFAULT_SCHEDULE_LENGTH
            return end_time

    for source in sources:
        if not source:
            continue
        duration = extract_duration(source)
        if duration is not None:
            return start_time + duration

    return start_time + DEFAULT_SCHEDULE_LENGTH


def _description(
    user_message: str,
    assistant_reply: str | None,
    *,
    allow_structural_split: bool = True,
) -> str | None:
    return extract_description(
        user_message,
        allow_structural_split=allow_structural_split,
    ) or extract_description(assistant_reply, allow_structural_split=False)


def _reply_title(rules: list[ExtractionRule[str]], assistant_reply: str) -> str | None:
    value = first_match(rules, assistant_reply)
    return format_title(value) if value else None


def _category_from_hints(user_message: str, hints: ContextHints) -> str | None:
    normalized = normalize_message(user_message)
    for topic in hints.recent_topics:
        cleaned_topic = topic.strip()
        if cleaned_topic and contains_keyword([normalize_message(cleaned_topic)], normalized):
            return cleaned_topic
    return None
