from __future__ import annotations

from collections.abc import Callable

from app.services.action_models import (
    ActionKind,
    HabitParameters,
    ParameterSet,
    ScheduleParameters,
)


def _habit_is_complete(parameters: ParameterSet) -> bool:
    return isinstance(parameters, HabitParameters) and bool(parameters.name.strip())


def _schedule_is_complete(parameters: ParameterSet) -> bool:
    return (
        isinstance(parameters, ScheduleParameters)
        and bool(parameters.title.strip())
        and parameters.start_time is not None
    )


def _never(_parameters: ParameterSet) -> bool:
    return False


# Tasks and notes always wait for an explicit confirmation.
AUTO_EXECUTION_RULES: dict[ActionKind, Callable[[ParameterSet], bool]] = {
    ActionKind.create_task: _never,
    ActionKind.create_schedule: _schedule_is_complete,
    ActionKind.create_habit: _habit_is_complete,
    ActionKind.create_note: _never,
}


def should_auto_execute(kind: ActionKind, parameters: ParameterSet) -> bool:
    rule = AUTO_EXECUTION_RULES.get(kind, _never)
    return rule(parameters)
