from __future__ import annotations

import dataclasses
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from .normalize import is_blank, normalize_mastery_score, parse_duration, parse_time_limit_action
from .prerequisites import parse_prerequisites
from .schema import AssignableUnit, CourseBehavior

# raw unit field -> (normalized field, normalizer)
NORMALIZED_FIELDS: Dict[str, Tuple[str, Callable[[Optional[str]], object]]] = {
    "mastery_score": ("mastery_score_normalized", normalize_mastery_score),
    "max_time_allowed": ("max_time_allowed_normalized", parse_duration),
    "time_limit_action": ("time_limit_action_normalized", lambda raw: tuple(parse_time_limit_action(raw))),
}


def finalize_assignable_unit(unit: AssignableUnit, behavior: Optional[CourseBehavior]) -> AssignableUnit:
    """
    Resolve per-unit values against the course defaults and normalize them.

    A blank unit value takes the course default, which is also written back
    (trimmed) into the raw field so consumers see a concrete value.
    """
    changes: Dict[str, object] = {}
    for raw_field, (normalized_field, normalizer) in NORMALIZED_FIELDS.items():
        own = getattr(unit, raw_field)
        default = getattr(behavior, raw_field, None) if behavior is not None else None
        resolved = own if not is_blank(own) else default
        changes[normalized_field] = normalizer(resolved)
        if is_blank(own) and not is_blank(resolved):
            changes[raw_field] = resolved.strip()

    changes["prerequisite_model"] = parse_prerequisites(unit.prerequisites_expression)
    return dataclasses.replace(unit, **changes)


def finalize_assignable_units(
    units: Iterable[Optional[AssignableUnit]], behavior: Optional[CourseBehavior]
) -> List[AssignableUnit]:
    return [finalize_assignable_unit(unit, behavior) for unit in units if unit is not None]
