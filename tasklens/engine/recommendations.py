"""Reconcile model commentary with the task list the model was shown.

The model refers to tasks as [TASK_N], N being the 1-based position in the
list it received. References are resolved in first-mention order and
rewritten to the task's position in the recommended list, so the user sees
"**Task 1**" next to the first recommended task whatever its rank was.
Listed tasks left out of the recommendation are named by their text, and
references to tasks that were never listed are removed.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Sequence

from tasklens.models.query import ScoredTask
from tasklens.query.json_recovery import strip_reasoning

logger = logging.getLogger(__name__)

TASK_REFERENCE_RE = re.compile(r"\[TASK_(\d+)\]", re.I)
# Same reference with the whitespace before it, dropped along with an unknown reference
_REWRITE_RE = re.compile(r"(\s*)\[TASK_(\d+)\]", re.I)


@dataclass(frozen=True)
class Reconciliation:
    recommended: List[ScoredTask]
    rewritten_text: str
    # 1-based reference number -> 1-based position in `recommended`
    position_map: Dict[int, int] = field(default_factory=dict)
    used_fallback: bool = False
    invalid_references: List[int] = field(default_factory=list)


def _fallback_indices(ordered: Sequence[ScoredTask], limit: int) -> List[int]:
    """Indices of the top `limit` tasks by composite score (stable)."""
    return sorted(range(len(ordered)), key=lambda i: -ordered[i].composite)[:limit]


def reconcile(
    model_text: str,
    ordered: Sequence[ScoredTask],
    *,
    max_recommendations: int,
) -> Reconciliation:
    """Map [TASK_N] references in model text back to tasks.

    Args:
        model_text: Raw model response
        ordered: Tasks exactly as they were numbered for the model
        max_recommendations: Cap on the number of recommended tasks

    Returns:
        Reconciliation with the recommended tasks (first-mention order, no
        duplicates, only tasks from `ordered`) and the rewritten text. When
        the text has no valid reference, the top tasks by score are used.
    """
    text = strip_reasoning(model_text or "").strip()

    picked: List[int] = []
    invalid: List[int] = []
    for m in TASK_REFERENCE_RE.finditer(text):
        number = int(m.group(1))
        if not 1 <= number <= len(ordered):
            invalid.append(number)
            continue
        index = number - 1
        if index in picked or len(picked) >= max_recommendations:
            continue
        picked.append(index)

    used_fallback = False
    if not picked and ordered:
        picked = _fallback_indices(ordered, max_recommendations)
        used_fallback = True
        logger.warning(
            f"Model response referenced no listed task; using top {len(picked)} by score"
        )
    if invalid:
        logger.debug(f"Ignored out-of-range task references: {invalid}")

    position_map = {index + 1: position for position, index in enumerate(picked, start=1)}

    def _rewrite(m: re.Match) -> str:
        number = int(m.group(2))
        position = position_map.get(number)
        if position:
            return f"{m.group(1)}**Task {position}**"
        if 1 <= number <= len(ordered):
            # listed but not recommended: name it instead of numbering it
            return f'{m.group(1)}"{ordered[number - 1].task.text}"'
        return ""

    rewritten = _REWRITE_RE.sub(_rewrite, text).strip()
    return Reconciliation(
        recommended=[ordered[i] for i in picked],
        rewritten_text=rewritten,
        position_map=position_map,
        used_fallback=used_fallback,
        invalid_references=invalid,
    )
