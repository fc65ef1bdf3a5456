"""
Rubric loading.

Reads the rubric JSON (explicit path, or the packaged default), validates
it into a frozen RubricConfiguration and refuses to continue on any
problem: a rubric that fails here must stop the process from starting,
never produce meaningless scores.
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional

import structlog
from pydantic import ValidationError

from review_engine.core.errors import RubricConfigError
from review_engine.schemas.facts import wire_field_names
from review_engine.schemas.rubric import RubricConfiguration

logger = structlog.get_logger()

DEFAULT_RUBRIC_PATH = Path(__file__).resolve().parent.parent / "rubrics" / "metrics_v1.json"


def parse_rubric(document: dict[str, Any], source: Optional[str] = None) -> RubricConfiguration:
    try:
        rubric = RubricConfiguration.model_validate(document)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
            for err in e.errors()
        )
        raise RubricConfigError(problems, source) from e

    _warn_unknown_facts(rubric)
    return rubric


def load_rubric(path: Optional[str | Path] = None) -> RubricConfiguration:
    rubric_path = Path(path) if path else DEFAULT_RUBRIC_PATH
    source = str(rubric_path)

    try:
        document = json.loads(rubric_path.read_text(encoding="utf-8"))
    except OSError as e:
        raise RubricConfigError(f"cannot read rubric: {e}", source) from e
    except json.JSONDecodeError as e:
        raise RubricConfigError(f"invalid JSON: {e}", source) from e

    if not isinstance(document, dict):
        raise RubricConfigError("rubric root must be a JSON object", source)

    rubric = parse_rubric(document, source)
    logger.info(
        "rubric_loaded",
        source=source,
        version=rubric.version,
        metrics=len(rubric.metrics),
        conditions=len(rubric.conditions()),
    )
    return rubric


def _warn_unknown_facts(rubric: RubricConfiguration) -> None:
    """Governing facts that no extractor field backs can never flag missing data."""
    known = wire_field_names()
    for metric in rubric.metrics:
        owners = metric.components or (metric,)
        for owner in owners:
            if owner.fact and owner.fact not in known:
                logger.warning(
                    "rubric_unknown_fact",
                    metric=metric.id,
                    owner=owner.id,
                    fact=owner.fact,
                )
