"""Environment variable declarations and validation.

Each setting is declared once as an ``EnvVarSpec``; ``parse`` reads and
converts it and ``validate`` checks a list of them against their pydantic
field types at startup.
"""

import logging
import os
from typing import Any, Callable, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, ValidationError, create_model

logger = logging.getLogger(__name__)


class EnvVarSpec(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: str
    default: Optional[str] = None
    parse: Optional[Callable[[str], Any]] = None
    type: Tuple[Any, Any] = (str, ...)
    is_optional: bool = False
    is_secret: bool = False


def parse(spec: EnvVarSpec) -> Any:
    raw = os.environ.get(spec.id, spec.default)
    if raw is None or raw == "":
        return None
    return spec.parse(raw) if spec.parse else raw


def _display(spec: EnvVarSpec, value: Any) -> str:
    if spec.is_secret and value is not None:
        return "********"
    return repr(value)


def validate(specs: List[EnvVarSpec]) -> bool:
    ok = True
    for spec in specs:
        try:
            value = parse(spec)
        except (ValueError, TypeError) as e:
            logger.error(f"Env var {spec.id} could not be parsed: {e}")
            ok = False
            continue

        if value is None:
            if not spec.is_optional:
                logger.error(f"Env var {spec.id} is required but not set")
                ok = False
            continue

        field_type = spec.type
        model = create_model(f"Env_{spec.id}", value=field_type)
        try:
            model(value=value)
        except ValidationError as e:
            logger.error(f"Env var {spec.id}={_display(spec, value)} is invalid: {e.errors()[0]['msg']}")
            ok = False
            continue
        logger.debug(f"Env var {spec.id}={_display(spec, value)}")
    return ok
