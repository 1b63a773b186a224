"""
Queue task schemas.

Each task kind is a pydantic model tagged by its ``action`` literal; the set
of kinds is closed (TASK_MODELS). Wire shape for fulfillment:

    {"action": "PROCESS_ORDER", "orderId": "<string>"}
"""

from __future__ import annotations

import json
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from common.errors import MalformedPayloadError, UnknownTaskError

PROCESS_ORDER = "PROCESS_ORDER"


class ProcessOrderTask(BaseModel):
    """Ask the fulfillment worker to finalize one order."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True, frozen=True)

    action: Literal["PROCESS_ORDER"] = PROCESS_ORDER
    order_id: str = Field(..., alias="orderId", min_length=1)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


TASK_MODELS: dict[str, type[ProcessOrderTask]] = {
    PROCESS_ORDER: ProcessOrderTask,
}


def parse_task(body: bytes | str) -> ProcessOrderTask:
    """
    Decode a queue message body into its task model.

    Raises UnknownTaskError for a well-formed payload with an unrecognized
    action and MalformedPayloadError for anything else that does not match.

    >>> parse_task(b'{"action": "PROCESS_ORDER", "orderId": "o-1"}').order_id
    'o-1'
    """
    try:
        data = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise MalformedPayloadError(f"Task body is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise MalformedPayloadError("Task body must be a JSON object")
    action = data.get("action")
    if action is None:
        raise MalformedPayloadError("Task body has no action")
    model = TASK_MODELS.get(action) if isinstance(action, str) else None
    if model is None:
        raise UnknownTaskError(action)
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        raise MalformedPayloadError(
            f"Invalid {action} task",
            [err["msg"] for err in e.errors()],
        ) from e
