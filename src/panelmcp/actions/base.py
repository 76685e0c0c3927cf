"""Business actions: non-CRUD operations exposed as tools."""

import json
from typing import Any, ClassVar, Dict, Iterable, List, Optional, Type

from pydantic import BaseModel, ValidationError
from sqlalchemy.orm import Session

from ..api.envelope import failure, success
from ..errors import ValidationFailed
from ..utils.logging import get_logger

logger = get_logger(__name__)


class Action:
    """
    Base class for a business action.

    Subclasses set identifier/name/description, declare a pydantic
    Parameters model and implement handle(). handle() receives validated
    parameters and returns a plain dict; raising LookupError means the
    target of the action does not exist.
    """

    identifier: ClassVar[str] = ""
    name: ClassVar[str] = ""
    description: ClassVar[str] = ""
    Parameters: ClassVar[Type[BaseModel]] = BaseModel

    def handle(self, session: Session, params: BaseModel) -> Dict[str, Any]:
        raise NotImplementedError

    @classmethod
    def parameters_schema(cls) -> Dict[str, Any]:
        return cls.Parameters.model_json_schema()

    @classmethod
    def tool_description(cls) -> str:
        schema = json.dumps(cls.parameters_schema(), sort_keys=True)
        return f"{cls.description}\n\nPass the parameters as 'attributes' matching this JSON schema: {schema}"


class ActionRegistry:
    def __init__(self, actions: Iterable[Type[Action]] = ()) -> None:
        self._actions: Dict[str, Type[Action]] = {}
        for action in actions:
            self.register(action)

    def register(self, action: Type[Action]) -> None:
        if not (isinstance(action, type) and issubclass(action, Action)):
            raise ValueError(f"{action!r} is not an Action subclass")
        if not action.identifier:
            raise ValueError(f"{action.__name__} has no identifier")
        if action.identifier in self._actions:
            raise ValueError(f"Action identifier already registered: {action.identifier}")
        self._actions[action.identifier] = action

    def get(self, identifier: str) -> Optional[Type[Action]]:
        return self._actions.get(identifier)

    def list_identifiers(self) -> List[str]:
        return list(self._actions)

    def actions(self) -> List[Type[Action]]:
        return list(self._actions.values())


def run_action(session: Session, action: Type[Action], attributes: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Validate attributes, run the action, wrap the outcome in an envelope."""
    try:
        params = action.Parameters.model_validate(attributes or {})
    except ValidationError as e:
        errors = ValidationFailed.from_pydantic(e).errors
        return failure("The information provided is incomplete or invalid: " + json.dumps(errors, sort_keys=True))

    try:
        result = action().handle(session, params)
        logger.info(f"Action '{action.identifier}' completed")
        return success(result, {"action": action.identifier}, message=f"{action.name} completed successfully")
    except LookupError as e:
        return failure(str(e).strip("'\""))
    except Exception as e:
        session.rollback()
        logger.error(f"Action '{action.identifier}' failed: {e}", exc_info=True)
        return failure(f"Unable to complete '{action.name}': {e}")
