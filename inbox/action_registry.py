"""
Action Registry
Handles registration of reducer handlers for store actions.
"""
import logging
from typing import Dict, Callable, Optional, Type

from .messages.actions import ActionType, MessagesAction

logger = logging.getLogger(__name__)

# Global registry mapping ActionType -> reducer handler
ACTION_HANDLERS: Dict[ActionType, Callable] = {}


def handles_action(action_cls: Type[MessagesAction]):
    """
    Decorator registering a reducer handler for an action class.
    Uses the class's ACTION_TYPE attribute as the key.

    The handler is called as handler(state, action) and must return a new state.
    """
    if not isinstance(action_cls, type) or not issubclass(action_cls, MessagesAction):
        raise TypeError(f"{action_cls!r} must inherit from MessagesAction to be registered.")

    action_type = getattr(action_cls, 'ACTION_TYPE', None)
    if not isinstance(action_type, ActionType):
        raise ValueError(f"Action class {action_cls.__name__} must have a valid ActionType ACTION_TYPE attribute.")

    def decorator(handler: Callable) -> Callable:
        if action_type in ACTION_HANDLERS:
            logger.warning(f"Action type '{action_type.value}' already has a handler. Overwriting with {handler.__name__}.")
        ACTION_HANDLERS[action_type] = handler
        logger.debug(f"Registered reducer handler: '{action_type.value}' -> {handler.__name__}")
        return handler

    return decorator


def find_action_handler(action_type: ActionType) -> Optional[Callable]:
    """
    Finds the registered reducer handler for an action type.

    Args:
        action_type: The ActionType of the action being dispatched.

    Returns:
        The handler if registered, otherwise None
    """
    return ACTION_HANDLERS.get(action_type)
