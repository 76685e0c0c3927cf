from .base import Action, ActionRegistry, run_action

__all__ = ["Action", "ActionRegistry", "run_action", "build_action_registry"]


def build_action_registry(paths):
    """Build an ActionRegistry from 'module:Class' import paths."""
    from ..resources.registry import import_object

    return ActionRegistry(import_object(path) for path in paths)
