"""
Layer resolution.

Assigns each target to an architectural layer. Code-feature hints from the
scanner are trusted first, then the target type, and configured path globs
are only a fallback.
"""

import re
from typing import Optional

from .config import ScoringConfig
from .schema import Layer, Target, TargetType
from .utils import match_glob, normalize_path

_STATE_DIRS = re.compile(r"/(atoms|stores)/")
_STATE_MANAGEMENT_DIRS = re.compile(r"/(atoms|stores|context)/")
_CONTEXT_DIR = re.compile(r"/context/")
_UI_DIRS = re.compile(r"/(components|pages)/")


def resolve_layer(target: Target, config: ScoringConfig) -> str:
    """Return the layer a target belongs to.

    Resolution order:
    1. An explicit layer already carried by the target
    2. atoms/stores directories are state
    3. needsUI is ui, except under context/ which is state
    4. pure functions are foundation (outside state management)
    5. impure non-UI functions are business (outside state management)
    6. components are ui; hooks are ui under components/pages, else business
    7. configured path patterns
    8. unknown
    """
    if target.layer and target.layer != Layer.UNKNOWN:
        return target.layer

    path = normalize_path(target.path)
    hint = target.roi_hint

    if _STATE_DIRS.search(path):
        return Layer.STATE.value

    if hint.needs_ui is True:
        if _CONTEXT_DIR.search(path):
            return Layer.STATE.value
        return Layer.UI.value

    if hint.is_pure is True and hint.dependencies_injectable is True:
        return Layer.FOUNDATION.value

    in_state_management = bool(_STATE_MANAGEMENT_DIRS.search(path))

    if hint.is_pure is True and not in_state_management:
        return Layer.FOUNDATION.value

    if hint.is_pure is False and hint.needs_ui is False and not in_state_management:
        return Layer.BUSINESS.value

    if target.type == TargetType.COMPONENT:
        return Layer.UI.value

    if target.type == TargetType.HOOK:
        if _UI_DIRS.search(path):
            return Layer.UI.value
        return Layer.BUSINESS.value

    return match_layer_by_path(path, config) or Layer.UNKNOWN.value


def match_layer_by_path(path: str, config: ScoringConfig) -> Optional[str]:
    """Match a path against the configured layer patterns.

    The four standard layers are tried first in fixed order, then any other
    configured layers in declaration order.
    """
    standard = [layer.value for layer in Layer.ordered()]
    order = [name for name in standard if name in config.layers]
    order += [name for name in config.layers if name not in standard]

    for name in order:
        for pattern in config.layers[name].patterns:
            if match_glob(path, pattern):
                return name
    return None
