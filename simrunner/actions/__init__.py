from .element_actions import (
    action_click, action_dblclick, action_hover, action_fill, action_press,
    action_select_option, action_check, action_uncheck,
)
from .assert_actions import (
    Check,
    assert_visible, assert_not_visible, assert_exists, assert_not_exists,
    assert_text, assert_contains, assert_url,
)

# -----------------------------------------------------
# act payload -> function(element, value=..., timeout_ms=...)
# -----------------------------------------------------
ACTION_REGISTRY = {
    "click": action_click,
    "dblclick": action_dblclick,
    "hover": action_hover,
    "fill": action_fill,
    "press": action_press,
    "select_option": action_select_option,
    "check": action_check,
    "uncheck": action_uncheck,
}

# -----------------------------------------------------
# assert payload -> predicate(page_context, selector=..., value=...) -> Check
# -----------------------------------------------------
ASSERT_REGISTRY = {
    "visible": assert_visible,
    "not_visible": assert_not_visible,
    "exists": assert_exists,
    "not_exists": assert_not_exists,
    "text": assert_text,
    "contains": assert_contains,
    "url": assert_url,
}
