"""
Multi-select helpers for pose review.

`visible` is always the ordered list of ids the reviewer currently sees
(after filters); selections are sets of ids.
"""


def click_select(target):
    """A plain click selects only the clicked pose"""
    return {target}


def toggle(selected, pose_id):
    result = set(selected)
    if pose_id in result:
        result.remove(pose_id)
    else:
        result.add(pose_id)
    return result


def range_select(visible, selected, anchor, target):
    """
    Add every visible pose between anchor and target (inclusive) to the
    selection. Works in both directions. Without an anchor this is a plain
    click; an anchor that is filtered out of view leaves the selection as is.
    """
    visible = list(visible)
    if target not in visible:
        return set(selected)
    if anchor is None:
        return click_select(target)
    if anchor not in visible:
        return set(selected)

    start = visible.index(anchor)
    end = visible.index(target)
    if start > end:
        start, end = end, start
    return set(selected) | set(visible[start:end + 1])


def select_all_visible(visible, selected=None):
    return set(selected or ()) | set(visible)


def clear():
    return set()


def apply_selection(visible, selected, mode, target=None, anchor=None):
    """Dispatch a selection gesture by name; used by the select endpoint"""
    if mode == 'click':
        return click_select(target)
    if mode == 'toggle':
        return toggle(selected, target)
    if mode == 'range':
        return range_select(visible, selected, anchor, target)
    if mode == 'all':
        return select_all_visible(visible, selected)
    if mode == 'clear':
        return clear()
    raise ValueError(f"Unknown selection mode '{mode}'")
