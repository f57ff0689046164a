from __future__ import annotations

from deadstrip.engine.types import Annotation

# Warning kinds that carry semantic risk; they are always reported, never edited.
_NEVER_REMOVABLE: frozenset[Annotation] = frozenset({"assign_only_property", "redundant_protocol"})


def can_remove(annotation: Annotation, has_full_range: bool, *, is_import: bool = False) -> bool:
    """
    Return True when a mechanical removal strategy exists for a warning.

    - unused imports only need their line, so no end range is required
    - other unused declarations need both start and end to excise them
    - redundant `public` is a single-token edit
    - superfluous ignore directives are removable; locating the comment can
      still fail later, which is counted rather than treated as an error
    """

    if annotation in _NEVER_REMOVABLE:
        return False
    if annotation == "unused":
        return is_import or has_full_range
    if annotation in {"redundant_public", "superfluous_ignore"}:
        return True
    return False
