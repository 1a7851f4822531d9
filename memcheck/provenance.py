from __future__ import annotations

"""Decide whether a function was written inside the project tree."""

from typing import Optional

from .models import Function, SourceLocation

_SEPARATOR = "/"


def source_path(location: SourceLocation) -> str:
    """Join a debug file record's directory and filename.

    Follows the host compiler's path append: a separator is added only when
    the directory does not end in one and the filename does not start with
    one; leading separators of the filename are dropped when the directory
    already ends in one. No normalization is applied.
    """
    directory, filename = location.directory, location.filename
    if not directory:
        return filename
    if directory.endswith(_SEPARATOR):
        return directory + filename.lstrip(_SEPARATOR)
    if filename.startswith(_SEPARATOR):
        return directory + filename
    return directory + _SEPARATOR + filename


def has_root_prefix(path: str, project_root: str) -> bool:
    """Literal prefix test that must end on a path separator.

    `/proj/src/a.c` is under `/proj` but `/projX/src/a.c` is not. The strings
    are compared as-is: `/proj/../other/a.c` is still under `/proj`.
    """
    if not path.startswith(project_root):
        return False
    if project_root.endswith(_SEPARATOR) or len(path) == len(project_root):
        return True
    return path[len(project_root)] == _SEPARATOR


def is_user_defined(function: Function, project_root: Optional[str]) -> bool:
    """Return True if the function's source file lies under project_root.

    Functions without a source location never qualify, nor does anything
    when project_root is empty. Missing metadata is not logged.
    """
    if not project_root:
        return False
    if function.location is None:
        return False
    return has_root_prefix(source_path(function.location), project_root)
