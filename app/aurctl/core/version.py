"""Package version ordering compatible with pacman's ``vercmp``.

Versions have the form ``[epoch:]version[-release]``. Segments are
compared the way libalpm does it: numeric runs numerically, alphabetic
runs lexically, and an alphabetic remainder never beats an empty one
(so ``1.0alpha < 1.0``).
"""

from __future__ import annotations

import functools


def _parse_evr(evr: str) -> tuple[str, str, str | None]:
    """Split a version string into (epoch, version, release)."""
    pos = 0
    while pos < len(evr) and evr[pos].isdigit():
        pos += 1

    dash = evr.rfind("-", pos)
    if pos < len(evr) and evr[pos] == ":":
        epoch = evr[:pos] or "0"
        rest_start = pos + 1
    else:
        epoch = "0"
        rest_start = 0

    if dash != -1:
        return epoch, evr[rest_start:dash], evr[dash + 1 :]
    return epoch, evr[rest_start:], None


def _rpmvercmp(a: str, b: str) -> int:
    """Compare two version segments (no epoch/release)."""
    if a == b:
        return 0

    i = j = 0
    while i < len(a) and j < len(b):
        sep_start_a, sep_start_b = i, j
        while i < len(a) and not a[i].isalnum():
            i += 1
        while j < len(b) and not b[j].isalnum():
            j += 1

        if i >= len(a) or j >= len(b):
            break

        # Differing separator lengths decide immediately
        if (i - sep_start_a) != (j - sep_start_b):
            return -1 if (i - sep_start_a) < (j - sep_start_b) else 1

        start_a, start_b = i, j
        if a[i].isdigit():
            while i < len(a) and a[i].isdigit():
                i += 1
            while j < len(b) and b[j].isdigit():
                j += 1
            is_num = True
        else:
            while i < len(a) and a[i].isalpha():
                i += 1
            while j < len(b) and b[j].isalpha():
                j += 1
            is_num = False

        seg_a, seg_b = a[start_a:i], b[start_b:j]

        if not seg_b:
            # Numeric segments are newer than alphabetic ones
            return 1 if is_num else -1

        if is_num:
            seg_a = seg_a.lstrip("0")
            seg_b = seg_b.lstrip("0")
            if len(seg_a) != len(seg_b):
                return 1 if len(seg_a) > len(seg_b) else -1

        if seg_a != seg_b:
            return -1 if seg_a < seg_b else 1

    rest_a, rest_b = a[i:], b[j:]
    if not rest_a and not rest_b:
        return 0

    if (not rest_a and not rest_b[:1].isalpha()) or rest_a[:1].isalpha():
        return -1
    return 1


def vercmp(a: str, b: str) -> int:
    """Compare two full package versions.

    Args:
        a: First version, e.g. ``1:2.0.1-3``.
        b: Second version.

    Returns:
        -1 if a is older than b, 0 if equal, 1 if newer.
    """
    if a == b:
        return 0

    epoch_a, ver_a, rel_a = _parse_evr(a)
    epoch_b, ver_b, rel_b = _parse_evr(b)

    result = _rpmvercmp(epoch_a, epoch_b)
    if result == 0:
        result = _rpmvercmp(ver_a, ver_b)
        if result == 0 and rel_a is not None and rel_b is not None:
            result = _rpmvercmp(rel_a, rel_b)
    return result


# Sort key for lists of version strings (oldest first)
version_key = functools.cmp_to_key(vercmp)


def satisfies(version: str, operator: str, required: str) -> bool:
    """Check a version against a dependency constraint.

    Args:
        version: Available version.
        operator: One of ``=``, ``<``, ``<=``, ``>``, ``>=``.
        required: Version named by the constraint.

    Returns:
        True if the constraint holds.

    Raises:
        ValueError: If the operator is unknown.
    """
    # A constraint without a release matches any release
    if "-" not in required and "-" in version:
        version = version.rsplit("-", 1)[0]

    result = vercmp(version, required)
    checks = {
        "=": result == 0,
        "<": result < 0,
        "<=": result <= 0,
        ">": result > 0,
        ">=": result >= 0,
    }
    if operator not in checks:
        msg = f"Unknown version operator: {operator}"
        raise ValueError(msg)
    return checks[operator]
