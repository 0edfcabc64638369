import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from .primitives import (
    PRIMITIVE_TYPES,
    FileAsset,
    ImagePrimitive,
    LinePrimitive,
    Primitive,
    TextPrimitive,
)


@dataclass
class ValidationIssue:
    path: str
    message: str
    severity: str = "error"  # 'error' | 'warn'


@dataclass
class ValidationResult:
    issues: List[ValidationIssue]

    def ok(self) -> bool:
        return all(i.severity != 'error' for i in self.issues)


GEOMETRY_KEYS = ('x', 'y', 'width', 'height')


def validate_primitives(
    primitives: Sequence[Primitive],
    files: Optional[Dict[str, FileAsset]] = None,
    strict_assets: bool = False,
) -> ValidationResult:
    """Validate the primitives of a layout pass.

    strict_assets: when True images whose file asset is missing are upgraded from warn to error.
    """
    issues: List[ValidationIssue] = []
    files = files or {}
    seen_ids = set()
    for idx, p in enumerate(primitives):
        ppath = f"/elements/{idx}"
        if not isinstance(p, Primitive):
            issues.append(ValidationIssue(path=ppath, message="Element is not a primitive"))
            continue
        if p.id in seen_ids:
            issues.append(ValidationIssue(path=f"{ppath}/id", message=f"Duplicate element id '{p.id}'"))
        else:
            seen_ids.add(p.id)
        if p.type not in PRIMITIVE_TYPES:
            issues.append(
                ValidationIssue(path=f"{ppath}/type", message=f"Unknown type '{p.type}'", severity='warn')
            )
        for key in GEOMETRY_KEYS:
            val = getattr(p, key)
            if not isinstance(val, (int, float)) or not math.isfinite(val):
                issues.append(ValidationIssue(path=f"{ppath}/{key}", message=f"Non-finite {key}: {val!r}"))
            elif key in ('width', 'height') and val < 0:
                issues.append(ValidationIssue(path=f"{ppath}/{key}", message=f"Negative {key}: {val}"))
        if isinstance(p, ImagePrimitive) and p.file_id not in files:
            issues.append(
                ValidationIssue(
                    path=f"{ppath}/fileId",
                    message=f"Image file '{p.file_id}' has no asset",
                    severity='error' if strict_assets else 'warn',
                )
            )
        if isinstance(p, LinePrimitive) and len(p.points) < 2:
            issues.append(ValidationIssue(path=f"{ppath}/points", message="Line needs at least two points"))
        if isinstance(p, TextPrimitive) and not p.text.strip():
            issues.append(ValidationIssue(path=f"{ppath}/text", message="Empty text", severity='warn'))
    return ValidationResult(issues)


def check_vertical_flow(section_starts: Sequence[float]) -> List[ValidationIssue]:
    """Report any section that starts above the one before it."""
    issues: List[ValidationIssue] = []
    for i in range(1, len(section_starts)):
        if section_starts[i] < section_starts[i - 1]:
            issues.append(
                ValidationIssue(
                    path=f"/sections/{i}",
                    message=f"Section starts at {section_starts[i]} above previous {section_starts[i - 1]}",
                )
            )
    return issues
