from .parser import (
    parse_markdown as parse_markdown,
    parse_document as parse_document,
    prepare_content as prepare_content,
)
from .nodes import (
    node_from_dict as node_from_dict,
    node_to_dict as node_to_dict,
    collect_text as collect_text,
)
from .segments import (
    Segment as Segment,
    segment_text as segment_text,
)
from .generation import (
    DocumentWalker as DocumentWalker,
    LayoutResult as LayoutResult,
    LayoutSettings as LayoutSettings,
    render_document as render_document,
    DEFAULTS as DEFAULTS,
    meta_defaults as meta_defaults,
)
from .host import (
    SceneHost as SceneHost,
    origin_from_app_state as origin_from_app_state,
)
from .validation import (
    validate_primitives as validate_primitives,
    ValidationIssue as ValidationIssue,
    ValidationResult as ValidationResult,
)
