from .models import (  # noqa: F401
    AmbiguousMatch,
    ApplyPatchError,
    ApplyPatchResult,
    ContextLineResult,
    DiffError,
    DiffHunk,
    DiffResult,
    EditMatchError,
    ExactMatch,
    FileChange,
    FileDiagnostics,
    FuzzyMatch,
    MatchOutcome,
    NoMatch,
    Operation,
    OperationAbortedError,
    ParseError,
    PatchInput,
    ReplaceResult,
    SequenceSearchResult,
)
from .text import (  # noqa: F401
    adjust_indentation,
    detect_line_ending,
    normalize_for_fuzzy,
    normalize_to_lf,
    normalize_unicode,
    restore_line_endings,
    strip_bom,
)
from .normalize import normalize_create_content, normalize_diff  # noqa: F401
from .parser import count_file_markers, parse_hunks  # noqa: F401
from .fuzzy import (  # noqa: F401
    DEFAULT_FUZZY_THRESHOLD,
    MAX_OCCURRENCE_PREVIEWS,
    find_context_line,
    find_match,
    seek_sequence,
)
from .fs import (  # noqa: F401
    BatchRequest,
    FileSystem,
    InMemoryFileSystem,
    LocalFileSystem,
    WritethroughCallback,
    merge_diagnostics_with_warnings,
    writethrough_noop,
)
from .applicator import (  # noqa: F401
    ApplyPatchOptions,
    apply_patch,
    default_file_system,
    preview_patch,
)
from .diff import (  # noqa: F401
    compute_edit_diff,
    compute_patch_diff,
    generate_diff_string,
    generate_unified_diff_string,
    replace_error,
    replace_text,
)
from .prompts import PATCH_TOOL_DESCRIPTION, REPLACE_TOOL_DESCRIPTION  # noqa: F401
