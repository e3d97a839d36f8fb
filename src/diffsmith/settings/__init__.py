from .models import (  # noqa: F401
    EDIT_FUZZY_THRESHOLD_DEFAULT,
    EditSettings,
    LogLevel,
    LoggingSettings,
    Settings,
    ToolCallFormatter,
    ToolSpec,
)
from .loader import load_settings  # noqa: F401
