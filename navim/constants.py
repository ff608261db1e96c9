"""Constants and configuration for the navim viewer."""

class ViewerConstants:
    """Central configuration constants for the viewer."""

    # Document layout
    DEFAULT_WIDTH = 100  # Reflow width when the terminal is wider
    MIN_WIDTH = 20
    MAX_WIDTH = 400

    # Renderer limits
    MAX_TREE_DEPTH = 200  # Deeper markup trees are rejected with TooDeep
    MIN_MAIN_CONTENT_CHARS = 200  # Shorter "main content" candidates are ignored

    # Glyphs
    HEADING_RULES = {1: "═", 2: "━"}  # Level 3 and below use DEFAULT_RULE
    DEFAULT_RULE = "─"
    BULLET = "• "
    QUOTE_BAR = "│ "
    LIST_INDENT = 2  # Columns per list nesting level
    TAB_SIZE = 4

    # Images
    IMAGE_PALETTE = " .:-=+*#%@"  # Sparse to dense
    DEFAULT_IMAGE_COLUMNS = 60
    MAX_IMAGE_ROWS = 50
    DEFAULT_MAX_IMAGES = 3
    IMAGE_PLACEHOLDER = "[image]"

    # Navigation
    MAX_COUNT = 99999  # Count prefixes saturate here
    DEFAULT_PAGE_SIZE = 20
    SCROLLOFF = 2  # Context lines kept above/below the cursor

    # History
    MAX_HISTORY_ENTRIES = 100

    # Loader
    POLL_INTERVAL = 0.05  # Seconds between checks for finished page loads

    # Terminal requirements
    MIN_TERMINAL_WIDTH = 20
    MIN_TERMINAL_HEIGHT = 4  # Header, status line and at least two text rows

    # Resize handling
    RESIZE_PIPE_MARKER = b'R'  # Byte written to pipe to signal resize

    # Status messages
    LOADING_MESSAGE = "Loading {}..."
    RENDER_FAILED_MESSAGE = "Could not render page: {}"
    LOAD_FAILED_MESSAGE = "Could not load page: {}"
    NO_HISTORY_MESSAGE = "No history yet. Browse some pages to build your history."
    HISTORY_CLEARED_MESSAGE = "History cleared."
    TERMINAL_TOO_SMALL_MESSAGE = "Terminal too small! Need at least {} columns."
    CURRENT_SIZE_MESSAGE = "Current size: {} x {}."
    HELP_HINT = "? for help"
