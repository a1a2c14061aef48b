"""
Terminal color codes used by the CLI frontend.
"""

COLOR_RESET = "\033[0m"
COLOR_ERROR = "\033[31m"      # Red
COLOR_SUCCESS = "\033[32m"    # Green
COLOR_WARNING = "\033[33m"    # Yellow
COLOR_INFO = "\033[36m"       # Cyan
COLOR_PROMPT = "\033[1;37m"   # Bold white
