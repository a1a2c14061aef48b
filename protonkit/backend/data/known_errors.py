"""
Known Wine / Windows error signatures

Substrings looked for (case-insensitively) in captured process output.
Each entry is (pattern, code, description).
"""

KNOWN_ERRORS = [
    ("err:module:import_dll", "IMPORT_DLL", "A required DLL could not be loaded; a runtime verb (vcrun, d3dx9, ...) is probably missing"),
    ("err:module:load_dll", "LOAD_DLL", "Library failed to load"),
    ("0xc0000135", "STATUS_DLL_NOT_FOUND", "A dependent DLL was not found"),
    ("0xc000007b", "STATUS_INVALID_IMAGE_FORMAT", "32/64-bit mismatch between an executable and its libraries"),
    ("0x80070005", "E_ACCESSDENIED", "Access denied"),
    ("0x80070002", "ERROR_FILE_NOT_FOUND", "The system cannot find the file specified"),
    ("0x8007000e", "E_OUTOFMEMORY", "Out of memory"),
    ("err:mscoree", "MSCOREE", ".NET runtime failure; try installing the matching dotnet verb"),
    ("wine-mono", "WINE_MONO", "Wine Mono is handling .NET; some installers need the native framework"),
    ("err:vulkan", "VULKAN", "Vulkan initialisation failed; check the GPU driver"),
    ("could not load kernel32.dll", "KERNEL32", "Prefix is broken or was created with a different architecture"),
    ("wine client error", "WINESERVER", "Lost connection to the background server"),
    ("err:seh:setup_exception", "STACK_OVERFLOW", "Unhandled stack overflow in the application"),
    ("cannot open display", "NO_DISPLAY", "No X11/Wayland display available"),
]
