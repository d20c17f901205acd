__title__ = 'argora'
__author__ = 'Argora contributors'
__license__ = 'MIT'
__version__ = "0.1.0"

from .registry import *
from .schemas import *
from .extractor import *
from .parser import *
from .validation import *
from .commands import *
from .help import *
from .faults import *
from .logger import *
from .completion import (
    Directive,
    generate_script,
    detect_shell,
    supported_shells,
    complete_command,
    completion_command,
    with_completion,
)

VersionInfo = __import__("collections").namedtuple("VersionInfo", (
    "major",
    "minor",
    "micro",
    "releaselevel",
    "serial",
    "metadata"
))

version_info = VersionInfo(0, 1, 0, "final", 0, "")

__all__ = (
    "__title__",
    "__author__",
    "__license__",
    "__version__",
    "version_info",
    "Directive",
    "generate_script",
    "detect_shell",
    "supported_shells",
    "complete_command",
    "completion_command",
    "with_completion",
)

# Load the exposed API of the metadata registry
__all__ += registry.__all__  # type: ignore[attr-defined]
# Load the exposed API of the schema combinators
__all__ += schemas.__all__  # type: ignore[attr-defined]
# Load the exposed API of the field extractor
__all__ += extractor.__all__  # type: ignore[attr-defined]
# Load the exposed API of the argv parser
__all__ += parser.__all__  # type: ignore[attr-defined]
# Load the exposed API of the validation bridge
__all__ += validation.__all__  # type: ignore[attr-defined]
# Load the exposed API of the commands
__all__ += commands.__all__  # type: ignore[attr-defined]
# Load the exposed API of the help renderer
__all__ += help.__all__  # type: ignore[attr-defined]
# Load the exposed API of the faults
__all__ += faults.__all__  # type: ignore[attr-defined]
# Load the exposed API of the logger (the name "logger" is rebound to the instance)
__all__ += __import__("sys").modules[f"{__name__}.logger"].__all__
