"""Apache Tika app invocation — the external text-extraction engine."""

import shutil
from dataclasses import dataclass
from pathlib import Path

# Plain-text mode, pretty-printed, document read from stdin.
TEXT_EXTRACTION_ARGS = ("--text", "--pretty-print", "-")


@dataclass(frozen=True)
class TikaEngine:
    """Builds the engine command line; the document always arrives on stdin."""

    java: str = "java"
    jar_path: str = "tika-app.jar"

    def command(self) -> list[str]:
        return [self.java, "-jar", self.jar_path, *TEXT_EXTRACTION_ARGS]

    def is_available(self) -> bool:
        """True when both the Java runtime and the Tika jar can be found."""
        return shutil.which(self.java) is not None and Path(self.jar_path).is_file()
