"""Output path resolution for saved images."""

import os
from pathlib import Path

from imagen_mcp.errors.exceptions import ValidationError

_MAX_UNIQUE_ATTEMPTS = 10_000


class OutputManager:
    """Places generated files under the configured output directory.

    Relative paths are confined to the output directory. Absolute paths are
    taken as given.
    """

    def __init__(self, output_dir: str | Path):
        self.output_dir = Path(output_dir).expanduser().resolve()

    def contains(self, path: Path) -> bool:
        try:
            path.resolve().relative_to(self.output_dir)
        except ValueError:
            return False
        return True

    def resolve(self, output_path: str, unique: bool = True) -> Path:
        """Resolve ``output_path`` and create its parent directory.

        Relative paths are joined onto the output directory and may not climb
        out of it. Absolute paths are used as they are. With ``unique`` an
        existing file is never overwritten; ``name_1.png``, ``name_2.png`` and
        so on are tried instead.
        """
        candidate = Path(output_path).expanduser()
        relative = not candidate.is_absolute()
        if relative:
            candidate = self.output_dir / candidate
        candidate = candidate.resolve()
        if relative and not self.contains(candidate):
            raise ValidationError(f"File path is outside the output directory: {output_path}")

        try:
            candidate.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise ValidationError(
                f"Failed to create output directory: {candidate.parent}: {exc}"
            ) from exc

        return self.unique_path(candidate) if unique else candidate

    @staticmethod
    def unique_path(path: Path) -> Path:
        if not path.exists():
            return path
        for counter in range(1, _MAX_UNIQUE_ATTEMPTS + 1):
            candidate = path.with_name(f"{path.stem}_{counter}{path.suffix}")
            if not candidate.exists():
                return candidate
        raise ValidationError(f"Cannot generate unique file name for: {path}")

    def multiple(self, base: Path, count: int) -> list[Path]:
        """Paths for ``count`` samples: ``base`` itself, or ``base_1 .. base_n``."""
        if count <= 1:
            return [base]
        return [
            self.unique_path(base.with_name(f"{base.stem}_{i}{base.suffix}"))
            for i in range(1, count + 1)
        ]

    @staticmethod
    def file_uri(path: Path) -> str:
        return path.resolve().as_uri()

    @staticmethod
    def display_path(path: Path) -> str:
        home = str(Path.home())
        text = str(path)
        if text.startswith(home + os.sep):
            return "~" + text[len(home):]
        return text
