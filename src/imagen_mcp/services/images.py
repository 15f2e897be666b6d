"""Image source loading and saving of Imagen predictions."""

import base64
import binascii
import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from imagen_mcp.errors.exceptions import ExecutorError, ValidationError
from imagen_mcp.models.results import MessageResult, MultiResourceResult, ResourceResult
from imagen_mcp.services.output_paths import OutputManager


@dataclass
class ImageSource:
    base64: str
    mime_type: str | None = None
    file_path: Path | None = None


def mime_type_for(path: str | Path) -> str | None:
    mime, _ = mimetypes.guess_type(str(path))
    return mime


def load_image_source(
    base64_value: str | None,
    path_value: str | None,
    label: str,
    required: bool = False,
) -> ImageSource | None:
    """Load an image given as base64 (plain or data URI) or as a file path."""
    if base64_value and base64_value.strip():
        trimmed = base64_value.strip()
        if trimmed.startswith("data:"):
            header, sep, data = trimmed[5:].partition(",")
            if not sep:
                raise ValidationError(f"{label} data URI is malformed")
            data = "".join(data.split())
            if not data:
                raise ValidationError(f"{label} data URI contains no base64 data")
            return ImageSource(base64=data, mime_type=header.split(";")[0] or None)
        return ImageSource(base64="".join(trimmed.split()))

    if path_value and path_value.strip():
        full_path = Path(path_value).expanduser().resolve()
        try:
            data = full_path.read_bytes()
        except OSError as exc:
            raise ValidationError(f"{label} could not be read from {full_path}: {exc}") from exc
        return ImageSource(
            base64=base64.b64encode(data).decode("ascii"),
            mime_type=mime_type_for(full_path),
            file_path=full_path,
        )

    if required:
        raise ValidationError(f"{label} is required (provide base64 data or a file path)")
    return None


def decode_prediction(prediction: dict[str, Any]) -> bytes:
    try:
        return base64.b64decode(prediction["bytesBase64Encoded"], validate=True)
    except (KeyError, binascii.Error) as exc:
        raise ExecutorError("Google Imagen API returned an unreadable image") from exc


def save_predictions(
    outputs: OutputManager,
    predictions: list[dict[str, Any]],
    output_path: str,
    info_text: str,
    return_base64: bool = False,
) -> ResourceResult | MultiResourceResult | MessageResult:
    """Save predictions as image files and describe them as a tool result.

    ``return_base64`` skips the file write and returns the first image inline.
    An empty prediction list is an ``ExecutorError``.
    """
    if not predictions:
        raise ExecutorError("No images were generated")

    if return_base64:
        first = predictions[0]
        mime = first.get("mimeType") or "image/png"
        return MessageResult(
            text=f"{info_text}\n\ndata:{mime};base64,{first['bytesBase64Encoded']}"
        )

    count = len(predictions)
    base = outputs.resolve(output_path, unique=count == 1)
    paths = outputs.multiple(base, count)

    uris: list[str] = []
    saved: list[str] = []
    lines: list[str] = []
    for prediction, path in zip(predictions, paths):
        data = decode_prediction(prediction)
        path.write_bytes(data)
        uris.append(outputs.file_uri(path))
        saved.append(str(path))
        lines.append(f"{OutputManager.display_path(path)} ({len(data)} bytes)")

    mime = predictions[0].get("mimeType") or "image/png"
    if count == 1:
        return ResourceResult(
            uri=uris[0],
            path=saved[0],
            mime_type=mime,
            text=f"{info_text}\n\nSaved to: {lines[0]}",
        )
    return MultiResourceResult(
        uris=uris,
        paths=saved,
        mime_type=mime,
        text=f"{info_text}\n\nSaved {count} images:\n" + "\n".join(lines),
    )
