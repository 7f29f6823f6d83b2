"""Filesystem helpers for trace outputs.

Provides:
    - ensure_dir(): mkdir -p
    - atomic_write_bytes(), atomic_yaml_dump(): manifests and other small files
    - atomic_save_image(): canvas → image file via Pillow
    - load_yaml(): safe YAML reader for configs

Every writer goes through the same sequence: write a sibling tmp file,
then rename it over the target. A reader never observes a half-written
canvas or manifest, and a failed write leaves no tmp file behind.

Usage:
    from epitrace.utils import fs
    fs.atomic_save_image(canvas.pixels, "out/trace.png")
    fs.atomic_yaml_dump(manifest, "out/trace_manifest.yaml")
"""

import contextlib
import os
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, Union

import numpy as np
import yaml
from PIL import Image

PathLike = Union[str, Path]


def ensure_dir(p: PathLike) -> Path:
    """Create ``p`` (and parents) if missing; returns it as a Path."""
    p = Path(p)
    p.mkdir(parents=True, exist_ok=True)
    return p


@contextlib.contextmanager
def _replace_on_success(target: Path, tmp: Path, what: str) -> Iterator[Path]:
    """Yield ``tmp`` for writing, then move it onto ``target``.

    Any exception raised while writing or renaming removes ``tmp`` and is
    re-raised as RuntimeError naming ``target``.
    """
    try:
        yield tmp
        tmp.replace(target)
    except Exception as e:
        tmp.unlink(missing_ok=True)
        raise RuntimeError(f"Failed to {what} {target} atomically: {e}") from e


def atomic_write_bytes(path: PathLike, data: bytes) -> None:
    """Write ``data`` to ``path`` atomically, creating parent directories.

    Raises
    ------
    RuntimeError
        If the write or the final rename fails
    """
    path = Path(path)
    ensure_dir(path.parent)

    with _replace_on_success(path, path.with_name(path.name + ".tmp"), "write") as tmp:
        with open(tmp, 'wb') as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())


def atomic_save_image(
    img: np.ndarray,
    path: PathLike,
    pil_kwargs: Optional[Dict[str, Any]] = None,
) -> None:
    """Encode an image array and save it atomically.

    Parameters
    ----------
    img : np.ndarray
        (H, W, 3), (H, W, 1) or (H, W); values outside uint8 are clipped
        to [0, 255]
    path : str or Path
        Target file; its extension picks the encoder (.png, .bmp, ...)
    pil_kwargs : dict, optional
        Extra keyword arguments for ``PIL.Image.Image.save``

    Raises
    ------
    RuntimeError
        Unknown extension, missing directory, permission or disk errors

    Notes
    -----
    The parent directory is not created. The tmp file is named
    ``<stem>.tmp<suffix>`` so Pillow sees the real extension.
    """
    path = Path(path)

    arr = np.asarray(img)
    if arr.dtype != np.uint8:
        arr = np.clip(arr, 0, 255).astype(np.uint8)
    if arr.ndim == 3 and arr.shape[2] == 1:
        arr = arr[:, :, 0]

    image = Image.fromarray(arr)
    with _replace_on_success(path, path.with_name(f"{path.stem}.tmp{path.suffix}"), "save image") as tmp:
        image.save(tmp, **(pil_kwargs or {}))


def atomic_yaml_dump(obj: Any, path: PathLike) -> None:
    """Dump ``obj`` as block-style YAML (key order kept) via atomic_write_bytes."""
    text = yaml.safe_dump(obj, default_flow_style=False, sort_keys=False, allow_unicode=True)
    atomic_write_bytes(path, text.encode('utf-8'))


def load_yaml(path: PathLike) -> Any:
    """Parse a YAML file with ``yaml.safe_load``.

    Returns
    -------
    Any
        Parsed document; ``None`` for an empty file

    Raises
    ------
    FileNotFoundError
        If ``path`` does not exist
    yaml.YAMLError
        If the document is malformed (message includes the path)
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"YAML file not found: {path}")

    with open(path, 'r', encoding='utf-8') as f:
        try:
            return yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Failed to parse YAML file {path}: {e}") from e
