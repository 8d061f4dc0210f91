"""
Helper functions for parsing point sets and ROI sizes and for the client configuration.
"""

import os
import json
import math
from typing import Iterable, Optional, Sequence, Tuple, Union

import numpy as np

# The default server that is used if neither '-server' nor AIAA_SERVER is given.
_DEFAULT_SERVER = "http://0.0.0.0:5000"

# The defaults for the inference region, used when the server does not report them for a model.
_DEFAULT_PADDING = 20.0
_DEFAULT_ROI = (128, 128, 128)

_DEFAULT_TIMEOUT = 60


def get_server_uri(server_uri: Optional[str] = None) -> str:
    """Get the URI of the annotation server.

    Users can set the AIAA_SERVER environment variable for a custom default server.
    The environment variable is checked every time this function is called.

    Args:
        server_uri: The server URI passed by the user. Takes precedence over the environment.

    Returns:
        The server URI, without trailing slash.
    """
    if not server_uri:
        server_uri = os.environ.get("AIAA_SERVER") or _DEFAULT_SERVER
    return server_uri.rstrip("/")


class PointSetParseError(ValueError):
    """Raised when a point set cannot be parsed."""


def _is_number(value):
    # bool is a subclass of int, but [true, false, 1] is not a valid point. NaN and Infinity are rejected too.
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


class PointSet:
    """An ordered, non-empty sequence of 3D points (x, y, z).

    Args:
        points: The points.
    """
    def __init__(self, points: Iterable[Sequence[Union[int, float]]]):
        points = [list(point) for point in points]
        if len(points) == 0:
            raise PointSetParseError("The point set is empty.")
        for point in points:
            if len(point) != 3 or not all(_is_number(coord) for coord in point):
                raise PointSetParseError(f"Invalid point {point}, expect exactly 3 numeric coordinates.")
        self.points = points

    @classmethod
    def from_json(cls, text: str) -> "PointSet":
        """Parse a point set from its JSON representation, e.g. '[[70,172,86],[105,161,180]]'.

        Args:
            text: The JSON string.

        Returns:
            The point set.
        """
        if text is None or not text.strip():
            raise PointSetParseError("The point set is empty.")
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise PointSetParseError(f"Could not parse the point set {text}: {e}")
        if not isinstance(data, list) or not all(isinstance(point, list) for point in data):
            raise PointSetParseError(f"Expect a list of [x, y, z] points, got {text}.")
        return cls(data)

    def to_json(self) -> str:
        return json.dumps(self.points)

    def to_array(self) -> np.ndarray:
        """Return the points as array of shape (n_points, 3)."""
        return np.array(self.points, dtype="float64")

    def __len__(self):
        return len(self.points)

    def __iter__(self):
        return iter(self.points)

    def __eq__(self, other):
        return isinstance(other, PointSet) and self.points == other.points

    def __repr__(self):
        return f"PointSet({self.points})"


def string_to_point(text: str, delimiter: str = "x") -> Tuple[int, int, int]:
    """Parse a 3D size like '128x128x128'.

    Args:
        text: The string to parse.
        delimiter: The delimiter between the coordinates.

    Returns:
        The three integer coordinates.
    """
    parts = text.strip().split(delimiter)
    if len(parts) != 3:
        raise ValueError(f"Invalid size {text}, expect three values separated by '{delimiter}'.")
    try:
        return tuple(int(part) for part in parts)
    except ValueError:
        raise ValueError(f"Invalid size {text}, expect integer values.")


def point_to_string(point: Sequence[int], delimiter: str = "x") -> str:
    return delimiter.join(str(int(p)) for p in point)


def get_extension(path: Union[str, os.PathLike]) -> str:
    """Get the file extension, including double extensions like '.nii.gz'.
    """
    name = os.path.basename(str(path))
    for ext in (".nii.gz", ".ome.tif", ".ome.tiff"):
        if name.lower().endswith(ext):
            return name[-len(ext):]
    return os.path.splitext(name)[1]


def as_roi(roi: Union[str, Sequence[int], None]) -> Optional[Tuple[int, int, int]]:
    """@private"""
    if roi is None:
        return None
    if isinstance(roi, str):
        return string_to_point(roi)
    roi = tuple(int(r) for r in roi)
    if len(roi) != 3:
        raise ValueError(f"Invalid roi {roi}, expect 3 values.")
    return roi

