"""
Pre- and post-processing of volumes for point based annotation.

Before inference the volume is cropped to the bounding box of the points (plus padding)
and resampled to the ROI size of the model. The mask returned by the server is then resampled
back to the crop size and pasted into an empty volume of the original shape.

Points are given as (x, y, z) while the volumes are indexed as (z, y, x).
"""

import os
from typing import Sequence, Tuple, Union

import numpy as np
import imageio.v2 as imageio
from skimage.transform import resize

from .util import PointSet

# Bounding box of the crop in point order (x, y, z); the upper corner is exclusive.
CropBox = Tuple[Tuple[int, int, int], Tuple[int, int, int]]


def _check_volume(volume):
    if volume.ndim != 3:
        raise ValueError(f"Invalid volume of shape {volume.shape}. Expect a 3D volume.")


def _to_slicing(crop_box):
    # The point order is (x, y, z), the array axes are (z, y, x).
    lower, upper = crop_box
    return tuple(slice(lo, hi) for lo, hi in zip(lower[::-1], upper[::-1]))


def get_crop_box(point_set: PointSet, shape: Sequence[int], pad: float) -> CropBox:
    """Compute the bounding box around the points, expanded by the padding and clipped to the volume.

    Args:
        point_set: The points.
        shape: The shape of the volume, (z, y, x).
        pad: The padding added on each side of the bounding box.

    Returns:
        The crop box.
    """
    points = point_set.to_array()
    extent = np.array(shape[::-1])

    lower = np.floor(points.min(axis=0) - pad).astype("int64")
    upper = np.ceil(points.max(axis=0) + pad).astype("int64") + 1
    lower = np.clip(lower, 0, extent)
    upper = np.clip(upper, 0, extent)
    if np.any(upper <= lower):
        raise ValueError(f"The points {point_set.points} are outside of the volume with shape {tuple(shape)}.")

    return tuple(int(lo) for lo in lower), tuple(int(up) for up in upper)


def crop_volume(
    volume: np.ndarray,
    point_set: PointSet,
    pad: float,
    roi_size: Sequence[int],
) -> Tuple[np.ndarray, PointSet, CropBox]:
    """Crop the volume around the points and resample it to the ROI size.

    Args:
        volume: The input volume.
        point_set: The points, in the coordinates of the input volume.
        pad: The padding around the bounding box of the points.
        roi_size: The ROI size expected by the model, (x, y, z).

    Returns:
        The cropped and resampled volume.
        The points in the coordinates of the cropped volume.
        The crop box, needed for restoring the result.
    """
    _check_volume(volume)
    crop_box = get_crop_box(point_set, volume.shape, pad)
    cropped = volume[_to_slicing(crop_box)]

    target_shape = tuple(roi_size)[::-1]
    cropped = resize(
        cropped, target_shape, order=1, preserve_range=True, anti_aliasing=False
    ).astype(volume.dtype)

    lower, upper = np.array(crop_box[0]), np.array(crop_box[1])
    scale = np.array(roi_size, dtype="float64") / (upper - lower)
    points = (point_set.to_array() - lower) * scale
    points = np.clip(np.round(points), 0, np.array(roi_size) - 1).astype("int64")

    return cropped, PointSet(points.tolist()), crop_box


def restore_volume(result: np.ndarray, crop_box: CropBox, shape: Sequence[int]) -> np.ndarray:
    """Resample the result back to the crop size and paste it into a volume of the original shape.

    Args:
        result: The mask predicted for the cropped volume.
        crop_box: The crop box returned by `crop_volume`.
        shape: The shape of the original volume.

    Returns:
        The mask in the original volume.
    """
    _check_volume(result)
    slicing = _to_slicing(crop_box)
    crop_shape = tuple(sl.stop - sl.start for sl in slicing)

    result = resize(
        result, crop_shape, order=0, preserve_range=True, anti_aliasing=False
    ).astype(result.dtype)

    restored = np.zeros(tuple(shape), dtype=result.dtype)
    restored[slicing] = result
    return restored


def image_pre_process(
    input_path: Union[str, os.PathLike],
    output_path: Union[str, os.PathLike],
    point_set: PointSet,
    pad: float,
    roi_size: Sequence[int],
) -> Tuple[PointSet, CropBox, Tuple[int, ...]]:
    """Crop the image file around the points and write the result.

    Args:
        input_path: The input volume. Supports all volume formats that can be read by imageio,
            e.g. tif or nifti (the latter requires SimpleITK).
        output_path: Where to write the cropped volume.
        point_set: The points.
        pad: The padding.
        roi_size: The ROI size of the model, (x, y, z).

    Returns:
        The points in the coordinates of the cropped volume.
        The crop box.
        The shape of the input volume.
    """
    volume = imageio.volread(input_path)
    cropped, roi_points, crop_box = crop_volume(volume, point_set, pad, roi_size)
    imageio.volwrite(output_path, cropped)
    return roi_points, crop_box, volume.shape


def image_post_process(
    input_path: Union[str, os.PathLike],
    output_path: Union[str, os.PathLike],
    crop_box: CropBox,
    shape: Sequence[int],
) -> None:
    """Restore the result file for the crop to the original volume shape and write it.

    Args:
        input_path: The result for the cropped volume.
        output_path: Where to write the restored result.
        crop_box: The crop box.
        shape: The shape of the original volume.
    """
    result = imageio.volread(input_path)
    imageio.volwrite(output_path, restore_volume(result, crop_box, shape))
