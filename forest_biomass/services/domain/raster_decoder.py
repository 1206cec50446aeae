"""
Domain service: Single-band float raster decoding.

Sentinel Hub answers a single-band FLOAT32 request with a minimal
single-strip TIFF. This module parses just enough of that format to locate
the pixel data and reduces it to vegetation index statistics:
- Header and image file directory parsing
- Two-pass byte order detection (sample-and-vote, then full decode)
- Validity filtering against the index domain [-1, 1]
- Land cover classification into four disjoint bands
"""
import logging
import struct
from dataclasses import dataclass
from typing import Optional
import numpy as np

from forest_biomass.domain.models import IndexStatistics

logger = logging.getLogger(__name__)


LITTLE_ENDIAN_MARKER = b"II"
BIG_ENDIAN_MARKER = b"MM"
TIFF_MAGIC = 42
HEADER_SIZE = 8
ENTRY_SIZE = 12

TAG_IMAGE_WIDTH = 256
TAG_IMAGE_LENGTH = 257
TAG_BITS_PER_SAMPLE = 258
TAG_STRIP_OFFSETS = 273
TAG_SAMPLE_FORMAT = 339

TYPE_SHORT = 3
TYPE_LONG = 4
TYPE_SIZES = {TYPE_SHORT: 2, TYPE_LONG: 4}

SAMPLE_FORMAT_IEEE_FLOAT = 3
FLOAT_SIZE = 4

INDEX_MIN = -1.0
INDEX_MAX = 1.0
FLOAT32_TINY = float(np.finfo(np.float32).tiny)
ENDIANNESS_PROBE_COUNT = 20

VEGETATION_THRESHOLD = 0.3
SPARSE_VEGETATION_THRESHOLD = 0.2
WATER_THRESHOLD = 0.0
FOREST_SUITABILITY_THRESHOLD = 0.2


class RasterDecodeError(Exception):
    """Base exception for payloads that cannot be decoded."""
    pass


class InvalidFormatError(RasterDecodeError):
    """The payload is not a TIFF this decoder understands."""
    pass


class MissingDimensionsError(RasterDecodeError):
    """The directory does not declare image dimensions or a data offset."""
    pass


class UnsupportedSampleFormatError(RasterDecodeError):
    """The pixels are not 32-bit IEEE floats."""
    pass


@dataclass
class RasterHeader:
    """Fields extracted from the image file directory."""
    little_endian: bool
    width: Optional[int] = None
    height: Optional[int] = None
    bits_per_sample: Optional[int] = None
    data_offset: Optional[int] = None
    sample_format: Optional[int] = None

    @property
    def pixel_count(self) -> int:
        return (self.width or 0) * (self.height or 0)


def _byte_order(little_endian: bool) -> str:
    return "<" if little_endian else ">"


def _unpack(fmt: str, buffer: bytes, offset: int, little_endian: bool) -> tuple:
    size = struct.calcsize(fmt)
    if offset < 0 or offset + size > len(buffer):
        raise InvalidFormatError(
            f"Read of {size} bytes at offset {offset} exceeds payload of {len(buffer)} bytes"
        )
    return struct.unpack_from(_byte_order(little_endian) + fmt, buffer, offset)


def _read_entry_value(
    buffer: bytes,
    entry_offset: int,
    field_type: int,
    count: int,
    little_endian: bool,
) -> Optional[int]:
    """
    Read the first value of a SHORT or LONG directory entry.

    Values that fit in the 4-byte value field are stored inline; larger
    arrays live at the offset stored in that field. Only the first element
    is needed (single-strip payloads).
    """
    size = TYPE_SIZES.get(field_type)
    if size is None or count < 1:
        return None

    fmt = "H" if field_type == TYPE_SHORT else "I"
    value_offset = entry_offset + 8
    if size * count > 4:
        (value_offset,) = _unpack("I", buffer, value_offset, little_endian)
    (value,) = _unpack(fmt, buffer, value_offset, little_endian)
    return value


def parse_header(buffer: bytes) -> RasterHeader:
    """
    Parse the TIFF header and first image file directory.

    The byte order marker only provides the initial hypothesis; the pixel
    body may still be encoded in the opposite order (see
    detect_pixel_byte_order).

    Args:
        buffer: Raw payload bytes

    Returns:
        RasterHeader with whatever fields the directory declares

    Raises:
        InvalidFormatError: If the marker, magic or directory is malformed
    """
    if len(buffer) < HEADER_SIZE:
        raise InvalidFormatError(f"Payload too short for a TIFF header ({len(buffer)} bytes)")

    marker = bytes(buffer[:2])
    if marker == LITTLE_ENDIAN_MARKER:
        little_endian = True
    elif marker == BIG_ENDIAN_MARKER:
        little_endian = False
    else:
        raise InvalidFormatError(f"Unknown byte order marker {marker!r}")

    (magic,) = _unpack("H", buffer, 2, little_endian)
    if magic != TIFF_MAGIC:
        raise InvalidFormatError(f"Bad magic number {magic}, expected {TIFF_MAGIC}")

    (directory_offset,) = _unpack("I", buffer, 4, little_endian)
    (entry_count,) = _unpack("H", buffer, directory_offset, little_endian)

    header = RasterHeader(little_endian=little_endian)
    for index in range(entry_count):
        entry_offset = directory_offset + 2 + index * ENTRY_SIZE
        tag, field_type, count = _unpack("HHI", buffer, entry_offset, little_endian)
        value = _read_entry_value(buffer, entry_offset, field_type, count, little_endian)

        if tag == TAG_IMAGE_WIDTH:
            header.width = value
        elif tag == TAG_IMAGE_LENGTH:
            header.height = value
        elif tag == TAG_BITS_PER_SAMPLE:
            header.bits_per_sample = value
        elif tag == TAG_STRIP_OFFSETS:
            header.data_offset = value
        elif tag == TAG_SAMPLE_FORMAT:
            header.sample_format = value

    logger.debug(
        f"Parsed header: {header.width}x{header.height}, bits={header.bits_per_sample}, "
        f"format={header.sample_format}, offset={header.data_offset}, "
        f"little_endian={little_endian}"
    )
    return header


def _count_plausible(values: np.ndarray) -> int:
    # Subnormals are what NaN and small floats look like when byte-swapped
    magnitude = np.abs(values)
    plausible = (magnitude <= INDEX_MAX) & ((magnitude == 0) | (magnitude >= FLOAT32_TINY))
    return int(np.count_nonzero(plausible))


def _read_floats(buffer: bytes, offset: int, count: int, little_endian: bool) -> np.ndarray:
    if count <= 0:
        return np.empty(0, dtype=np.float64)
    dtype = np.dtype(_byte_order(little_endian) + "f4")
    return np.frombuffer(buffer, dtype=dtype, count=count, offset=offset).astype(np.float64)


def detect_pixel_byte_order(
    buffer: bytes,
    data_offset: int,
    pixel_count: int,
    initial_little_endian: bool,
) -> bool:
    """
    Decide the byte order of the pixel body by sampling.

    Reads the first few floats under both byte orders and keeps whichever
    yields more values inside the index domain. Subnormal magnitudes do not
    vote. Ties keep the initial order.

    Args:
        buffer: Raw payload bytes
        data_offset: Byte offset of the first pixel
        pixel_count: Declared number of pixels
        initial_little_endian: Byte order from the header marker

    Returns:
        True if the pixels should be read little-endian
    """
    available = max(0, (len(buffer) - data_offset) // FLOAT_SIZE)
    probe_count = min(ENDIANNESS_PROBE_COUNT, pixel_count, available)
    if probe_count == 0:
        return initial_little_endian

    initial_votes = _count_plausible(
        _read_floats(buffer, data_offset, probe_count, initial_little_endian)
    )
    opposite_votes = _count_plausible(
        _read_floats(buffer, data_offset, probe_count, not initial_little_endian)
    )

    logger.debug(
        f"Byte order vote over {probe_count} samples: "
        f"initial={initial_votes}, opposite={opposite_votes}"
    )

    if opposite_votes > initial_votes:
        logger.info("Pixel byte order disagrees with header marker, using opposite order")
        return not initial_little_endian
    return initial_little_endian


def summarize_index_values(
    values: np.ndarray,
    total_pixels: int,
    width: int,
    height: int,
    little_endian: bool,
) -> IndexStatistics:
    """
    Reduce raw index values to statistics.

    Values that are NaN or outside [-1, 1] are excluded from the statistics
    but still count toward the total.

    Args:
        values: Decoded pixel values
        total_pixels: Declared pixel count of the raster
        width: Declared raster width
        height: Declared raster height
        little_endian: Byte order used for the pixels

    Returns:
        IndexStatistics (has_data is False if no pixel is valid)
    """
    valid = values[~np.isnan(values) & (values >= INDEX_MIN) & (values <= INDEX_MAX)]
    valid_count = int(valid.size)

    if valid_count == 0:
        return IndexStatistics(
            total_pixel_count=total_pixels,
            width=width,
            height=height,
            little_endian=little_endian,
        )

    vegetation = int(np.count_nonzero(valid > VEGETATION_THRESHOLD))
    sparse = int(np.count_nonzero(
        (valid > SPARSE_VEGETATION_THRESHOLD) & (valid <= VEGETATION_THRESHOLD)
    ))
    bare = int(np.count_nonzero(
        (valid >= WATER_THRESHOLD) & (valid <= SPARSE_VEGETATION_THRESHOLD)
    ))
    water = int(np.count_nonzero(valid < WATER_THRESHOLD))

    return IndexStatistics(
        mean=float(np.mean(valid)),
        min=float(np.min(valid)),
        max=float(np.max(valid)),
        valid_pixel_count=valid_count,
        total_pixel_count=total_pixels,
        vegetation_pixel_count=vegetation,
        sparse_vegetation_pixel_count=sparse,
        bare_pixel_count=bare,
        water_pixel_count=water,
        vegetation_percent=vegetation / valid_count * 100,
        width=width,
        height=height,
        little_endian=little_endian,
    )


def decode_index_raster(
    buffer: bytes,
    expected_width: Optional[int] = None,
    expected_height: Optional[int] = None,
) -> IndexStatistics:
    """
    Decode a single-band float raster into vegetation index statistics.

    Args:
        buffer: Raw TIFF payload
        expected_width: Width that was requested, used for a mismatch warning
        expected_height: Height that was requested, used for a mismatch warning

    Returns:
        IndexStatistics; check has_data before using mean/min/max

    Raises:
        InvalidFormatError: If the header is malformed
        MissingDimensionsError: If width, height or data offset is absent
        UnsupportedSampleFormatError: If the pixels are not 32-bit floats
    """
    header = parse_header(buffer)

    if not header.width or not header.height:
        raise MissingDimensionsError("Raster does not declare its width and height")
    if header.data_offset is None:
        raise MissingDimensionsError("Raster does not declare a pixel data offset")
    if header.bits_per_sample is not None and header.bits_per_sample != 32:
        raise UnsupportedSampleFormatError(
            f"Expected 32 bits per sample, got {header.bits_per_sample}"
        )
    if header.sample_format is not None and header.sample_format != SAMPLE_FORMAT_IEEE_FLOAT:
        raise UnsupportedSampleFormatError(
            f"Expected IEEE float samples, got sample format {header.sample_format}"
        )

    if (expected_width is not None and expected_width != header.width) or (
        expected_height is not None and expected_height != header.height
    ):
        logger.warning(
            f"Raster is {header.width}x{header.height}, "
            f"requested {expected_width}x{expected_height}"
        )

    total_pixels = header.pixel_count
    if header.data_offset > len(buffer):
        raise InvalidFormatError(
            f"Data offset {header.data_offset} beyond payload of {len(buffer)} bytes"
        )

    # Pass 1: vote on the pixel byte order
    little_endian = detect_pixel_byte_order(
        buffer, header.data_offset, total_pixels, header.little_endian
    )

    # Pass 2: decode every available pixel under the corrected order
    available = (len(buffer) - header.data_offset) // FLOAT_SIZE
    readable = min(total_pixels, available)
    if readable < total_pixels:
        logger.warning(f"Payload truncated: {readable}/{total_pixels} pixels present")
    values = _read_floats(buffer, header.data_offset, readable, little_endian)

    statistics = summarize_index_values(
        values, total_pixels, header.width, header.height, little_endian
    )

    if not statistics.has_data:
        logger.warning(f"No valid index values in {total_pixels} pixels")
        return statistics

    logger.info(
        f"Index statistics: mean={statistics.mean:.3f}, min={statistics.min:.3f}, "
        f"max={statistics.max:.3f}, valid={statistics.valid_pixel_count}/{total_pixels} "
        f"({statistics.coverage_percent:.1f}%)"
    )
    logger.debug(
        f"Land cover: vegetation={statistics.vegetation_pixel_count}, "
        f"sparse={statistics.sparse_vegetation_pixel_count}, "
        f"bare={statistics.bare_pixel_count}, water={statistics.water_pixel_count}"
    )
    if statistics.mean < FOREST_SUITABILITY_THRESHOLD:
        logger.warning(
            f"Mean index {statistics.mean:.3f} is below {FOREST_SUITABILITY_THRESHOLD}; "
            f"area may not be suitable for forest analysis"
        )

    return statistics
