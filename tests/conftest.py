"""
Shared pytest fixtures for all tests.

This module provides common fixtures including:
- A synthetic single-band float TIFF builder
- Sample parcels
- Mock Sentinel Hub client
- Acquisition config without delays
- FastAPI test client
"""
import struct
from typing import Callable, Optional, Sequence
from unittest.mock import AsyncMock

import numpy as np
import pytest
from fastapi.testclient import TestClient

from forest_biomass.api.rate_limit import limiter
from forest_biomass.domain.models import Parcel
from forest_biomass.infrastructure.sentinel_hub_client import SentinelHubClient
from forest_biomass.main import app
from forest_biomass.services.application.acquisition import AcquisitionConfig


# ============================================================
# Raster Fixtures
# ============================================================

def build_tiff(
    values: Sequence[float],
    width: int,
    height: int,
    header_little_endian: bool = True,
    pixels_little_endian: Optional[bool] = None,
    bits_per_sample: Optional[int] = 32,
    sample_format: Optional[int] = 3,
    include_dimensions: bool = True,
    strip_offsets_as_array: bool = False,
    magic: int = 42,
) -> bytes:
    """
    Build a minimal single-strip float TIFF.

    The header and directory use header_little_endian; the pixel body uses
    pixels_little_endian (defaults to the header order) so tests can
    reproduce a mislabelled payload.
    """
    if pixels_little_endian is None:
        pixels_little_endian = header_little_endian
    bo = "<" if header_little_endian else ">"

    short_entries = []
    long_entries = []
    if include_dimensions:
        long_entries.append((256, width))
        long_entries.append((257, height))
    if bits_per_sample is not None:
        short_entries.append((258, bits_per_sample))
    if sample_format is not None:
        short_entries.append((339, sample_format))

    # Strip offsets, a software tag the decoder does not know, plus the above
    entry_count = len(short_entries) + len(long_entries) + 2
    directory_size = 2 + entry_count * 12 + 4
    array_offset = 8 + directory_size
    data_offset = array_offset + (8 if strip_offsets_as_array else 0)

    entries = b""
    for tag, value in long_entries:
        entries += struct.pack(bo + "HHII", tag, 4, 1, value)
    for tag, value in short_entries:
        entries += struct.pack(bo + "HHIH2x", tag, 3, 1, value)
    if strip_offsets_as_array:
        entries += struct.pack(bo + "HHII", 273, 4, 2, array_offset)
    else:
        entries += struct.pack(bo + "HHII", 273, 4, 1, data_offset)
    entries += struct.pack(bo + "HHI", 305, 2, 4) + b"sh\x00\x00"

    header = (b"II" if header_little_endian else b"MM") + struct.pack(bo + "HI", magic, 8)
    directory = struct.pack(bo + "H", entry_count) + entries + struct.pack(bo + "I", 0)
    extra = struct.pack(bo + "II", data_offset, data_offset) if strip_offsets_as_array else b""

    pixel_dtype = ("<" if pixels_little_endian else ">") + "f4"
    pixels = np.asarray(values, dtype=np.float64).astype(pixel_dtype).tobytes()
    return header + directory + extra + pixels


@pytest.fixture
def tiff_builder() -> Callable[..., bytes]:
    """Expose the TIFF builder to tests."""
    return build_tiff


@pytest.fixture
def uniform_tiff() -> Callable[[float, int], bytes]:
    """Build a square raster where every pixel has the same value."""
    def make(value: float, size: int = 100) -> bytes:
        return build_tiff([value] * (size * size), size, size)
    return make


# ============================================================
# Parcel Fixtures
# ============================================================

@pytest.fixture
def square_coordinates() -> list[tuple[float, float]]:
    """Roughly 1.1km x 0.5km square in southern Finland, (lat, lon)."""
    return [
        (61.00, 24.00),
        (61.00, 24.01),
        (61.01, 24.01),
        (61.01, 24.00),
    ]


@pytest.fixture
def pine_parcel(square_coordinates) -> Parcel:
    """Pine parcel over the square."""
    return Parcel(coordinates=square_coordinates, species="pine")


# ============================================================
# Acquisition Fixtures
# ============================================================

@pytest.fixture
def fast_config() -> AcquisitionConfig:
    """Acquisition config with rate-limit delays disabled."""
    return AcquisitionConfig(request_delay_seconds=0.0, year_delay_seconds=0.0)


@pytest.fixture
def mock_api_client() -> AsyncMock:
    """Create a mock Sentinel Hub client with no acquisitions."""
    mock_client = AsyncMock(spec=SentinelHubClient)
    mock_client.search_acquisition_dates.return_value = []
    return mock_client


# ============================================================
# FastAPI Test Client Fixtures
# ============================================================

@pytest.fixture(autouse=True)
def reset_rate_limiter():
    """Start every test with an empty rate limit window."""
    limiter.reset()
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def test_client() -> TestClient:
    """Create a synchronous test client for FastAPI."""
    return TestClient(app)
