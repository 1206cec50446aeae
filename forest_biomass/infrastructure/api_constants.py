"""
API endpoint constants and configuration.

This module contains all Sentinel Hub endpoint paths and request constants.
Centralizing these values makes it easy to swap out endpoints or update API versions.
"""


# Sentinel Hub API Endpoints
class SentinelHubEndpoints:
    """Sentinel Hub endpoint paths."""

    API_BASE = "/api/v1"

    CATALOG_SEARCH = f"{API_BASE}/catalog/1.0.0/search"
    PROCESS = f"{API_BASE}/process"


# Request Constants
class SentinelHubConstants:
    """Collection, format and script constants for Sentinel Hub requests."""

    # Data collection
    COLLECTION_ID = "sentinel-2-l2a"
    CRS84 = "http://www.opengis.net/def/crs/OGC/1.3/CRS84"
    MOSAICKING_ORDER = "leastCC"

    # HTTP Headers
    CONTENT_TYPE_JSON = "application/json"
    ACCEPT_TIFF = "image/tiff"

    # Single-band FLOAT32 NDVI, NaN for masked pixels and for scene classes
    # other than vegetation (4), not vegetated (5) and water (6)
    NDVI_EVALSCRIPT = """//VERSION=3
function setup() {
  return {
    input: [{
      bands: ["B04", "B08", "SCL", "dataMask"],
      units: "DN"
    }],
    output: {
      bands: 1,
      sampleType: "FLOAT32"
    }
  };
}

function evaluatePixel(samples) {
  if (samples.dataMask === 0) {
    return [NaN];
  }
  if (samples.SCL !== 4 && samples.SCL !== 5 && samples.SCL !== 6) {
    return [NaN];
  }
  return [(samples.B08 - samples.B04) / (samples.B08 + samples.B04 + 0.00001)];
}
"""
