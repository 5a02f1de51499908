"""
EXIF metadata extraction for uploaded photos.
Reads dimensions, camera/lens details, exposure settings and GPS position with Pillow.
"""
import io
import json
import logging
import math
import struct
from typing import Any, Dict, Optional

from PIL import Image, UnidentifiedImageError
from PIL.ExifTags import TAGS, GPSTAGS

logger = logging.getLogger(__name__)

EXIF_IFD = 0x8769
GPS_IFD = 0x8825


def _to_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        if isinstance(value, (tuple, list)):
            # Some cameras store rationals as (numerator, denominator)
            if len(value) != 2:
                return None
            number = float(value[0]) / float(value[1])
        else:
            number = float(value)
    except (TypeError, ValueError, ZeroDivisionError):
        return None
    # IFDRational with a zero denominator converts to nan
    return number if math.isfinite(number) else None


def _clean_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="ignore")
    text = str(value).replace("\x00", "").strip()
    return text or None


def format_shutter_speed(seconds: Optional[float]) -> Optional[str]:
    """Render an exposure time the way photographers write it: 1/250, 0.5 -> 1/2, 2 -> 2."""
    if seconds is None or seconds <= 0:
        return None
    if seconds < 1:
        return f"1/{round(1 / seconds)}"
    return f"{seconds:g}"


def _dms_to_degrees(dms: Any, ref: Optional[str]) -> Optional[float]:
    if not isinstance(dms, (tuple, list)) or len(dms) != 3:
        return None
    parts = [_to_float(v) for v in dms]
    if any(p is None for p in parts):
        return None
    degrees = parts[0] + parts[1] / 60 + parts[2] / 3600
    if ref and ref.upper() in ("S", "W"):
        degrees = -degrees
    return round(degrees, 6)


def _json_safe(value: Any) -> Any:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="ignore").replace("\x00", "")
    if isinstance(value, (tuple, list)):
        return [_json_safe(v) for v in value]
    if isinstance(value, (str, int, bool)) or value is None:
        return value
    number = _to_float(value)
    return number if number is not None else str(value)


def _parse_field(name: str, parse, *args) -> Any:
    """Run one tag parser; a malformed tag is logged and skipped."""
    try:
        return parse(*args)
    except (TypeError, ValueError, ZeroDivisionError, KeyError, IndexError, AttributeError) as e:
        logger.warning(f"Skipping unreadable EXIF field {name}: {e}")
        return None


def _parse_iso(value: Any) -> Optional[int]:
    if isinstance(value, (tuple, list)):
        value = value[0] if value else None
    return int(value) if value is not None else None


def extract_image_metadata(image_bytes: bytes) -> Dict[str, Any]:
    """
    Extract dimensions and EXIF fields from image bytes.

    Args:
        image_bytes: Raw image file content

    Returns:
        dict with keys width, height, camera_make, camera_model, lens_model,
        aperture, shutter_speed, iso, focal_length, datetime_original,
        gps_lat, gps_lon and exif_json. Missing values are None; an
        unreadable image yields all None.
    """
    metadata: Dict[str, Any] = {
        "width": None,
        "height": None,
        "camera_make": None,
        "camera_model": None,
        "lens_model": None,
        "aperture": None,
        "shutter_speed": None,
        "iso": None,
        "focal_length": None,
        "datetime_original": None,
        "gps_lat": None,
        "gps_lon": None,
        "exif_json": None,
    }

    try:
        with Image.open(io.BytesIO(image_bytes)) as img:
            metadata["width"], metadata["height"] = img.size
            exif = img.getexif()
            base = {TAGS.get(k, k): v for k, v in exif.items()}
            detail = {TAGS.get(k, k): v for k, v in exif.get_ifd(EXIF_IFD).items()}
            gps = {GPSTAGS.get(k, k): v for k, v in exif.get_ifd(GPS_IFD).items()}
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError,
            TypeError, KeyError, struct.error) as e:
        logger.warning(f"Could not read image metadata ({type(e).__name__}): {e}")
        return {key: None for key in metadata}

    tags = {**base, **detail}

    metadata["camera_make"] = _parse_field("Make", _clean_str, tags.get("Make"))
    metadata["camera_model"] = _parse_field("Model", _clean_str, tags.get("Model"))
    metadata["lens_model"] = _parse_field("LensModel", _clean_str, tags.get("LensModel"))
    metadata["aperture"] = _parse_field("FNumber", _to_float, tags.get("FNumber"))
    metadata["shutter_speed"] = _parse_field(
        "ExposureTime", lambda v: format_shutter_speed(_to_float(v)), tags.get("ExposureTime")
    )
    metadata["focal_length"] = _parse_field("FocalLength", _to_float, tags.get("FocalLength"))
    metadata["datetime_original"] = _parse_field(
        "DateTimeOriginal", _clean_str, tags.get("DateTimeOriginal") or tags.get("DateTime")
    )
    metadata["iso"] = _parse_field("ISOSpeedRatings", _parse_iso, tags.get("ISOSpeedRatings"))

    if gps:
        metadata["gps_lat"] = _parse_field(
            "GPSLatitude", _dms_to_degrees, gps.get("GPSLatitude"), _clean_str(gps.get("GPSLatitudeRef"))
        )
        metadata["gps_lon"] = _parse_field(
            "GPSLongitude", _dms_to_degrees, gps.get("GPSLongitude"), _clean_str(gps.get("GPSLongitudeRef"))
        )

    readable = {
        str(k): _json_safe(v)
        for k, v in tags.items()
        if isinstance(k, str) and k not in ("MakerNote", "UserComment", "PrintImageMatching")
    }
    if gps:
        readable["GPSInfo"] = {str(k): _json_safe(v) for k, v in gps.items()}
    if readable:
        metadata["exif_json"] = _parse_field("exif_json", lambda d: json.dumps(d, default=str), readable)

    return metadata
