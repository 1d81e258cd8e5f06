"""Centralized constants for pdfmassage."""

# Rotation angles accepted by rotate_pdf
ROTATE_ANGLES = (90, 180, 270)

# Unit conversion factors to PDF points (72 points per inch)
UNIT_TO_POINTS = {
    "pt": 1.0,
    "in": 72.0,
    "mm": 72.0 / 25.4,
    "cm": 72.0 / 2.54,
}

# identify prints one record per frame: type,width,height,frame count
IDENTIFY_FORMAT = "%m,%[fx:w],%[fx:h],%n,"

DEFAULT_FETCH_TIMEOUT = 10.0
DEFAULT_ROTATE_DENSITY = 300
DEFAULT_THUMBNAIL_DENSITY = 150
DEFAULT_THUMBNAIL_FORMAT = "png"
DEFAULT_TEMP_PREFIX = "massage_"
DEFAULT_CHUNK_SIZE = 64 * 1024

# pdftk burst names pages <pattern>_page_001, _page_002, ...
BURST_PAGE_SUFFIX = "_page_%03d"

# pdftk burst always writes this report into its working directory
BURST_SIDE_ARTIFACT = "doc_data.txt"

# Keep this much of a tool's stderr in error context
STDERR_TAIL_CHARS = 500
