import os
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

DEFAULT_FONT = os.getenv("IMAGESTAMP_DEFAULT_FONT", "sans 10")
DEFAULT_DPI = int(os.getenv("IMAGESTAMP_DEFAULT_DPI", "72"))
FONT_DIRS = [p for p in os.getenv("IMAGESTAMP_FONT_DIRS", "").split(os.pathsep) if p]
FONT_CACHE_SIZE = int(os.getenv("IMAGESTAMP_FONT_CACHE_SIZE", "64"))

# Defaults used by the HTTP layer and the CLI
API_FONT_FAMILY = os.getenv("IMAGESTAMP_API_FONT_FAMILY", "sans")
API_FONT_SIZE = int(os.getenv("IMAGESTAMP_API_FONT_SIZE", "40"))
WATERMARK_WIDTH = int(os.getenv("IMAGESTAMP_WATERMARK_WIDTH", "100"))
WATERMARK_MARGIN = int(os.getenv("IMAGESTAMP_WATERMARK_MARGIN", "20"))

JPEG_QUALITY = int(os.getenv("JPEG_QUALITY", "90"))
MAX_UPLOAD_SIZE_MB = int(os.getenv("MAX_UPLOAD_SIZE_MB", "50"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

LOG_FORMAT = '%(asctime)s - %(name)-25s - %(levelname)-8s - %(message)s'
LOG_DATEFMT = '%H:%M:%S'
