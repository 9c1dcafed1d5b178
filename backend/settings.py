import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

BASE_DIR = Path(__file__).resolve().parent.parent

DATABASE_URL = os.getenv("DATABASE_URL", "mongodb://localhost:27017")
DATABASE_NAME = os.getenv("DATABASE_NAME", "kalpavruksha")

UPLOAD_DIR = Path(os.getenv("UPLOAD_DIR", str(BASE_DIR / "public" / "uploads")))
UPLOAD_URL_PREFIX = os.getenv("UPLOAD_URL_PREFIX", "/uploads")

# Console templates ship beside the modules, so installs must be editable
# (pip install -e .) unless TEMPLATES_DIR points at a copy of them.
TEMPLATES_DIR = Path(os.getenv("TEMPLATES_DIR", str(Path(__file__).resolve().parent / "templates")))

STUDENT_PORTAL_URL = os.getenv("STUDENT_PORTAL_URL", "http://localhost:3000")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

# Reduce noise from the driver and form parser
logging.getLogger("pymongo").setLevel(logging.WARNING)
logging.getLogger("multipart").setLevel(logging.WARNING)
logging.getLogger("python_multipart").setLevel(logging.WARNING)
