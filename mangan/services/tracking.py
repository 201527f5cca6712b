import random
import re
from datetime import datetime

TRACKING_CODE_PREFIX = "MNG"
TRACKING_CODE_PATTERN = re.compile(r"^MNG\d{6}\d{4}$")


def generate_tracking_code(now=None):
    """Return a tracking code such as ``MNG2610190042`` (prefix, YYMMDD, 4 random digits)."""
    now = now or datetime.now()
    suffix = random.randint(0, 9999)
    return f"{TRACKING_CODE_PREFIX}{now.strftime('%y%m%d')}{suffix:04d}"
