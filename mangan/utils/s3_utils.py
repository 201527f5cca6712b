import base64
import binascii
import os
import re
import uuid
from io import BytesIO
from urllib.parse import urlparse

import boto3
from botocore.exceptions import NoCredentialsError
from flask import current_app

DATA_URI_PATTERN = re.compile(
    r"^data:image/(?P<ext>[a-zA-Z0-9.+-]+);base64,(?P<payload>.+)$", re.DOTALL
)


def is_image_data_uri(value):
    return isinstance(value, str) and value.startswith("data:image")


def _s3_client():
    return boto3.client(
        "s3",
        aws_access_key_id=os.getenv("AWS_ACCESS_KEY_ID"),
        aws_secret_access_key=os.getenv("AWS_SECRET_ACCESS_KEY"),
        region_name=os.getenv("AWS_REGION"),
    )


def upload_file_to_s3(file, filename, bucket_name, content_type=None):
    s3 = _s3_client()
    extra_args = {"ACL": "public-read"}
    if content_type:
        extra_args["ContentType"] = content_type
    try:
        s3.upload_fileobj(file, bucket_name, filename, ExtraArgs=extra_args)
        base_url = os.getenv("S3_BASE_URL")
        return f"{base_url}/{filename}"

    except NoCredentialsError:
        raise Exception("AWS credentials not found. Check environment variables.")


def upload_base64_image(data_uri, folder):
    """
    Upload a ``data:image/<ext>;base64,...`` URI and return its public URL.

    Raises ValueError for anything that is not a base64 image, and whatever
    boto3 raises when the upload itself fails.
    """
    match = DATA_URI_PATTERN.match(data_uri or "")
    if not match:
        raise ValueError("Image must be a base64 data:image URI")

    try:
        raw = base64.b64decode(match.group("payload"), validate=True)
    except (binascii.Error, ValueError):
        raise ValueError("Image payload is not valid base64")

    bucket_name = current_app.config.get("S3_BUCKET_NAME")
    if not bucket_name:
        raise RuntimeError("S3_BUCKET_NAME is not configured")

    ext = match.group("ext").lower().replace("jpeg", "jpg")
    filename = f"{folder.strip('/')}/{uuid.uuid4()}.{ext}"
    return upload_file_to_s3(
        BytesIO(raw), filename, bucket_name, content_type=f"image/{match.group('ext')}"
    )


def delete_file_from_s3(image_url, bucket_name):
    s3 = _s3_client()

    try:
        parsed = urlparse(image_url)
        key = parsed.path.lstrip("/")

        s3.delete_object(Bucket=bucket_name, Key=key)
        return True

    except NoCredentialsError:
        raise Exception("AWS credentials not found. Check environment variables.")
    except Exception as e:
        current_app.logger.error(f"Error deleting file from S3: {e}")
        return False


def discard_upload(image_url):
    """Remove an object uploaded for a change that was rolled back."""
    bucket_name = current_app.config.get("S3_BUCKET_NAME")
    if not image_url or not bucket_name:
        return
    try:
        delete_file_from_s3(image_url, bucket_name)
    except Exception as e:
        current_app.logger.error(f"Could not discard uploaded file {image_url}: {e}")
