import logging
import os
import random
import time
import boto3
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

# Environment variables
S3_BUCKET = os.environ.get("S3_BUCKET")
AWS_REGION = os.environ.get("AWS_REGION", "us-east-1")
UPLOAD_DIR = os.environ.get("UPLOAD_DIR", "uploads")
MAX_RECEIPT_BYTES = int(os.environ.get("MAX_RECEIPT_BYTES", 5 * 1024 * 1024))

RECEIPT_FOLDER = "receipts"


class StorageError(Exception):
    """A receipt could not be written to its backend."""


def get_s3_client():
    return boto3.client("s3", region_name=AWS_REGION)

def allowed_receipt_type(content_type: str | None) -> bool:
    """Receipts may be any image or a PDF."""
    if not content_type:
        return False
    return content_type.startswith("image/") or content_type == "application/pdf"

def build_receipt_name(original_filename: str | None) -> str:
    """
    Unique name for a stored receipt, keeping the original extension.
    """
    ext = Path(original_filename or "").suffix.lower()
    suffix = f"{int(time.time() * 1000)}-{random.randint(0, 10**9)}"
    return f"receipt-{suffix}{ext}"

def save_receipt(file_name: str, data: bytes, folder: str = RECEIPT_FOLDER) -> str:
    """
    Saves a receipt to either S3 or local disk and returns where it went.
    """
    if S3_BUCKET:
        s3 = get_s3_client()
        key = f"{folder}/{file_name}"
        try:
            s3.put_object(Bucket=S3_BUCKET, Key=key, Body=data)
        except Exception as e:
            logger.error("S3 upload failed for %s: %s", key, e)
            raise StorageError("Failed to store receipt") from e
        return f"s3://{S3_BUCKET}/{key}"

    # Local fallback
    local_path = Path(UPLOAD_DIR) / folder / file_name
    try:
        local_path.parent.mkdir(parents=True, exist_ok=True)
        with open(local_path, "wb") as f:
            f.write(data)
    except OSError as e:
        logger.error("Could not write receipt %s: %s", local_path, e)
        raise StorageError("Failed to store receipt") from e
    return local_path.as_posix()

def load_receipt(location: str) -> bytes | None:
    """
    Loads a stored receipt from either S3 or local disk.
    """
    if location.startswith("s3://"):
        bucket, _, key = location[len("s3://"):].partition("/")
        s3 = get_s3_client()
        try:
            obj = s3.get_object(Bucket=bucket, Key=key)
            return obj["Body"].read()
        except s3.exceptions.NoSuchKey:
            return None
        except Exception as e:
            logger.error("S3 download failed for %s: %s", location, e)
            return None

    local_path = Path(location)
    if local_path.exists():
        return local_path.read_bytes()
    return None
