"""
Business document storage on Cloudflare R2 (S3 compatible)
"""

import logging
from typing import Optional
from urllib.parse import urlparse

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from ..config import R2_ACCESS_KEY_ID, R2_ACCOUNT_ID, R2_BUCKET_NAME, R2_SECRET_ACCESS_KEY

logger = logging.getLogger(__name__)


def get_r2_client():
    """Get configured boto3 client for Cloudflare R2"""
    return boto3.client(
        "s3",
        endpoint_url=f"https://{R2_ACCOUNT_ID}.r2.cloudflarestorage.com",
        aws_access_key_id=R2_ACCESS_KEY_ID,
        aws_secret_access_key=R2_SECRET_ACCESS_KEY,
        config=Config(signature_version="s3v4"),
        region_name="auto",
    )


def object_key_from_url(file_url: str) -> Optional[str]:
    """
    Object key for a stored document URL. Public URLs carry the bucket name
    as the first path segment when served through the account endpoint.
    """
    if not file_url:
        return None
    path = urlparse(file_url).path.lstrip("/")
    if not path:
        return None
    if path.startswith(f"{R2_BUCKET_NAME}/"):
        path = path[len(R2_BUCKET_NAME) + 1 :]
    return path


def delete_document_file(file_url: str) -> bool:
    """Best-effort removal of a document's object. Never raises."""
    if not (R2_ACCOUNT_ID and R2_ACCESS_KEY_ID and R2_SECRET_ACCESS_KEY):
        logger.warning("⚠️ R2 storage not configured, skipping document file removal")
        return False

    key = object_key_from_url(file_url)
    if not key:
        return False

    try:
        get_r2_client().delete_object(Bucket=R2_BUCKET_NAME, Key=key)
        logger.info(f"🗑️ Deleted document object {key}")
        return True
    except (BotoCoreError, ClientError) as e:
        logger.warning(f"⚠️ Failed to delete document object {key}: {e}")
        return False
