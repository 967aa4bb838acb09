"""
File storage service
Issues S3 presigned upload/download URLs for user documents and records
each upload in the ``files`` collection.

Keys are ``{user_id}/{uuid}.{ext}`` so every object is scoped to its owner.
"""
import os
import uuid
import logging
from typing import Any, Dict, List, Optional

import boto3

from database import database
from doclens.errors import NotFound
from doclens.models.file import MAX_FILE_SIZE_BYTES, FileType, StoredFile

logger = logging.getLogger(__name__)

PRESIGNED_URL_EXPIRY_SECONDS = 3600


def build_s3_key(file_name: str, user_id: str) -> str:
    ext = os.path.splitext(file_name)[1][1:]
    return f"{user_id}/{uuid.uuid4()}.{ext}"


class FileStorageService:
    def __init__(
        self,
        db=None,
        bucket: Optional[str] = None,
        region: Optional[str] = None,
        s3_client=None,
    ):
        self.db = db
        self.bucket = bucket if bucket is not None else os.getenv("AWS_S3_FILES_BUCKET")
        self.region = region if region is not None else os.getenv("AWS_S3_REGION")
        self.s3_client = s3_client

    def _get_db(self):
        if self.db is None:
            self.db = database.get_db()
        return self.db

    def _get_s3(self):
        if not self.bucket:
            raise RuntimeError("AWS_S3_FILES_BUCKET environment variable not set")
        if self.s3_client is None:
            self.s3_client = boto3.client(
                "s3",
                region_name=self.region,
                aws_access_key_id=os.getenv("AWS_S3_IAM_ACCESS_KEY"),
                aws_secret_access_key=os.getenv("AWS_S3_IAM_SECRET_KEY"),
            )
        return self.s3_client

    async def create_file(self, user_id: str, file_name: str, file_type: FileType) -> Dict[str, Any]:
        """Presign an upload for the user and store the file record.

        Returns ``{"upload_url", "upload_fields"}`` for a browser form POST.
        """
        s3 = self._get_s3()
        content_type = FileType(file_type).value
        key = build_s3_key(file_name, user_id)

        presigned = s3.generate_presigned_post(
            Bucket=self.bucket,
            Key=key,
            Fields={"Content-Type": content_type},
            Conditions=[
                ["content-length-range", 0, MAX_FILE_SIZE_BYTES],
                {"Content-Type": content_type},
            ],
            ExpiresIn=PRESIGNED_URL_EXPIRY_SECONDS,
        )

        record = StoredFile(
            user_id=user_id,
            name=file_name,
            key=key,
            type=content_type,
            upload_url=presigned["url"],
        )
        await self._get_db().files.insert_one(record.model_dump())
        logger.info(f"File {record.file_id} registered for user {user_id} at {key}")

        return {"upload_url": presigned["url"], "upload_fields": presigned["fields"]}

    async def list_files(self, user_id: str) -> List[Dict[str, Any]]:
        """The user's files, newest first."""
        cursor = self._get_db().files.find({"user_id": user_id}, {"_id": 0}).sort("created_at", -1)
        return await cursor.to_list(length=None)

    async def get_download_url(self, user_id: str, key: str) -> str:
        db = self._get_db()
        record = await db.files.find_one({"key": key, "user_id": user_id}, {"_id": 0, "key": 1})
        if not record:
            raise NotFound("File not found")

        return self._get_s3().generate_presigned_url(
            "get_object",
            Params={"Bucket": self.bucket, "Key": key},
            ExpiresIn=PRESIGNED_URL_EXPIRY_SECONDS,
        )
