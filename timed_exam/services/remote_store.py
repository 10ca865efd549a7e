"""
Networked storage backend on DynamoDB and S3.

Tables:
  * tests (``DDB_TABLE_TESTS``): one row per test, hash key ``id``. Rows carry
    a numeric ``expires_at_ts`` attribute so a DynamoDB TTL can reap them.
  * submissions (``DDB_TABLE_SUBMISSIONS``): hash key ``id``.
  * answer files (``DDB_TABLE_ANSWERS``): hash key ``id``, written in batches.

Files go into one bucket (``EXAM_BUCKET``) under a ``test-documents/`` or
``answer-documents/`` prefix.
"""
from __future__ import annotations

import logging
from typing import List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .. import config
from ..errors import TransientIOError
from ..models import AnswerFileRecord, SubmissionRecord, TestRecord
from .storage_service import BlobArea

logger = logging.getLogger(__name__)

AWS_ERRORS = (ClientError, BotoCoreError)


def _client_kwargs():
    k = {"region_name": config.AWS_REGION}
    if config.AWS_ENDPOINT_URL:
        k["endpoint_url"] = config.AWS_ENDPOINT_URL
    return k


def s3_client():
    return boto3.client("s3", **_client_kwargs())


def dynamodb_resource():
    return boto3.resource("dynamodb", **_client_kwargs())


def public_object_url(bucket: str, key: str) -> str:
    if config.AWS_ENDPOINT_URL:
        return f"{config.AWS_ENDPOINT_URL.rstrip('/')}/{bucket}/{key}"
    return f"https://{bucket}.s3.{config.AWS_REGION}.amazonaws.com/{key}"


class RemoteRecordStore:
    """RecordStore backed by DynamoDB tables and an S3 bucket."""

    name = "remote"

    def __init__(
        self,
        s3=None,
        dynamodb=None,
        bucket: str | None = None,
        tests_table: str | None = None,
        submissions_table: str | None = None,
        answers_table: str | None = None,
    ) -> None:
        self.s3 = s3 or s3_client()
        self.dynamodb = dynamodb or dynamodb_resource()
        self.bucket = bucket or config.EXAM_BUCKET
        self.tests = self.dynamodb.Table(tests_table or config.TESTS_TABLE)
        self.submissions = self.dynamodb.Table(submissions_table or config.SUBMISSIONS_TABLE)
        self.answers = self.dynamodb.Table(answers_table or config.ANSWERS_TABLE)

    def put_blob(self, area: BlobArea, file_name: str, data: bytes, content_type: str) -> str:
        key = f"{area.value}/{file_name}"
        try:
            self.s3.put_object(Bucket=self.bucket, Key=key, Body=data, ContentType=content_type)
        except AWS_ERRORS as e:
            logger.error(f"S3 upload failed for s3://{self.bucket}/{key}: {e}")
            raise TransientIOError(f"Failed to upload file: {e}") from e
        logger.info(f"Uploaded s3://{self.bucket}/{key} ({len(data)} bytes)")
        return public_object_url(self.bucket, key)

    def put_test(self, record: TestRecord) -> None:
        item = record.model_dump(mode="json")
        item["expires_at_ts"] = int(record.expires_at.timestamp())
        if item.get("created_by") is None:
            item.pop("created_by", None)
        try:
            self.tests.put_item(Item=item)
        except AWS_ERRORS as e:
            logger.error(f"Failed to create test {record.id}: {e}")
            raise TransientIOError(f"Failed to create test file: {e}") from e

    def fetch_test(self, test_id: str) -> Optional[TestRecord]:
        try:
            response = self.tests.get_item(Key={"id": test_id})
        except AWS_ERRORS as e:
            logger.error(f"Failed to fetch test {test_id}: {e}")
            raise TransientIOError(f"Failed to fetch test file: {e}") from e
        item = response.get("Item")
        if not item:
            return None
        item.pop("expires_at_ts", None)
        # DynamoDB hands numbers back as Decimal
        item["duration_minutes"] = int(item["duration_minutes"])
        return TestRecord.model_validate(item)

    def delete_test(self, test_id: str) -> None:
        try:
            self.tests.delete_item(Key={"id": test_id})
        except AWS_ERRORS as e:
            raise TransientIOError(f"Failed to delete test file: {e}") from e

    def put_submission(self, record: SubmissionRecord) -> None:
        item = record.model_dump(mode="json")
        if item.get("submitted_by") is None:
            item.pop("submitted_by", None)
        try:
            self.submissions.put_item(Item=item)
        except AWS_ERRORS as e:
            logger.error(f"Failed to create submission for test {record.test_id}: {e}")
            raise TransientIOError(f"Failed to create submission: {e}") from e

    def put_answer_files(self, records: List[AnswerFileRecord]) -> None:
        if not records:
            return
        try:
            with self.answers.batch_writer() as batch:
                for record in records:
                    batch.put_item(Item=record.model_dump(mode="json"))
        except AWS_ERRORS as e:
            logger.error(
                f"Failed to create answer files for submission {records[0].submission_id}: {e}"
            )
            raise TransientIOError(f"Failed to create answer files: {e}") from e
