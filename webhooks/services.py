# webhooks/services.py
"""
Outbound webhook to the extraction workflow engine.

One synchronous POST per upload with a hard timeout. There is no retry and
no delivery queue: a timeout or a non-2xx answer fails the whole ingestion.
"""
import logging

import requests

from common.exceptions import UpstreamError

logger = logging.getLogger(__name__)


class ExtractionWebhookError(UpstreamError):
    pass


class ExtractionTimeout(ExtractionWebhookError):
    pass


class ExtractionWebhookClient:
    """
    Sends {fileUrl, fileName, fileType, userId, userEmail} with the hand-off
    token as bearer auth and returns the decoded JSON body.
    """

    USER_AGENT = "Bill-Ledger-Webhooks/1.0"

    def __init__(self, url: str, timeout: int = 120, session=None):
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()

    def process(self, *, file_url: str, file_name: str, file_type: str,
                user_id: str, user_email: str, token: str):
        if not self.url:
            raise ExtractionWebhookError("EXTRACTION_WEBHOOK_URL is not configured")

        payload = {
            "fileUrl": file_url,
            "fileName": file_name,
            "fileType": file_type,
            "userId": user_id,
            "userEmail": user_email,
        }
        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "User-Agent": self.USER_AGENT,
        }

        logger.info(f"Sending {file_name} ({file_type}) to extraction workflow for user {user_id}")
        try:
            response = self.session.post(
                self.url,
                json=payload,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout as e:
            raise ExtractionTimeout(
                f"Extraction workflow did not answer within {self.timeout}s"
            ) from e
        except requests.exceptions.RequestException as e:
            raise ExtractionWebhookError(f"Extraction workflow unreachable: {e}") from e

        if not 200 <= response.status_code < 300:
            raise ExtractionWebhookError(
                f"Extraction workflow returned HTTP {response.status_code}: {response.text[:500]}"
            )

        try:
            body = response.json()
        except ValueError as e:
            raise ExtractionWebhookError("Extraction workflow returned a non-JSON body") from e

        logger.info(f"Extraction workflow answered HTTP {response.status_code} for {file_name}")
        return body
