from __future__ import annotations

import json
import logging

from openai import AsyncAzureOpenAI
from pydantic import ValidationError

from app.core.config import Settings
from app.models.documents import DocumentVerification

logger = logging.getLogger(__name__)

VERIFY_SYSTEM_PROMPT = (
    "You are an expert document verification agent. Your task is to determine if the document "
    "in the provided image matches the expected document type.\n\n"
    "- If the document in the image IS the expected type, set isMatch to true.\n"
    "- If the document in the image IS NOT the expected type, set isMatch to false. For example, "
    'if the user expects a "School Certificate" but uploads an "Aadhar Card", that is a mismatch.\n'
    "- Provide a very short, one-sentence reason for your decision.\n\n"
    "Respond only with a JSON object with the fields isMatch (boolean) and reason (string)."
)

LLM_TEMPERATURE = 0.0
LLM_MAX_TOKENS = 200


class DocumentVerifierError(Exception):
    pass


class DocumentVerifier:
    def __init__(self) -> None:
        self.client: AsyncAzureOpenAI | None = None
        self.initialized = False
        self.enabled = True
        self.model = ""

    async def initialize(self, settings: Settings) -> None:
        if self.initialized:
            return

        self.enabled = settings.DOCUMENT_VERIFICATION_ENABLED
        if not self.enabled:
            logger.info("Document verification disabled by configuration")
            return

        if not settings.OPENAI_ENDPOINT or not settings.OPENAI_API_KEY:
            logger.warning("OpenAI credentials missing — DocumentVerifier not initialized")
            return

        self.client = AsyncAzureOpenAI(
            azure_endpoint=settings.OPENAI_ENDPOINT,
            api_key=settings.OPENAI_API_KEY,
            api_version=settings.OPENAI_API_VERSION,
        )
        self.model = settings.OPENAI_VISION_MODEL
        self.initialized = True

    async def close(self) -> None:
        if self.client:
            await self.client.close()
        self.client = None
        self.initialized = False

    def _build_messages(self, photo_data_uri: str, expected_type: str) -> list[dict]:
        return [
            {"role": "system", "content": VERIFY_SYSTEM_PROMPT},
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": f"The user expects the document to be a '{expected_type}'."},
                    {"type": "image_url", "image_url": {"url": photo_data_uri}},
                ],
            },
        ]

    async def verify(self, photo_data_uri: str, expected_type: str) -> DocumentVerification:
        if not self.initialized or not self.client:
            raise DocumentVerifierError("Document verification service is not configured")

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=self._build_messages(photo_data_uri, expected_type),  # type: ignore[arg-type]
                temperature=LLM_TEMPERATURE,
                max_tokens=LLM_MAX_TOKENS,
                response_format={"type": "json_object"},
            )
            content = response.choices[0].message.content
            if not content:
                raise DocumentVerifierError("The AI model did not return a valid response.")
            return DocumentVerification.model_validate(json.loads(content))
        except json.JSONDecodeError as e:
            raise DocumentVerifierError(f"Failed to parse verification response: {e}") from e
        except ValidationError as e:
            raise DocumentVerifierError(f"Unexpected verification response: {e}") from e
        except DocumentVerifierError:
            raise
        except Exception as e:
            raise DocumentVerifierError(f"Verification call failed: {e}") from e


document_verifier = DocumentVerifier()
