from __future__ import annotations

import asyncio
import logging

from auditready.core.config import get_settings
from auditready.core.errors import (
    CompletionRejectedError,
    CompletionServiceError,
    CompletionTimeoutError,
    CompletionTransportError,
    ProviderConfigError,
)
from auditready.providers.llm.base import Completion
from auditready.services.costs import estimate_tokens


logger = logging.getLogger(__name__)


class GeminiVertexProvider:
    name = "vertex"

    def __init__(self) -> None:
        self._settings = get_settings()

    def _validate_config(self) -> tuple[str, str, str]:
        # Project and location are required before the SDK is touched.
        project = self._settings.google_cloud_project
        location = self._settings.google_cloud_location
        model = self._settings.gemini_model
        missing = []
        if not project:
            missing.append("GOOGLE_CLOUD_PROJECT")
        if not location:
            missing.append("GOOGLE_CLOUD_LOCATION")
        if not model:
            missing.append("GEMINI_MODEL")
        if missing:
            raise ProviderConfigError(
                f"Vertex config missing: set {', '.join(missing)} in .env."
            )
        return project, location, model

    def _generate(self, prompt: str, max_output_tokens: int) -> Completion:
        project, location, model_name = self._validate_config()
        try:
            from vertexai import init
            from vertexai.generative_models import GenerationConfig, GenerativeModel
            from google.api_core import exceptions as gexc
            from google.auth.exceptions import DefaultCredentialsError, RefreshError
        except ImportError as exc:  # pragma: no cover - import errors are environment-specific
            raise ProviderConfigError(
                "Vertex AI SDK not available. Install google-cloud-aiplatform."
            ) from exc

        try:
            init(project=project, location=location)
            model = GenerativeModel(model_name)
            response = model.generate_content(
                prompt,
                generation_config=GenerationConfig(max_output_tokens=max_output_tokens),
            )
        except (DefaultCredentialsError, RefreshError, gexc.PermissionDenied, gexc.Unauthenticated) as exc:
            logger.warning("vertex_auth_error model=%s", model_name)
            raise CompletionRejectedError(
                "Vertex auth error: run `gcloud auth application-default login`."
            ) from exc
        except gexc.DeadlineExceeded as exc:
            raise CompletionTimeoutError("Vertex request timed out.") from exc
        except (gexc.ServiceUnavailable, gexc.InternalServerError, gexc.TooManyRequests) as exc:
            raise CompletionTransportError(f"Vertex upstream unavailable: {exc}") from exc
        except gexc.InvalidArgument as exc:
            raise CompletionRejectedError(f"Vertex rejected the request: {exc}") from exc
        except gexc.GoogleAPICallError as exc:
            raise CompletionServiceError(f"Vertex request failed: {exc}") from exc

        text = getattr(response, "text", "") or ""
        usage = getattr(response, "usage_metadata", None)
        tokens = int(getattr(usage, "total_token_count", 0) or 0)
        if tokens <= 0:
            tokens = estimate_tokens(prompt) + estimate_tokens(text)
        return Completion(text=text, tokens_used=tokens)

    async def complete(self, prompt: str, *, max_output_tokens: int) -> Completion:
        # The Vertex SDK call is blocking; keep it off the event loop.
        return await asyncio.to_thread(self._generate, prompt, max_output_tokens)
