# closed error taxonomy shared by every provider, the router and the adapter
# each error carries a user-facing message so the host can print guidance instead of a traceback

from __future__ import annotations

from typing import Optional

import httpx


class ProviderError(Exception):
    """Base class for every classified provider failure."""

    code = "PROVIDER_ERROR"
    # backend type (ollama, openai, ...) when the provider label is a custom instance name
    provider_type: Optional[str] = None

    def __init__(self, message: str, *, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause

    def user_message(self) -> str:
        return self.message


class ProviderConnectionError(ProviderError):
    code = "CONNECTION_ERROR"

    def __init__(self, message: str, provider: str, *, cause: Optional[BaseException] = None) -> None:
        super().__init__(message, cause=cause)
        self.provider = provider

    def user_message(self) -> str:
        p = (self.provider_type or self.provider or "").lower()
        if p == "ollama":
            steps = (
                "1. Ollama is running locally (http://localhost:11434)\n"
                "   - Check: curl http://localhost:11434/api/tags\n"
                "   - Start: ollama serve (if not running)\n"
                "2. The model is installed (e.g., ollama pull qwen2.5-coder)\n"
                "   - List models: ollama list\n"
                "3. Your network connection is active"
            )
            return f"Failed to connect to Ollama. Please ensure:\n{steps}\n\nError: {self.message}"
        if p == "gemini":
            steps = (
                "1. Your API key is valid (GEMINI_API_KEY)\n"
                "   - Get key: https://aistudio.google.com/app/apikey\n"
                "2. Your internet connection is active\n"
                "3. generativelanguage.googleapis.com is reachable"
            )
        elif p == "openai":
            steps = (
                "1. Your API key is valid (OPENAI_API_KEY)\n"
                "   - Get key: https://platform.openai.com/api-keys\n"
                "2. Your internet connection is active\n"
                "3. api.openai.com is reachable\n"
                "4. Your account quota and billing status"
            )
        elif p in {"googlecloud", "vertex"}:
            steps = (
                "1. gcloud CLI is installed and authenticated\n"
                "   - Verify: gcloud auth print-access-token\n"
                "2. Project ID and region are correctly configured\n"
                "3. API is enabled: gcloud services enable aiplatform.googleapis.com\n"
                "4. Your internet connection is active"
            )
        else:
            steps = (
                "1. Your internet connection\n"
                "2. API endpoint is accessible\n"
                "3. Firewall settings\n"
                "4. API credentials are valid"
            )
        return f"Failed to connect to {self.provider}. Please check:\n{steps}\n\nError: {self.message}"


class RateLimitError(ProviderError):
    code = "RATE_LIMIT_ERROR"

    def __init__(
        self,
        message: str,
        retry_after: Optional[int] = None,
        *,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message, cause=cause)
        self.retry_after = retry_after

    @staticmethod
    def calculate_backoff(attempt: int, base_delay: float = 1.0, max_delay: float = 30.0) -> float:
        """Exponential backoff in seconds for the given 0-indexed attempt."""
        return min(base_delay * (2 ** attempt), max_delay)

    def user_message(self) -> str:
        if self.retry_after:
            retry_info = f" Retry after {self.retry_after} seconds."
        else:
            retry_info = " Please retry in a few moments."
        schedule = ", ".join(f"{self.calculate_backoff(i):g}s" for i in range(3))
        return (
            f"Rate limit exceeded.{retry_info}\n\n"
            "To resolve:\n"
            "1. Wait for the retry period before making another request\n"
            "2. Consider upgrading your API plan for higher rate limits\n"
            "3. Reduce request frequency or batch requests\n"
            f"4. Back off exponentially between attempts: {schedule}...\n\n"
            f"Error: {self.message}"
        )


_FIELD_SUGGESTIONS = {
    "apiKey": (
        "- Verify the key is not expired or revoked\n"
        "- Use env:VAR_NAME to read the key from the environment (e.g., env:OPENAI_API_KEY)\n"
        "- Ensure the environment variable is set if using the env: prefix"
    ),
    "model": (
        "- Verify the model name is correct\n"
        "- Use the provider:model form (e.g., openai:gpt-4)\n"
        "- List the models the provider exposes before switching"
    ),
    "provider": (
        "- Verify the provider name matches a configured provider\n"
        "- Check that the provider is enabled in your configuration"
    ),
    "projectId": (
        "- Check the project ID and region in providerSpecific\n"
        "- Ensure the Vertex AI API is enabled and your account has access"
    ),
    "baseUrl": (
        "- Use a valid http:// or https:// URL\n"
        "- Verify port numbers if specified"
    ),
}


class ValidationError(ProviderError):
    code = "VALIDATION_ERROR"

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        *,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message, cause=cause)
        self.field = field

    def user_message(self) -> str:
        field_info = f" (field: {self.field})" if self.field else ""
        suggestion = _FIELD_SUGGESTIONS.get(self.field or "")
        if suggestion is None and self.field:
            suggestion = f"- Verify the {self.field} value is correct"
        tail = f"\n\nSuggestions:\n{suggestion}" if suggestion else ""
        return f"Validation failed{field_info}: {self.message}{tail}"


class ModelNotFoundError(ProviderError):
    code = "MODEL_NOT_FOUND"

    def __init__(
        self,
        message: str,
        model_name: Optional[str] = None,
        provider: Optional[str] = None,
        *,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message, cause=cause)
        self.model_name = model_name
        self.provider = provider

    def user_message(self) -> str:
        model_info = f'Model "{self.model_name}"' if self.model_name else "Model"
        provider_info = f' on provider "{self.provider}"' if self.provider else ""
        pull_hint = f"ollama pull {self.model_name or '<model-name>'}"
        return (
            f"{model_info} not found{provider_info}.\n\n"
            "To resolve:\n"
            "1. Verify the model name is correct\n"
            "2. Check provider-specific model naming conventions\n"
            f"3. For Ollama: ensure the model is installed ({pull_hint})\n"
            "4. For hosted APIs: verify the model is available to your account/region\n\n"
            f"Error: {self.message}"
        )


_API_KEY_ENV = {
    "openai": "OPENAI_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "deepseek": "DEEPSEEK_API_KEY",
    "qwen": "QWEN_API_KEY",
    "googlecloud": "GOOGLE_CLOUD_ACCESS_TOKEN",
}


class InvalidApiKeyError(ProviderError):
    code = "INVALID_API_KEY"

    def __init__(self, message: str, provider: Optional[str] = None, *, cause: Optional[BaseException] = None) -> None:
        super().__init__(message, cause=cause)
        self.provider = provider

    def user_message(self) -> str:
        provider_info = f" for {self.provider}" if self.provider else ""
        env_var = _API_KEY_ENV.get((self.provider_type or self.provider or "").lower())
        if env_var:
            guidance = (
                f"\n\nTo fix:\n1. Set {env_var} in your environment or .env file\n"
                f"2. Or reference it from the provider config: apiKey = \"env:{env_var}\"\n"
                "3. Ensure the key is not expired or revoked"
            )
        else:
            guidance = (
                "\n\nTo fix:\n1. Check the provider configuration\n"
                "2. Verify the API key format is correct\n"
                "3. Use env:VAR_NAME to read the key from the environment"
            )
        return f"Invalid or missing API key{provider_info}: {self.message}{guidance}"


CLASSIFIED_ERRORS = (
    ProviderConnectionError,
    RateLimitError,
    ValidationError,
    ModelNotFoundError,
    InvalidApiKeyError,
)


def _parse_retry_after(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None


def _body_message(response: httpx.Response) -> str:
    # openai/gemini: {"error": {"message": ...}}, ollama: {"error": "..."}, dashscope: {"message": ...}
    try:
        data = response.json()
    except (ValueError, httpx.ResponseNotRead):
        return ""
    if not isinstance(data, dict):
        return ""
    err = data.get("error")
    if isinstance(err, dict) and isinstance(err.get("message"), str):
        return err["message"]
    if isinstance(err, str):
        return err
    if isinstance(data.get("message"), str):
        return data["message"]
    return ""


def classify_status(
    response: httpx.Response,
    *,
    provider: str,
    model: Optional[str] = None,
    forbidden_is_auth: bool = True,
    cause: Optional[BaseException] = None,
) -> Optional[ProviderError]:
    """Map an HTTP error response to a taxonomy error, or None for statuses with no rule."""
    status = response.status_code
    detail = _body_message(response) or response.reason_phrase or f"HTTP {status}"

    if status == 401 or (status == 403 and forbidden_is_auth):
        return InvalidApiKeyError(f"Authentication failed: {detail}", provider, cause=cause)
    if status == 403:
        return ValidationError(
            f"Access forbidden: {detail}. Check your project permissions and API enablement.",
            "projectId",
            cause=cause,
        )
    if status == 429:
        return RateLimitError(
            detail or "Rate limit exceeded",
            _parse_retry_after(response.headers.get("retry-after")),
            cause=cause,
        )
    if status == 404:
        return ModelNotFoundError(
            f'Model "{model}" not found: {detail}' if model else f"Resource not found: {detail}",
            model,
            provider,
            cause=cause,
        )
    if status in (400, 422):
        return ValidationError(detail, cause=cause)
    if 500 <= status < 600:
        return ProviderConnectionError(f"Server error from {provider}: {detail}", provider, cause=cause)
    return None


def _classify_message(
    message: str,
    *,
    provider: str,
    model: Optional[str],
    cause: BaseException,
) -> Optional[ProviderError]:
    text = message.lower()
    if "api key" in text or "authentication" in text or "unauthorized" in text or "401" in text:
        return InvalidApiKeyError(message, provider, cause=cause)
    if "rate limit" in text or "too many requests" in text or "429" in text:
        return RateLimitError(message, cause=cause)
    if "model" in text and ("not found" in text or "404" in text):
        return ModelNotFoundError(message, model, provider, cause=cause)
    if "validation" in text or "invalid" in text or "400" in text:
        return ValidationError(message, cause=cause)
    if "connection" in text or "timeout" in text or "network" in text:
        return ProviderConnectionError(message, provider, cause=cause)
    return None


def classify_error(
    error: BaseException,
    *,
    provider: str,
    model: Optional[str] = None,
    base_url: Optional[str] = None,
    forbidden_is_auth: bool = True,
) -> ProviderError:
    """Convert any exception into one of the five taxonomy kinds.

    Already-classified errors come back unchanged. HTTP status rules run before
    message heuristics; anything unrecognised becomes a connection error whose
    message is prefixed with the provider name.
    """
    if isinstance(error, CLASSIFIED_ERRORS):
        return error

    if isinstance(error, httpx.HTTPStatusError):
        classified = classify_status(
            error.response,
            provider=provider,
            model=model,
            forbidden_is_auth=forbidden_is_auth,
            cause=error,
        )
        if classified is not None:
            return classified

    elif isinstance(error, (httpx.TransportError, OSError)):
        # no response was received: refused, timed out, dns failure, dropped socket
        where = f" at {base_url}" if base_url else ""
        return ProviderConnectionError(
            f"Failed to connect to {provider}{where}: {error}", provider, cause=error
        )

    message = str(error) or type(error).__name__
    classified = _classify_message(message, provider=provider, model=model, cause=error)
    if classified is not None:
        return classified
    return ProviderConnectionError(f"{provider}: {message}", provider, cause=error)
