from pydantic import BaseModel, ConfigDict

from relay_api.constants import DEFAULT_TEMPERATURE, UPSTREAM_MODEL


class ChatMessage(BaseModel):
    # Extra keys (name, tool_call_id, ...) are forwarded untouched.
    model_config = ConfigDict(extra="allow")

    role: str
    content: str


class ChatRequest(BaseModel):
    # Left optional so a missing list reaches the upstream and fails there.
    messages: list[ChatMessage] | None = None
    temperature: float = DEFAULT_TEMPERATURE


class UpstreamPayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    model: str = UPSTREAM_MODEL
    messages: list[ChatMessage] | None
    temperature: float
    stream: bool = True


class ErrorResponse(BaseModel):
    error: str
    message: str | None = None


def build_upstream_payload(request: ChatRequest) -> UpstreamPayload:
    return UpstreamPayload(messages=request.messages, temperature=request.temperature)
