from pydantic import BaseModel, ConfigDict


class InboundMessage(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: str = ""


class RecordingSavedResponse(BaseModel):
    message: str
    filename: str


class HealthResponse(BaseModel):
    status: str
    service: str
