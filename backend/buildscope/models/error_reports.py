from pydantic import BaseModel


class ErrorReportRequest(BaseModel):
    message: str
    stack: str | None = None
    type: str = "client"
    timestamp: str | None = None
