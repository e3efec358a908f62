"""공통 응답 스키마"""
from typing import Optional
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """클라이언트와 주고받는 JSON 키는 camelCase"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ResponseBase(CamelModel):
    success: bool = True
    message: Optional[str] = None


class ErrorResponse(BaseModel):
    success: bool = False
    code: str
    message: str
