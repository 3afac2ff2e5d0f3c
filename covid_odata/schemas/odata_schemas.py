# covid_odata/schemas/odata_schemas.py
from pydantic import BaseModel


class ODataErrorDetail(BaseModel):
    code: str = ""
    message: str


class ODataErrorResponse(BaseModel):
    error: ODataErrorDetail


ERROR_RESPONSES = {
    400: {"model": ODataErrorResponse, "description": "Invalid query option"},
    404: {"model": ODataErrorResponse, "description": "Resource not found"},
}
