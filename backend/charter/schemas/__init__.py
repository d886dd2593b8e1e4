from charter.schemas.common import PaginationMeta
from charter.schemas.inquiry import InquiryCreate, InquiryResponse, InquiryListResponse
from charter.schemas.quote import QuoteCreate, QuoteResponse, QuoteListResponse
from charter.schemas.booking import BookingResponse, BookingListResponse, FlightStatusUpdate
from charter.schemas.payment import (
    PaymentInitiationResponse,
    PaymentListResponse,
    PaymentResponse,
    PaymentStatusResponse,
    WebhookAck,
)
from charter.schemas.audit import AuditEventResponse, AuditEventListResponse

__all__ = [
    "PaginationMeta",
    "InquiryCreate", "InquiryResponse", "InquiryListResponse",
    "QuoteCreate", "QuoteResponse", "QuoteListResponse",
    "BookingResponse", "BookingListResponse", "FlightStatusUpdate",
    "PaymentInitiationResponse", "PaymentListResponse", "PaymentResponse",
    "PaymentStatusResponse", "WebhookAck",
    "AuditEventResponse", "AuditEventListResponse",
]
