from charter.models.inquiry import Inquiry
from charter.models.quote import Quote
from charter.models.booking import Booking
from charter.models.payment import PaymentTransaction
from charter.models.audit_event import AuditEvent

__all__ = ["Inquiry", "Quote", "Booking", "PaymentTransaction", "AuditEvent"]
