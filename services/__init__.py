from .gateway import PaymentGateway, StubPaymentGateway, GatewayOrder, build_gateway, verify_signature
from .notifications import Mailer
from .payments import PaymentService
